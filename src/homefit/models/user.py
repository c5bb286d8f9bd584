"""
Modelo de Usuario

Copia local de la identidad que devuelve el backend (sesión por cookie).
El cliente solo la lee y la parchea; el backend es el dueño del dato.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Roles de cuenta soportados por el marketplace."""

    USER = "user"
    BROKER = "broker"
    ADMIN = "admin"


class User(BaseModel):
    """
    Usuario autenticado con su rol.

    Los brokers además traen el flag de aprobación otorgado por un admin.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Identificadores
    id: str = Field(..., alias="_id", description="ID del usuario en el backend")
    email: str = Field(..., description="Email de login")
    full_name: Optional[str] = Field(None, alias="fullName")
    phone: Optional[str] = Field(None)
    bio: Optional[str] = Field(None)

    # Rol y estado
    role: UserRole = Field(UserRole.USER, alias="type", description="user, broker o admin")
    is_approved: bool = Field(
        default=False,
        alias="isApproved",
        description="Solo relevante para brokers",
    )

    # Datos de broker
    license_number: Optional[str] = Field(None, alias="licenseNumber")

    @property
    def is_broker(self) -> bool:
        return self.role == UserRole.BROKER

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def merge(self, **fields) -> "User":
        """Devuelve una copia con los campos actualizados (por nombre o alias)."""
        data = self.model_dump()
        for key, value in fields.items():
            field_name = _ALIASES.get(key, key)
            if field_name not in data:
                continue
            data[field_name] = value
        return User.model_validate(data)


# alias del backend -> nombre del campo
_ALIASES = {
    field.alias: name
    for name, field in User.model_fields.items()
    if field.alias
}
