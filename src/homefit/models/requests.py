"""
Payloads de los formularios y modelos de lectura asociados
(tours, consultas, estadísticas de broker).
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from homefit.models.apartment import Apartment, Location


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_api_dict(self) -> dict:
        """Convierte a diccionario con las claves que espera el backend."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _populated_apartment(value):
    # apartmentId puede venir populado (objeto) o como ObjectId plano
    return value if isinstance(value, dict) else None


class ContactBrokerRequest(_CamelModel):
    """Consulta one-shot al broker de un apartment."""

    apartment_id: str = Field(..., alias="apartmentId")
    name: str
    contact_number: str = Field(..., alias="contactNumber")
    email: str
    message: str


class TourRequest(_CamelModel):
    """Pedido de visita con fecha y franja horaria."""

    apartment_id: str = Field(..., alias="apartmentId")
    name: str
    contact_number: str = Field(..., alias="contactNumber")
    tour_date: date = Field(..., alias="tourDate")
    tour_time: str = Field(..., alias="tourTime")
    message: str = ""

    @field_serializer("tour_date")
    def serialize_date(self, value: date) -> str:
        return value.strftime("%Y-%m-%d")


class BrokerRegistrationRequest(_CamelModel):
    """Alta de broker (se envía como multipart junto al documento de licencia)."""

    full_name: str = Field(..., alias="fullName")
    email: str
    password: str
    phone: str
    license_number: str = Field(..., alias="licenseNumber")
    type: str = "broker"


class ListingUpdate(_CamelModel):
    """Campos editables de un listing."""

    title: str
    price: float
    bedrooms: str
    # Solo la dirección; las coordenadas las conserva el backend
    location: Optional[Location] = None
    amenities: list[str] = Field(default_factory=list)


class SignupRequest(_CamelModel):
    """Alta de cuenta de inquilino."""

    full_name: str = Field(..., alias="fullName")
    email: str
    password: str
    type: str = "user"


class ProfileUpdate(_CamelModel):
    """Campos editables del perfil (los vacíos no se envían)."""

    full_name: Optional[str] = Field(None, alias="fullName")
    bio: Optional[str] = None
    password: Optional[str] = None


class LocationPreference(_CamelModel):
    """Zona buscada: centro [lng, lat] y radio en km."""

    address: str
    center: Optional[list[float]] = None
    radius: float = 5


class PreferenceRequest(_CamelModel):
    """Respuestas del cuestionario de preferencias."""

    type: str = "Rent"
    bedrooms: str = "1"
    price_range: str = Field("$1,000-$2,000", alias="priceRange")
    style: str = "Modern"
    move_in_date: date = Field(..., alias="moveInDate")
    parking: str = "Yes"
    transport: str = "Close"
    amenities: list[str] = Field(default_factory=list)
    location_preference: LocationPreference = Field(..., alias="locationPreference")

    @field_serializer("move_in_date")
    def serialize_date(self, value: date) -> str:
        return value.strftime("%Y-%m-%d")


class Tour(_CamelModel):
    """Visita agendada (vista de usuario o de broker)."""

    id: str = Field(..., alias="_id")
    apartment: Optional[Apartment] = Field(None, alias="apartmentId")
    name: Optional[str] = None
    contact_number: Optional[str] = Field(None, alias="contactNumber")
    tour_date: Optional[str] = Field(None, alias="tourDate")
    tour_time: Optional[str] = Field(None, alias="tourTime")
    message: Optional[str] = None
    status: str = "pending"
    broker_response: Optional[str] = Field(None, alias="brokerResponse")

    @field_validator("apartment", mode="before")
    @classmethod
    def apartment_or_none(cls, value):
        return _populated_apartment(value)

    @property
    def date_text(self) -> str:
        # El backend devuelve fechas ISO completas
        return (self.tour_date or "")[:10]


class Inquiry(_CamelModel):
    """Consulta recibida por un broker."""

    id: str = Field(..., alias="_id")
    apartment: Optional[Apartment] = Field(None, alias="apartmentId")
    user_email: Optional[str] = Field(None, alias="userEmail")
    name: Optional[str] = None
    message: str = ""
    status: str = "pending"
    broker_response: Optional[str] = Field(None, alias="brokerResponse")

    @field_validator("apartment", mode="before")
    @classmethod
    def apartment_or_none(cls, value):
        return _populated_apartment(value)


class BrokerStats(_CamelModel):
    """Resumen del dashboard de broker."""

    total_listings: int = Field(0, alias="totalListings")
    active_listings: int = Field(0, alias="activeListings")
    new_inquiries: int = Field(0, alias="newInquiries")
    pending_approvals: int = Field(0, alias="pendingApprovals")
