"""
Modelo de Apartment (listing publicado por un broker).

Inmutable desde el punto de vista del cliente, salvo por los
formularios de edición/borrado del broker.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Location(BaseModel):
    """
    Ubicación de un listing.

    El backend la guarda como punto GeoJSON ({type, coordinates, address});
    listings viejos traen solo la dirección como string.
    """

    model_config = ConfigDict(extra="ignore")

    address: Optional[str] = Field(None)
    coordinates: Optional[list[float]] = Field(None, description="[longitud, latitud]")
    type: Optional[str] = Field(None, description="'Point'")

    @property
    def text(self) -> str:
        return self.address or ""


class Apartment(BaseModel):
    """Propiedad en alquiler tal como la devuelve el backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="_id")
    title: Optional[str] = Field(None)
    property_type: Optional[str] = Field(None, alias="type")

    # Precio y características físicas
    price: Optional[float] = Field(None, description="Precio mensual")
    bedrooms: Optional[str] = Field(None, description="'Studio', '1', '2', '3+'...")
    bathrooms: Optional[str] = Field(None)
    sqft: Optional[str] = Field(None)

    # Ubicación
    neighborhood: Optional[str] = Field(None)
    location: Optional[Location] = Field(None)

    # Media y amenities
    image_urls: list[str] = Field(default_factory=list, alias="imageUrls")
    amenities: list[str] = Field(default_factory=list)

    # Estado del listing
    is_active: bool = Field(default=True, alias="isActive")
    broker_email: Optional[str] = Field(None, alias="brokerEmail")
    broker_name: Optional[str] = Field(None, alias="brokerName")
    created_at: Optional[str] = Field(None, alias="createdAt")

    @field_validator("bedrooms", "bathrooms", "sqft", mode="before")
    @classmethod
    def coerce_text(cls, value):
        # El backend guarda estos campos como string pero a veces llegan numéricos
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("image_urls", "amenities", mode="before")
    @classmethod
    def none_to_list(cls, value):
        return value or []

    @field_validator("location", mode="before")
    @classmethod
    def location_from_text(cls, value):
        if isinstance(value, str):
            return {"address": value} if value.strip() else None
        return value

    @property
    def address(self) -> str:
        return self.location.text if self.location else ""

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        parts = [p for p in (self.bedrooms and f"{self.bedrooms} BR", self.neighborhood) if p]
        return " in ".join(parts) if parts else "Apartment"

    @property
    def price_text(self) -> str:
        if self.price is None:
            return "price not available"
        return f"${self.price:,.0f}/month"
