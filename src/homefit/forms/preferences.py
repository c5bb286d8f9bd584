"""
Cuestionario de preferencias.

Se abre precargado con la última preferencia guardada (o con los
valores por defecto si no hay ninguna). El backend crea la preferencia
o actualiza la existente; el `_id` resultante es el que abre el listado
de matches.
"""

from typing import Any, Optional

import structlog

from homefit.api import REQUEST_ERRORS, MatchRepository
from homefit.config import (
    PARKING_OPTIONS,
    PREFERENCE_BEDROOM_OPTIONS,
    PRICE_RANGE_OPTIONS,
    PROPERTY_TYPE_OPTIONS,
    STYLE_OPTIONS,
    TRANSPORT_OPTIONS,
)
from homefit.forms.base import BaseDialog
from homefit.forms.edit_listing import split_amenities
from homefit.forms.validators import parse_date
from homefit.models import LocationPreference, PreferenceRequest

logger = structlog.get_logger()

DEFAULT_RADIUS_KM = 5

CHOICES = {
    "type": PROPERTY_TYPE_OPTIONS,
    "bedrooms": PREFERENCE_BEDROOM_OPTIONS,
    "price_range": PRICE_RANGE_OPTIONS,
    "style": STYLE_OPTIONS,
    "parking": PARKING_OPTIONS,
    "transport": TRANSPORT_OPTIONS,
}

# clave del backend -> campo del formulario
_BACKEND_KEYS = {
    "type": "type",
    "bedrooms": "bedrooms",
    "priceRange": "price_range",
    "style": "style",
    "parking": "parking",
    "transport": "transport",
}


def _center_or_none(center) -> Optional[list[float]]:
    # [0, 0] es el placeholder del backend cuando no se eligió punto
    if not isinstance(center, list) or len(center) != 2 or not any(center):
        return None
    return center


class PreferenceDialog(BaseDialog):
    name = "preferences"
    success_message = "Preferences saved! Finding your matches..."
    invalid_message = "Please fill out all required fields."
    failure_message = "Failed to submit preferences. Please try again."

    def __init__(self, matches: MatchRepository, **kwargs):
        super().__init__(**kwargs)
        self.matches = matches
        # Dirección y centro de la preferencia cargada
        self._loaded_address = ""
        self._loaded_center: Optional[list[float]] = None

    async def load(self) -> None:
        """Abre el cuestionario; sin preferencia previa usa los valores por defecto."""
        try:
            preference = await self.matches.get_latest_preference()
        except REQUEST_ERRORS as e:
            logger.warning("No se pudo obtener la última preferencia", error=str(e))
            preference = None
        self.open(**self._values_from(preference or {}))

    def _values_from(self, preference: dict) -> dict:
        values = {}
        for key, field_name in _BACKEND_KEYS.items():
            if preference.get(key):
                values[field_name] = str(preference[key])

        move_in = parse_date(preference.get("moveInDate"))
        if move_in is not None:
            values["move_in_date"] = move_in.isoformat()

        amenities = preference.get("amenities")
        if isinstance(amenities, list):
            values["amenities"] = ", ".join(amenities)

        location = preference.get("locationPreference") or {}
        self._loaded_address = (location.get("address") or "").strip()
        self._loaded_center = _center_or_none(location.get("center"))
        if self._loaded_address:
            values["location"] = self._loaded_address
        if location.get("radius"):
            values["radius"] = location["radius"]
        return values

    def initial_values(self, **prefill) -> dict[str, Any]:
        values = {
            "type": "Rent",
            "bedrooms": "1",
            "price_range": "$1,000-$2,000",
            "style": "Modern",
            "move_in_date": "",
            "location": "",
            "radius": DEFAULT_RADIUS_KM,
            "parking": "Yes",
            "transport": "Close",
            "amenities": "",
        }
        values.update(prefill)
        return values

    def validate(self) -> dict[str, str]:
        errors = {}
        for field_name, options in CHOICES.items():
            if self.values.get(field_name) not in options:
                errors[field_name] = "Please choose one of the options"
        if parse_date(self.values.get("move_in_date")) is None:
            errors["move_in_date"] = "Please select a move-in date"
        if not self._text("location"):
            errors["location"] = "Please enter a location"
        return errors

    @property
    def preference_id(self) -> Optional[str]:
        return (self.result or {}).get("_id")

    async def perform(self) -> dict:
        address = self._text("location")
        # Si la dirección cambió, el centro viejo ya no corresponde
        center = self._loaded_center if address == self._loaded_address else None
        request = PreferenceRequest(
            type=self.values["type"],
            bedrooms=self.values["bedrooms"],
            price_range=self.values["price_range"],
            style=self.values["style"],
            move_in_date=parse_date(self.values["move_in_date"]),
            parking=self.values["parking"],
            transport=self.values["transport"],
            amenities=split_amenities(self._text("amenities")),
            location_preference=LocationPreference(
                address=address,
                center=center,
                radius=self.values.get("radius") or DEFAULT_RADIUS_KM,
            ),
        )
        return await self.matches.submit_preferences(request)
