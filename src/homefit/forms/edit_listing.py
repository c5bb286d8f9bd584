"""Diálogo de edición de un listing del broker."""

from typing import Optional

import structlog

from homefit.api import REQUEST_ERRORS, BrokerRepository
from homefit.config import BEDROOM_OPTIONS
from homefit.forms.base import BaseDialog, Notice
from homefit.forms.validators import is_not_empty
from homefit.models import Apartment, ListingUpdate, Location

logger = structlog.get_logger()

LOAD_ERROR_MESSAGE = "Failed to load listing details. Please try again."


def split_amenities(text: str) -> list[str]:
    """'Gym, Pool ,' -> ['Gym', 'Pool']"""
    return [item.strip() for item in (text or "").split(",") if item.strip()]


class EditListingDialog(BaseDialog):
    name = "edit_listing"
    close_delay = 0.0
    success_message = "Listing updated successfully."
    invalid_message = "Please correct the errors in the form before submitting."
    failure_message = "Failed to update listing. Please try again."

    def __init__(self, brokers: BrokerRepository, **kwargs):
        super().__init__(**kwargs)
        self.brokers = brokers
        self.apartment_id: Optional[str] = None
        self.loading = False

    async def load(self, apartment_id: str) -> bool:
        """
        Abre el diálogo con los datos actuales del listing.

        Si la carga falla el diálogo queda cerrado con un aviso de error:
        un formulario vacío pisaría el listing al enviarse.

        Returns:
            True si el diálogo quedó abierto
        """
        self.apartment_id = apartment_id
        self.loading = True
        try:
            apartment = await self.brokers.get_listing(apartment_id)
        except REQUEST_ERRORS as e:
            logger.warning("Error cargando listing", apartment_id=apartment_id, error=str(e))
            self.notice = Notice("error", LOAD_ERROR_MESSAGE)
            return False
        finally:
            self.loading = False

        self.open(**self._values_from(apartment))
        return True

    @staticmethod
    def _values_from(apartment: Apartment) -> dict:
        return {
            "title": apartment.title or "",
            "price": "" if apartment.price is None else f"{apartment.price:g}",
            "bedrooms": apartment.bedrooms or "",
            "location": apartment.address,
            "amenities": ", ".join(apartment.amenities),
        }

    def initial_values(self, **prefill) -> dict:
        values = {"title": "", "price": "", "bedrooms": "", "location": "", "amenities": ""}
        values.update(prefill)
        return values

    def validate(self) -> dict[str, str]:
        errors = {}
        if not self.apartment_id:
            errors["apartment"] = "No listing selected"
        if not is_not_empty(self.values.get("title")):
            errors["title"] = "Title is required"

        try:
            if float(self._text("price")) <= 0:
                errors["price"] = "Price must be greater than zero"
        except ValueError:
            errors["price"] = "Price must be a number"

        bedrooms = self._text("bedrooms")
        if not (bedrooms.isdigit() or bedrooms in BEDROOM_OPTIONS):
            errors["bedrooms"] = "Bedrooms must be a number or Studio"
        return errors

    async def perform(self) -> Apartment:
        address = self._text("location")
        update = ListingUpdate(
            title=self._text("title"),
            price=float(self._text("price")),
            bedrooms=self._text("bedrooms"),
            location=Location(address=address) if address else None,
            amenities=split_amenities(self._text("amenities")),
        )
        return await self.brokers.update_listing(self.apartment_id, update)
