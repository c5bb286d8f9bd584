"""Diálogo de contacto con el broker de un apartment."""

from typing import Optional

from homefit.api import InquiryRepository
from homefit.config import get_settings
from homefit.forms.base import BaseDialog
from homefit.forms.validators import is_not_empty, validate_email
from homefit.models import Apartment, ContactBrokerRequest, User


def default_contact_message(
    apartment: Optional[Apartment], broker_name: Optional[str], sender: str = ""
) -> str:
    """Mensaje prearmado con los datos del apartment."""
    if apartment is None:
        return "I'm interested in this property. Can we connect?"

    price = f"${apartment.price:,.0f}" if apartment.price is not None else "$(price not available)"
    return (
        f"Hi {broker_name or 'there'},\n"
        f"I'm interested in the {apartment.bedrooms} BHK apartment in "
        f"{apartment.neighborhood} that's listed for {price}/month.\n"
        "Could you please provide more information about this property? "
        "I'm particularly interested in availability and viewing options.\n"
        "Thank you,\n"
        f"{sender}"
    )


class ContactBrokerDialog(BaseDialog):
    name = "contact_broker"
    success_message = "Message sent successfully! The broker will contact you shortly."
    invalid_message = "Please correct the errors in the form before submitting."
    failure_message = "Failed to send message. Please try again."

    def __init__(
        self,
        inquiries: InquiryRepository,
        apartment: Apartment,
        user: Optional[User] = None,
        **kwargs,
    ):
        kwargs.setdefault("close_delay", get_settings().contact_close_delay_seconds)
        super().__init__(**kwargs)
        self.inquiries = inquiries
        self.apartment = apartment
        self.user = user

    @property
    def broker_name(self) -> Optional[str]:
        return self.apartment.broker_name

    def initial_values(self, **prefill) -> dict:
        user = self.user
        values = {
            "name": (user.full_name if user else None) or "",
            "contact_number": (user.phone if user else None) or "",
            "email": (user.email if user else None) or "",
        }
        values["message"] = default_contact_message(
            self.apartment,
            self.broker_name,
            (user.full_name if user else None) or values["name"],
        )
        values.update(prefill)
        return values

    def validate(self) -> dict[str, str]:
        errors = {}
        if not is_not_empty(self.values.get("name")):
            errors["name"] = "Name is required"
        if not is_not_empty(self.values.get("contact_number")):
            errors["contact_number"] = "Contact number is required"
        email = self._text("email")
        if not email or not validate_email(email):
            errors["email"] = "Valid email address is required"
        if not is_not_empty(self.values.get("message")):
            errors["message"] = "Message is required"
        return errors

    async def perform(self) -> dict:
        request = ContactBrokerRequest(
            apartment_id=self.apartment.id,
            name=self._text("name"),
            contact_number=self._text("contact_number"),
            email=self._text("email"),
            message=self._text("message"),
        )
        return await self.inquiries.contact_broker(request)
