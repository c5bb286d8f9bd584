"""Diálogo para agendar una visita."""

from datetime import date, timedelta
from typing import Callable, Optional

from homefit.api import TourRepository
from homefit.config import TOUR_TIME_SLOTS, get_settings
from homefit.forms.base import BaseDialog
from homefit.forms.validators import is_future_date, is_not_empty, parse_date
from homefit.models import Apartment, TourRequest, User


class ScheduleTourDialog(BaseDialog):
    name = "schedule_tour"
    success_message = (
        "Tour request submitted successfully. The broker will contact you to confirm."
    )
    invalid_message = "Please fill out all required fields."
    failure_message = "Failed to schedule tour. Please try again."

    def __init__(
        self,
        tours: TourRepository,
        apartment: Apartment,
        user: Optional[User] = None,
        today: Callable[[], date] = date.today,
        **kwargs,
    ):
        kwargs.setdefault("close_delay", get_settings().tour_close_delay_seconds)
        super().__init__(**kwargs)
        self.tours = tours
        self.apartment = apartment
        self.user = user
        self._today = today

    @property
    def time_slots(self) -> list[str]:
        return list(TOUR_TIME_SLOTS)

    def default_date(self) -> date:
        return self._today() + timedelta(days=1)

    def initial_values(self, **prefill) -> dict:
        user = self.user
        values = {
            "name": (user.full_name if user else None) or "",
            "contact_number": (user.phone if user else None) or "",
            "date": self.default_date(),
            "time_slot": "",
            "message": (
                f"I'd like to schedule a tour for this "
                f"{self.apartment.title or 'property'}."
            ),
        }
        values.update(prefill)
        return values

    def validate(self) -> dict[str, str]:
        errors = {}
        if not is_not_empty(self.values.get("name")):
            errors["name"] = "Name is required"
        if not is_not_empty(self.values.get("contact_number")):
            errors["contact_number"] = "Contact number is required"

        tour_date = self.values.get("date")
        if parse_date(tour_date) is None:
            errors["date"] = "Date is required"
        elif not is_future_date(tour_date, today=self._today()):
            errors["date"] = "Date cannot be in the past"

        if self.values.get("time_slot") not in TOUR_TIME_SLOTS:
            errors["time_slot"] = "Time slot is required"
        return errors

    async def perform(self) -> dict:
        request = TourRequest(
            apartment_id=self.apartment.id,
            name=self._text("name"),
            contact_number=self._text("contact_number"),
            tour_date=parse_date(self.values["date"]),
            tour_time=self.values["time_slot"],
            message=self._text("message") or "I'd like to schedule a tour for this property.",
        )
        return await self.tours.schedule(request)

    def after_success(self) -> None:
        self.values["date"] = self.default_date()
        self.values["time_slot"] = ""
        self.values["message"] = ""
