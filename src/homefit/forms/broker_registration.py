"""
Registro de broker en tres pasos.

Los pasos son lineales: `next()` avanza solo si el paso actual valida y
el submit solo es alcanzable desde el último paso. Tras el éxito el
diálogo se cierra a los pocos segundos y redirige al login.
"""

import re
from typing import Any, Optional

from homefit.api import BrokerRepository
from homefit.config import get_settings
from homefit.forms.base import BaseDialog, DialogState, Notice
from homefit.forms.validators import is_not_empty
from homefit.models import BrokerRegistrationRequest

STEPS = ["Account Information", "Broker Verification", "Review & Submit"]

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
_EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
MIN_PASSWORD_LENGTH = 8

LOGIN_PATH = "/login"


class BrokerRegistrationDialog(BaseDialog):
    name = "broker_registration"
    success_message = (
        "Registration submitted! Your account is pending admin approval. "
        "Redirecting to login..."
    )
    invalid_message = "Please correct the errors before continuing."
    failure_message = "Registration failed. Please try again later."

    def __init__(self, brokers: BrokerRepository, **kwargs):
        kwargs.setdefault("close_delay", get_settings().registration_close_delay_seconds)
        super().__init__(**kwargs)
        self.brokers = brokers
        self.step = 0
        self.redirect_to: Optional[str] = None

    @property
    def steps(self) -> list[str]:
        return list(STEPS)

    @property
    def step_title(self) -> str:
        return STEPS[self.step]

    @property
    def is_last_step(self) -> bool:
        return self.step == len(STEPS) - 1

    def initial_values(self, **prefill) -> dict[str, Any]:
        values = {
            "full_name": prefill.get("full_name") or "",
            "email": prefill.get("email") or "",
            "password": prefill.get("password") or "",
            "confirm_password": prefill.get("password") or "",
            "phone": "",
            "license_number": "",
            "license_document": None,
            "license_filename": "",
        }
        return values

    def open(self, **prefill) -> None:
        """
        Abre el formulario.

        Si el signup ya trae nombre, email y password se salta al paso de
        verificación.
        """
        super().open(**prefill)
        self.redirect_to = None
        has_account = all(prefill.get(key) for key in ("full_name", "email", "password"))
        self.step = 1 if has_account else 0

    def attach_license(self, content: bytes, filename: str) -> None:
        self.set_field("license_document", content)
        self.set_field("license_filename", filename)

    # -- Validación por paso ---------------------------------------------

    def validate_account(self) -> dict[str, str]:
        errors = {}
        full_name = self._text("full_name")
        if not full_name:
            errors["full_name"] = "Full name is required"
        elif not _NAME_PATTERN.match(self.values.get("full_name") or ""):
            errors["full_name"] = "Name should only contain letters"

        email = self._text("email")
        if not email:
            errors["email"] = "Email is required"
        elif not _EMAIL_PATTERN.match(self.values.get("email") or ""):
            errors["email"] = "Invalid email format"

        password = self.values.get("password") or ""
        if not password:
            errors["password"] = "Password is required"
        elif len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = "Password must be at least 8 characters"

        if password != (self.values.get("confirm_password") or ""):
            errors["confirm_password"] = "Passwords do not match"
        return errors

    def validate_verification(self) -> dict[str, str]:
        errors = {}
        if not is_not_empty(self.values.get("phone")):
            errors["phone"] = "Phone number is required"
        if not is_not_empty(self.values.get("license_number")):
            errors["license_number"] = "License number is required"
        if not self.values.get("license_document"):
            errors["license_document"] = "License document is required"
        return errors

    def validate_step(self, step: int) -> dict[str, str]:
        if step == 0:
            return self.validate_account()
        if step == 1:
            return self.validate_verification()
        return {}

    def validate(self) -> dict[str, str]:
        errors = {}
        for step in range(len(STEPS)):
            errors.update(self.validate_step(step))
        return errors

    # -- Navegación ------------------------------------------------------

    def next(self) -> bool:
        """Avanza un paso si el actual es válido."""
        if self.state != DialogState.EDITING:
            raise RuntimeError("broker_registration: navegación con el diálogo cerrado")
        if self.is_last_step:
            return False

        self.errors = self.validate_step(self.step)
        if self.errors:
            self.notice = Notice("warning", self.invalid_message)
            return False

        self.notice = None
        self.step += 1
        return True

    def back(self) -> bool:
        if self.step == 0:
            return False
        self.errors = {}
        self.step -= 1
        return True

    def summary(self) -> dict[str, str]:
        """Datos para el paso de revisión (sin password)."""
        return {
            "Full name": self._text("full_name"),
            "Email": self._text("email"),
            "Phone": self._text("phone"),
            "License number": self._text("license_number"),
            "License document": self.values.get("license_filename") or "-",
        }

    # -- Submit ----------------------------------------------------------

    async def submit(self) -> bool:
        if self.state == DialogState.EDITING and not self.is_last_step:
            raise RuntimeError("broker_registration: submit solo desde el último paso")
        return await super().submit()

    async def perform(self) -> dict:
        request = BrokerRegistrationRequest(
            full_name=self._text("full_name"),
            email=self._text("email"),
            password=self.values["password"],
            phone=self._text("phone"),
            license_number=self._text("license_number"),
        )
        return await self.brokers.register(
            request,
            license_document=self.values["license_document"],
            filename=self.values.get("license_filename") or "license",
        )

    def close(self) -> None:
        if self.state == DialogState.DONE:
            self.redirect_to = LOGIN_PATH
        super().close()
