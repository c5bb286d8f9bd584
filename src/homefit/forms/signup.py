"""
Alta de cuenta de inquilino.

Las reglas replican las del backend para no gastar un request en un
formulario que va a volver con 400. Los brokers se registran aparte
(/register), con licencia.
"""

import re
from typing import Any, Optional

from homefit.api import SessionRepository
from homefit.config import get_settings
from homefit.forms.base import BaseDialog, DialogState
from homefit.forms.broker_registration import LOGIN_PATH
from homefit.forms.validators import validate_email
from homefit.models import SignupRequest

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
# Minúscula, mayúscula, dígito y símbolo; 8 caracteres como mínimo
_PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
)

PASSWORD_RULE_MESSAGE = (
    "Password must be at least 8 characters long and include at least one "
    "uppercase letter, one lowercase letter, one digit, and one special character"
)


class SignupDialog(BaseDialog):
    name = "signup"
    success_message = "Account created successfully! Redirecting to login..."
    invalid_message = "Please correct the errors before continuing."
    failure_message = "Signup failed"

    def __init__(self, sessions: SessionRepository, **kwargs):
        kwargs.setdefault("close_delay", get_settings().signup_close_delay_seconds)
        super().__init__(**kwargs)
        self.sessions = sessions
        self.redirect_to: Optional[str] = None

    def initial_values(self, **prefill) -> dict[str, Any]:
        values = {"full_name": "", "email": "", "password": ""}
        values.update(prefill)
        return values

    def open(self, **prefill) -> None:
        super().open(**prefill)
        self.redirect_to = None

    def validate(self) -> dict[str, str]:
        errors = {}
        if not _NAME_PATTERN.match(self._text("full_name")):
            errors["full_name"] = "Full name must contain only alphabetic characters"
        if not validate_email(self._text("email")):
            errors["email"] = "Valid email address is required"
        if not _PASSWORD_PATTERN.match(self.values.get("password") or ""):
            errors["password"] = PASSWORD_RULE_MESSAGE
        return errors

    async def perform(self) -> dict:
        request = SignupRequest(
            full_name=self._text("full_name"),
            email=self._text("email"),
            password=self.values["password"],
        )
        return await self.sessions.signup(request)

    def close(self) -> None:
        if self.state == DialogState.DONE:
            self.redirect_to = LOGIN_PATH
        super().close()
