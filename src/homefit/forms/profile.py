"""Edición del perfil del usuario logueado."""

import re
from typing import Any

from homefit.api import SessionRepository
from homefit.forms.base import BaseDialog
from homefit.models import ProfileUpdate, User
from homefit.session import IdentityStore

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")


class ProfileDialog(BaseDialog):
    name = "profile"
    success_message = "Profile updated successfully"
    failure_message = "Failed to update profile"

    def __init__(self, sessions: SessionRepository, store: IdentityStore, **kwargs):
        super().__init__(**kwargs)
        self.sessions = sessions
        self.store = store

    def initial_values(self, **prefill) -> dict[str, Any]:
        user = self.store.user
        values = {
            "full_name": (user.full_name if user else None) or "",
            "bio": (user.bio if user else None) or "",
        }
        values.update(prefill)
        return values

    def validate(self) -> dict[str, str]:
        errors = {}
        full_name = self._text("full_name")
        if not full_name:
            errors["full_name"] = "Full name is required"
        elif not _NAME_PATTERN.match(full_name):
            errors["full_name"] = "Full name must contain only alphabetic characters"
        return errors

    async def perform(self) -> User:
        update = ProfileUpdate(full_name=self._text("full_name"), bio=self._text("bio"))
        user_data = await self.sessions.update_profile(update)
        # Sin usuario en la respuesta se mergean los campos enviados
        self.store.update_user(**(user_data or update.to_api_dict()))
        return self.store.user
