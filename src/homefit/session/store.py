"""
Store de identidad y storage de token.

El store es un objeto explícito (uno por sesión de navegación), no un
global de módulo. Cada acción muta el estado completo y recién después
notifica a los suscriptores, así nadie observa un estado a medio aplicar.
"""

from enum import Enum
from typing import Callable, Optional

import structlog

from homefit.models import User, UserRole

logger = structlog.get_logger()


class StoreEvent(str, Enum):
    """Eventos emitidos por el IdentityStore."""

    LOGIN = "login"
    LOGOUT = "logout"
    UPDATE = "update"
    LOADING = "loading"
    RESOLVED = "resolved"


StoreListener = Callable[[StoreEvent, "IdentityStore"], None]


class IdentityStore:
    """Identidad y rol del usuario actual."""

    def __init__(self):
        self.user: Optional[User] = None
        self.is_authenticated = False
        # Arranca en loading hasta que el bootstrap resuelve la sesión
        self.loading = True
        self._listeners: list[StoreListener] = []

    @property
    def role(self) -> Optional[UserRole]:
        return self.user.role if self.user else None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Registra un listener; devuelve la función para desuscribirlo."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def login_success(self, user: User) -> None:
        self.user = user
        self.is_authenticated = True
        self.loading = False
        logger.debug("Store: login", user_id=user.id, role=user.role.value)
        self._emit(StoreEvent.LOGIN)

    def logout(self) -> None:
        self.user = None
        self.is_authenticated = False
        self.loading = False
        logger.debug("Store: logout")
        self._emit(StoreEvent.LOGOUT)

    def update_user(self, **fields) -> None:
        """Mergea campos sobre el usuario actual (no-op sin usuario)."""
        if self.user is None:
            return
        self.user = self.user.merge(**fields)
        self._emit(StoreEvent.UPDATE)

    def mark_loading(self) -> None:
        self.loading = True
        self._emit(StoreEvent.LOADING)

    def mark_resolved(self) -> None:
        self.loading = False
        self._emit(StoreEvent.RESOLVED)

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self)


TokenListener = Callable[[str, Optional[str]], None]


class TokenStorage:
    """
    Storage clave/valor con notificación entre orígenes.

    Emula el evento `storage` del navegador: una escritura notifica solo
    a los listeners registrados por OTROS orígenes (otras pestañas),
    nunca al que escribió.
    """

    def __init__(self):
        self._data: dict[str, str] = {}
        self._listeners: list[tuple[str, TokenListener]] = []

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str, origin: str) -> None:
        self._data[key] = value
        self._notify(key, value, origin)

    def remove(self, key: str, origin: str) -> None:
        if self._data.pop(key, None) is not None:
            self._notify(key, None, origin)

    def subscribe(self, origin: str, listener: TokenListener) -> Callable[[], None]:
        entry = (origin, listener)
        self._listeners.append(entry)

        def unsubscribe():
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _notify(self, key: str, value: Optional[str], origin: str) -> None:
        for listener_origin, listener in list(self._listeners):
            if listener_origin != origin:
                listener(key, value)
