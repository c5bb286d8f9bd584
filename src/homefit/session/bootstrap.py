"""
Bootstrap de sesión y polling de aprobación de brokers.

El bootstrap hace un único "who am I" al arrancar. Los fallos se loguean
y se tratan como "sin sesión": el usuario nunca ve un error de esta capa.
"""

import asyncio
from typing import Optional

import structlog

from homefit.api import REQUEST_ERRORS, SessionRepository
from homefit.config import get_settings
from homefit.models import User
from homefit.session.store import IdentityStore, StoreEvent

logger = structlog.get_logger()


class SessionBootstrap:
    """Resuelve la sesión inicial y completa los datos de broker."""

    def __init__(self, store: IdentityStore, sessions: SessionRepository):
        self.store = store
        self.sessions = sessions

    async def run(self) -> Optional[User]:
        """
        Ejecuta el bootstrap completo.

        Siempre termina con el store resuelto (loading=False), haya o no
        sesión activa.

        Returns:
            El usuario resuelto o None
        """
        self.store.mark_loading()
        try:
            user = await self.sessions.get_session()
        except REQUEST_ERRORS as e:
            logger.info("Sin sesión activa", error=str(e))
            user = None

        if user is not None:
            self.store.login_success(user)
            if user.is_broker:
                await self.refresh_broker_status()

        self.store.mark_resolved()
        return self.store.user

    async def refresh_broker_status(self) -> bool:
        """
        Relee el perfil de broker y lo mergea en el store.

        Returns:
            True si el merge se aplicó
        """
        try:
            profile = await self.sessions.get_broker_profile()
        except REQUEST_ERRORS as e:
            logger.warning("No se pudo obtener el perfil de broker", error=str(e))
            return False

        if profile:
            self.store.update_user(**profile)
        return True


class BrokerApprovalPoller:
    """
    Re-consulta la aprobación del broker cada N segundos.

    Corre solo mientras el usuario es broker y no está aprobado; se
    sincroniza con los eventos del store (logout, cambio de rol o
    aprobación lo detienen).
    """

    def __init__(
        self,
        store: IdentityStore,
        bootstrap: SessionBootstrap,
        interval: Optional[float] = None,
    ):
        self.store = store
        self.bootstrap = bootstrap
        self.interval = interval or get_settings().broker_poll_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe = store.subscribe(self._on_store_event)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def should_poll(self) -> bool:
        user = self.store.user
        return user is not None and user.is_broker and not user.is_approved

    def sync(self) -> None:
        """Arranca o detiene el polling según el estado actual del store."""
        if self.should_poll():
            if not self.is_running:
                self._task = asyncio.create_task(self._run())
                logger.info(
                    "Polling de aprobación iniciado",
                    user_id=self.store.user.id,
                    interval=self.interval,
                )
        else:
            self.stop()

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # Desde el propio task no se cancela: el loop termina solo
        if task is not asyncio.current_task():
            task.cancel()
        logger.info("Polling de aprobación detenido")

    async def close(self) -> None:
        """Detiene el polling y se desuscribe del store."""
        self._unsubscribe()
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _on_store_event(self, event: StoreEvent, store: IdentityStore) -> None:
        if event in (StoreEvent.LOGIN, StoreEvent.LOGOUT, StoreEvent.UPDATE):
            self.sync()

    async def _run(self) -> None:
        current = asyncio.current_task()
        while self._task is current:
            await asyncio.sleep(self.interval)
            if self._task is not current:
                break
            refreshed = await self.bootstrap.refresh_broker_status()
            logger.debug("Poll de aprobación", refreshed=refreshed)
