"""
Contexto de aplicación por sesión de navegación.

Agrupa el cliente HTTP (con su cookie jar), los repositorios, el store
de identidad y las vistas. El bot crea uno por chat.
"""

import asyncio
import inspect
import time
from typing import Callable, Optional

import structlog

from homefit.api import (
    REQUEST_ERRORS,
    AdminRepository,
    BrokerRepository,
    HomeFitClient,
    InquiryRepository,
    MatchRepository,
    SavedListingRepository,
    SessionRepository,
    TourRepository,
)
from homefit.config import AUTH_TOKEN_KEY
from homefit.forms import (
    BrokerRegistrationDialog,
    ContactBrokerDialog,
    EditListingDialog,
    PreferenceDialog,
    ProfileDialog,
    ScheduleTourDialog,
    SignupDialog,
)
from homefit.matching import MatchListView, SavedListingsView
from homefit.models import Apartment, User
from homefit.routing import RouteDecision, authorize
from homefit.session import (
    BrokerApprovalPoller,
    IdentityStore,
    SessionBootstrap,
    TokenStorage,
)

logger = structlog.get_logger()

# Origen con el que el contexto escribe el token
TOKEN_ORIGIN = "session"


class HomeFitContext:
    """Una sesión de HomeFit: identidad, repositorios y vistas."""

    def __init__(
        self,
        client: Optional[HomeFitClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client or HomeFitClient()

        # Repositorios
        self.sessions = SessionRepository(self.client)
        self.matches = MatchRepository(self.client)
        self.saved_listings = SavedListingRepository(self.client)
        self.inquiries = InquiryRepository(self.client)
        self.tours = TourRepository(self.client)
        self.brokers = BrokerRepository(self.client)
        self.admin = AdminRepository(self.client)

        # Identidad
        self.store = IdentityStore()
        self.tokens = TokenStorage()
        self.bootstrap = SessionBootstrap(self.store, self.sessions)
        self.poller = BrokerApprovalPoller(self.store, self.bootstrap)

        # Vistas
        self.match_view = MatchListView(self.matches, self.saved_listings, clock=clock)
        self.match_view.bind_session(self.store, self.tokens)
        self.saved_view = SavedListingsView(self.saved_listings)

        self._bootstrap_task: Optional[asyncio.Future] = None

    @property
    def user(self) -> Optional[User]:
        return self.store.user

    @property
    def is_loading(self) -> bool:
        return self.store.loading

    @property
    def is_started(self) -> bool:
        return self._bootstrap_task is not None and self._bootstrap_task.done()

    async def start(self) -> Optional[User]:
        """Corre el bootstrap de sesión una sola vez (llamadas concurrentes lo comparten)."""
        if self._bootstrap_task is None:
            self._bootstrap_task = asyncio.ensure_future(self.bootstrap.run())
        return await self._bootstrap_task

    async def login(self, email: str, password: str) -> User:
        """
        Inicia sesión y publica el cambio de login.

        Raises:
            ApiError: Si el backend rechaza las credenciales
        """
        user = await self.sessions.login(email, password)
        self.store.login_success(user)
        self.tokens.set(AUTH_TOKEN_KEY, user.id, origin=TOKEN_ORIGIN)

        if user.is_broker:
            await self.bootstrap.refresh_broker_status()

        await self.match_view.consume_login_refresh()
        return self.store.user

    async def logout(self) -> None:
        """Cierra la sesión; un fallo del backend igual limpia el estado local."""
        try:
            await self.sessions.logout()
        except REQUEST_ERRORS as e:
            logger.warning("Logout en backend fallido", error=str(e))

        self.store.logout()
        self.tokens.remove(AUTH_TOKEN_KEY, origin=TOKEN_ORIGIN)
        self.poller.stop()
        # La próxima cuenta del chat no hereda filtros, orden ni guardados
        self.match_view.reset()
        self.saved_view.clear()

    def authorize(self, path: str) -> RouteDecision:
        return authorize(self.store, path)

    # -- Diálogos --------------------------------------------------------

    def contact_dialog(self, apartment: Apartment, **kwargs) -> ContactBrokerDialog:
        return ContactBrokerDialog(self.inquiries, apartment, user=self.user, **kwargs)

    def tour_dialog(self, apartment: Apartment, **kwargs) -> ScheduleTourDialog:
        return ScheduleTourDialog(self.tours, apartment, user=self.user, **kwargs)

    def edit_listing_dialog(self, **kwargs) -> EditListingDialog:
        return EditListingDialog(self.brokers, **kwargs)

    def registration_dialog(self, **kwargs) -> BrokerRegistrationDialog:
        return BrokerRegistrationDialog(self.brokers, **kwargs)

    def signup_dialog(self, **kwargs) -> SignupDialog:
        return SignupDialog(self.sessions, **kwargs)

    def profile_dialog(self, **kwargs) -> ProfileDialog:
        return ProfileDialog(self.sessions, self.store, **kwargs)

    def preference_dialog(self, **kwargs) -> PreferenceDialog:
        """Al guardarse, el listado de matches se abre sobre la preferencia nueva."""
        on_success = kwargs.pop("on_success", None)

        async def open_matches(preference: dict) -> None:
            await self.match_view.open(preference.get("_id"))
            if on_success is not None:
                outcome = on_success(preference)
                if inspect.isawaitable(outcome):
                    await outcome

        return PreferenceDialog(self.matches, on_success=open_matches, **kwargs)

    async def close(self) -> None:
        """Libera polling, suscripciones y la sesión HTTP."""
        self.match_view.close()
        await self.poller.close()
        if self._bootstrap_task is not None and not self._bootstrap_task.done():
            self._bootstrap_task.cancel()
        await self.client.close()
        logger.debug("Contexto cerrado")
