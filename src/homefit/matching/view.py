"""
Vista del listado de matches.

Mantiene página, orden y filtros; cada cambio vuelve a pedir la página
correspondiente al backend. Cada fetch lleva un número de generación y
las respuestas de generaciones viejas se descartan, así un request lento
de la página anterior no pisa el resultado de la actual.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from homefit.api import REQUEST_ERRORS, MatchRepository, SavedListingRepository
from homefit.config import AUTH_TOKEN_KEY, get_settings
from homefit.matching.explanation import parse_explanation
from homefit.matching.filters import FilterPanel
from homefit.matching.gallery import ImageGallery
from homefit.models import (
    Apartment,
    ExplanationHint,
    Match,
    MatchFilters,
    SortField,
    SortOrder,
)
from homefit.session.store import IdentityStore, StoreEvent, TokenStorage

logger = structlog.get_logger()

FETCH_ERROR_MESSAGE = "Failed to fetch apartment matches. Please try again later."
NO_PREFERENCES_MESSAGE = "No preferences found. Complete the questionnaire to see your matches."
SAVE_ERROR_MESSAGE = "Failed to update saved listings. Please try again."

# Origen con el que la vista escucha el storage de token
TOKEN_ORIGIN = "match-view"


def display_score(score: Optional[float]) -> int:
    """Score redondeado y acotado a 0-100."""
    try:
        value = round(float(score or 0))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, value))


def score_band(score: Optional[float]) -> str:
    """Banda de color del score: high (>= 80), medium (>= 50) o low."""
    value = display_score(score)
    if value >= 80:
        return "high"
    if value >= 50:
        return "medium"
    return "low"


@dataclass
class RefreshResult:
    accepted: bool
    message: str


class MatchCard:
    """
    Card de un match.

    El estado de guardado no vive en la card: se lee del mapa de la vista
    padre, así card y listado nunca discrepan.
    """

    def __init__(self, match: Match, view: "MatchListView"):
        self.match = match
        self.gallery = ImageGallery(match.apartment.image_urls)
        self._view = view

    @property
    def apartment(self) -> Apartment:
        return self.match.apartment

    @property
    def apartment_id(self) -> str:
        return self.match.apartment.id

    @property
    def score(self) -> int:
        return display_score(self.match.match_score)

    @property
    def band(self) -> str:
        return score_band(self.match.match_score)

    @property
    def is_saved(self) -> bool:
        return self._view.is_saved(self.apartment_id)

    @property
    def hints(self) -> list[ExplanationHint]:
        return parse_explanation(
            self.match.explanation, self.match.match_score, self.match.apartment
        )

    async def toggle_save(self) -> bool:
        return await self._view.toggle_save(self.apartment_id)


class MatchListView:
    """Estado del listado paginado, ordenable y filtrable de matches."""

    def __init__(
        self,
        matches: MatchRepository,
        saved_listings: SavedListingRepository,
        page_size: Optional[int] = None,
        refresh_cooldown: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.matches = matches
        self.saved_listings = saved_listings
        self.page_size = page_size or settings.matches_page_size
        self.refresh_cooldown = (
            settings.refresh_cooldown_seconds if refresh_cooldown is None else refresh_cooldown
        )
        self._clock = clock

        # Query
        self.pref_id: Optional[str] = None
        self.page = 1
        self.sort_by = SortField.MATCH_SCORE
        self.sort_order = SortOrder.DESC
        self.filters = MatchFilters.defaults()

        # Resultado
        self.cards: list[MatchCard] = []
        self.total_count = 0
        self.filtered_count = 0
        self.loading = False
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.saved: dict[str, bool] = {}

        self._generation = 0
        # Cambia con cada reset: invalida toggles en vuelo de la sesión anterior
        self._epoch = 0
        self._last_success: Optional[float] = None

        # Refresco forzado, una vez por sesión de login
        self._login_refresh_pending = False
        self._login_refresh_done = False
        self._unsubscribers: list[Callable[[], None]] = []

    # -- Suscripción a la sesión -------------------------------------------

    def bind_session(self, store: IdentityStore, tokens: TokenStorage) -> None:
        """Escucha login/logout del store y cambios del token en el storage."""
        self._unsubscribers.append(store.subscribe(self._on_store_event))
        self._unsubscribers.append(tokens.subscribe(TOKEN_ORIGIN, self._on_token_change))

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    @property
    def login_refresh_pending(self) -> bool:
        return self._login_refresh_pending

    def _request_login_refresh(self) -> None:
        if not self._login_refresh_done:
            self._login_refresh_pending = True

    def _on_store_event(self, event: StoreEvent, store: IdentityStore) -> None:
        if event == StoreEvent.LOGIN:
            self._request_login_refresh()
        elif event == StoreEvent.LOGOUT:
            self._login_refresh_pending = False
            self._login_refresh_done = False
            self._last_success = None

    def _on_token_change(self, key: str, value: Optional[str]) -> None:
        if key == AUTH_TOKEN_KEY and value:
            self._request_login_refresh()

    def reset(self) -> None:
        """Vuelve a una consulta nueva: sin preferencia, resultados ni guardados."""
        self._generation += 1
        self._epoch += 1
        self.pref_id = None
        self.page = 1
        self.sort_by = SortField.MATCH_SCORE
        self.sort_order = SortOrder.DESC
        self.filters = MatchFilters.defaults()
        self.cards = []
        self.total_count = 0
        self.filtered_count = 0
        self.loading = False
        self.error = None
        self.notice = None
        self.saved = {}
        self._last_success = None

    # -- Carga -----------------------------------------------------------

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.filtered_count / self.page_size))

    async def open(self, pref_id: Optional[str] = None) -> bool:
        """
        Abre el listado para una preferencia (por defecto, la última).

        Returns:
            True si la primera página se cargó
        """
        if pref_id is None:
            try:
                preference = await self.matches.get_latest_preference()
            except REQUEST_ERRORS as e:
                logger.warning("No se pudo obtener la última preferencia", error=str(e))
                preference = None
            pref_id = preference.get("_id") if preference else None

        if not pref_id:
            self.error = NO_PREFERENCES_MESSAGE
            return False

        self.pref_id = pref_id
        self.page = 1
        await self.load_saved()
        return await self.fetch()

    async def fetch(self, force: bool = False) -> bool:
        """
        Pide la página actual.

        Un refresco de login pendiente se consume acá como fetch forzado.

        Returns:
            True si la respuesta se aplicó
        """
        if not self.pref_id:
            return False

        if self._login_refresh_pending:
            self._login_refresh_pending = False
            self._login_refresh_done = True
            force = True

        self._generation += 1
        generation = self._generation
        self.loading = True
        self.error = None

        try:
            result = await self.matches.get_matches(
                self.pref_id,
                page=self.page,
                limit=self.page_size,
                sort_by=self.sort_by,
                sort_order=self.sort_order,
                filters=self.filters,
                force_refresh=force,
            )
        except REQUEST_ERRORS as e:
            if generation != self._generation:
                return False
            logger.error(
                "Error obteniendo matches",
                pref_id=self.pref_id,
                page=self.page,
                error=str(e),
            )
            self.cards = []
            self.total_count = 0
            self.filtered_count = 0
            self.error = FETCH_ERROR_MESSAGE
            self.loading = False
            return False

        if generation != self._generation:
            logger.debug(
                "Respuesta de matches descartada",
                generation=generation,
                current=self._generation,
            )
            return False

        self.cards = [MatchCard(match, self) for match in result.results]
        self.total_count = result.total_count
        self.filtered_count = result.filtered_count
        self.loading = False
        self._last_success = self._clock()
        return True

    async def set_page(self, page: int) -> bool:
        page = max(1, page)
        if page == self.page:
            return False
        self.page = page
        return await self.fetch()

    async def next_page(self) -> bool:
        if self.page >= self.total_pages:
            return False
        return await self.set_page(self.page + 1)

    async def previous_page(self) -> bool:
        return await self.set_page(self.page - 1)

    async def set_sort(
        self, sort_by: SortField, sort_order: Optional[SortOrder] = None
    ) -> bool:
        sort_by = SortField(sort_by)
        sort_order = SortOrder(sort_order) if sort_order else self.sort_order
        if sort_by == self.sort_by and sort_order == self.sort_order:
            return False
        self.sort_by = sort_by
        self.sort_order = sort_order
        self.page = 1
        return await self.fetch()

    async def apply_filters(self, filters: MatchFilters) -> bool:
        self.filters = filters.model_copy(deep=True)
        self.page = 1
        return await self.fetch()

    async def reset_filters(self) -> bool:
        self.filters = MatchFilters.defaults()
        self.page = 1
        return await self.fetch()

    def filter_panel(self) -> FilterPanel:
        """Panel inicializado con los filtros activos y conectado a la vista."""
        return FilterPanel(
            initial_filters=self.filters,
            on_apply=self.apply_filters,
            on_reset=self.reset_filters,
        )

    async def refresh(self) -> RefreshResult:
        """
        Refresco manual forzado, limitado por el cooldown.

        Se rechaza sin request si pasaron menos de `refresh_cooldown`
        segundos desde el último fetch exitoso.
        """
        if self._last_success is not None:
            elapsed = self._clock() - self._last_success
            if elapsed < self.refresh_cooldown:
                remaining = max(1, math.ceil(self.refresh_cooldown - elapsed))
                logger.debug("Refresco rechazado por cooldown", remaining=remaining)
                return RefreshResult(
                    accepted=False,
                    message=f"Please wait {remaining} seconds before refreshing again.",
                )

        ok = await self.fetch(force=True)
        if ok:
            return RefreshResult(accepted=True, message="Matches refreshed.")
        return RefreshResult(accepted=True, message=self.error or FETCH_ERROR_MESSAGE)

    async def consume_login_refresh(self) -> bool:
        """Ejecuta el refresco de login si quedó pendiente y hay listado abierto."""
        if not self._login_refresh_pending or not self.pref_id:
            return False
        return await self.fetch()

    # -- Guardados -------------------------------------------------------

    async def load_saved(self) -> dict[str, bool]:
        """Siembra el mapa de guardados; un fallo deja el mapa vacío."""
        try:
            apartments = await self.saved_listings.list_saved()
        except REQUEST_ERRORS as e:
            logger.warning("No se pudieron obtener los guardados", error=str(e))
            apartments = []
        self.saved = {apartment.id: True for apartment in apartments}
        return self.saved

    def is_saved(self, apartment_id: str) -> bool:
        return self.saved.get(apartment_id, False)

    async def toggle_save(self, apartment_id: str) -> bool:
        """
        Alterna el guardado de forma optimista.

        El endpoint alterna (no fija) el estado, así que un fallo deshace
        solo su propia alternancia sobre el valor actual. Con toggles
        solapados el mapa termina igual que el servidor.

        Returns:
            El estado final (revertido si el backend rechazó el cambio)
        """
        epoch = self._epoch
        self.saved[apartment_id] = not self.is_saved(apartment_id)
        self.notice = None
        try:
            await self.saved_listings.toggle(apartment_id)
        except REQUEST_ERRORS as e:
            if epoch != self._epoch:
                return self.is_saved(apartment_id)
            logger.warning(
                "Error guardando apartment, se revierte",
                apartment_id=apartment_id,
                error=str(e),
            )
            self.saved[apartment_id] = not self.is_saved(apartment_id)
            self.notice = SAVE_ERROR_MESSAGE
        return self.is_saved(apartment_id)

    def card(self, apartment_id: str) -> Optional[MatchCard]:
        for card in self.cards:
            if card.apartment_id == apartment_id:
                return card
        return None
