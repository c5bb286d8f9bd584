"""
Panel de filtros del listado de matches.

Componente controlado: mantiene un borrador de los cinco filtros y solo
los emite al aplicar. No valida valores contra los listings disponibles;
filtrar es responsabilidad del backend.
"""

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from homefit.config import (
    AMENITY_OPTIONS,
    BATHROOM_OPTIONS,
    BEDROOM_OPTIONS,
    NEIGHBORHOOD_OPTIONS,
)
from homefit.models import MatchFilters

logger = structlog.get_logger()

ApplyCallback = Callable[[MatchFilters], Union[None, Awaitable[Any]]]
ResetCallback = Callable[[], Union[None, Awaitable[Any]]]

# Facetas de selección múltiple y sus opciones
FACETS = {
    "bedrooms": BEDROOM_OPTIONS,
    "bathrooms": BATHROOM_OPTIONS,
    "neighborhoods": NEIGHBORHOOD_OPTIONS,
    "amenities": AMENITY_OPTIONS,
}


async def _maybe_await(result) -> None:
    if inspect.isawaitable(result):
        await result


class FilterPanel:
    """Borrador de filtros con toggles por faceta."""

    def __init__(
        self,
        initial_filters: Optional[MatchFilters] = None,
        on_apply: Optional[ApplyCallback] = None,
        on_reset: Optional[ResetCallback] = None,
    ):
        self.filters = (initial_filters or MatchFilters.defaults()).model_copy(deep=True)
        self.on_apply = on_apply
        self.on_reset = on_reset

    def toggle(self, facet: str, value: str) -> list[str]:
        """
        Agrega o quita un valor de una faceta (diferencia simétrica).

        Returns:
            Los valores seleccionados de la faceta tras el toggle
        """
        if facet not in FACETS:
            raise ValueError(f"Faceta desconocida: {facet}")

        selected = list(getattr(self.filters, facet))
        if value in selected:
            selected.remove(value)
        else:
            selected.append(value)
        setattr(self.filters, facet, selected)
        return selected

    def is_selected(self, facet: str, value: str) -> bool:
        return value in getattr(self.filters, facet, [])

    def set_price_range(self, min_price: int, max_price: int) -> None:
        if min_price > max_price:
            min_price, max_price = max_price, min_price
        self.filters.price_range = (int(min_price), int(max_price))

    async def apply(self) -> MatchFilters:
        """Emite una copia de los filtros actuales a on_apply."""
        applied = self.filters.model_copy(deep=True)
        logger.debug("Filtros aplicados", active=applied.active_count)
        if self.on_apply is not None:
            await _maybe_await(self.on_apply(applied))
        return applied

    async def reset(self) -> MatchFilters:
        """Vuelve a los defaults fijos (no a los filtros iniciales)."""
        self.filters = MatchFilters.defaults()
        logger.debug("Filtros reseteados")
        if self.on_reset is not None:
            await _maybe_await(self.on_reset())
        return self.filters.model_copy(deep=True)
