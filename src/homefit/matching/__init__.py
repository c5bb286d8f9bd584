"""
Listado de matches del lado del cliente.

Paginación, orden, filtros, galerías por card, guardados optimistas y
el parser de explicaciones.
"""

from homefit.matching.explanation import fallback_explanation, parse_explanation
from homefit.matching.filters import FilterPanel
from homefit.matching.gallery import ImageGallery
from homefit.matching.saved import SavedCard, SavedListingsView
from homefit.matching.view import (
    FETCH_ERROR_MESSAGE,
    MatchCard,
    MatchListView,
    RefreshResult,
    display_score,
    score_band,
)

__all__ = [
    "parse_explanation",
    "fallback_explanation",
    "FilterPanel",
    "ImageGallery",
    "SavedCard",
    "SavedListingsView",
    "MatchCard",
    "MatchListView",
    "RefreshResult",
    "FETCH_ERROR_MESSAGE",
    "display_score",
    "score_band",
]
