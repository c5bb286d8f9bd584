"""Acceso a la API REST de HomeFit."""

from homefit.api.client import ApiError, HomeFitClient, REQUEST_ERRORS, error_message
from homefit.api.repositories import (
    AdminRepository,
    BaseRepository,
    BrokerRepository,
    InquiryRepository,
    MatchRepository,
    SavedListingRepository,
    SessionRepository,
    TourRepository,
)

__all__ = [
    "ApiError",
    "HomeFitClient",
    "REQUEST_ERRORS",
    "error_message",
    "BaseRepository",
    "SessionRepository",
    "MatchRepository",
    "SavedListingRepository",
    "InquiryRepository",
    "TourRepository",
    "BrokerRepository",
    "AdminRepository",
]
