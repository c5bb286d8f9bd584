"""
Modelos de datos del cliente.

Reflejan las formas JSON que devuelve el backend de HomeFit:
- Identidad: User
- Listings y matches: Apartment, Match, MatchPage
- Estado de UI serializable: MatchFilters
- Payloads de formularios: ContactBrokerRequest, TourRequest, ...
"""

from homefit.models.user import User, UserRole
from homefit.models.apartment import Apartment, Location
from homefit.models.match import (
    ExplanationHint,
    HintType,
    Match,
    MatchPage,
    SortField,
    SortOrder,
)
from homefit.models.filters import MatchFilters
from homefit.models.requests import (
    BrokerRegistrationRequest,
    BrokerStats,
    ContactBrokerRequest,
    Inquiry,
    ListingUpdate,
    LocationPreference,
    PreferenceRequest,
    ProfileUpdate,
    SignupRequest,
    Tour,
    TourRequest,
)

__all__ = [
    # Identidad
    "User",
    "UserRole",
    # Listings
    "Apartment",
    "Location",
    "Match",
    "MatchPage",
    "ExplanationHint",
    "HintType",
    "SortField",
    "SortOrder",
    "MatchFilters",
    # Formularios
    "ContactBrokerRequest",
    "TourRequest",
    "BrokerRegistrationRequest",
    "ListingUpdate",
    "SignupRequest",
    "ProfileUpdate",
    "PreferenceRequest",
    "LocationPreference",
    # Lectura
    "Tour",
    "Inquiry",
    "BrokerStats",
]
