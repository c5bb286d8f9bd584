"""Autorización de rutas por rol."""

from homefit.routing.guards import (
    AccessRule,
    ROLE_HOME,
    ROUTE_RULES,
    RouteDecision,
    authorize,
    normalize_path,
    role_home,
    rule_for,
)

__all__ = [
    "AccessRule",
    "RouteDecision",
    "ROUTE_RULES",
    "ROLE_HOME",
    "authorize",
    "normalize_path",
    "role_home",
    "rule_for",
]
