"""
Autorización de rutas.

Un único chequeo parametrizado por reglas, en lugar de un guard por rol.
Los guards leen el store ya resuelto: no manejan el estado de loading.
"""

from dataclasses import dataclass, field
from typing import Optional

from homefit.models import UserRole
from homefit.session.store import IdentityStore

PUBLIC_HOME = "/"

# Home de cada rol (destino de una redirección por rol incorrecto)
ROLE_HOME = {
    UserRole.USER: "/home",
    UserRole.BROKER: "/broker/dashboard",
    UserRole.ADMIN: "/admin/dashboard",
}


@dataclass(frozen=True)
class AccessRule:
    """Requisitos de acceso de un prefijo de ruta."""

    requires_auth: bool = True
    allowed_roles: frozenset = field(default_factory=frozenset)
    # Rutas accesibles aunque el broker no esté aprobado
    exception_paths: tuple[str, ...] = ()
    requires_approval: bool = False
    unapproved_fallback: Optional[str] = None


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    redirect_to: Optional[str] = None
    reason: Optional[str] = None


PUBLIC = AccessRule(requires_auth=False)
USER_ONLY = AccessRule(allowed_roles=frozenset({UserRole.USER}))
ADMIN_ONLY = AccessRule(allowed_roles=frozenset({UserRole.ADMIN}))
APPROVED_BROKER = AccessRule(
    allowed_roles=frozenset({UserRole.BROKER}),
    exception_paths=("/broker/dashboard", "/broker/profile"),
    requires_approval=True,
    unapproved_fallback="/broker/dashboard",
)

ROUTE_RULES: dict[str, AccessRule] = {
    "/": PUBLIC,
    "/login": PUBLIC,
    "/signup": PUBLIC,
    "/broker/register": PUBLIC,
    "/home": USER_ONLY,
    "/matches": USER_ONLY,
    "/saved": USER_ONLY,
    "/tours": USER_ONLY,
    "/profile": USER_ONLY,
    "/preferences": USER_ONLY,
    "/broker": APPROVED_BROKER,
    "/admin": ADMIN_ONLY,
}


def normalize_path(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or "/"


def _matches_prefix(path: str, prefix: str) -> bool:
    if prefix == "/":
        return path == "/"
    return path == prefix or path.startswith(prefix + "/")


def rule_for(path: str) -> AccessRule:
    """Regla del prefijo más largo que aplica; rutas desconocidas son públicas."""
    path = normalize_path(path)
    candidates = [prefix for prefix in ROUTE_RULES if _matches_prefix(path, prefix)]
    if not candidates:
        return PUBLIC
    return ROUTE_RULES[max(candidates, key=len)]


def role_home(role: Optional[UserRole]) -> str:
    return ROLE_HOME.get(role, PUBLIC_HOME)


def authorize(store: IdentityStore, path: str) -> RouteDecision:
    """
    Decide si el usuario del store puede entrar a `path`.

    Returns:
        RouteDecision con allowed=True, o con el destino de la redirección
    """
    path = normalize_path(path)
    rule = rule_for(path)

    if not rule.requires_auth:
        return RouteDecision(allowed=True)

    user = store.user
    if not store.is_authenticated or user is None:
        return RouteDecision(False, PUBLIC_HOME, "not_authenticated")

    if rule.allowed_roles and user.role not in rule.allowed_roles:
        return RouteDecision(False, role_home(user.role), "wrong_role")

    if rule.requires_approval and not user.is_approved:
        if not any(_matches_prefix(path, allowed) for allowed in rule.exception_paths):
            return RouteDecision(False, rule.unapproved_fallback, "not_approved")

    return RouteDecision(allowed=True)
