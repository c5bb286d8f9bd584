"""Identidad del usuario: store, storage de token, bootstrap y polling."""

from homefit.session.bootstrap import BrokerApprovalPoller, SessionBootstrap
from homefit.session.store import IdentityStore, StoreEvent, TokenStorage

__all__ = [
    "IdentityStore",
    "StoreEvent",
    "TokenStorage",
    "SessionBootstrap",
    "BrokerApprovalPoller",
]
