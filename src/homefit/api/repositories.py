"""
Repositorios sobre la API REST de HomeFit.

Cada repositorio cubre un área del backend (sesión, matches, guardados,
tours, broker, admin) y convierte las respuestas JSON a modelos.
"""

from typing import Optional

import aiohttp
import structlog

from homefit.api.client import HomeFitClient
from homefit.models import (
    Apartment,
    BrokerRegistrationRequest,
    BrokerStats,
    ContactBrokerRequest,
    Inquiry,
    ListingUpdate,
    MatchFilters,
    MatchPage,
    PreferenceRequest,
    ProfileUpdate,
    SignupRequest,
    SortField,
    SortOrder,
    Tour,
    TourRequest,
    User,
)

logger = structlog.get_logger()

# Headers que fuerzan a saltear la caché del backend
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class BaseRepository:
    """Clase base para repositorios."""

    def __init__(self, client: Optional[HomeFitClient] = None):
        self._client = client or HomeFitClient()

    @property
    def client(self) -> HomeFitClient:
        return self._client


def _unwrap(payload, key: str):
    # Algunos endpoints envuelven la respuesta ({"tours": [...]}) y otros no
    if isinstance(payload, dict) and key in payload:
        return payload[key]
    return payload


class SessionRepository(BaseRepository):
    """Sesión por cookie: /user/session, /user/login, /user/logout."""

    async def get_session(self) -> Optional[User]:
        """
        Obtiene el usuario de la sesión activa.

        Returns:
            User o None si el backend no devuelve usuario

        Raises:
            ApiError: 401 si no hay sesión
        """
        payload = await self.client.get("/user/session")
        data = _unwrap(payload, "user")
        return User.model_validate(data) if data else None

    async def login(self, email: str, password: str) -> User:
        """Inicia sesión; la cookie queda en el jar del cliente."""
        payload = await self.client.post(
            "/user/login", json={"email": email, "password": password}
        )
        user = User.model_validate(_unwrap(payload, "user"))
        logger.info("Login exitoso", user_id=user.id, role=user.role.value)
        return user

    async def logout(self) -> None:
        await self.client.post("/user/logout", json={})
        logger.info("Logout en backend")

    async def signup(self, request: SignupRequest) -> dict:
        """
        Crea una cuenta de inquilino. No inicia sesión.

        Raises:
            ApiError: 409 si el email ya existe, 400 si no valida
        """
        payload = await self.client.post("/user/create", json=request.to_api_dict())
        logger.info("Cuenta creada", email=request.email)
        return payload or {}

    async def update_profile(self, update: ProfileUpdate) -> Optional[dict]:
        """Actualiza el perfil; devuelve el usuario del backend si viene en la respuesta."""
        payload = await self.client.put("/user/edit", json=update.to_api_dict())
        user = _unwrap(payload, "user")
        logger.info("Perfil actualizado", fields=sorted(update.to_api_dict()))
        return user if isinstance(user, dict) and "_id" in user else None

    async def get_broker_profile(self) -> dict:
        """Perfil de broker (incluye isApproved) para mergear en el store."""
        payload = await self.client.get("/broker/me")
        return _unwrap(payload, "broker") or {}


class MatchRepository(BaseRepository):
    """Preferencias y resultados de matching."""

    async def get_latest_preference(self) -> Optional[dict]:
        payload = await self.client.get("/user/preferences/latest")
        return _unwrap(payload, "preference") or None

    async def submit_preferences(self, request: PreferenceRequest) -> dict:
        """
        Envía el cuestionario. El backend crea la preferencia o actualiza
        la existente (e invalida su caché de matches).

        Returns:
            La preferencia guardada (con su `_id`)
        """
        payload = await self.client.post("/user/preferences", json=request.to_api_dict())
        preference = _unwrap(payload, "preference") or {}
        logger.info("Preferencias enviadas", pref_id=preference.get("_id"))
        return preference

    async def get_matches(
        self,
        pref_id: str,
        page: int = 1,
        limit: int = 4,
        sort_by: SortField = SortField.MATCH_SCORE,
        sort_order: SortOrder = SortOrder.DESC,
        filters: Optional[MatchFilters] = None,
        force_refresh: bool = False,
    ) -> MatchPage:
        """
        Obtiene una página de matches para una preferencia.

        Args:
            pref_id: ID de la preferencia
            page: Página (1-based)
            limit: Resultados por página
            sort_by: Campo de orden
            sort_order: asc o desc
            filters: Filtros activos (se omiten los valores por defecto)
            force_refresh: Saltear la caché del backend

        Returns:
            MatchPage con resultados y contadores
        """
        params = {
            "page": str(page),
            "limit": str(limit),
            "sortBy": SortField(sort_by).value,
            "sortOrder": SortOrder(sort_order).value,
        }
        if filters is not None:
            params.update(filters.to_query_params())

        headers = None
        if force_refresh:
            params["forceRefresh"] = "true"
            headers = dict(NO_CACHE_HEADERS)

        payload = await self.client.get(
            f"/user/matches/{pref_id}", params=params, headers=headers
        )
        page_data = MatchPage.model_validate(payload or {})

        logger.debug(
            "Matches obtenidos",
            pref_id=pref_id,
            page=page,
            results=len(page_data.results),
            total=page_data.total_count,
            forced=force_refresh,
        )
        return page_data


class SavedListingRepository(BaseRepository):
    """Apartments guardados por el usuario."""

    async def list_saved(self) -> list[Apartment]:
        payload = await self.client.get("/user/saved")
        return [Apartment.model_validate(item) for item in payload or []]

    async def toggle(self, apartment_id: str) -> None:
        """Guarda o quita un apartment (el backend alterna el estado)."""
        await self.client.post("/user/save", json={"apartmentId": apartment_id})


class InquiryRepository(BaseRepository):
    """Consultas de usuario hacia brokers."""

    async def contact_broker(self, request: ContactBrokerRequest) -> dict:
        payload = await self.client.post(
            "/user/contact-broker", json=request.to_api_dict()
        )
        logger.info("Consulta enviada", apartment_id=request.apartment_id)
        return payload or {}


class TourRepository(BaseRepository):
    """Agenda de visitas."""

    async def schedule(self, request: TourRequest) -> dict:
        payload = await self.client.post(
            "/tours/schedule", json=request.to_api_dict()
        )
        logger.info(
            "Visita solicitada",
            apartment_id=request.apartment_id,
            date=request.to_api_dict()["tourDate"],
            slot=request.tour_time,
        )
        return payload or {}

    async def list_user_tours(self) -> list[Tour]:
        payload = await self.client.get("/tours/user")
        return [Tour.model_validate(item) for item in _unwrap(payload, "tours") or []]

    async def cancel(self, tour_id: str) -> None:
        await self.client.put(f"/tours/cancel/{tour_id}", json={})

    async def list_broker_tours(self) -> list[Tour]:
        payload = await self.client.get("/tours/broker")
        return [Tour.model_validate(item) for item in _unwrap(payload, "tours") or []]

    async def update_status(
        self, tour_id: str, status: str, broker_response: Optional[str] = None
    ) -> dict:
        body = {"status": status}
        if broker_response:
            body["brokerResponse"] = broker_response
        payload = await self.client.put(f"/tours/status/{tour_id}", json=body)
        return payload or {}


class BrokerRepository(BaseRepository):
    """Alta de brokers, dashboard, listings y consultas recibidas."""

    async def register(
        self,
        request: BrokerRegistrationRequest,
        license_document: bytes,
        filename: str,
    ) -> dict:
        """
        Registra un broker (multipart con el documento de licencia).

        El broker queda pendiente de aprobación por un admin.
        """
        form = aiohttp.FormData()
        for key, value in request.to_api_dict().items():
            form.add_field(key, str(value))
        form.add_field("licenseDocument", license_document, filename=filename)

        payload = await self.client.post("/broker/register", data=form)
        logger.info("Broker registrado", email=request.email)
        return payload or {}

    async def get_stats(self) -> BrokerStats:
        payload = await self.client.get("/broker/stats")
        return BrokerStats.model_validate(payload or {})

    async def list_listings(self) -> list[Apartment]:
        payload = await self.client.get("/broker/listings")
        return [Apartment.model_validate(item) for item in _unwrap(payload, "listings") or []]

    async def get_listing(self, apartment_id: str) -> Apartment:
        payload = await self.client.get(f"/apartments/{apartment_id}")
        return Apartment.model_validate(_unwrap(payload, "apartment"))

    async def update_listing(self, apartment_id: str, update: ListingUpdate) -> Apartment:
        payload = await self.client.put(
            f"/apartments/{apartment_id}", json=update.to_api_dict()
        )
        logger.info("Listing actualizado", apartment_id=apartment_id)
        return Apartment.model_validate(_unwrap(payload, "apartment"))

    async def toggle_listing_active(self, apartment_id: str) -> Optional[Apartment]:
        payload = await self.client.put(f"/broker/listings/{apartment_id}/toggle-active", json={})
        listing = _unwrap(payload, "listing")
        if isinstance(listing, dict) and "_id" in listing:
            return Apartment.model_validate(listing)
        return None

    async def delete_listing(self, apartment_id: str) -> None:
        await self.client.delete(f"/broker/listings/{apartment_id}")
        logger.info("Listing eliminado", apartment_id=apartment_id)

    async def list_inquiries(self) -> list[Inquiry]:
        payload = await self.client.get("/broker/inquiries")
        return [Inquiry.model_validate(item) for item in _unwrap(payload, "inquiries") or []]

    async def reply_to_inquiry(self, inquiry_id: str, message: str) -> Optional[Inquiry]:
        payload = await self.client.post(
            f"/broker/inquiries/{inquiry_id}/reply", json={"message": message}
        )
        inquiry = _unwrap(payload, "inquiry")
        if isinstance(inquiry, dict) and "_id" in inquiry:
            return Inquiry.model_validate(inquiry)
        return None


class AdminRepository(BaseRepository):
    """Gestión de usuarios y aprobación de brokers."""

    async def list_pending_brokers(self) -> list[User]:
        payload = await self.client.get("/admin/pending-brokers")
        return [User.model_validate(item) for item in payload or []]

    async def list_brokers(self) -> list[User]:
        payload = await self.client.get("/admin/brokers")
        return [User.model_validate(item) for item in payload or []]

    async def list_users(self) -> list[User]:
        payload = await self.client.get("/admin/users")
        return [User.model_validate(item) for item in _unwrap(payload, "users") or []]

    async def approve_broker(self, broker_id: str) -> None:
        await self.client.post(f"/admin/approve-broker/{broker_id}", json={})
        logger.info("Broker aprobado", broker_id=broker_id)

    async def revoke_broker(self, broker_id: str) -> None:
        await self.client.post(f"/admin/revoke-broker/{broker_id}", json={})
        logger.info("Aprobación revocada", broker_id=broker_id)
