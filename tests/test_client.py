"""
Tests del cliente HTTP y los repositorios contra el backend falso
"""

from datetime import date

import pytest

from homefit.api import (
    ApiError,
    BrokerRepository,
    HomeFitClient,
    MatchRepository,
    SavedListingRepository,
    SessionRepository,
    error_message,
)
from homefit.models import (
    BrokerRegistrationRequest,
    LocationPreference,
    MatchFilters,
    PreferenceRequest,
    ProfileUpdate,
    SignupRequest,
    SortField,
    SortOrder,
    UserRole,
)


class TestHomeFitClient:
    async def test_session_cookie_is_sent_after_login(self, client, backend):
        sessions = SessionRepository(client)

        user = await sessions.login("renter@example.com", "secret123")
        current = await sessions.get_session()

        assert user.role == UserRole.USER
        assert current.id == "u1"
        assert "token" in backend.last("/api/user/session")["headers"].get("Cookie", "")

    async def test_error_response_raises_api_error_with_backend_message(self, client):
        sessions = SessionRepository(client)

        with pytest.raises(ApiError) as exc_info:
            await sessions.login("renter@example.com", "wrong")

        assert exc_info.value.status == 401
        assert exc_info.value.message == "Invalid credentials"

    async def test_session_without_cookie_is_unauthorized(self, client):
        with pytest.raises(ApiError) as exc_info:
            await SessionRepository(client).get_session()
        assert exc_info.value.status == 401

    async def test_logout_clears_session(self, client):
        sessions = SessionRepository(client)
        await sessions.login("renter@example.com", "secret123")
        await sessions.logout()

        with pytest.raises(ApiError):
            await sessions.get_session()

    async def test_empty_body_returns_none(self, client):
        assert await client.delete("/broker/listings/apt1") is None

    async def test_unknown_route_raises(self, client):
        with pytest.raises(ApiError) as exc_info:
            await client.get("/does-not-exist")
        assert exc_info.value.status == 404

    async def test_closed_client_cannot_be_reused(self, server):
        api = HomeFitClient(base_url=str(server.make_url("")))
        await api.get("/user/preferences/latest")
        await api.close()

        with pytest.raises(RuntimeError):
            await api.get("/user/preferences/latest")

    def test_base_url_appends_api(self):
        api = HomeFitClient(base_url="http://backend.local:4000/")
        assert api.base_url == "http://backend.local:4000/api"


class TestMatchRepository:
    async def test_query_params(self, client, backend):
        repo = MatchRepository(client)
        filters = MatchFilters(price_range=(1500, 2500), neighborhoods=["Downtown", "Midtown"])

        page = await repo.get_matches(
            "pref-1",
            page=2,
            limit=4,
            sort_by=SortField.PRICE,
            sort_order=SortOrder.ASC,
            filters=filters,
        )

        request = backend.last("/api/user/matches/pref-1")
        assert request["query"] == {
            "page": "2",
            "limit": "4",
            "sortBy": "price",
            "sortOrder": "asc",
            "minPrice": "1500",
            "maxPrice": "2500",
            "neighborhoods": "Downtown,Midtown",
        }
        assert "Cache-Control" not in request["headers"]
        assert [m.apartment.id for m in page.results] == ["apt5", "apt6"]
        assert page.total_count == 6

    async def test_force_refresh_bypasses_cache(self, client, backend):
        await MatchRepository(client).get_matches("pref-1", force_refresh=True)

        request = backend.last("/api/user/matches/pref-1")
        assert request["query"]["forceRefresh"] == "true"
        assert request["headers"]["Cache-Control"] == "no-cache"
        assert request["headers"]["Pragma"] == "no-cache"

    async def test_latest_preference(self, client):
        preference = await MatchRepository(client).get_latest_preference()
        assert preference == {"_id": "pref-1"}

    async def test_geojson_locations_parse(self, client, backend):
        backend.matches[0]["apartment"]["location"] = {
            "type": "Point", "coordinates": [-71.1, 42.3], "address": "1 Main St",
        }

        page = await MatchRepository(client).get_matches("pref-1")

        assert page.results[0].apartment.address == "1 Main St"
        assert page.results[0].apartment.location.coordinates == [-71.1, 42.3]
        assert page.results[1].apartment.address == "123 Main St"

    async def test_submit_preferences(self, client, backend):
        request = PreferenceRequest(
            bedrooms="2",
            move_in_date=date(2026, 6, 1),
            amenities=["Gym"],
            location_preference=LocationPreference(address="Back Bay", radius=3),
        )

        preference = await MatchRepository(client).submit_preferences(request)

        assert preference["_id"] == "pref-2"
        body = backend.submitted_preferences[0]
        assert body["moveInDate"] == "2026-06-01"
        assert body["locationPreference"] == {"address": "Back Bay", "radius": 3}


class TestSessionRepository:
    async def test_signup_creates_renter(self, client, backend):
        request = SignupRequest(full_name="Nina New", email="nina@example.com", password="Secret1!")

        await SessionRepository(client).signup(request)

        password, user = backend.accounts["nina@example.com"]
        assert password == "Secret1!"
        assert user["type"] == "user"

    async def test_signup_existing_email(self, client):
        request = SignupRequest(full_name="Rita Renter", email="renter@example.com", password="Secret1!")

        with pytest.raises(ApiError) as exc_info:
            await SessionRepository(client).signup(request)

        assert exc_info.value.status == 409
        assert exc_info.value.message == "User already exists"

    async def test_update_profile_returns_backend_user(self, client):
        sessions = SessionRepository(client)
        await sessions.login("renter@example.com", "secret123")

        user = await sessions.update_profile(ProfileUpdate(full_name="Rita Roe", bio="Hi"))

        assert user["fullName"] == "Rita Roe"
        assert user["bio"] == "Hi"
        session_user = await sessions.get_session()
        assert session_user.bio == "Hi"


class TestSavedListingRepository:
    async def test_toggle_roundtrip(self, client, backend):
        repo = SavedListingRepository(client)

        await repo.toggle("apt1")
        saved = await repo.list_saved()

        assert {apartment.id for apartment in saved} == {"apt1", "apt2"}


class TestBrokerRepository:
    async def test_register_sends_multipart(self, client, backend):
        request = BrokerRegistrationRequest(
            full_name="Bea Broker",
            email="bea@example.com",
            password="supersecret",
            phone="5551234567",
            license_number="LIC-42",
        )

        await BrokerRepository(client).register(request, b"%PDF-1.4", "license.pdf")

        fields = backend.registrations[0]
        assert fields["fullName"] == "Bea Broker"
        assert fields["licenseNumber"] == "LIC-42"
        assert fields["type"] == "broker"
        assert fields["licenseDocument"] == ("license.pdf", b"%PDF-1.4")


class TestErrorMessage:
    def test_uses_backend_message(self):
        assert error_message(ApiError(400, "Broker not found"), "Default") == "Broker not found"

    def test_falls_back_to_default(self):
        assert error_message(ApiError(500, ""), "Default") == "Default"
        assert error_message(TimeoutError(), "Default") == "Default"
