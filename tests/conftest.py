"""
Fixtures compartidas: un backend HomeFit falso sobre aiohttp.web y
fábricas de datos.
"""

import uuid
from typing import Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from homefit.api import HomeFitClient
from homefit.models import Apartment, Match, MatchPage, User


def apartment_data(apartment_id: str = "apt1", **overrides) -> dict:
    data = {
        "_id": apartment_id,
        "title": "Sunny loft",
        "price": 2000,
        "bedrooms": "2",
        "bathrooms": "1",
        "neighborhood": "Downtown",
        "location": "123 Main St",
        "imageUrls": ["https://img.example/1.jpg", "https://img.example/2.jpg"],
        "amenities": ["Gym", "Pool"],
        "isActive": True,
        "brokerName": "Dana",
        "brokerEmail": "dana@brokers.example",
    }
    data.update(overrides)
    return data


def make_apartment(apartment_id: str = "apt1", **overrides) -> Apartment:
    return Apartment.model_validate(apartment_data(apartment_id, **overrides))


def make_user(role: str = "user", approved: bool = False, **overrides) -> User:
    data = {
        "_id": f"{role}-1",
        "email": f"{role}@example.com",
        "fullName": f"Test {role.title()}",
        "phone": "5551234567",
        "type": role,
        "isApproved": approved,
    }
    data.update(overrides)
    return User.model_validate(data)


def make_page(ids: list[str], total: Optional[int] = None, score: float = 90) -> MatchPage:
    return MatchPage(
        results=[
            Match(apartment=make_apartment(apartment_id), match_score=score, explanation=None)
            for apartment_id in ids
        ],
        total_count=total if total is not None else len(ids),
        filtered_count=total if total is not None else len(ids),
    )


class FakeBackend:
    """Backend en memoria con sesión por cookie y registro de requests."""

    def __init__(self):
        self.accounts = {
            "renter@example.com": ("secret123", {
                "_id": "u1", "email": "renter@example.com", "fullName": "Rita Renter",
                "type": "user", "phone": "5550001111",
            }),
            "broker@example.com": ("secret123", {
                "_id": "b1", "email": "broker@example.com", "fullName": "Bruno Broker",
                "type": "broker", "isApproved": False,
            }),
        }
        self.sessions: dict[str, str] = {}
        self.requests: list[dict] = []
        self.failures: dict[tuple[str, str], tuple[int, dict]] = {}
        self.preference = {"_id": "pref-1"}
        self.matches = [
            {"apartment": apartment_data(f"apt{i}"), "matchScore": 95 - i,
             "explanation": "✅ Within budget\n💡 Consider Midtown"}
            for i in range(1, 7)
        ]
        self.saved: list[str] = ["apt2"]
        self.registrations: list[dict] = []
        self.inquiries: list[dict] = []
        self.tours: list[dict] = []
        self.submitted_preferences: list[dict] = []

    def fail(self, method: str, path: str, status: int = 500, error: str = "Server error"):
        self.failures[(method, path)] = (status, {"error": error})

    def last(self, path: str) -> dict:
        return [r for r in self.requests if r["path"] == path][-1]

    def _user(self, request: web.Request) -> Optional[dict]:
        email = self.sessions.get(request.cookies.get("token", ""))
        return self.accounts[email][1] if email else None

    @web.middleware
    async def middleware(self, request: web.Request, handler):
        self.requests.append({
            "method": request.method,
            "path": request.path,
            "query": dict(request.query),
            "headers": dict(request.headers),
        })
        failure = self.failures.get((request.method, request.path))
        if failure is not None:
            status, body = failure
            return web.json_response(body, status=status)
        return await handler(request)

    # -- Handlers --------------------------------------------------------

    async def login(self, request: web.Request) -> web.Response:
        body = await request.json()
        account = self.accounts.get(body.get("email"))
        if account is None or account[0] != body.get("password"):
            return web.json_response({"error": "Invalid credentials"}, status=401)

        token = uuid.uuid4().hex
        self.sessions[token] = body["email"]
        response = web.json_response({"message": "Login successful", "user": account[1]})
        response.set_cookie("token", token, httponly=True)
        return response

    async def logout(self, request: web.Request) -> web.Response:
        self.sessions.pop(request.cookies.get("token", ""), None)
        response = web.json_response({"message": "Logged out"})
        response.del_cookie("token")
        return response

    async def session(self, request: web.Request) -> web.Response:
        user = self._user(request)
        if user is None:
            return web.json_response({"error": "Not authenticated"}, status=401)
        return web.json_response({"user": user})

    async def broker_me(self, request: web.Request) -> web.Response:
        user = self._user(request)
        if user is None or user["type"] != "broker":
            return web.json_response({"error": "Forbidden"}, status=403)
        return web.json_response(user)

    async def latest_preference(self, request: web.Request) -> web.Response:
        return web.json_response({"preference": self.preference})

    async def get_matches(self, request: web.Request) -> web.Response:
        page = int(request.query.get("page", "1"))
        limit = int(request.query.get("limit", "4"))
        start = (page - 1) * limit
        return web.json_response({
            "results": self.matches[start:start + limit],
            "totalCount": len(self.matches),
            "filteredCount": len(self.matches),
        })

    async def list_saved(self, request: web.Request) -> web.Response:
        return web.json_response([apartment_data(apartment_id) for apartment_id in self.saved])

    async def toggle_saved(self, request: web.Request) -> web.Response:
        apartment_id = (await request.json())["apartmentId"]
        if apartment_id in self.saved:
            self.saved.remove(apartment_id)
        else:
            self.saved.append(apartment_id)
        return web.json_response({"message": "ok"})

    async def contact_broker(self, request: web.Request) -> web.Response:
        self.inquiries.append(await request.json())
        return web.json_response({"message": "Inquiry sent"}, status=201)

    async def schedule_tour(self, request: web.Request) -> web.Response:
        self.tours.append(await request.json())
        return web.json_response({"message": "Tour scheduled"}, status=201)

    async def register_broker(self, request: web.Request) -> web.Response:
        form = await request.post()
        document = form["licenseDocument"]
        fields = {key: value for key, value in form.items() if key != "licenseDocument"}
        fields["licenseDocument"] = (document.filename, document.file.read())
        self.registrations.append(fields)
        return web.json_response({"message": "Broker registered"}, status=201)

    async def create_user(self, request: web.Request) -> web.Response:
        body = await request.json()
        if body.get("email") in self.accounts:
            return web.json_response({"error": "User already exists"}, status=409)
        user = {
            "_id": f"u{len(self.accounts) + 1}", "email": body["email"],
            "fullName": body.get("fullName"), "type": body.get("type", "user"),
        }
        self.accounts[body["email"]] = (body.get("password"), user)
        return web.json_response({"message": "User created", "user": user}, status=201)

    async def edit_user(self, request: web.Request) -> web.Response:
        user = self._user(request)
        if user is None:
            return web.json_response({"error": "Not authenticated"}, status=401)
        user.update(await request.json())
        return web.json_response({"message": "Profile updated", "user": user})

    async def submit_preferences(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.submitted_preferences.append(body)
        self.preference = dict(body, _id="pref-2")
        return web.json_response({"preference": self.preference}, status=201)

    async def empty(self, request: web.Request) -> web.Response:
        return web.Response(status=204)

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self.middleware])
        app.router.add_post("/api/user/login", self.login)
        app.router.add_post("/api/user/logout", self.logout)
        app.router.add_get("/api/user/session", self.session)
        app.router.add_get("/api/broker/me", self.broker_me)
        app.router.add_post("/api/user/create", self.create_user)
        app.router.add_put("/api/user/edit", self.edit_user)
        app.router.add_get("/api/user/preferences/latest", self.latest_preference)
        app.router.add_post("/api/user/preferences", self.submit_preferences)
        app.router.add_get("/api/user/matches/{pref_id}", self.get_matches)
        app.router.add_get("/api/user/saved", self.list_saved)
        app.router.add_post("/api/user/save", self.toggle_saved)
        app.router.add_post("/api/user/contact-broker", self.contact_broker)
        app.router.add_post("/api/tours/schedule", self.schedule_tour)
        app.router.add_post("/api/broker/register", self.register_broker)
        app.router.add_delete("/api/broker/listings/{apartment_id}", self.empty)
        return app


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def server(backend):
    test_server = TestServer(backend.app())
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest_asyncio.fixture
async def client(server):
    api = HomeFitClient(base_url=str(server.make_url("")))
    yield api
    await api.close()


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1000.0)
