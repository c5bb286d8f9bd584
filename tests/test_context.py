"""
Tests de integración del contexto de sesión contra el backend falso
"""

import asyncio

import pytest
import pytest_asyncio

from homefit.api import ApiError, HomeFitClient
from homefit.context import HomeFitContext
from homefit.forms import DialogState
from homefit.models import MatchFilters, SortField, SortOrder


@pytest_asyncio.fixture
async def ctx(server, clock):
    context = HomeFitContext(client=HomeFitClient(base_url=str(server.make_url(""))), clock=clock)
    yield context
    await context.close()


class TestBootstrap:
    async def test_anonymous_start(self, ctx):
        assert ctx.is_loading

        user = await ctx.start()

        assert user is None
        assert ctx.is_started
        assert not ctx.is_loading
        assert ctx.authorize("/matches").redirect_to == "/"

    async def test_concurrent_starts_share_one_request(self, ctx, backend):
        await asyncio.gather(ctx.start(), ctx.start(), ctx.start())

        assert len([r for r in backend.requests if r["path"] == "/api/user/session"]) == 1

    async def test_existing_cookie_session_is_restored(self, server, backend):
        client = HomeFitClient(base_url=str(server.make_url("")))
        first = HomeFitContext(client=client)
        await first.login("renter@example.com", "secret123")

        # Mismo cookie jar, contexto nuevo
        second = HomeFitContext(client=client)
        user = await second.start()

        assert user.email == "renter@example.com"
        assert second.authorize("/matches").allowed
        await second.close()
        await first.poller.close()


class TestLogin:
    async def test_renter_login_forces_first_fetch(self, ctx, backend):
        await ctx.start()
        user = await ctx.login("renter@example.com", "secret123")

        assert user.display_name == "Rita Renter"
        assert ctx.authorize("/matches").allowed
        assert ctx.authorize("/admin").redirect_to == "/home"

        await ctx.match_view.open()
        first = backend.last("/api/user/matches/pref-1")
        assert first["query"]["forceRefresh"] == "true"

        await ctx.match_view.next_page()
        second = backend.last("/api/user/matches/pref-1")
        assert "forceRefresh" not in second["query"]
        assert second["query"]["page"] == "2"

    async def test_bad_credentials(self, ctx):
        await ctx.start()

        with pytest.raises(ApiError) as exc_info:
            await ctx.login("renter@example.com", "nope")

        assert exc_info.value.message == "Invalid credentials"
        assert ctx.user is None

    async def test_unapproved_broker_starts_polling(self, ctx):
        await ctx.start()
        user = await ctx.login("broker@example.com", "secret123")

        assert user.is_broker
        assert not user.is_approved
        assert ctx.poller.is_running
        assert ctx.authorize("/broker/dashboard").allowed
        assert ctx.authorize("/broker/listings").reason == "not_approved"

        await ctx.logout()

        assert not ctx.poller.is_running
        assert ctx.user is None
        assert ctx.tokens.get("authToken") is None

    async def test_approval_is_picked_up_on_refresh(self, ctx, backend):
        await ctx.start()
        await ctx.login("broker@example.com", "secret123")

        backend.accounts["broker@example.com"][1]["isApproved"] = True
        assert await ctx.bootstrap.refresh_broker_status()

        assert ctx.user.is_approved
        assert not ctx.poller.is_running
        assert ctx.authorize("/broker/listings").allowed

    async def test_logout_backend_failure_still_clears_state(self, ctx, backend):
        await ctx.start()
        await ctx.login("renter@example.com", "secret123")
        backend.fail("POST", "/api/user/logout")

        await ctx.logout()

        assert ctx.user is None
        assert ctx.authorize("/saved").redirect_to == "/"

    async def test_logout_resets_match_state(self, ctx):
        await ctx.start()
        await ctx.login("renter@example.com", "secret123")
        await ctx.match_view.open()
        await ctx.match_view.apply_filters(MatchFilters(bedrooms=["2"]))
        await ctx.match_view.set_sort(SortField.PRICE, SortOrder.ASC)
        await ctx.saved_view.load()
        assert ctx.match_view.is_saved("apt2")

        await ctx.logout()

        view = ctx.match_view
        assert view.pref_id is None
        assert view.filters == MatchFilters.defaults()
        assert (view.sort_by, view.sort_order) == (SortField.MATCH_SCORE, SortOrder.DESC)
        assert view.saved == {}
        assert view.cards == []
        assert ctx.saved_view.cards == []


class TestDialogs:
    async def test_contact_dialog_reaches_backend(self, ctx, backend):
        await ctx.start()
        await ctx.login("renter@example.com", "secret123")
        await ctx.match_view.open()

        card = ctx.match_view.cards[0]
        dialog = ctx.contact_dialog(card.apartment, close_delay=0)
        dialog.open()

        assert await dialog.submit()

        assert dialog.state == DialogState.CLOSED
        assert backend.inquiries[0]["apartmentId"] == card.apartment_id
        assert backend.inquiries[0]["email"] == "renter@example.com"

    async def test_saved_toggle_reaches_backend(self, ctx, backend):
        await ctx.start()
        await ctx.login("renter@example.com", "secret123")
        await ctx.match_view.open()

        assert ctx.match_view.is_saved("apt2")
        assert await ctx.match_view.toggle_save("apt1")

        assert "apt1" in backend.saved
        cards = await ctx.saved_view.load()
        assert {card.apartment_id for card in cards} == {"apt1", "apt2"}

    async def test_preferences_open_matches_for_new_preference(self, ctx, backend):
        await ctx.start()
        await ctx.login("renter@example.com", "secret123")
        saved = []

        dialog = ctx.preference_dialog(on_success=saved.append)
        await dialog.load()
        dialog.update(move_in_date="2026-06-01", location="Back Bay", bedrooms="2")

        assert await dialog.submit()

        assert backend.submitted_preferences[0]["bedrooms"] == "2"
        assert ctx.match_view.pref_id == "pref-2"
        assert backend.last("/api/user/matches/pref-2")["query"]["page"] == "1"
        assert saved[0]["_id"] == "pref-2"

    async def test_signup_then_login(self, ctx, backend):
        await ctx.start()
        dialog = ctx.signup_dialog(close_delay=0)
        dialog.open()
        dialog.update(full_name="Nina New", email="nina@example.com", password="Secret1!")

        assert await dialog.submit()
        assert dialog.redirect_to == "/login"
        assert ctx.user is None

        user = await ctx.login("nina@example.com", "Secret1!")
        assert user.display_name == "Nina New"

    async def test_profile_edit_updates_store(self, ctx):
        await ctx.start()
        await ctx.login("renter@example.com", "secret123")

        dialog = ctx.profile_dialog()
        dialog.open()
        dialog.update(full_name="Rita Roe", bio="Early riser")

        assert await dialog.submit()
        assert ctx.user.display_name == "Rita Roe"
        assert ctx.user.bio == "Early riser"
