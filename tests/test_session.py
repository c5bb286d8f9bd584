"""
Tests del store de identidad, el bootstrap y el polling de aprobación
"""

import asyncio
from unittest.mock import AsyncMock

from homefit.api import ApiError
from homefit.session import (
    BrokerApprovalPoller,
    IdentityStore,
    SessionBootstrap,
    StoreEvent,
    TokenStorage,
)

from conftest import make_user


def record_events(store: IdentityStore) -> list:
    events = []
    store.subscribe(lambda event, s: events.append((event, s.is_authenticated, s.loading)))
    return events


class TestIdentityStore:
    def test_initial_state_is_loading(self):
        store = IdentityStore()
        assert store.user is None
        assert store.is_authenticated is False
        assert store.loading is True
        assert store.role is None

    def test_listeners_see_complete_state(self):
        store = IdentityStore()
        events = record_events(store)

        store.login_success(make_user())
        store.logout()

        assert events == [
            (StoreEvent.LOGIN, True, False),
            (StoreEvent.LOGOUT, False, False),
        ]

    def test_update_user_without_user_is_noop(self):
        store = IdentityStore()
        events = record_events(store)

        store.update_user(isApproved=True)

        assert store.user is None
        assert events == []

    def test_update_user_merges_fields(self):
        store = IdentityStore()
        store.login_success(make_user("broker"))

        store.update_user(isApproved=True)

        assert store.user.is_approved is True
        assert store.is_authenticated is True

    def test_unsubscribe(self):
        store = IdentityStore()
        events = []
        unsubscribe = store.subscribe(lambda event, s: events.append(event))

        unsubscribe()
        store.login_success(make_user())

        assert events == []


class TestTokenStorage:
    def test_writer_is_not_notified(self):
        tokens = TokenStorage()
        mine, other = [], []
        tokens.subscribe("tab-a", lambda key, value: mine.append((key, value)))
        tokens.subscribe("tab-b", lambda key, value: other.append((key, value)))

        tokens.set("authToken", "abc", origin="tab-a")
        tokens.remove("authToken", origin="tab-a")

        assert mine == []
        assert other == [("authToken", "abc"), ("authToken", None)]
        assert tokens.get("authToken") is None

    def test_removing_missing_key_does_not_notify(self):
        tokens = TokenStorage()
        seen = []
        tokens.subscribe("tab-b", lambda key, value: seen.append(key))

        tokens.remove("authToken", origin="tab-a")

        assert seen == []


class TestSessionBootstrap:
    async def test_no_session_resolves_unauthenticated(self):
        store = IdentityStore()
        events = record_events(store)
        sessions = AsyncMock()
        sessions.get_session.side_effect = ApiError(401, "Not authenticated")

        user = await SessionBootstrap(store, sessions).run()

        assert user is None
        assert store.loading is False
        assert store.is_authenticated is False
        assert [event for event, *_ in events] == [StoreEvent.LOADING, StoreEvent.RESOLVED]

    async def test_user_session(self):
        store = IdentityStore()
        sessions = AsyncMock()
        sessions.get_session.return_value = make_user()

        user = await SessionBootstrap(store, sessions).run()

        assert user.id == "user-1"
        assert store.is_authenticated
        sessions.get_broker_profile.assert_not_awaited()

    async def test_broker_profile_is_merged(self):
        store = IdentityStore()
        events = record_events(store)
        sessions = AsyncMock()
        sessions.get_session.return_value = make_user("broker")
        sessions.get_broker_profile.return_value = {"isApproved": True, "licenseNumber": "LIC-7"}

        user = await SessionBootstrap(store, sessions).run()

        assert user.is_approved is True
        assert user.license_number == "LIC-7"
        assert [event for event, *_ in events] == [
            StoreEvent.LOADING,
            StoreEvent.LOGIN,
            StoreEvent.UPDATE,
            StoreEvent.RESOLVED,
        ]

    async def test_broker_profile_failure_keeps_session(self):
        store = IdentityStore()
        sessions = AsyncMock()
        sessions.get_session.return_value = make_user("broker")
        sessions.get_broker_profile.side_effect = ApiError(500, "boom")

        bootstrap = SessionBootstrap(store, sessions)
        user = await bootstrap.run()

        assert user.is_broker
        assert user.is_approved is False
        assert store.loading is False
        assert await bootstrap.refresh_broker_status() is False


class TestBrokerApprovalPoller:
    async def test_polls_until_approved(self):
        store = IdentityStore()
        bootstrap = AsyncMock()

        async def approve():
            store.update_user(isApproved=True)
            return True

        bootstrap.refresh_broker_status.side_effect = approve
        poller = BrokerApprovalPoller(store, bootstrap, interval=0.01)

        store.login_success(make_user("broker"))
        assert poller.is_running

        for _ in range(50):
            if not poller.is_running:
                break
            await asyncio.sleep(0.01)

        assert not poller.is_running
        assert bootstrap.refresh_broker_status.await_count == 1
        await poller.close()

    async def test_does_not_poll_for_approved_broker_or_users(self):
        store = IdentityStore()
        poller = BrokerApprovalPoller(store, AsyncMock(), interval=0.01)

        store.login_success(make_user("broker", approved=True))
        assert not poller.is_running

        store.login_success(make_user("user"))
        assert not poller.is_running
        await poller.close()

    async def test_logout_stops_polling(self):
        store = IdentityStore()
        bootstrap = AsyncMock()
        bootstrap.refresh_broker_status.return_value = True
        poller = BrokerApprovalPoller(store, bootstrap, interval=60)

        store.login_success(make_user("broker"))
        assert poller.is_running

        store.logout()
        await asyncio.sleep(0)

        assert not poller.is_running
        bootstrap.refresh_broker_status.assert_not_awaited()
        await poller.close()

    async def test_close_unsubscribes(self):
        store = IdentityStore()
        poller = BrokerApprovalPoller(store, AsyncMock(), interval=60)
        await poller.close()

        store.login_success(make_user("broker"))

        assert not poller.is_running
