"""
Tests del render del bot (textos, teclados) y del registro de sesiones por chat
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from homefit.bot import ChatSessions, FieldSpec, keyboards
from homefit.bot.handlers import REGISTRATION_FIELDS, dialog_fields, redirect_message
from homefit.forms import BrokerRegistrationDialog, PreferenceDialog, ProfileDialog, SignupDialog
from homefit.forms.preferences import CHOICES
from homefit.matching import FilterPanel, MatchListView
from homefit.models import MatchFilters, SortField, SortOrder
from homefit.routing import RouteDecision
from homefit.session import IdentityStore

from conftest import make_apartment, make_page, make_user


def buttons(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


@pytest.fixture
async def view():
    matches = AsyncMock()
    matches.get_latest_preference.return_value = {"_id": "pref-1"}
    matches.get_matches.return_value = make_page(["apt1", "apt2"], total=6)
    saved = AsyncMock()
    saved.list_saved.return_value = [make_apartment("apt2")]
    match_view = MatchListView(matches, saved, page_size=2)
    await match_view.open()
    return match_view


class TestRedirectMessage:
    def test_not_authenticated(self):
        text = redirect_message(RouteDecision(False, "/", "not_authenticated"))
        assert "/login" in text

    def test_wrong_role_points_to_role_command(self):
        text = redirect_message(RouteDecision(False, "/broker/dashboard", "wrong_role"))
        assert "/dashboard" in text

    def test_not_approved(self):
        text = redirect_message(RouteDecision(False, "/broker/dashboard", "not_approved"))
        assert "pending admin approval" in text


class TestFieldSpec:
    def test_display(self):
        assert FieldSpec("password", "Password", kind="secret").display("hunter22") == "••••••••"
        assert FieldSpec("name", "Name").display("") == "-"
        assert FieldSpec("license_document", "License", kind="document").display(b"x") == "attached"

    def test_registration_fields_follow_step(self):
        dialog = BrokerRegistrationDialog(AsyncMock())
        dialog.open()
        assert dialog_fields(dialog) == REGISTRATION_FIELDS[0]

        dialog.step = 2
        assert dialog_fields(dialog) == []

    @pytest.mark.parametrize(
        "dialog",
        [
            SignupDialog(AsyncMock()),
            ProfileDialog(AsyncMock(), IdentityStore()),
            PreferenceDialog(AsyncMock()),
        ],
        ids=lambda dialog: dialog.name,
    )
    def test_account_dialog_fields_exist(self, dialog):
        dialog.open()
        fields = dialog_fields(dialog)

        assert fields
        assert {spec.key for spec in fields} <= set(dialog.values)

    def test_preference_choices_match_validation(self):
        fields = {spec.key: spec for spec in dialog_fields(PreferenceDialog(AsyncMock()))}

        for key, options in CHOICES.items():
            assert fields[key].kind == "choice"
            assert fields[key].choices == options
        assert fields["move_in_date"].kind == "date"


class TestChatSessions:
    async def test_one_context_per_chat(self):
        factory = MagicMock(side_effect=lambda: AsyncMock())
        sessions = ChatSessions(factory)

        first = sessions.get(1)
        assert sessions.get(1) is first
        assert sessions.get(2) is not first
        assert 1 in sessions

        await sessions.close_all()

        first.close.assert_awaited_once()
        assert 1 not in sessions


class TestMatchRendering:
    async def test_card_keyboard(self, view):
        card = view.card("apt2")
        data = buttons(keyboards.match_card_keyboard(card))

        assert data == [
            "img_back_apt2", "noop", "img_next_apt2",
            "save_apt2",
            "contact_apt2", "tour_apt2",
        ]
        assert "❤️ Saved" in [b.text for row in keyboards.match_card_keyboard(card).inline_keyboard for b in row]

    async def test_card_text_includes_hints_and_score(self, view):
        text = keyboards.match_card_text(view.card("apt1"))

        assert "90%" in text
        assert "✅" in text
        assert "Image 1/2" in text

    async def test_navigation_on_first_page(self, view):
        data = buttons(keyboards.match_navigation_keyboard(view))

        assert "page_prev" not in data
        assert "page_next" in data
        assert f"sort_{SortField.PRICE.value}_{SortOrder.ASC.value}" in data
        assert "filters_open" in data
        assert "refresh" in data

    async def test_summary(self, view):
        assert "Page 1/3" in keyboards.match_summary_text(view)


class TestFilterRendering:
    def test_selected_values_are_marked(self):
        panel = FilterPanel(MatchFilters(bedrooms=["2"]))
        markup = keyboards.filter_panel_keyboard(panel)
        labels = {b.callback_data: b.text for row in markup.inline_keyboard for b in row}

        assert labels["filter_bedrooms_2"] == "✅ 2"
        assert labels["filter_bedrooms_0"] == "Studio"
        assert labels["price_1000_3000"].startswith("✅")
        assert "filters_apply" in labels
        assert "Bedrooms: 2" in keyboards.filter_panel_text(panel)


class TestBrokerRendering:
    def test_admin_keyboard(self):
        pending = make_user("broker", approved=False)
        approved = make_user("broker", approved=True)

        assert buttons(keyboards.broker_admin_keyboard(pending)) == ["admin_approve_broker-1"]
        assert buttons(keyboards.broker_admin_keyboard(approved)) == ["admin_revoke_broker-1"]

    def test_listing_keyboard(self):
        data = buttons(keyboards.listing_keyboard(make_apartment("apt9")))
        assert data == ["listing_toggle_apt9", "edit_apt9", "listing_delete_apt9"]
