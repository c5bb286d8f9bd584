"""
Render de cards, teclados inline y textos del bot.

Funciones puras: reciben el estado de las vistas y devuelven texto
Markdown y InlineKeyboardMarkup.
"""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.helpers import escape_markdown

from homefit.config import DEFAULT_PRICE_RANGE
from homefit.forms import BaseDialog, BrokerRegistrationDialog
from homefit.matching import MatchCard, MatchListView, SavedCard
from homefit.matching.filters import FACETS, FilterPanel
from homefit.models import Apartment, HintType, Inquiry, SortField, SortOrder, Tour, User

HINT_EMOJI = {
    HintType.CHECK: "✅",
    HintType.CANCEL: "❌",
    HintType.DIAMOND: "💎",
    HintType.WARNING: "🟡",
    HintType.LIGHTBULB: "💡",
    HintType.INFO: "•",
}

BAND_EMOJI = {"high": "🟢", "medium": "🟠", "low": "🔴"}

SORT_BUTTONS = [
    ("🎯 Best match", SortField.MATCH_SCORE, SortOrder.DESC),
    ("💲 Price ⬆️", SortField.PRICE, SortOrder.ASC),
    ("💲 Price ⬇️", SortField.PRICE, SortOrder.DESC),
    ("🆕 Newest", SortField.DATE_ADDED, SortOrder.DESC),
]

PRICE_PRESETS = [
    DEFAULT_PRICE_RANGE,
    (500, 1500),
    (1500, 2500),
    (2500, 4000),
    (4000, 10000),
]

FACET_LABELS = {
    "bedrooms": "🛏 Bedrooms",
    "bathrooms": "🛁 Bathrooms",
    "neighborhoods": "📍 Neighborhoods",
    "amenities": "💎 Amenities",
}


def md(text) -> str:
    return escape_markdown(str(text if text is not None else ""))


def _apartment_lines(apartment: Apartment) -> list[str]:
    details = [
        apartment.neighborhood,
        apartment.bedrooms and f"{apartment.bedrooms} BR",
        apartment.bathrooms and f"{apartment.bathrooms} bath",
    ]
    lines = [f"🏠 *{md(apartment.display_title)}*"]
    details_text = " • ".join(md(d) for d in details if d)
    if details_text:
        lines.append(f"📍 {details_text}")
    lines.append(f"💰 {md(apartment.price_text)}")
    return lines


def _gallery_line(gallery) -> str:
    if gallery.current is None:
        return "🖼 No images"
    return f"🖼 [{gallery.label()}]({gallery.current})"


# -- Matches -------------------------------------------------------------


def match_card_text(card: MatchCard) -> str:
    lines = _apartment_lines(card.apartment)
    lines.append(f"🎯 Match: *{card.score}%* {BAND_EMOJI[card.band]}")
    lines.append("")
    for hint in card.hints:
        lines.append(f"{HINT_EMOJI[hint.type]} {md(hint.text)}")
    lines.append("")
    lines.append(_gallery_line(card.gallery))
    return "\n".join(lines)


def _gallery_row(prefix: str, apartment_id: str, gallery) -> list[InlineKeyboardButton]:
    if not gallery.can_navigate:
        return []
    return [
        InlineKeyboardButton("◀️", callback_data=f"{prefix}back_{apartment_id}"),
        InlineKeyboardButton(gallery.label(), callback_data="noop"),
        InlineKeyboardButton("▶️", callback_data=f"{prefix}next_{apartment_id}"),
    ]


def match_card_keyboard(card: MatchCard) -> InlineKeyboardMarkup:
    keyboard = []
    gallery_row = _gallery_row("img_", card.apartment_id, card.gallery)
    if gallery_row:
        keyboard.append(gallery_row)
    keyboard.append([
        InlineKeyboardButton(
            "❤️ Saved" if card.is_saved else "🤍 Save",
            callback_data=f"save_{card.apartment_id}",
        ),
    ])
    keyboard.append([
        InlineKeyboardButton("✉️ Contact broker", callback_data=f"contact_{card.apartment_id}"),
        InlineKeyboardButton("📅 Schedule tour", callback_data=f"tour_{card.apartment_id}"),
    ])
    return InlineKeyboardMarkup(keyboard)


def match_summary_text(view: MatchListView) -> str:
    if view.error:
        return f"⚠️ {md(view.error)}"
    if not view.cards:
        return "😕 No matches found for your current filters."

    active = view.filters.active_count
    filters_text = f" • {active} filter(s) active" if active else ""
    return (
        f"📋 *Your matches*\n"
        f"Showing {len(view.cards)} of {view.filtered_count} "
        f"(total {view.total_count}){filters_text}\n"
        f"Page {view.page}/{view.total_pages}"
    )


def match_navigation_keyboard(view: MatchListView) -> InlineKeyboardMarkup:
    keyboard = []
    nav = []
    if view.page > 1:
        nav.append(InlineKeyboardButton("◀️ Prev", callback_data="page_prev"))
    nav.append(
        InlineKeyboardButton(f"{view.page}/{view.total_pages}", callback_data="noop")
    )
    if view.page < view.total_pages:
        nav.append(InlineKeyboardButton("Next ▶️", callback_data="page_next"))
    keyboard.append(nav)

    sort_row = []
    for label, field, order in SORT_BUTTONS:
        selected = view.sort_by == field and view.sort_order == order
        sort_row.append(
            InlineKeyboardButton(
                f"✔️ {label}" if selected else label,
                callback_data=f"sort_{field.value}_{order.value}",
            )
        )
    keyboard.append(sort_row[:2])
    keyboard.append(sort_row[2:])

    keyboard.append([
        InlineKeyboardButton("🔎 Filters", callback_data="filters_open"),
        InlineKeyboardButton("🔄 Refresh", callback_data="refresh"),
    ])
    return InlineKeyboardMarkup(keyboard)


# -- Filtros ---------------------------------------------------------------


def _k(value: int) -> str:
    return f"{value / 1000:g}k"


def filter_panel_text(panel: FilterPanel) -> str:
    min_price, max_price = panel.filters.price_range
    lines = [
        "🔎 *Filters*",
        f"💰 Price: ${min_price:,} - ${max_price:,}",
    ]
    for facet, label in FACET_LABELS.items():
        selected = getattr(panel.filters, facet)
        lines.append(f"{label}: {md(', '.join(selected)) if selected else 'Any'}")
    return "\n".join(lines)


def filter_panel_keyboard(panel: FilterPanel) -> InlineKeyboardMarkup:
    keyboard = []

    price_row = []
    for min_price, max_price in PRICE_PRESETS:
        selected = tuple(panel.filters.price_range) == (min_price, max_price)
        label = f"${_k(min_price)}-{_k(max_price)}"
        price_row.append(
            InlineKeyboardButton(
                f"✅ {label}" if selected else label,
                callback_data=f"price_{min_price}_{max_price}",
            )
        )
    keyboard.append(price_row[:3])
    keyboard.append(price_row[3:])

    for facet, options in FACETS.items():
        row = []
        for index, option in enumerate(options):
            mark = "✅ " if panel.is_selected(facet, option) else ""
            row.append(
                InlineKeyboardButton(
                    f"{mark}{option}", callback_data=f"filter_{facet}_{index}"
                )
            )
            if len(row) == 4 or (facet == "amenities" and len(row) == 2):
                keyboard.append(row)
                row = []
        if row:
            keyboard.append(row)

    keyboard.append([
        InlineKeyboardButton("✔️ Apply", callback_data="filters_apply"),
        InlineKeyboardButton("♻️ Reset", callback_data="filters_reset"),
    ])
    return InlineKeyboardMarkup(keyboard)


# -- Guardados -------------------------------------------------------------


def saved_card_text(card: SavedCard) -> str:
    lines = _apartment_lines(card.apartment)
    if card.apartment.amenities:
        lines.append(f"💎 {md(', '.join(card.apartment.amenities[:4]))}")
    lines.append("")
    lines.append(_gallery_line(card.gallery))
    return "\n".join(lines)


def saved_card_keyboard(card: SavedCard) -> InlineKeyboardMarkup:
    keyboard = []
    gallery_row = _gallery_row("simg_", card.apartment_id, card.gallery)
    if gallery_row:
        keyboard.append(gallery_row)
    keyboard.append([
        InlineKeyboardButton("💔 Remove", callback_data=f"unsave_{card.apartment_id}"),
        InlineKeyboardButton("📅 Schedule tour", callback_data=f"tour_{card.apartment_id}"),
    ])
    return InlineKeyboardMarkup(keyboard)


# -- Diálogos --------------------------------------------------------------


def dialog_text(dialog: BaseDialog, title: str, fields: list) -> str:
    lines = [f"📝 *{md(title)}*"]
    if isinstance(dialog, BrokerRegistrationDialog):
        lines.append(
            f"Step {dialog.step + 1} of {len(dialog.steps)}: _{md(dialog.step_title)}_"
        )
    lines.append("")

    if isinstance(dialog, BrokerRegistrationDialog) and dialog.is_last_step:
        for label, value in dialog.summary().items():
            lines.append(f"*{md(label)}:* {md(value) or '-'}")
    for field_spec in fields:
        value = dialog.values.get(field_spec.key)
        lines.append(f"*{md(field_spec.label)}:* {md(field_spec.display(value))}")
        if field_spec.key in dialog.errors:
            lines.append(f"   ⚠️ _{md(dialog.errors[field_spec.key])}_")

    if dialog.notice is not None:
        icon = {"success": "✅", "warning": "⚠️", "error": "❌"}.get(dialog.notice.severity, "ℹ️")
        lines.append("")
        lines.append(f"{icon} {md(dialog.notice.text)}")
    return "\n".join(lines)


def dialog_keyboard(dialog: BaseDialog, fields: list) -> InlineKeyboardMarkup:
    keyboard = []
    row = []
    for field_spec in fields:
        row.append(InlineKeyboardButton(f"✏️ {field_spec.label}", callback_data=f"dlg_edit_{field_spec.key}"))
        if len(row) == 2:
            keyboard.append(row)
            row = []
    if row:
        keyboard.append(row)

    if isinstance(dialog, BrokerRegistrationDialog):
        nav = []
        if dialog.step > 0:
            nav.append(InlineKeyboardButton("◀️ Back", callback_data="dlg_back"))
        if dialog.is_last_step:
            nav.append(InlineKeyboardButton("🚀 Submit", callback_data="dlg_send"))
        else:
            nav.append(InlineKeyboardButton("Next ▶️", callback_data="dlg_next"))
        keyboard.append(nav)
    else:
        keyboard.append([InlineKeyboardButton("📨 Submit", callback_data="dlg_send")])

    keyboard.append([InlineKeyboardButton("✖️ Cancel", callback_data="dlg_cancel")])
    return InlineKeyboardMarkup(keyboard)


def choice_keyboard(choices) -> InlineKeyboardMarkup:
    keyboard = []
    row = []
    for index, choice in enumerate(choices):
        row.append(InlineKeyboardButton(choice, callback_data=f"dlg_pick_{index}"))
        if len(row) == 2:
            keyboard.append(row)
            row = []
    if row:
        keyboard.append(row)
    return InlineKeyboardMarkup(keyboard)


# -- Broker / admin --------------------------------------------------------


def listing_text(apartment: Apartment) -> str:
    lines = _apartment_lines(apartment)
    lines.append("🟢 Active" if apartment.is_active else "⚪️ Inactive")
    return "\n".join(lines)


def listing_keyboard(apartment: Apartment) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton(
                "⏸ Deactivate" if apartment.is_active else "▶️ Activate",
                callback_data=f"listing_toggle_{apartment.id}",
            ),
            InlineKeyboardButton("✏️ Edit", callback_data=f"edit_{apartment.id}"),
        ],
        [InlineKeyboardButton("🗑 Delete", callback_data=f"listing_delete_{apartment.id}")],
    ])


def confirm_delete_keyboard(apartment_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("🗑 Yes, delete", callback_data=f"listing_confirm_{apartment_id}"),
        InlineKeyboardButton("Keep it", callback_data="noop"),
    ]])


def inquiry_text(inquiry: Inquiry) -> str:
    title = inquiry.apartment.display_title if inquiry.apartment else "Listing"
    lines = [
        f"✉️ *{md(title)}*",
        f"From: {md(inquiry.name or '-')} ({md(inquiry.user_email or '-')})",
        f"Status: {md(inquiry.status)}",
        "",
        md(inquiry.message),
    ]
    if inquiry.broker_response:
        lines.append(f"\n↩️ _{md(inquiry.broker_response)}_")
    lines.append(f"\nReply with: `/reply {inquiry.id} <message>`")
    return "\n".join(lines)


def tour_text(tour: Tour) -> str:
    title = tour.apartment.display_title if tour.apartment else "Apartment"
    lines = [
        f"📅 *{md(title)}*",
        f"{md(tour.date_text)} • {md(tour.tour_time or '-')}",
        f"Status: {md(tour.status)}",
    ]
    if tour.name:
        lines.append(f"Visitor: {md(tour.name)} ({md(tour.contact_number or '-')})")
    if tour.broker_response:
        lines.append(f"↩️ _{md(tour.broker_response)}_")
    return "\n".join(lines)


def user_tour_keyboard(tour: Tour):
    if tour.status not in ("pending", "confirmed"):
        return None
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("✖️ Cancel tour", callback_data=f"tourcancel_{tour.id}"),
    ]])


def broker_tour_keyboard(tour: Tour):
    if tour.status != "pending":
        return None
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("✅ Confirm", callback_data=f"tourstatus_confirmed_{tour.id}"),
        InlineKeyboardButton("❌ Decline", callback_data=f"tourstatus_canceled_{tour.id}"),
    ]])


def broker_user_text(broker: User) -> str:
    status = "✅ Approved" if broker.is_approved else "⏳ Not approved"
    return (
        f"👤 *{md(broker.display_name)}*\n"
        f"{md(broker.email)} • {md(broker.phone or '-')}\n"
        f"License: {md(broker.license_number or '-')}\n"
        f"{status}"
    )


def broker_admin_keyboard(broker: User) -> InlineKeyboardMarkup:
    if broker.is_approved:
        button = InlineKeyboardButton("🚫 Revoke", callback_data=f"admin_revoke_{broker.id}")
    else:
        button = InlineKeyboardButton("✅ Approve", callback_data=f"admin_approve_{broker.id}")
    return InlineKeyboardMarkup([[button]])
