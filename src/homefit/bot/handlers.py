"""
Handlers para el bot de Telegram.

Cada chat tiene su propio HomeFitContext (su cookie jar, su store de
identidad). Todo comando se traduce a una ruta de la app y pasa por la
autorización de rutas antes de ejecutarse.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

import structlog
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.error import BadRequest, TelegramError
from telegram.ext import ContextTypes, ConversationHandler

from homefit.api import REQUEST_ERRORS, ApiError, error_message
from homefit.config import BEDROOM_OPTIONS, TOUR_TIME_SLOTS
from homefit.context import HomeFitContext
from homefit.forms import BaseDialog, BrokerRegistrationDialog, DialogState
from homefit.forms.preferences import CHOICES as PREFERENCE_CHOICES
from homefit.matching.filters import FACETS, FilterPanel
from homefit.models import Apartment, SortField, SortOrder, UserRole
from homefit.routing import RouteDecision
from homefit.bot import keyboards

logger = structlog.get_logger()

# Estados de las conversaciones
(
    LOGIN_EMAIL,
    LOGIN_PASSWORD,
    DIALOG_MENU,
    DIALOG_INPUT,
) = range(4)

# Ruta -> comando que la muestra (para explicar redirecciones)
COMMAND_FOR_PATH = {
    "/": "/login",
    "/home": "/matches",
    "/broker/dashboard": "/dashboard",
    "/admin/dashboard": "/admin",
}


def redirect_message(decision: RouteDecision) -> str:
    command = COMMAND_FOR_PATH.get(decision.redirect_to, "/start")
    if decision.reason == "not_authenticated":
        return "🔒 You need to log in first. Use /login."
    if decision.reason == "not_approved":
        return (
            "⏳ Your broker account is pending admin approval.\n"
            "Use /dashboard to check your status."
        )
    return f"⛔ That section isn't available for your account. Try {command}."


class ChatSessions:
    """Registro de contextos por chat (uno por "sesión de navegador")."""

    def __init__(self, factory: Callable[[], HomeFitContext] = HomeFitContext):
        self._factory = factory
        self._contexts: dict[int, HomeFitContext] = {}

    def get(self, chat_id: int) -> HomeFitContext:
        # Se crea lazy: el cliente HTTP necesita el event loop corriendo
        if chat_id not in self._contexts:
            self._contexts[chat_id] = self._factory()
            logger.debug("Contexto creado", chat_id=chat_id)
        return self._contexts[chat_id]

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._contexts

    async def close_all(self) -> None:
        contexts, self._contexts = self._contexts, {}
        for ctx in contexts.values():
            await ctx.close()
        logger.info("Contextos cerrados", count=len(contexts))


class BaseHandler:
    """Acceso al contexto del chat y chequeo de rutas."""

    def __init__(self, sessions: ChatSessions):
        self.sessions = sessions

    async def _context_for(self, update: Update) -> HomeFitContext:
        ctx = self.sessions.get(update.effective_chat.id)
        if not ctx.is_started:
            await update.effective_message.reply_text("⏳ Checking your session...")
            await ctx.start()
        return ctx

    async def _guard(self, update: Update, path: str) -> Optional[HomeFitContext]:
        """Devuelve el contexto si la ruta está permitida; si no, explica la redirección."""
        ctx = await self._context_for(update)
        decision = ctx.authorize(path)
        if decision.allowed:
            return ctx

        logger.info(
            "Ruta denegada",
            chat_id=update.effective_chat.id,
            path=path,
            redirect_to=decision.redirect_to,
            reason=decision.reason,
        )
        if update.callback_query:
            await update.callback_query.answer()
        await update.effective_message.reply_text(redirect_message(decision))
        return None

    @staticmethod
    async def _edit(query, text: str, reply_markup=None) -> None:
        try:
            await query.edit_message_text(
                text, reply_markup=reply_markup, parse_mode="Markdown"
            )
        except BadRequest as e:
            # "Message is not modified" cuando el contenido no cambió
            logger.debug("Edición de mensaje ignorada", error=str(e))


class SessionHandler(BaseHandler):
    """Bienvenida, ayuda, login y logout."""

    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /start."""
        ctx = await self._context_for(update)
        user = ctx.user

        if user is None:
            await update.message.reply_text(
                "🏠 *Welcome to HomeFit!*\n\n"
                "Find apartments that match your lifestyle.\n\n"
                "• /login - Log in to your account\n"
                "• /signup - Create a renter account\n"
                "• /register - Register as a broker\n"
                "• /help - See all commands",
                parse_mode="Markdown",
            )
            return

        home = {
            UserRole.USER: "/matches - See your apartment matches",
            UserRole.BROKER: "/dashboard - Open your broker dashboard",
            UserRole.ADMIN: "/admin - Open the admin dashboard",
        }[user.role]
        await update.message.reply_text(
            f"👋 Welcome back, *{keyboards.md(user.display_name)}*!\n\n• {home}\n• /help - See all commands",
            parse_mode="Markdown",
        )

    async def help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /help."""
        await update.message.reply_text(
            "🏠 *HomeFit - Help*\n\n"
            "*Account*\n"
            "/login - Log in\n"
            "/logout - Log out\n"
            "/signup - Create a renter account\n"
            "/profile - Edit your profile\n"
            "/register - Register as a broker\n\n"
            "*Renters*\n"
            "/preferences - Update your preferences\n"
            "/matches - Your apartment matches\n"
            "/filters - Filter your matches\n"
            "/refresh - Refresh your matches\n"
            "/saved - Your saved listings\n"
            "/tours - Your scheduled tours\n\n"
            "*Brokers*\n"
            "/dashboard - Dashboard and approval status\n"
            "/listings - Manage your listings\n"
            "/inquiries - Inquiries from renters\n"
            "/reply - Reply to an inquiry\n\n"
            "*Admins*\n"
            "/admin - Admin dashboard\n"
            "/pending - Brokers waiting for approval\n"
            "/brokers - All brokers\n\n"
            "/cancel - Cancel the current form",
            parse_mode="Markdown",
        )

    async def login_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /login: pide email y password."""
        ctx = await self._context_for(update)
        if ctx.store.is_authenticated:
            await update.message.reply_text(
                f"You're already logged in as {ctx.user.email}. Use /logout to switch accounts."
            )
            return ConversationHandler.END

        await update.message.reply_text("📧 What's your email?")
        return LOGIN_EMAIL

    async def handle_email(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        context.user_data["login_email"] = update.message.text.strip()
        await update.message.reply_text("🔑 And your password?")
        return LOGIN_PASSWORD

    async def handle_password(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        password = update.message.text
        email = context.user_data.pop("login_email", "")
        chat_id = update.effective_chat.id

        # El password no queda en el historial del chat
        try:
            await update.message.delete()
        except TelegramError as e:
            logger.debug("No se pudo borrar el mensaje del password", error=str(e))

        ctx = self.sessions.get(chat_id)
        try:
            user = await ctx.login(email, password)
        except ApiError as e:
            logger.info("Login rechazado", chat_id=chat_id, status=e.status)
            await update.effective_chat.send_message(
                f"❌ {error_message(e, 'Login failed.')}\nUse /login to try again."
            )
            return ConversationHandler.END
        except REQUEST_ERRORS as e:
            logger.error("Error de red en login", chat_id=chat_id, error=str(e))
            await update.effective_chat.send_message(
                "❌ Couldn't reach HomeFit. Please try again later."
            )
            return ConversationHandler.END

        decision_path = {
            UserRole.USER: "/matches",
            UserRole.BROKER: "/dashboard",
            UserRole.ADMIN: "/admin",
        }[user.role]
        await update.effective_chat.send_message(
            f"✅ Logged in as {user.display_name}.\nNext: {decision_path}"
        )
        return ConversationHandler.END

    async def logout(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /logout."""
        ctx = await self._context_for(update)
        if not ctx.store.is_authenticated:
            await update.message.reply_text("You're not logged in.")
            return

        await ctx.logout()
        context.chat_data.clear()
        await update.message.reply_text("👋 You've been logged out.")

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Cancela la conversación en curso."""
        context.user_data.pop("login_email", None)
        dialog = context.chat_data.pop("dialog", None)
        if dialog is not None:
            dialog.close()
        await update.message.reply_text("❌ Cancelled.")
        return ConversationHandler.END


class MatchHandler(BaseHandler):
    """Listado de matches, filtros, refresco y guardados."""

    async def matches(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /matches."""
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        view = ctx.match_view
        if view.pref_id is None:
            await view.open()
        else:
            await view.fetch()
        await self._send_page(update, ctx)

    async def _send_page(self, update: Update, ctx: HomeFitContext) -> None:
        view = ctx.match_view
        message = update.effective_message

        if view.error or not view.cards:
            await message.reply_text(
                keyboards.match_summary_text(view),
                reply_markup=None if view.pref_id is None else keyboards.match_navigation_keyboard(view),
                parse_mode="Markdown",
            )
            return

        for card in view.cards:
            await message.reply_text(
                keyboards.match_card_text(card),
                reply_markup=keyboards.match_card_keyboard(card),
                parse_mode="Markdown",
            )
        await message.reply_text(
            keyboards.match_summary_text(view),
            reply_markup=keyboards.match_navigation_keyboard(view),
            parse_mode="Markdown",
        )

    async def handle_gallery(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callbacks img_next_<id> / img_back_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        _, direction, apartment_id = query.data.split("_", 2)
        card = ctx.match_view.card(apartment_id)
        if card is None:
            await query.answer("This listing is no longer on the current page.")
            return

        before = card.gallery.active_index
        if direction == "next":
            card.gallery.next()
        else:
            card.gallery.back()
        await query.answer()

        if card.gallery.active_index != before:
            await self._edit(
                query,
                keyboards.match_card_text(card),
                keyboards.match_card_keyboard(card),
            )

    async def handle_save(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback save_<id>: guardado optimista."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        apartment_id = query.data.replace("save_", "", 1)
        view = ctx.match_view
        saved = await view.toggle_save(apartment_id)

        if view.notice:
            await query.answer(view.notice, show_alert=True)
        else:
            await query.answer("❤️ Saved" if saved else "Removed from saved")

        card = view.card(apartment_id)
        if card is not None:
            try:
                await query.edit_message_reply_markup(
                    reply_markup=keyboards.match_card_keyboard(card)
                )
            except BadRequest as e:
                logger.debug("Teclado sin cambios", error=str(e))

    async def handle_page(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callbacks page_next / page_prev."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        await query.answer()
        view = ctx.match_view
        changed = await (view.next_page() if query.data == "page_next" else view.previous_page())
        if changed or view.error:
            await self._send_page(update, ctx)

    async def handle_sort(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback sort_<field>_<order>."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        _, field_name, order = query.data.split("_", 2)
        await query.answer()
        if await ctx.match_view.set_sort(SortField(field_name), SortOrder(order)):
            await self._send_page(update, ctx)
        elif ctx.match_view.error:
            await self._send_page(update, ctx)

    # -- Filtros ---------------------------------------------------------

    def _panel(self, ctx: HomeFitContext, context: ContextTypes.DEFAULT_TYPE) -> FilterPanel:
        panel = context.chat_data.get("filter_panel")
        if panel is None:
            panel = ctx.match_view.filter_panel()
            context.chat_data["filter_panel"] = panel
        return panel

    async def filters(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /filters y callback filters_open."""
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return
        if update.callback_query:
            await update.callback_query.answer()

        # Panel nuevo con los filtros activos
        panel = ctx.match_view.filter_panel()
        context.chat_data["filter_panel"] = panel
        await update.effective_message.reply_text(
            keyboards.filter_panel_text(panel),
            reply_markup=keyboards.filter_panel_keyboard(panel),
            parse_mode="Markdown",
        )

    async def handle_filter_toggle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback filter_<facet>_<index>."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        _, facet, index = query.data.split("_", 2)
        options = FACETS.get(facet, [])
        if not index.isdigit() or int(index) >= len(options):
            await query.answer()
            return

        panel = self._panel(ctx, context)
        panel.toggle(facet, options[int(index)])
        await query.answer()
        await self._edit(
            query, keyboards.filter_panel_text(panel), keyboards.filter_panel_keyboard(panel)
        )

    async def handle_price(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback price_<min>_<max>."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        _, min_price, max_price = query.data.split("_", 2)
        panel = self._panel(ctx, context)
        panel.set_price_range(int(min_price), int(max_price))
        await query.answer()
        await self._edit(
            query, keyboards.filter_panel_text(panel), keyboards.filter_panel_keyboard(panel)
        )

    async def handle_filters_apply(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        panel = self._panel(ctx, context)
        await query.answer("Filters applied")
        if ctx.match_view.pref_id is None:
            ctx.match_view.filters = panel.filters.model_copy(deep=True)
            await ctx.match_view.open()
        else:
            await panel.apply()
        context.chat_data.pop("filter_panel", None)
        await self._edit(query, keyboards.filter_panel_text(panel))
        await self._send_page(update, ctx)

    async def handle_filters_reset(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        panel = self._panel(ctx, context)
        await query.answer("Filters reset")
        if ctx.match_view.pref_id is None:
            await panel.reset()
            ctx.match_view.filters = panel.filters.model_copy(deep=True)
            await ctx.match_view.open()
        else:
            await panel.reset()
        await self._edit(
            query, keyboards.filter_panel_text(panel), keyboards.filter_panel_keyboard(panel)
        )
        await self._send_page(update, ctx)

    # -- Refresco --------------------------------------------------------

    async def refresh(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /refresh y callback refresh."""
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return

        view = ctx.match_view
        if view.pref_id is None:
            if update.callback_query:
                await update.callback_query.answer()
            await view.open()
            await self._send_page(update, ctx)
            return

        result = await view.refresh()
        if update.callback_query:
            await update.callback_query.answer(
                result.message, show_alert=not result.accepted
            )
        if not result.accepted:
            if not update.callback_query:
                await update.effective_message.reply_text(f"⏳ {result.message}")
            return

        await self._send_page(update, ctx)

    # -- Guardados -------------------------------------------------------

    async def saved(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /saved."""
        ctx = await self._guard(update, "/saved")
        if ctx is None:
            return

        cards = await ctx.saved_view.load()
        if not cards:
            await update.message.reply_text(
                "💔 You haven't saved any listings yet. Use /matches to find some."
            )
            return

        for card in cards:
            await update.message.reply_text(
                keyboards.saved_card_text(card),
                reply_markup=keyboards.saved_card_keyboard(card),
                parse_mode="Markdown",
            )

    async def handle_unsave(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback unsave_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/saved")
        if ctx is None:
            return

        apartment_id = query.data.replace("unsave_", "", 1)
        ok = await ctx.saved_view.unsave(apartment_id)
        # El mapa del listado de matches tiene que reflejar el cambio
        ctx.match_view.saved.pop(apartment_id, None)

        if ok:
            await query.answer("Removed from saved")
            await self._edit(query, "💔 Removed from your saved listings.")
        else:
            await query.answer(ctx.saved_view.notice, show_alert=True)

    async def handle_saved_gallery(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callbacks simg_next_<id> / simg_back_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/saved")
        if ctx is None:
            return

        _, direction, apartment_id = query.data.split("_", 2)
        card = ctx.saved_view.card(apartment_id)
        await query.answer()
        if card is None:
            return

        before = card.gallery.active_index
        if direction == "next":
            card.gallery.next()
        else:
            card.gallery.back()
        if card.gallery.active_index != before:
            await self._edit(
                query, keyboards.saved_card_text(card), keyboards.saved_card_keyboard(card)
            )

    async def handle_noop(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.callback_query.answer()


@dataclass
class FieldSpec:
    """Campo editable de un diálogo en el chat."""

    key: str
    label: str
    kind: str = "text"  # text, secret, date, choice, document
    choices: list[str] = field(default_factory=list)

    def display(self, value) -> str:
        if value in (None, ""):
            return "-"
        if self.kind == "secret":
            return "••••••••"
        if self.kind == "document":
            return "attached"
        if isinstance(value, date):
            return value.isoformat()
        return str(value)

    def prompt(self) -> str:
        if self.kind == "date":
            return f"📅 Send the {self.label.lower()} (YYYY-MM-DD)."
        if self.kind == "document":
            return "📎 Upload your license document (PDF or image)."
        return f"✏️ Send the new {self.label.lower()}."


DIALOG_FIELDS = {
    "contact_broker": [
        FieldSpec("name", "Name"),
        FieldSpec("contact_number", "Contact number"),
        FieldSpec("email", "Email"),
        FieldSpec("message", "Message"),
    ],
    "schedule_tour": [
        FieldSpec("name", "Name"),
        FieldSpec("contact_number", "Contact number"),
        FieldSpec("date", "Date", kind="date"),
        FieldSpec("time_slot", "Time slot", kind="choice", choices=TOUR_TIME_SLOTS),
        FieldSpec("message", "Message"),
    ],
    "edit_listing": [
        FieldSpec("title", "Title"),
        FieldSpec("price", "Price"),
        FieldSpec("bedrooms", "Bedrooms", kind="choice", choices=BEDROOM_OPTIONS),
        FieldSpec("location", "Location"),
        FieldSpec("amenities", "Amenities"),
    ],
    "signup": [
        FieldSpec("full_name", "Full name"),
        FieldSpec("email", "Email"),
        FieldSpec("password", "Password", kind="secret"),
    ],
    "profile": [
        FieldSpec("full_name", "Full name"),
        FieldSpec("bio", "Bio"),
    ],
    "preferences": [
        FieldSpec("type", "Looking to", kind="choice", choices=PREFERENCE_CHOICES["type"]),
        FieldSpec("bedrooms", "Bedrooms", kind="choice", choices=PREFERENCE_CHOICES["bedrooms"]),
        FieldSpec("price_range", "Price range", kind="choice", choices=PREFERENCE_CHOICES["price_range"]),
        FieldSpec("style", "Style", kind="choice", choices=PREFERENCE_CHOICES["style"]),
        FieldSpec("move_in_date", "Move-in date", kind="date"),
        FieldSpec("location", "Location"),
        FieldSpec("parking", "Parking", kind="choice", choices=PREFERENCE_CHOICES["parking"]),
        FieldSpec("transport", "Public transport", kind="choice", choices=PREFERENCE_CHOICES["transport"]),
        FieldSpec("amenities", "Amenities"),
    ],
}

REGISTRATION_FIELDS = [
    [
        FieldSpec("full_name", "Full name"),
        FieldSpec("email", "Email"),
        FieldSpec("password", "Password", kind="secret"),
        FieldSpec("confirm_password", "Confirm password", kind="secret"),
    ],
    [
        FieldSpec("phone", "Phone"),
        FieldSpec("license_number", "License number"),
        FieldSpec("license_document", "License document", kind="document"),
    ],
    [],
]


def dialog_fields(dialog: BaseDialog) -> list[FieldSpec]:
    if isinstance(dialog, BrokerRegistrationDialog):
        return REGISTRATION_FIELDS[dialog.step]
    return DIALOG_FIELDS.get(dialog.name, [])


class DialogHandler(BaseHandler):
    """
    Conversación genérica para los diálogos de mutación.

    El diálogo activo vive en chat_data["dialog"]; el menú muestra los
    valores cargados y un botón por campo.
    """

    TITLES = {
        "contact_broker": "Contact the broker",
        "schedule_tour": "Schedule a tour",
        "edit_listing": "Edit listing",
        "broker_registration": "Broker registration",
        "signup": "Create your account",
        "profile": "Edit profile",
        "preferences": "Your preferences",
    }

    def _find_apartment(self, ctx: HomeFitContext, apartment_id: str) -> Optional[Apartment]:
        card = ctx.match_view.card(apartment_id)
        if card is not None:
            return card.apartment
        saved = ctx.saved_view.card(apartment_id)
        return saved.apartment if saved is not None else None

    async def _show_menu(self, update: Update, dialog: BaseDialog, edit: bool = False) -> None:
        fields = dialog_fields(dialog)
        title = self.TITLES.get(dialog.name, "Form")
        if dialog.name == "contact_broker" and getattr(dialog, "broker_name", None):
            title = f"Contact {dialog.broker_name}"
        text = keyboards.dialog_text(dialog, title, fields)
        markup = keyboards.dialog_keyboard(dialog, fields)

        if edit and update.callback_query:
            await self._edit(update.callback_query, text, markup)
        else:
            await update.effective_message.reply_text(
                text, reply_markup=markup, parse_mode="Markdown"
            )

    async def _begin(self, update, context, dialog: BaseDialog):
        context.chat_data["dialog"] = dialog
        context.chat_data.pop("dialog_field", None)
        await self._show_menu(update, dialog)
        return DIALOG_MENU

    # -- Entradas --------------------------------------------------------

    async def start_contact(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback contact_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/matches")
        if ctx is None:
            return ConversationHandler.END

        apartment = self._find_apartment(ctx, query.data.replace("contact_", "", 1))
        await query.answer()
        if apartment is None:
            await query.message.reply_text("This listing is no longer available. Use /matches.")
            return ConversationHandler.END

        dialog = ctx.contact_dialog(apartment)
        dialog.open()
        return await self._begin(update, context, dialog)

    async def start_tour(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback tour_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/tours")
        if ctx is None:
            return ConversationHandler.END

        apartment = self._find_apartment(ctx, query.data.replace("tour_", "", 1))
        await query.answer()
        if apartment is None:
            await query.message.reply_text("This listing is no longer available. Use /matches.")
            return ConversationHandler.END

        dialog = ctx.tour_dialog(apartment)
        dialog.open()
        return await self._begin(update, context, dialog)

    async def start_edit(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback edit_<id> desde /listings."""
        query = update.callback_query
        ctx = await self._guard(update, "/broker/listings")
        if ctx is None:
            return ConversationHandler.END

        await query.answer()
        chat = update.effective_chat

        async def on_updated(apartment):
            await chat.send_message(
                keyboards.listing_text(apartment),
                reply_markup=keyboards.listing_keyboard(apartment),
                parse_mode="Markdown",
            )

        dialog = ctx.edit_listing_dialog(on_success=on_updated)
        if not await dialog.load(query.data.replace("edit_", "", 1)):
            await query.message.reply_text(f"❌ {dialog.notice.text}")
            return ConversationHandler.END
        return await self._begin(update, context, dialog)

    async def start_registration(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /register."""
        ctx = await self._guard(update, "/broker/register")
        if ctx is None:
            return ConversationHandler.END

        chat = update.effective_chat

        def on_close():
            if dialog.redirect_to:
                context.application.create_task(
                    chat.send_message(
                        f"➡️ Use {COMMAND_FOR_PATH['/']} once an admin approves your account."
                    )
                )

        dialog = ctx.registration_dialog(on_close=on_close)
        dialog.open()
        return await self._begin(update, context, dialog)

    async def start_signup(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /signup (solo inquilinos; los brokers usan /register)."""
        ctx = await self._guard(update, "/signup")
        if ctx is None:
            return ConversationHandler.END
        if ctx.store.is_authenticated:
            await update.message.reply_text(
                f"You're already logged in as {ctx.user.email}. Use /logout to switch accounts."
            )
            return ConversationHandler.END

        chat = update.effective_chat

        def on_close():
            if dialog.redirect_to:
                context.application.create_task(
                    chat.send_message(f"➡️ Use {COMMAND_FOR_PATH['/']} to sign in.")
                )

        dialog = ctx.signup_dialog(on_close=on_close)
        dialog.open()
        return await self._begin(update, context, dialog)

    async def start_profile(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /profile."""
        ctx = await self._guard(update, "/profile")
        if ctx is None:
            return ConversationHandler.END

        dialog = ctx.profile_dialog()
        dialog.open()
        return await self._begin(update, context, dialog)

    async def start_preferences(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /preferences: al guardar se abre el listado de la preferencia nueva."""
        ctx = await self._guard(update, "/preferences")
        if ctx is None:
            return ConversationHandler.END

        chat = update.effective_chat

        async def on_saved(preference):
            await chat.send_message("✅ Preferences saved. Use /matches to see your matches.")

        dialog = ctx.preference_dialog(on_success=on_saved)
        await dialog.load()
        return await self._begin(update, context, dialog)

    # -- Menú ------------------------------------------------------------

    def _active_dialog(self, context) -> Optional[BaseDialog]:
        dialog = context.chat_data.get("dialog")
        if dialog is None or dialog.state != DialogState.EDITING:
            return None
        return dialog

    async def handle_edit_field(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback dlg_edit_<campo>."""
        query = update.callback_query
        await query.answer()
        dialog = self._active_dialog(context)
        if dialog is None:
            return ConversationHandler.END

        key = query.data.replace("dlg_edit_", "", 1)
        field_spec = next((s for s in dialog_fields(dialog) if s.key == key), None)
        if field_spec is None:
            return DIALOG_MENU

        context.chat_data["dialog_field"] = key
        if field_spec.kind == "choice":
            await query.message.reply_text(
                f"Choose the {field_spec.label.lower()}:",
                reply_markup=keyboards.choice_keyboard(field_spec.choices),
            )
            return DIALOG_MENU

        await query.message.reply_text(field_spec.prompt())
        return DIALOG_INPUT

    async def handle_pick(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback dlg_pick_<índice> para campos con opciones."""
        query = update.callback_query
        await query.answer()
        dialog = self._active_dialog(context)
        key = context.chat_data.pop("dialog_field", None)
        if dialog is None or key is None:
            return DIALOG_MENU

        field_spec = next((s for s in dialog_fields(dialog) if s.key == key), None)
        index = int(query.data.replace("dlg_pick_", "", 1))
        if field_spec is not None and index < len(field_spec.choices):
            dialog.set_field(key, field_spec.choices[index])
        await self._edit(query, f"✔️ {field_spec.label if field_spec else key}: {keyboards.md(dialog.values.get(key))}")
        await self._show_menu(update, dialog)
        return DIALOG_MENU

    async def handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Valor de texto para el campo en edición."""
        dialog = self._active_dialog(context)
        key = context.chat_data.pop("dialog_field", None)
        if dialog is None or key is None:
            return DIALOG_MENU

        field_spec = next((s for s in dialog_fields(dialog) if s.key == key), None)
        value = update.message.text.strip()
        if field_spec is not None and field_spec.kind == "secret":
            try:
                await update.message.delete()
            except TelegramError as e:
                logger.debug("No se pudo borrar el mensaje", error=str(e))
            value = update.message.text

        dialog.set_field(key, value)
        await self._show_menu(update, dialog)
        return DIALOG_MENU

    async def handle_document(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Documento de licencia para el registro de broker."""
        dialog = self._active_dialog(context)
        key = context.chat_data.pop("dialog_field", None)
        if not isinstance(dialog, BrokerRegistrationDialog) or key != "license_document":
            await update.message.reply_text("I wasn't expecting a file right now.")
            return DIALOG_MENU

        document = update.message.document
        telegram_file = await document.get_file()
        content = await telegram_file.download_as_bytearray()
        dialog.attach_license(bytes(content), document.file_name or "license")
        await self._show_menu(update, dialog)
        return DIALOG_MENU

    async def handle_next(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        dialog = self._active_dialog(context)
        if not isinstance(dialog, BrokerRegistrationDialog):
            return DIALOG_MENU
        dialog.next()
        await self._show_menu(update, dialog, edit=True)
        return DIALOG_MENU

    async def handle_back(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        dialog = self._active_dialog(context)
        if not isinstance(dialog, BrokerRegistrationDialog):
            return DIALOG_MENU
        dialog.back()
        await self._show_menu(update, dialog, edit=True)
        return DIALOG_MENU

    async def handle_submit(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback dlg_send: un único request por submit aceptado."""
        query = update.callback_query
        await query.answer()
        dialog = self._active_dialog(context)
        if dialog is None:
            return ConversationHandler.END

        ok = await dialog.submit()
        await self._show_menu(update, dialog, edit=True)
        if not ok:
            return DIALOG_MENU

        context.chat_data.pop("dialog", None)
        return ConversationHandler.END

    async def handle_cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        await query.answer()
        dialog = context.chat_data.pop("dialog", None)
        if dialog is not None:
            dialog.close()
        await self._edit(query, "❌ Cancelled.")
        return ConversationHandler.END


class TourHandler(BaseHandler):
    """Visitas: vista de usuario y de broker."""

    async def tours(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /tours (la ruta depende del rol)."""
        ctx = await self._context_for(update)
        is_broker = ctx.user is not None and ctx.user.is_broker
        ctx = await self._guard(update, "/broker/tours" if is_broker else "/tours")
        if ctx is None:
            return

        try:
            tours = await (ctx.tours.list_broker_tours() if is_broker else ctx.tours.list_user_tours())
        except REQUEST_ERRORS as e:
            logger.error("Error obteniendo visitas", error=str(e))
            await update.message.reply_text("❌ Failed to load tours. Please try again later.")
            return

        if not tours:
            await update.message.reply_text("📅 No tours scheduled yet.")
            return

        for tour in tours:
            markup = (
                keyboards.broker_tour_keyboard(tour) if is_broker
                else keyboards.user_tour_keyboard(tour)
            )
            await update.message.reply_text(
                keyboards.tour_text(tour), reply_markup=markup, parse_mode="Markdown"
            )

    async def handle_cancel_tour(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback tourcancel_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/tours")
        if ctx is None:
            return

        tour_id = query.data.replace("tourcancel_", "", 1)
        try:
            await ctx.tours.cancel(tour_id)
        except REQUEST_ERRORS as e:
            await query.answer(error_message(e, "Failed to cancel tour."), show_alert=True)
            return
        await query.answer("Tour canceled")
        await self._edit(query, "✖️ Tour canceled.")

    async def handle_tour_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback tourstatus_<status>_<id> (broker)."""
        query = update.callback_query
        ctx = await self._guard(update, "/broker/tours")
        if ctx is None:
            return

        _, status, tour_id = query.data.split("_", 2)
        try:
            await ctx.tours.update_status(tour_id, status)
        except REQUEST_ERRORS as e:
            await query.answer(error_message(e, "Failed to update tour."), show_alert=True)
            return
        await query.answer("Tour updated")
        await self._edit(query, f"📅 Tour marked as *{keyboards.md(status)}*.")


class BrokerHandler(BaseHandler):
    """Dashboard, listings y consultas del broker."""

    async def dashboard(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /dashboard."""
        ctx = await self._guard(update, "/broker/dashboard")
        if ctx is None:
            return

        user = ctx.user
        if not user.is_approved:
            await update.message.reply_text(
                f"⏳ Hi {user.display_name}, your broker account is *pending approval*.\n\n"
                "An admin will review your license soon. "
                "I'll keep checking every few minutes.",
                reply_markup=InlineKeyboardMarkup([[
                    InlineKeyboardButton("🔄 Refresh status", callback_data="broker_refresh"),
                ]]),
                parse_mode="Markdown",
            )
            return

        try:
            stats = await ctx.brokers.get_stats()
        except REQUEST_ERRORS as e:
            logger.error("Error obteniendo stats de broker", error=str(e))
            await update.message.reply_text("❌ Failed to load your dashboard.")
            return

        await update.message.reply_text(
            f"📊 *Broker dashboard*\n\n"
            f"🏠 Listings: {stats.total_listings} ({stats.active_listings} active)\n"
            f"✉️ New inquiries: {stats.new_inquiries}\n"
            f"⏳ Pending approvals: {stats.pending_approvals}\n\n"
            "/listings • /inquiries • /tours",
            parse_mode="Markdown",
        )

    async def handle_refresh_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callback broker_refresh."""
        query = update.callback_query
        ctx = await self._guard(update, "/broker/dashboard")
        if ctx is None:
            return

        if not await ctx.bootstrap.refresh_broker_status():
            await query.answer("Failed to refresh status", show_alert=True)
            return

        await query.answer("Status updated successfully")
        if ctx.user.is_approved:
            await self._edit(query, "✅ Your account has been approved! Use /dashboard.")

    async def listings(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /listings."""
        ctx = await self._guard(update, "/broker/listings")
        if ctx is None:
            return

        try:
            listings = await ctx.brokers.list_listings()
        except REQUEST_ERRORS as e:
            logger.error("Error obteniendo listings", error=str(e))
            await update.message.reply_text("❌ Failed to load your listings.")
            return

        if not listings:
            await update.message.reply_text("🏠 You don't have any listings yet.")
            return

        for apartment in listings:
            await update.message.reply_text(
                keyboards.listing_text(apartment),
                reply_markup=keyboards.listing_keyboard(apartment),
                parse_mode="Markdown",
            )

    async def handle_listing_action(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callbacks listing_toggle_/listing_delete_/listing_confirm_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/broker/listings")
        if ctx is None:
            return

        _, action, apartment_id = query.data.split("_", 2)

        if action == "delete":
            await query.answer()
            await query.edit_message_reply_markup(
                reply_markup=keyboards.confirm_delete_keyboard(apartment_id)
            )
            return

        try:
            if action == "confirm":
                await ctx.brokers.delete_listing(apartment_id)
                await query.answer("Listing deleted")
                await self._edit(query, "🗑 Listing deleted.")
                return

            apartment = await ctx.brokers.toggle_listing_active(apartment_id)
            if apartment is None:
                apartment = await ctx.brokers.get_listing(apartment_id)
        except REQUEST_ERRORS as e:
            await query.answer(error_message(e, "Action failed. Please try again."), show_alert=True)
            return

        await query.answer("Listing updated")
        await self._edit(
            query, keyboards.listing_text(apartment), keyboards.listing_keyboard(apartment)
        )

    async def inquiries(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /inquiries."""
        ctx = await self._guard(update, "/broker/inquiries")
        if ctx is None:
            return

        try:
            inquiries = await ctx.brokers.list_inquiries()
        except REQUEST_ERRORS as e:
            logger.error("Error obteniendo consultas", error=str(e))
            await update.message.reply_text("❌ Failed to load inquiries.")
            return

        if not inquiries:
            await update.message.reply_text("✉️ No inquiries yet.")
            return

        for inquiry in inquiries:
            await update.message.reply_text(
                keyboards.inquiry_text(inquiry), parse_mode="Markdown"
            )

    async def reply(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /reply <inquiry_id> <mensaje>."""
        ctx = await self._guard(update, "/broker/inquiries")
        if ctx is None:
            return

        if len(context.args) < 2:
            await update.message.reply_text("Usage: /reply <inquiry_id> <message>")
            return

        inquiry_id, message = context.args[0], " ".join(context.args[1:])
        try:
            await ctx.brokers.reply_to_inquiry(inquiry_id, message)
        except REQUEST_ERRORS as e:
            await update.message.reply_text(f"❌ {error_message(e, 'Failed to send reply.')}")
            return
        await update.message.reply_text("✅ Reply sent successfully.")


class AdminHandler(BaseHandler):
    """Moderación de brokers."""

    async def dashboard(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /admin."""
        ctx = await self._guard(update, "/admin/dashboard")
        if ctx is None:
            return

        try:
            pending, brokers, users = await asyncio.gather(
                ctx.admin.list_pending_brokers(),
                ctx.admin.list_brokers(),
                ctx.admin.list_users(),
            )
        except REQUEST_ERRORS as e:
            logger.error("Error obteniendo datos de admin", error=str(e))
            await update.message.reply_text("❌ Failed to load the admin dashboard.")
            return

        await update.message.reply_text(
            f"🛡 *Admin dashboard*\n\n"
            f"👥 Users: {len(users)}\n"
            f"🏢 Brokers: {len(brokers)}\n"
            f"⏳ Pending approval: {len(pending)}\n\n"
            "/pending • /brokers",
            parse_mode="Markdown",
        )

    async def _send_brokers(self, update: Update, brokers, empty_text: str) -> None:
        if not brokers:
            await update.message.reply_text(empty_text)
            return
        for broker in brokers:
            await update.message.reply_text(
                keyboards.broker_user_text(broker),
                reply_markup=keyboards.broker_admin_keyboard(broker),
                parse_mode="Markdown",
            )

    async def pending(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /pending."""
        ctx = await self._guard(update, "/admin/pending-brokers")
        if ctx is None:
            return
        try:
            brokers = await ctx.admin.list_pending_brokers()
        except REQUEST_ERRORS as e:
            await update.message.reply_text(f"❌ {error_message(e, 'Failed to fetch pending brokers.')}")
            return
        await self._send_brokers(update, brokers, "✅ No brokers waiting for approval.")

    async def brokers(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Comando /brokers."""
        ctx = await self._guard(update, "/admin/brokers")
        if ctx is None:
            return
        try:
            brokers = await ctx.admin.list_brokers()
        except REQUEST_ERRORS as e:
            await update.message.reply_text(f"❌ {error_message(e, 'Failed to fetch brokers.')}")
            return
        await self._send_brokers(update, brokers, "No brokers registered yet.")

    async def handle_moderation(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Callbacks admin_approve_<id> / admin_revoke_<id>."""
        query = update.callback_query
        ctx = await self._guard(update, "/admin/brokers")
        if ctx is None:
            return

        _, action, broker_id = query.data.split("_", 2)
        try:
            if action == "approve":
                await ctx.admin.approve_broker(broker_id)
            else:
                await ctx.admin.revoke_broker(broker_id)
        except REQUEST_ERRORS as e:
            await query.answer(error_message(e, "Action failed."), show_alert=True)
            return

        approved = action == "approve"
        await query.answer("Broker approved" if approved else "Approval revoked")
        await self._edit(
            query,
            "✅ Broker approved successfully." if approved else "🚫 Broker approval revoked.",
        )
