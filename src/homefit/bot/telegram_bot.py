"""
Bot principal de Telegram para HomeFit.

Registra conversaciones y callbacks; cada chat opera sobre su propio
HomeFitContext.
"""

from typing import Optional

import structlog
from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from homefit.config import get_settings
from homefit.bot.handlers import (
    DIALOG_INPUT,
    DIALOG_MENU,
    LOGIN_EMAIL,
    LOGIN_PASSWORD,
    AdminHandler,
    BrokerHandler,
    ChatSessions,
    DialogHandler,
    MatchHandler,
    SessionHandler,
    TourHandler,
)

logger = structlog.get_logger()


class HomeFitBot:
    """
    Bot principal de HomeFit.

    Responsabilidades:
    - Manejar comandos y callbacks de Telegram
    - Mantener un contexto de sesión por chat
    - Liberar sesiones HTTP al apagarse
    """

    def __init__(self, token: Optional[str] = None, sessions: Optional[ChatSessions] = None):
        settings = get_settings()
        self.token = token or settings.telegram_bot_token
        self.application: Optional[Application] = None

        self.sessions = sessions or ChatSessions()

        # Handlers
        self.session = SessionHandler(self.sessions)
        self.matches = MatchHandler(self.sessions)
        self.dialogs = DialogHandler(self.sessions)
        self.tours = TourHandler(self.sessions)
        self.brokers = BrokerHandler(self.sessions)
        self.admin = AdminHandler(self.sessions)

    def setup(self, use_webhook: bool = False) -> Application:
        """Configura la aplicación de Telegram."""
        if not self.token:
            raise ValueError("TELEGRAM_BOT_TOKEN no configurado")

        builder = Application.builder().token(self.token).post_shutdown(self._shutdown)
        if use_webhook:
            builder = builder.updater(None)
        self.application = builder.build()

        login_conv = ConversationHandler(
            entry_points=[CommandHandler("login", self.session.login_start)],
            states={
                LOGIN_EMAIL: [
                    MessageHandler(filters.TEXT & ~filters.COMMAND, self.session.handle_email),
                ],
                LOGIN_PASSWORD: [
                    MessageHandler(filters.TEXT & ~filters.COMMAND, self.session.handle_password),
                ],
            },
            fallbacks=[CommandHandler("cancel", self.session.cancel)],
            allow_reentry=True,
        )

        dialog_conv = ConversationHandler(
            entry_points=[
                CallbackQueryHandler(self.dialogs.start_contact, pattern=r"^contact_"),
                CallbackQueryHandler(self.dialogs.start_tour, pattern=r"^tour_"),
                CallbackQueryHandler(self.dialogs.start_edit, pattern=r"^edit_"),
                CommandHandler("register", self.dialogs.start_registration),
                CommandHandler("signup", self.dialogs.start_signup),
                CommandHandler("profile", self.dialogs.start_profile),
                CommandHandler("preferences", self.dialogs.start_preferences),
            ],
            states={
                DIALOG_MENU: [
                    CallbackQueryHandler(self.dialogs.handle_edit_field, pattern=r"^dlg_edit_"),
                    CallbackQueryHandler(self.dialogs.handle_pick, pattern=r"^dlg_pick_\d+$"),
                    CallbackQueryHandler(self.dialogs.handle_next, pattern=r"^dlg_next$"),
                    CallbackQueryHandler(self.dialogs.handle_back, pattern=r"^dlg_back$"),
                    CallbackQueryHandler(self.dialogs.handle_submit, pattern=r"^dlg_send$"),
                    CallbackQueryHandler(self.dialogs.handle_cancel, pattern=r"^dlg_cancel$"),
                ],
                DIALOG_INPUT: [
                    MessageHandler(filters.TEXT & ~filters.COMMAND, self.dialogs.handle_text),
                    MessageHandler(filters.Document.ALL, self.dialogs.handle_document),
                    CallbackQueryHandler(self.dialogs.handle_cancel, pattern=r"^dlg_cancel$"),
                ],
            },
            fallbacks=[CommandHandler("cancel", self.session.cancel)],
            allow_reentry=True,
        )

        self.application.add_handler(login_conv)
        self.application.add_handler(dialog_conv)

        # Comandos
        commands = {
            "start": self.session.start,
            "help": self.session.help,
            "logout": self.session.logout,
            "matches": self.matches.matches,
            "filters": self.matches.filters,
            "refresh": self.matches.refresh,
            "saved": self.matches.saved,
            "tours": self.tours.tours,
            "dashboard": self.brokers.dashboard,
            "listings": self.brokers.listings,
            "inquiries": self.brokers.inquiries,
            "reply": self.brokers.reply,
            "admin": self.admin.dashboard,
            "pending": self.admin.pending,
            "brokers": self.admin.brokers,
        }
        for name, callback in commands.items():
            self.application.add_handler(CommandHandler(name, callback))

        # Callbacks (siempre activos)
        callbacks = [
            (self.matches.handle_gallery, r"^img_(next|back)_"),
            (self.matches.handle_save, r"^save_"),
            (self.matches.handle_page, r"^page_(next|prev)$"),
            (self.matches.handle_sort, r"^sort_"),
            (self.matches.filters, r"^filters_open$"),
            (self.matches.handle_filter_toggle, r"^filter_"),
            (self.matches.handle_price, r"^price_\d+_\d+$"),
            (self.matches.handle_filters_apply, r"^filters_apply$"),
            (self.matches.handle_filters_reset, r"^filters_reset$"),
            (self.matches.refresh, r"^refresh$"),
            (self.matches.handle_unsave, r"^unsave_"),
            (self.matches.handle_saved_gallery, r"^simg_(next|back)_"),
            (self.matches.handle_noop, r"^noop$"),
            (self.tours.handle_cancel_tour, r"^tourcancel_"),
            (self.tours.handle_tour_status, r"^tourstatus_"),
            (self.brokers.handle_refresh_status, r"^broker_refresh$"),
            (self.brokers.handle_listing_action, r"^listing_(toggle|delete|confirm)_"),
            (self.admin.handle_moderation, r"^admin_(approve|revoke)_"),
        ]
        for callback, pattern in callbacks:
            self.application.add_handler(CallbackQueryHandler(callback, pattern=pattern))

        # Mensaje por defecto (fuera de conversaciones)
        self.application.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self._default_message)
        )

        logger.info("Bot de Telegram configurado")
        return self.application

    def run(self):
        """Inicia el bot en modo polling."""
        if not self.application:
            self.setup()

        logger.info("Iniciando bot de Telegram...")
        self.application.run_polling(allowed_updates=Update.ALL_TYPES)

    async def _shutdown(self, application: Application) -> None:
        await self.sessions.close_all()

    async def _default_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ):
        await update.message.reply_text(
            "🤔 I didn't get that. Use /help to see what I can do."
        )
