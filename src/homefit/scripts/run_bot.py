"""
Script para ejecutar el bot de Telegram.

Uso:
    python -m homefit.scripts.run_bot
"""

import asyncio
import logging
import os
import sys

import structlog
from aiohttp import web
from telegram import Update

from homefit.bot import HomeFitBot
from homefit.config import get_settings


def configure_logging(level: str) -> None:
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


async def run_webhook(bot: HomeFitBot, base_url: str, path: str, listen: str, port: int):
    application = bot.setup(use_webhook=True)

    webhook_path = f"/{path.lstrip('/')}"
    webhook_url = f"{base_url.rstrip('/')}{webhook_path}"

    await application.bot.set_webhook(
        url=webhook_url,
        allowed_updates=Update.ALL_TYPES,
    )

    app = web.Application()

    async def handle_update(request: web.Request) -> web.Response:
        update = Update.de_json(data=await request.json(), bot=application.bot)
        await application.update_queue.put(update)
        return web.Response(text="ok")

    async def health(_: web.Request) -> web.Response:
        return web.Response(text="ok")

    app.router.add_post(webhook_path, handle_update)
    app.router.add_get("/health", health)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=listen, port=port)

    try:
        async with application:
            await application.start()
            await site.start()
            logger.info(
                "Webhook activo",
                webhook_url=webhook_url,
                health_path="/health",
                listen=listen,
                port=port,
            )
            try:
                await asyncio.Event().wait()
            finally:
                await application.stop()
    finally:
        await bot.sessions.close_all()
        await runner.cleanup()


def main():
    """Entry point del bot."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Iniciando bot de Telegram HomeFit...", api_url=settings.homefit_api_url)

    try:
        bot = HomeFitBot()
        if settings.telegram_webhook_url:
            port = int(os.getenv("PORT", settings.telegram_webhook_port))
            asyncio.run(
                run_webhook(
                    bot=bot,
                    base_url=settings.telegram_webhook_url,
                    path=settings.telegram_webhook_path,
                    listen=settings.telegram_webhook_listen,
                    port=port,
                )
            )
        else:
            bot.run()
    except KeyboardInterrupt:
        logger.info("Bot detenido por usuario")
        sys.exit(0)
    except Exception as e:
        logger.error("Error fatal en bot", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
