"""
Bot de Telegram para HomeFit.

Provee interfaz conversacional para:
- Login y sesión por chat
- Matches, filtros y guardados
- Diálogos de contacto, visitas y registro de broker
- Paneles de broker y admin
"""

from homefit.bot.telegram_bot import HomeFitBot
from homefit.bot.handlers import ChatSessions, FieldSpec

__all__ = [
    "HomeFitBot",
    "ChatSessions",
    "FieldSpec",
]
