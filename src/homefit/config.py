"""
Configuración centralizada del cliente.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> homefit/ -> src/ -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend HomeFit
    homefit_api_url: str = Field(
        "http://localhost:4000", description="Origen del backend (sin /api)"
    )
    request_timeout_seconds: float = Field(
        15.0, gt=0, description="Timeout total por request (segundos)"
    )

    # Telegram
    telegram_bot_token: Optional[str] = Field(
        None, description="Token del bot de Telegram"
    )
    telegram_webhook_url: Optional[str] = Field(
        None, description="URL pública para webhook (si no se define, se usa polling)"
    )
    telegram_webhook_path: str = Field("telegram", description="Path del webhook")
    telegram_webhook_listen: str = Field("0.0.0.0", description="Host de escucha")
    telegram_webhook_port: int = Field(10000, description="Puerto de escucha")

    # Listado de matches
    matches_page_size: int = Field(4, ge=1, description="Matches por página")
    refresh_cooldown_seconds: float = Field(
        30.0, ge=0, description="Espera mínima entre refrescos manuales"
    )

    # Polling de aprobación de brokers
    broker_poll_interval_seconds: float = Field(
        300.0, gt=0, description="Intervalo de polling mientras el broker no está aprobado"
    )

    # Cierre automático de diálogos
    contact_close_delay_seconds: float = Field(1.0, ge=0)
    tour_close_delay_seconds: float = Field(1.0, ge=0)
    registration_close_delay_seconds: float = Field(5.0, ge=0)
    signup_close_delay_seconds: float = Field(2.0, ge=0)

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Constantes del sistema
DEFAULT_PRICE_RANGE = (1000, 3000)

BEDROOM_OPTIONS = ["Studio", "1", "2", "3+"]

BATHROOM_OPTIONS = ["1", "2", "3+"]

NEIGHBORHOOD_OPTIONS = ["Downtown", "Midtown", "West End", "East Side"]

AMENITY_OPTIONS = [
    "In-unit Washer/Dryer",
    "Gym",
    "Pool",
    "Parking",
    "Balcony",
    "Doorman",
    "Elevator",
    "Pet Friendly",
]

# Cuestionario de preferencias
PROPERTY_TYPE_OPTIONS = ["Rent", "Buy"]

PREFERENCE_BEDROOM_OPTIONS = ["1", "2", "3", "4+"]

PRICE_RANGE_OPTIONS = ["$0-$1,000", "$1,000-$2,000", "$2,000-$3,000", "$3,000+"]

STYLE_OPTIONS = ["Modern", "Traditional", "Loft"]

PARKING_OPTIONS = ["Yes", "No"]

TRANSPORT_OPTIONS = ["Close", "Average", "Far"]

PREFERENCE_AMENITY_OPTIONS = [
    "Gym",
    "Swimming Pool",
    "Parking Space",
    "Pet-Friendly",
    "Balcony",
    "In-Unit Laundry",
    "Doorman",
    "Elevator",
    "Furnished",
    "Air Conditioning",
    "Dishwasher",
]

TOUR_TIME_SLOTS = [
    "09:00 AM - 10:00 AM",
    "10:00 AM - 11:00 AM",
    "11:00 AM - 12:00 PM",
    "12:00 PM - 01:00 PM",
    "01:00 PM - 02:00 PM",
    "02:00 PM - 03:00 PM",
    "03:00 PM - 04:00 PM",
    "04:00 PM - 05:00 PM",
    "05:00 PM - 06:00 PM",
]

# Clave de storage usada solo como señal de cambio de login
AUTH_TOKEN_KEY = "authToken"
