# stockbridge/core/config.py

import os
from functools import lru_cache
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # MercadoLibre OAuth (refresh token rotates on every refresh)
    ML_ACCESS_TOKEN: Optional[str] = None
    ML_REFRESH_TOKEN: Optional[str] = None
    ML_CLIENT_ID: Optional[str] = None
    ML_CLIENT_SECRET: Optional[str] = None
    ML_API_BASE_URL: str = "https://api.mercadolibre.com"
    ML_TOKEN_REFRESH_TIMEOUT: Optional[float] = None  # None = refresh call is not bounded
    ML_REQUEST_TIMEOUT: float = 20.0

    # TiendaNube API
    TN_ACCESS_TOKEN: Optional[str] = None
    TN_STORE_ID: Optional[str] = None
    TN_CLIENT_ID: Optional[str] = None
    TN_CLIENT_SECRET: Optional[str] = None
    TN_WEBHOOK_SECRET: Optional[str] = None
    TN_REDIRECT_URI: Optional[str] = None
    TN_AUTH_BASE_URL: str = "https://www.tiendanube.com/apps"
    TN_API_BASE_URL: str = "https://api.tiendanube.com/v1"
    TN_USER_AGENT: str = "StockBridge (stock@example.com)"
    TN_REQUEST_TIMEOUT: float = 20.0

    # Propagation / webhook processing
    PUSH_CONCURRENCY: Optional[int] = 8  # None = unbounded fan-out
    WEBHOOK_WORKERS: int = 4
    WEBHOOK_QUEUE_SIZE: int = 500
    WEBHOOK_FAILURE_HISTORY: int = 100

    # Scheduled catalog sync
    ENABLE_CRON: bool = False
    ML_SYNC_CRON: str = "0 * * * *"
    TN_SYNC_CRON: str = "30 */6 * * *"

    # Basic Auth
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    def missing_platform_credentials(self) -> list[str]:
        """Names of platform settings that are empty."""
        required = {
            "ML_ACCESS_TOKEN": self.ML_ACCESS_TOKEN,
            "ML_REFRESH_TOKEN": self.ML_REFRESH_TOKEN,
            "ML_CLIENT_ID": self.ML_CLIENT_ID,
            "ML_CLIENT_SECRET": self.ML_CLIENT_SECRET,
            "TN_ACCESS_TOKEN": self.TN_ACCESS_TOKEN,
            "TN_STORE_ID": self.TN_STORE_ID,
        }
        return [name for name, value in required.items() if not value]


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
