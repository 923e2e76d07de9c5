"""
Application configuration

Environment-level settings only. The shipping document itself (box catalog,
sizing model, packing materials, origins) lives in
shipping_engine.schemas.shipping_config and is passed explicitly to the
Packer and ShippingService.
"""
import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        frozen=True,
        extra="ignore",
    )

    # App
    APP_NAME: str = "Shipping Engine"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Shipping document location (JSON). Empty = built-in defaults.
    SHIPPING_CONFIG_PATH: str = "./config/shipping.json"

    # EasyPost rate source. Empty key = mock rates (local development)
    EASYPOST_API_KEY: str = ""
    EASYPOST_API_BASE: str = "https://api.easypost.com/v2"
    EASYPOST_TIMEOUT_SECONDS: float = 30.0

    # Optional database holding shipping config, box catalog and carrier accounts
    DATABASE_URL: Optional[str] = None

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if not v:
            return "INFO"
        v = str(v).upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")
        return v

    @field_validator("EASYPOST_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("EASYPOST_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v):
        """Convert postgres:// URLs to the asyncpg driver form."""
        if not v:
            return None
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def use_mock_rates(self) -> bool:
        return not self.EASYPOST_API_KEY


settings = Settings()
