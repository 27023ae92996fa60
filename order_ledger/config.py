"""
Configuration settings for the order ledger service
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ORDER_LEDGER_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # API Configuration
    APP_TITLE: str = "Order Ledger"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Demo data loaded into the in-memory repository on startup
    SEED_DEMO_DATA: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
