"""
Configuration management for StockFlow
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "StockFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./stockflow.db"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:5500",
        "http://127.0.0.1:5500",
        "http://localhost:3000",
    ]
    CORS_ORIGIN_REGEX: str = r"https://.*\.(vercel|up\.railway)\.app"

    # Ledger
    RECENT_TRANSACTIONS_LIMIT: int = 50
    ALLOW_NEGATIVE_STOCK: bool = True  # usage may drive quantity below zero
    AUTO_EVALUATE_ALERTS: bool = True  # re-check alerts after every mutation
    SYSTEM_USER: str = "System"

    # Material defaults
    DEFAULT_CATEGORY: str = "Raw Material"
    DEFAULT_SUPPLIER: str = "General Supplies"

    # Startup
    SEED_SAMPLE_DATA: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
