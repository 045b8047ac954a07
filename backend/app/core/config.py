"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Stock Sync API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (postgresql+asyncpg in deployments, sqlite+aiosqlite for tests)
    database_url: str = "postgresql+asyncpg://localhost:5432/stock_sync"
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_echo: bool = False

    # Security
    encryption_key: str = Field(min_length=32)

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="https://admin.shopify.com", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Shopify app credentials
    shopify_api_key: Optional[str] = None
    shopify_api_secret: Optional[str] = None
    shopify_scopes: str = "read_products,write_products,read_inventory,write_inventory"
    shopify_app_handle: str = "stock-sync"
    shopify_app_url: Optional[str] = None
    shopify_api_version: str = "2024-07"

    # Outbound Shopify calls
    shopify_http_timeout: float = 30.0
    shopify_rate_limit_delay: float = 2.0  # fixed wait after a 429
    shopify_rate_limit_retries: int = 3

    # Per-store Shopify client pool
    client_pool_max_size: int = 100

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
