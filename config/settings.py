"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # IMPORT PIPELINE
    # ===================
    import_batch_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Rows processed per batch (bounds memory, one barcode lookup per batch)"
    )
    import_heartbeat_timeout_seconds: int = Field(
        default=120,
        ge=5,
        le=3600,
        description="Heartbeat age after which a running import is treated as cancelled"
    )
    mapping_cache_ttl_minutes: int = Field(
        default=60,
        ge=1,
        le=10080,
        description="How long a saved column mapping is offered for the same headers"
    )

    # ===================
    # VARIANT DEFAULTS
    # ===================
    default_variant_width: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Width (cm) used when a variant has no width or width 0"
    )
    default_variant_drop: int = Field(
        default=160,
        ge=1,
        le=1000,
        description="Drop (cm) used when a variant has no drop"
    )

    # ===================
    # PRICING
    # ===================
    vat_rate: float = Field(
        default=0.20,
        ge=0,
        le=1,
        description="VAT rate applied to VAT-inclusive retail prices"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
