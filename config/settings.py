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
    Every field has a default so the core runs rule-only out of the box.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # GENERATIVE PARSER
    # ===================
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key (enables the generative parser)"
    )
    generative_parser_disabled: bool = Field(
        default=False,
        description="Force the rule-based parser even when a key is configured"
    )
    generative_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used for command parsing"
    )
    generative_max_tokens: int = Field(
        default=512,
        ge=64,
        le=4096,
        description="Maximum tokens for the parser response"
    )
    generative_timeout_seconds: float = Field(
        default=8.0,
        ge=1,
        le=60,
        description="Upper bound on a single generator call"
    )
    rule_preferred_locales: list[str] = Field(
        default=["hi", "es"],
        description="Locale prefixes that always use the rule parser"
    )

    # ===================
    # CONFIRMATIONS
    # ===================
    confirmation_ttl_minutes: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Lifetime of brand selection and substitute tokens"
    )
    brand_selection_max_options: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum brand options offered per proposal"
    )
    substitute_max_options: int = Field(
        default=12,
        ge=1,
        le=50,
        description="Maximum substitute options offered per proposal"
    )

    # ===================
    # CATALOG
    # ===================
    catalog_path: Optional[str] = Field(
        None,
        description="JSON file loaded into the catalog snapshot on startup"
    )
    validate_sale_prices: bool = Field(
        default=True,
        description="Reject on-sale entries whose sale price is not below list price"
    )

    # ===================
    # SUGGESTIONS
    # ===================
    suggestion_max_per_group: int = Field(
        default=6,
        ge=1,
        le=50,
        description="Maximum tips per suggestion group"
    )
    seasonal_region: str = Field(
        default="US",
        description="Region named in the seasonal prompt"
    )
    seasonal_cache_hours: float = Field(
        default=6,
        ge=0,
        le=168,
        description="How long generated seasonal tips are reused"
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

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def generative_configured(self) -> bool:
        """Check if the generative parser can be used."""
        return bool(self.anthropic_api_key) and not self.generative_parser_disabled


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
