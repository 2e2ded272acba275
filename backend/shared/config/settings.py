"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend order service (sole source of truth for pricing and loyalty)
    backend_api_url: str = "http://localhost:8080/api"
    backend_timeout_seconds: float = 10.0

    # Circuit breaker around the backend.
    # Opens after N consecutive transport failures, probes again after the timeout.
    backend_breaker_failure_threshold: int = 5
    backend_breaker_success_threshold: int = 1
    backend_breaker_timeout_seconds: float = 15.0

    # Fallback loyalty rules, used only when /customers/loyalty-config is unreachable.
    # Kept conservative: these match the backend's published defaults.
    fallback_points_per_euro: int = 1
    fallback_redemption_step: int = 100
    fallback_discount_per_redemption: Decimal = Decimal("5.00")
    fallback_auto_discount_rate: Decimal = Decimal("5")
    fallback_auto_discount_threshold: Decimal = Decimal("20.00")

    # Receipt header / footer
    shop_name: str = "Pizzeria ESGI"
    shop_address: str = "12 Rue de la Pizza, PARIS"
    shop_phone: str = "01 23 45 67 89"
    ticket_footer: str = "Merci de votre visite !"
    currency_symbol: str = "€"

    # Terminal API
    pos_api_port: int = 8000
    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    def validate_production_settings(self) -> list[str]:
        """
        Validate that the configuration is safe for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.backend_api_url.startswith("https://"):
                errors.append("BACKEND_API_URL must use https:// in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        if self.fallback_redemption_step <= 0:
            errors.append("FALLBACK_REDEMPTION_STEP must be a positive integer")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
