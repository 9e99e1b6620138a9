"""
Configuration management.
Simple .env based config for a single-store deployment.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Security
    session_secret: str = "change-me-in-production-use-random-string"
    admin_password_hash: str = ""  # bcrypt hash
    session_cookie_secure: bool = False  # True behind HTTPS

    # Database
    database_path: str = "./data/offers.db"

    # Shopify store
    shopify_domain: str = ""  # e.g. "mystore.myshopify.com"
    shopify_access_token: str = ""  # Admin API token (shpat_...)
    shopify_api_secret: str = ""  # used to verify webhook HMACs
    api_delay_seconds: float = 0.0  # pause between item mutations

    # Offers
    max_upload_bytes: int = 5_000_000
    sync_claim_timeout_minutes: int = 30

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
