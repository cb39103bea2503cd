from functools import lru_cache

from pydantic import EmailStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Security
    secret_key: str = "changeme"  # override in .env
    access_token_expire_minutes: int = 60

    # Database
    database_url: str

    # Redis
    redis_url: str | None = None
    stats_cache_ttl_seconds: int = 60

    # Hospital details printed on discharge documents
    hospital_name: str = "Hospital"
    hospital_address: str | None = None
    hospital_phone: str | None = None

    # Billing fallbacks
    default_bed_daily_rate: int = 800
    default_consultation_fee: int = 500

    # Bootstrap admin (scripts/setup_db.py)
    admin_email: EmailStr | None = None
    admin_password: str | None = None

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
