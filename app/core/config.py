from decimal import Decimal
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Offer Negotiation Engine"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    default_page_size: int = 10
    max_page_size: int = 100

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── NEGOTIATION ───────────
    counter_offer_limit: int = 10
    min_negotiable_price: Decimal = Decimal("0.01")
    allocation_tolerance: Decimal = Decimal("0.01")

    # ─────────── EXPIRY SWEEP ───────────
    expiry_sweep_enabled: bool = True
    expiry_sweep_interval_minutes: int = 5


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
