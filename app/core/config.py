# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - DATABASE_URL (Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for user provisioning)
      - FIREBASE_CREDENTIALS_PATH (service account JSON for push)

    Business constants (pricing, trust score, cash ledger, presence)
    all have defaults and can be overridden per deployment.
    """

    PROJECT_NAME: str = "Comida Dispatch API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Firebase Cloud Messaging
    FIREBASE_CREDENTIALS_PATH: str | None = None
    PUSH_ENABLED: bool = True

    # Pricing / integrity
    PRICE_TOLERANCE: float = 1.0
    DEFAULT_DELIVERY_FEE: float = 25.0
    SERVICE_FEE_RATE: float = 0.05

    # Client trust score
    TRUST_SCORE_DEFAULT: int = 100
    TRUST_SCORE_HARD_FLOOR: int = 30
    TRUST_SCORE_WARNING: int = 60
    LATE_CANCEL_PENALTY: int = 15

    # Cash ledger
    DEFAULT_MAX_CASH_LIMIT: float = 1000.0

    # Presence / scheduling
    PRESENCE_TIMEOUT_MINUTES: int = 30
    REAPER_INTERVAL_SECONDS: int = 3600
    SEARCH_REBROADCAST_MINUTES: int = 10
    SEARCH_SWEEP_INTERVAL_SECONDS: int = 300
    SCHEDULER_ENABLED: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
