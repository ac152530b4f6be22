# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for admin Supabase client / Storage)
      - CRON_SECRET (bearer token for /cron endpoints)
      - VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY / VAPID_CLAIMS_EMAIL (Web Push)

    Business tunables (offer validity, pricing, commission) are NOT here:
    they live in the admin_settings table so admins can change them at runtime.
    """

    PROJECT_NAME: str = "nitoagua API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma separated list of allowed browser origins
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Public URL of the web app, used to build links in emails / push payloads
    APP_BASE_URL: str = "http://localhost:3000"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Private bucket holding provider verification documents
    DOCUMENTS_BUCKET: str = "provider-documents"

    # Shared secret used by the external cron caller
    CRON_SECRET: str | None = None

    # Web Push (VAPID)
    VAPID_PUBLIC_KEY: str | None = None
    VAPID_PRIVATE_KEY: str | None = None
    VAPID_CLAIMS_EMAIL: str = "mailto:soporte@nitoagua.cl"

    # Run offer expiry / request timeout inside the API process
    ENABLE_LIFECYCLE_SCHEDULER: bool = False
    LIFECYCLE_INTERVAL_SECONDS: int = 60

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
