from datetime import timedelta

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(raw_value: str) -> list[str]:
    return [part.strip() for part in raw_value.split(",") if part.strip()]


def _normalize_env(raw_value: str) -> str:
    normalized = raw_value.strip().lower()
    return "production" if normalized == "production" else "development"


def _is_permissive_origin(value: str) -> bool:
    normalized = value.strip().lower()
    if not normalized:
        return False
    if normalized == "*":
        return True
    return "://*" in normalized


class Settings(BaseSettings):
    APP_ENV: str = "development"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "info"

    # CORS
    CORS_ALLOW_ORIGINS: str = ""

    # Auth
    JWT_SECRET: str
    JWT_EXPIRES_SEC: int = 604800  # 7 days

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_PROFILES_TABLE: str = "profiles"
    SUPABASE_CONNECT_TIMEOUT_SEC: float = 5.0
    SUPABASE_READ_TIMEOUT_SEC: float = 10.0

    # Entitlements
    TRIAL_WINDOW_DAYS: int = 7
    REFRESH_TICK_SEC: float = 1.0
    REFRESH_PUBLISH_SEC: float = 5.0
    FREE_MODE: int = 0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def _check_refresh_cadence(self) -> "Settings":
        if self.TRIAL_WINDOW_DAYS <= 0:
            raise ValueError("TRIAL_WINDOW_DAYS must be positive")
        if self.REFRESH_TICK_SEC <= 0:
            raise ValueError("REFRESH_TICK_SEC must be positive")
        if self.REFRESH_PUBLISH_SEC < self.REFRESH_TICK_SEC:
            raise ValueError("REFRESH_PUBLISH_SEC must not be shorter than REFRESH_TICK_SEC")
        if timedelta(seconds=self.REFRESH_PUBLISH_SEC) >= self.trial_window():
            raise ValueError("REFRESH_PUBLISH_SEC must be shorter than the trial window")
        return self

    def env_mode(self) -> str:
        return _normalize_env(self.APP_ENV)

    def is_production(self) -> bool:
        return self.env_mode() == "production"

    def get_cors_allow_origins(self) -> list[str]:
        configured = _split_csv(self.CORS_ALLOW_ORIGINS)
        if configured:
            if self.is_production() and any(_is_permissive_origin(origin) for origin in configured):
                raise ValueError("Permissive CORS origin is not allowed in production")
            return configured

        if self.is_production():
            return []

        return [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]

    def trial_window(self) -> timedelta:
        return timedelta(days=self.TRIAL_WINDOW_DAYS)

    def free_mode_enabled(self) -> bool:
        return self.FREE_MODE == 1


settings = Settings()
