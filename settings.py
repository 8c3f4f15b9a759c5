# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal


DEV_JWT_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: str = "dev"  # dev | staging | prod
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # DB (empty => in-memory stores)
    # -----------------------
    DATABASE_URL: str = Field(default="")

    # -----------------------
    # Session credentials (JWT wrapping an opaque session id)
    # -----------------------
    JWT_SECRET: str = Field(default=DEV_JWT_SECRET, min_length=16)
    JWT_ALG: str = Field(default="HS256")
    SESSION_TTL_MINUTES: int = Field(default=60 * 12)

    # -----------------------
    # Settlement provider
    # -----------------------
    SETTLEMENT_PROVIDER: Literal["MOCK", "HTTP"] = "MOCK"
    SETTLEMENT_HTTP_URL: str = ""
    SETTLEMENT_HTTP_API_KEY: str = ""
    SETTLEMENT_HTTP_TIMEOUT_S: float = 20.0

    # Losers of a settlement claim wait this long for the winner to persist
    SETTLEMENT_CLAIM_WAIT_S: float = 5.0
    SETTLEMENT_CLAIM_POLL_S: float = 0.05

    # Store writes retried after the provider has answered
    SETTLEMENT_PERSIST_ATTEMPTS: int = Field(default=3, ge=1)


settings = Settings()


def validate_env_settings() -> None:
    """
    Fail fast outside dev when required secrets/config are missing.
    """
    if settings.ENV not in ("staging", "prod"):
        return

    missing: list[str] = []
    if not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if settings.JWT_SECRET == DEV_JWT_SECRET:
        missing.append("JWT_SECRET")
    if settings.SETTLEMENT_PROVIDER == "HTTP":
        if not settings.SETTLEMENT_HTTP_URL.strip():
            missing.append("SETTLEMENT_HTTP_URL")
        if not settings.SETTLEMENT_HTTP_API_KEY.strip():
            missing.append("SETTLEMENT_HTTP_API_KEY")
    if settings.SETTLEMENT_PROVIDER == "MOCK" and settings.ENV == "prod":
        missing.append("SETTLEMENT_PROVIDER")

    if missing:
        raise RuntimeError(f"Invalid settings for ENV={settings.ENV}: {', '.join(missing)}")
