from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    rate_limit: str
    rate_limit_enabled: bool
    log_level: str
    sentry_dsn: str | None
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None
    cors_allow_credentials: bool
    ai_provider: str
    ai_model: str
    openai_api_key: str | None
    openai_base_url: str | None
    openai_timeout_s: float
    openai_max_retries: int
    elevenlabs_api_key: str | None
    elevenlabs_agent_id: str | None
    elevenlabs_api_base: str
    voice_enabled: bool
    payment_enabled: bool
    stripe_secret_key: str | None
    stripe_publishable_key: str | None
    payment_currency: str
    google_client_id: str | None
    interview_inactivity_timeout_s: float
    upload_max_bytes: int
    workflow_session_ttl_s: int


settings = Settings(
    rate_limit=_get_env("RATE_LIMIT", "60/minute") or "60/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:9002",
        ],
    ),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    cors_allow_credentials=_get_env_bool("CORS_ALLOW_CREDENTIALS", True),
    ai_provider=(_get_env("AI_PROVIDER", "openai") or "openai").strip().lower(),
    ai_model=(_get_env("AI_MODEL") or _get_env("OPENAI_MODEL") or "gpt-4o-mini").strip(),
    openai_api_key=_get_env("OPENAI_API_KEY"),
    openai_base_url=_get_env("OPENAI_BASE_URL"),
    openai_timeout_s=_get_env_float("OPENAI_TIMEOUT_S", 60.0),
    openai_max_retries=_get_env_int("OPENAI_MAX_RETRIES", 2),
    elevenlabs_api_key=_get_env("ELEVENLABS_API_KEY"),
    elevenlabs_agent_id=_get_env("ELEVENLABS_AGENT_ID"),
    elevenlabs_api_base=_get_env("ELEVENLABS_API_BASE", "https://api.elevenlabs.io") or "https://api.elevenlabs.io",
    voice_enabled=_get_env_bool("VOICE_ENABLED", True),
    payment_enabled=_get_env_bool("PAYMENT_ENABLED", True),
    stripe_secret_key=_get_env("STRIPE_SECRET_KEY"),
    stripe_publishable_key=_get_env("STRIPE_PUBLISHABLE_KEY"),
    payment_currency=(_get_env("PAYMENT_CURRENCY", "usd") or "usd").strip().lower(),
    google_client_id=_get_env("GOOGLE_CLIENT_ID"),
    interview_inactivity_timeout_s=_get_env_float("INTERVIEW_INACTIVITY_TIMEOUT_S", 120.0),
    upload_max_bytes=_get_env_int("UPLOAD_MAX_BYTES", 5 * 1024 * 1024),
    workflow_session_ttl_s=_get_env_int("WORKFLOW_SESSION_TTL_S", 6 * 3600),
)

if settings.ai_provider not in {"openai"}:
    raise RuntimeError("AI_PROVIDER must be 'openai'.")
