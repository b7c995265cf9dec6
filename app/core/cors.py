from __future__ import annotations

from typing import Any

from app.core.config import settings

CORS_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]


def cors_options() -> dict[str, Any]:
    """Keyword arguments for CORSMiddleware, read from settings."""
    regex = (settings.cors_allow_origin_regex or "").strip()
    return {
        "allow_origins": list(settings.cors_allowed_origins),
        "allow_origin_regex": regex or None,
        "allow_credentials": settings.cors_allow_credentials,
        "allow_methods": CORS_METHODS,
        "allow_headers": ["*"],
        "expose_headers": ["Content-Disposition"],
    }
