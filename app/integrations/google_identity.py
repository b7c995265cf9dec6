from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@dataclass(frozen=True)
class UserIdentity:
    uid: str
    display_name: str
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "display_name": self.display_name, "email": self.email}


class IdentityError(RuntimeError):
    def __init__(self, message: str, *, code: str = "identity_error"):
        super().__init__(message)
        self.message = message
        self.code = code


class IdentityProvider(Protocol):
    async def verify(self, credential: str) -> UserIdentity: ...


def _identity_from_claims(claims: dict[str, Any]) -> UserIdentity:
    uid = str(claims.get("sub") or "").strip()
    if not uid:
        raise IdentityError("Google token has no subject.", code="invalid_token")
    email = (claims.get("email") or "").strip() or None
    display_name = (claims.get("name") or claims.get("given_name") or "").strip()
    if not display_name:
        display_name = email.split("@", 1)[0] if email else "there"
    return UserIdentity(uid=uid, display_name=display_name, email=email)


class GoogleIdentityProvider:
    """Verifies the ID token issued to the browser by Google sign-in."""

    def __init__(self, client_id: str | None):
        self._client_id = (client_id or "").strip() or None
        self._request = google_requests.Request()

    async def verify(self, credential: str) -> UserIdentity:
        if not self._client_id:
            raise IdentityError("Google sign-in is not configured.", code="not_configured")
        token = (credential or "").strip()
        if not token:
            raise IdentityError("Missing Google credential.", code="invalid_token")

        try:
            claims = await asyncio.to_thread(
                id_token.verify_oauth2_token, token, self._request, self._client_id
            )
        except (ValueError, google_auth_exceptions.GoogleAuthError) as exc:
            logger.info("google_token_rejected error=%s", exc)
            raise IdentityError(str(exc) or "Invalid Google credential.", code="invalid_token") from exc

        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise IdentityError("Wrong token issuer.", code="invalid_token")
        return _identity_from_claims(claims)
