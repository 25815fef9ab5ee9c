"""Centralised JWT helpers for access tokens.

Uses HS256 with the application's secret key. The subject claim carries the
user id as a string.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from semchat.settings import settings


ISSUER = "semchat-api"
ALGORITHM = "HS256"


def encode_access(user_id: int, *, name: str | None = None) -> str:
    """Encode an access token for ``user_id`` valid for the configured TTL."""
    now = int(time.time())
    body: Dict[str, Any] = {
        "iss": ISSUER,
        "sub": str(user_id),
        "iat": now,
        "exp": now + settings.access_ttl_minutes * 60,
    }
    if name:
        body["name"] = name
    return jwt.encode(body, settings.secret_key, algorithm=ALGORITHM)


def decode_access(token: str) -> dict[str, object]:
    """Decode and validate an access token.

    Raises jwt.InvalidTokenError subclasses on failure.
    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        leeway=5,
        options={"require": ["exp", "iat", "iss", "sub"]},
    )
    if not str(payload.get("sub") or "").strip():
        raise InvalidTokenError("missing_claim:sub")
    return payload  # type: ignore[return-value]
