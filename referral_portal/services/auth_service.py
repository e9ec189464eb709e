"""Auth service — verifies identity hub tokens.

The identity hub signs in users over WhatsApp and drops a signed JWT in
the `auth_token` cookie. This module turns that cookie into an Identity.
A token that fails verification is a normal outcome, not an error:
every function here returns None instead of raising.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import jwt
from flask import current_app

logger = logging.getLogger(__name__)

# Claim names the hub has used for the phone over time, highest priority first.
PHONE_CLAIMS = ("phone", "phone_number", "mobile", "whatsapp")

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Identity:
    phone: str
    user_id: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    is_admin: Optional[bool] = None


def normalize_phone(phone):
    """Remove every whitespace character from a phone string."""
    return _WHITESPACE_RE.sub("", phone or "")


def extract_phone(payload):
    """Return the first non-empty phone claim, normalized, or None."""
    for claim in PHONE_CLAIMS:
        candidate = payload.get(claim)
        if isinstance(candidate, str) and candidate.strip():
            return normalize_phone(candidate)
    return None


def _first_present(payload, *keys):
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def verify_auth_token(token, secret, algorithms=("HS256",)):
    """Verify a hub token and build the Identity it carries.

    Args:
        token: Raw JWT string from the cookie.
        secret: Shared signing secret.
        algorithms: Accepted HMAC algorithms.

    Returns:
        Identity, or None when the token is missing, malformed, expired,
        badly signed, or carries no phone.
    """
    if not token or not secret:
        return None

    try:
        # The hub may stamp an audience for its own apps; only the signature
        # and expiry matter here.
        payload = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            options={"verify_aud": False},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected auth token: {e}")
        return None

    if not isinstance(payload, dict):
        return None

    phone = extract_phone(payload)
    if not phone:
        logger.info("Auth token verified but carries no phone claim")
        return None

    return Identity(
        phone=phone,
        user_id=_first_present(payload, "userId", "user_id"),
        name=payload.get("name"),
        role=payload.get("role"),
        is_admin=_first_present(payload, "isAdmin", "is_admin"),
    )


def get_current_identity(request):
    """Verify the auth cookie on `request` using the app's JWT settings."""
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "auth_token")
    token = request.cookies.get(cookie_name)
    if not token:
        return None
    return verify_auth_token(
        token,
        current_app.config.get("JWT_SECRET"),
        algorithms=current_app.config.get("JWT_ALGORITHMS", ["HS256"]),
    )
