"""
Signed customer session cookie

Token format: base64url(json payload) + "." + base64url(HMAC-SHA256(body))
Payload: {customerId, email, issuedAt, expiresAt} with epoch milliseconds.
"""
import base64
import hashlib
import hmac
import json
import time
import binascii
from typing import Optional

from vadiler.core.config import settings

CUSTOMER_SESSION_COOKIE = "vadiler_customer_auth"
SESSION_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _session_secret(secret: Optional[str]) -> str:
    secret = secret or settings.AUTH_SESSION_SECRET
    if not secret:
        raise ValueError("Missing env: AUTH_SESSION_SECRET")
    return secret


def _sign(secret: str, body: str) -> str:
    digest = hmac.new(secret.encode(), body.encode(), hashlib.sha256).digest()
    return _b64url_encode(digest)


def sign_customer_session(customer_id: str, email: str, secret: Optional[str] = None,
                          now_ms: Optional[int] = None) -> str:
    """Build a signed session token valid for seven days."""
    secret = _session_secret(secret)
    issued_at = now_ms if now_ms is not None else int(time.time() * 1000)
    payload = {
        "customerId": str(customer_id),
        "email": email,
        "issuedAt": issued_at,
        "expiresAt": issued_at + SESSION_MAX_AGE_SECONDS * 1000,
    }
    body = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode())
    return f"{body}.{_sign(secret, body)}"


def verify_customer_session(token: str, secret: Optional[str] = None,
                            now_ms: Optional[int] = None) -> Optional[dict]:
    """
    Verify a session token.

    Returns the payload dict, or None when the token is malformed, tampered
    with or expired.
    """
    secret = _session_secret(secret)
    parts = (token or "").split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    body, signature = parts

    if not hmac.compare_digest(_sign(secret, body), signature):
        return None

    try:
        payload = json.loads(_b64url_decode(body))
    except (ValueError, binascii.Error):
        return None

    if not isinstance(payload, dict):
        return None
    if not payload.get("customerId") or not payload.get("email") or not payload.get("expiresAt"):
        return None

    now = now_ms if now_ms is not None else int(time.time() * 1000)
    if now > int(payload["expiresAt"]):
        return None

    return {
        "customerId": str(payload["customerId"]),
        "email": str(payload["email"]),
        "issuedAt": int(payload.get("issuedAt") or 0),
        "expiresAt": int(payload["expiresAt"]),
    }
