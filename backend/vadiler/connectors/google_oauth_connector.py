"""
Google OAuth2 Connector
Authorization code flow with PKCE for customer sign-in

Author: Vadiler
Date: 2025-11-05
"""
import base64
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlparse

import httpx

from vadiler.core.config import settings

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

CALLBACK_PATH = "/api/auth/google/callback"


class GoogleOAuthError(Exception):
    """A step of the OAuth flow failed; `reason` goes into /giris?error="""

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or reason)


def random_base64url(num_bytes: int) -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(num_bytes)).decode("ascii").rstrip("=")


def sha256_base64url(value: str) -> str:
    digest = hashlib.sha256(value.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def sanitize_redirect_path(value: Optional[str]) -> str:
    """Only same-site absolute paths; anything else becomes '/'"""
    path = (value or "").strip()
    if not path.startswith("/") or path.startswith("//"):
        return "/"
    return path


def site_origin() -> Optional[str]:
    raw = (settings.SITE_URL or "").strip()
    if not raw:
        return None
    if not raw.startswith(("http://", "https://")):
        raw = f"https://{raw}"
    parsed = urlparse(raw)
    if not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def request_origin(headers) -> str:
    """Public origin of the request; localhost keeps its own origin"""
    host = headers.get("x-forwarded-host") or headers.get("host") or ""
    proto = headers.get("x-forwarded-proto") or "https"
    origin = f"{proto}://{host}"

    hostname = host.split(":")[0].lower()
    if hostname in ("localhost", "127.0.0.1", "::1"):
        return origin
    return site_origin() or origin


class GoogleOAuthConnector:
    """
    Connector for Google's OAuth2 and OpenID Connect endpoints

    Handles:
    - Authorization URL with PKCE (S256) challenge
    - Code for token exchange
    - Userinfo lookup
    """

    def __init__(self, client_id: str = None, client_secret: str = None):
        self.client_id = client_id or settings.GOOGLE_OAUTH_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_OAUTH_CLIENT_SECRET

    def authorization_url(self, redirect_uri: str, state: str, code_verifier: str) -> str:
        if not self.client_id:
            raise GoogleOAuthError("config", "Missing env: GOOGLE_OAUTH_CLIENT_ID")

        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "code_challenge": sha256_base64url(code_verifier),
            "code_challenge_method": "S256",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str, redirect_uri: str) -> str:
        """Return the access token for an authorization code"""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(TOKEN_URL, data=data, timeout=30.0)
                response.raise_for_status()
                token_json = response.json()
            except httpx.HTTPError as e:
                logger.error(f"Google token exchange failed: {e}")
                raise GoogleOAuthError("google_oauth_token") from e

        access_token = token_json.get("access_token")
        if not access_token:
            raise GoogleOAuthError("google_oauth_no_token")
        return access_token

    async def get_userinfo(self, access_token: str) -> Dict[str, Any]:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                    timeout=30.0,
                )
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as e:
                logger.error(f"Google userinfo request failed: {e}")
                raise GoogleOAuthError("google_oauth_userinfo") from e
