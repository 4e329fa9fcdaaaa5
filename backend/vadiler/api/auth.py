"""
Customer Auth API Endpoints
Email code sign-in, registration, password reset and Google sign-in

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from vadiler.connectors.google_oauth_connector import (
    CALLBACK_PATH,
    GoogleOAuthConnector,
    GoogleOAuthError,
    random_base64url,
    request_origin,
    sanitize_redirect_path,
)
from vadiler.core.auth import get_customer_session
from vadiler.core.config import settings
from vadiler.core.session import CUSTOMER_SESSION_COOKIE, SESSION_MAX_AGE_SECONDS, sign_customer_session
from vadiler.domain.customer import Customer
from vadiler.services.customer_auth_service import AuthError, CustomerAuthService

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_COOKIE = "vadiler_google_oauth_state"
OAUTH_VERIFIER_COOKIE = "vadiler_google_oauth_verifier"
OAUTH_REDIRECT_COOKIE = "vadiler_google_oauth_redirect"
OAUTH_COOKIE_MAX_AGE = 10 * 60
OAUTH_COOKIES = (OAUTH_STATE_COOKIE, OAUTH_VERIFIER_COOKIE, OAUTH_REDIRECT_COOKIE)


# Request models
class RegisterStartRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


class LoginStartRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ResetStartRequest(BaseModel):
    email: Optional[str] = None


class VerifyRequest(BaseModel):
    otpId: Any = None
    email: Optional[str] = None
    code: Any = None


class ResetVerifyRequest(VerifyRequest):
    newPassword: Optional[str] = None


def _auth_error(e: AuthError) -> JSONResponse:
    return JSONResponse(status_code=e.status_code, content={"error": e.message, **e.extra})


def _set_session_cookie(response, customer: Customer) -> None:
    response.set_cookie(
        CUSTOMER_SESSION_COOKIE,
        sign_customer_session(customer.id, customer.email),
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )


def _signed_in(customer: Customer) -> JSONResponse:
    response = JSONResponse(content={"success": True, "customer": customer.to_public_dict()})
    _set_session_cookie(response, customer)
    return response


@router.post("/register/start")
async def register_start(body: RegisterStartRequest):
    try:
        return CustomerAuthService().register_start(body.email, body.name, body.phone, body.password)
    except AuthError as e:
        return _auth_error(e)
    except Exception as e:
        logger.error(f"Register start failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Kayıt başlatılamadı.")


@router.post("/register/verify")
async def register_verify(body: VerifyRequest):
    try:
        customer = CustomerAuthService().register_verify(body.otpId, body.email, body.code)
        return _signed_in(customer)
    except AuthError as e:
        return _auth_error(e)
    except Exception as e:
        logger.error(f"Register verify failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Doğrulama başarısız.")


@router.post("/login/start")
async def login_start(body: LoginStartRequest):
    """Check the password and email a login code"""
    try:
        return CustomerAuthService().login_start(body.email, body.password)
    except AuthError as e:
        return _auth_error(e)
    except Exception as e:
        logger.error(f"Login start failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Giriş başlatılamadı.")


@router.post("/login/verify")
async def login_verify(body: VerifyRequest):
    try:
        customer = CustomerAuthService().login_verify(body.otpId, body.email, body.code)
        return _signed_in(customer)
    except AuthError as e:
        return _auth_error(e)
    except Exception as e:
        logger.error(f"Login verify failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Doğrulama başarısız.")


@router.post("/password-reset/start")
async def password_reset_start(body: ResetStartRequest):
    try:
        return CustomerAuthService().password_reset_start(body.email)
    except AuthError as e:
        return _auth_error(e)
    except Exception as e:
        logger.error(f"Password reset start failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Şifre sıfırlama başlatılamadı.")


@router.post("/password-reset/verify")
async def password_reset_verify(body: ResetVerifyRequest):
    try:
        customer = CustomerAuthService().password_reset_verify(
            body.otpId, body.email, body.code, body.newPassword
        )
        return _signed_in(customer)
    except AuthError as e:
        return _auth_error(e)
    except Exception as e:
        logger.error(f"Password reset verify failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Şifre sıfırlanamadı.")


@router.get("/session")
async def get_session(request: Request):
    """Current customer, or 401 when the cookie is missing or invalid"""
    session = get_customer_session(request)
    if not session:
        raise HTTPException(status_code=401, detail="Oturum bulunamadı.")
    try:
        customer = CustomerAuthService().get_customer(session["customerId"])
        return {"customer": customer.to_public_dict()}
    except AuthError as e:
        return _auth_error(e)


@router.post("/logout")
async def logout():
    response = JSONResponse(content={"success": True})
    response.delete_cookie(CUSTOMER_SESSION_COOKIE, path="/")
    return response


# =============================================================================
# Google
# =============================================================================

def _login_error_redirect(origin: str, reason: str) -> RedirectResponse:
    response = RedirectResponse(url=f"{origin}/giris?{urlencode({'error': reason})}", status_code=302)
    for name in OAUTH_COOKIES:
        response.delete_cookie(name, path="/")
    return response


@router.get("/google/start")
async def google_start(request: Request, redirect: Optional[str] = None):
    """Redirect to Google with a PKCE challenge; state lives in short cookies"""
    origin = request_origin(request.headers)
    state = random_base64url(32)
    verifier = random_base64url(48)

    try:
        url = GoogleOAuthConnector().authorization_url(f"{origin}{CALLBACK_PATH}", state, verifier)
    except GoogleOAuthError as e:
        logger.error(f"Google sign-in unavailable: {e}")
        return _login_error_redirect(origin, e.reason)

    response = RedirectResponse(url=url, status_code=302)
    cookie_options = dict(max_age=OAUTH_COOKIE_MAX_AGE, httponly=True, samesite="lax",
                          secure=settings.is_production, path="/")
    response.set_cookie(OAUTH_STATE_COOKIE, state, **cookie_options)
    response.set_cookie(OAUTH_VERIFIER_COOKIE, verifier, **cookie_options)
    response.set_cookie(OAUTH_REDIRECT_COOKIE, sanitize_redirect_path(redirect), **cookie_options)
    return response


@router.get("/google/callback")
async def google_callback(request: Request, code: Optional[str] = None, state: Optional[str] = None,
                          error: Optional[str] = None):
    origin = request_origin(request.headers)

    if error:
        return _login_error_redirect(origin, "google_oauth_denied")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    verifier = request.cookies.get(OAUTH_VERIFIER_COOKIE)
    if not code or not state or not expected_state or state != expected_state or not verifier:
        return _login_error_redirect(origin, "google_oauth_state")

    try:
        connector = GoogleOAuthConnector()
        access_token = await connector.exchange_code(code, verifier, f"{origin}{CALLBACK_PATH}")
        userinfo = await connector.get_userinfo(access_token)

        email = (userinfo.get("email") or "").strip().lower()
        if not email or userinfo.get("email_verified") is False:
            return _login_error_redirect(origin, "google_oauth_email")

        customer = CustomerAuthService().find_or_create_google_customer(email, userinfo.get("name"))
        if not customer.is_active:
            return _login_error_redirect(origin, "account_inactive")
    except GoogleOAuthError as e:
        return _login_error_redirect(origin, e.reason)
    except Exception as e:
        logger.error(f"Google sign-in failed: {e}", exc_info=True)
        return _login_error_redirect(origin, "google_oauth_failed")

    target = sanitize_redirect_path(request.cookies.get(OAUTH_REDIRECT_COOKIE))
    response = RedirectResponse(url=f"{origin}{target}", status_code=302)
    _set_session_cookie(response, customer)
    for name in OAUTH_COOKIES:
        response.delete_cookie(name, path="/")
    logger.info(f"Customer {customer.id} signed in with Google")
    return response
