"""
API tests for /api/auth and /api/customers

Author: Vadiler
Date: 2025-11-08
"""
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

from vadiler.api.auth import OAUTH_REDIRECT_COOKIE, OAUTH_STATE_COOKIE, OAUTH_VERIFIER_COOKIE
from vadiler.connectors.google_oauth_connector import GoogleOAuthError
from vadiler.core.session import CUSTOMER_SESSION_COOKIE, verify_customer_session
from vadiler.domain.customer import Customer
from vadiler.services.customer_auth_service import AuthError


def _customer(**overrides):
    data = {"id": "cust-1", "email": "ayse@example.com", "name": "Ayşe Yılmaz", "password": "$2b$12$hash"}
    data.update(overrides)
    return Customer(**data)


class TestEmailCodeSignIn:

    @patch('vadiler.api.auth.CustomerAuthService')
    def test_verify_sets_session_cookie(self, mock_service, client):
        mock_service.return_value.login_verify.return_value = _customer()

        response = client.post('/api/auth/login/verify', json={"otpId": "otp-1", "email": "ayse@example.com",
                                                               "code": "123456"})

        assert response.status_code == 200
        assert "password" not in response.json()["customer"]
        session = verify_customer_session(response.cookies[CUSTOMER_SESSION_COOKIE])
        assert session["customerId"] == "cust-1"

    @patch('vadiler.api.auth.CustomerAuthService')
    def test_auth_error_carries_extra_fields(self, mock_service, client):
        mock_service.return_value.login_start.side_effect = AuthError(
            "Çok fazla deneme.", status_code=429, extra={"retryAfterSeconds": 42}
        )

        response = client.post('/api/auth/login/start', json={"email": "a@b.com", "password": "secret12"})

        assert response.status_code == 429
        assert response.json() == {"error": "Çok fazla deneme.", "retryAfterSeconds": 42}


class TestSession:

    def test_missing_cookie_is_401(self, client):
        assert client.get('/api/auth/session').status_code == 401

    def test_tampered_cookie_is_401(self, client, customer_cookie):
        client.cookies.set(CUSTOMER_SESSION_COOKIE, customer_cookie[CUSTOMER_SESSION_COOKIE] + "x")
        assert client.get('/api/auth/session').status_code == 401

    @patch('vadiler.api.auth.CustomerAuthService')
    def test_current_customer(self, mock_service, client, customer_cookie):
        mock_service.return_value.get_customer.return_value = _customer()
        client.cookies.update(customer_cookie)

        response = client.get('/api/auth/session')

        assert response.json()["customer"]["email"] == "ayse@example.com"
        mock_service.return_value.get_customer.assert_called_once_with("cust-1")

    def test_logout_clears_cookie(self, client):
        response = client.post('/api/auth/logout')

        assert response.json() == {"success": True}
        assert CUSTOMER_SESSION_COOKIE in response.headers["set-cookie"]


class TestGoogleSignIn:

    @patch('vadiler.api.auth.GoogleOAuthConnector')
    def test_start_redirects_with_state_cookies(self, mock_connector, client):
        mock_connector.return_value.authorization_url.return_value = "https://accounts.google.com/o/oauth2/v2/auth?x=1"

        response = client.get('/api/auth/google/start?redirect=/hesabim', follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://accounts.google.com/")
        # Starlette quotes cookie values that contain a slash
        assert response.cookies[OAUTH_REDIRECT_COOKIE].strip('"') == "/hesabim"
        redirect_uri = mock_connector.return_value.authorization_url.call_args[0][0]
        assert redirect_uri == "https://vadiler.test/api/auth/google/callback"

    @patch('vadiler.api.auth.GoogleOAuthConnector')
    def test_start_without_config_goes_to_login(self, mock_connector, client):
        mock_connector.return_value.authorization_url.side_effect = GoogleOAuthError("config")

        response = client.get('/api/auth/google/start', follow_redirects=False)

        assert response.headers["location"] == "https://vadiler.test/giris?error=config"

    def test_callback_state_mismatch(self, client):
        client.cookies.set(OAUTH_STATE_COOKIE, "expected")
        client.cookies.set(OAUTH_VERIFIER_COOKIE, "verifier")

        response = client.get('/api/auth/google/callback?code=c&state=other', follow_redirects=False)

        assert parse_qs(urlparse(response.headers["location"]).query) == {"error": ["google_oauth_state"]}

    def test_callback_denied(self, client):
        response = client.get('/api/auth/google/callback?error=access_denied', follow_redirects=False)

        assert response.headers["location"].endswith("error=google_oauth_denied")

    @patch('vadiler.api.auth.CustomerAuthService')
    @patch('vadiler.api.auth.GoogleOAuthConnector')
    def test_callback_signs_in(self, mock_connector, mock_service, client):
        connector = mock_connector.return_value
        connector.exchange_code = AsyncMock(return_value="access-token")
        connector.get_userinfo = AsyncMock(return_value={"email": "Ayse@Example.com", "email_verified": True,
                                                         "name": "Ayşe"})
        mock_service.return_value.find_or_create_google_customer.return_value = _customer()
        client.cookies.set(OAUTH_STATE_COOKIE, "state-1")
        client.cookies.set(OAUTH_VERIFIER_COOKIE, "verifier-1")
        client.cookies.set(OAUTH_REDIRECT_COOKIE, "/hesabim")

        response = client.get('/api/auth/google/callback?code=c&state=state-1', follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://vadiler.test/hesabim"
        assert CUSTOMER_SESSION_COOKIE in response.cookies
        mock_service.return_value.find_or_create_google_customer.assert_called_once_with("ayse@example.com", "Ayşe")

    @patch('vadiler.api.auth.CustomerAuthService')
    @patch('vadiler.api.auth.GoogleOAuthConnector')
    def test_callback_unverified_email(self, mock_connector, mock_service, client):
        connector = mock_connector.return_value
        connector.exchange_code = AsyncMock(return_value="access-token")
        connector.get_userinfo = AsyncMock(return_value={"email": "a@b.com", "email_verified": False})
        client.cookies.set(OAUTH_STATE_COOKIE, "s")
        client.cookies.set(OAUTH_VERIFIER_COOKIE, "v")

        response = client.get('/api/auth/google/callback?code=c&state=s', follow_redirects=False)

        assert response.headers["location"].endswith("error=google_oauth_email")
        mock_service.return_value.find_or_create_google_customer.assert_not_called()


class TestCustomerProfile:

    def test_requires_session(self, client):
        assert client.get('/api/customers/me').status_code == 401

    @patch('vadiler.api.customers.CustomerAuthService')
    def test_wrong_current_password(self, mock_service, client, customer_cookie):
        mock_service.return_value.change_password.side_effect = AuthError("Mevcut şifre hatalı.", status_code=401)
        client.cookies.update(customer_cookie)

        response = client.post('/api/customers/me/password', json={"currentPassword": "x", "newPassword": "yenisifre1"})

        assert response.status_code == 401

    @patch('vadiler.api.customers.CustomerAuthService')
    def test_order_history(self, mock_service, client, customer_cookie, make_order):
        mock_service.return_value.order_history.return_value = [make_order()]
        client.cookies.update(customer_cookie)

        response = client.get('/api/customers/me/orders')

        assert response.json()["count"] == 1
        mock_service.return_value.order_history.assert_called_once_with("cust-1", limit=50, offset=0)
