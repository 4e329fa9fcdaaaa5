"""
Unit tests for CustomerAuthService

Author: Vadiler
Date: 2025-11-08
"""
from unittest.mock import MagicMock, patch

import pytest

from vadiler.domain.customer import Customer
from vadiler.services.customer_auth_service import (
    RESET_REQUESTED_MESSAGE,
    AuthError,
    CustomerAuthService,
)
from vadiler.services.otp_service import OtpError

ISSUED = {"success": True, "otpId": "otp-1", "expiresInSeconds": 600}


def _customer(**overrides):
    data = {"id": "cust-1", "email": "ayse@example.com", "name": "Ayşe Yılmaz",
            "phone": "5321234567", "password": "legacy-plain"}
    data.update(overrides)
    return Customer(**data)


@pytest.fixture
def parts():
    customer_repo = MagicMock()
    otp_service = MagicMock()
    otp_service.issue.return_value = dict(ISSUED)
    order_repo = MagicMock()
    return CustomerAuthService(customer_repo, otp_service, order_repo), customer_repo, otp_service, order_repo


@patch("vadiler.services.customer_auth_service.hash_password", side_effect=lambda p: f"hashed:{p}")
class TestRegister:

    def test_creates_account_and_sends_code(self, mock_hash, parts):
        service, customer_repo, otp_service, _ = parts
        customer_repo.find_by_email.return_value = None
        customer_repo.create.return_value = _customer()

        result = service.register_start(" Ayse@Example.com ", "Ayşe Yılmaz", "0532 123 45 67", "gizli123")

        assert result == ISSUED
        fields = customer_repo.create.call_args[0][0]
        assert fields["email"] == "ayse@example.com"
        assert fields["phone"] == "5321234567"
        assert fields["password"] == "hashed:gizli123"
        otp_service.issue.assert_called_once_with("ayse@example.com", "register")

    def test_existing_email(self, mock_hash, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.return_value = _customer()

        with pytest.raises(AuthError) as exc:
            service.register_start("ayse@example.com", "Ayşe", "5321234567", "gizli123")
        assert exc.value.status_code == 400
        customer_repo.create.assert_not_called()

    def test_account_removed_when_code_fails(self, mock_hash, parts):
        service, customer_repo, otp_service, _ = parts
        customer_repo.find_by_email.return_value = None
        customer_repo.create.return_value = _customer()
        otp_service.issue.side_effect = OtpError("Doğrulama kodu gönderilemedi.", status_code=502)

        with pytest.raises(AuthError) as exc:
            service.register_start("ayse@example.com", "Ayşe", "5321234567", "gizli123")

        assert exc.value.status_code == 502
        customer_repo.delete.assert_called_once_with("cust-1")

    def test_missing_fields(self, mock_hash, parts):
        with pytest.raises(AuthError):
            parts[0].register_start("ayse@example.com", "", "5321234567", "gizli123")


class TestLogin:

    def test_wrong_password(self, parts):
        service, customer_repo, otp_service, _ = parts
        customer_repo.find_by_email.return_value = _customer()

        with pytest.raises(AuthError) as exc:
            service.login_start("ayse@example.com", "yanlis")
        assert exc.value.status_code == 401
        otp_service.issue.assert_not_called()

    def test_inactive_account(self, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.return_value = _customer(is_active=False)

        with pytest.raises(AuthError) as exc:
            service.login_start("ayse@example.com", "legacy-plain")
        assert exc.value.status_code == 403

    def test_code_sent_for_valid_password(self, parts):
        service, customer_repo, otp_service, _ = parts
        customer_repo.find_by_email.return_value = _customer()

        assert service.login_start("AYSE@example.com", "legacy-plain") == ISSUED
        otp_service.issue.assert_called_once_with("ayse@example.com", "login")

    def test_verify_maps_otp_errors(self, parts):
        service, _, otp_service, _ = parts
        otp_service.verify.side_effect = OtpError("Çok fazla deneme.", status_code=429,
                                                  extra={"attemptsLeft": 0})

        with pytest.raises(AuthError) as exc:
            service.login_verify("otp-1", "ayse@example.com", "123456")
        assert exc.value.status_code == 429
        assert exc.value.extra == {"attemptsLeft": 0}


class TestPasswordReset:

    def test_unknown_email_gets_the_same_answer(self, parts):
        service, customer_repo, otp_service, _ = parts
        customer_repo.find_by_email.return_value = None

        assert service.password_reset_start("kimse@example.com") == {
            "success": True, "message": RESET_REQUESTED_MESSAGE,
        }
        otp_service.issue.assert_not_called()

    def test_short_password_rejected_before_code_check(self, parts):
        service, _, otp_service, _ = parts

        with pytest.raises(AuthError):
            service.password_reset_verify("otp-1", "ayse@example.com", "123456", "123")
        otp_service.verify.assert_not_called()

    @patch("vadiler.services.customer_auth_service.hash_password", return_value="hashed")
    def test_new_password_saved(self, mock_hash, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.return_value = _customer()
        customer_repo.update.return_value = _customer(password="hashed")

        customer = service.password_reset_verify("otp-1", "ayse@example.com", "123456", "yenisifre")

        assert customer.password == "hashed"
        assert customer_repo.update.call_args[0][1]["password"] == "hashed"


class TestGoogleAndProfile:

    def test_existing_customer_is_reused(self, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.return_value = _customer()

        assert service.find_or_create_google_customer("ayse@example.com").id == "cust-1"
        customer_repo.create.assert_not_called()

    def test_new_google_customer_gets_unusable_password(self, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.return_value = None
        customer_repo.create.return_value = _customer(id="cust-9")

        service.find_or_create_google_customer("Yeni@Example.com", None)

        fields = customer_repo.create.call_args[0][0]
        assert fields["name"] == "yeni"
        assert fields["password"].startswith("oauth_")

    def test_parallel_sign_in_race(self, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.side_effect = [None, _customer()]
        customer_repo.create.side_effect = RuntimeError("duplicate key")

        assert service.find_or_create_google_customer("ayse@example.com").id == "cust-1"

    def test_email_taken_by_someone_else(self, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_email.return_value = _customer(id="cust-2")

        with pytest.raises(AuthError):
            service.update_profile("cust-1", {"email": "ayse@example.com"})

    def test_change_password_checks_current(self, parts):
        service, customer_repo, _, _ = parts
        customer_repo.find_by_id.return_value = _customer()

        with pytest.raises(AuthError) as exc:
            service.change_password("cust-1", "yanlis", "yenisifre")
        assert exc.value.status_code == 401
