"""
Unit tests for email OTP issuing and verification

Author: Vadiler
Date: 2025-11-08
"""
import hashlib
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from vadiler.domain.customer import EmailOtp
from vadiler.services.email_service import EmailSendResult
from vadiler.services.otp_service import (
    OtpError,
    OtpService,
    can_resend,
    generate_otp_code,
    hash_otp_code,
    is_otp_code,
)


def _otp(**overrides):
    now = datetime.now(timezone.utc)
    data = {
        "id": "otp-1",
        "email": "ayse@example.com",
        "purpose": "login",
        "code_hash": hash_otp_code("123456", "ayse@example.com", "login"),
        "attempts": 0,
        "last_sent_at": now,
        "expires_at": now + timedelta(minutes=10),
    }
    data.update(overrides)
    return EmailOtp(**data)


class TestOtpHelpers:

    def test_hash_matches_documented_layout(self):
        expected = hashlib.sha256(b"s3cret:login:ayse@example.com:123456").hexdigest()
        assert hash_otp_code("123456", " Ayse@Example.com ", "login", secret="s3cret") == expected

    def test_hash_depends_on_purpose(self):
        assert (hash_otp_code("123456", "a@b.co", "login", secret="x")
                != hash_otp_code("123456", "a@b.co", "register", secret="x"))

    def test_generated_codes_are_six_digits(self):
        for _ in range(50):
            assert is_otp_code(generate_otp_code())

    @pytest.mark.parametrize("code", ["12345", "1234567", "12a456", "", None])
    def test_is_otp_code_rejects(self, code):
        assert is_otp_code(code) is False

    def test_resend_cooldown(self):
        now = datetime(2025, 11, 8, 12, 0, 30, tzinfo=timezone.utc)
        assert can_resend(None, now) is True
        assert can_resend(datetime(2025, 11, 8, 12, 0, 10, tzinfo=timezone.utc), now) is False
        assert can_resend(datetime(2025, 11, 8, 12, 0, 0), now) is True


class TestOtpIssue:

    def test_issue_creates_and_emails_code(self):
        # Arrange
        repo = MagicMock()
        repo.find_latest_active.return_value = None
        repo.create.return_value = _otp(id="otp-9")
        email_service = MagicMock()
        email_service.send_customer_otp.return_value = EmailSendResult(success=True)

        # Act
        result = OtpService(repo, email_service).issue("Ayse@Example.com", "login")

        # Assert
        assert result["otpId"] == "otp-9"
        assert result["email"] == "ayse@example.com"
        sent_code = email_service.send_customer_otp.call_args[0][1]
        assert is_otp_code(sent_code)
        stored_hash = repo.create.call_args[0][2]
        assert stored_hash == hash_otp_code(sent_code, "ayse@example.com", "login")

    def test_issue_inside_cooldown_is_429(self):
        repo = MagicMock()
        repo.find_latest_active.return_value = _otp()
        email_service = MagicMock()

        with pytest.raises(OtpError) as exc_info:
            OtpService(repo, email_service).issue("ayse@example.com", "login")

        assert exc_info.value.status_code == 429
        assert exc_info.value.extra["otpId"] == "otp-1"
        email_service.send_customer_otp.assert_not_called()

    def test_issue_refreshes_existing_code_after_cooldown(self):
        repo = MagicMock()
        repo.find_latest_active.return_value = _otp(
            last_sent_at=datetime.now(timezone.utc) - timedelta(seconds=31)
        )
        email_service = MagicMock()
        email_service.send_customer_otp.return_value = EmailSendResult(success=True)

        result = OtpService(repo, email_service).issue("ayse@example.com", "login")

        assert result["otpId"] == "otp-1"
        repo.refresh.assert_called_once()
        repo.create.assert_not_called()

    def test_email_failure_is_reported(self):
        repo = MagicMock()
        repo.find_latest_active.return_value = None
        repo.create.return_value = _otp()
        email_service = MagicMock()
        email_service.send_customer_otp.return_value = EmailSendResult(
            success=False, error="bad", error_code="INVALID_EMAIL"
        )

        with pytest.raises(OtpError) as exc_info:
            OtpService(repo, email_service).issue("ayse@example.com", "login")
        assert exc_info.value.status_code == 400
        assert "e-posta adresine" in exc_info.value.message


class TestOtpVerify:

    def test_correct_code_consumes_otp(self):
        repo = MagicMock()
        repo.find_by_id.return_value = _otp()

        OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "123456", "login")

        repo.mark_consumed.assert_called_once()
        repo.increment_attempts.assert_not_called()

    def test_wrong_code_counts_attempt(self):
        repo = MagicMock()
        repo.find_by_id.return_value = _otp()

        with pytest.raises(OtpError) as exc_info:
            OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "654321", "login")

        assert exc_info.value.status_code == 401
        repo.increment_attempts.assert_called_once_with("otp-1")
        repo.mark_consumed.assert_not_called()

    def test_consumed_code_is_400(self):
        repo = MagicMock()
        repo.find_by_id.return_value = _otp(consumed_at=datetime.now(timezone.utc))

        with pytest.raises(OtpError) as exc_info:
            OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "123456", "login")
        assert exc_info.value.status_code == 400

    def test_expired_code_is_400(self):
        repo = MagicMock()
        repo.find_by_id.return_value = _otp(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))

        with pytest.raises(OtpError) as exc_info:
            OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "123456", "login")
        assert exc_info.value.status_code == 400

    def test_too_many_attempts_is_429(self):
        repo = MagicMock()
        repo.find_by_id.return_value = _otp(attempts=5)

        with pytest.raises(OtpError) as exc_info:
            OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "123456", "login")
        assert exc_info.value.status_code == 429

    def test_purpose_mismatch_is_rejected(self):
        repo = MagicMock()
        repo.find_by_id.return_value = _otp()

        with pytest.raises(OtpError):
            OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "123456", "register")
        repo.mark_consumed.assert_not_called()

    def test_malformed_code_never_reaches_repository(self):
        repo = MagicMock()
        with pytest.raises(OtpError):
            OtpService(repo, MagicMock()).verify("otp-1", "ayse@example.com", "12ab56", "login")
        repo.find_by_id.assert_not_called()
