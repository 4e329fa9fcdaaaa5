"""
OTP Service
Six digit email codes for customer login, registration and password reset.

Codes are stored as sha256("{secret}:{purpose}:{email}:{code}") and expire
after 10 minutes. A new code can be requested every 30 seconds and each
code allows 5 wrong guesses.

Author: Vadiler
Date: 2025-11-05
"""
import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from vadiler.core.config import settings
from vadiler.repositories.otp_repository import OtpRepository
from vadiler.services.email_service import EmailService, get_email_service
from vadiler.services.formatting import normalize_email

logger = logging.getLogger(__name__)

OTP_CODE_LENGTH = 6
OTP_TTL_MINUTES = 10
OTP_MAX_ATTEMPTS = 5
OTP_RESEND_COOLDOWN_SECONDS = 30

OTP_PURPOSES = ("login", "register", "password-reset")

_OTP_PATTERN = re.compile(r"^[0-9]{6}$")


class OtpError(Exception):
    """OTP request or verification rejected"""

    def __init__(self, message: str, status_code: int = 400, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)


def generate_otp_code() -> str:
    return str(secrets.randbelow(10 ** OTP_CODE_LENGTH)).zfill(OTP_CODE_LENGTH)


def hash_otp_code(code: str, email: str, purpose: str, secret: Optional[str] = None) -> str:
    secret = secret or settings.OTP_SECRET or "dev-otp-secret"
    data = f"{secret}:{purpose}:{normalize_email(email)}:{str(code or '').strip()}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def is_otp_code(code: Any) -> bool:
    return bool(_OTP_PATTERN.match(str(code or "").strip()))


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def can_resend(last_sent_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if last_sent_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return (now - _aware(last_sent_at)).total_seconds() >= OTP_RESEND_COOLDOWN_SECONDS


class OtpService:

    def __init__(self, repo: Optional[OtpRepository] = None,
                 email_service: Optional[EmailService] = None):
        self.repo = repo or OtpRepository()
        self._email_service = email_service

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def issue(self, email: str, purpose: str) -> Dict[str, Any]:
        """
        Create or refresh the code for (email, purpose) and email it

        Raises:
            OtpError: 429 inside the resend cooldown, 400 when the email fails
        """
        email = normalize_email(email)
        now = datetime.now(timezone.utc)

        existing = self.repo.find_latest_active(email, purpose)
        if existing and not can_resend(existing.last_sent_at, now):
            raise OtpError(
                f"Lütfen yeni kod istemeden önce {OTP_RESEND_COOLDOWN_SECONDS} saniye bekleyin.",
                status_code=429,
                extra={"otpRequired": True, "otpId": existing.id, "email": email, "purpose": purpose},
            )

        code = generate_otp_code()
        code_hash = hash_otp_code(code, email, purpose)
        expires_at = now + timedelta(minutes=OTP_TTL_MINUTES)

        if existing:
            self.repo.refresh(existing.id, code_hash, expires_at, now)
            otp_id = existing.id
        else:
            otp_id = self.repo.create(email, purpose, code_hash, expires_at, now).id

        result = self.email_service.send_customer_otp(email, code, purpose, ttl_minutes=OTP_TTL_MINUTES)
        if not result.success:
            logger.warning(f"OTP email to {email} failed: {result.error_code}")
            if result.error_code == "INVALID_EMAIL":
                message = ("Girdiğiniz e-posta adresine kod gönderilemedi. "
                           "E-posta adresinizi kontrol edip tekrar deneyin.")
            else:
                message = "E-posta gönderilemedi. Lütfen tekrar deneyin."
            raise OtpError(message)

        return {
            "otpRequired": True,
            "otpId": otp_id,
            "email": email,
            "purpose": purpose,
            "ttlMinutes": OTP_TTL_MINUTES,
            "maxAttempts": OTP_MAX_ATTEMPTS,
        }

    def verify(self, otp_id: Any, email: str, code: Any, purpose: str) -> None:
        """
        Check a code and consume it

        Raises:
            OtpError: 400 unknown/used/expired, 429 too many attempts, 401 wrong code
        """
        otp_id = str(otp_id or "").strip()
        email = normalize_email(email)
        code = str(code or "").strip()

        if not otp_id or not email or not is_otp_code(code):
            raise OtpError("Geçersiz doğrulama bilgisi.")

        otp = self.repo.find_by_id(otp_id)
        if otp is None or otp.email != email or otp.purpose != purpose:
            raise OtpError("Doğrulama kodu bulunamadı.")

        if otp.consumed_at is not None:
            raise OtpError("Bu kod zaten kullanıldı.")

        now = datetime.now(timezone.utc)
        if now > _aware(otp.expires_at):
            raise OtpError("Kodun süresi doldu. Lütfen tekrar deneyin.")

        if otp.attempts >= OTP_MAX_ATTEMPTS:
            raise OtpError("Çok fazla deneme yapıldı. Lütfen yeni kod isteyin.", status_code=429)

        if not hmac.compare_digest(otp.code_hash, hash_otp_code(code, email, purpose)):
            self.repo.increment_attempts(otp.id)
            raise OtpError("Doğrulama kodu hatalı.", status_code=401)

        self.repo.mark_consumed(otp.id, now)
