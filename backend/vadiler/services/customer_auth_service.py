"""
Customer Auth Service
Registration, login and password reset with email codes, Google sign-in,
and the customer's own profile and order history.

Author: Vadiler
Date: 2025-11-05
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from vadiler.core.auth import hash_password, verify_password
from vadiler.domain.customer import Customer
from vadiler.domain.order import Order
from vadiler.repositories.customer_repository import CustomerRepository
from vadiler.repositories.order_repository import OrderRepository
from vadiler.services.formatting import DEFAULT_PHONE, normalize_email, normalize_tr_phone
from vadiler.services.otp_service import OtpError, OtpService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

RESET_REQUESTED_MESSAGE = (
    "Eğer bu e-posta adresi sistemimizde kayıtlıysa, şifre sıfırlama kodu gönderilecektir."
)


class AuthError(Exception):
    """Customer auth request rejected; carries the HTTP status"""

    def __init__(self, message: str, status_code: int = 400, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)

    @classmethod
    def from_otp(cls, error: OtpError) -> "AuthError":
        return cls(error.message, error.status_code, error.extra)


class CustomerAuthService:

    def __init__(self, customer_repo: Optional[CustomerRepository] = None,
                 otp_service: Optional[OtpService] = None,
                 order_repo: Optional[OrderRepository] = None):
        self.customer_repo = customer_repo or CustomerRepository()
        self.otp_service = otp_service or OtpService()
        self.order_repo = order_repo or OrderRepository()

    def _issue(self, email: str, purpose: str) -> Dict[str, Any]:
        try:
            return self.otp_service.issue(email, purpose)
        except OtpError as e:
            raise AuthError.from_otp(e)

    def _verify(self, otp_id: Any, email: str, code: Any, purpose: str) -> None:
        try:
            self.otp_service.verify(otp_id, email, code, purpose)
        except OtpError as e:
            raise AuthError.from_otp(e)

    def _customer_for(self, email: str) -> Customer:
        customer = self.customer_repo.find_by_email(email)
        if customer is None:
            raise AuthError("Müşteri bulunamadı.", status_code=404)
        return customer

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register_start(self, email: str, name: str, phone: str, password: str) -> Dict[str, Any]:
        email = normalize_email(email)
        name = (name or "").strip()
        phone = (phone or "").strip()

        if not email or not name or not phone or not password:
            raise AuthError("E-posta, ad soyad, telefon ve şifre gereklidir.")

        if self.customer_repo.find_by_email(email) is not None:
            raise AuthError("Bu e-posta adresi zaten kayıtlı.")

        customer = self.customer_repo.create({
            "email": email,
            "name": name,
            "phone": normalize_tr_phone(phone) or phone,
            "password": hash_password(password),
            "addresses": [],
            "orders": [],
            "favorites": [],
        })

        try:
            return self._issue(email, "register")
        except AuthError:
            # Keep the account only when its code went out
            self.customer_repo.delete(customer.id)
            raise

    def register_verify(self, otp_id: Any, email: str, code: Any) -> Customer:
        self._verify(otp_id, email, code, "register")
        return self._customer_for(normalize_email(email))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login_start(self, email: str, password: str) -> Dict[str, Any]:
        email = normalize_email(email)
        if not email or not password:
            raise AuthError("E-posta ve şifre gereklidir.")

        customer = self.customer_repo.find_by_email(email)
        if customer is None or not verify_password(password, customer.password):
            raise AuthError("E-posta veya şifre hatalı.", status_code=401)

        if not customer.is_active:
            raise AuthError("Hesabınız pasif durumda. Lütfen destek ile iletişime geçin.", status_code=403)

        return self._issue(email, "login")

    def login_verify(self, otp_id: Any, email: str, code: Any) -> Customer:
        self._verify(otp_id, email, code, "login")
        return self._customer_for(normalize_email(email))

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def password_reset_start(self, email: str) -> Dict[str, Any]:
        """Answers the same way for unknown emails"""
        email = normalize_email(email)
        if not email:
            raise AuthError("E-posta adresi gereklidir.")

        if self.customer_repo.find_by_email(email) is None:
            return {"success": True, "message": RESET_REQUESTED_MESSAGE}

        result = self._issue(email, "password-reset")
        return {**result, "success": True, "message": "Şifre sıfırlama kodu e-posta adresinize gönderildi."}

    def password_reset_verify(self, otp_id: Any, email: str, code: Any, new_password: str) -> Customer:
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Yeni şifre en az {MIN_PASSWORD_LENGTH} karakter olmalıdır.")

        self._verify(otp_id, email, code, "password-reset")
        customer = self._customer_for(normalize_email(email))

        updated = self.customer_repo.update(customer.id, {
            "password": hash_password(new_password),
            "updated_at": datetime.now(timezone.utc),
        })
        logger.info(f"Password reset for customer {customer.id}")
        return updated or customer

    # ------------------------------------------------------------------
    # Google
    # ------------------------------------------------------------------

    def find_or_create_google_customer(self, email: str, name: Optional[str] = None) -> Customer:
        email = normalize_email(email)
        existing = self.customer_repo.find_by_email(email)
        if existing is not None:
            return existing

        display_name = (name or "").strip() or email.split("@")[0] or "Müşteri"
        try:
            return self.customer_repo.create({
                "email": email,
                "name": display_name,
                "phone": DEFAULT_PHONE,
                # Unusable password; the account signs in through Google
                "password": f"oauth_{secrets.token_urlsafe(16)}",
                "addresses": [],
                "orders": [],
                "favorites": [],
            })
        except Exception:
            # Lost a race with a parallel sign-in
            again = self.customer_repo.find_by_email(email)
            if again is not None:
                return again
            raise

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_customer(self, customer_id: str) -> Customer:
        customer = self.customer_repo.find_by_id(customer_id)
        if customer is None:
            raise AuthError("Müşteri bulunamadı.", status_code=404)
        return customer

    def update_profile(self, customer_id: str, changes: Dict[str, Any]) -> Customer:
        fields: Dict[str, Any] = {}
        if changes.get("name") is not None:
            fields["name"] = str(changes["name"]).strip()
        if changes.get("phone") is not None:
            fields["phone"] = normalize_tr_phone(changes["phone"]) or str(changes["phone"])
        if changes.get("email") is not None:
            email = normalize_email(changes["email"])
            other = self.customer_repo.find_by_email(email)
            if other is not None and other.id != customer_id:
                raise AuthError("Bu e-posta adresi zaten kayıtlı.")
            fields["email"] = email
        for key in ("addresses", "favorites"):
            if isinstance(changes.get(key), list):
                fields[key] = changes[key]

        fields["updated_at"] = datetime.now(timezone.utc)
        updated = self.customer_repo.update(customer_id, fields)
        if updated is None:
            raise AuthError("Müşteri bulunamadı.", status_code=404)
        return updated

    def change_password(self, customer_id: str, current_password: str, new_password: str) -> None:
        customer = self.get_customer(customer_id)
        if not verify_password(current_password, customer.password):
            raise AuthError("Mevcut şifre hatalı.", status_code=401)
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Yeni şifre en az {MIN_PASSWORD_LENGTH} karakter olmalıdır.")
        self.customer_repo.update(customer_id, {
            "password": hash_password(new_password),
            "updated_at": datetime.now(timezone.utc),
        })

    def order_history(self, customer_id: str, limit: int = 50, offset: int = 0) -> List[Order]:
        orders, _ = self.order_repo.find_all(customer_id=customer_id, limit=limit, offset=offset)
        return orders
