"""
Customer Admin Service
Customer list, edits, removal and account credit for the admin panel

Author: Vadiler
Date: 2025-11-06
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from vadiler.core.auth import hash_password
from vadiler.domain.customer import Customer
from vadiler.repositories.customer_repository import CustomerRepository
from vadiler.services.formatting import normalize_email, normalize_tr_phone

logger = logging.getLogger(__name__)

# Admin form keys (camelCase or snake_case) to customer columns
CUSTOMER_FIELD_ALIASES = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "password": "password",
    "addresses": "addresses",
    "favorites": "favorites",
    "tags": "tags",
    "isActive": "is_active", "is_active": "is_active",
    "accountCredit": "account_credit", "account_credit": "account_credit",
    "totalSpent": "total_spent", "total_spent": "total_spent",
    "orderCount": "order_count", "order_count": "order_count",
    "lastOrderDate": "last_order_date", "last_order_date": "last_order_date",
}

DEFAULT_CREDIT_REASON = "Sipariş iptali"


class CustomerAdminError(Exception):
    """Admin customer request rejected; carries the HTTP status"""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _amount(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


class CustomerAdminService:

    def __init__(self, customer_repo: Optional[CustomerRepository] = None):
        self.customer_repo = customer_repo or CustomerRepository()

    def list_customers(self, search: Optional[str] = None, limit: int = 50,
                       offset: int = 0) -> Tuple[List[Customer], int]:
        return self.customer_repo.find_all(search=search, limit=limit, offset=offset)

    def get_customer(self, customer_id: str) -> Customer:
        customer = self.customer_repo.find_by_id(customer_id)
        if customer is None:
            raise CustomerAdminError("Müşteri bulunamadı.", status_code=404)
        return customer

    def update_customer(self, customer_id: str, changes: Dict[str, Any]) -> Customer:
        """
        Update whitelisted columns

        An empty password leaves the stored one untouched; a new one is
        hashed. A changed email must not belong to another account.

        Raises:
            CustomerAdminError: 404 unknown customer, 409 email taken
        """
        current = self.get_customer(customer_id)

        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            column = CUSTOMER_FIELD_ALIASES.get(key)
            if column is not None:
                fields[column] = value

        if not fields.get("password"):
            fields.pop("password", None)
        else:
            fields["password"] = hash_password(str(fields["password"]))

        if "email" in fields:
            email = normalize_email(str(fields["email"] or ""))
            if not email:
                raise CustomerAdminError("E-posta adresi boş olamaz.")
            if email != current.email:
                other = self.customer_repo.find_by_email(email)
                if other is not None and other.id != customer_id:
                    raise CustomerAdminError("Bu e-posta adresi zaten kayıtlı.", status_code=409)
            fields["email"] = email

        if fields.get("phone"):
            fields["phone"] = normalize_tr_phone(str(fields["phone"]))

        fields["updated_at"] = datetime.now(timezone.utc)
        customer = self.customer_repo.update(customer_id, fields)
        if customer is None:
            raise CustomerAdminError("Müşteri bulunamadı.", status_code=404)
        logger.info(f"Customer {customer_id} updated by admin: {sorted(set(fields) - {'updated_at', 'password'})}")
        return customer

    def delete_customer(self, customer_id: str) -> None:
        if not self.customer_repo.delete(customer_id):
            raise CustomerAdminError("Müşteri bulunamadı.", status_code=404)
        logger.info(f"Customer {customer_id} deleted by admin")

    def add_credit(self, customer_id: Optional[str], amount: Any, reason: Optional[str] = None) -> Customer:
        """
        Add store credit, typically after a cancelled order

        Raises:
            CustomerAdminError: 400 missing id or non-positive amount, 404 unknown customer
        """
        value = _amount(amount)
        if not customer_id or value is None or value <= 0:
            raise CustomerAdminError("Geçersiz parametreler. customerId ve pozitif amount gereklidir.")

        customer = self.customer_repo.add_credit(customer_id, value)
        if customer is None:
            raise CustomerAdminError("Müşteri bulunamadı", status_code=404)

        logger.info(f"Credit of {value} TL added to customer {customer_id}: {reason or DEFAULT_CREDIT_REASON}")
        return customer
