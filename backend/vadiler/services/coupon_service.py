"""
Coupon Service
Validates coupon codes at checkout and manages coupons for the admin panel

Author: Vadiler
Date: 2025-11-03
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from vadiler.domain.coupon import Coupon
from vadiler.repositories.coupon_repository import CouponRepository
from vadiler.services.checkout_service import clamp_money

logger = logging.getLogger(__name__)


class CouponError(Exception):
    """Coupon cannot be applied; carries the HTTP status for the router"""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_coupon(coupon: Coupon, order_total: Decimal, now: Optional[datetime] = None) -> Decimal:
    """
    Validate a coupon against an order total and return the discount

    Raises:
        CouponError: inactive, outside its validity window, used up or
            below the minimum order amount
    """
    now = now or datetime.now(timezone.utc)

    if not coupon.is_active:
        raise CouponError("Bu kupon artık geçerli değil.")

    valid_from = _aware(coupon.valid_from)
    valid_until = _aware(coupon.valid_until)
    if (valid_from and now < valid_from) or (valid_until and now > valid_until):
        raise CouponError("Bu kupon şu anda geçerli değil.")

    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponError("Bu kupon kullanım limitine ulaşmış.")

    minimum = coupon.min_order_amount or Decimal("0")
    if order_total < minimum:
        raise CouponError(
            f"Bu kuponu kullanmak için minimum {minimum:g} TL sipariş vermelisiniz."
        )

    return coupon.discount_for(order_total)


class CouponService:

    def __init__(self, repo: Optional[CouponRepository] = None):
        self.repo = repo or CouponRepository()

    def validate_and_apply(self, code: Optional[str], order_total: Any) -> Dict[str, Any]:
        """Validate a code, count one use and return the discount"""
        if not code or not str(code).strip():
            raise CouponError("Kupon kodu gereklidir.")

        coupon = self.repo.find_by_code(str(code))
        if coupon is None:
            raise CouponError("Geçersiz kupon kodu.", status_code=404)

        discount = check_coupon(coupon, clamp_money(order_total))

        self.repo.increment_usage(coupon.id)
        logger.info(f"Coupon {coupon.code} applied, discount {discount}")

        return {
            "success": True,
            "coupon": {
                "id": coupon.id,
                "code": coupon.code,
                "type": coupon.type,
                "value": float(coupon.value),
            },
            "discount": float(discount),
        }

    def list_coupons(self, active_only: bool = False) -> List[Dict[str, Any]]:
        return [coupon.to_dict() for coupon in self.repo.find_all(active_only=active_only)]

    def create_coupon(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("code") or not data.get("type") or not data.get("value"):
            raise CouponError("Code, type, and value are required")
        if data["type"] not in ("percentage", "fixed"):
            raise CouponError("type must be 'percentage' or 'fixed'")

        code = str(data["code"]).strip().upper()
        if self.repo.find_by_code(code):
            raise CouponError("Bu kupon kodu zaten mevcut.")

        row = {
            "code": code,
            "description": data.get("description"),
            "type": data["type"],
            "value": data["value"],
            "min_order_amount": data.get("min_order_amount") or 0,
            "max_discount_amount": data.get("max_discount_amount"),
            "usage_limit": data.get("usage_limit") or 1,
            "used_count": 0,
            "valid_from": data.get("valid_from"),
            "valid_until": data.get("valid_until"),
            "is_active": data.get("is_active") is not False,
        }
        self.repo.insert_many([row])
        return self.repo.find_by_code(code).to_dict()
