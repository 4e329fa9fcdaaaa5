"""
Checkout Service
Server-trusted order totals and delivery date validation

Line items sent by the storefront are only trusted for product id and
quantity. Name, image and price are re-read from the catalog so a tampered
cart cannot change what the customer pays.

Author: Vadiler
Date: 2025-11-03
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from vadiler.repositories.product_repository import ProductRepository
from vadiler.repositories.delivery_calendar_repository import DeliveryCalendarRepository

logger = logging.getLogger(__name__)

MAX_DELIVERY_FEE = Decimal("1000000")

DELIVERY_OFF_DAY_ERROR = (
    "Yoğunluk sebebiyle bu tarihte teslimat yapılamamaktadır. Lütfen başka bir tarih seçin."
)
INVALID_DELIVERY_DATE_ERROR = "Geçersiz teslimat tarihi"


class CheckoutValidationError(Exception):
    """Cart or delivery data that cannot become an order (HTTP 400)"""


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _to_int(value: Any) -> Optional[int]:
    number = _to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def clamp_money(value: Any, minimum: Decimal = Decimal("0"),
                maximum: Optional[Decimal] = None) -> Decimal:
    """Clamp a client supplied amount; anything non-numeric counts as 0"""
    number = _to_decimal(value)
    if number is None:
        number = Decimal("0")
    number = max(Decimal(str(minimum)), number)
    if maximum is not None:
        number = min(Decimal(str(maximum)), number)
    return number


def build_trusted_order_products(
    lines: List[Dict[str, Any]],
    product_repo: Optional[ProductRepository] = None,
) -> Tuple[List[Dict[str, Any]], Decimal]:
    """
    Rebuild order lines from the catalog

    Args:
        lines: Client lines, each with id (or productId) and quantity

    Returns:
        Tuple of (line snapshots, subtotal)

    Raises:
        CheckoutValidationError: bad id or quantity, or product not in catalog
    """
    if not isinstance(lines, list):
        raise CheckoutValidationError("Invalid products in order")

    normalized = []
    for raw in lines:
        raw = raw if isinstance(raw, dict) else {}
        product_id = _to_int(raw.get("id", raw.get("productId")))
        quantity = _to_int(raw.get("quantity", 0))
        normalized.append((product_id, quantity))

    for product_id, quantity in normalized:
        if product_id is None or product_id <= 0:
            raise CheckoutValidationError("Invalid product id in order")
        if quantity is None or quantity <= 0:
            raise CheckoutValidationError("Invalid quantity in order")

    product_repo = product_repo or ProductRepository()
    catalog = product_repo.find_by_ids({product_id for product_id, _ in normalized})

    trusted = []
    subtotal = Decimal("0")
    for product_id, quantity in normalized:
        product = catalog.get(product_id)
        if product is None:
            raise CheckoutValidationError(f"Product not found in catalog: {product_id}")

        trusted.append({
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "image": product.image or "",
            "price": float(product.price),
            "quantity": quantity,
            "category": product.category,
            "categoryName": product.category_name,
        })
        subtotal += product.price * quantity

    return trusted, subtotal


def compute_totals(subtotal: Decimal, delivery_fee: Any = 0, discount: Any = 0) -> Dict[str, Decimal]:
    """Delivery fee and discount are clamped so total never goes negative"""
    subtotal = Decimal(str(subtotal))
    fee = clamp_money(delivery_fee, Decimal("0"), MAX_DELIVERY_FEE)
    discount = clamp_money(discount, Decimal("0"), subtotal + fee)
    return {
        "subtotal": subtotal,
        "delivery_fee": fee,
        "discount": discount,
        "total": subtotal + fee - discount,
    }


def parse_delivery_date(value: Any) -> Optional[date]:
    """YYYY-MM-DD or an ISO timestamp; None when unparseable"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def validate_delivery_date(value: Any,
                           calendar_repo: Optional[DeliveryCalendarRepository] = None) -> Optional[date]:
    """
    Reject Sundays and active off days

    Returns the parsed date, or None when no date was given.

    Raises:
        CheckoutValidationError: unparseable date, Sunday or off day
    """
    if value in (None, ""):
        return None

    delivery_date = parse_delivery_date(value)
    if delivery_date is None:
        raise CheckoutValidationError(INVALID_DELIVERY_DATE_ERROR)

    if delivery_date.weekday() == 6:
        raise CheckoutValidationError(DELIVERY_OFF_DAY_ERROR)

    calendar_repo = calendar_repo or DeliveryCalendarRepository()
    if calendar_repo.is_off_day(delivery_date):
        raise CheckoutValidationError(DELIVERY_OFF_DAY_ERROR)

    return delivery_date
