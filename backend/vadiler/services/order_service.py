"""
Order Service
Creates, updates, deletes and tracks storefront orders

Author: Vadiler
Date: 2025-11-04
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from vadiler.domain.order import Order
from vadiler.domain.order_status import (
    AWAITING_PAYMENT_STATUSES,
    NOTIFY_STATUSES,
    OrderStatus,
    display_status,
    timeline_entry,
)
from vadiler.repositories.customer_repository import CustomerRepository
from vadiler.repositories.order_repository import OrderRepository, INSERTABLE_COLUMNS
from vadiler.services.checkout_service import (
    CheckoutValidationError,
    build_trusted_order_products,
    compute_totals,
    validate_delivery_date,
)
from vadiler.services.delivery_schedule import TIME_GROUPS, order_time_group
from vadiler.services.email_service import EmailService, get_email_service
from vadiler.services.formatting import mask_phone, normalize_email, normalize_tr_phone
from vadiler.services.order_lifecycle_service import OrderLifecycleService
from vadiler.services.order_number_service import OrderNumberService, is_valid_order_number

logger = logging.getLogger(__name__)

# Admin update payload keys (camelCase from the panel, snake_case accepted too)
UPDATE_FIELD_MAP = {
    "customerId": "customer_id",
    "customerName": "customer_name",
    "customerEmail": "customer_email",
    "customerPhone": "customer_phone",
    "isGuest": "is_guest",
    "products": "products",
    "delivery": "delivery",
    "payment": "payment",
    "message": "message",
    "subtotal": "subtotal",
    "discount": "discount",
    "deliveryFee": "delivery_fee",
    "total": "total",
    "notes": "notes",
    "trackingUrl": "tracking_url",
    "orderTimeGroup": "order_time_group",
    "timeline": "timeline",
}


class OrderNotFoundError(Exception):
    """No order with the given id or number"""


class TrackingError(Exception):
    """Tracking request rejected; carries the HTTP status"""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def initial_status(requested: Optional[str], payment_method: Optional[str]) -> str:
    """
    Status a new order starts in

    Clients may ask for any awaiting-payment status; anything else falls
    back to the payment method's default so bank transfers are picked up
    by the reminder job.
    """
    if requested in AWAITING_PAYMENT_STATUSES:
        return requested
    if requested:
        logger.warning(f"Ignoring requested initial status {requested!r}")
    if payment_method == "bank_transfer":
        return OrderStatus.AWAITING_PAYMENT.value
    return OrderStatus.PENDING_PAYMENT.value


def detect_device_type(user_agent: str) -> str:
    ua = (user_agent or "").lower()
    if not ua:
        return "desktop"
    if "ipad" in ua or "tablet" in ua:
        return "tablet"
    if "mobi" in ua or "iphone" in ua or "android" in ua:
        return "mobile"
    return "desktop"


_BROWSER_PATTERNS = [
    ("Edge", re.compile(r"Edg/([\d.]+)")),
    ("Chrome", re.compile(r"Chrome/([\d.]+)")),
    ("Firefox", re.compile(r"Firefox/([\d.]+)")),
    ("Safari", re.compile(r"Version/([\d.]+).*Safari")),
    ("Opera", re.compile(r"OPR/([\d.]+)")),
]


def detect_browser(user_agent: str) -> Tuple[str, str]:
    for name, pattern in _BROWSER_PATTERNS:
        match = pattern.search(user_agent or "")
        if match:
            return name, match.group(1)
    return "Bilinmiyor", ""


def build_client_info(headers: Mapping[str, str], existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Device, browser and OS of the buyer, stored under payment.clientInfo"""
    user_agent = headers.get("user-agent") or ""
    browser, version = detect_browser(user_agent)
    info = dict(existing or {})
    info.update({
        "userAgent": user_agent or None,
        "deviceType": detect_device_type(user_agent),
        "browser": browser,
        "browserVersion": version or None,
        "os": (headers.get("sec-ch-ua-platform") or "").strip('"') or None,
    })
    return {key: value for key, value in info.items() if value is not None}


class OrderService:
    """
    Order use cases for the storefront and the admin panel

    Handles:
    - Order creation with server-trusted totals
    - Admin listing, updates and deletion with backup
    - Public order tracking
    """

    def __init__(
        self,
        order_repo: Optional[OrderRepository] = None,
        customer_repo: Optional[CustomerRepository] = None,
        lifecycle: Optional[OrderLifecycleService] = None,
        number_service: Optional[OrderNumberService] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.customer_repo = customer_repo or CustomerRepository()
        self._email_service = email_service
        self.lifecycle = lifecycle or OrderLifecycleService(self.order_repo, email_service)
        self.number_service = number_service or OrderNumberService(self.order_repo)

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _customer_snapshot(self, payload: Dict[str, Any], customer_id: Optional[str]) -> Dict[str, str]:
        name = str(payload.get("customer_name") or "")
        email = str(payload.get("customer_email") or "")
        phone = str(payload.get("customer_phone") or "")

        if (not name or not email or not phone) and customer_id:
            customer = self.customer_repo.find_by_id(customer_id)
            if customer:
                name = name or customer.name or ""
                email = email or customer.email or ""
                phone = phone or customer.phone or ""

        delivery = payload.get("delivery") or {}
        name = name or delivery.get("recipientName") or ""
        phone = phone or delivery.get("recipientPhone") or ""

        return {
            "customer_name": name,
            "customer_email": normalize_email(email),
            "customer_phone": normalize_tr_phone(phone) if phone else "",
        }

    def create_order(self, payload: Dict[str, Any], headers: Optional[Mapping[str, str]] = None) -> Order:
        """
        Create an order from a checkout payload

        Raises:
            CheckoutValidationError: missing data, bad lines or undeliverable date
        """
        if not payload.get("products") or not payload.get("delivery"):
            raise CheckoutValidationError("Products and delivery info are required")

        status = initial_status(payload.get("status"), (payload.get("payment") or {}).get("method"))

        delivery = dict(payload["delivery"])
        validate_delivery_date(delivery.get("deliveryDate"))
        if delivery.get("recipientPhone"):
            delivery["recipientPhone"] = normalize_tr_phone(delivery["recipientPhone"])

        products, subtotal = build_trusted_order_products(payload["products"])
        totals = compute_totals(subtotal, payload.get("delivery_fee", 0), payload.get("discount", 0))

        customer_id = payload.get("customer_id") or None
        is_guest = payload["is_guest"] if isinstance(payload.get("is_guest"), bool) else not customer_id

        now = datetime.now(timezone.utc)
        payment = dict(payload.get("payment") or {})
        payment["clientInfo"] = build_client_info(
            headers or {}, payment.get("clientInfo") or payment.pop("client_info", None)
        )

        requested_group = str(payload.get("order_time_group") or "").lower()
        time_group = requested_group if requested_group in TIME_GROUPS else order_time_group(now)

        note = "Sipariş alındı" if status == OrderStatus.PENDING.value else "Ödeme bekleniyor"

        fields = {
            "order_number": self.number_service.generate_order_number(),
            "customer_id": customer_id,
            **self._customer_snapshot(payload, customer_id),
            "is_guest": is_guest,
            "products": products,
            "delivery": delivery,
            "payment": payment,
            "message": payload.get("message") or None,
            "subtotal": totals["subtotal"],
            "discount": totals["discount"],
            "delivery_fee": totals["delivery_fee"],
            "total": totals["total"],
            "coupon_code": (payload.get("coupon_code") or "").upper() or None,
            "status": status,
            "order_time_group": time_group,
            "timeline": [timeline_entry(status, note, automated=True, timestamp=now.isoformat())],
            "notes": payload.get("notes") or "",
            "tracking_url": payload.get("tracking_url") or "",
            "created_at": now,
            "updated_at": now,
        }

        order = self.order_repo.create(fields)
        logger.info(f"Order {order.order_number} created ({order.item_count} items, total {order.total})")

        if order.payment_method == "bank_transfer" and order.customer_email:
            try:
                if not self.email_service.send_bank_transfer_confirmation(order):
                    logger.warning(f"Bank transfer email for order {order.order_number} was not sent")
            except Exception as e:
                logger.error(f"Bank transfer email for order {order.order_number} failed: {e}")

        if customer_id and not is_guest:
            try:
                self.customer_repo.record_order(customer_id, order.id, order.total, now)
            except Exception as e:
                logger.warning(f"Could not update stats of customer {customer_id}: {e}")

        return order

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_orders(self, customer_id: Optional[str] = None, status: Optional[str] = None,
                    search: Optional[str] = None, limit: int = 50,
                    offset: int = 0) -> Tuple[List[Order], int]:
        return self.order_repo.find_all(
            customer_id=customer_id, status=status, search=search, limit=limit, offset=offset
        )

    def get_order(self, order_id: str) -> Order:
        order = self.order_repo.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Order:
        """
        Field-wise admin update

        A status change runs through the state machine together with the
        other fields; the matching customer email goes out once per status.

        Raises:
            OrderNotFoundError, InvalidTransitionError, StaleOrderError
        """
        current = self.get_order(order_id)

        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            column = UPDATE_FIELD_MAP.get(key) or (key if key in UPDATE_FIELD_MAP.values() else None)
            if column:
                fields[column] = value

        target = str(changes.get("status") or "").lower()
        now_iso = datetime.now(timezone.utc).isoformat()

        if target and target != current.status:
            fields.pop("timeline", None)
            payment_patch = fields.pop("payment", None)
            return self.lifecycle.transition(
                current,
                target,
                note=changes.get("note") or "Durum güncellendi",
                automated=False,
                payment_patch=payment_patch,
                extra_fields=fields,
                notify=target in NOTIFY_STATUSES,
            )

        fields["updated_at"] = now_iso
        updated = self.order_repo.update_fields(order_id, fields)
        if updated is None:
            raise OrderNotFoundError(order_id)
        return updated

    def delete_order(self, order_id: str) -> Dict[str, Any]:
        """Back the order up into deleted_orders, then delete it"""
        order = self.get_order(order_id)

        backed_up = self.order_repo.backup_deleted(order)
        if not backed_up:
            logger.warning(f"Deleting order {order.order_number} without backup")

        self.order_repo.delete(order_id)
        logger.info(f"Order {order.order_number} deleted (backed_up={backed_up})")
        return {"success": True, "backed_up": backed_up}

    def list_deleted(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        return self.order_repo.find_deleted(limit=limit, offset=offset)

    def restore_order(self, backup_id: Any) -> Order:
        backup = self.order_repo.find_deleted_backup(backup_id)
        if backup is None:
            raise OrderNotFoundError(str(backup_id))

        data = backup.get("order_data") or {}
        fields = {key: value for key, value in data.items() if key in INSERTABLE_COLUMNS}
        fields["updated_at"] = datetime.now(timezone.utc)

        order = self.order_repo.create(fields)
        try:
            self.order_repo.remove_deleted_backup(backup_id)
        except Exception as e:
            logger.warning(f"Order {order.order_number} restored but backup {backup_id} not removed: {e}")
        return order

    # ------------------------------------------------------------------
    # Public tracking
    # ------------------------------------------------------------------

    def track_order(self, order_number: Any, verification_type: Optional[str],
                    verification_value: Optional[str]) -> Dict[str, Any]:
        """
        Public order lookup by number plus email or phone

        Raises:
            TrackingError: 400 on bad input, 404 unknown order, 403 mismatch
        """
        try:
            number = int(order_number)
        except (TypeError, ValueError):
            raise TrackingError("Sipariş numarası gereklidir.")

        if not is_valid_order_number(number):
            raise TrackingError("Geçersiz sipariş numarası formatı.")
        if verification_type not in ("email", "phone"):
            raise TrackingError("Doğrulama tipi geçersiz.")
        if not (verification_value or "").strip():
            raise TrackingError("Doğrulama bilgisi gereklidir.")

        order = self.order_repo.find_by_order_number(number)
        if order is None:
            raise TrackingError("Sipariş bulunamadı.", status_code=404)

        if verification_type == "email":
            order_email = normalize_email(order.customer_email)
            verified = bool(order_email) and order_email == normalize_email(verification_value)
        else:
            given = normalize_tr_phone(verification_value)
            candidates = {
                normalize_tr_phone(order.customer_phone),
                normalize_tr_phone(order.recipient_phone),
            } - {""}
            verified = given in candidates

        if not verified:
            raise TrackingError("Doğrulama bilgileri sipariş ile eşleşmiyor.", status_code=403)

        return self._tracking_projection(order)

    @staticmethod
    def _tracking_projection(order: Order) -> Dict[str, Any]:
        delivery = order.delivery or {}
        message = order.message or {}
        created_at = order.created_at.isoformat() if order.created_at else ""

        return {
            "id": order.id,
            "orderNumber": order.order_number,
            "status": display_status(order.status),
            "createdAt": created_at,
            "deliveryDate": delivery.get("deliveryDate") or created_at,
            "deliveryTimeSlot": delivery.get("deliveryTimeSlot") or "11:00-17:00",
            "recipientName": delivery.get("recipientName") or "Alıcı",
            "recipientPhone": mask_phone(delivery.get("recipientPhone")),
            "deliveryAddress": delivery.get("fullAddress") or delivery.get("recipientAddress") or "",
            "district": delivery.get("district") or "",
            "items": [
                {
                    "productId": int(line.get("productId") or line.get("id") or 0),
                    "productName": line.get("name") or "",
                    "quantity": int(line.get("quantity") or 0),
                    "price": float(line.get("price") or 0),
                    "image": line.get("image") or "",
                }
                for line in order.products
            ],
            "subtotal": float(order.subtotal),
            "deliveryFee": float(order.delivery_fee),
            "discount": float(order.discount),
            "total": float(order.total),
            "paymentMethod": order.payment_method or "credit_card",
            "paymentStatus": order.payment.get("status") or "pending",
            "cardMessage": message.get("content") or order.notes or "",
            "senderName": message.get("senderName") or "",
        }
