"""
Payment Service
iyzico checkout flow and every path that marks an order paid or failed:
redirect completion, webhook, admin confirmation, bank transfer and refund.

Status writes go through OrderLifecycleService so that a payment seen twice
(webhook and redirect, or redirect and cron) is confirmed once.

Author: Vadiler
Date: 2025-11-05
"""
import asyncio
import base64
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from vadiler.connectors.iyzico_connector import IyzicoConnector, get_iyzico_connector
from vadiler.core.config import settings
from vadiler.domain.order import Order
from vadiler.domain.order_status import (
    InvalidTransitionError,
    OrderStatus,
    PaymentDowngradeError,
    PaymentStatus,
)
from vadiler.repositories.order_repository import OrderRepository, StaleOrderError
from vadiler.services.formatting import format_try
from vadiler.services.order_lifecycle_service import OrderLifecycleService
from vadiler.services.payment_helpers import (
    TOKEN_EXPIRED_MESSAGE,
    build_checkout_form_request,
    callback_url,
    client_ip_from_headers,
    map_iyzico_error,
    resolve_buyer,
    validate_payment_response,
)

logger = logging.getLogger(__name__)

TOKEN_EXPIRATION_MINUTES = 25
COMPLETION_LOCK_SECONDS = 30
TOKEN_SAVE_ATTEMPTS = 3

ORDER_NOT_FOUND_MESSAGE = "Sipariş bulunamadı. Lütfen sepetinize dönüp tekrar deneyin."
UPDATE_FAILED_MESSAGE = "Sipariş güncellenemedi. Lütfen müşteri hizmetleriyle iletişime geçin."
AMOUNT_MISMATCH_MESSAGE = "Ödeme tutarı sipariş toplamıyla eşleşmiyor"


class PaymentError(Exception):
    """Payment request rejected; carries the HTTP status"""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_token_expired(token_created_at: Optional[str], now: Optional[datetime] = None) -> bool:
    """Tokens without a creation time are treated as valid"""
    created = _parse_iso(token_created_at)
    if created is None:
        return False
    now = now or datetime.now(timezone.utc)
    return (now - created).total_seconds() / 60 > TOKEN_EXPIRATION_MINUTES


def completion_in_progress(started_at: Optional[str], now: Optional[datetime] = None) -> bool:
    started = _parse_iso(started_at)
    if started is None:
        return False
    now = now or datetime.now(timezone.utc)
    return (now - started).total_seconds() < COMPLETION_LOCK_SECONDS


def webhook_signatures(payload: Dict[str, Any], secret_key: str) -> tuple:
    """Expected X-IYZ-SIGNATURE-V3 values: plain and secret-prefixed data"""
    data = "{}{}{}{}".format(
        payload.get("iyziEventType") or "",
        payload.get("paymentId") or "",
        payload.get("paymentConversationId") or "",
        payload.get("status") or "",
    )
    key = secret_key.encode("utf-8")
    plain = hmac.new(key, data.encode("utf-8"), hashlib.sha256).hexdigest()
    prefixed = hmac.new(key, (secret_key + data).encode("utf-8"), hashlib.sha256).hexdigest()
    return plain, prefixed


def verify_webhook_signature(payload: Dict[str, Any], signature: Optional[str],
                             secret_key: Optional[str] = None) -> bool:
    if not signature:
        logger.error("Webhook signature missing")
        return False

    secret_key = secret_key if secret_key is not None else settings.IYZICO_SECRET_KEY
    if not secret_key:
        logger.error("Webhook received but IYZICO_SECRET_KEY is not set")
        return False

    return any(hmac.compare_digest(signature, expected)
               for expected in webhook_signatures(payload, secret_key))


def _amount_mismatch(paid_price: Any, total: Any) -> bool:
    try:
        paid = Decimal(str(paid_price))
        expected = Decimal(str(total))
    except (InvalidOperation, ValueError):
        return False
    return abs(paid - expected) > Decimal("0.01")


class PaymentService:
    """
    Payment use cases

    Handles:
    - Checkout form initialization
    - Server side completion after the gateway redirect
    - Webhook events
    - Admin confirmation, bank transfer confirmation and refunds
    """

    # Seconds to wait before re-checking an order whose completion is running elsewhere
    lock_wait_seconds = 2.0
    token_retry_delay = 0.1

    def __init__(self, order_repo: Optional[OrderRepository] = None,
                 lifecycle: Optional[OrderLifecycleService] = None,
                 connector: Optional[IyzicoConnector] = None):
        self.order_repo = order_repo or OrderRepository()
        self.lifecycle = lifecycle or OrderLifecycleService(self.order_repo)
        self._connector = connector

    @property
    def connector(self) -> IyzicoConnector:
        if self._connector is None:
            self._connector = get_iyzico_connector()
        return self._connector

    def _get_order(self, order_id: str) -> Order:
        order = self.order_repo.find_by_id(order_id)
        if order is None:
            raise PaymentError("Sipariş bulunamadı", status_code=404)
        return order

    # ------------------------------------------------------------------
    # Initialize
    # ------------------------------------------------------------------

    async def initialize_payment(self, order_id: Optional[str], headers=None,
                                 customer: Optional[Dict[str, Any]] = None,
                                 client_total: Any = None) -> Dict[str, Any]:
        """
        Start a hosted checkout form for a stored order

        Prices and basket come from the stored order, never the client.

        Raises:
            PaymentError: 400 bad input, 404 unknown order, 409 already paid,
                500 token could not be saved
        """
        if not order_id:
            raise PaymentError("Missing orderId")

        order = self._get_order(order_id)

        if order.is_paid:
            raise PaymentError("Bu sipariş için ödeme zaten alınmış.", status_code=409)
        if not order.products:
            raise PaymentError("Order has no products")

        buyer = resolve_buyer(order, customer)
        if buyer is None:
            raise PaymentError("Siparişte e-posta bilgisi eksik. Lütfen bizimle iletişime geçin.")

        if client_total is not None and _amount_mismatch(client_total, order.total):
            logger.warning(f"Client total {client_total} differs from order {order.id} total {order.total}")

        request = build_checkout_form_request(
            order,
            buyer,
            callback_url(settings.APP_URL),
            client_ip_from_headers(headers or {}),
        )
        result = await self.connector.initialize_checkout_form(request)

        validation = validate_payment_response(result)
        if not validation["is_valid"]:
            raise PaymentError(map_iyzico_error(result.get("errorCode"), validation["error"]))

        token = result.get("token")
        await self._save_token(order, token)

        content = result.get("checkoutFormContent") or ""
        return {
            "success": True,
            "paymentId": order.id,
            "token": token,
            "conversationId": order.id,
            "threeDSHtmlContent": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "environment": self.connector.environment,
        }

    async def _save_token(self, order: Order, token: Optional[str]) -> None:
        patch = {
            "method": "credit_card",
            "status": PaymentStatus.PENDING.value,
            "token": token,
            "tokenCreatedAt": datetime.now(timezone.utc).isoformat(),
        }

        for attempt in range(1, TOKEN_SAVE_ATTEMPTS + 1):
            try:
                if self.order_repo.merge_payment(order.id, patch, unless_paid=True) is None:
                    logger.warning(f"Order {order.id} was paid before its new token could be saved")
                return
            except Exception as e:
                logger.warning(f"Saving payment token for order {order.id} failed (attempt {attempt}): {e}")
            if attempt < TOKEN_SAVE_ATTEMPTS:
                await asyncio.sleep(self.token_retry_delay * attempt)

        logger.error(f"Payment token for order {order.id} could not be saved")
        raise PaymentError("Ödeme başlatılamadı. Lütfen tekrar deneyin.", status_code=500)

    # ------------------------------------------------------------------
    # Shared status writes
    # ------------------------------------------------------------------

    def confirm_payment(self, order: Order, payment_fields: Dict[str, Any], note: str,
                        automated: bool = True, timeline_extra: Optional[Dict[str, Any]] = None,
                        extra_fields: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Mark an order paid and confirmed

        Returns {"order", "already_completed"}; an order that is already paid,
        or that another writer confirmed first, is reported as already completed.
        """
        if order.is_paid:
            return {"order": order, "already_completed": True}

        patch = {"status": PaymentStatus.PAID.value, "completionStartedAt": None}
        patch.update(payment_fields)
        patch.setdefault("paidAt", datetime.now(timezone.utc).isoformat())

        try:
            updated = self.lifecycle.transition(
                order,
                OrderStatus.CONFIRMED.value,
                note,
                automated=automated,
                payment_patch=patch,
                timeline_extra=timeline_extra,
                extra_fields=extra_fields,
            )
        except StaleOrderError:
            logger.info(f"Order {order.id} was confirmed concurrently")
            latest = self.order_repo.find_by_id(order.id) or order
            return {"order": latest, "already_completed": True}

        return {"order": updated, "already_completed": False}

    def mark_payment_failed(self, order: Order, error_message: str,
                            payment_fields: Optional[Dict[str, Any]] = None,
                            note: Optional[str] = None,
                            extra_fields: Optional[Dict[str, Any]] = None) -> Optional[Order]:
        """
        Move an unpaid order to payment_failed

        Paid orders are never downgraded; None is returned for them and for
        orders already moved on by another writer.
        """
        if order.is_paid:
            logger.info(f"Order {order.id} is paid, ignoring failure: {error_message}")
            return None

        patch = {
            "status": PaymentStatus.FAILED.value,
            "errorMessage": error_message,
            "completionStartedAt": None,
        }
        patch.update(payment_fields or {})

        try:
            return self.lifecycle.transition(
                order,
                OrderStatus.PAYMENT_FAILED.value,
                note or error_message,
                automated=True,
                payment_patch=patch,
                extra_fields=extra_fields,
            )
        except (PaymentDowngradeError, StaleOrderError, InvalidTransitionError) as e:
            logger.info(f"Order {order.id} not marked failed: {e}")
            return None

    # ------------------------------------------------------------------
    # Server side completion
    # ------------------------------------------------------------------

    async def complete_payment_server_side(self, token: Optional[str],
                                           conversation_id: Optional[str] = None,
                                           send_email: bool = True) -> Dict[str, Any]:
        """
        Verify a checkout form token with iyzico and settle the order

        Safe to call repeatedly: a paid order answers success with
        alreadyCompleted. Pass send_email=False when the caller schedules
        the confirmation email itself.
        """
        order = None
        try:
            if conversation_id:
                order = self.order_repo.find_by_id(conversation_id)
            if order is None and token:
                order = self.order_repo.find_by_payment_token(token)
            if order is None:
                return {"success": False, "error": ORDER_NOT_FOUND_MESSAGE, "errorCode": "ORDER_NOT_FOUND"}

            token = token or order.payment_token
            result_base = {"orderId": order.id, "orderNumber": order.order_number}

            if order.is_paid:
                return {**result_base, "success": True, "alreadyCompleted": True}

            if is_token_expired(order.payment.get("tokenCreatedAt")):
                logger.info(f"Payment token of order {order.id} expired")
                return {**result_base, "success": False, "error": TOKEN_EXPIRED_MESSAGE,
                        "errorCode": "TOKEN_EXPIRED"}

            if completion_in_progress(order.payment.get("completionStartedAt")):
                logger.info(f"Completion of order {order.id} already running, waiting")
                await asyncio.sleep(self.lock_wait_seconds)
                refreshed = self.order_repo.find_by_id(order.id)
                if refreshed is not None and refreshed.is_paid:
                    return {**result_base, "success": True, "alreadyCompleted": True}
                order = refreshed or order

            locked = self.order_repo.merge_payment(
                order.id, {"completionStartedAt": datetime.now(timezone.utc).isoformat()}, unless_paid=True
            )
            if locked is None:
                refreshed = self.order_repo.find_by_id(order.id)
                if refreshed is not None and refreshed.is_paid:
                    return {**result_base, "success": True, "alreadyCompleted": True}
            else:
                order = locked

            try:
                result = await self.connector.retrieve_checkout_form(token, order.id)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"iyzico retrieve failed for order {order.id}: {e}")
                return {**result_base, "success": False,
                        "error": "Ödeme doğrulanamadı. Lütfen tekrar deneyin.",
                        "errorCode": "IYZICO_API_ERROR"}

            return self.settle_gateway_result(order, result, token, send_email,
                                               success_note="Ödeme onaylandı")

        except (StaleOrderError, PaymentDowngradeError, InvalidTransitionError) as e:
            logger.error(f"Updating order {order.id if order else '?'} after payment failed: {e}")
            return {"success": False, "orderId": order.id if order else None,
                    "error": UPDATE_FAILED_MESSAGE, "errorCode": "UPDATE_FAILED"}
        except Exception as e:
            logger.error(f"Unexpected error completing payment: {e}", exc_info=True)
            return {"success": False, "orderId": order.id if order else None,
                    "error": "Beklenmeyen bir hata oluştu.", "errorCode": "UNEXPECTED_ERROR"}

    def settle_gateway_result(self, order: Order, result: Dict[str, Any], token: Optional[str],
                               send_email: bool, success_note: str) -> Dict[str, Any]:
        """Apply a retrieved gateway result to the order"""
        result_base = {"orderId": order.id, "orderNumber": order.order_number}
        succeeded = result.get("status") == "success" and result.get("paymentStatus") == "SUCCESS"

        if not succeeded:
            message = map_iyzico_error(result.get("errorCode"), result.get("errorMessage"))
            self.mark_payment_failed(order, message, payment_fields={
                "method": "credit_card",
                "token": token,
                "errorCode": result.get("errorCode"),
                "errorMessage": message,
                "errorGroup": result.get("errorGroup"),
            })
            return {**result_base, "success": False, "error": message,
                    "errorCode": result.get("errorCode") or "PAYMENT_FAILED"}

        if _amount_mismatch(result.get("paidPrice"), order.total):
            logger.error(f"Paid amount {result.get('paidPrice')} != total {order.total} for order {order.id}")
            self.mark_payment_failed(order, AMOUNT_MISMATCH_MESSAGE, payment_fields={
                "token": token,
                "transactionId": result.get("paymentId"),
                "errorCode": "AMOUNT_MISMATCH",
            })
            return {**result_base, "success": False, "error": AMOUNT_MISMATCH_MESSAGE,
                    "errorCode": "AMOUNT_MISMATCH"}

        outcome = self.confirm_payment(order, {
            "method": "credit_card",
            "transactionId": result.get("paymentId"),
            "token": token,
            "cardLast4": result.get("lastFourDigits"),
            "cardType": result.get("cardType"),
            "cardAssociation": result.get("cardAssociation"),
            "installment": result.get("installment"),
            "paidPrice": result.get("paidPrice"),
        }, success_note)

        if outcome["already_completed"]:
            return {**result_base, "success": True, "alreadyCompleted": True}

        if send_email:
            self.lifecycle.send_confirmation(order.id)

        paid = outcome["order"]
        return {
            **result_base,
            "success": True,
            "paymentId": paid.payment.get("transactionId"),
            "paidPrice": paid.payment.get("paidPrice"),
            "cardLast4": paid.payment.get("cardLast4"),
        }

    async def complete_threeds_payment(self, payment_id: Optional[str], conversation_id: Optional[str],
                                       send_email: bool = True) -> Dict[str, Any]:
        """Finish a direct 3DS payment after the bank callback"""
        if not payment_id or not conversation_id:
            raise PaymentError("Missing paymentId or conversationId")

        order = self._get_order(conversation_id)
        if order.is_paid:
            return {"success": True, "orderId": order.id, "orderNumber": order.order_number,
                    "alreadyCompleted": True}

        result = await self.connector.complete_threeds(payment_id, conversation_id)
        if result.get("status") == "success":
            # 3DS auth answers without paymentStatus
            result.setdefault("paymentStatus", "SUCCESS")
        return self.settle_gateway_result(order, result, order.payment_token, send_email,
                                           success_note="Ödeme onaylandı (3D Secure)")

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def handle_webhook_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a verified webhook event; the caller checks the signature"""
        event = payload.get("iyziEventType")
        status = payload.get("status")
        order_id = payload.get("paymentConversationId")
        payment_id = payload.get("paymentId")

        logger.info(f"Webhook {event} ({status}) for order {order_id}")

        order = self.order_repo.find_by_id(order_id) if order_id else None
        if order is None:
            logger.error(f"Webhook order not found: {order_id}")
            return {"success": False, "error": "Order not found"}

        if event == "payment.success" and status == "success":
            outcome = self.confirm_payment(order, {"transactionId": payment_id},
                                           "Ödeme onaylandı (webhook)")
            if outcome["already_completed"]:
                return {"success": True, "idempotent": True}
            self.lifecycle.send_confirmation(order.id)
            return {"success": True}

        if event == "payment.failed" or status == "failure":
            if order.is_paid:
                return {"success": True, "idempotent": True}
            self.mark_payment_failed(
                order,
                "Ödeme başarısız (webhook)",
                payment_fields={"transactionId": payment_id},
                extra_fields={"notes": "Payment failed (webhook notification)"},
            )
            return {"success": True}

        if event == "refund.success":
            if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
                return {"success": True, "idempotent": True}
            self.lifecycle.transition(
                order,
                OrderStatus.CANCELLED.value,
                "İade edildi (webhook)",
                payment_patch={"status": PaymentStatus.REFUNDED.value, "transactionId": payment_id},
            )
            return {"success": True}

        logger.info(f"Webhook event {event} ignored")
        return {"success": True, "ignored": True}

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def manual_confirm_payment(self, order_id: Optional[str], note: Optional[str] = None) -> Dict[str, Any]:
        if not order_id:
            raise PaymentError("Sipariş ID gerekli")
        order = self._get_order(order_id)

        summary = {"id": order.id, "orderNumber": order.order_number}
        if order.is_paid:
            return {
                "success": True,
                "message": "Ödeme zaten onaylanmış",
                "alreadyPaid": True,
                "order": {**summary, "status": order.status, "paymentStatus": PaymentStatus.PAID.value},
            }

        outcome = self.confirm_payment(
            order,
            {
                "method": order.payment_method or "credit_card",
                "manuallyConfirmed": True,
                "manualConfirmationNote": note or "Admin tarafından manuel onaylandı",
            },
            note or "Ödeme manuel olarak onaylandı (admin)",
            automated=False,
            timeline_extra={"manualConfirmation": True},
        )
        if not outcome["already_completed"]:
            self.lifecycle.send_confirmation(order.id)

        confirmed = outcome["order"]
        logger.info(f"Order {order.order_number} manually confirmed")
        return {
            "success": True,
            "message": "Ödeme onaylandı",
            "order": {**summary, "status": confirmed.status, "paymentStatus": PaymentStatus.PAID.value},
        }

    def confirm_bank_payment(self, order_id: Optional[str]) -> Dict[str, Any]:
        if not order_id:
            raise PaymentError("Order ID is required")
        order = self._get_order(order_id)
        if order.is_paid:
            raise PaymentError("Payment already confirmed")

        outcome = self.confirm_payment(order, {"method": "bank_transfer"},
                                       "Havale ödemesi admin tarafından onaylandı", automated=False)
        if outcome["already_completed"]:
            raise PaymentError("Payment already confirmed")

        self.lifecycle.send_confirmation(order.id)
        return {"success": True}

    def refund_order(self, order_id: Optional[str], amount: Any = None, reason: Optional[str] = None,
                     notes: Optional[str] = None) -> Order:
        """
        Record a refund and move the order to refunded

        Raises:
            PaymentError, InvalidTransitionError
        """
        if not order_id:
            raise PaymentError("Sipariş ID gerekli.")
        order = self._get_order(order_id)

        refund_amount = float(amount) if isinstance(amount, (int, float)) and not isinstance(amount, bool) \
            else float(order.total)
        now_iso = datetime.now(timezone.utc).isoformat()
        refund = {
            "status": "completed",
            "amount": refund_amount,
            "reason": reason or "Müşteri talebi",
            "notes": notes or "",
            "processedAt": now_iso,
            "processedBy": "admin",
        }

        updated = self.lifecycle.transition(
            order,
            OrderStatus.REFUNDED.value,
            f"İade işlemi tamamlandı. Tutar: ₺{format_try(refund_amount)}. Sebep: {refund['reason']}",
            automated=False,
            payment_patch={"status": PaymentStatus.REFUNDED.value} if order.is_paid else None,
            extra_fields={"refund": refund},
        )

        self.lifecycle.notify_status(
            updated,
            OrderStatus.REFUNDED.value,
            automated=False,
            refund_amount=refund_amount,
            refund_reason=refund["reason"],
        )
        return updated
