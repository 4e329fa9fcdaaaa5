"""
Payment Reminder Service
Emails customers whose orders are still waiting for payment.

First reminder 1 hour after the order, then 6 hours after the previous
one, then 24 hours; never more than three. Progress is kept in
payment.reminderMeta.

Author: Vadiler
Date: 2025-11-05
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from vadiler.domain.order import Order
from vadiler.domain.order_status import OrderStatus
from vadiler.repositories.order_repository import OrderRepository, hours_ago
from vadiler.services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)

REMINDER_STATUSES = [
    OrderStatus.PENDING_PAYMENT.value,
    OrderStatus.AWAITING_PAYMENT.value,
    OrderStatus.PAYMENT_FAILED.value,
]
REMINDER_INTERVALS = [1, 6, 24]
MAX_REMINDERS = 3
LOOKBACK_HOURS = 48


def reminder_meta(payment: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    meta = (payment or {}).get("reminderMeta")
    if not isinstance(meta, dict):
        return {"count": 0, "lastSentAt": None, "firstSentAt": None}
    count = meta.get("count")
    return {
        "count": count if isinstance(count, int) else 0,
        "lastSentAt": meta.get("lastSentAt") or None,
        "firstSentAt": meta.get("firstSentAt") or None,
    }


def _hours_since(value: Any, now: datetime) -> Optional[float]:
    if isinstance(value, datetime):
        moment = value
    elif value:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 3600


def should_send_reminder(order: Order, now: Optional[datetime] = None) -> Tuple[bool, str]:
    now = now or datetime.now(timezone.utc)
    meta = reminder_meta(order.payment)

    if meta["count"] >= MAX_REMINDERS:
        return False, f"Max reminders reached ({MAX_REMINDERS})"

    interval = REMINDER_INTERVALS[min(meta["count"], len(REMINDER_INTERVALS) - 1)]

    if meta["count"] == 0:
        age = _hours_since(order.created_at, now)
        if age is None or age < interval:
            return False, "Too early for first reminder"
    elif meta["lastSentAt"]:
        since_last = _hours_since(meta["lastSentAt"], now)
        if since_last is not None and since_last < interval:
            return False, "Too early for next reminder"

    return True, "Ready to send"


class PaymentReminderService:

    def __init__(self, order_repo: Optional[OrderRepository] = None,
                 email_service: Optional[EmailService] = None):
        self.order_repo = order_repo or OrderRepository()
        self._email_service = email_service

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def send_reminder(self, order: Order) -> bool:
        meta = reminder_meta(order.payment)
        count = meta["count"] + 1

        try:
            if not self.email_service.send_payment_reminder(order, count):
                logger.error(f"Reminder email for order #{order.order_number} was not sent")
                return False
        except Exception as e:
            logger.error(f"Reminder email for order #{order.order_number} failed: {e}")
            return False

        now_iso = datetime.now(timezone.utc).isoformat()
        new_meta = {
            "count": count,
            "lastSentAt": now_iso,
            "firstSentAt": meta["firstSentAt"] or now_iso,
        }
        try:
            if self.order_repo.merge_payment(order.id, {"reminderMeta": new_meta}, unless_paid=True) is None:
                logger.info(f"Order #{order.order_number} was paid meanwhile; reminder not recorded")
        except Exception as e:
            logger.error(f"Could not record reminder for order #{order.order_number}: {e}")
        return True

    def send_payment_reminders(self) -> Dict[str, Any]:
        orders = self.order_repo.find_by_statuses_created_between(
            REMINDER_STATUSES,
            created_after=hours_ago(LOOKBACK_HOURS),
            created_before=datetime.now(timezone.utc),
        )

        processed = 0
        sent = 0
        results = []
        now = datetime.now(timezone.utc)

        for order in orders:
            processed += 1

            if not order.customer_email:
                results.append({"orderNumber": order.order_number, "status": order.status,
                                "action": "skipped_no_email"})
                continue

            ready, reason = should_send_reminder(order, now)
            if not ready:
                results.append({"orderNumber": order.order_number, "status": order.status,
                                "action": f"skipped: {reason}"})
                continue

            if self.send_reminder(order):
                sent += 1
                action = f"sent_reminder_{reminder_meta(order.payment)['count'] + 1}"
            else:
                action = "failed"
            results.append({"orderNumber": order.order_number, "status": order.status, "action": action})

        logger.info(f"Payment reminders: {sent} sent out of {processed} orders")
        return {"success": True, "processed": processed, "sent": sent, "results": results}
