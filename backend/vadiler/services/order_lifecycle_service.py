"""
Order Lifecycle Service
Plans, persists and announces order status changes.

All status writes in the application go through transition(). The
notification guard keeps each status email to a single send even when the
webhook, the payment page and the cron all see the same payment.

Author: Vadiler
Date: 2025-11-04
"""
import logging
from typing import Any, Dict, Optional

from vadiler.domain.order import Order
from vadiler.domain.order_status import (
    has_status_notification,
    notification_entry,
    plan_transition,
)
from vadiler.repositories.order_repository import OrderRepository
from vadiler.services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)


class OrderLifecycleService:

    def __init__(self, order_repo: Optional[OrderRepository] = None,
                 email_service: Optional[EmailService] = None):
        self.order_repo = order_repo or OrderRepository()
        self._email_service = email_service

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def transition(
        self,
        order: Order,
        target: str,
        note: str,
        automated: bool = True,
        payment_patch: Optional[Dict[str, Any]] = None,
        timeline_extra: Optional[Dict[str, Any]] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
        notify: bool = False,
    ) -> Order:
        """
        Move an order to `target` and persist it

        A same-status call with nothing else to write returns the order
        untouched.

        Raises:
            InvalidTransitionError: target not reachable from current status
            PaymentDowngradeError: payment_patch would fail a paid order
            StaleOrderError: status changed since `order` was read
        """
        change = plan_transition(
            order,
            target,
            note,
            automated=automated,
            payment_patch=payment_patch,
            timeline_extra=timeline_extra,
            extra_fields=extra_fields,
        )
        if change.is_noop and not payment_patch:
            return order

        updated = self.order_repo.apply_status_change(change)
        logger.info(f"Order {updated.order_number or updated.id}: {change.from_status} -> {change.to_status}")

        if notify:
            self.notify_status(updated, change.to_status, automated=automated)
        return updated

    def notify_status(self, order: Order, status: str, automated: bool = True, **email_kwargs) -> bool:
        """
        Send the status email once and record it on the timeline

        Email problems are logged and reported as False.
        """
        if not order.customer_email or not order.order_number:
            return False
        if has_status_notification(order.timeline, status):
            return False

        try:
            sent = self.email_service.send_order_status_update(order, status, **email_kwargs)
            if sent:
                self.order_repo.append_timeline(order.id, [notification_entry(status, automated)])
            return sent
        except Exception as e:
            logger.error(f"Status email for order {order.id} ({status}) failed: {e}")
            return False

    def send_confirmation(self, order_id: str) -> bool:
        """Re-read the order and send the payment confirmation email"""
        try:
            order = self.order_repo.find_by_id(order_id)
            if order is None:
                return False
            return self.email_service.send_order_confirmation(order)
        except Exception as e:
            logger.error(f"Confirmation email for order {order_id} failed: {e}")
            return False
