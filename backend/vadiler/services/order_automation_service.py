"""
Order Automation Service
Runs every few minutes from the external cron:

1. Verifies card payments stuck in pending with the gateway
2. Confirms orders that are paid but still pending
3. Moves paid orders through processing, shipped and delivered on their
   delivery day, one step per run

Author: Vadiler
Date: 2025-11-05
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from vadiler.domain.order import Order
from vadiler.domain.order_status import InvalidTransitionError, OrderStatus
from vadiler.repositories.order_repository import OrderRepository, StaleOrderError, hours_ago
from vadiler.services.delivery_schedule import (
    STEP_NOTES,
    delivery_date_key,
    istanbul_today,
    next_automated_status,
    resolve_time_group,
)
from vadiler.services.order_lifecycle_service import OrderLifecycleService
from vadiler.services.payment_service import PaymentService, is_token_expired

logger = logging.getLogger(__name__)

STUCK_LIMIT = 100
PAID_PENDING_LOOKBACK_HOURS = 60 * 24
DELIVERY_LOOKBACK_HOURS = 120 * 24

AWAITING_STATUSES = [OrderStatus.PENDING.value, OrderStatus.PENDING_PAYMENT.value]
DELIVERY_DAY_STATUSES = [
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
]


class OrderAutomationService:

    def __init__(self, order_repo: Optional[OrderRepository] = None,
                 lifecycle: Optional[OrderLifecycleService] = None,
                 payment_service: Optional[PaymentService] = None):
        self.order_repo = order_repo or OrderRepository()
        self.lifecycle = lifecycle or OrderLifecycleService(self.order_repo)
        self.payment_service = payment_service or PaymentService(self.order_repo, self.lifecycle)

    async def process_automated_updates(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        updated: List[Dict[str, Any]] = []

        for phase in (self._verify_stuck_payments, self._confirm_paid_pending):
            try:
                updated.extend(await phase(now))
            except Exception as e:
                logger.error(f"Automation phase {phase.__name__} failed: {e}", exc_info=True)

        try:
            updated.extend(self._advance_delivery_day(now))
        except Exception as e:
            logger.error(f"Delivery day automation failed: {e}", exc_info=True)

        return {"updated": len(updated), "orders": updated}

    @staticmethod
    def _record(order: Order, old_status: str, new_status: str) -> Dict[str, Any]:
        return {"orderNumber": order.order_number, "oldStatus": old_status, "newStatus": new_status}

    async def _verify_stuck_payments(self, now: datetime) -> List[Dict[str, Any]]:
        orders = self.order_repo.find_by_statuses_created_between(
            AWAITING_STATUSES,
            created_after=hours_ago(24),
            created_before=hours_ago(10 / 60),
            limit=STUCK_LIMIT,
        )

        changes = []
        for order in orders:
            try:
                change = await self._verify_stuck_order(order, now)
            except Exception as e:
                logger.error(f"Payment check of order {order.id} failed: {e}", exc_info=True)
                continue
            if change is not None:
                changes.append(change)
        return changes

    async def _verify_stuck_order(self, order: Order, now: datetime) -> Optional[Dict[str, Any]]:
        if not order.payment_token or order.is_paid:
            return None

        if is_token_expired(order.payment.get("tokenCreatedAt"), now):
            failed = self.payment_service.mark_payment_failed(
                order, "Ödeme süresi doldu", payment_fields={"errorCode": "TOKEN_EXPIRED"}
            )
            return self._record(order, order.status, failed.status) if failed is not None else None

        try:
            result = await self.payment_service.connector.retrieve_checkout_form(
                order.payment_token, order.id
            )
        except Exception as e:
            logger.error(f"Gateway lookup for order {order.id} failed: {e}")
            return None

        outcome = self.payment_service.settle_gateway_result(
            order, result, order.payment_token, send_email=True,
            success_note="Ödeme onaylandı (otomatik iyzico doğrulama)",
        )
        if outcome.get("alreadyCompleted"):
            return None
        new_status = OrderStatus.CONFIRMED.value if outcome.get("success") else OrderStatus.PAYMENT_FAILED.value
        return self._record(order, order.status, new_status)

    async def _confirm_paid_pending(self, now: datetime) -> List[Dict[str, Any]]:
        orders = self.order_repo.find_paid_in_statuses(
            AWAITING_STATUSES, created_after=hours_ago(PAID_PENDING_LOOKBACK_HOURS)
        )

        changes = []
        for order in orders:
            extra: Dict[str, Any] = {
                "order_time_group": resolve_time_group(order.order_time_group, order.created_at),
            }
            day = delivery_date_key(order.delivery_date)
            if day is not None:
                extra["delivery"] = {**order.delivery, "deliveryDate": day.isoformat()}

            try:
                confirmed = self.lifecycle.transition(
                    order,
                    OrderStatus.CONFIRMED.value,
                    "Ödeme onaylandı (otomatik)",
                    extra_fields=extra,
                    notify=True,
                )
            except (StaleOrderError, InvalidTransitionError) as e:
                logger.info(f"Order {order.id} not confirmed by automation: {e}")
                continue
            except Exception as e:
                logger.error(f"Confirming order {order.id} failed: {e}", exc_info=True)
                continue
            changes.append(self._record(order, order.status, confirmed.status))
        return changes

    def _advance_delivery_day(self, now: datetime) -> List[Dict[str, Any]]:
        today = istanbul_today(now)
        orders = self.order_repo.find_paid_in_statuses(
            DELIVERY_DAY_STATUSES, created_after=hours_ago(DELIVERY_LOOKBACK_HOURS)
        )

        changes = []
        for order in orders:
            if delivery_date_key(order.delivery_date) != today:
                continue

            group = resolve_time_group(order.order_time_group, order.created_at)
            target = next_automated_status(order.status, group, today, now)
            if target is None:
                continue

            try:
                advanced = self.lifecycle.transition(
                    order,
                    target,
                    STEP_NOTES[target],
                    extra_fields={"order_time_group": group},
                    notify=True,
                )
            except (StaleOrderError, InvalidTransitionError) as e:
                logger.info(f"Order {order.id} not advanced to {target}: {e}")
                continue
            except Exception as e:
                logger.error(f"Advancing order {order.id} to {target} failed: {e}", exc_info=True)
                continue

            logger.info(f"Order #{order.order_number} automated: {order.status} -> {target}")
            changes.append(self._record(order, order.status, advanced.status))
        return changes
