"""
Payment Verification Service
Recovers card payments whose customer never came back from the gateway.

Author: Vadiler
Date: 2025-11-05
"""
import asyncio
import logging
from typing import Dict, Optional

from vadiler.domain.order import Order
from vadiler.domain.order_status import OrderStatus
from vadiler.repositories.order_repository import OrderRepository, hours_ago
from vadiler.services.payment_service import PaymentService, is_token_expired

logger = logging.getLogger(__name__)

STUCK_STATUSES = [OrderStatus.PENDING.value, OrderStatus.PENDING_PAYMENT.value]
MIN_AGE_HOURS = 10 / 60
MAX_AGE_HOURS = 24
MAX_ORDERS_PER_RUN = 20


class PaymentVerificationService:

    # Pause between gateway lookups
    delay_seconds = 0.5

    def __init__(self, order_repo: Optional[OrderRepository] = None,
                 payment_service: Optional[PaymentService] = None):
        self.order_repo = order_repo or OrderRepository()
        self.payment_service = payment_service or PaymentService(self.order_repo)

    async def verify_pending_payments(self) -> Dict[str, int]:
        """
        Check orders created 10 minutes to 24 hours ago that are still unpaid

        Returns counters: processed, recovered, expired, failed, no_token
        """
        orders = self.order_repo.find_by_statuses_created_between(
            STUCK_STATUSES,
            created_after=hours_ago(MAX_AGE_HOURS),
            created_before=hours_ago(MIN_AGE_HOURS),
            limit=MAX_ORDERS_PER_RUN,
        )

        results = {"processed": 0, "recovered": 0, "expired": 0, "failed": 0, "no_token": 0}
        if not orders:
            logger.info("No stuck orders found")
            return results

        logger.info(f"Found {len(orders)} potentially stuck orders")

        for order in orders:
            try:
                await self._verify_order(order, results)
            except Exception as e:
                logger.error(f"Verifying payment of order {order.id} failed: {e}", exc_info=True)
                results["processed"] += 1
                results["failed"] += 1

        logger.info(f"Payment verification completed: {results}")
        return results

    async def _verify_order(self, order: Order, results: Dict[str, int]) -> None:
        token = order.payment_token
        if not token:
            results["no_token"] += 1
            return

        if is_token_expired(order.payment.get("tokenCreatedAt")):
            self.payment_service.mark_payment_failed(
                order,
                "Ödeme süresi doldu",
                payment_fields={"errorCode": "TOKEN_EXPIRED"},
            )
            results["expired"] += 1
            results["processed"] += 1
            return

        result = await self.payment_service.complete_payment_server_side(token, order.id)
        results["processed"] += 1
        if result.get("success"):
            logger.info(f"Recovered payment for order {order.id}")
            results["recovered"] += 1
        else:
            logger.info(f"Payment of order {order.id} not recovered: {result.get('error')}")
            results["failed"] += 1

        await asyncio.sleep(self.delay_seconds)
