"""
Unit tests for PaymentVerificationService

Author: Vadiler
Date: 2025-11-08
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from vadiler.services.payment_verification_service import PaymentVerificationService


def _pending(**extra):
    payment = {"method": "credit_card", "status": "pending", "token": "tok-1",
               "tokenCreatedAt": datetime.now(timezone.utc).isoformat()}
    payment.update(extra)
    return payment


def _service(orders):
    order_repo = MagicMock()
    order_repo.find_by_statuses_created_between.return_value = orders
    payment_service = MagicMock()
    payment_service.complete_payment_server_side = AsyncMock()
    service = PaymentVerificationService(order_repo, payment_service)
    service.delay_seconds = 0
    return service, payment_service


class TestVerifyPendingPayments:

    def test_no_orders(self):
        service, _ = _service([])

        assert asyncio.run(service.verify_pending_payments()) == {
            "processed": 0, "recovered": 0, "expired": 0, "failed": 0, "no_token": 0,
        }

    def test_counts_each_outcome(self, make_order):
        # Arrange
        orders = [
            make_order(id="order-1", payment={"method": "credit_card", "status": "pending"}),
            make_order(id="order-2", payment=_pending(tokenCreatedAt="2025-11-01T00:00:00+00:00")),
            make_order(id="order-3", payment=_pending()),
        ]
        service, payment_service = _service(orders)
        payment_service.complete_payment_server_side.return_value = {"success": True}

        # Act
        results = asyncio.run(service.verify_pending_payments())

        # Assert
        assert results == {"processed": 2, "recovered": 1, "expired": 1, "failed": 0, "no_token": 1}
        payment_service.mark_payment_failed.assert_called_once()
        payment_service.complete_payment_server_side.assert_awaited_once_with("tok-1", "order-3")

    def test_error_on_one_order_does_not_stop_the_run(self, make_order):
        orders = [make_order(id="order-1", payment=_pending()),
                  make_order(id="order-2", payment=_pending())]
        service, payment_service = _service(orders)
        payment_service.complete_payment_server_side.side_effect = [
            RuntimeError("connection reset"),
            {"success": True},
        ]

        results = asyncio.run(service.verify_pending_payments())

        assert results["processed"] == 2
        assert results["failed"] == 1
        assert results["recovered"] == 1
        assert payment_service.complete_payment_server_side.await_count == 2
