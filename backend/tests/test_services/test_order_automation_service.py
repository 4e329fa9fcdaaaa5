"""
Unit tests for OrderAutomationService

Author: Vadiler
Date: 2025-11-08
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

from vadiler.domain.order_status import InvalidTransitionError
from vadiler.services.order_automation_service import OrderAutomationService

# 12:30 in Istanbul on the delivery day
NOW = datetime(2025, 11, 10, 9, 30, tzinfo=timezone.utc)
PAID = {"method": "credit_card", "status": "paid"}


def _service(order_repo):
    lifecycle = MagicMock()
    payment_service = MagicMock()
    return OrderAutomationService(order_repo, lifecycle, payment_service), lifecycle, payment_service


class TestDeliveryDayAutomation:

    def test_confirmed_noon_order_moves_to_processing(self, make_order):
        # Arrange
        order = make_order(status="confirmed", payment=PAID, order_time_group="noon")
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = []
        order_repo.find_paid_in_statuses.side_effect = [[], [order]]
        service, lifecycle, _ = _service(order_repo)
        lifecycle.transition.return_value = make_order(status="processing", payment=PAID)

        # Act
        result = asyncio.run(service.process_automated_updates(now=NOW))

        # Assert
        assert result["updated"] == 1
        assert result["orders"][0] == {"orderNumber": 100123, "oldStatus": "confirmed",
                                       "newStatus": "processing"}
        args, kwargs = lifecycle.transition.call_args
        assert args[1] == "processing"
        assert kwargs["notify"] is True

    def test_other_days_are_left_alone(self, make_order):
        order = make_order(status="confirmed", payment=PAID, order_time_group="noon",
                           delivery={"deliveryDate": "2025-11-12", "district": "Kadıköy"})
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = []
        order_repo.find_paid_in_statuses.side_effect = [[], [order]]
        service, lifecycle, _ = _service(order_repo)

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["updated"] == 0
        lifecycle.transition.assert_not_called()

    def test_rejected_transition_is_skipped(self, make_order):
        order = make_order(status="confirmed", payment=PAID, order_time_group="noon")
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = []
        order_repo.find_paid_in_statuses.side_effect = [[], [order]]
        service, lifecycle, _ = _service(order_repo)
        lifecycle.transition.side_effect = InvalidTransitionError("confirmed", "processing")

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["updated"] == 0


class TestPaidPendingConfirmation:

    def test_paid_pending_order_is_confirmed_with_time_group(self, make_order):
        order = make_order(status="pending", payment=PAID)
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = []
        order_repo.find_paid_in_statuses.side_effect = [[order], []]
        service, lifecycle, _ = _service(order_repo)
        lifecycle.transition.return_value = make_order(status="confirmed", payment=PAID)

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["updated"] == 1
        args, kwargs = lifecycle.transition.call_args
        assert args[1] == "confirmed"
        # created 09:00 UTC = 12:00 Istanbul
        assert kwargs["extra_fields"]["order_time_group"] == "noon"
        assert kwargs["extra_fields"]["delivery"]["deliveryDate"] == "2025-11-10"

    def test_database_error_skips_only_that_order(self, make_order):
        first = make_order(id="order-1", order_number=100123, status="pending", payment=PAID)
        second = make_order(id="order-2", order_number=100124, status="pending", payment=PAID)
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = []
        order_repo.find_paid_in_statuses.side_effect = [[first, second], []]
        service, lifecycle, _ = _service(order_repo)
        lifecycle.transition.side_effect = [RuntimeError("deadlock detected"),
                                            make_order(status="confirmed", payment=PAID)]

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["updated"] == 1
        assert result["orders"][0]["orderNumber"] == 100124


class TestStuckPayments:

    def test_expired_token_is_marked_failed(self, make_order):
        order = make_order(payment={"method": "credit_card", "status": "pending", "token": "tok-1",
                                    "tokenCreatedAt": "2025-11-10T07:00:00+00:00"})
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = [order]
        order_repo.find_paid_in_statuses.side_effect = [[], []]
        service, _, payment_service = _service(order_repo)
        payment_service.mark_payment_failed.return_value = make_order(status="payment_failed")

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["orders"] == [{"orderNumber": 100123, "oldStatus": "pending_payment",
                                     "newStatus": "payment_failed"}]
        payment_service.connector.retrieve_checkout_form.assert_not_called()

    def test_orders_without_token_are_skipped(self, make_order):
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = [make_order()]
        order_repo.find_paid_in_statuses.side_effect = [[], []]
        service, _, payment_service = _service(order_repo)

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["updated"] == 0
        payment_service.mark_payment_failed.assert_not_called()

    def test_one_failing_order_does_not_stop_the_batch(self, make_order):
        payment = {"method": "credit_card", "status": "pending", "token": "tok-1",
                   "tokenCreatedAt": "2025-11-10T07:00:00+00:00"}
        broken = make_order(id="order-1", order_number=100123, payment=payment)
        healthy = make_order(id="order-2", order_number=100124, payment=payment)
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = [broken, healthy]
        order_repo.find_paid_in_statuses.side_effect = [[], []]
        service, _, payment_service = _service(order_repo)
        payment_service.mark_payment_failed.side_effect = [
            RuntimeError("connection reset"),
            make_order(id="order-2", status="payment_failed"),
        ]

        result = asyncio.run(service.process_automated_updates(now=NOW))

        assert result["orders"] == [{"orderNumber": 100124, "oldStatus": "pending_payment",
                                     "newStatus": "payment_failed"}]
        assert payment_service.mark_payment_failed.call_count == 2
