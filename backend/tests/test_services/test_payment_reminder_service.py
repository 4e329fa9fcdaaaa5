"""
Unit tests for PaymentReminderService

Author: Vadiler
Date: 2025-11-08
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from vadiler.services.payment_reminder_service import (
    PaymentReminderService,
    reminder_meta,
    should_send_reminder,
)

NOW = datetime(2025, 11, 8, 12, 0, tzinfo=timezone.utc)


def _payment(count=0, last_sent_hours_ago=None):
    payment = {"method": "credit_card", "status": "pending"}
    if count:
        payment["reminderMeta"] = {
            "count": count,
            "lastSentAt": (NOW - timedelta(hours=last_sent_hours_ago)).isoformat(),
            "firstSentAt": "2025-11-07T09:00:00+00:00",
        }
    return payment


class TestSchedule:

    def test_meta_defaults(self):
        assert reminder_meta({}) == {"count": 0, "lastSentAt": None, "firstSentAt": None}
        assert reminder_meta({"reminderMeta": {"count": "2"}})["count"] == 0

    def test_first_reminder_after_one_hour(self, make_order):
        young = make_order(created_at=NOW - timedelta(minutes=30))
        old = make_order(created_at=NOW - timedelta(minutes=90))

        assert should_send_reminder(young, NOW) == (False, "Too early for first reminder")
        assert should_send_reminder(old, NOW) == (True, "Ready to send")

    def test_second_reminder_after_six_hours(self, make_order):
        assert should_send_reminder(make_order(payment=_payment(1, 5)), NOW)[0] is False
        assert should_send_reminder(make_order(payment=_payment(1, 7)), NOW)[0] is True

    def test_third_reminder_after_a_day(self, make_order):
        assert should_send_reminder(make_order(payment=_payment(2, 20)), NOW)[0] is False
        assert should_send_reminder(make_order(payment=_payment(2, 25)), NOW)[0] is True

    def test_never_more_than_three(self, make_order):
        ready, reason = should_send_reminder(make_order(payment=_payment(3, 100)), NOW)
        assert ready is False
        assert reason.startswith("Max reminders reached")


class TestSending:

    def test_sent_reminder_is_recorded(self, make_order):
        order_repo = MagicMock()
        email_service = MagicMock()
        email_service.send_payment_reminder.return_value = True
        service = PaymentReminderService(order_repo, email_service)

        assert service.send_reminder(make_order(payment=_payment(1, 7))) is True

        email_service.send_payment_reminder.assert_called_once()
        assert email_service.send_payment_reminder.call_args[0][1] == 2
        args, kwargs = order_repo.merge_payment.call_args
        assert list(args[1]) == ["reminderMeta"]
        assert kwargs == {"unless_paid": True}
        meta = args[1]["reminderMeta"]
        assert meta["count"] == 2
        assert meta["firstSentAt"] == "2025-11-07T09:00:00+00:00"

    def test_failed_email_is_not_recorded(self, make_order):
        order_repo = MagicMock()
        email_service = MagicMock()
        email_service.send_payment_reminder.return_value = False
        service = PaymentReminderService(order_repo, email_service)

        assert service.send_reminder(make_order()) is False
        order_repo.merge_payment.assert_not_called()

    def test_batch_skips_orders_without_email(self, make_order):
        order_repo = MagicMock()
        order_repo.find_by_statuses_created_between.return_value = [make_order(customer_email=None)]
        service = PaymentReminderService(order_repo, MagicMock())

        result = service.send_payment_reminders()

        assert result["processed"] == 1
        assert result["sent"] == 0
        assert result["results"][0]["action"] == "skipped_no_email"

    def test_order_paid_during_send_still_counts_as_sent(self, make_order):
        order_repo = MagicMock()
        order_repo.merge_payment.return_value = None
        email_service = MagicMock()
        email_service.send_payment_reminder.return_value = True
        service = PaymentReminderService(order_repo, email_service)

        assert service.send_reminder(make_order(payment=_payment(1, 7))) is True
        order_repo.update_fields.assert_not_called()
