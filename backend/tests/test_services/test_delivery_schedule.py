"""
Unit tests for the delivery-day timetable

Author: Vadiler
Date: 2025-11-08
"""
from datetime import date, datetime, timezone

import pytest

from vadiler.services.delivery_schedule import (
    ISTANBUL_TZ,
    automation_schedule,
    delivery_date_key,
    next_automated_status,
    order_time_group,
    resolve_time_group,
)

DELIVERY_DAY = date(2025, 11, 10)


def _istanbul(hour, minute=0):
    return datetime(2025, 11, 10, hour, minute, tzinfo=ISTANBUL_TZ)


class TestTimeGroups:

    @pytest.mark.parametrize("utc_hour,group", [
        (9, "noon"),        # 12:00 Istanbul
        (13, "noon"),       # 16:00 Istanbul
        (14, "evening"),    # 17:00 Istanbul
        (18, "evening"),    # 21:00 Istanbul
        (19, "overnight"),  # 22:00 Istanbul
        (5, "overnight"),   # 08:00 Istanbul
    ])
    def test_order_time_group_uses_istanbul_hour(self, utc_hour, group):
        assert order_time_group(datetime(2025, 11, 8, utc_hour, 0, tzinfo=timezone.utc)) == group

    def test_stored_group_wins_when_valid(self):
        created = datetime(2025, 11, 8, 9, 0, tzinfo=timezone.utc)
        assert resolve_time_group("Evening", created) == "evening"
        assert resolve_time_group("lunch", created) == "noon"

    def test_delivery_date_key(self):
        assert delivery_date_key("2025-11-10") == DELIVERY_DAY
        assert delivery_date_key("") is None
        assert delivery_date_key("someday") is None


class TestAutomationSchedule:

    def test_noon_timetable(self):
        steps = automation_schedule("confirmed", "noon", DELIVERY_DAY)

        assert [target for target, _ in steps] == ["processing", "shipped", "delivered"]
        assert [due.strftime("%H:%M") for _, due in steps] == ["11:00", "12:00", "18:00"]

    def test_overnight_follows_noon(self):
        assert automation_schedule("confirmed", "overnight", DELIVERY_DAY) == \
            automation_schedule("confirmed", "noon", DELIVERY_DAY)

    def test_remaining_steps_only(self):
        steps = automation_schedule("shipped", "evening", DELIVERY_DAY)
        assert [(t, d.strftime("%H:%M")) for t, d in steps] == [("delivered", "22:30")]

    def test_unpaid_statuses_have_no_schedule(self):
        assert automation_schedule("pending_payment", "noon", DELIVERY_DAY) == []


class TestNextAutomatedStatus:

    def test_nothing_due_before_first_slot(self):
        assert next_automated_status("confirmed", "evening", DELIVERY_DAY, _istanbul(16)) is None

    def test_first_due_step(self):
        assert next_automated_status("confirmed", "evening", DELIVERY_DAY, _istanbul(18, 5)) == "processing"

    def test_one_step_per_run_when_behind(self):
        """A confirmed order seen at 23:00 only moves to processing this run"""
        assert next_automated_status("confirmed", "noon", DELIVERY_DAY, _istanbul(23)) == "processing"
        assert next_automated_status("processing", "noon", DELIVERY_DAY, _istanbul(23)) == "shipped"
        assert next_automated_status("shipped", "noon", DELIVERY_DAY, _istanbul(23)) == "delivered"

    def test_delivered_is_final(self):
        assert next_automated_status("delivered", "noon", DELIVERY_DAY, _istanbul(23)) is None
