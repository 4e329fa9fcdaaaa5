"""
Delivery Schedule
Order time groups and the delivery-day status timetable, in Istanbul time.

    noon      (ordered 11:00-17:00)  processing 11:00, shipped 12:00, delivered 18:00
    evening   (ordered 17:00-22:00)  processing 18:00, shipped 19:00, delivered 22:30
    overnight (any other hour)       follows the noon timetable

Author: Vadiler
Date: 2025-11-04
"""
from datetime import date, datetime, time, timezone
from typing import Any, List, Optional, Tuple
from zoneinfo import ZoneInfo

from vadiler.domain.order_status import OrderStatus

ISTANBUL_TZ = ZoneInfo("Europe/Istanbul")

TIME_GROUPS = ("noon", "evening", "overnight")

_TIMETABLE = {
    "noon": (time(11, 0), time(12, 0), time(18, 0)),
    "evening": (time(18, 0), time(19, 0), time(22, 30)),
}

# Automated statuses in the order they happen on delivery day
_PROGRESSION = [
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
]

STEP_NOTES = {
    OrderStatus.PROCESSING.value: "Sipariş Hazırlanıyor",
    OrderStatus.SHIPPED.value: "Kargoya Verildi",
    OrderStatus.DELIVERED.value: "Teslim Edildi",
}


def to_istanbul(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ISTANBUL_TZ)


def istanbul_today(now: Optional[datetime] = None) -> date:
    return to_istanbul(now or datetime.now(timezone.utc)).date()


def order_time_group(ordered_at: datetime) -> str:
    hour = to_istanbul(ordered_at).hour
    if 11 <= hour < 17:
        return "noon"
    if 17 <= hour < 22:
        return "evening"
    return "overnight"


def resolve_time_group(stored: Optional[str], created_at: Optional[datetime]) -> str:
    """Stored group when valid, otherwise computed from created_at"""
    group = (stored or "").lower()
    if group in TIME_GROUPS:
        return group
    return order_time_group(created_at or datetime.now(timezone.utc))


def delivery_date_key(value: Any) -> Optional[date]:
    """Delivery date of an order as an Istanbul calendar day"""
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return to_istanbul(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
    except ValueError:
        return None


def automation_schedule(status: str, time_group: str,
                        delivery_day: date) -> List[Tuple[str, datetime]]:
    """Remaining (target status, due time) steps for an order on its delivery day"""
    if status not in _PROGRESSION:
        return []

    effective = "noon" if time_group == "overnight" else time_group
    slots = _TIMETABLE.get(effective, _TIMETABLE["noon"])
    due_times = [datetime.combine(delivery_day, slot, tzinfo=ISTANBUL_TZ) for slot in slots]
    targets = _PROGRESSION[1:]

    current_index = _PROGRESSION.index(status)
    return [
        (target, due)
        for target, due in zip(targets, due_times)
        if _PROGRESSION.index(target) > current_index
    ]


def next_automated_status(status: str, time_group: str, delivery_day: date,
                          now: datetime) -> Optional[str]:
    """
    The single next step that is due now, or None

    Only one step is taken per run, so an order that missed several slots
    catches up over consecutive runs.
    """
    for target, due in automation_schedule(status, time_group, delivery_day):
        if now >= due:
            return target
        break
    return None
