"""
Order Status State Machine

Single authority for order status changes. Webhooks, checkout completion,
admin actions, the payment verification cron and the delivery-day
automation all build their changes through plan_transition() and persist
them with OrderRepository.apply_status_change(), which only updates the row
if it is still in the status the change was planned from.

Author: Vadiler
Date: 2025-11-02
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class OrderStatus(str, Enum):
    """Order statuses stored in orders.status"""
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_FAILED = "payment_failed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Values of orders.payment->status"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


_AWAITING_PAYMENT_TARGETS = frozenset({
    OrderStatus.CONFIRMED.value,
    OrderStatus.PAYMENT_FAILED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.PENDING_PAYMENT.value,
})

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    OrderStatus.PENDING.value: _AWAITING_PAYMENT_TARGETS,
    OrderStatus.PENDING_PAYMENT.value: _AWAITING_PAYMENT_TARGETS,
    OrderStatus.AWAITING_PAYMENT.value: _AWAITING_PAYMENT_TARGETS,
    OrderStatus.PAYMENT_FAILED.value: frozenset({
        OrderStatus.CONFIRMED.value,
        OrderStatus.PENDING_PAYMENT.value,
        OrderStatus.CANCELLED.value,
    }),
    OrderStatus.CONFIRMED.value: frozenset({
        OrderStatus.PROCESSING.value,
        OrderStatus.SHIPPED.value,
        OrderStatus.DELIVERED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.PROCESSING.value: frozenset({
        OrderStatus.SHIPPED.value,
        OrderStatus.DELIVERED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.SHIPPED.value: frozenset({
        OrderStatus.DELIVERED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.DELIVERED.value: frozenset({OrderStatus.REFUNDED.value}),
    OrderStatus.CANCELLED.value: frozenset({OrderStatus.REFUNDED.value}),
    OrderStatus.REFUNDED.value: frozenset(),
}

# Orders that still wait for the customer to pay
AWAITING_PAYMENT_STATUSES = frozenset({
    OrderStatus.PENDING.value,
    OrderStatus.PENDING_PAYMENT.value,
    OrderStatus.AWAITING_PAYMENT.value,
})

# Statuses that trigger a customer email when an admin or the automation sets them
NOTIFY_STATUSES = frozenset({
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value,
})

# Public tracking page vocabulary
PUBLIC_STATUS_MAP = {
    OrderStatus.PENDING.value: "pending",
    OrderStatus.PENDING_PAYMENT.value: "pending",
    OrderStatus.AWAITING_PAYMENT.value: "pending",
    OrderStatus.PAYMENT_FAILED.value: "payment_failed",
    OrderStatus.CONFIRMED.value: "confirmed",
    OrderStatus.PROCESSING.value: "preparing",
    OrderStatus.SHIPPED.value: "shipped",
    OrderStatus.DELIVERED.value: "delivered",
    OrderStatus.CANCELLED.value: "cancelled",
    OrderStatus.REFUNDED.value: "refunded",
}


class InvalidTransitionError(Exception):
    """Raised when a status change is not in the transition table"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition: {current} -> {target}")


class PaymentDowngradeError(Exception):
    """Raised when a change would mark an already paid order as failed"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def can_transition(current: Optional[str], target: str) -> bool:
    """
    True when `current -> target` is allowed.

    Unknown current statuses (legacy rows) may only move to statuses that
    begin the lifecycle again.
    """
    if current == target:
        return True
    allowed = TRANSITIONS.get(current or "")
    if allowed is None:
        return target in _AWAITING_PAYMENT_TARGETS
    return target in allowed


def is_paid(order: Dict[str, Any]) -> bool:
    payment = order.get("payment") or {}
    return payment.get("status") == PaymentStatus.PAID.value


def display_status(db_status: Optional[str]) -> str:
    return PUBLIC_STATUS_MAP.get(db_status or "", db_status or "pending")


def timeline_entry(status: str, note: str, automated: bool = True,
                   timestamp: Optional[str] = None, **extra) -> Dict[str, Any]:
    entry = {
        "status": status,
        "timestamp": timestamp or utc_now_iso(),
        "note": note,
        "automated": automated,
    }
    entry.update(extra)
    return entry


def notification_entry(status: str, automated: bool = True,
                       timestamp: Optional[str] = None) -> Dict[str, Any]:
    """Timeline record of a status email that went out"""
    return {
        "type": "notification",
        "channel": "email",
        "event": "order_status",
        "status": status,
        "timestamp": timestamp or utc_now_iso(),
        "success": True,
        "automated": automated,
    }


def has_status_notification(timeline: Optional[List[Dict[str, Any]]], status: str) -> bool:
    """True when an order_status email for `status` was already recorded"""
    for entry in timeline or []:
        if not isinstance(entry, dict):
            continue
        if (entry.get("type") == "notification"
                and entry.get("channel") == "email"
                and entry.get("event") == "order_status"
                and entry.get("status") == status
                and entry.get("success") is True):
            return True
    return False


@dataclass
class StatusChange:
    """A planned, not yet persisted, status change"""
    order_id: str
    from_status: Optional[str]
    to_status: str
    timeline: List[Dict[str, Any]]
    payment: Dict[str, Any]
    updated_at: str
    delivered_at: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return self.from_status == self.to_status and not self.extra_fields

    def to_update_fields(self) -> Dict[str, Any]:
        fields = {
            "status": self.to_status,
            "timeline": self.timeline,
            "payment": self.payment,
            "updated_at": self.updated_at,
        }
        if self.delivered_at:
            fields["delivered_at"] = self.delivered_at
        fields.update(self.extra_fields)
        return fields


def plan_transition(
    order: Any,
    target: str,
    note: str,
    automated: bool = True,
    payment_patch: Optional[Dict[str, Any]] = None,
    timeline_extra: Optional[Dict[str, Any]] = None,
    extra_fields: Optional[Dict[str, Any]] = None,
    now: Optional[str] = None,
) -> StatusChange:
    """
    Build the update for moving `order` to `target`.

    Args:
        order: Current order (Order model or row dict with status, payment, timeline)
        target: Desired status
        note: Human readable timeline note
        automated: False for admin actions
        payment_patch: Keys merged into the payment JSON
        timeline_extra: Extra keys stored on the timeline entry
        extra_fields: Other columns updated together with the status

    Raises:
        InvalidTransitionError: target is not reachable from the current status
        PaymentDowngradeError: order is paid and the patch marks payment failed
    """
    if hasattr(order, "model_dump"):
        order = order.model_dump()

    target = OrderStatus(target).value
    current = order.get("status")

    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)

    payment = dict(order.get("payment") or {})
    if payment_patch:
        if (payment.get("status") == PaymentStatus.PAID.value
                and payment_patch.get("status") == PaymentStatus.FAILED.value):
            raise PaymentDowngradeError(f"Order {order.get('id')} is already paid")
        payment.update(payment_patch)

    timestamp = now or utc_now_iso()
    timeline = list(order.get("timeline") or [])
    timeline.append(timeline_entry(target, note, automated, timestamp, **(timeline_extra or {})))

    return StatusChange(
        order_id=str(order.get("id")),
        from_status=current,
        to_status=target,
        timeline=timeline,
        payment=payment,
        updated_at=timestamp,
        delivered_at=timestamp if target == OrderStatus.DELIVERED.value else None,
        extra_fields=dict(extra_fields or {}),
    )
