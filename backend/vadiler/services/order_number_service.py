"""
Order Number Service
6-digit sequential order numbers (100001, 100002, ...) backed by the
order_number_seq database sequence.

Author: Vadiler
Date: 2025-11-04
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from vadiler.repositories.order_repository import OrderRepository

MIN_ORDER_NUMBER = 100000
MAX_ORDER_NUMBER = 999999
DEFAULT_START = 100001


def is_valid_order_number(order_number: Any) -> bool:
    try:
        value = int(order_number)
    except (TypeError, ValueError):
        return False
    return MIN_ORDER_NUMBER <= value <= MAX_ORDER_NUMBER


def format_order_number(order_number: int) -> str:
    return str(order_number).zfill(6)


def parse_order_number(text: Any) -> Optional[int]:
    """Digits only: "#100023" -> 100023; None when there are no digits"""
    digits = re.sub(r"\D", "", str(text or ""))
    return int(digits) if digits else None


class OrderNumberService:

    def __init__(self, repo: Optional[OrderRepository] = None):
        self.repo = repo or OrderRepository()

    def generate_order_number(self) -> int:
        return self.repo.next_order_number()

    def get_counter_info(self) -> Dict[str, Any]:
        state = self.repo.get_counter_state()
        next_number = state["last_value"] + 1 if state["is_called"] else state["last_value"]
        return {
            "nextOrderNumber": next_number,
            "lastGeneratedAt": datetime.now(timezone.utc).isoformat(),
            "totalOrders": self.repo.count_all(),
        }

    def reset_counter(self, start: int = DEFAULT_START) -> Dict[str, Any]:
        """
        Make `start` the next order number

        Raises:
            ValueError: start is not a 6-digit number
        """
        if not is_valid_order_number(start):
            raise ValueError("Başlangıç numarası 100000 ile 999999 arasında olmalıdır.")

        self.repo.reset_counter(int(start))
        return {
            "nextOrderNumber": int(start),
            "lastGeneratedAt": datetime.now(timezone.utc).isoformat(),
            "totalOrders": self.repo.count_all(),
        }
