"""
Coupon Domain Model

Author: Vadiler
Date: 2025-11-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP


class Coupon(BaseModel):
    """Discount coupon; code is always stored upper-case"""

    id: Optional[int] = None
    code: str = Field(..., description="Upper-case coupon code")
    description: Optional[str] = None
    type: str = Field("percentage", description="percentage or fixed")
    value: Decimal = Field(..., ge=0)
    min_order_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    def discount_for(self, order_total: Decimal) -> Decimal:
        """
        Discount amount for an order total.

        Percentage coupons round to whole lira and respect max_discount_amount.
        """
        order_total = Decimal(str(order_total))
        if self.type == "percentage":
            discount = (order_total * self.value / Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            if self.max_discount_amount is not None and discount > self.max_discount_amount:
                discount = self.max_discount_amount
        else:
            discount = self.value

        return min(discount, order_total)

    def to_dict(self) -> dict:
        data = self.model_dump()
        for field in ['value', 'min_order_amount', 'max_discount_amount']:
            if data.get(field) is not None:
                data[field] = float(data[field])
        for field in ['valid_from', 'valid_until']:
            if data.get(field) is not None:
                data[field] = data[field].isoformat()
        return data
