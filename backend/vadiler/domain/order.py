"""
Order Domain Models

Represents storefront orders. Nested structures (line items, delivery,
payment, card message, timeline, refund) live in JSON columns and are kept
as plain dicts here.

Author: Vadiler
Date: 2025-11-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal

from vadiler.domain.order_status import PaymentStatus


class OrderLine(BaseModel):
    """
    Server-trusted line item snapshot stored in orders.products

    Prices always come from the catalog at order time, never from the client.
    """

    id: int = Field(..., description="Product ID", gt=0)
    name: str = Field(..., description="Product name at order time")
    slug: Optional[str] = Field(None, description="Product slug")
    image: Optional[str] = Field(None, description="Main product image")
    price: Decimal = Field(..., description="Unit price at order time", ge=0)
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    category: Optional[str] = Field(None, description="Category slug")
    categoryName: Optional[str] = Field(None, description="Category display name")

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["price"] = float(self.price)
        return data


class Order(BaseModel):
    """
    Order domain model - a storefront order

    JSON columns:
        products: list of OrderLine dicts
        delivery: recipient, address, district, deliveryDate, deliveryTimeSlot
        payment: method, status, token, transactionId, paidAt, ...
        message: card message and sender name
        timeline: status and notification history
        refund: refund record when refunded
    """

    id: str = Field(..., description="Order UUID")
    order_number: Optional[int] = Field(None, description="6-digit public order number")
    customer_id: Optional[str] = Field(None, description="Customer UUID, empty for guests")
    customer_name: Optional[str] = Field(None, description="Customer name snapshot")
    customer_email: Optional[str] = Field(None, description="Customer email snapshot")
    customer_phone: Optional[str] = Field(None, description="Customer phone snapshot")
    is_guest: bool = Field(False, description="Placed without an account")

    products: List[Dict[str, Any]] = Field(default_factory=list, description="Line item snapshots")
    delivery: Dict[str, Any] = Field(default_factory=dict, description="Delivery details")
    payment: Dict[str, Any] = Field(default_factory=dict, description="Payment details")
    message: Optional[Dict[str, Any]] = Field(None, description="Card message")
    timeline: List[Dict[str, Any]] = Field(default_factory=list, description="Status history")
    refund: Optional[Dict[str, Any]] = Field(None, description="Refund record")

    subtotal: Decimal = Field(Decimal("0"), description="Sum of line totals", ge=0)
    discount: Decimal = Field(Decimal("0"), description="Discount applied", ge=0)
    delivery_fee: Decimal = Field(Decimal("0"), description="Delivery fee", ge=0)
    total: Decimal = Field(Decimal("0"), description="Amount to pay", ge=0)
    coupon_code: Optional[str] = Field(None, description="Applied coupon code")

    status: str = Field("pending", description="Order status")
    order_time_group: Optional[str] = Field(None, description="noon, evening or overnight")
    notes: Optional[str] = Field(None, description="Internal notes")
    tracking_url: Optional[str] = Field(None, description="Courier tracking URL")

    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            Decimal: float,
            datetime: lambda v: v.isoformat()
        }
    )

    # Computed properties

    @property
    def is_paid(self) -> bool:
        return self.payment.get("status") == PaymentStatus.PAID.value

    @property
    def payment_method(self) -> Optional[str]:
        return self.payment.get("method")

    @property
    def payment_token(self) -> Optional[str]:
        return self.payment.get("token")

    @property
    def recipient_name(self) -> Optional[str]:
        return self.delivery.get("recipientName")

    @property
    def recipient_phone(self) -> Optional[str]:
        return self.delivery.get("recipientPhone")

    @property
    def delivery_date(self) -> Optional[str]:
        return self.delivery.get("deliveryDate")

    @property
    def item_count(self) -> int:
        return sum(int(line.get("quantity") or 0) for line in self.products)

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()

        for field in ['subtotal', 'discount', 'delivery_fee', 'total']:
            if data.get(field) is not None:
                data[field] = float(data[field])

        for field in ['delivered_at', 'created_at', 'updated_at']:
            if data.get(field) is not None:
                data[field] = data[field].isoformat()

        return data
