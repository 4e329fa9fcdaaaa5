"""
Customer Domain Models

Author: Vadiler
Date: 2025-11-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal


class Customer(BaseModel):
    """
    Customer account

    The password hash is loaded so login can verify it, but to_public_dict()
    never includes it.
    """

    id: str = Field(..., description="Customer UUID")
    email: str = Field(..., description="Lowercased email")
    name: str = Field("", description="Full name")
    phone: Optional[str] = Field(None, description="10-digit phone")
    password: Optional[str] = Field(None, description="bcrypt hash")
    is_active: bool = True

    addresses: List[Dict[str, Any]] = Field(default_factory=list)
    orders: List[str] = Field(default_factory=list, description="Order IDs")
    favorites: List[int] = Field(default_factory=list, description="Product IDs")
    tags: List[str] = Field(default_factory=list)

    order_count: int = 0
    total_spent: Decimal = Decimal("0")
    account_credit: Decimal = Decimal("0")
    last_order_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def to_public_dict(self) -> dict:
        data = self.model_dump(exclude={"password"})
        data["total_spent"] = float(self.total_spent)
        data["account_credit"] = float(self.account_credit)
        for field in ['last_order_date', 'created_at', 'updated_at']:
            if data.get(field) is not None:
                data[field] = data[field].isoformat()
        return data


class EmailOtp(BaseModel):
    """Row of customer_email_otps"""

    id: str
    email: str
    purpose: str
    code_hash: str
    attempts: int = 0
    last_sent_at: Optional[datetime] = None
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
