"""
Review Domain Models

Author: Vadiler
Date: 2025-11-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime


class Review(BaseModel):
    """Product review left by a customer after a purchase"""

    id: str
    product_id: int
    customer_id: str
    order_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    title: str = ""
    comment: str = ""
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    is_verified_purchase: bool = False
    is_approved: bool = False
    helpful_count: int = 0
    unhelpful_count: int = 0
    seller_response: Optional[str] = None
    seller_response_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Joined from customers
    customer_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        for field in ['seller_response_at', 'created_at', 'updated_at']:
            if data.get(field) is not None:
                data[field] = data[field].isoformat()
        return data


class ReviewStats(BaseModel):
    """Aggregate rating numbers for one product"""

    product_id: int
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: Dict[int, int] = Field(
        default_factory=lambda: {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    )
    verified_purchase_count: int = 0
    with_photos_count: int = 0
