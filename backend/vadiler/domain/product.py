"""
Product Domain Models

Author: Vadiler
Date: 2025-11-02
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class Product(BaseModel):
    """
    Product domain model - a catalog item (bouquet, arrangement, plant)

    category is the slug of the primary category; occasion_tags holds
    the secondary categories the product is also listed under.
    """

    id: int = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    slug: str = Field(..., description="URL slug")
    sku: Optional[str] = Field(None, description="Stock keeping unit")
    description: Optional[str] = Field(None, description="Short description")
    long_description: Optional[str] = Field(None, description="Long description")

    price: Decimal = Field(..., description="Sale price", ge=0)
    old_price: Optional[Decimal] = Field(None, description="Price before discount", ge=0)
    discount: int = Field(0, description="Discount percentage", ge=0, le=100)

    image: Optional[str] = Field(None, description="Main image URL")
    hover_image: Optional[str] = Field(None, description="Hover image URL")
    gallery: List[str] = Field(default_factory=list)

    category: str = Field(..., description="Primary category slug")
    category_name: Optional[str] = Field(None, description="Primary category name")
    occasion_tags: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    in_stock: bool = Field(True, description="Available for sale")
    stock_count: int = Field(0, description="Units in stock")
    rating: Decimal = Field(Decimal("0"), description="Average review rating")
    review_count: int = Field(0, description="Number of reviews")

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            Decimal: float,
            datetime: lambda v: v.isoformat()
        }
    )

    @property
    def primary_tag(self) -> Optional[str]:
        return self.tags[0] if self.tags else None

    @property
    def has_discount(self) -> bool:
        return self.old_price is not None and self.old_price > self.price

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()

        for field in ['price', 'old_price', 'rating']:
            if data.get(field) is not None:
                data[field] = float(data[field])

        for field in ['created_at', 'updated_at']:
            if data.get(field) is not None:
                data[field] = data[field].isoformat()

        return data


class Category(BaseModel):
    """Catalog category"""

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    order: int = 0
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
