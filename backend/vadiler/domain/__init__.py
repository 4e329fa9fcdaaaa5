"""
Domain Layer - Business Entities

Pydantic models for storefront entities plus the order status state
machine that every status change goes through.

Author: Vadiler
Date: 2025-11-02
"""
from vadiler.domain.product import Product, Category
from vadiler.domain.order import Order, OrderLine
from vadiler.domain.customer import Customer, EmailOtp
from vadiler.domain.coupon import Coupon
from vadiler.domain.review import Review, ReviewStats
from vadiler.domain.order_status import (
    OrderStatus,
    PaymentStatus,
    StatusChange,
    InvalidTransitionError,
    PaymentDowngradeError,
    plan_transition,
)

__all__ = [
    'Product', 'Category',
    'Order', 'OrderLine',
    'Customer', 'EmailOtp',
    'Coupon',
    'Review', 'ReviewStats',
    'OrderStatus', 'PaymentStatus', 'StatusChange',
    'InvalidTransitionError', 'PaymentDowngradeError', 'plan_transition',
]
