"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.

Author: Vadiler
Date: 2025-11-02
"""
from vadiler.repositories.product_repository import ProductRepository
from vadiler.repositories.order_repository import OrderRepository, StaleOrderError
from vadiler.repositories.customer_repository import CustomerRepository
from vadiler.repositories.otp_repository import OtpRepository
from vadiler.repositories.coupon_repository import CouponRepository
from vadiler.repositories.review_repository import ReviewRepository
from vadiler.repositories.delivery_calendar_repository import DeliveryCalendarRepository
from vadiler.repositories.analytics_repository import AnalyticsRepository, AnalyticsDisabledError

__all__ = [
    'ProductRepository',
    'OrderRepository',
    'StaleOrderError',
    'CustomerRepository',
    'OtpRepository',
    'CouponRepository',
    'ReviewRepository',
    'DeliveryCalendarRepository',
    'AnalyticsRepository',
    'AnalyticsDisabledError',
]
