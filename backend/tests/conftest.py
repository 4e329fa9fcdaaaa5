"""
Pytest fixtures and configuration for Vadiler Backend tests

This file provides shared fixtures that can be used across all test modules.
Secrets are set before the application settings are first imported.

Author: Vadiler
Date: 2025-11-08
"""
import os
import time
from datetime import datetime, timezone
from decimal import Decimal

os.environ.setdefault("AUTH_SECRET", "test-admin-secret")
os.environ.setdefault("AUTH_SESSION_SECRET", "test-session-secret")
os.environ.setdefault("OTP_SECRET", "test-otp-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("IYZICO_SECRET_KEY", "test-iyzico-secret")
os.environ.setdefault("APP_URL", "https://app.vadiler.test")
os.environ.setdefault("SITE_URL", "https://vadiler.test")

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from vadiler.core.rate_limit import rate_limiter
from vadiler.core.session import CUSTOMER_SESSION_COOKIE, sign_customer_session
from vadiler.domain.order import Order
from vadiler.domain.product import Product
from vadiler.services.review_service import vote_limiter


@pytest.fixture(scope="session")
def app():
    """
    Provides the FastAPI application

    Scope: session (imported once per test session)
    """
    from vadiler.main import app as fastapi_app
    return fastapi_app


@pytest.fixture
def client(app):
    """Fresh test client per test so cookies and rate limits never leak between tests"""
    rate_limiter.reset()
    vote_limiter.reset()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="session")
def admin_headers():
    """Bearer header carrying a valid admin JWT"""
    token = jwt.encode(
        {
            "sub": "admin-1",
            "email": "admin@vadiler.com",
            "name": "Admin",
            "role": "admin",
            "exp": int(time.time()) + 3600,
        },
        os.environ["AUTH_SECRET"],
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def cron_headers():
    return {"Authorization": f"Bearer {os.environ['CRON_SECRET']}"}


@pytest.fixture
def customer_cookie():
    """Signed session cookie for customer cust-1"""
    return {CUSTOMER_SESSION_COOKIE: sign_customer_session("cust-1", "ayse@example.com")}


@pytest.fixture
def make_product():
    """
    Factory for Product models with sensible defaults
    """
    def _make(**overrides):
        data = {
            "id": 1,
            "name": "Kırmızı Gül Buketi",
            "slug": "kirmizi-gul-buketi",
            "sku": "SKU-KIRMIZI-GUL-BUKETI",
            "price": Decimal("750"),
            "old_price": Decimal("900"),
            "discount": 17,
            "image": "https://cdn.vadiler.test/gul.jpg",
            "category": "guller",
            "category_name": "Güller",
            "in_stock": True,
            "stock_count": 20,
        }
        data.update(overrides)
        return Product(**data)
    return _make


@pytest.fixture
def make_order():
    """
    Factory for Order models: an unpaid credit card order by default
    """
    def _make(**overrides):
        data = {
            "id": "order-1",
            "order_number": 100123,
            "customer_id": "cust-1",
            "customer_name": "Ayşe Yılmaz",
            "customer_email": "ayse@example.com",
            "customer_phone": "5321234567",
            "products": [
                {"id": 1, "name": "Kırmızı Gül Buketi", "slug": "kirmizi-gul-buketi",
                 "price": 750.0, "quantity": 2, "category": "guller", "categoryName": "Güller"},
            ],
            "delivery": {
                "recipientName": "Fatma Demir",
                "recipientPhone": "5339876543",
                "province": "İstanbul",
                "district": "Kadıköy",
                "fullAddress": "Moda Cad. No:1",
                "deliveryDate": "2025-11-10",
                "deliveryTimeSlot": "11:00-17:00",
            },
            "payment": {"method": "credit_card", "status": "pending"},
            "timeline": [],
            "subtotal": Decimal("1500"),
            "delivery_fee": Decimal("0"),
            "discount": Decimal("0"),
            "total": Decimal("1500"),
            "status": "pending_payment",
            "created_at": datetime(2025, 11, 8, 9, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Order(**data)
    return _make
