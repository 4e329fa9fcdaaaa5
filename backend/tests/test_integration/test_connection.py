"""
Integration checks against a real database

Skipped unless DATABASE_URL points at a provisioned Vadiler database.
Read-only: nothing is written.

Author: Vadiler
Date: 2025-11-08
"""
import os

import pytest

pytestmark = pytest.mark.skipif(
    not os.getenv("DATABASE_URL"),
    reason="DATABASE_URL not set; integration tests need a real database",
)

EXPECTED_TABLES = [
    "categories",
    "coupons",
    "customer_email_otps",
    "customers",
    "deleted_orders",
    "delivery_off_days",
    "orders",
    "products",
    "reviews",
]


@pytest.fixture
def dict_cursor():
    from vadiler.core.database import get_db_connection_dict_with_retry

    conn = get_db_connection_dict_with_retry(max_retries=1, retry_delay=0.5)
    cursor = conn.cursor()
    try:
        yield cursor
    finally:
        cursor.close()
        conn.close()


class TestSchema:

    def test_tables_exist(self, dict_cursor):
        dict_cursor.execute("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
        """)
        existing = {row['table_name'] for row in dict_cursor.fetchall()}

        missing = [table for table in EXPECTED_TABLES if table not in existing]
        assert missing == []

    def test_order_number_sequence_in_range(self):
        from vadiler.services.order_number_service import OrderNumberService

        info = OrderNumberService().get_counter_info()

        assert 100000 <= info["nextOrderNumber"] <= 999999


class TestRepositories:

    def test_active_categories_are_ordered(self):
        from vadiler.repositories.product_repository import ProductRepository

        categories = ProductRepository().find_categories()

        orders = [category.order for category in categories]
        assert orders == sorted(orders)
        assert all(category.is_active for category in categories)
