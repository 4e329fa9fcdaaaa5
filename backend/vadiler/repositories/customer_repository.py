"""
Customer Repository - Data Access Layer for customer accounts

Author: Vadiler
Date: 2025-11-02
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict, Any, Tuple

from psycopg2.extras import Json

from vadiler.domain.customer import Customer
from vadiler.core.database import get_db_connection_dict

CUSTOMER_JSON_COLUMNS = {"addresses", "orders", "favorites", "tags"}

CUSTOMER_COLUMNS = {
    "id", "email", "name", "phone", "password", "is_active",
    "addresses", "orders", "favorites", "tags",
    "order_count", "total_spent", "account_credit", "last_order_date",
    "created_at", "updated_at",
}


def _customer_params(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - CUSTOMER_COLUMNS
    if unknown:
        raise ValueError(f"Unknown customer columns: {', '.join(sorted(unknown))}")
    return {
        key: Json(value) if key in CUSTOMER_JSON_COLUMNS and value is not None else value
        for key, value in fields.items()
    }


def _to_customer(row: Optional[dict]) -> Optional[Customer]:
    if not row:
        return None
    data = dict(row)
    data["id"] = str(data["id"])
    for key in CUSTOMER_JSON_COLUMNS:
        if data.get(key) is None:
            data[key] = []
    data["orders"] = [str(o) for o in data["orders"]]
    data["total_spent"] = data.get("total_spent") or Decimal("0")
    data["account_credit"] = data.get("account_credit") or Decimal("0")
    data["order_count"] = data.get("order_count") or 0
    if data.get("name") is None:
        data["name"] = ""
    return Customer(**data)


class CustomerRepository:
    """Repository for customer accounts"""

    def find_by_id(self, customer_id: str) -> Optional[Customer]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM customers WHERE id = %s", (customer_id,))
            return _to_customer(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_by_email(self, email: str) -> Optional[Customer]:
        """Email lookup is case-insensitive; stored emails are lowercase"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(
                "SELECT * FROM customers WHERE email = %s LIMIT 1",
                (email.strip().lower(),)
            )
            return _to_customer(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_all(self, search: Optional[str] = None, limit: int = 50,
                 offset: int = 0) -> Tuple[List[Customer], int]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if search:
                conditions.append("(name ILIKE %s OR email ILIKE %s OR phone ILIKE %s)")
                search_param = f"%{search}%"
                params.extend([search_param] * 3)

            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"SELECT COUNT(*) as total FROM customers WHERE {where_clause}", params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT * FROM customers
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])
            return [_to_customer(row) for row in cursor.fetchall()], total
        finally:
            cursor.close()
            conn.close()

    def find_existing_keys(self) -> Tuple[set, set]:
        """All customer ids and lowercased emails, for bulk import dedupe"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT id, email FROM customers")
            rows = cursor.fetchall()
            ids = {str(row['id']) for row in rows}
            emails = {row['email'].lower() for row in rows if row['email']}
            return ids, emails
        finally:
            cursor.close()
            conn.close()

    def create(self, fields: Dict[str, Any]) -> Customer:
        data = _customer_params(fields)
        columns = list(data.keys())

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO customers ({", ".join(columns)})
                VALUES ({", ".join(["%s"] * len(columns))})
                RETURNING *
            """, [data[c] for c in columns])
            row = cursor.fetchone()
            conn.commit()
            return _to_customer(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def insert_many(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            for fields in rows:
                data = _customer_params(fields)
                columns = list(data.keys())
                cursor.execute(f"""
                    INSERT INTO customers ({", ".join(columns)})
                    VALUES ({", ".join(["%s"] * len(columns))})
                """, [data[c] for c in columns])
            conn.commit()
            return len(rows)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update(self, customer_id: str, fields: Dict[str, Any]) -> Optional[Customer]:
        data = _customer_params(fields)
        if not data:
            return self.find_by_id(customer_id)
        columns = list(data.keys())

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE customers SET {", ".join(f"{c} = %s" for c in columns)}
                WHERE id = %s
                RETURNING *
            """, [data[c] for c in columns] + [customer_id])
            row = cursor.fetchone()
            conn.commit()
            return _to_customer(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def record_order(self, customer_id: str, order_id: str, order_total: Decimal,
                     ordered_at: datetime) -> None:
        """Append the order to the customer's history and bump the stats"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE customers
                SET orders = COALESCE(orders, '[]'::jsonb) || %s::jsonb,
                    order_count = COALESCE(order_count, 0) + 1,
                    total_spent = COALESCE(total_spent, 0) + %s,
                    last_order_date = %s,
                    updated_at = NOW()
                WHERE id = %s
            """, (Json([order_id]), order_total, ordered_at, customer_id))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def add_credit(self, customer_id: str, amount: Decimal) -> Optional[Customer]:
        """Increment account_credit in place; None when the customer does not exist"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE customers
                SET account_credit = COALESCE(account_credit, 0) + %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
            """, (amount, customer_id))
            row = cursor.fetchone()
            conn.commit()
            return _to_customer(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete(self, customer_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM customers WHERE id = %s", (customer_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
