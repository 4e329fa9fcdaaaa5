"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and returns Order domain models.
JSON columns (products, delivery, payment, message, timeline, refund) are
written through psycopg2's Json adapter.

Author: Vadiler
Date: 2025-11-02
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple, Dict, Any, Iterable

from psycopg2.extras import Json

from vadiler.domain.order import Order
from vadiler.domain.order_status import StatusChange
from vadiler.core.database import get_db_connection_dict

logger = logging.getLogger(__name__)

JSON_COLUMNS = {"products", "delivery", "payment", "message", "timeline", "refund"}

# Columns callers are allowed to write
WRITABLE_COLUMNS = {
    "order_number", "customer_id", "customer_name", "customer_email", "customer_phone",
    "is_guest", "products", "delivery", "payment", "message", "timeline", "refund",
    "subtotal", "discount", "delivery_fee", "total", "coupon_code", "status",
    "order_time_group", "notes", "tracking_url", "delivered_at", "updated_at",
}

INSERTABLE_COLUMNS = WRITABLE_COLUMNS | {"id", "created_at"}


class StaleOrderError(Exception):
    """The order changed status between read and guarded update"""

    def __init__(self, order_id: str, expected_status: Optional[str]):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(f"Order {order_id} is no longer in status {expected_status}")


def _adapt(fields: Dict[str, Any], allowed=WRITABLE_COLUMNS) -> Dict[str, Any]:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown order columns: {', '.join(sorted(unknown))}")
    return {
        key: Json(value) if key in JSON_COLUMNS and value is not None else value
        for key, value in fields.items()
    }


def is_order_id(value: Any) -> bool:
    """Order ids are UUIDs; anything else cannot match a row"""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _to_order(row: Optional[dict]) -> Optional[Order]:
    if not row:
        return None
    data = dict(row)
    for key in ("products", "timeline"):
        if data.get(key) is None:
            data[key] = []
    for key in ("delivery", "payment"):
        if data.get(key) is None:
            data[key] = {}
    if data.get("id") is not None:
        data["id"] = str(data["id"])
    if data.get("customer_id") is not None:
        data["customer_id"] = str(data["customer_id"])
    return Order(**data)


class OrderRepository:
    """
    Repository for Order data access

    All SQL for orders is centralized here. Status changes go through
    apply_status_change(), which only succeeds if the row is still in the
    status the change was planned from.
    """

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, order_id: str) -> Optional[Order]:
        if not is_order_id(order_id):
            return None

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM orders WHERE id = %s", (order_id,))
            return _to_order(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_by_payment_token(self, token: str) -> Optional[Order]:
        """Find the order a checkout form token was issued for"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT * FROM orders
                WHERE payment->>'token' = %s
                ORDER BY created_at DESC
                LIMIT 1
            """, (token,))
            return _to_order(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_by_order_number(self, order_number: int) -> Optional[Order]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM orders WHERE order_number = %s", (order_number,))
            return _to_order(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        customer_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Order], int]:
        """
        Find orders with filters, newest first

        Args:
            customer_id: Only orders of this customer
            status: Filter by order status
            search: Order number, customer name, email or phone
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of orders, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params = []

            if customer_id:
                conditions.append("customer_id = %s")
                params.append(customer_id)

            if status:
                conditions.append("status = %s")
                params.append(status)

            if search:
                conditions.append("""(
                    CAST(order_number AS TEXT) ILIKE %s OR
                    customer_name ILIKE %s OR
                    customer_email ILIKE %s OR
                    customer_phone ILIKE %s
                )""")
                search_param = f"%{search}%"
                params.extend([search_param] * 4)

            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM orders
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT *
                FROM orders
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [_to_order(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def count_all(self) -> int:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT COUNT(*) as total FROM orders")
            return int(cursor.fetchone()['total'])
        finally:
            cursor.close()
            conn.close()

    def find_by_statuses_created_between(
        self,
        statuses: Iterable[str],
        created_after: datetime,
        created_before: datetime,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """Orders in any of `statuses` created inside the window, oldest first"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            query = """
                SELECT * FROM orders
                WHERE status = ANY(%s)
                  AND created_at >= %s
                  AND created_at <= %s
                ORDER BY created_at ASC
            """
            params: list = [list(statuses), created_after, created_before]
            if limit:
                query += " LIMIT %s"
                params.append(limit)

            cursor.execute(query, params)
            return [_to_order(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def find_paid_in_statuses(
        self,
        statuses: Iterable[str],
        created_after: Optional[datetime] = None,
        delivery_date: Optional[str] = None,
    ) -> List[Order]:
        """
        Orders whose payment is marked paid and whose status is in `statuses`

        Args:
            statuses: Order statuses to include
            created_after: Lower bound on created_at
            delivery_date: Only orders delivering on this YYYY-MM-DD date
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["status = ANY(%s)", "payment->>'status' = 'paid'"]
            params: list = [list(statuses)]

            if created_after:
                conditions.append("created_at >= %s")
                params.append(created_after)

            if delivery_date:
                conditions.append("delivery->>'deliveryDate' = %s")
                params.append(delivery_date)

            cursor.execute(f"""
                SELECT * FROM orders
                WHERE {" AND ".join(conditions)}
                ORDER BY created_at ASC
            """, params)
            return [_to_order(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def find_for_sales_report(
        self,
        statuses: Iterable[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Order]:
        """Paid orders for the sales report; end_date is inclusive"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["status = ANY(%s)", "payment->>'status' = 'paid'"]
            params: list = [list(statuses)]

            if start_date:
                conditions.append("created_at >= %s::date")
                params.append(start_date)

            if end_date:
                conditions.append("created_at < %s::date + INTERVAL '1 day'")
                params.append(end_date)

            cursor.execute(f"""
                SELECT * FROM orders
                WHERE {" AND ".join(conditions)}
                ORDER BY created_at DESC
            """, params)
            return [_to_order(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def next_order_number(self) -> int:
        """Next 6-digit order number from the database sequence"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT nextval('order_number_seq') AS order_number")
            row = cursor.fetchone()
            conn.commit()
            return int(row['order_number'])
        finally:
            cursor.close()
            conn.close()

    def get_counter_state(self) -> Dict[str, Any]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT last_value, is_called FROM order_number_seq")
            row = cursor.fetchone()
            return {"last_value": int(row['last_value']), "is_called": bool(row['is_called'])}
        finally:
            cursor.close()
            conn.close()

    def reset_counter(self, start: int) -> None:
        """Next nextval() returns `start`"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT setval('order_number_seq', %s, false)", (start,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def create(self, fields: Dict[str, Any]) -> Order:
        data = _adapt(fields, INSERTABLE_COLUMNS)
        columns = list(data.keys())
        placeholders = ", ".join(["%s"] * len(columns))

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO orders ({", ".join(columns)})
                VALUES ({placeholders})
                RETURNING *
            """, [data[c] for c in columns])
            row = cursor.fetchone()
            conn.commit()
            return _to_order(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update_fields(self, order_id: str, fields: Dict[str, Any]) -> Optional[Order]:
        """Plain column update; returns None when the order does not exist"""
        if not fields:
            return self.find_by_id(order_id)

        data = _adapt(fields)
        columns = list(data.keys())
        assignments = ", ".join(f"{c} = %s" for c in columns)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE orders SET {assignments}
                WHERE id = %s
                RETURNING *
            """, [data[c] for c in columns] + [order_id])
            row = cursor.fetchone()
            conn.commit()
            return _to_order(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def merge_payment(self, order_id: str, patch: Dict[str, Any], unless_paid: bool = False) -> Optional[Order]:
        """
        Merge `patch` into the payment JSON in place

        Only the given keys are written, so a concurrent confirmation is never
        overwritten from a stale read. With `unless_paid` the row is left
        alone once payment.status is 'paid'. Returns None when no row matched.
        """
        guard = " AND COALESCE(payment->>'status', '') <> 'paid'" if unless_paid else ""

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE orders
                SET payment = COALESCE(payment, '{{}}'::jsonb) || %s::jsonb,
                    updated_at = %s
                WHERE id = %s{guard}
                RETURNING *
            """, [Json(patch), datetime.now(timezone.utc), order_id])
            row = cursor.fetchone()
            conn.commit()
            return _to_order(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def apply_status_change(self, change: StatusChange) -> Order:
        """
        Persist a planned status change.

        The UPDATE is guarded on the status the change was planned from.

        Raises:
            StaleOrderError: another writer changed the status first
        """
        data = _adapt(change.to_update_fields())
        columns = list(data.keys())
        assignments = ", ".join(f"{c} = %s" for c in columns)

        params = [data[c] for c in columns] + [change.order_id]
        if change.from_status is None:
            status_guard = "status IS NULL"
        else:
            status_guard = "status = %s"
            params.append(change.from_status)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE orders SET {assignments}
                WHERE id = %s AND {status_guard}
                RETURNING *
            """, params)
            row = cursor.fetchone()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        if not row:
            raise StaleOrderError(change.order_id, change.from_status)
        return _to_order(row)

    def append_timeline(self, order_id: str, entries: List[Dict[str, Any]]) -> None:
        """Append entries to the timeline without touching the status"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE orders
                SET timeline = COALESCE(timeline, '[]'::jsonb) || %s::jsonb,
                    updated_at = NOW()
                WHERE id = %s
            """, (Json(entries), order_id))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    # ------------------------------------------------------------------
    # Deletion and restore
    # ------------------------------------------------------------------

    def backup_deleted(self, order: Order) -> bool:
        """Copy the order into deleted_orders; returns False when the copy failed"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO deleted_orders (original_id, order_number, order_data, deleted_at)
                VALUES (%s, %s, %s, NOW())
            """, (order.id, order.order_number, Json(order.to_dict())))
            conn.commit()
            return True
        except Exception as e:
            conn.rollback()
            logger.error(f"Could not back up order {order.id} before delete: {e}")
            return False
        finally:
            cursor.close()
            conn.close()

    def delete(self, order_id: str) -> bool:
        if not is_order_id(order_id):
            return False

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM orders WHERE id = %s", (order_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def find_deleted(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, original_id, order_number, order_data, deleted_at
                FROM deleted_orders
                ORDER BY deleted_at DESC
                LIMIT %s OFFSET %s
            """, (limit, offset))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def find_deleted_backup(self, backup_id: Any) -> Optional[Dict[str, Any]]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, original_id, order_number, order_data, deleted_at
                FROM deleted_orders
                WHERE id = %s
            """, (backup_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            cursor.close()
            conn.close()

    def remove_deleted_backup(self, backup_id: Any) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM deleted_orders WHERE id = %s", (backup_id,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()


def hours_ago(hours: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)
