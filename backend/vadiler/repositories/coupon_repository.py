"""
Coupon Repository - Data Access Layer for coupons

Author: Vadiler
Date: 2025-11-02
"""
from typing import List, Optional, Dict, Any, Tuple

from vadiler.domain.coupon import Coupon
from vadiler.core.database import get_db_connection_dict

COUPON_COLUMNS = {
    "id", "code", "description", "type", "value", "min_order_amount", "max_discount_amount",
    "usage_limit", "used_count", "valid_from", "valid_until", "is_active",
}


class CouponRepository:
    """Repository for coupons"""

    def find_by_code(self, code: str) -> Optional[Coupon]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM coupons WHERE code = %s", (code.strip().upper(),))
            row = cursor.fetchone()
            return Coupon(**row) if row else None
        finally:
            cursor.close()
            conn.close()

    def find_all(self, active_only: bool = False) -> List[Coupon]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            where_clause = "is_active = true" if active_only else "1=1"
            cursor.execute(f"SELECT * FROM coupons WHERE {where_clause} ORDER BY created_at DESC")
            return [Coupon(**row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def find_existing_keys(self) -> Tuple[set, set]:
        """All coupon ids and uppercased codes, for bulk import dedupe"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT id, code FROM coupons")
            rows = cursor.fetchall()
            return {row["id"] for row in rows}, {row["code"].upper() for row in rows if row["code"]}
        finally:
            cursor.close()
            conn.close()

    def increment_usage(self, coupon_id: int) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(
                "UPDATE coupons SET used_count = COALESCE(used_count, 0) + 1 WHERE id = %s",
                (coupon_id,)
            )
            conn.commit()
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
                unknown = set(fields) - COUPON_COLUMNS
                if unknown:
                    raise ValueError(f"Unknown coupon columns: {', '.join(sorted(unknown))}")
                columns = list(fields.keys())
                cursor.execute(f"""
                    INSERT INTO coupons ({", ".join(columns)})
                    VALUES ({", ".join(["%s"] * len(columns))})
                """, [fields[c] for c in columns])
            conn.commit()
            return len(rows)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
