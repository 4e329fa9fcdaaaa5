"""
Delivery Calendar Repository - delivery_off_days table

Days the shop does not deliver (holidays, peak days). Sundays are closed
without needing a row.

Author: Vadiler
Date: 2025-11-02
"""
from datetime import date
from typing import List, Optional, Dict, Any

from vadiler.core.database import get_db_connection_dict


class DeliveryCalendarRepository:

    def is_off_day(self, day: date) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT 1 FROM delivery_off_days
                WHERE off_date = %s AND is_active = true
                LIMIT 1
            """, (day,))
            return cursor.fetchone() is not None
        finally:
            cursor.close()
            conn.close()

    def find_all(self, include_inactive: bool = False,
                 from_date: Optional[date] = None) -> List[Dict[str, Any]]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []
            if not include_inactive:
                conditions.append("is_active = true")
            if from_date:
                conditions.append("off_date >= %s")
                params.append(from_date)
            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"""
                SELECT id, off_date, note, is_active, created_at, updated_at
                FROM delivery_off_days
                WHERE {where_clause}
                ORDER BY off_date ASC
            """, params)
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def create(self, off_date: date, note: str = "") -> Dict[str, Any]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO delivery_off_days (off_date, note, is_active)
                VALUES (%s, %s, true)
                RETURNING id, off_date, note, is_active, created_at, updated_at
            """, (off_date, note))
            row = cursor.fetchone()
            conn.commit()
            return dict(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def deactivate(self, off_day_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE delivery_off_days
                SET is_active = false, updated_at = NOW()
                WHERE id = %s
            """, (off_day_id,))
            updated = cursor.rowcount > 0
            conn.commit()
            return updated
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete_before(self, day: date) -> int:
        """Remove past off days; returns rows removed"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM delivery_off_days WHERE off_date < %s", (day,))
            removed = cursor.rowcount
            conn.commit()
            return removed
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
