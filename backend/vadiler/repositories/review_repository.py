"""
Review Repository - Data Access Layer for product reviews

Author: Vadiler
Date: 2025-11-02
"""
from typing import List, Optional, Tuple, Dict, Any

from psycopg2.extras import Json

from vadiler.domain.review import Review
from vadiler.core.database import get_db_connection_dict

REVIEW_SORTS = {
    "newest": "r.created_at DESC",
    "oldest": "r.created_at ASC",
    "helpful": "r.helpful_count DESC",
    "rating-high": "r.rating DESC",
    "rating-low": "r.rating ASC",
}

VOTE_COLUMNS = {
    "helpful": "helpful_count",
    "unhelpful": "unhelpful_count",
}


def _to_review(row: Optional[dict]) -> Optional[Review]:
    if not row:
        return None
    data = dict(row)
    data["id"] = str(data["id"])
    data["customer_id"] = str(data["customer_id"])
    if data.get("order_id") is not None:
        data["order_id"] = str(data["order_id"])
    for key in ("pros", "cons", "photos"):
        if data.get(key) is None:
            data[key] = []
    for key in ("helpful_count", "unhelpful_count"):
        data[key] = data.get(key) or 0
    return Review(**data)


class ReviewRepository:

    def find_all(
        self,
        product_id: Optional[int] = None,
        customer_id: Optional[str] = None,
        rating: Optional[int] = None,
        is_approved: Optional[bool] = None,
        verified_only: bool = False,
        has_photos: bool = False,
        sort_by: str = "newest",
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Review], int]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if product_id:
                conditions.append("r.product_id = %s")
                params.append(product_id)
            if customer_id:
                conditions.append("r.customer_id = %s")
                params.append(customer_id)
            if rating:
                conditions.append("r.rating = %s")
                params.append(rating)
            if is_approved is not None:
                conditions.append("r.is_approved = %s")
                params.append(is_approved)
            if verified_only:
                conditions.append("r.is_verified_purchase = true")
            if has_photos:
                conditions.append("jsonb_array_length(COALESCE(r.photos, '[]'::jsonb)) > 0")

            where_clause = " AND ".join(conditions) if conditions else "1=1"
            order_by = REVIEW_SORTS.get(sort_by, REVIEW_SORTS["newest"])

            cursor.execute(f"SELECT COUNT(*) as total FROM reviews r WHERE {where_clause}", params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT r.*, c.name AS customer_name
                FROM reviews r
                LEFT JOIN customers c ON c.id = r.customer_id
                WHERE {where_clause}
                ORDER BY {order_by}
                LIMIT %s OFFSET %s
            """, params + [limit, offset])
            return [_to_review(row) for row in cursor.fetchall()], total
        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, review_id: str) -> Optional[Review]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM reviews WHERE id = %s", (review_id,))
            return _to_review(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def exists_for_customer(self, product_id: int, customer_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(
                "SELECT 1 FROM reviews WHERE product_id = %s AND customer_id = %s LIMIT 1",
                (product_id, customer_id)
            )
            return cursor.fetchone() is not None
        finally:
            cursor.close()
            conn.close()

    def create(self, fields: Dict[str, Any]) -> Review:
        data = {
            key: Json(value) if key in ("pros", "cons", "photos") else value
            for key, value in fields.items()
        }
        columns = list(data.keys())

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO reviews ({", ".join(columns)})
                VALUES ({", ".join(["%s"] * len(columns))})
                RETURNING *
            """, [data[c] for c in columns])
            row = cursor.fetchone()
            conn.commit()
            return _to_review(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def add_vote(self, review_id: str, vote_type: str) -> Optional[Dict[str, int]]:
        """Increment helpful/unhelpful; returns both counters or None if missing"""
        column = VOTE_COLUMNS[vote_type]

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE reviews SET {column} = COALESCE({column}, 0) + 1
                WHERE id = %s
                RETURNING helpful_count, unhelpful_count
            """, (review_id,))
            row = cursor.fetchone()
            conn.commit()
            return dict(row) if row else None
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def set_approval(self, review_id: str, approved: bool) -> Optional[Review]:
        return self._update(review_id, "is_approved = %s", (approved,))

    def set_seller_response(self, review_id: str, response: str) -> Optional[Review]:
        return self._update(review_id, "seller_response = %s, seller_response_at = NOW()", (response,))

    def delete(self, review_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM reviews WHERE id = %s", (review_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def find_approved_for_product(self, product_id: int) -> List[Dict[str, Any]]:
        """rating, is_verified_purchase and photos of approved reviews"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT rating, is_verified_purchase, photos
                FROM reviews
                WHERE product_id = %s AND is_approved = true
            """, (product_id,))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def _update(self, review_id: str, assignments: str, params: tuple) -> Optional[Review]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE reviews SET {assignments}, updated_at = NOW()
                WHERE id = %s
                RETURNING *
            """, params + (review_id,))
            row = cursor.fetchone()
            conn.commit()
            return _to_review(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
