"""
Product Repository - Data Access Layer for the catalog

Handles all database queries for products and categories and returns
domain models.

Author: Vadiler
Date: 2025-11-02
"""
from typing import List, Optional, Tuple, Dict, Any, Iterable

from psycopg2.extras import Json

from vadiler.domain.product import Product, Category
from vadiler.core.database import get_db_connection_dict

PRODUCT_JSON_COLUMNS = {"gallery", "tags"}

PRODUCT_COLUMNS = {
    "id", "name", "slug", "sku", "description", "long_description",
    "price", "old_price", "discount", "image", "hover_image", "gallery",
    "category", "category_name", "occasion_tags", "tags",
    "in_stock", "stock_count", "rating", "review_count", "updated_at",
}

CATEGORY_COLUMNS = {"id", "name", "slug", "description", "image", "is_active", "order", "updated_at"}

SORT_OPTIONS = {
    "newest": "created_at DESC",
    "price-asc": "price ASC",
    "price-desc": "price DESC",
    "rating": "rating DESC, review_count DESC",
    "name": "name ASC",
    "id": "id ASC",
}


def _product_params(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - PRODUCT_COLUMNS
    if unknown:
        raise ValueError(f"Unknown product columns: {', '.join(sorted(unknown))}")
    return {
        key: Json(value) if key in PRODUCT_JSON_COLUMNS and value is not None else value
        for key, value in fields.items()
    }


def _to_product(row: Optional[dict]) -> Optional[Product]:
    if not row:
        return None
    data = dict(row)
    for key in ("gallery", "tags", "occasion_tags"):
        if data.get(key) is None:
            data[key] = []
    data["discount"] = int(data.get("discount") or 0)
    return Product(**data)


class ProductRepository:
    """
    Repository for Product data access

    All SQL for products and categories is centralized here.
    """

    def find_by_id(self, product_id: int) -> Optional[Product]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM products WHERE id = %s", (product_id,))
            return _to_product(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_by_slug(self, slug: str) -> Optional[Product]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM products WHERE slug = %s", (slug,))
            return _to_product(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_by_ids(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """
        Load several products in one query

        Returns:
            Dict mapping product id to Product (missing ids are absent)
        """
        ids = sorted(set(int(pid) for pid in product_ids))
        if not ids:
            return {}

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM products WHERE id = ANY(%s)", (ids,))
            products = [_to_product(row) for row in cursor.fetchall()]
            return {p.id: p for p in products}
        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        in_stock: Optional[bool] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        product_ids: Optional[List[int]] = None,
        sort: str = "id",
        limit: Optional[int] = 50,
        offset: int = 0
    ) -> Tuple[List[Product], int]:
        """
        Find products with filters

        Args:
            category: Category slug; matches the primary category or an occasion tag
            search: Search in name and description
            in_stock: Filter by stock flag
            min_price: Minimum price (inclusive)
            max_price: Maximum price (inclusive)
            product_ids: Restrict to these ids
            sort: One of SORT_OPTIONS
            limit: Maximum results to return (None for all)
            offset: Number of results to skip

        Returns:
            Tuple of (list of products, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if category:
                conditions.append("(category = %s OR %s = ANY(occasion_tags))")
                params.extend([category, category])

            if search:
                conditions.append("(name ILIKE %s OR description ILIKE %s)")
                search_param = f"%{search}%"
                params.extend([search_param, search_param])

            if in_stock is not None:
                conditions.append("in_stock = %s")
                params.append(in_stock)

            if min_price is not None:
                conditions.append("price >= %s")
                params.append(min_price)

            if max_price is not None:
                conditions.append("price <= %s")
                params.append(max_price)

            if product_ids:
                conditions.append("id = ANY(%s)")
                params.append(list(product_ids))

            where_clause = " AND ".join(conditions) if conditions else "1=1"
            order_by = SORT_OPTIONS.get(sort, SORT_OPTIONS["id"])

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM products
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            query = f"""
                SELECT *
                FROM products
                WHERE {where_clause}
                ORDER BY {order_by}
            """
            query_params = list(params)
            if limit is not None:
                query += " LIMIT %s OFFSET %s"
                query_params.extend([limit, offset])

            cursor.execute(query, query_params)
            return [_to_product(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def find_existing_keys(self) -> Tuple[set, set]:
        """All product ids and slugs, used to skip rows on bulk import"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT id, slug FROM products")
            rows = cursor.fetchall()
            return {row['id'] for row in rows}, {row['slug'] for row in rows if row['slug']}
        finally:
            cursor.close()
            conn.close()

    def slug_or_sku_exists(self, slug: str, sku: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(
                "SELECT 1 FROM products WHERE slug = %s OR sku = %s LIMIT 1",
                (slug, sku)
            )
            return cursor.fetchone() is not None
        finally:
            cursor.close()
            conn.close()

    def next_id(self) -> int:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT COALESCE(MAX(id), 0) + 1 AS next_id FROM products")
            return int(cursor.fetchone()['next_id'])
        finally:
            cursor.close()
            conn.close()

    def insert(self, fields: Dict[str, Any]) -> Product:
        data = _product_params(fields)
        columns = list(data.keys())

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO products ({", ".join(columns)})
                VALUES ({", ".join(["%s"] * len(columns))})
                RETURNING *
            """, [data[c] for c in columns])
            row = cursor.fetchone()
            conn.commit()
            return _to_product(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def insert_many(self, rows: List[Dict[str, Any]]) -> int:
        """Insert a chunk of products in one transaction; returns rows inserted"""
        if not rows:
            return 0

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            for fields in rows:
                data = _product_params(fields)
                columns = list(data.keys())
                cursor.execute(f"""
                    INSERT INTO products ({", ".join(columns)})
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

    def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Product]:
        data = _product_params(fields)
        if not data:
            return self.find_by_id(product_id)
        columns = list(data.keys())

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE products SET {", ".join(f"{c} = %s" for c in columns)}
                WHERE id = %s
                RETURNING *
            """, [data[c] for c in columns] + [product_id])
            row = cursor.fetchone()
            conn.commit()
            return _to_product(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update_prices(self, updates: List[Dict[str, Any]]) -> int:
        """
        Apply price changes in one transaction

        Each update: {id, price, old_price, discount}
        """
        if not updates:
            return 0

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            for item in updates:
                cursor.execute("""
                    UPDATE products
                    SET price = %s, old_price = %s, discount = %s, updated_at = NOW()
                    WHERE id = %s
                """, (item['price'], item['old_price'], item['discount'], item['id']))
            conn.commit()
            return len(updates)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete(self, product_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM products WHERE id = %s", (product_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def find_categories(self, active_only: bool = True) -> List[Category]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            where_clause = "is_active = true" if active_only else "1=1"
            cursor.execute(f"""
                SELECT id, name, slug, description, image, is_active, "order", updated_at
                FROM categories
                WHERE {where_clause}
                ORDER BY "order" ASC, name ASC
            """)
            return [Category(**row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def find_category_by_id(self, category_id: int) -> Optional[Category]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, slug, description, image, is_active, "order", updated_at
                FROM categories
                WHERE id = %s
            """, (category_id,))
            row = cursor.fetchone()
            return Category(**row) if row else None
        finally:
            cursor.close()
            conn.close()

    def category_slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if exclude_id is None:
                cursor.execute("SELECT 1 FROM categories WHERE slug = %s LIMIT 1", (slug,))
            else:
                cursor.execute(
                    "SELECT 1 FROM categories WHERE slug = %s AND id <> %s LIMIT 1",
                    (slug, exclude_id)
                )
            return cursor.fetchone() is not None
        finally:
            cursor.close()
            conn.close()

    def next_category_position(self) -> Tuple[int, int]:
        """(next id, next display order); ids are assigned here, not by a sequence"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COALESCE(MAX(id), 0) + 1 AS next_id,
                       COALESCE(MAX("order"), 0) + 1 AS next_order
                FROM categories
            """)
            row = cursor.fetchone()
            return int(row['next_id']), int(row['next_order'])
        finally:
            cursor.close()
            conn.close()

    def count_products_in_category(self, slug: str) -> int:
        """Products whose primary category is `slug`"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT COUNT(*) AS total FROM products WHERE category = %s", (slug,))
            return int(cursor.fetchone()['total'])
        finally:
            cursor.close()
            conn.close()

    def _write_category(self, sql: str, params: list) -> Optional[Category]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(sql, params)
            row = cursor.fetchone()
            conn.commit()
            return Category(**row) if row else None
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def insert_category(self, fields: Dict[str, Any]) -> Category:
        unknown = set(fields) - CATEGORY_COLUMNS
        if unknown:
            raise ValueError(f"Unknown category columns: {', '.join(sorted(unknown))}")
        columns = list(fields.keys())
        return self._write_category(f"""
            INSERT INTO categories ({", ".join(f'"{c}"' for c in columns)})
            VALUES ({", ".join(["%s"] * len(columns))})
            RETURNING id, name, slug, description, image, is_active, "order", updated_at
        """, [fields[c] for c in columns])

    def update_category(self, category_id: int, fields: Dict[str, Any]) -> Optional[Category]:
        unknown = set(fields) - CATEGORY_COLUMNS
        if unknown:
            raise ValueError(f"Unknown category columns: {', '.join(sorted(unknown))}")
        if not fields:
            return self.find_category_by_id(category_id)
        columns = list(fields.keys())
        return self._write_category(f"""
            UPDATE categories SET {", ".join(f'"{c}" = %s' for c in columns)}
            WHERE id = %s
            RETURNING id, name, slug, description, image, is_active, "order", updated_at
        """, [fields[c] for c in columns] + [category_id])

    def delete_category(self, category_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM categories WHERE id = %s", (category_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def find_category_name(self, category: str) -> Optional[str]:
        """Resolve a category slug (or name) to its display name"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(
                "SELECT name FROM categories WHERE slug = %s OR name = %s LIMIT 1",
                (category, category)
            )
            row = cursor.fetchone()
            return row['name'] if row else None
        finally:
            cursor.close()
            conn.close()

    def find_sitemap_page(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        """slug, category, updated_at for one sitemap page"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT slug, category, updated_at
                FROM products
                ORDER BY id ASC
                LIMIT %s OFFSET %s
            """, (limit, offset))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()
