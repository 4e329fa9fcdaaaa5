"""
Bulk Import Service
Loads products, customers and coupons exported from the old storefront.

Rows already in the database (same id or natural key) are skipped, the
first occurrence wins for duplicates inside the payload, and inserts run
in fixed-size chunks with a pause between them. A failing chunk is
reported without stopping the import.

Author: Vadiler
Date: 2025-11-06
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from vadiler.core.config import settings
from vadiler.repositories.coupon_repository import CouponRepository
from vadiler.repositories.customer_repository import CustomerRepository
from vadiler.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

PRODUCT_CHUNK_SIZE = 100
CUSTOMER_CHUNK_SIZE = 50
COUPON_CHUNK_SIZE = 100


def chunked(rows: List[Dict[str, Any]], size: int) -> Iterable[List[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def select_new_rows(records: List[Dict[str, Any]], existing_ids: Set[Any], existing_keys: Set[str],
                    natural_key: Callable[[Dict[str, Any]], str]) -> List[Dict[str, Any]]:
    """Drop records already stored, then duplicates within the payload"""
    seen: Set[str] = set()
    fresh = []
    for record in records:
        key = natural_key(record)
        if record.get("id") in existing_ids or key in existing_keys:
            continue
        if key in seen:
            logger.info(f"Skipping duplicate key in import payload: {key}")
            continue
        seen.add(key)
        fresh.append(record)
    return fresh


def product_row(p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": p["id"],
        "name": p["name"],
        "slug": p["slug"],
        "description": p.get("description") or "",
        "long_description": p.get("longDescription") or "",
        "price": p.get("price") or 0,
        "old_price": p.get("oldPrice"),
        "discount": p.get("discount") or 0,
        "image": p.get("image"),
        "hover_image": p.get("hoverImage"),
        "gallery": p.get("gallery") or [],
        "rating": p.get("rating") or 5,
        "review_count": p.get("reviewCount") or 0,
        "category": p.get("category"),
        "category_name": p.get("categoryName") or "",
        "in_stock": p.get("inStock") is not False,
        "stock_count": p.get("stockCount") or 50,
        "sku": p.get("sku") or "",
        "tags": p.get("tags") or [],
    }


def customer_row(c: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": c["id"],
        "email": c["email"].strip().lower(),
        "name": c.get("name") or "",
        "phone": c.get("phone") or "",
        "password": c.get("password") or "",
        "addresses": c.get("addresses") or [],
        "orders": c.get("orders") or [],
        "favorites": c.get("favorites") or [],
        "created_at": c.get("createdAt"),
        "updated_at": c.get("updatedAt"),
        "total_spent": c.get("totalSpent") or 0,
        "order_count": c.get("orderCount") or 0,
        "last_order_date": c.get("lastOrderDate"),
        "is_active": c.get("isActive") is not False,
        "tags": c.get("tags") or [],
        "account_credit": c.get("accountCredit") or 0,
    }


def coupon_row(c: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": c["id"],
        "code": c["code"].strip().upper(),
        "description": c.get("description") or "",
        "type": c.get("type"),
        "value": c.get("value"),
        "min_order_amount": c.get("minOrderAmount") or 0,
        "max_discount_amount": c.get("maxDiscount"),
        "usage_limit": c.get("usageLimit"),
        "used_count": c.get("usedCount") or 0,
        "valid_from": c.get("validFrom") or datetime.now(timezone.utc).isoformat(),
        "valid_until": c.get("validUntil"),
        "is_active": c.get("isActive") is not False,
    }


def map_records(records: List[Dict[str, Any]], to_row: Callable[[Dict[str, Any]], Dict[str, Any]],
                label: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Convert payload records to table rows

    Records missing a required field (or holding the wrong type) are
    returned as error entries instead of rows.
    """
    rows = []
    errors = []
    for record in records:
        try:
            rows.append(to_row(record))
        except (KeyError, TypeError, AttributeError) as e:
            reference = record.get("id") if isinstance(record, dict) else None
            logger.warning(f"Skipping malformed {label} record {reference!r}: {e!r}")
            errors.append({"record": reference, "error": f"Invalid record: {e!r}"})
    return rows, errors


class BulkImportService:

    def __init__(self, product_repo: Optional[ProductRepository] = None,
                 customer_repo: Optional[CustomerRepository] = None,
                 coupon_repo: Optional[CouponRepository] = None,
                 delay_seconds: Optional[float] = None):
        self.product_repo = product_repo or ProductRepository()
        self.customer_repo = customer_repo or CustomerRepository()
        self.coupon_repo = coupon_repo or CouponRepository()
        self.delay_seconds = settings.BULK_IMPORT_DELAY_SECONDS if delay_seconds is None else delay_seconds

    def _insert_chunks(self, label: str, rows: List[Dict[str, Any]], chunk_size: int,
                       insert: Callable[[List[Dict[str, Any]]], int]) -> Dict[str, Any]:
        inserted = 0
        failed = 0
        errors = []
        chunks = list(chunked(rows, chunk_size))

        for number, chunk in enumerate(chunks, start=1):
            try:
                inserted += insert(chunk)
                logger.info(f"{label} batch {number}/{len(chunks)} inserted ({len(chunk)} rows)")
            except Exception as e:
                logger.error(f"{label} batch {number}/{len(chunks)} failed: {e}")
                failed += len(chunk)
                errors.append({"batch": number, "error": str(e)})

            if number < len(chunks) and self.delay_seconds > 0:
                time.sleep(self.delay_seconds)

        return {"inserted": inserted, "failed": failed, "errors": errors}

    def _run(self, label: str, records: List[Dict[str, Any]], existing_ids: Set[Any],
             existing_keys: Set[str], natural_key: Callable[[Dict[str, Any]], str],
             to_row: Callable[[Dict[str, Any]], Dict[str, Any]], chunk_size: int,
             insert: Callable[[List[Dict[str, Any]]], int]) -> Dict[str, Any]:
        fresh = select_new_rows(records, existing_ids, existing_keys, natural_key)
        logger.info(f"{label} import: {len(fresh)} new of {len(records)} ({len(existing_ids)} existing)")

        if not fresh:
            return {
                "success": True,
                "message": f"All {label} already exist in database",
                "stats": {"total": len(records), "existing": len(existing_ids), "inserted": 0, "failed": 0},
            }

        rows, invalid = map_records(fresh, to_row, label)
        outcome = self._insert_chunks(label, rows, chunk_size, insert)
        outcome["failed"] += len(invalid)
        outcome["errors"] = invalid + outcome["errors"]
        result = {
            "success": True,
            "message": (f"Bulk import completed: {outcome['inserted']} {label} inserted, "
                        f"{outcome['failed']} failed"),
            "stats": {
                "total": len(records),
                "existing": len(existing_ids),
                "inserted": outcome["inserted"],
                "failed": outcome["failed"],
            },
        }
        if outcome["errors"]:
            result["errors"] = outcome["errors"]
        return result

    def import_products(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        ids, slugs = self.product_repo.find_existing_keys()
        return self._run("products", records, ids, slugs, lambda p: p.get("slug"),
                         product_row, PRODUCT_CHUNK_SIZE, self.product_repo.insert_many)

    def import_customers(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        ids, emails = self.customer_repo.find_existing_keys()
        return self._run("customers", records, ids, emails,
                         lambda c: str(c.get("email") or "").strip().lower(),
                         customer_row, CUSTOMER_CHUNK_SIZE, self.customer_repo.insert_many)

    def import_coupons(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        ids, codes = self.coupon_repo.find_existing_keys()
        return self._run("coupons", records, ids, codes,
                         lambda c: str(c.get("code") or "").strip().upper(),
                         coupon_row, COUPON_CHUNK_SIZE, self.coupon_repo.insert_many)
