"""
Catalog Service
Product creation and bulk price adjustments for the admin panel

Author: Vadiler
Date: 2025-11-06
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from vadiler.domain.product import Category, Product
from vadiler.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

# Every product is also listed under the birthday gifts category
SECONDARY_CATEGORY_SLUG = "dogum-gunu-hediyeleri"

UNIQUE_SLUG_ATTEMPTS = 20
PRICE_BATCH_SIZE = 100
PRICE_OPERATIONS = ("increase", "decrease")

# Admin form keys (camelCase or snake_case) to product columns
PRODUCT_FIELD_ALIASES = {
    "name": "name", "slug": "slug", "sku": "sku", "description": "description",
    "longDescription": "long_description", "long_description": "long_description",
    "price": "price", "oldPrice": "old_price", "old_price": "old_price", "discount": "discount",
    "image": "image", "hoverImage": "hover_image", "hover_image": "hover_image", "gallery": "gallery",
    "category": "category", "categoryName": "category_name", "category_name": "category_name",
    "occasionTags": "occasion_tags", "occasion_tags": "occasion_tags", "tags": "tags",
    "inStock": "in_stock", "in_stock": "in_stock", "stockCount": "stock_count", "stock_count": "stock_count",
}

_TR_ASCII = str.maketrans({"ğ": "g", "ü": "u", "ş": "s", "ı": "i", "ö": "o", "ç": "c"})


class CatalogError(Exception):
    """Catalog request rejected; carries the HTTP status"""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def slugify(name: str, fallback: str = "urun") -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower().translate(_TR_ASCII)).strip("-")
    return slug or fallback


def normalize_sku(value: str) -> str:
    sku = re.sub(r"[^A-Z0-9-]+", "-", value.strip().upper())
    return re.sub(r"-+", "-", sku).strip("-")[:64]


def adjust_price(price: float, operation: str, percentage: float) -> int:
    multiplier = 1 + percentage / 100 if operation == "increase" else 1 - percentage / 100
    return round(float(price) * multiplier)


def discount_percent(price: float, old_price: float) -> int:
    if old_price > price:
        return round((1 - price / old_price) * 100)
    return 0


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present value among camelCase/snake_case aliases"""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _number(value: Any, default: float = 0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class CatalogService:

    def __init__(self, product_repo: Optional[ProductRepository] = None):
        self.product_repo = product_repo or ProductRepository()

    def list_products(self, **filters) -> Tuple[List[Product], int]:
        return self.product_repo.find_all(**filters)

    def get_product(self, product_id: int) -> Product:
        product = self.product_repo.find_by_id(product_id)
        if product is None:
            raise CatalogError("Ürün bulunamadı", status_code=404)
        return product

    def get_product_by_slug(self, slug: str) -> Product:
        product = self.product_repo.find_by_slug(slug)
        if product is None:
            raise CatalogError("Ürün bulunamadı", status_code=404)
        return product

    def update_product(self, product_id: int, data: Dict[str, Any]) -> Product:
        """
        Apply an admin edit

        Unknown keys are ignored. When price or old price changes without an
        explicit discount, the discount is recomputed from the pair.

        Raises:
            CatalogError: 404 unknown product, 400 empty name or negative price,
                409 slug taken by another product
        """
        current = self.get_product(product_id)

        fields: Dict[str, Any] = {}
        for key, value in data.items():
            column = PRODUCT_FIELD_ALIASES.get(key)
            if column is not None:
                fields[column] = value

        if "name" in fields:
            fields["name"] = str(fields["name"] or "").strip()
            if not fields["name"]:
                raise CatalogError("Ürün adı zorunludur")
        for column in ("price", "old_price"):
            if column in fields and fields[column] is not None:
                fields[column] = _number(fields[column], -1)
                if fields[column] < 0:
                    raise CatalogError("Fiyat negatif olamaz")
        if "sku" in fields and fields["sku"]:
            fields["sku"] = normalize_sku(str(fields["sku"]))
        if fields.get("slug") and fields["slug"] != current.slug:
            existing = self.product_repo.find_by_slug(fields["slug"])
            if existing is not None and existing.id != product_id:
                raise CatalogError("Bu slug başka bir ürüne ait", status_code=409)

        if ("price" in fields or "old_price" in fields) and "discount" not in fields:
            price = fields["price"] if fields.get("price") is not None else current.price
            old_price = fields.get("old_price", current.old_price) or price
            fields["discount"] = discount_percent(float(price), float(old_price))

        fields["updated_at"] = datetime.now(timezone.utc)
        product = self.product_repo.update(product_id, fields)
        if product is None:
            raise CatalogError("Ürün bulunamadı", status_code=404)
        logger.info(f"Product {product_id} updated: {sorted(set(fields) - {'updated_at'})}")
        return product

    def delete_product(self, product_id: int) -> None:
        if not self.product_repo.delete(product_id):
            raise CatalogError("Ürün bulunamadı", status_code=404)
        logger.info(f"Product {product_id} deleted")

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def list_categories(self) -> List[Category]:
        return self.product_repo.find_categories(active_only=True)

    def _unique_category_slug(self, base_slug: str, exclude_id: Optional[int] = None) -> str:
        for attempt in range(UNIQUE_SLUG_ATTEMPTS):
            slug = base_slug if attempt == 0 else f"{base_slug}-{attempt + 1}"
            if not self.product_repo.category_slug_exists(slug, exclude_id=exclude_id):
                return slug
        raise CatalogError("Benzersiz kategori slug'ı üretilemedi", status_code=409)

    def create_category(self, data: Dict[str, Any]) -> Category:
        """
        Raises:
            CatalogError: 400 missing name
        """
        name = str(data.get("name") or "").strip()
        if not name:
            raise CatalogError("İsim zorunludur")

        base_slug = str(data.get("slug") or "").strip() or slugify(name, fallback="kategori")
        slug = self._unique_category_slug(base_slug)
        next_id, next_order = self.product_repo.next_category_position()
        order = data.get("order")

        category = self.product_repo.insert_category({
            "id": next_id,
            "name": name,
            "slug": slug,
            "description": str(data.get("description") or ""),
            "image": str(data.get("image") or ""),
            "order": order if isinstance(order, int) and not isinstance(order, bool) else next_order,
            "is_active": bool(_pick(data, "isActive", "is_active", default=True)),
        })
        logger.info(f"Category {category.id} created: {category.slug}")
        return category

    def update_category(self, category_id: int, data: Dict[str, Any]) -> Category:
        """
        A new slug is made unique; a rename without a slug regenerates it.

        Raises:
            CatalogError: 404 unknown category, 400 empty name
        """
        current = self.product_repo.find_category_by_id(category_id)
        if current is None:
            raise CatalogError("Kategori bulunamadı", status_code=404)

        fields: Dict[str, Any] = {}
        if "name" in data:
            fields["name"] = str(data["name"] or "").strip()
            if not fields["name"]:
                raise CatalogError("İsim zorunludur")
        for key in ("description", "image"):
            if isinstance(data.get(key), str):
                fields[key] = data[key]
        if isinstance(data.get("order"), int) and not isinstance(data["order"], bool):
            fields["order"] = data["order"]
        active = _pick(data, "isActive", "is_active")
        if isinstance(active, bool):
            fields["is_active"] = active

        desired = str(data.get("slug") or "").strip()
        if desired and desired != current.slug:
            fields["slug"] = self._unique_category_slug(desired, exclude_id=category_id)
        elif not desired and fields.get("name") and fields["name"] != current.name:
            fields["slug"] = self._unique_category_slug(slugify(fields["name"], fallback="kategori"),
                                                        exclude_id=category_id)

        fields["updated_at"] = datetime.now(timezone.utc)
        category = self.product_repo.update_category(category_id, fields)
        if category is None:
            raise CatalogError("Kategori bulunamadı", status_code=404)
        return category

    def delete_category(self, category_id: int) -> None:
        """
        Raises:
            CatalogError: 404 unknown category, 400 products still use it
        """
        category = self.product_repo.find_category_by_id(category_id)
        if category is None:
            raise CatalogError("Kategori bulunamadı", status_code=404)

        product_count = self.product_repo.count_products_in_category(category.slug)
        if product_count > 0:
            raise CatalogError(
                f"Bu kategoride {product_count} ürün var. Önce ürünleri başka kategoriye taşıyın."
            )

        self.product_repo.delete_category(category_id)
        logger.info(f"Category {category_id} deleted: {category.slug}")

    def _unique_slug_and_sku(self, base_slug: str, base_sku: str) -> Tuple[str, str]:
        for attempt in range(UNIQUE_SLUG_ATTEMPTS):
            suffix = "" if attempt == 0 else f"-{attempt + 1}"
            slug, sku = f"{base_slug}{suffix}", f"{base_sku}{suffix}"
            if not self.product_repo.slug_or_sku_exists(slug, sku):
                return slug, sku
        raise CatalogError("Benzersiz slug/SKU üretilemedi", status_code=409)

    def create_product(self, data: Dict[str, Any]) -> Product:
        """
        Create a product from an admin form

        Slug and SKU are derived from the name when missing and made unique
        with a numeric suffix.

        Raises:
            CatalogError: 400 missing name, category or image
        """
        name = str(data.get("name") or "").strip()
        if not name:
            raise CatalogError("Ürün adı zorunludur")
        category = str(data.get("category") or "").strip()
        if not category:
            raise CatalogError("Kategori zorunludur")
        image = str(data.get("image") or "").strip()
        if not image:
            raise CatalogError("Ana görsel (image) zorunludur")

        base_slug = str(data.get("slug") or "").strip() or slugify(name)
        base_sku = normalize_sku(data["sku"]) if data.get("sku") else normalize_sku(f"SKU-{base_slug}")
        slug, sku = self._unique_slug_and_sku(base_slug, base_sku)

        category_name = (
            _pick(data, "categoryName", "category_name")
            or self.product_repo.find_category_name(category)
            or category
        )

        occasion_tags = [category]
        secondary = _pick(data, "secondaryCategory", "secondary_category")
        if secondary:
            occasion_tags.append(secondary)
        occasion_tags.extend(t for t in _pick(data, "occasionTags", "occasion_tags", default=[]) if t)
        occasion_tags.append(SECONDARY_CATEGORY_SLUG)

        price = _number(data.get("price"))
        product = self.product_repo.insert({
            "id": self.product_repo.next_id(),
            "name": name,
            "slug": slug,
            "sku": sku,
            "description": data.get("description") or "",
            "long_description": _pick(data, "longDescription", "long_description", default=""),
            "price": price,
            "old_price": _number(_pick(data, "oldPrice", "old_price"), price),
            "discount": int(_number(data.get("discount"))),
            "image": image,
            "hover_image": _pick(data, "hoverImage", "hover_image", default=""),
            "gallery": list(data.get("gallery") or []),
            "category": category,
            "category_name": category_name,
            "occasion_tags": list(dict.fromkeys(occasion_tags)),
            "tags": list(data.get("tags") or []),
            "in_stock": bool(_pick(data, "inStock", "in_stock", default=True)),
            "stock_count": int(_number(_pick(data, "stockCount", "stock_count"))),
        })
        logger.info(f"Product {product.id} created: {product.slug}")
        return product

    def bulk_price_update(self, operation: str, percentage: float,
                          filters: Optional[Dict[str, Any]] = None,
                          product_ids: Optional[List[int]] = None,
                          preview: bool = False) -> Dict[str, Any]:
        """
        Raise or lower prices by a percentage

        Explicit product_ids win over filters. Both price and old_price move
        by the same factor, rounded to whole lira, and the discount is
        recomputed from the pair.

        Raises:
            CatalogError: 400 bad operation or percentage outside (0, 100]
        """
        if operation not in PRICE_OPERATIONS:
            raise CatalogError('Invalid operation. Must be "increase" or "decrease"')
        if not percentage or percentage <= 0 or percentage > 100:
            raise CatalogError("Invalid percentage. Must be between 0 and 100")

        filters = filters or {}
        price_range = filters.get("priceRange") or {}
        if product_ids:
            products, _ = self.product_repo.find_all(product_ids=product_ids, limit=None)
        else:
            products, _ = self.product_repo.find_all(
                category=filters.get("category"),
                in_stock=filters.get("inStock"),
                min_price=price_range.get("min"),
                max_price=price_range.get("max"),
                limit=None,
            )

        if not products:
            return {
                "success": True,
                "message": "No products match the specified filters",
                "stats": {"totalProcessed": 0, "successCount": 0, "failedCount": 0, "skippedCount": 0},
            }

        updates = []
        for product in products:
            new_price = adjust_price(product.price, operation, percentage)
            new_old_price = adjust_price(product.old_price or product.price, operation, percentage)
            updates.append({
                "id": product.id,
                "name": product.name,
                "currentPrice": float(product.price),
                "currentOldPrice": float(product.old_price) if product.old_price is not None else None,
                "newPrice": new_price,
                "newOldPrice": new_old_price,
                "newDiscount": discount_percent(new_price, new_old_price),
            })

        if preview:
            return {
                "success": True,
                "message": f"Preview: {len(updates)} products will be updated",
                "stats": {"totalProcessed": len(updates), "successCount": 0, "failedCount": 0, "skippedCount": 0},
                "preview": updates,
            }

        success_count = 0
        errors = []
        for start in range(0, len(updates), PRICE_BATCH_SIZE):
            batch = updates[start:start + PRICE_BATCH_SIZE]
            try:
                success_count += self.product_repo.update_prices([
                    {"id": u["id"], "price": u["newPrice"], "old_price": u["newOldPrice"],
                     "discount": u["newDiscount"]}
                    for u in batch
                ])
            except Exception as e:
                logger.error(f"Price batch starting at {start} failed: {e}")
                errors.extend(
                    {"productId": u["id"], "productName": u["name"], "error": str(e)} for u in batch
                )

        failed_count = len(errors)
        logger.info(f"Bulk price {operation} {percentage}%: {success_count} updated, {failed_count} failed")

        result = {
            "success": failed_count == 0,
            "message": (
                f"Successfully updated {success_count} products" if failed_count == 0
                else f"Updated {success_count} products, {failed_count} failed"
            ),
            "stats": {
                "totalProcessed": len(updates),
                "successCount": success_count,
                "failedCount": failed_count,
                "skippedCount": 0,
            },
        }
        if errors:
            result["errors"] = errors
        return result
