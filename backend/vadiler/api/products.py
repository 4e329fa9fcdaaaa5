"""
Product API Endpoints
Catalog browsing plus admin product and category management

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from vadiler.core.auth import TokenUser, require_admin
from vadiler.services.catalog_service import CatalogError, CatalogService

logger = logging.getLogger(__name__)

router = APIRouter()
categories_router = APIRouter()


class BulkPriceUpdateRequest(BaseModel):
    operation: Optional[str] = None
    percentage: Optional[float] = None
    filters: Optional[Dict[str, Any]] = None
    productIds: Optional[List[int]] = None
    preview: bool = False


@router.get("/")
async def get_products(
    category: Optional[str] = Query(None, description="Category slug or occasion tag"),
    search: Optional[str] = Query(None, description="Search in name and description"),
    in_stock: Optional[bool] = Query(None, description="Filter by stock flag"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: str = Query("id", description="newest, price-asc, price-desc, rating or name"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """
    Get products with filters

    Returns paginated product list.
    """
    try:
        products, total = CatalogService().list_products(
            category=category,
            search=search,
            in_stock=in_stock,
            min_price=min_price,
            max_price=max_price,
            sort=sort,
            limit=limit,
            offset=offset,
        )
        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(products),
            "data": [product.to_dict() for product in products],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.get("/slug/{slug}")
async def get_product_by_slug(slug: str):
    try:
        return {"status": "success", "data": CatalogService().get_product_by_slug(slug).to_dict()}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching product: {str(e)}")


@router.get("/{product_id}")
async def get_product(product_id: int):
    try:
        return {"status": "success", "data": CatalogService().get_product(product_id).to_dict()}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching product: {str(e)}")


@router.post("/", status_code=201)
async def create_product(data: Dict[str, Any] = Body(...), user: TokenUser = Depends(require_admin)):
    try:
        product = CatalogService().create_product(data)
        return {"success": True, "product": product.to_dict()}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Product creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Ürün oluşturulamadı")


@router.put("/{product_id}")
async def update_product(product_id: int, data: Dict[str, Any] = Body(...),
                         user: TokenUser = Depends(require_admin)):
    try:
        product = CatalogService().update_product(product_id, data)
        return {"success": True, "product": product.to_dict()}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Update of product {product_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Ürün güncellenemedi")


@router.delete("/{product_id}")
async def delete_product(product_id: int, user: TokenUser = Depends(require_admin)):
    try:
        CatalogService().delete_product(product_id)
        logger.info(f"Product {product_id} deleted by {user.email}")
        return {"success": True}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Delete of product {product_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Ürün silinemedi")


@router.post("/bulk-price-update")
async def bulk_price_update(body: BulkPriceUpdateRequest, user: TokenUser = Depends(require_admin)):
    """Raise or lower prices by a percentage; preview=true only reports the changes"""
    try:
        result = CatalogService().bulk_price_update(
            body.operation,
            body.percentage,
            filters=body.filters,
            product_ids=body.productIds,
            preview=body.preview,
        )
        logger.info(f"Bulk price update by {user.email}: {result['message']}")
        return result
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Bulk price update failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update prices")


@categories_router.get("/")
async def get_categories():
    """Active categories in display order"""
    try:
        categories = CatalogService().list_categories()
        return {
            "status": "success",
            "count": len(categories),
            "data": [category.model_dump() for category in categories],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching categories: {str(e)}")


@categories_router.post("/", status_code=201)
async def create_category(data: Dict[str, Any] = Body(...), user: TokenUser = Depends(require_admin)):
    try:
        category = CatalogService().create_category(data)
        return {"success": True, "data": category.model_dump(), "message": "Kategori başarıyla oluşturuldu"}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Category creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Kategori oluşturulamadı")


@categories_router.put("/{category_id}")
async def update_category(category_id: int, data: Dict[str, Any] = Body(...),
                          user: TokenUser = Depends(require_admin)):
    try:
        category = CatalogService().update_category(category_id, data)
        return {"success": True, "data": category.model_dump(), "message": "Kategori başarıyla güncellendi"}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Update of category {category_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Kategori güncellenemedi")


@categories_router.delete("/{category_id}")
async def delete_category(category_id: int, user: TokenUser = Depends(require_admin)):
    try:
        CatalogService().delete_category(category_id)
        return {"success": True, "message": "Kategori başarıyla silindi"}
    except CatalogError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Delete of category {category_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Kategori silinemedi")
