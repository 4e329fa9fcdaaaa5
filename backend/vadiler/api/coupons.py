"""
Coupon API Endpoints

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from vadiler.core.auth import TokenUser, require_admin
from vadiler.services.coupon_service import CouponError, CouponService

logger = logging.getLogger(__name__)

router = APIRouter()


class ValidateCouponRequest(BaseModel):
    code: Optional[str] = None
    orderTotal: Any = None


@router.post("/validate")
async def validate_coupon(body: ValidateCouponRequest):
    """Validate a code against the cart total and count one use"""
    try:
        return CouponService().validate_and_apply(body.code, body.orderTotal)
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Coupon validation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Kupon doğrulanamadı.")


@router.get("/")
async def get_coupons(
    active_only: bool = Query(False, description="Only active coupons"),
    user: TokenUser = Depends(require_admin),
):
    try:
        coupons = CouponService().list_coupons(active_only=active_only)
        return {"status": "success", "count": len(coupons), "data": coupons}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching coupons: {str(e)}")


@router.post("/", status_code=201)
async def create_coupon(data: Dict[str, Any] = Body(...), user: TokenUser = Depends(require_admin)):
    try:
        return CouponService().create_coupon(data)
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Coupon creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create coupon")
