"""
Review API Endpoints
Product reviews, helpful votes, rating stats and admin moderation

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from vadiler.core.auth import TokenUser, require_admin, require_customer
from vadiler.core.rate_limit import get_client_ip
from vadiler.services.review_service import ReviewError, ReviewService

logger = logging.getLogger(__name__)

router = APIRouter()


class VoteRequest(BaseModel):
    voteType: Optional[str] = None


class ApproveRequest(BaseModel):
    approved: bool = True


class RespondRequest(BaseModel):
    response: Optional[str] = None


@router.get("/")
async def get_reviews(
    product_id: Optional[int] = Query(None, description="Filter by product"),
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    approved: Optional[bool] = Query(True, description="Approval filter; defaults to approved only"),
    verified_only: bool = Query(False),
    has_photos: bool = Query(False),
    sort_by: str = Query("newest", description="newest, oldest, helpful, rating-high or rating-low"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    try:
        reviews, total = ReviewService().list_reviews(
            product_id=product_id,
            customer_id=customer_id,
            rating=rating,
            is_approved=approved,
            verified_only=verified_only,
            has_photos=has_photos,
            sort_by=sort_by,
            limit=limit,
            offset=offset,
        )
        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(reviews),
            "data": [review.to_dict() for review in reviews],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching reviews: {str(e)}")


@router.post("/", status_code=201)
async def create_review(data: Dict[str, Any] = Body(...), session: dict = Depends(require_customer)):
    """Review a product from one of the signed-in customer's orders"""
    try:
        review = ReviewService().create_review({**data, "customerId": session["customerId"]})
        return {"success": True, "review": review.to_dict()}
    except ReviewError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Review creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Değerlendirme kaydedilemedi")


@router.get("/stats/{product_id}")
async def get_review_stats(product_id: int):
    try:
        return ReviewService().get_stats(product_id).model_dump()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error computing review stats: {str(e)}")


@router.post("/{review_id}/vote")
async def vote_review(review_id: str, body: VoteRequest, request: Request):
    try:
        counts = ReviewService().vote(review_id, body.voteType, get_client_ip(request))
        return {"success": True, **counts}
    except ReviewError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Vote on review {review_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Oy kaydedilemedi")


@router.put("/{review_id}/approve")
async def approve_review(review_id: str, body: ApproveRequest, user: TokenUser = Depends(require_admin)):
    try:
        return {"success": True, "review": ReviewService().approve(review_id, body.approved).to_dict()}
    except ReviewError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error approving review: {str(e)}")


@router.put("/{review_id}/respond")
async def respond_review(review_id: str, body: RespondRequest, user: TokenUser = Depends(require_admin)):
    try:
        review = ReviewService().respond(review_id, body.response or "")
        return {"success": True, "review": review.to_dict()}
    except ReviewError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving response: {str(e)}")


@router.delete("/{review_id}")
async def delete_review(review_id: str, user: TokenUser = Depends(require_admin)):
    try:
        ReviewService().delete(review_id)
        return {"success": True}
    except ReviewError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting review: {str(e)}")
