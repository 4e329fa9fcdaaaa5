"""
Orders API Endpoints
Checkout order creation, admin order management and public tracking

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from vadiler.core.auth import TokenUser, require_admin
from vadiler.domain.order_status import InvalidTransitionError, PaymentDowngradeError
from vadiler.repositories.order_repository import StaleOrderError
from vadiler.services.checkout_service import CheckoutValidationError
from vadiler.services.order_service import OrderNotFoundError, OrderService, TrackingError
from vadiler.services.payment_service import PaymentError, PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


# Request models
class TrackRequest(BaseModel):
    orderNumber: Any = None
    verificationType: Optional[str] = None
    verificationValue: Optional[str] = None


class OrderIdRequest(BaseModel):
    orderId: Optional[str] = None
    note: Optional[str] = None


class RefundRequest(BaseModel):
    orderId: Optional[str] = None
    amount: Optional[float] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


@router.post("/", status_code=201)
async def create_order(request: Request, payload: Dict[str, Any] = Body(...)):
    """
    Create an order from the checkout

    Line prices and totals are recomputed from the catalog; client totals
    are ignored.
    """
    try:
        order = OrderService().create_order(payload, request.headers)
        return order.to_dict()
    except CheckoutValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Order creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create order")


@router.get("/")
async def get_orders(
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    status: Optional[str] = Query(None, description="Filter by order status"),
    search: Optional[str] = Query(None, description="Search by name, email or order number"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(require_admin),
):
    """Admin order list, newest first"""
    try:
        orders, total = OrderService().list_orders(
            customer_id=customer_id, status=status, search=search, limit=limit, offset=offset
        )
        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "data": [order.to_dict() for order in orders],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.post("/track")
async def track_order(body: TrackRequest):
    """Public tracking by order number plus the email or phone on the order"""
    try:
        return OrderService().track_order(body.orderNumber, body.verificationType, body.verificationValue)
    except TrackingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Order tracking failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Sipariş sorgulanırken bir hata oluştu.")


@router.get("/deleted")
async def get_deleted_orders(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(require_admin),
):
    try:
        backups = OrderService().list_deleted(limit=limit, offset=offset)
        return {"status": "success", "count": len(backups), "data": backups}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching deleted orders: {str(e)}")


@router.post("/deleted/{backup_id}/restore", status_code=201)
async def restore_order(backup_id: str, user: TokenUser = Depends(require_admin)):
    try:
        order = OrderService().restore_order(backup_id)
        logger.info(f"Order {order.order_number} restored by {user.email}")
        return {"success": True, "order": order.to_dict()}
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Yedek bulunamadı")
    except Exception as e:
        logger.error(f"Restore of backup {backup_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to restore order")


@router.post("/manual-confirm-payment")
async def manual_confirm_payment(body: OrderIdRequest, user: TokenUser = Depends(require_admin)):
    try:
        return PaymentService().manual_confirm_payment(body.orderId, body.note)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except (InvalidTransitionError, StaleOrderError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Manual payment confirmation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Ödeme onaylanamadı")


@router.post("/confirm-bank-payment")
async def confirm_bank_payment(body: OrderIdRequest, user: TokenUser = Depends(require_admin)):
    try:
        return PaymentService().confirm_bank_payment(body.orderId)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except (InvalidTransitionError, StaleOrderError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Bank payment confirmation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to confirm payment")


@router.post("/refund")
async def refund_order(body: RefundRequest, user: TokenUser = Depends(require_admin)):
    try:
        order = PaymentService().refund_order(body.orderId, body.amount, body.reason, body.notes)
        return {"success": True, "order": order.to_dict()}
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except (InvalidTransitionError, StaleOrderError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Refund failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="İade işlemi başarısız")


@router.get("/{order_id}")
async def get_order(order_id: str, user: TokenUser = Depends(require_admin)):
    try:
        return OrderService().get_order(order_id).to_dict()
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Sipariş bulunamadı.")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to read order: {str(e)}")


@router.put("/{order_id}")
async def update_order(order_id: str, changes: Dict[str, Any] = Body(...),
                       user: TokenUser = Depends(require_admin)):
    """
    Admin update

    A status change goes through the order state machine; invalid moves
    answer 409.
    """
    try:
        return OrderService().update_order(order_id, changes).to_dict()
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except (InvalidTransitionError, PaymentDowngradeError, StaleOrderError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Update of order {order_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update order")


@router.delete("/{order_id}")
async def delete_order(order_id: str, user: TokenUser = Depends(require_admin)):
    try:
        result = OrderService().delete_order(order_id)
        return {"success": True, "backedUp": result["backed_up"]}
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except Exception as e:
        logger.error(f"Delete of order {order_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete order")
