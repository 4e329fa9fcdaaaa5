"""
Customer API Endpoints
The signed-in customer's profile, password and order history, plus the
admin customer list, edits, removal and account credit

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from vadiler.core.auth import TokenUser, require_admin, require_customer
from vadiler.services.customer_admin_service import CustomerAdminError, CustomerAdminService
from vadiler.services.customer_auth_service import AuthError, CustomerAuthService

logger = logging.getLogger(__name__)

router = APIRouter()


class PasswordChangeRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


class CreditRequest(BaseModel):
    customerId: Optional[str] = None
    amount: Any = None
    reason: Optional[str] = None


@router.get("/me")
async def get_profile(session: dict = Depends(require_customer)):
    try:
        customer = CustomerAuthService().get_customer(session["customerId"])
        return {"customer": customer.to_public_dict()}
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/me")
async def update_profile(changes: Dict[str, Any] = Body(...), session: dict = Depends(require_customer)):
    """Name, phone, email, addresses and favorites; other keys are ignored"""
    try:
        customer = CustomerAuthService().update_profile(session["customerId"], changes)
        return {"success": True, "customer": customer.to_public_dict()}
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Profile update failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Profil güncellenemedi.")


@router.post("/me/password")
async def change_password(body: PasswordChangeRequest, session: dict = Depends(require_customer)):
    try:
        CustomerAuthService().change_password(session["customerId"], body.currentPassword or "",
                                              body.newPassword or "")
        return {"success": True}
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Password change failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Şifre değiştirilemedi.")


@router.get("/me/orders")
async def get_my_orders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: dict = Depends(require_customer),
):
    try:
        orders = CustomerAuthService().order_history(session["customerId"], limit=limit, offset=offset)
        return {
            "status": "success",
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "data": [order.to_dict() for order in orders],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


# =============================================================================
# Admin
# =============================================================================

@router.get("/")
async def list_customers(
    search: Optional[str] = Query(None, description="Name, email or phone"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(require_admin),
):
    try:
        customers, total = CustomerAdminService().list_customers(search=search, limit=limit, offset=offset)
        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(customers),
            "data": [customer.to_public_dict() for customer in customers],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching customers: {str(e)}")


@router.post("/credit")
async def add_customer_credit(body: CreditRequest, user: TokenUser = Depends(require_admin)):
    try:
        customer = CustomerAdminService().add_credit(body.customerId, body.amount, body.reason)
        return {
            "success": True,
            "message": f"{body.amount}₺ kredi başarıyla eklendi",
            "customer": customer.to_public_dict(),
        }
    except CustomerAdminError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Adding credit failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Kredi eklenemedi")


@router.get("/{customer_id}")
async def get_customer(customer_id: str, user: TokenUser = Depends(require_admin)):
    try:
        return {"customer": CustomerAdminService().get_customer(customer_id).to_public_dict()}
    except CustomerAdminError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to read customer: {str(e)}")


@router.put("/{customer_id}")
async def update_customer(customer_id: str, changes: Dict[str, Any] = Body(...),
                          user: TokenUser = Depends(require_admin)):
    try:
        customer = CustomerAdminService().update_customer(customer_id, changes)
        return {"success": True, "customer": customer.to_public_dict()}
    except CustomerAdminError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Admin update of customer {customer_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update customer")


@router.delete("/{customer_id}")
async def delete_customer(customer_id: str, user: TokenUser = Depends(require_admin)):
    try:
        CustomerAdminService().delete_customer(customer_id)
        logger.info(f"Customer {customer_id} deleted by {user.email}")
        return {"success": True}
    except CustomerAdminError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Delete of customer {customer_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete customer")
