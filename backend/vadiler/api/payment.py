"""
Payment API Endpoints
iyzico checkout form initialization, gateway callbacks, completion and webhooks

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, BackgroundTasks, Body, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from vadiler.core.auth import get_customer_session
from vadiler.core.config import settings
from vadiler.services.payment_helpers import validate_3ds_status
from vadiler.services.payment_service import PaymentError, PaymentService, verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter()

# errorCode -> HTTP status for the completion endpoint; anything else is 400
COMPLETION_ERROR_STATUS = {
    "ORDER_NOT_FOUND": 404,
    "UPDATE_FAILED": 500,
    "UNEXPECTED_ERROR": 500,
}


class InitializeRequest(BaseModel):
    orderId: Optional[str] = None
    total: Optional[float] = None


class CompleteRequest(BaseModel):
    token: Optional[str] = None
    paymentId: Optional[str] = None
    conversationId: Optional[str] = None


def _app_redirect(path: str, params: Dict[str, Any]) -> RedirectResponse:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return RedirectResponse(url=f"{settings.APP_URL.rstrip('/')}{path}?{query}", status_code=303)


def _callback_redirect(params: Dict[str, Any]) -> RedirectResponse:
    """Forward the gateway callback to the storefront completion page"""
    try:
        token = params.get("token")
        conversation_id = params.get("conversationId")
        if token:
            return _app_redirect("/payment/complete", {"token": token, "conversationId": conversation_id})

        payment_id = params.get("paymentId")
        md_status = params.get("mdStatus")
        if not payment_id or not conversation_id or md_status is None:
            logger.error(f"Payment callback missing parameters: {sorted(params.keys())}")
            return _app_redirect("/payment/failure", {"error": "Missing callback parameters"})

        check = validate_3ds_status(str(md_status))
        if not check["is_valid"]:
            logger.warning(f"3DS rejected for order {conversation_id}: mdStatus={md_status}")
            return _app_redirect("/payment/failure", {"error": check["message"],
                                                      "conversationId": conversation_id})

        return _app_redirect("/payment/complete", {
            "paymentId": payment_id,
            "conversationId": conversation_id,
            "mdStatus": md_status,
        })
    except Exception as e:
        logger.error(f"Payment callback failed: {e}", exc_info=True)
        return _app_redirect("/payment/failure", {"error": "Callback processing failed"})


async def _complete(token: Optional[str], payment_id: Optional[str], conversation_id: Optional[str],
                    background_tasks: BackgroundTasks):
    service = PaymentService()
    try:
        if token:
            result = await service.complete_payment_server_side(token, conversation_id, send_email=False)
        elif payment_id and conversation_id:
            result = await service.complete_threeds_payment(payment_id, conversation_id, send_email=False)
        else:
            raise HTTPException(status_code=400, detail="token or paymentId and conversationId required")
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Payment completion failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Beklenmeyen bir hata oluştu.")

    if not result.get("success"):
        status_code = COMPLETION_ERROR_STATUS.get(result.get("errorCode"), 400)
        return JSONResponse(status_code=status_code, content=result)

    if not result.get("alreadyCompleted") and result.get("orderId"):
        background_tasks.add_task(service.lifecycle.send_confirmation, result["orderId"])
    return result


@router.post("/initialize")
async def initialize_payment(request: Request, body: InitializeRequest):
    """
    Start the hosted checkout form for a stored order

    Returns the base64 encoded form content and the gateway token.
    """
    try:
        return await PaymentService().initialize_payment(
            body.orderId,
            headers=request.headers,
            customer=get_customer_session(request),
            client_total=body.total,
        )
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Payment initialization failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Ödeme başlatılamadı. Lütfen tekrar deneyin.")


@router.post("/callback")
async def payment_callback_post(request: Request):
    form = await request.form()
    return _callback_redirect(dict(form))


@router.get("/callback")
async def payment_callback_get(request: Request):
    return _callback_redirect(dict(request.query_params))


@router.post("/complete")
async def complete_payment(body: CompleteRequest, background_tasks: BackgroundTasks):
    """
    Verify the payment with iyzico and settle the order

    Idempotent: a second call for a paid order answers alreadyCompleted and
    sends no second email.
    """
    return await _complete(body.token, body.paymentId, body.conversationId, background_tasks)


@router.get("/complete")
async def complete_payment_get(request: Request, background_tasks: BackgroundTasks):
    params = request.query_params
    return await _complete(params.get("token"), params.get("paymentId"),
                           params.get("conversationId"), background_tasks)


@router.post("/webhook")
async def payment_webhook(request: Request, payload: Dict[str, Any] = Body(...)):
    """
    iyzico webhook

    Signature failures answer 401. Processing errors still answer 200 so the
    gateway stops retrying; the stuck-payment cron recovers those orders.
    """
    if not verify_webhook_signature(payload, request.headers.get("x-iyz-signature-v3")):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        result = PaymentService().handle_webhook_event(payload)
        return {"received": True, **result}
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return {"received": True, "success": False}
