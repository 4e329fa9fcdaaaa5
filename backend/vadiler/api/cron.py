"""
Cron API Endpoints
Scheduled jobs triggered by the external scheduler with the cron secret

Author: Vadiler
Date: 2025-11-07
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from vadiler.core.auth import verify_cron_secret
from vadiler.services.order_automation_service import OrderAutomationService
from vadiler.services.payment_reminder_service import PaymentReminderService
from vadiler.services.payment_verification_service import PaymentVerificationService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/verify-payments")
async def verify_payments():
    """Recover orders whose payment succeeded but whose callback never arrived"""
    try:
        results = await PaymentVerificationService().verify_pending_payments()
        return {"success": True, "timestamp": _timestamp(), "results": results}
    except Exception as e:
        logger.error(f"Payment verification cron failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Payment verification failed: {str(e)}")


@router.get("/payment-reminders")
async def payment_reminders():
    try:
        result = PaymentReminderService().send_payment_reminders()
        return {"success": True, "timestamp": _timestamp(), **result}
    except Exception as e:
        logger.error(f"Payment reminder cron failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Payment reminders failed: {str(e)}")


@router.get("/automation")
async def order_automation():
    """One automation step per order: payment recovery, confirmation, delivery day"""
    try:
        result = await OrderAutomationService().process_automated_updates()
        logger.info(f"Order automation updated {result['updated']} orders")
        return {"success": True, "timestamp": _timestamp(), **result}
    except Exception as e:
        logger.error(f"Order automation cron failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Order automation failed: {str(e)}")
