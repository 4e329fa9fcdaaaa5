"""
Admin API Endpoints
Bulk imports, order counter, sales report, delivery calendar and SMTP check

Author: Vadiler
Date: 2025-11-07
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from vadiler.core.auth import TokenUser, require_admin
from vadiler.repositories.delivery_calendar_repository import DeliveryCalendarRepository
from vadiler.services.bulk_import_service import BulkImportService
from vadiler.services.email_service import get_email_service
from vadiler.services.order_number_service import DEFAULT_START, OrderNumberService
from vadiler.services.sales_report_service import SalesReportService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class CounterResetRequest(BaseModel):
    start: int = DEFAULT_START


class OffDayRequest(BaseModel):
    offDate: date
    note: str = ""


class TestEmailRequest(BaseModel):
    to: str


def _records(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    records = payload.get(key)
    if not isinstance(records, list):
        raise HTTPException(status_code=400, detail=f"Invalid {key} data")
    return records


# =============================================================================
# Bulk imports
# =============================================================================

@router.post("/bulk-import-products")
def bulk_import_products(payload: Dict[str, Any] = Body(...)):
    records = _records(payload, "products")
    try:
        return BulkImportService().import_products(records)
    except Exception as e:
        logger.error(f"Product import failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Bulk import failed: {str(e)}")


@router.post("/bulk-import-customers")
def bulk_import_customers(payload: Dict[str, Any] = Body(...)):
    records = _records(payload, "customers")
    try:
        return BulkImportService().import_customers(records)
    except Exception as e:
        logger.error(f"Customer import failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Bulk import failed: {str(e)}")


@router.post("/bulk-import-coupons")
def bulk_import_coupons(payload: Dict[str, Any] = Body(...)):
    records = _records(payload, "coupons")
    try:
        return BulkImportService().import_coupons(records)
    except Exception as e:
        logger.error(f"Coupon import failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Bulk import failed: {str(e)}")


# =============================================================================
# Order counter
# =============================================================================

@router.get("/order-counter")
async def get_order_counter():
    try:
        return {"success": True, "data": OrderNumberService().get_counter_info()}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reading order counter: {str(e)}")


@router.post("/order-counter/reset")
async def reset_order_counter(body: CounterResetRequest):
    try:
        info = OrderNumberService().reset_counter(body.start)
        logger.warning(f"Order counter reset to {body.start}")
        return {"success": True, "data": info}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error resetting order counter: {str(e)}")


# =============================================================================
# Sales report
# =============================================================================

@router.get("/sales-report")
async def get_sales_report(
    start: Optional[str] = Query(None, description="Start date (ISO)"),
    end: Optional[str] = Query(None, description="End date (ISO)"),
):
    """Paid orders aggregated per product and per district"""
    try:
        return {"success": True, **SalesReportService().build_report(start, end)}
    except Exception as e:
        logger.error(f"Sales report failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error building sales report: {str(e)}")


@router.get("/sales-report/export")
async def export_sales_report(
    start: Optional[str] = Query(None, description="Start date (ISO)"),
    end: Optional[str] = Query(None, description="End date (ISO)"),
):
    try:
        excel_file = SalesReportService().export_workbook(start, end)
        filename = f"satis_raporu_{date.today().isoformat()}.xlsx"
        return StreamingResponse(
            excel_file,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as e:
        logger.error(f"Sales report export failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error exporting sales report: {str(e)}")


# =============================================================================
# Delivery calendar
# =============================================================================

@router.get("/delivery-off-days")
async def get_delivery_off_days(include_inactive: bool = Query(False)):
    try:
        days = DeliveryCalendarRepository().find_all(include_inactive=include_inactive)
        return {"status": "success", "count": len(days), "data": days}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching off days: {str(e)}")


@router.post("/delivery-off-days", status_code=201)
async def create_delivery_off_day(body: OffDayRequest):
    try:
        return {"success": True, "data": DeliveryCalendarRepository().create(body.offDate, body.note)}
    except Exception as e:
        logger.error(f"Creating off day {body.offDate} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating off day: {str(e)}")


@router.delete("/delivery-off-days/{off_day_id}")
async def deactivate_delivery_off_day(off_day_id: int):
    try:
        if not DeliveryCalendarRepository().deactivate(off_day_id):
            raise HTTPException(status_code=404, detail="Off day not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error removing off day: {str(e)}")


@router.post("/delivery-off-days/cleanup")
async def cleanup_delivery_off_days():
    try:
        return {"success": True, "removed": DeliveryCalendarRepository().delete_before(date.today())}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error cleaning off days: {str(e)}")


# =============================================================================
# Email
# =============================================================================

@router.post("/test-email")
async def send_test_email(body: TestEmailRequest):
    """Send a test message to check the SMTP settings"""
    result = get_email_service().send_test_email(body.to)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.to_dict())
    return result.to_dict()
