"""
Delivery Calendar API
Public list of days the shop does not deliver, read by the checkout date picker

Author: Vadiler
Date: 2025-11-07
"""
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query

from vadiler.repositories.delivery_calendar_repository import DeliveryCalendarRepository
from vadiler.services.delivery_schedule import istanbul_today

router = APIRouter()


def format_off_day(row: Dict[str, Any]) -> Dict[str, Any]:
    off_date = row.get("off_date")
    return {
        "id": row.get("id"),
        "offDate": off_date.isoformat() if off_date is not None else None,
        "note": row.get("note") or "",
        "isActive": row.get("is_active"),
    }


@router.get("/")
async def get_delivery_off_days(include_past: bool = Query(False, alias="includePast")):
    """Active off days from today (Istanbul) onwards, earliest first"""
    try:
        from_date = None if include_past else istanbul_today()
        days = DeliveryCalendarRepository().find_all(from_date=from_date)
        return {"offDays": [format_off_day(day) for day in days], "total": len(days)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Off günler alınamadı: {str(e)}")
