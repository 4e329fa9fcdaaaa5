"""
Analytics API Endpoints
Storefront visitor tracking and the admin dashboard summary

Author: Vadiler
Date: 2025-11-07
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from vadiler.core.auth import TokenUser, require_admin
from vadiler.core.rate_limit import get_client_ip
from vadiler.repositories.analytics_repository import AnalyticsDisabledError
from vadiler.services.analytics_service import AnalyticsInputError, AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter()


def _ingest(action, *args) -> Dict[str, Any]:
    """Tracking calls answer 400 for missing ids and never 500"""
    try:
        return action(*args)
    except AnalyticsInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Analytics ingestion failed: {e}")
        return {"success": False}


@router.post("/session")
async def start_session(request: Request, payload: Dict[str, Any] = Body(...)):
    return _ingest(
        AnalyticsService().start_session,
        payload,
        get_client_ip(request),
        request.headers.get("user-agent", ""),
    )


@router.patch("/session")
async def update_session(payload: Dict[str, Any] = Body(...)):
    return _ingest(AnalyticsService().update_session, payload)


@router.get("/session")
async def list_sessions(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    active: bool = Query(False, description="Only sessions active in the last 30 minutes"),
    user: TokenUser = Depends(require_admin),
):
    return AnalyticsService().list_sessions(limit=limit, offset=offset, active_only=active)


@router.post("/pageview")
async def record_page_view(payload: Dict[str, Any] = Body(...)):
    return _ingest(AnalyticsService().record_page_view, payload)


@router.patch("/pageview")
async def update_page_view(payload: Dict[str, Any] = Body(...)):
    """Time on page and scroll depth when the visitor leaves"""
    return _ingest(AnalyticsService().update_page_view, payload)


@router.post("/event")
async def record_event(payload: Dict[str, Any] = Body(...)):
    return _ingest(AnalyticsService().record_event, payload)


@router.get("/event")
async def list_events(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session_id: Optional[str] = Query(None),
    event_name: Optional[str] = Query(None),
    event_category: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    user: TokenUser = Depends(require_admin),
):
    return AnalyticsService().list_events(
        limit=limit,
        offset=offset,
        session_id=session_id,
        event_name=event_name,
        event_category=event_category,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/stats")
async def get_stats(
    period: str = Query("7d", description="1d, 7d, 30d or 90d"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: TokenUser = Depends(require_admin),
):
    try:
        return AnalyticsService().get_stats(period, start_date, end_date)
    except AnalyticsDisabledError:
        raise HTTPException(status_code=503, detail="Analytics is disabled")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Analytics stats failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error computing analytics: {str(e)}")
