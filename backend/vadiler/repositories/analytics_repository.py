"""
Analytics Repository - visitor tracking tables in the analytics Supabase project

Tables: visitor_sessions, page_views, visitor_events. Accessed through the
supabase client instead of psycopg2 because the analytics store is a
separate project reached over its REST API.

Author: Vadiler
Date: 2025-11-02
"""
import logging
from typing import List, Optional, Dict, Any, Tuple

from supabase import Client

from vadiler.core.database import get_analytics_client

logger = logging.getLogger(__name__)


class AnalyticsDisabledError(Exception):
    """Analytics store is switched off or not configured"""


class AnalyticsRepository:

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_analytics_client()
        if self._client is None:
            raise AnalyticsDisabledError("Analytics is disabled")
        return self._client

    @property
    def enabled(self) -> bool:
        try:
            return self.client is not None
        except AnalyticsDisabledError:
            return False

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def insert_session(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.client.table("visitor_sessions").insert(row).execute()
        return response.data[0] if response.data else None

    def get_session(self, session_id: str, columns: str = "*") -> Optional[Dict[str, Any]]:
        response = (
            self.client.table("visitor_sessions")
            .select(columns)
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        self.client.table("visitor_sessions").update(fields).eq("id", session_id).execute()

    def list_sessions(self, limit: int, offset: int,
                      active_since: Optional[str] = None) -> Tuple[List[Dict[str, Any]], int]:
        query = (
            self.client.table("visitor_sessions")
            .select("*", count="exact")
            .order("last_activity_at", desc=True)
            .range(offset, offset + limit - 1)
        )
        if active_since:
            query = query.gte("last_activity_at", active_since)
        response = query.execute()
        return response.data or [], response.count or 0

    def sessions_started_between(self, columns: str, date_from: str,
                                 date_to: str) -> List[Dict[str, Any]]:
        response = (
            self.client.table("visitor_sessions")
            .select(columns)
            .gte("started_at", date_from)
            .lte("started_at", date_to)
            .execute()
        )
        return response.data or []

    def sessions_active_since(self, since: str) -> List[Dict[str, Any]]:
        response = (
            self.client.table("visitor_sessions")
            .select("id, visitor_id, landing_page, device_type")
            .gte("last_activity_at", since)
            .execute()
        )
        return response.data or []

    # ------------------------------------------------------------------
    # Page views
    # ------------------------------------------------------------------

    def insert_page_view(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.client.table("page_views").insert(row).execute()
        return response.data[0] if response.data else None

    def update_page_view(self, page_view_id: str, fields: Dict[str, Any]) -> None:
        self.client.table("page_views").update(fields).eq("id", page_view_id).execute()

    def page_views_between(self, columns: str, date_from: str,
                           date_to: str) -> List[Dict[str, Any]]:
        response = (
            self.client.table("page_views")
            .select(columns)
            .gte("viewed_at", date_from)
            .lte("viewed_at", date_to)
            .execute()
        )
        return response.data or []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def insert_event(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.client.table("visitor_events").insert(row).execute()
        return response.data[0] if response.data else None

    def list_events(
        self,
        limit: int = 100,
        offset: int = 0,
        session_id: Optional[str] = None,
        event_name: Optional[str] = None,
        event_category: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = (
            self.client.table("visitor_events")
            .select("*", count="exact")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
        )
        if session_id:
            query = query.eq("session_id", session_id)
        if event_name:
            query = query.eq("event_name", event_name)
        if event_category:
            query = query.eq("event_category", event_category)
        if start_date:
            query = query.gte("created_at", start_date)
        if end_date:
            query = query.lte("created_at", end_date)

        response = query.execute()
        return response.data or [], response.count or 0

    def events_between(self, date_from: str, date_to: str) -> List[Dict[str, Any]]:
        response = (
            self.client.table("visitor_events")
            .select("id, event_name")
            .gte("created_at", date_from)
            .lte("created_at", date_to)
            .execute()
        )
        return response.data or []
