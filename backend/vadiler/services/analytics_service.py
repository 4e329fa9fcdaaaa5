"""
Analytics Service
Visitor tracking ingestion and the admin dashboard summary.

Ingestion is fail-soft: a tracking call never breaks the storefront, so
store errors are logged and answered with {"success": False}.

Author: Vadiler
Date: 2025-11-06
"""
import hashlib
import logging
import re
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from vadiler.repositories.analytics_repository import AnalyticsDisabledError, AnalyticsRepository

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90}
REALTIME_WINDOW_MINUTES = 5
ACTIVE_SESSION_MINUTES = 30
TOP_LIMIT = 10

DISABLED_RESPONSE = {"success": False, "disabled": True}

SESSION_FIELDS = {
    "deviceType": "device_type",
    "deviceModel": "device_model",
    "browser": "browser",
    "browserVersion": "browser_version",
    "os": "os",
    "osVersion": "os_version",
    "screenWidth": "screen_width",
    "screenHeight": "screen_height",
    "language": "language",
    "referrer": "referrer",
    "referrerDomain": "referrer_domain",
    "landingPage": "landing_page",
    "utmSource": "utm_source",
    "utmMedium": "utm_medium",
    "utmCampaign": "utm_campaign",
    "utmTerm": "utm_term",
    "utmContent": "utm_content",
}

PAGE_VIEW_FIELDS = {
    "pageUrl": "page_url",
    "pagePath": "page_path",
    "pageTitle": "page_title",
    "productId": "product_id",
    "productName": "product_name",
    "categorySlug": "category_slug",
    "categoryName": "category_name",
    "referrerPath": "referrer_path",
    "loadTimeMs": "load_time_ms",
}

# (path prefix, page type); first match wins
PAGE_TYPE_PREFIXES = [
    ("/sepet", "cart"),
    ("/payment", "checkout"),
    ("/odeme", "checkout"),
    ("/hesabim", "account"),
    ("/arama", "search"),
    ("/siparis-takip", "order_tracking"),
]

SOCIAL_PLATFORMS = ("facebook", "instagram", "twitter", "tiktok", "linkedin", "youtube", "pinterest")
SEARCH_ENGINES = re.compile(r"google|bing|yandex|yahoo", re.IGNORECASE)

SOURCE_LABELS = [
    (("instagram",), "Instagram"),
    (("facebook",), "Facebook"),
    (("tiktok",), "TikTok"),
    (("twitter", "x."), "Twitter/X"),
    (("google",), "Google"),
    (("bing",), "Bing"),
    (("yandex",), "Yandex"),
    (("linkedin",), "LinkedIn"),
    (("youtube",), "YouTube"),
    (("pinterest",), "Pinterest"),
]


class AnalyticsInputError(Exception):
    """Tracking payload is missing required ids"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def anonymize_ip(ip: str) -> str:
    """Zero the last IPv4 octet; other addresses pass through"""
    parts = (ip or "").split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.{parts[2]}.0"
    return ip


def hash_ip(ip: str) -> str:
    return hashlib.sha256((ip or "").encode("utf-8")).hexdigest()[:16]


def detect_page_type(path: str, product_id: Any = None, category_slug: Any = None) -> str:
    if path == "/":
        return "home"
    for prefix, page_type in PAGE_TYPE_PREFIXES:
        if path.startswith(prefix):
            return page_type
    if product_id:
        return "product"
    if category_slug:
        return "category"
    return "page"


def resolve_range(period: str = "7d", start_date: Optional[str] = None,
                  end_date: Optional[str] = None,
                  today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    Dashboard window as [start of first day, end of last day] in UTC

    An explicit start_date wins over the period; unknown periods mean 90 days.
    """
    today = today or datetime.now(timezone.utc).date()
    last_day = date.fromisoformat(end_date[:10]) if end_date else today
    if start_date:
        first_day = date.fromisoformat(start_date[:10])
    else:
        first_day = today - timedelta(days=PERIOD_DAYS.get(period, 90))

    return (
        datetime.combine(first_day, time.min, tzinfo=timezone.utc),
        datetime.combine(last_day, time.max, tzinfo=timezone.utc),
    )


def source_label(utm_source: Optional[str], referrer_domain: Optional[str]) -> str:
    source = utm_source or referrer_domain or "direct"
    normalized = source.lower()
    for token in ("www.", ".com", ".co", ".net", ".org"):
        normalized = normalized.replace(token, "", 1)

    for needles, label in SOURCE_LABELS:
        if any(needle in normalized for needle in needles):
            return label
    if normalized == "direct":
        return "Doğrudan"
    return source


def traffic_channel(row: Dict[str, Any]) -> str:
    medium = row.get("utm_medium")
    utm_source = (row.get("utm_source") or "").lower()
    referrer_domain = row.get("referrer_domain") or ""

    if medium in ("cpc", "paid"):
        return "paid"
    if medium == "email":
        return "email"
    if any(p in utm_source or p in referrer_domain.lower() for p in SOCIAL_PLATFORMS):
        return "social"
    if referrer_domain and SEARCH_ENGINES.search(referrer_domain):
        return "organic"
    if referrer_domain:
        return "referral"
    return "direct"


def _top(counter: Counter, key: str, limit: int = TOP_LIMIT) -> List[Dict[str, Any]]:
    return [{key: name, "count": count} for name, count in counter.most_common(limit)]


def summarize(sessions: List[Dict[str, Any]], page_views: List[Dict[str, Any]],
              events: List[Dict[str, Any]], realtime: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Dashboard numbers from raw rows of one window"""
    total_sessions = len(sessions)
    total_page_views = len(page_views)

    durations = sum(int(s.get("duration_seconds") or 0) for s in sessions)
    bounces = sum(1 for s in sessions if s.get("is_bounce"))

    # Top pages keep the first title seen for each path
    page_counts: Counter = Counter()
    page_titles: Dict[str, str] = {}
    product_counts: Counter = Counter()
    product_names: Dict[int, str] = {}
    for view in page_views:
        path = view.get("page_path") or "/"
        page_counts[path] += 1
        page_titles.setdefault(path, view.get("page_title") or path)

        product_id = view.get("product_id")
        if product_id:
            product_counts[product_id] += 1
            product_names.setdefault(product_id, view.get("product_name") or f"Ürün #{product_id}")

    channels = Counter({c: 0 for c in ("direct", "organic", "social", "paid", "referral", "email")})
    sources: Counter = Counter()
    campaigns: Counter = Counter()
    landing_pages: Counter = Counter()
    devices = Counter({"desktop": 0, "mobile": 0, "tablet": 0})
    browsers: Counter = Counter()
    systems: Counter = Counter()
    conversions = 0
    revenue = 0.0

    for s in sessions:
        channels[traffic_channel(s)] += 1
        sources[source_label(s.get("utm_source"), s.get("referrer_domain"))] += 1
        if s.get("utm_campaign"):
            campaigns[s["utm_campaign"]] += 1
        if s.get("landing_page"):
            landing_pages[s["landing_page"]] += 1
        if s.get("device_type"):
            devices[s["device_type"]] += 1
        if s.get("browser"):
            browsers[s["browser"]] += 1
        if s.get("os"):
            systems[s["os"]] += 1
        if s.get("converted"):
            conversions += 1
            revenue += float(s.get("conversion_value") or 0)

    event_counts = Counter(e.get("event_name") for e in events if e.get("event_name"))

    return {
        "overview": {
            "totalSessions": total_sessions,
            "uniqueVisitors": len({s.get("visitor_id") for s in sessions}),
            "totalPageViews": total_page_views,
            "totalEvents": len(events),
            "avgSessionDuration": round(durations / total_sessions) if total_sessions else 0,
            "bounceRate": round(bounces / total_sessions * 100) if total_sessions else 0,
            "avgPagesPerSession": round(total_page_views / total_sessions, 2) if total_sessions else 0,
            "realtimeVisitors": len(realtime),
        },
        "topPages": [
            {"path": path, "title": page_titles[path], "count": count}
            for path, count in page_counts.most_common(TOP_LIMIT)
        ],
        "topProducts": [
            {"productId": pid, "name": product_names[pid], "count": count}
            for pid, count in product_counts.most_common(TOP_LIMIT)
        ],
        "trafficSources": dict(channels),
        "topSources": _top(sources, "source", 15),
        "topCampaigns": _top(campaigns, "name"),
        "topLandingPages": _top(landing_pages, "page"),
        "devices": dict(devices),
        "browsers": dict(browsers),
        "operatingSystems": dict(systems),
        "conversions": {
            "total": conversions,
            "rate": round(conversions / total_sessions * 100, 2) if total_sessions else 0,
            "revenue": round(revenue, 2),
        },
        "events": dict(event_counts),
        "realtime": realtime,
    }


class AnalyticsService:

    def __init__(self, repo: Optional[AnalyticsRepository] = None):
        self.repo = repo or AnalyticsRepository()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def start_session(self, payload: Dict[str, Any], client_ip: str, user_agent: str) -> Dict[str, Any]:
        if not payload.get("sessionId") or not payload.get("visitorId"):
            raise AnalyticsInputError("sessionId and visitorId are required")
        if not self.repo.enabled:
            return dict(DISABLED_RESPONSE)

        now = _now_iso()
        row = {
            "id": payload["sessionId"],
            "visitor_id": payload["visitorId"],
            "ip_address": anonymize_ip(client_ip),
            "ip_hash": hash_ip(client_ip),
            "user_agent": user_agent or "",
            "started_at": now,
            "last_activity_at": now,
        }
        for key, column in SESSION_FIELDS.items():
            if payload.get(key) is not None:
                row[column] = payload[key]

        try:
            created = self.repo.insert_session(row)
        except Exception as e:
            logger.error(f"Failed to create analytics session: {e}")
            return {"success": False}
        return {"success": True, "sessionId": (created or {}).get("id", row["id"])}

    def update_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session_id = payload.get("sessionId")
        if not session_id:
            raise AnalyticsInputError("sessionId is required")
        if not self.repo.enabled:
            return dict(DISABLED_RESPONSE)

        fields: Dict[str, Any] = {"last_activity_at": _now_iso()}
        if payload.get("customerId"):
            fields["customer_id"] = payload["customerId"]
        if payload.get("converted") is not None:
            fields["converted"] = bool(payload["converted"])
        if payload.get("conversionValue") is not None:
            fields["conversion_value"] = payload["conversionValue"]
        if payload.get("exitPage"):
            fields["exit_page"] = payload["exitPage"]
        if payload.get("ended"):
            fields["ended_at"] = fields["last_activity_at"]

        try:
            self.repo.update_session(session_id, fields)
        except Exception as e:
            logger.error(f"Failed to update analytics session {session_id}: {e}")
            return {"success": False}
        return {"success": True}

    def list_sessions(self, limit: int = 50, offset: int = 0, active_only: bool = False) -> Dict[str, Any]:
        empty = {"sessions": [], "total": 0, "limit": limit, "offset": offset}
        if not self.repo.enabled:
            return empty

        since = None
        if active_only:
            since = (datetime.now(timezone.utc) - timedelta(minutes=ACTIVE_SESSION_MINUTES)).isoformat()
        try:
            sessions, total = self.repo.list_sessions(limit, offset, active_since=since)
        except Exception as e:
            logger.error(f"Failed to list analytics sessions: {e}")
            return empty
        return {"sessions": sessions, "total": total, "limit": limit, "offset": offset}

    def record_page_view(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        required = ("sessionId", "visitorId", "pageUrl", "pagePath")
        if any(not payload.get(key) for key in required):
            raise AnalyticsInputError("sessionId, visitorId, pageUrl and pagePath are required")
        if not self.repo.enabled:
            return dict(DISABLED_RESPONSE)

        session_id = payload["sessionId"]
        now = _now_iso()
        row = {
            "session_id": session_id,
            "visitor_id": payload["visitorId"],
            "page_type": payload.get("pageType") or detect_page_type(
                payload["pagePath"], payload.get("productId"), payload.get("categorySlug")
            ),
            "viewed_at": now,
        }
        for key, column in PAGE_VIEW_FIELDS.items():
            if payload.get(key) is not None:
                row[column] = payload[key]

        try:
            created = self.repo.insert_page_view(row)
        except Exception as e:
            logger.error(f"Failed to record page view for session {session_id}: {e}")
            return {"success": False}

        try:
            session = self.repo.get_session(session_id, "page_views") or {}
            views = int(session.get("page_views") or 0) + 1
            self.repo.update_session(session_id, {
                "page_views": views,
                "is_bounce": views <= 1,
                "last_activity_at": now,
            })
        except Exception as e:
            logger.warning(f"Page view counter for session {session_id} not updated: {e}")

        return {"success": True, "pageViewId": (created or {}).get("id")}

    def update_page_view(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        page_view_id = payload.get("pageViewId")
        if not page_view_id:
            raise AnalyticsInputError("pageViewId is required")
        if not self.repo.enabled:
            return dict(DISABLED_RESPONSE)

        fields: Dict[str, Any] = {"left_at": _now_iso()}
        if payload.get("timeOnPageSeconds") is not None:
            fields["time_on_page_seconds"] = payload["timeOnPageSeconds"]
        if payload.get("scrollDepthPercent") is not None:
            fields["scroll_depth_percent"] = payload["scrollDepthPercent"]

        try:
            self.repo.update_page_view(page_view_id, fields)
        except Exception as e:
            logger.error(f"Failed to update page view {page_view_id}: {e}")
            return {"success": False}
        return {"success": True}

    def record_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Store an event; a session unseen so far is created first"""
        if not payload.get("sessionId") or not payload.get("visitorId") or not payload.get("eventName"):
            raise AnalyticsInputError("sessionId, visitorId and eventName are required")
        if not self.repo.enabled:
            return dict(DISABLED_RESPONSE)

        session_id = payload["sessionId"]
        now = _now_iso()

        try:
            if self.repo.get_session(session_id, "id") is None:
                self.repo.insert_session({
                    "id": session_id,
                    "visitor_id": payload["visitorId"],
                    "landing_page": payload.get("pagePath") or "/",
                    "started_at": now,
                    "last_activity_at": now,
                })

            created = self.repo.insert_event({
                "session_id": session_id,
                "page_view_id": payload.get("pageViewId"),
                "visitor_id": payload["visitorId"],
                "event_name": payload["eventName"],
                "event_category": payload.get("eventCategory"),
                "event_label": payload.get("eventLabel"),
                "event_value": payload.get("eventValue"),
                "properties": payload.get("properties") or {},
                "page_url": payload.get("pageUrl"),
                "page_path": payload.get("pagePath"),
                "created_at": now,
            })
        except Exception as e:
            logger.error(f"Failed to record event {payload['eventName']}: {e}")
            return {"success": False}

        try:
            session = self.repo.get_session(session_id, "events_count") or {}
            self.repo.update_session(session_id, {
                "events_count": int(session.get("events_count") or 0) + 1,
                "last_activity_at": now,
            })
        except Exception as e:
            logger.warning(f"Event counter for session {session_id} not updated: {e}")

        return {"success": True, "eventId": (created or {}).get("id")}

    def list_events(self, **filters) -> Dict[str, Any]:
        limit = filters.get("limit", 100)
        offset = filters.get("offset", 0)
        empty = {"events": [], "total": 0, "limit": limit, "offset": offset}
        if not self.repo.enabled:
            return empty
        try:
            events, total = self.repo.list_events(**filters)
        except Exception as e:
            logger.error(f"Failed to list analytics events: {e}")
            return empty
        return {"events": events, "total": total, "limit": limit, "offset": offset}

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_stats(self, period: str = "7d", start_date: Optional[str] = None,
                  end_date: Optional[str] = None) -> Dict[str, Any]:
        """
        Dashboard summary for a period or an explicit date range

        Raises:
            AnalyticsDisabledError: analytics store not configured
            ValueError: malformed dates
        """
        if not self.repo.enabled:
            raise AnalyticsDisabledError("Analytics disabled")

        date_from, date_to = resolve_range(period, start_date, end_date)
        from_iso, to_iso = date_from.isoformat(), date_to.isoformat()
        realtime_since = (
            datetime.now(timezone.utc) - timedelta(minutes=REALTIME_WINDOW_MINUTES)
        ).isoformat()

        sessions = self.repo.sessions_started_between(
            "id, visitor_id, duration_seconds, is_bounce, page_views, utm_source, utm_medium, "
            "utm_campaign, referrer, referrer_domain, landing_page, device_type, browser, os, "
            "converted, conversion_value",
            from_iso, to_iso,
        )
        page_views = self.repo.page_views_between(
            "id, page_path, page_title, product_id, product_name", from_iso, to_iso
        )
        events = self.repo.events_between(from_iso, to_iso)
        realtime = self.repo.sessions_active_since(realtime_since)

        stats = summarize(sessions, page_views, events, realtime)
        stats["period"] = period
        stats["dateRange"] = {"from": from_iso, "to": to_iso}
        return stats
