"""
services/calendar_service.py

Google Calendar adapter for timeline entries.

Disabled unless GOOGLE_CALENDAR_ACCESS_TOKEN is set. Callers treat every
call as best-effort: errors surface as CalendarSyncError and the caller
records the failure on the entry instead of failing the request.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import httpx

from resolve.core.config import settings
from resolve.db.models import TimelineEntry

logger = logging.getLogger(__name__)

GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"


class CalendarSyncError(Exception):
    pass


def _google_enabled() -> bool:
    return bool((settings.GOOGLE_CALENDAR_ACCESS_TOKEN or "").strip())


def _headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.GOOGLE_CALENDAR_ACCESS_TOKEN.strip()}",
        "Content-Type": "application/json",
    }


def _events_url(event_id: Optional[str] = None) -> str:
    url = GOOGLE_EVENTS_URL.format(calendar_id=settings.GOOGLE_CALENDAR_ID or "primary")
    return f"{url}/{event_id}" if event_id else url


def _event_body(entry: TimelineEntry) -> Dict[str, Any]:
    start = entry.due_date or entry.event_date
    end = start + timedelta(hours=1)
    tz = settings.GOOGLE_CALENDAR_TIMEZONE
    return {
        "summary": entry.title,
        "description": entry.description or "",
        "start": {"dateTime": start.isoformat(), "timeZone": tz},
        "end": {"dateTime": end.isoformat(), "timeZone": tz},
        "extendedProperties": {"private": {"resolveTimelineId": str(entry.id)}},
    }


def _request(method: str, url: str, json: Optional[dict] = None) -> httpx.Response:
    try:
        with httpx.Client(timeout=15.0) as client:
            resp = client.request(method, url, json=json, headers=_headers())
    except httpx.HTTPError as e:
        raise CalendarSyncError(str(e)) from e
    if resp.status_code >= 400 and resp.status_code != 410:
        raise CalendarSyncError(f"Google Calendar {method} failed: {resp.status_code} {resp.text[:200]}")
    return resp


def is_enabled() -> bool:
    return _google_enabled()


def create_event(entry: TimelineEntry) -> str:
    """Push a timeline entry; returns the provider's event id."""
    if not _google_enabled():
        raise CalendarSyncError("Calendar provider not configured")
    resp = _request("POST", _events_url(), json=_event_body(entry))
    try:
        payload = resp.json()
    except ValueError as e:
        raise CalendarSyncError("Google Calendar returned a non-JSON response") from e
    event_id = payload.get("id") if isinstance(payload, dict) else None
    if not event_id:
        raise CalendarSyncError("Google Calendar response missing event id")
    logger.info("Created Google event %s for timeline entry %s", event_id, entry.id)
    return event_id


def update_event(entry: TimelineEntry) -> str:
    if not entry.external_event_id:
        return create_event(entry)
    if not _google_enabled():
        raise CalendarSyncError("Calendar provider not configured")
    _request("PUT", _events_url(entry.external_event_id), json=_event_body(entry))
    return entry.external_event_id


def delete_event(external_event_id: str) -> None:
    if not _google_enabled():
        raise CalendarSyncError("Calendar provider not configured")
    _request("DELETE", _events_url(external_event_id))
    logger.info("Deleted Google event %s", external_event_id)
