"""Timeline and log query routes."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query

from guardian.api.auth import require_admin
from guardian.api.deps import get_event_aggregator, get_log_path
from guardian.config import settings
from guardian.core.logger import LogLevel, parse_log_entries
from guardian.timeline import EventAggregator, EventType, TimeRange, count_by_type

router = APIRouter(prefix="/api", tags=["timeline"], dependencies=[Depends(require_admin)])


@router.get("/timeline")
async def get_timeline(
    time_range: TimeRange = Query(TimeRange.TODAY, alias="range"),
    types: Optional[list[EventType]] = Query(None),
    limit: int = Query(settings.timeline_default_limit, ge=1, le=1000),
    aggregator: EventAggregator = Depends(get_event_aggregator),
) -> dict:
    """Merged activity timeline, newest first."""
    events = await asyncio.to_thread(
        aggregator.get_timeline_events, time_range, types, limit
    )
    return {
        "range": time_range.value,
        "events": [e.model_dump(mode="json") for e in events],
        "counts": count_by_type(events),
    }


@router.get("/logs")
async def get_logs(
    namespace: Optional[str] = None,
    level: Optional[LogLevel] = None,
    since: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    log_path: Path = Depends(get_log_path),
) -> dict:
    """Structured guardian log entries, newest first."""
    entries = await asyncio.to_thread(
        parse_log_entries,
        log_path,
        namespace=namespace,
        level=level,
        since=since,
        limit=limit,
        offset=offset,
    )
    return {"entries": [e.model_dump(mode="json", exclude_none=True) for e in entries]}
