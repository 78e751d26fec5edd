"""Timeline aggregation.

Merges the tool log, nudge log and consultation ledger into one
newest-first event list. Every call re-reads all sources.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Union

from guardian.config import settings
from guardian.core.exceptions import ValidationError
from guardian.core.logger import TIMELINE_NAMESPACE, GuardianLogger, get_logger
from guardian.core.timeutil import parse_timestamp, utc_now
from guardian.timeline.models import EventType, TimeRange, TimelineEvent
from guardian.timeline.sources import TimelineSource, default_sources

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def range_start(
    time_range: TimeRange,
    now: datetime,
    day_boundary: str = "local",
) -> datetime:
    """Earliest timestamp included in a time range.

    ``today`` starts at local midnight, or UTC midnight when
    ``day_boundary`` is "utc".
    """
    if time_range == TimeRange.LAST_HOUR:
        return now - timedelta(hours=1)
    if time_range == TimeRange.LAST_4_HOURS:
        return now - timedelta(hours=4)
    if time_range == TimeRange.TODAY:
        if day_boundary == "utc":
            local = now.astimezone(timezone.utc)
        else:
            local = now.astimezone()
        return local.replace(hour=0, minute=0, second=0, microsecond=0)
    return EPOCH


def count_by_type(events: Iterable[TimelineEvent]) -> dict[str, int]:
    counts = {t.value: 0 for t in EventType}
    for event in events:
        counts[event.type.value] += 1
    return counts


class EventAggregator:
    """Reads all timeline sources and serves filtered, sorted events."""

    def __init__(
        self,
        sources: Optional[list[TimelineSource]] = None,
        day_boundary: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[GuardianLogger] = None,
    ):
        self.sources = default_sources(settings) if sources is None else sources
        self.day_boundary = day_boundary or settings.timeline_day_boundary
        self.clock = clock
        self.log = logger or get_logger(TIMELINE_NAMESPACE)

    def get_timeline_events(
        self,
        time_range: Union[TimeRange, str] = TimeRange.TODAY,
        types: Optional[Iterable[Union[EventType, str]]] = None,
        limit: int = 100,
    ) -> list[TimelineEvent]:
        """Get timeline events, newest first.

        Args:
            time_range: "1h", "4h", "today" or "all"
            types: Only these event types (all when empty)
            limit: Maximum number of events

        Returns:
            Events at or after the range start, sorted by timestamp descending
        """
        try:
            time_range = TimeRange(time_range)
            wanted = {EventType(t) for t in types} if types else None
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if limit < 0:
            raise ValidationError("limit must not be negative")

        start = range_start(time_range, self.clock(), self.day_boundary)

        dated: list[tuple[datetime, TimelineEvent]] = []
        for event in self._collect():
            occurred = parse_timestamp(event.timestamp)
            if occurred is None or occurred < start:
                continue
            if wanted and event.type not in wanted:
                continue
            dated.append((occurred, event))

        # list.sort is stable, also with reverse=True
        dated.sort(key=lambda pair: pair[0], reverse=True)
        return [event for _, event in dated[:limit]]

    def _collect(self) -> list[TimelineEvent]:
        events: list[TimelineEvent] = []
        for source in self.sources:
            try:
                events.extend(source.read())
            except (OSError, UnicodeDecodeError) as e:
                self.log.debug(
                    "Timeline source unavailable",
                    {"source": source.name, "path": str(source.path), "error": str(e)},
                )
        return events
