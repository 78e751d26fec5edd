"""Timeline of agent activity.

Normalizes three independently written logs into one event stream:
- tool-log.txt: tool calls, classified into tool / test / commit
- guardian-nudges.jsonl: supervisor nudges
- context-ledger.json: memory consultations
"""

from guardian.timeline.aggregator import EventAggregator, count_by_type, range_start
from guardian.timeline.models import EventType, TimeRange, TimelineEvent
from guardian.timeline.sources import (
    ConsultationLedgerSource,
    HeuristicToolClassifier,
    NudgeLogSource,
    TimelineSource,
    ToolClassifier,
    ToolLogSource,
    default_sources,
)

__all__ = [
    "EventAggregator",
    "count_by_type",
    "range_start",
    "EventType",
    "TimeRange",
    "TimelineEvent",
    "ConsultationLedgerSource",
    "HeuristicToolClassifier",
    "NudgeLogSource",
    "TimelineSource",
    "ToolClassifier",
    "ToolLogSource",
    "default_sources",
]
