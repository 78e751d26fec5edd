"""Timeline sources.

Each source knows one on-disk log format and turns it into TimelineEvents.
Malformed records are skipped one at a time; the aggregator never sees a
parse error.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Protocol

from guardian.config import Settings
from guardian.core.timeutil import isoformat_utc, parse_timestamp, utc_now
from guardian.timeline.models import (
    ConsultationDetails,
    EventType,
    NudgeDetails,
    TimelineEvent,
    ToolDetails,
    make_event_id,
)

# "<ISO8601> | <tool> | <target>"
TOOL_LINE_PATTERN = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T[\d:.+\-Z]+)\s*\|\s*(.*?)\s*\|\s*(.*)$"
)


class ToolClassifier(Protocol):
    """Decides what kind of event a tool-log line is."""

    def classify(self, tool: str, target: str) -> tuple[EventType, str]:
        """Return (event type, title)."""
        ...


class HeuristicToolClassifier:
    """Substring heuristics for test runs and commits.

    Best effort only: a bash call whose target mentions "test" is taken as a
    test run, any target mentioning "git commit" as a commit.
    """

    test_tool_markers = ("bash", "test")
    test_target_markers = ("test", "jest", "vitest")
    commit_markers = ("git commit",)

    def classify(self, tool: str, target: str) -> tuple[EventType, str]:
        tool_lower = tool.lower()
        target_lower = target.lower()

        if any(m in tool_lower for m in self.test_tool_markers) and any(
            m in target_lower for m in self.test_target_markers
        ):
            return EventType.TEST, "Test run"

        if any(m in target_lower for m in self.commit_markers):
            return EventType.COMMIT, "Git commit"

        return EventType.TOOL, tool or "Tool activity"


class TimelineSource(ABC):
    """A log file that contributes timeline events."""

    name: str = "source"

    def __init__(self, path: Path):
        self.path = path

    def read(self) -> list[TimelineEvent]:
        """Read and parse the file. Raises OSError if it can't be read."""
        return self.parse(self.path.read_text(encoding="utf-8"))

    @abstractmethod
    def parse(self, content: str) -> list[TimelineEvent]:
        ...


class ToolLogSource(TimelineSource):
    """memory/tool-log.txt: one ``timestamp | tool | target`` per line."""

    name = "tool"

    def __init__(self, path: Path, classifier: Optional[ToolClassifier] = None):
        super().__init__(path)
        self.classifier = classifier or HeuristicToolClassifier()

    def parse(self, content: str) -> list[TimelineEvent]:
        events = []
        for line in content.splitlines():
            match = TOOL_LINE_PATTERN.match(line.strip())
            if not match:
                continue

            timestamp, tool, target = match.groups()
            tool = tool.strip() or "Unknown"
            target = target.strip()
            event_type, title = self.classifier.classify(tool, target)

            events.append(
                TimelineEvent(
                    id=make_event_id(self.name, timestamp),
                    type=event_type,
                    timestamp=timestamp,
                    title=title,
                    description=target or title,
                    details=ToolDetails(tool=tool, target=target),
                )
            )
        return events


class NudgeLogSource(TimelineSource):
    """memory/guardian-nudges.jsonl: one JSON nudge per line."""

    name = "nudge"

    def parse(self, content: str) -> list[TimelineEvent]:
        events = []
        for line in content.splitlines():
            if not line.strip():
                continue
            try:
                nudge = json.loads(line)
            except ValueError:
                # Truncated or partially written line
                continue
            if not isinstance(nudge, dict):
                continue

            timestamp = _timestamp_or_now(nudge.get("timestamp"))
            if timestamp is None:
                continue

            details = NudgeDetails.model_validate({**nudge, "kind": "nudge"})

            events.append(
                TimelineEvent(
                    id=make_event_id(self.name, timestamp),
                    type=EventType.NUDGE,
                    timestamp=timestamp,
                    title=_text(nudge.get("type")) or "Guardian Nudge",
                    description=_text(nudge.get("message"))
                    or _text(nudge.get("content"))
                    or "Nudge emitted",
                    details=details,
                )
            )
        return events


class ConsultationLedgerSource(TimelineSource):
    """memory/context-ledger.json: ``{"consultations": [...]}``."""

    name = "consultation"

    def parse(self, content: str) -> list[TimelineEvent]:
        try:
            ledger = json.loads(content)
        except ValueError:
            return []
        if not isinstance(ledger, dict):
            return []

        consultations = ledger.get("consultations")
        if not isinstance(consultations, list):
            return []

        events = []
        for consultation in consultations:
            if not isinstance(consultation, dict):
                continue

            timestamp = _timestamp_or_now(consultation.get("timestamp"))
            if timestamp is None:
                continue

            details = ConsultationDetails.model_validate(
                {**consultation, "kind": "consultation"}
            )

            events.append(
                TimelineEvent(
                    id=make_event_id(self.name, timestamp),
                    type=EventType.CONSULTATION,
                    timestamp=timestamp,
                    title="RLM Consultation",
                    description=_text(consultation.get("query")) or "Memory consultation",
                    details=details,
                )
            )
        return events


def default_sources(config: Settings) -> list[TimelineSource]:
    """The three Guardian logs under the memory directory."""
    return [
        ToolLogSource(config.tool_log_path),
        NudgeLogSource(config.nudges_path),
        ConsultationLedgerSource(config.context_ledger_path),
    ]


def _timestamp_or_now(value: Any) -> Optional[str]:
    # Records without a timestamp are stamped now; unparseable ones are dropped
    if value is None or value == "":
        return isoformat_utc(utc_now())
    if parse_timestamp(value) is None:
        return None
    return str(value)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
