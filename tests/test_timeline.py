import json
import time

import pytest

from conftest import NOW, FakeClock
from guardian.core.exceptions import ValidationError
from guardian.timeline import (
    ConsultationLedgerSource,
    EventAggregator,
    EventType,
    HeuristicToolClassifier,
    NudgeLogSource,
    TimeRange,
    ToolLogSource,
)
from guardian.timeline.aggregator import EPOCH, count_by_type, range_start
from guardian.timeline.models import NudgeDetails, ToolDetails


@pytest.fixture
def tool_log(memory_dir):
    return memory_dir / "tool-log.txt"


@pytest.fixture
def nudges(memory_dir):
    return memory_dir / "guardian-nudges.jsonl"


@pytest.fixture
def ledger(memory_dir):
    return memory_dir / "context-ledger.json"


@pytest.fixture
def aggregator(tool_log, nudges, ledger, make_logger):
    return EventAggregator(
        sources=[ToolLogSource(tool_log), NudgeLogSource(nudges), ConsultationLedgerSource(ledger)],
        day_boundary="utc",
        clock=FakeClock(NOW),
        logger=make_logger("guardian.timeline"),
    )


@pytest.mark.parametrize(
    "tool,target,expected_type,expected_title",
    [
        ("Bash", "npm test", EventType.TEST, "Test run"),
        ("bash", "npx vitest run", EventType.TEST, "Test run"),
        ("Bash", 'git commit -m "wip"', EventType.COMMIT, "Git commit"),
        ("Bash", "ls -la", EventType.TOOL, "Bash"),
        ("Edit", "src/test_utils.py", EventType.TOOL, "Edit"),
        ("Edit", "notes about git commit", EventType.COMMIT, "Git commit"),
    ],
)
def test_heuristic_classifier(tool, target, expected_type, expected_title) -> None:
    assert HeuristicToolClassifier().classify(tool, target) == (expected_type, expected_title)


def test_tool_log_lines_become_events(tool_log) -> None:
    tool_log.write_text(
        "2026-01-23T11:00:00.000Z | Edit | src/app.py\n"
        "garbage line\n"
        "2026-01-23T11:05:00Z | Bash | npm test\n"
        "2026-01-23T11:06:00Z |  | \n"
    )

    events = ToolLogSource(tool_log).read()

    assert [e.type for e in events] == [EventType.TOOL, EventType.TEST, EventType.TOOL]
    assert events[0].title == "Edit"
    assert events[0].description == "src/app.py"
    assert events[0].details == ToolDetails(tool="Edit", target="src/app.py")
    assert events[0].id.startswith("tool-2026-01-23T11:00:00.000Z-")
    assert events[2].title == "Unknown"
    assert events[2].description == "Unknown"


def test_nudge_log_skips_malformed_lines(nudges) -> None:
    nudges.write_text(
        json.dumps({"timestamp": "2026-01-23T11:00:00Z", "type": "commit_reminder", "message": "Commit now"})
        + "\n"
        + '{"timestamp": "2026-01-23T11:01:00Z", "type": "trunc'
        + "\n"
        + "[1, 2]\n"
        + json.dumps({"timestamp": "yesterday-ish", "message": "bad time"})
        + "\n"
        + json.dumps({"timestamp": "2026-01-23T11:02:00Z", "content": "Run tests", "severity": "high"})
        + "\n"
    )

    events = NudgeLogSource(nudges).read()

    assert [e.description for e in events] == ["Commit now", "Run tests"]
    assert events[0].title == "commit_reminder"
    assert events[1].title == "Guardian Nudge"
    assert isinstance(events[1].details, NudgeDetails)
    assert events[1].details.model_dump()["severity"] == "high"


def test_nudge_without_timestamp_is_stamped_now(nudges) -> None:
    nudges.write_text(json.dumps({"message": "no time"}) + "\n")

    events = NudgeLogSource(nudges).read()

    assert len(events) == 1
    assert events[0].timestamp.endswith("Z")


def test_consultation_ledger_entries(ledger) -> None:
    ledger.write_text(
        json.dumps(
            {
                "consultations": [
                    {"timestamp": "2026-01-23T11:30:00Z", "query": "auth flow", "agent": "planner"},
                    {"timestamp": "2026-01-23T11:31:00Z"},
                    "not an entry",
                ]
            }
        )
    )

    events = ConsultationLedgerSource(ledger).read()

    assert [e.type for e in events] == [EventType.CONSULTATION, EventType.CONSULTATION]
    assert events[0].title == "RLM Consultation"
    assert events[0].description == "auth flow"
    assert events[1].description == "Memory consultation"


@pytest.mark.parametrize("content", ["{not json", "[]", '{"consultations": "nope"}'])
def test_malformed_ledger_contributes_nothing(ledger, content) -> None:
    ledger.write_text(content)

    assert ConsultationLedgerSource(ledger).read() == []


def test_malformed_ledger_does_not_hide_other_sources(aggregator, tool_log, nudges, ledger) -> None:
    tool_log.write_text("2026-01-23T11:00:00Z | Edit | a.py\n")
    nudges.write_text(json.dumps({"timestamp": "2026-01-23T11:10:00Z", "message": "Commit"}) + "\n")
    ledger.write_text("{broken")

    events = aggregator.get_timeline_events("all")

    assert [e.type for e in events] == [EventType.NUDGE, EventType.TOOL]


def test_missing_files_give_no_events(aggregator) -> None:
    assert aggregator.get_timeline_events("all") == []


def test_last_hour_excludes_older_events(aggregator, tool_log) -> None:
    tool_log.write_text(
        "2026-01-23T10:30:00Z | Edit | old.py\n"
        "2026-01-23T11:00:00Z | Edit | boundary.py\n"
        "2026-01-23T11:45:00Z | Edit | recent.py\n"
    )

    assert [e.description for e in aggregator.get_timeline_events("1h")] == ["recent.py", "boundary.py"]
    assert len(aggregator.get_timeline_events("4h")) == 3
    assert len(aggregator.get_timeline_events(TimeRange.ALL)) == 3


def test_today_with_utc_boundary(aggregator, tool_log) -> None:
    tool_log.write_text(
        "2026-01-22T23:59:59Z | Edit | yesterday.py\n"
        "2026-01-23T00:00:00Z | Edit | midnight.py\n"
    )

    assert [e.description for e in aggregator.get_timeline_events("today")] == ["midnight.py"]


def test_events_sorted_newest_first_across_sources(aggregator, tool_log, nudges, ledger) -> None:
    tool_log.write_text("2026-01-23T11:00:00Z | Edit | a.py\n2026-01-23T11:20:00Z | Bash | git commit -m x\n")
    nudges.write_text(json.dumps({"timestamp": "2026-01-23T11:10:00+00:00", "message": "n"}) + "\n")
    ledger.write_text(json.dumps({"consultations": [{"timestamp": "2026-01-23T11:15:00.000Z", "query": "q"}]}))

    events = aggregator.get_timeline_events("all")

    assert [e.type for e in events] == [
        EventType.COMMIT,
        EventType.CONSULTATION,
        EventType.NUDGE,
        EventType.TOOL,
    ]


def test_equal_timestamps_keep_source_order(aggregator, tool_log) -> None:
    tool_log.write_text(
        "2026-01-23T11:00:00Z | Edit | first.py\n"
        "2026-01-23T11:00:00Z | Edit | second.py\n"
    )

    assert [e.description for e in aggregator.get_timeline_events("all")] == ["first.py", "second.py"]


def test_type_filter_and_limit(aggregator, tool_log) -> None:
    tool_log.write_text(
        "2026-01-23T11:00:00Z | Bash | npm test\n"
        "2026-01-23T11:01:00Z | Edit | a.py\n"
        "2026-01-23T11:02:00Z | Bash | pytest -q tests\n"
        "2026-01-23T11:03:00Z | Bash | git commit -m x\n"
    )

    tests_only = aggregator.get_timeline_events("all", types=["test"])
    assert [e.timestamp for e in tests_only] == ["2026-01-23T11:02:00Z", "2026-01-23T11:00:00Z"]

    both = aggregator.get_timeline_events("all", types=[EventType.TEST, EventType.COMMIT], limit=2)
    assert [e.type for e in both] == [EventType.COMMIT, EventType.TEST]

    assert aggregator.get_timeline_events("all", limit=0) == []


@pytest.mark.parametrize(
    "kwargs",
    [{"time_range": "2h"}, {"types": ["deploy"]}, {"limit": -1}],
)
def test_invalid_arguments_raise_validation_error(aggregator, kwargs) -> None:
    with pytest.raises(ValidationError):
        aggregator.get_timeline_events(**{"time_range": "all", **kwargs})


def test_range_start_values() -> None:
    assert range_start(TimeRange.ALL, NOW) == EPOCH
    assert range_start(TimeRange.LAST_HOUR, NOW).hour == 11
    assert range_start(TimeRange.LAST_4_HOURS, NOW).hour == 8
    today = range_start(TimeRange.TODAY, NOW, "utc")
    assert (today.hour, today.minute, today.day) == (0, 0, 23)


def test_count_by_type_includes_every_type(aggregator, tool_log) -> None:
    tool_log.write_text("2026-01-23T11:00:00Z | Bash | npm test\n2026-01-23T11:01:00Z | Edit | a.py\n")

    counts = count_by_type(aggregator.get_timeline_events("all"))

    assert counts == {"tool": 1, "nudge": 0, "commit": 0, "test": 1, "consultation": 0}


def test_records_with_non_string_fields_are_kept(aggregator, nudges, ledger) -> None:
    nudges.write_text(
        json.dumps({"timestamp": "2026-01-23T11:00:00Z", "type": 3, "message": {"text": "commit"}})
        + "\n"
        + json.dumps({"timestamp": "2026-01-23T11:01:00Z", "content": ["a", "b"]})
        + "\n"
    )
    ledger.write_text(
        json.dumps(
            {"consultations": [{"timestamp": "2026-01-23T11:02:00Z", "query": 5, "agent": {"name": "planner"}}]}
        )
    )

    events = aggregator.get_timeline_events("all")

    assert [e.type for e in events] == [EventType.CONSULTATION, EventType.NUDGE, EventType.NUDGE]
    assert events[0].description == "Memory consultation"
    assert events[0].details.model_dump()["agent"] == {"name": "planner"}
    assert events[1].description == "Nudge emitted"
    assert events[2].title == "Guardian Nudge"
    assert events[2].details.model_dump()["message"] == {"text": "commit"}


@pytest.fixture
def eastern_time(monkeypatch):
    # Fixed UTC-5 zone, no DST
    monkeypatch.setenv("TZ", "EST5")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_today_starts_at_local_midnight_by_default(eastern_time, tool_log, make_logger) -> None:
    # NOW is 07:00 local, so the local day began at 05:00 UTC
    tool_log.write_text(
        "2026-01-23T04:59:59Z | Edit | before-local-midnight.py\n"
        "2026-01-23T05:00:00Z | Edit | after-local-midnight.py\n"
    )
    aggregator = EventAggregator(
        sources=[ToolLogSource(tool_log)],
        day_boundary="local",
        clock=FakeClock(NOW),
        logger=make_logger("guardian.timeline"),
    )

    assert [e.description for e in aggregator.get_timeline_events("today")] == ["after-local-midnight.py"]
    assert range_start(TimeRange.TODAY, NOW).isoformat() == "2026-01-23T00:00:00-05:00"
