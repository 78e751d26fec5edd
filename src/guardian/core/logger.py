"""Namespaced structured logging for Guardian.

Every component writes JSON lines to one shared log file::

    log = get_logger("guardian.worktree")
    log.info("Created worktree", {"task_id": "oauth-api"})

    {"timestamp":"2026-01-23T10:15:30.123Z","namespace":"guardian.worktree","level":"info","message":"Created worktree","data":{"task_id":"oauth-api"}}

Writing never raises. ``parse_log_entries`` reads the file back for the
logs API and CLI.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel

from guardian.config import settings
from guardian.core.timeutil import isoformat_utc, parse_timestamp, utc_now


class LogLevel(str, Enum):
    """Structured log levels, lowest first."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


LOG_LEVELS = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

_LEVEL_ICONS = {
    LogLevel.DEBUG: "D",
    LogLevel.INFO: "I",
    LogLevel.WARN: "W",
    LogLevel.ERROR: "E",
}


class LogEntry(BaseModel):
    """One line of the guardian log."""

    timestamp: str
    namespace: str
    level: LogLevel
    message: str
    data: Optional[dict[str, Any]] = None


class GuardianLogger:
    """Append-only JSONL logger bound to one namespace."""

    def __init__(
        self,
        namespace: str,
        log_path: Optional[Path] = None,
        min_level: Union[LogLevel, str, None] = None,
        console: Optional[bool] = None,
    ):
        self.namespace = namespace
        self.log_path = log_path or settings.log_path
        self.min_level = LogLevel(min_level or settings.log_level)
        self.console = settings.log_to_console if console is None else console
        self._stdlib = logging.getLogger(namespace)

    def debug(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(LogLevel.DEBUG, message, data)

    def info(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(LogLevel.INFO, message, data)

    def warn(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(LogLevel.WARN, message, data)

    warning = warn

    def error(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(LogLevel.ERROR, message, data)

    def log(
        self,
        level: Union[LogLevel, str],
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        level = LogLevel(level)
        if LOG_LEVELS[level] < LOG_LEVELS[self.min_level]:
            return

        entry: dict[str, Any] = {
            "timestamp": isoformat_utc(utc_now()),
            "namespace": self.namespace,
            "level": level.value,
            "message": message,
        }
        if data:
            entry["data"] = data

        try:
            line = json.dumps(entry, default=str)
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, TypeError, ValueError):
            # Logging must never fail the caller
            pass

        if self.console:
            if data:
                self._stdlib.log(_STDLIB_LEVELS[level], "%s %s", message, data)
            else:
                self._stdlib.log(_STDLIB_LEVELS[level], "%s", message)


@lru_cache
def get_logger(namespace: str) -> GuardianLogger:
    """Get a cached logger writing to the configured log file."""
    return GuardianLogger(namespace)


# Namespaces used by the Guardian components
WORKTREE_NAMESPACE = "guardian.worktree"
STATE_NAMESPACE = "guardian.state"
TIMELINE_NAMESPACE = "guardian.timeline"
WEBHOOK_NAMESPACE = "guardian.webhook"
API_NAMESPACE = "guardian.api"


def _matches_namespace(entry_namespace: str, namespace: str) -> bool:
    return entry_namespace == namespace or entry_namespace.startswith(namespace + ".")


def parse_log_entries(
    log_path: Optional[Path] = None,
    namespace: Optional[str] = None,
    level: Union[LogLevel, str, None] = None,
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[LogEntry]:
    """Read log entries back, newest first.

    Args:
        log_path: Log file (defaults to the configured guardian log)
        namespace: Exact namespace or dotted prefix ("guardian" matches "guardian.worktree")
        level: Minimum level to include
        since: Only entries at or after this time
        limit: Maximum number of entries returned
        offset: Number of newest entries to skip

    Returns:
        Matching entries; malformed or partially written lines are skipped
    """
    log_path = log_path or settings.log_path
    try:
        content = log_path.read_text(encoding="utf-8")
    except OSError:
        return []

    entries: list[LogEntry] = []
    for line in content.splitlines():
        if not line.strip():
            continue
        try:
            entries.append(LogEntry.model_validate(json.loads(line)))
        except ValueError:
            continue

    if namespace:
        entries = [e for e in entries if _matches_namespace(e.namespace, namespace)]

    if level:
        min_level = LOG_LEVELS[LogLevel(level)]
        entries = [e for e in entries if LOG_LEVELS[e.level] >= min_level]

    if since is not None:
        since_ts = parse_timestamp(since)
        kept = []
        for entry in entries:
            ts = parse_timestamp(entry.timestamp)
            if ts is not None and ts >= since_ts:
                kept.append(entry)
        entries = kept

    entries.reverse()

    if offset:
        entries = entries[offset:]
    if limit is not None:
        entries = entries[:limit]

    return entries


def format_log_entries(entries: list[LogEntry]) -> str:
    """Format log entries for CLI display."""
    if not entries:
        return "No log entries found"

    lines = []
    for entry in entries:
        _, _, clock = entry.timestamp.partition("T")
        time = clock[:12] if clock else entry.timestamp
        line = f"[{time}] {_LEVEL_ICONS[entry.level]} {entry.namespace}: {entry.message}"

        if entry.data:
            data_str = json.dumps(entry.data, default=str)
            if len(data_str) < 60:
                line += f" {data_str}"
            else:
                line += f"\n    {data_str}"

        lines.append(line)

    return "\n".join(lines)
