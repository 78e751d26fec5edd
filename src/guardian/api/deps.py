"""Component providers for the API routes (overridable in tests)."""

from pathlib import Path

from guardian.config import settings
from guardian.core.worktree import WorktreeManager
from guardian.timeline import EventAggregator


def get_worktree_manager() -> WorktreeManager:
    return WorktreeManager()


def get_event_aggregator() -> EventAggregator:
    return EventAggregator()


def get_log_path() -> Path:
    return settings.log_path
