"""Core modules for Guardian.

Contains the fundamental building blocks:
- logger: namespaced structured JSONL logging
- state: the shared workflow-state document
- worktree: git worktree lifecycle per task
- exceptions: error taxonomy
"""

from guardian.core.exceptions import (
    ConflictError,
    Forbidden,
    GitOperationError,
    GuardianError,
    NotFoundError,
    StateUnavailable,
    Unauthorized,
    ValidationError,
)
from guardian.core.logger import (
    GuardianLogger,
    LogEntry,
    LogLevel,
    format_log_entries,
    get_logger,
    parse_log_entries,
)
from guardian.core.state import (
    DocumentStorage,
    JsonFileStorage,
    WorkflowState,
    WorkflowStateStore,
    WorktreeRecord,
    WorktreeStatus,
)
from guardian.core.worktree import (
    GitRunner,
    WorktreeManager,
    compute_status,
    validate_task_id,
)

__all__ = [
    # Errors
    "ConflictError",
    "Forbidden",
    "GitOperationError",
    "GuardianError",
    "NotFoundError",
    "StateUnavailable",
    "Unauthorized",
    "ValidationError",
    # Logging
    "GuardianLogger",
    "LogEntry",
    "LogLevel",
    "format_log_entries",
    "get_logger",
    "parse_log_entries",
    # Workflow state
    "DocumentStorage",
    "JsonFileStorage",
    "WorkflowState",
    "WorkflowStateStore",
    "WorktreeRecord",
    "WorktreeStatus",
    # Worktrees
    "GitRunner",
    "WorktreeManager",
    "compute_status",
    "validate_task_id",
]
