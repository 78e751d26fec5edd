"""Shared workflow state for Guardian.

One JSON document (memory/workflow-state.json) describes the current
session and every tracked worktree. It is loaded fresh at the start of each
operation, mutated in memory and written back in full.

Mutations go through ``WorkflowStateStore.transaction()``, which holds an
exclusive lock on the document for the whole read-modify-write so that
concurrent create/cleanup calls cannot lose each other's updates.
"""

import fcntl
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, ContextManager, Iterator, Optional, Protocol

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from guardian.config import settings
from guardian.core.exceptions import StateUnavailable
from guardian.core.logger import STATE_NAMESPACE, GuardianLogger, get_logger


class WorktreeStatus(str, Enum):
    """Worktree status. Only COMPLETED is meaningful when stored."""

    ACTIVE = "active"
    COMPLETED = "completed"
    STALE = "stale"
    MISSING = "missing"


class WorktreeRecord(BaseModel):
    """A tracked worktree as stored in the workflow state."""

    model_config = ConfigDict(extra="allow")

    task_id: str = Field(validation_alias=AliasChoices("task_id", "name", "id"))
    branch: str = ""
    path: str = ""
    agent: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("agent", "assigned_agent"),
    )
    created_at: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt"),
    )
    status: WorktreeStatus = WorktreeStatus.ACTIVE

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        # Other writers use their own status words; only ours carry meaning
        valid = {s.value for s in WorktreeStatus}
        if isinstance(value, WorktreeStatus) or value in valid:
            return value
        return WorktreeStatus.ACTIVE


class WorkflowState(BaseModel):
    """The workflow-state.json document."""

    model_config = ConfigDict(extra="allow")

    session_id: Optional[str] = None
    current_prp_step: int = 0
    total_prp_steps: int = 0
    files_changed: int = 0
    last_commit_time: Optional[str] = None
    last_test_time: Optional[str] = None
    context_pressure: float = 0.0
    active_worktrees: list[WorktreeRecord] = Field(default_factory=list)
    pending_nudges: list[str] = Field(default_factory=list)
    errors_detected: list[str] = Field(default_factory=list)
    lsp_diagnostics_count: int = 0

    # Incremented on every save
    version: int = 0

    def find_worktree(self, task_id: str) -> Optional[WorktreeRecord]:
        for record in self.active_worktrees:
            if record.task_id == task_id:
                return record
        return None

    def add_worktree(self, record: WorktreeRecord) -> None:
        self.active_worktrees.append(record)

    def remove_worktree(self, task_id: str) -> bool:
        """Remove a worktree entry. Returns True if one was removed."""
        before = len(self.active_worktrees)
        self.active_worktrees = [w for w in self.active_worktrees if w.task_id != task_id]
        return len(self.active_worktrees) != before


# =============================================================================
# Storage
# =============================================================================


class DocumentStorage(Protocol):
    """Persistence for one small JSON document."""

    def exists(self) -> bool:
        ...

    def read(self) -> str:
        """Return the document text. Raises FileNotFoundError when absent."""
        ...

    def write(self, text: str) -> None:
        """Replace the whole document."""
        ...

    def lock(self) -> ContextManager[None]:
        """Exclusive lock held across a read-modify-write."""
        ...


class JsonFileStorage:
    """Document storage backed by a file on the local filesystem."""

    def __init__(self, path: Path):
        self.path = path
        self.lock_path = path.with_name(path.name + ".lock")

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        """Write the document (atomic write via temp file)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(self.path)

    @contextmanager
    def lock(self) -> Iterator[None]:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


# =============================================================================
# Store
# =============================================================================


class WorkflowStateStore:
    """Loads and saves the shared workflow state."""

    def __init__(
        self,
        storage: Optional[DocumentStorage] = None,
        logger: Optional[GuardianLogger] = None,
    ):
        self.storage = storage or JsonFileStorage(settings.workflow_state_path)
        self.log = logger or get_logger(STATE_NAMESPACE)

    def load(self) -> WorkflowState:
        """Load the state document.

        Raises:
            StateUnavailable: the document is missing, unreadable or corrupt
        """
        try:
            content = self.storage.read()
        except FileNotFoundError as e:
            raise StateUnavailable("Workflow state not found") from e
        except (OSError, UnicodeDecodeError) as e:
            raise StateUnavailable(f"Workflow state unreadable: {e}") from e

        try:
            return WorkflowState.model_validate_json(content)
        except PydanticValidationError as e:
            raise StateUnavailable("Workflow state is corrupt") from e

    def load_or_default(self) -> WorkflowState:
        """Load the state, starting from an empty one if none exists yet.

        A corrupt document still raises StateUnavailable.
        """
        if not self.storage.exists():
            self.log.info("No workflow state found, starting fresh")
            return WorkflowState()
        return self.load()

    def save(self, state: WorkflowState) -> None:
        """Write the whole state document, bumping its version."""
        state.version += 1
        self.storage.write(state.model_dump_json(indent=2) + "\n")
        self.log.debug(
            "Saved workflow state",
            {"version": state.version, "worktrees": len(state.active_worktrees)},
        )

    @contextmanager
    def transaction(self, create_missing: bool = False) -> Iterator[WorkflowState]:
        """Locked load-mutate-save.

        The yielded state is saved when the block exits normally and
        discarded if it raises.
        """
        with self.storage.lock():
            state = self.load_or_default() if create_missing else self.load()
            yield state
            self.save(state)
