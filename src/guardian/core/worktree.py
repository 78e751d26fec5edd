"""Worktree management for Guardian.

Each task gets its own git worktree on a ``task/<id>`` branch, next to the
main checkout, so parallel agents never share a working directory.

Create is strict: if git fails nothing is recorded. Cleanup is lenient: git
failures are logged and ignored, and the entry is always dropped from the
workflow state.
"""

import re
import subprocess
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

from guardian.config import settings
from guardian.core.exceptions import (
    ConflictError,
    GitOperationError,
    NotFoundError,
    StateUnavailable,
    ValidationError,
)
from guardian.core.logger import WORKTREE_NAMESPACE, GuardianLogger, get_logger
from guardian.core.state import WorkflowStateStore, WorktreeRecord, WorktreeStatus
from guardian.core.timeutil import isoformat_utc, parse_timestamp, utc_now

TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_task_id(task_id: str) -> None:
    """Raise ValidationError unless task_id is safe for branch and path names."""
    if not isinstance(task_id, str) or not TASK_ID_PATTERN.fullmatch(task_id):
        raise ValidationError(f"Invalid task ID format: {task_id!r}")


def normalize_path(path: Union[str, Path]) -> str:
    """Absolute path with symlinks resolved, as git reports worktree paths."""
    return str(Path(path).resolve())


def compute_status(
    record: WorktreeRecord,
    live_paths: Iterable[str],
    now: datetime,
    stale_after: timedelta,
) -> WorktreeStatus:
    """Derive the current status of a worktree.

    Args:
        record: The stored record
        live_paths: Normalized paths from ``git worktree list``
        now: Current time (aware)
        stale_after: Age after which a live worktree counts as abandoned

    Returns:
        MISSING if git no longer knows the path, else STALE if too old,
        else the stored COMPLETED, else ACTIVE
    """
    if not record.path or normalize_path(record.path) not in set(live_paths):
        return WorktreeStatus.MISSING

    created_at = parse_timestamp(record.created_at)
    if created_at is not None and now - created_at > stale_after:
        return WorktreeStatus.STALE

    if record.status == WorktreeStatus.COMPLETED:
        return WorktreeStatus.COMPLETED
    return WorktreeStatus.ACTIVE


class GitRunner:
    """Runs git commands against the main checkout."""

    def __init__(self, repo_root: Optional[Path] = None, timeout: Optional[float] = None):
        self.repo_root = repo_root or settings.repo_root
        self.timeout = timeout or settings.git_timeout_seconds

    def run(self, args: list[str]) -> str:
        """Run a git command and return its stdout.

        Raises:
            GitOperationError: non-zero exit, timeout, or git not runnable
        """
        cmd = ["git", *args]
        try:
            proc = subprocess.run(
                cmd,
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise GitOperationError(
                f"Git command timed out after {self.timeout} seconds",
                command=cmd,
                stderr=_as_text(e.stderr),
            ) from e
        except OSError as e:
            raise GitOperationError(f"Git command could not start: {e}", command=cmd) from e

        if proc.returncode != 0:
            raise GitOperationError(
                "Git command failed",
                command=cmd,
                returncode=proc.returncode,
                stderr=proc.stderr or "",
            )

        return proc.stdout or ""

    def list_worktree_paths(self) -> set[str]:
        """Paths of all worktrees git currently knows about."""
        output = self.run(["worktree", "list", "--porcelain"])
        return {
            normalize_path(line[len("worktree "):])
            for line in output.splitlines()
            if line.startswith("worktree ")
        }


def _as_text(value: Union[str, bytes, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


class WorktreeManager:
    """Creates, lists and cleans up task worktrees."""

    def __init__(
        self,
        store: Optional[WorkflowStateStore] = None,
        git: Optional[GitRunner] = None,
        worktrees_dir: Optional[Path] = None,
        branch_prefix: Optional[str] = None,
        stale_after: Optional[timedelta] = None,
        logger: Optional[GuardianLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store or WorkflowStateStore()
        self.git = git or GitRunner()
        self.worktrees_dir = Path(worktrees_dir or settings.resolved_worktrees_dir).resolve()
        self.branch_prefix = settings.branch_prefix if branch_prefix is None else branch_prefix
        self.stale_after = stale_after or timedelta(hours=settings.stale_after_hours)
        self.log = logger or get_logger(WORKTREE_NAMESPACE)
        self.clock = clock

    def branch_for(self, task_id: str) -> str:
        return f"{self.branch_prefix}{task_id}"

    def path_for(self, task_id: str) -> Path:
        return self.worktrees_dir / task_id

    def create(self, task_id: str, agent: str) -> WorktreeRecord:
        """Create a worktree for a task and start tracking it.

        Args:
            task_id: Task identifier (letters, digits, "_" and "-")
            agent: Identity of the agent that will work in it

        Returns:
            The new record with status ACTIVE

        Raises:
            ValidationError: malformed task id
            ConflictError: task id already tracked
            GitOperationError: ``git worktree add`` failed; nothing is recorded
        """
        validate_task_id(task_id)
        branch = self.branch_for(task_id)
        path = self.path_for(task_id)

        with self.store.transaction(create_missing=True) as state:
            if state.find_worktree(task_id) is not None:
                raise ConflictError(f"Worktree '{task_id}' already exists")

            self.worktrees_dir.mkdir(parents=True, exist_ok=True)
            try:
                self.git.run(["worktree", "add", "-b", branch, str(path), "HEAD"])
            except GitOperationError as e:
                self.log.error(
                    "Failed to create worktree",
                    {"task_id": task_id, "branch": branch, "stderr": e.stderr},
                )
                raise

            record = WorktreeRecord(
                task_id=task_id,
                branch=branch,
                path=str(path),
                agent=agent,
                created_at=isoformat_utc(self.clock()),
                status=WorktreeStatus.ACTIVE,
            )
            state.add_worktree(record)

        self.log.info(
            "Created worktree",
            {"task_id": task_id, "branch": branch, "path": str(path), "agent": agent},
        )
        return record

    def cleanup(self, task_id: str) -> None:
        """Remove a task's worktree and branch and stop tracking it.

        Git failures are ignored; the worktree or branch may already be
        gone. The state entry is removed regardless.

        Raises:
            NotFoundError: task id is not tracked
        """
        with self.store.transaction() as state:
            record = state.find_worktree(task_id)
            if record is None:
                raise NotFoundError(f"Worktree '{task_id}' not found")

            if record.path:
                self._try_git(["worktree", "remove", "--force", record.path], task_id)
            if record.branch:
                self._try_git(["branch", "-D", record.branch], task_id)

            state.remove_worktree(task_id)

        self.log.info("Cleaned up worktree", {"task_id": task_id})

    def list(self) -> list[WorktreeRecord]:
        """All tracked worktrees with reconciled status.

        The recomputed status is not persisted. An unavailable state file
        yields an empty list.
        """
        try:
            state = self.store.load()
        except StateUnavailable as e:
            self.log.warn("Failed to get worktrees", {"error": str(e)})
            return []

        if not state.active_worktrees:
            return []

        live_paths = self._live_paths()
        now = self.clock()
        return [
            record.model_copy(
                update={"status": compute_status(record, live_paths, now, self.stale_after)}
            )
            for record in state.active_worktrees
        ]

    def get(self, task_id: str) -> WorktreeRecord:
        for record in self.list():
            if record.task_id == task_id:
                return record
        raise NotFoundError(f"Worktree '{task_id}' not found")

    def mark_completed(self, task_id: str) -> WorktreeRecord:
        """Persist COMPLETED for a tracked worktree."""
        with self.store.transaction() as state:
            record = state.find_worktree(task_id)
            if record is None:
                raise NotFoundError(f"Worktree '{task_id}' not found")
            record.status = WorktreeStatus.COMPLETED

        self.log.info("Marked worktree completed", {"task_id": task_id})
        return record

    def _live_paths(self) -> set[str]:
        try:
            return self.git.list_worktree_paths()
        except GitOperationError as e:
            self.log.warn("Failed to list git worktrees", {"error": str(e)})
            return set()

    def _try_git(self, args: Sequence[str], task_id: str) -> None:
        try:
            self.git.run(list(args))
        except GitOperationError as e:
            self.log.warn(
                "Ignoring git failure during cleanup",
                {"task_id": task_id, "command": " ".join(e.command), "stderr": e.stderr},
            )
