from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from guardian.config import settings
from guardian.core.exceptions import GitOperationError
from guardian.core.logger import GuardianLogger, get_logger
from guardian.core.state import JsonFileStorage, WorkflowStateStore
from guardian.core.worktree import WorktreeManager, normalize_path

NOW = datetime(2026, 1, 23, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGit:
    """Stands in for GitRunner; tracks which worktree paths git knows about."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.live: set[str] = set()
        self.failures: dict[tuple[str, str], str] = {}

    def fail(self, *subcommand: str, stderr: str = "fatal: boom") -> None:
        self.failures[tuple(subcommand)] = stderr

    def _check(self, args: list[str]) -> None:
        key = tuple(args[:2])
        if key in self.failures:
            raise GitOperationError(
                "Git command failed",
                command=["git", *args],
                returncode=128,
                stderr=self.failures[key],
            )

    def run(self, args: list[str]) -> str:
        self.calls.append(list(args))
        self._check(args)
        if args[:2] == ["worktree", "add"]:
            self.live.add(normalize_path(args[4]))
        elif args[:2] == ["worktree", "remove"]:
            self.live.discard(normalize_path(args[3]))
        return ""

    def list_worktree_paths(self) -> set[str]:
        self._check(["worktree", "list"])
        return set(self.live)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch):
    """Keep default loggers and paths inside tmp_path."""
    monkeypatch.setattr(settings, "repo_root", tmp_path / "repo")
    monkeypatch.setattr(settings, "memory_dir", tmp_path / "memory")
    monkeypatch.setattr(settings, "worktrees_dir", tmp_path / "worktrees")
    monkeypatch.setattr(settings, "log_to_console", False)
    monkeypatch.setattr(settings, "github_webhook_secret", None)
    monkeypatch.setattr(settings, "api_token", None)
    get_logger.cache_clear()
    yield
    get_logger.cache_clear()


@pytest.fixture
def memory_dir(tmp_path: Path) -> Path:
    path = tmp_path / "memory"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def log_path(memory_dir: Path) -> Path:
    return memory_dir / "guardian.log"


@pytest.fixture
def make_logger(log_path: Path):
    def _make(namespace: str = "guardian.test", min_level: str = "debug") -> GuardianLogger:
        return GuardianLogger(namespace, log_path=log_path, min_level=min_level, console=False)

    return _make


@pytest.fixture
def state_path(memory_dir: Path) -> Path:
    return memory_dir / "workflow-state.json"


@pytest.fixture
def store(state_path: Path, make_logger) -> WorkflowStateStore:
    return WorkflowStateStore(JsonFileStorage(state_path), logger=make_logger("guardian.state"))


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def worktrees_dir(tmp_path: Path) -> Path:
    return tmp_path / "repo-worktrees"


@pytest.fixture
def manager(store, git, worktrees_dir, clock, make_logger) -> WorktreeManager:
    return WorktreeManager(
        store=store,
        git=git,
        worktrees_dir=worktrees_dir,
        branch_prefix="task/",
        stale_after=timedelta(hours=72),
        logger=make_logger("guardian.worktree"),
        clock=clock,
    )
