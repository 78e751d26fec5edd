"""Configuration management for Guardian."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Guardian"
    debug: bool = False

    # Paths
    repo_root: Path = Field(
        default_factory=Path.cwd,
        description="Main checkout that worktrees are branched from",
    )
    memory_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding workflow state and logs (default: <repo_root>/memory)",
    )
    worktrees_dir: Optional[Path] = Field(
        default=None,
        description="Parent directory for task worktrees (default: sibling of repo_root)",
    )

    # Worktrees
    branch_prefix: str = Field(
        default="task/",
        description="Prefix for task branches",
    )
    stale_after_hours: float = Field(
        default=72.0,
        gt=0,
        description="Age after which a live worktree is reported as stale",
    )
    git_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Maximum time for a single git subprocess",
    )

    # Logging
    log_level: Literal["debug", "info", "warn", "error"] = Field(
        default="info",
        description="Minimum level written to the structured guardian log",
    )
    log_to_console: bool = Field(
        default=True,
        description="Forward structured log entries to the standard logging module",
    )

    # Timeline
    timeline_day_boundary: Literal["local", "utc"] = Field(
        default="local",
        description="Where the 'today' range starts: local or UTC midnight",
    )
    timeline_default_limit: int = Field(default=100, ge=1)

    # GitHub webhook
    github_webhook_secret: Optional[SecretStr] = Field(
        default=None,
        description="Webhook secret; when unset, signature verification is skipped (insecure)",
    )
    require_webhook_secret: bool = Field(
        default=False,
        description="Reject webhooks when no secret is configured",
    )

    # API
    api_token: Optional[SecretStr] = Field(
        default=None,
        description="Bearer token required by the /api routes (open when unset)",
    )

    # Web server
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def resolved_memory_dir(self) -> Path:
        return self.memory_dir or self.repo_root / "memory"

    @property
    def resolved_worktrees_dir(self) -> Path:
        if self.worktrees_dir is not None:
            return self.worktrees_dir
        root = self.repo_root.resolve()
        return root.parent / f"{root.name}-worktrees"

    @property
    def workflow_state_path(self) -> Path:
        return self.resolved_memory_dir / "workflow-state.json"

    @property
    def log_path(self) -> Path:
        return self.resolved_memory_dir / "guardian.log"

    @property
    def tool_log_path(self) -> Path:
        return self.resolved_memory_dir / "tool-log.txt"

    @property
    def nudges_path(self) -> Path:
        return self.resolved_memory_dir / "guardian-nudges.jsonl"

    @property
    def context_ledger_path(self) -> Path:
        return self.resolved_memory_dir / "context-ledger.json"

    @property
    def webhook_secret(self) -> Optional[str]:
        if self.github_webhook_secret is None:
            return None
        return self.github_webhook_secret.get_secret_value() or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
