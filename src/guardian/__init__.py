"""Guardian - isolated worktrees, shared workflow state and activity timeline for parallel coding agents."""

__version__ = "0.1.0"
