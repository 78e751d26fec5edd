"""API routes for Guardian.

Includes:
- worktrees: create / list / complete / cleanup
- timeline: activity timeline and structured log queries
"""

from guardian.api.timeline import router as timeline_router
from guardian.api.worktrees import router as worktrees_router

__all__ = ["timeline_router", "worktrees_router"]
