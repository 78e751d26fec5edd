"""Worktree routes.

Handles:
- listing worktrees with reconciled status
- creating and cleaning up task worktrees
- marking a worktree completed
"""

import asyncio

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from guardian.api.auth import require_admin
from guardian.api.deps import get_worktree_manager
from guardian.core.state import WorktreeRecord
from guardian.core.worktree import WorktreeManager

router = APIRouter(
    prefix="/api/worktrees",
    tags=["worktrees"],
    dependencies=[Depends(require_admin)],
)


class CreateWorktreeRequest(BaseModel):
    """Request body for creating a worktree."""

    task_id: str = Field(min_length=1, max_length=128)
    agent: str = Field(default="implementer", min_length=1)


@router.get("")
async def list_worktrees(
    manager: WorktreeManager = Depends(get_worktree_manager),
) -> list[WorktreeRecord]:
    """List tracked worktrees."""
    return await asyncio.to_thread(manager.list)


@router.post("")
async def create_worktree(
    body: CreateWorktreeRequest,
    manager: WorktreeManager = Depends(get_worktree_manager),
) -> WorktreeRecord:
    """Create a worktree for a task."""
    return await asyncio.to_thread(manager.create, body.task_id, body.agent)


@router.get("/{task_id}")
async def get_worktree(
    task_id: str,
    manager: WorktreeManager = Depends(get_worktree_manager),
) -> WorktreeRecord:
    """Get one worktree."""
    return await asyncio.to_thread(manager.get, task_id)


@router.post("/{task_id}/complete")
async def complete_worktree(
    task_id: str,
    manager: WorktreeManager = Depends(get_worktree_manager),
) -> WorktreeRecord:
    """Mark a worktree's task as completed."""
    return await asyncio.to_thread(manager.mark_completed, task_id)


@router.delete("/{task_id}")
async def cleanup_worktree(
    task_id: str,
    manager: WorktreeManager = Depends(get_worktree_manager),
) -> dict:
    """Remove a worktree, its branch and its state entry."""
    await asyncio.to_thread(manager.cleanup, task_id)
    return {"status": "cleaned_up", "task_id": task_id}
