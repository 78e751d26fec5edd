"""Comment parser for Guardian commands.

Parses ``@guardian <command> [args]`` mentions from GitHub issue/PR comments.
"""

import re
from typing import Optional

from pydantic import BaseModel

# Command pattern
COMMAND_PATTERN = re.compile(r"@guardian\s+(\w+)(?:\s+(.*))?", re.IGNORECASE)


class CommandDefinition(BaseModel):
    """A command Guardian knows how to route."""

    description: str
    agent_type: str
    auto_label: bool = False
    create_worktree: bool = False
    create_pr: bool = False
    requires_pr: bool = False


GUARDIAN_COMMANDS: dict[str, CommandDefinition] = {
    "investigate": CommandDefinition(
        description="Investigate the issue and create a plan",
        agent_type="rlm-adapter",
        auto_label=True,
    ),
    "fix": CommandDefinition(
        description="Create a fix for this issue",
        agent_type="implementer",
        create_worktree=True,
        create_pr=True,
    ),
    "triage": CommandDefinition(
        description="Analyze and label this issue",
        agent_type="triage",
        auto_label=True,
    ),
    "review": CommandDefinition(
        description="Review the linked PR",
        agent_type="reviewer",
        requires_pr=True,
    ),
    "plan": CommandDefinition(
        description="Create an implementation plan",
        agent_type="Plan",
        auto_label=True,
    ),
}


def parse_guardian_command(comment_body: object) -> Optional[tuple[str, str]]:
    """Parse a Guardian command from a comment.

    Examples:
    - "@guardian retry flaky-test" -> ("retry", "flaky-test")
    - "@Guardian FIX" -> ("fix", "")

    Returns:
        (command, args) with the command lower-cased, or None if no command found
    """
    if not isinstance(comment_body, str) or not comment_body:
        return None

    match = COMMAND_PATTERN.search(comment_body)
    if not match:
        return None

    command = match.group(1).lower()
    args = match.group(2).strip() if match.group(2) else ""
    return command, args
