"""GitHub integration for Guardian.

Verifies GitHub webhooks and extracts @guardian commands from comments.
"""

from guardian.github.webhook import (
    router as webhook_router,
    WebhookCommand,
    WebhookCommandDispatcher,
    verify_signature,
)
from guardian.github.comment_parser import (
    GUARDIAN_COMMANDS,
    CommandDefinition,
    parse_guardian_command,
)

__all__ = [
    "webhook_router",
    "WebhookCommand",
    "WebhookCommandDispatcher",
    "verify_signature",
    "GUARDIAN_COMMANDS",
    "CommandDefinition",
    "parse_guardian_command",
]
