"""GitHub webhook handler for Guardian.

Accepts signed GitHub webhooks and extracts ``@guardian <command> [args]``
from issue and PR comments:
- issue_comment.created -> queued command descriptor
- pull_request_review_comment -> queued command descriptor
- anything else -> ignored

Commands are only extracted and acknowledged here; an external executor
picks them up.

When no webhook secret is configured, signature verification is skipped.
That is an insecure development default: every such request is logged as a
warning, and ``require_webhook_secret`` turns it into a rejection.
"""

import hashlib
import hmac
import json
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends, Header, Request, Response
from pydantic import BaseModel

from guardian.config import Settings, settings
from guardian.core.exceptions import GuardianError, Unauthorized, ValidationError
from guardian.core.logger import WEBHOOK_NAMESPACE, GuardianLogger, get_logger
from guardian.core.timeutil import isoformat_utc, utc_now
from guardian.github.comment_parser import GUARDIAN_COMMANDS, parse_guardian_command

router = APIRouter(prefix="/webhooks/github", tags=["webhooks"])

COMMENT_EVENTS = ("issue_comment", "pull_request_review_comment")


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify GitHub webhook signature."""
    if not signature.startswith("sha256="):
        return False

    expected = hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()

    # Header values may carry non-ASCII characters; compare as bytes
    return hmac.compare_digest(
        f"sha256={expected}".encode(),
        signature.encode("utf-8", "surrogateescape"),
    )


class WebhookCommand(BaseModel):
    """A command extracted from a comment, ready for an executor."""

    status: str = "queued"
    command: str
    args: str
    issue: Optional[int] = None
    repo: Optional[str] = None
    event: Optional[str] = None
    author: Optional[str] = None
    comment_id: Optional[int] = None
    known: bool = False
    agent_type: Optional[str] = None


class WebhookCommandDispatcher:
    """Verifies webhook payloads and extracts Guardian commands."""

    def __init__(
        self,
        secret: Optional[str] = None,
        require_secret: bool = False,
        logger: Optional[GuardianLogger] = None,
    ):
        self.secret = secret or None
        self.require_secret = require_secret
        self.log = logger or get_logger(WEBHOOK_NAMESPACE)

    @classmethod
    def from_settings(cls, config: Settings) -> "WebhookCommandDispatcher":
        return cls(
            secret=config.webhook_secret,
            require_secret=config.require_webhook_secret,
        )

    def handle(
        self,
        raw_payload: Union[bytes, str],
        signature_header: Optional[str],
        event_header: Optional[str],
    ) -> dict[str, Any]:
        """Handle one webhook delivery.

        Args:
            raw_payload: Exact request body bytes (the signature covers these)
            signature_header: X-Hub-Signature-256 value
            event_header: X-GitHub-Event value

        Returns:
            ``{"status": "queued", "command", "args", "issue", "repo", ...}`` or
            ``{"status": "ignored"}``

        Raises:
            Unauthorized: signature missing or wrong; the payload is not parsed
            ValidationError: empty or non-JSON payload
        """
        payload = raw_payload.encode() if isinstance(raw_payload, str) else raw_payload

        self._verify(payload, signature_header, event_header)

        if not payload.strip():
            self.log.warn("Empty payload received", {"event": event_header})
            raise ValidationError("Empty payload")

        try:
            data = json.loads(payload)
        except ValueError as e:
            self.log.warn("Invalid JSON payload", {"event": event_header})
            raise ValidationError("Invalid JSON payload") from e

        if not isinstance(data, dict):
            self.log.warn("Payload is not an object", {"event": event_header})
            raise ValidationError("Invalid payload structure")

        # Deliveries without an event header are treated as comments
        if event_header is not None and event_header not in COMMENT_EVENTS:
            return {"status": "ignored"}

        return self._handle_comment(data, event_header)

    def _verify(
        self,
        payload: bytes,
        signature_header: Optional[str],
        event_header: Optional[str],
    ) -> None:
        if self.secret:
            if not signature_header or not verify_signature(payload, signature_header, self.secret):
                self.log.warn(
                    "Invalid webhook signature",
                    {"event": event_header, "signature_present": bool(signature_header)},
                )
                raise Unauthorized("Invalid signature")
            return

        if self.require_secret:
            self.log.error("Webhook secret is not configured")
            raise GuardianError("Webhook secret not configured on server")

        self.log.warn(
            "Webhook signature verification skipped: no secret configured",
            {"event": event_header},
        )

    def _handle_comment(self, data: dict[str, Any], event: Optional[str]) -> dict[str, Any]:
        comment = _as_dict(data.get("comment"))
        parsed = parse_guardian_command(comment.get("body"))
        if parsed is None:
            return {"status": "ignored"}

        command, args = parsed
        issue = _as_dict(data.get("issue")) or _as_dict(data.get("pull_request"))
        repo = _as_dict(data.get("repository")).get("full_name")
        definition = GUARDIAN_COMMANDS.get(command)

        result = WebhookCommand(
            command=command,
            args=args,
            issue=_as_int(issue.get("number")),
            repo=repo if isinstance(repo, str) else None,
            event=event,
            author=_as_dict(comment.get("user")).get("login"),
            comment_id=_as_int(comment.get("id")),
            known=definition is not None,
            agent_type=definition.agent_type if definition else None,
        )

        if definition is None:
            self.log.warn(
                "Unknown guardian command queued",
                {"command": command, "repo": result.repo, "issue": result.issue},
            )
        self.log.info(
            "Guardian command received",
            {
                "command": command,
                "args": args,
                "repo": result.repo,
                "issue": result.issue,
                "author": result.author,
            },
        )
        return result.model_dump()


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_dispatcher() -> WebhookCommandDispatcher:
    return WebhookCommandDispatcher.from_settings(settings)


@router.post("")
async def github_webhook(
    request: Request,
    x_github_event: Optional[str] = Header(None, alias="X-GitHub-Event"),
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
    dispatcher: WebhookCommandDispatcher = Depends(get_dispatcher),
):
    """Handle GitHub webhook events."""
    payload = await request.body()

    try:
        return dispatcher.handle(payload, x_hub_signature_256, x_github_event)
    except Unauthorized:
        # No diagnostic detail on signature failures
        return Response(status_code=401)


@router.get("")
async def github_webhook_health():
    """Webhook health check with the known command list."""
    return {
        "status": "ok",
        "timestamp": isoformat_utc(utc_now()),
        "commands": sorted(GUARDIAN_COMMANDS),
    }
