"""Error taxonomy shared by all Guardian components.

Every error carries the HTTP status code the API layer answers with.
"""

from typing import Optional, Sequence


class GuardianError(Exception):
    """Base class for Guardian errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GuardianError):
    """Malformed task id or request."""

    status_code = 400


class ConflictError(ValidationError):
    """Request collides with existing state (e.g. task id already tracked)."""

    status_code = 409


class NotFoundError(GuardianError):
    """Unknown task id."""

    status_code = 404


class GitOperationError(GuardianError):
    """A git subprocess exited non-zero, timed out, or could not start."""

    status_code = 500

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}: {self.stderr.strip()}"
        return self.message


class StateUnavailable(GuardianError):
    """Workflow state file is missing or corrupt."""

    status_code = 503


class Unauthorized(GuardianError):
    """Signature or credential mismatch."""

    status_code = 401


class Forbidden(GuardianError):
    """Authenticated identity lacks the required role."""

    status_code = 403
