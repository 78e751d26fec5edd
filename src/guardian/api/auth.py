"""Identity check for the Guardian API.

Guardian does not issue sessions. It only asks two questions of each
request: is the caller authenticated, and what role does it have.
When ``api_token`` is unset the API is open (local development).
"""

import hmac
from typing import Optional

from fastapi import Depends, Header
from pydantic import BaseModel

from guardian.config import settings
from guardian.core.exceptions import Forbidden, Unauthorized


class Identity(BaseModel):
    """The caller as seen by Guardian."""

    authenticated: bool
    role: str = "admin"


def get_identity(
    authorization: Optional[str] = Header(None),
    x_guardian_role: Optional[str] = Header(None, alias="X-Guardian-Role"),
) -> Identity:
    """Resolve the caller from the Authorization and X-Guardian-Role headers."""
    if settings.api_token is None:
        return Identity(authenticated=True, role=x_guardian_role or "admin")

    scheme, _, token = (authorization or "").partition(" ")
    expected = settings.api_token.get_secret_value()
    authenticated = scheme.lower() == "bearer" and hmac.compare_digest(
        token.strip().encode(), expected.encode()
    )
    return Identity(authenticated=authenticated, role=x_guardian_role or "admin")


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Dependency for routes that mutate or expose agent state."""
    if not identity.authenticated:
        raise Unauthorized("Not authenticated")
    if identity.role != "admin":
        raise Forbidden("Admin role required")
    return identity
