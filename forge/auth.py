"""Shared-token check in front of the execution endpoints.

Identity proper lives with the collaboration frontend; this only decides
whether a caller may execute at all. With no token configured the check is
off, matching a deployment where auth is handled upstream.
"""

import hmac

from forge.config import get_settings
from forge.errors import UnauthorizedError


def token_matches(candidate: str | None) -> bool:
    expected = get_settings().auth.api_token
    if not expected:
        return True
    return candidate is not None and hmac.compare_digest(candidate, expected)


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip()


def verify_token(authorization: str | None) -> None:
    """Raises UnauthorizedError unless the Authorization header carries the token."""
    if not get_settings().auth.enabled:
        return
    token = bearer_token(authorization)
    if token is None:
        raise UnauthorizedError(detail="No authorization token provided")
    if not token_matches(token):
        raise UnauthorizedError(detail="Invalid token")
