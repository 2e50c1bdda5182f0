"""FastAPI authentication dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from codebro.auth.jwt import Identity, has_role, verify_token
from codebro.errors import Forbidden, Unauthorized

_bearer = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> Identity:
    """Verify the bearer token. Raises 401 when it is missing or invalid."""
    if credentials is None:
        raise Unauthorized()
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise Unauthorized(str(e)) from e


async def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> Identity | None:
    """Identity if a valid token is present, None otherwise (public endpoints)."""
    if credentials is None:
        return None
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError:
        return None


def require_role(role: str) -> Callable[..., Awaitable[Identity]]:
    """Dependency factory: 401 without identity, 403 without ``role``."""

    async def _require(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not has_role(identity, role):
            raise Forbidden(f"{role.capitalize()} access required")
        return identity

    return _require
