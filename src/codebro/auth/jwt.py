"""
Verification of access tokens issued by the identity provider.

This service never issues tokens. It only checks the signature, expiry and
audience of the bearer token and reads the identity claims out of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import jwt

from codebro.config import get_settings

ROLE_CLAIMS = ("app_role", "role")


@dataclass(frozen=True)
class Identity:
    """A verified caller. ``roles`` come from token claims only."""

    user_id: str
    email: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset)


def _roles_from(payload: dict[str, Any]) -> frozenset[str]:
    roles: set[str] = set()
    for claim in ROLE_CLAIMS:
        value = payload.get(claim)
        if isinstance(value, str):
            roles.add(value)
    app_metadata = payload.get("app_metadata")
    if isinstance(app_metadata, dict):
        extra = app_metadata.get("roles", [])
        if isinstance(extra, list):
            roles.update(r for r in extra if isinstance(r, str))
    return frozenset(roles)


def verify_token(token: str) -> Identity:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, for another
            audience, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    return Identity(
        user_id=str(payload["sub"]),
        email=payload.get("email"),
        roles=_roles_from(payload),
    )


def has_role(identity: Identity, role: str) -> bool:
    return role in identity.roles
