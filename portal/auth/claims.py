"""Read token claims *without* verifying them.

The result is only good for showing a name while the canonical identity is
still loading. Nothing here returns roles and nothing here may feed an
authorization decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DisplayHint:
    username: str | None
    display_name: str | None


def peek_claims(token: str | None) -> dict[str, Any]:
    if not token:
        return {}
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.debug("Token payload could not be decoded: %s", exc)
        return {}
    return claims if isinstance(claims, dict) else {}


def display_hint(token: str | None) -> DisplayHint | None:
    claims = peek_claims(token)
    if not claims:
        return None
    username = claims.get("preferred_username") or claims.get("sub")
    given, family = claims.get("given_name"), claims.get("family_name")
    if given and family:
        name = f"{given} {family}"
    else:
        name = claims.get("name") or username
    return DisplayHint(
        username=str(username) if username else None,
        display_name=str(name) if name else None,
    )
