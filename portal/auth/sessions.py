from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable

from .roles import Role

logger = logging.getLogger(__name__)


class SessionKind(str, Enum):
    CUSTOM = "custom"
    SSO = "sso"


@dataclass(frozen=True, slots=True)
class Identity:
    """The authenticated actor as seen by every consumer of ``AuthContext``."""

    user_id: str
    username: str
    roles: frozenset[Role]
    token: str
    source: SessionKind
    display_name: str | None = None

    def has_role(self, role: Role) -> bool:
        return role in self.roles


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Outcome of a credential login against the portal backend."""

    user_id: str
    username: str
    roles: tuple[str, ...]
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    display_name: str | None = None


class CustomSession:
    """Session obtained by logging in with portal credentials."""

    kind = SessionKind.CUSTOM

    def __init__(self) -> None:
        self._identity: Identity | None = None

    def current(self) -> Identity | None:
        return self._identity

    def establish(
        self,
        *,
        user_id: str,
        username: str,
        roles: Iterable[Role],
        token: str,
        display_name: str | None = None,
    ) -> Identity:
        if not token:
            raise ValueError("A custom session requires an access token")
        self._identity = Identity(
            user_id=user_id,
            username=username,
            roles=frozenset(roles),
            token=token,
            source=self.kind,
            display_name=display_name,
        )
        logger.info("Custom session established for %s", username)
        return self._identity

    def clear(self) -> None:
        self._identity = None


class SsoSession:
    """Session held by the federated identity provider adapter.

    ``begin`` stores a token whose claims have not been verified yet; only
    ``confirm`` (called once the provider has validated the token) produces an
    :class:`Identity`.
    """

    kind = SessionKind.SSO

    def __init__(self) -> None:
        self._identity: Identity | None = None
        self._pending_token: str | None = None

    @property
    def pending_token(self) -> str | None:
        return self._pending_token

    def current(self) -> Identity | None:
        return self._identity

    def begin(self, token: str) -> None:
        self._pending_token = token

    def confirm(
        self,
        *,
        user_id: str,
        username: str,
        roles: Iterable[Role],
        token: str | None = None,
        display_name: str | None = None,
    ) -> Identity:
        access_token = token or self._pending_token
        if not access_token:
            raise ValueError("No SSO token to confirm")
        self._identity = Identity(
            user_id=user_id,
            username=username,
            roles=frozenset(roles),
            token=access_token,
            source=self.kind,
            display_name=display_name,
        )
        self._pending_token = None
        logger.info("SSO session confirmed for %s", username)
        return self._identity

    def refresh_token(self, token: str) -> Identity | None:
        if self._identity is None:
            self._pending_token = token
            return None
        self._identity = replace(self._identity, token=token)
        return self._identity

    def clear(self) -> None:
        self._identity = None
        self._pending_token = None
