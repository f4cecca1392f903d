from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from portal.events import EventBus

from .claims import display_hint
from .roles import parse_roles
from .sessions import CustomSession, Identity, LoginResult, SessionKind, SsoSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthChanged:
    previous: Identity | None
    current: Identity | None


class AuthContext:
    """Single source of the current identity.

    The custom (credential) session wins over the SSO session whenever both
    are present. Consumers read :attr:`identity` / :attr:`token` and subscribe
    to :attr:`bus` for changes; they never touch the sessions directly.
    """

    def __init__(
        self,
        custom: CustomSession | None = None,
        sso: SsoSession | None = None,
        *,
        bus: EventBus[AuthChanged] | None = None,
        legacy_substring_match: bool = False,
    ) -> None:
        self._custom = custom or CustomSession()
        self._sso = sso or SsoSession()
        self.bus: EventBus[AuthChanged] = bus or EventBus("auth")
        self._legacy_substring_match = legacy_substring_match

    @property
    def identity(self) -> Identity | None:
        return self._custom.current() or self._sso.current()

    @property
    def token(self) -> str | None:
        identity = self.identity
        return identity.token if identity is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def display_name(self) -> str | None:
        identity = self.identity
        if identity is not None:
            return identity.display_name or identity.username
        hint = display_hint(self._sso.pending_token)
        return hint.display_name if hint is not None else None

    def sign_in_custom(self, result: LoginResult) -> Identity:
        previous = self.identity
        identity = self._custom.establish(
            user_id=result.user_id,
            username=result.username,
            roles=parse_roles(result.roles, legacy_substring_match=self._legacy_substring_match),
            token=result.access_token,
            display_name=result.display_name,
        )
        self._announce(previous)
        return identity

    def begin_sso(self, token: str) -> None:
        """Record an SSO token awaiting verification by the identity provider."""

        self._sso.begin(token)

    def confirm_sso(
        self,
        *,
        user_id: str,
        username: str,
        roles: Iterable[str],
        token: str | None = None,
        display_name: str | None = None,
    ) -> Identity:
        previous = self.identity
        identity = self._sso.confirm(
            user_id=user_id,
            username=username,
            roles=parse_roles(roles, legacy_substring_match=self._legacy_substring_match),
            token=token,
            display_name=display_name,
        )
        self._announce(previous)
        return identity

    def refresh_sso_token(self, token: str) -> None:
        previous = self.identity
        self._sso.refresh_token(token)
        self._announce(previous)

    def sign_out(self, kind: SessionKind | None = None) -> None:
        """Clear one session, or both when ``kind`` is ``None``."""

        previous = self.identity
        if kind in (None, SessionKind.CUSTOM):
            self._custom.clear()
        if kind in (None, SessionKind.SSO):
            self._sso.clear()
        self._announce(previous)

    def _announce(self, previous: Identity | None) -> None:
        current = self.identity
        if current == previous:
            return
        logger.info(
            "Identity changed: %s -> %s",
            previous.username if previous else None,
            f"{current.username} ({current.source.value})" if current else None,
        )
        self.bus.publish(AuthChanged(previous=previous, current=current))
