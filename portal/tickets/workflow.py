from __future__ import annotations

import logging
from typing import Awaitable, Callable

from portal.auth.context import AuthContext
from portal.auth.sessions import Identity
from portal.errors import PortalError, describe_error
from portal.notifications import NotificationCenter

from .models import Ticket
from .state import TicketStateMachine

logger = logging.getLogger(__name__)


class TicketWorkflow:
    """Ticket actions performed on behalf of the current identity.

    Wraps :class:`TicketStateMachine` with the actor from :class:`AuthContext`
    and reports the outcome through the notification center. Errors are
    reported and then re-raised to the caller.
    """

    def __init__(
        self,
        machine: TicketStateMachine,
        auth: AuthContext,
        notifications: NotificationCenter,
    ) -> None:
        self._machine = machine
        self._auth = auth
        self._notifications = notifications

    def _actor(self) -> tuple[str | None, frozenset]:
        identity: Identity | None = self._auth.identity
        if identity is None:
            return None, frozenset()
        return identity.user_id, identity.roles

    def can_submit(self, ticket: Ticket) -> bool:
        actor_id, _ = self._actor()
        return self._machine.can_submit(ticket, actor_id)

    def can_decide(self, ticket: Ticket) -> bool:
        actor_id, roles = self._actor()
        return self._machine.can_decide(ticket, actor_id, roles)

    def can_complete(self, ticket: Ticket) -> bool:
        actor_id, roles = self._actor()
        return self._machine.can_complete(ticket, actor_id, roles)

    async def submit(self, ticket: Ticket) -> Ticket:
        actor_id, _ = self._actor()
        return await self._run(
            lambda: self._machine.submit(ticket, actor_id),
            "Ticket submitted for approval.",
        )

    async def approve(self, ticket: Ticket) -> Ticket:
        actor_id, roles = self._actor()
        return await self._run(
            lambda: self._machine.approve(ticket, actor_id, roles),
            "Ticket approved.",
        )

    async def reject(self, ticket: Ticket, reason: str) -> Ticket:
        actor_id, roles = self._actor()
        return await self._run(
            lambda: self._machine.reject(ticket, actor_id, roles, reason),
            "Ticket rejected.",
        )

    async def complete(self, ticket: Ticket) -> Ticket:
        actor_id, roles = self._actor()
        return await self._run(
            lambda: self._machine.complete(ticket, actor_id, roles),
            "Ticket closed.",
        )

    async def _run(self, action: Callable[[], Awaitable[Ticket]], success: str) -> Ticket:
        try:
            ticket = await action()
        except PortalError as exc:
            logger.info("Ticket action failed: %s", exc)
            self._notifications.error(describe_error(exc))
            raise
        self._notifications.success(success)
        return ticket
