from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Protocol

from opentelemetry import trace

from portal.auth.roles import Role, has_checker_capability
from portal.errors import AuthorizationError, ValidationError

from .models import MAX_REJECTION_REASON_LENGTH, Ticket, TicketId, TicketStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TicketTransitionGateway(Protocol):
    async def get_ticket(self, ticket_id: TicketId) -> Ticket: ...

    async def submit(self, ticket_id: TicketId) -> Ticket: ...

    async def approve(self, ticket_id: TicketId) -> Ticket: ...

    async def reject(self, ticket_id: TicketId, reason: str) -> Ticket: ...

    async def complete(self, ticket_id: TicketId) -> Ticket: ...


class TicketStateMachine:
    """Authorization and transition rules of the maker/checker lifecycle.

    The predicates are pure. The transition methods check them locally, issue
    a single gateway call and then reload the ticket, returning whatever the
    server reports. Local failures never reach the gateway; gateway failures
    propagate unchanged and are not retried.
    """

    _TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
        TicketStatus.DRAFT: frozenset({TicketStatus.SUBMITTED}),
        TicketStatus.SUBMITTED: frozenset({TicketStatus.APPROVED, TicketStatus.REJECTED}),
        TicketStatus.REJECTED: frozenset({TicketStatus.SUBMITTED}),
        TicketStatus.APPROVED: frozenset({TicketStatus.COMPLETED}),
        TicketStatus.COMPLETED: frozenset(),
    }

    def __init__(self, gateway: TicketTransitionGateway) -> None:
        self._gateway = gateway

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.DRAFT

    @classmethod
    def can_transition(cls, current: TicketStatus, target: TicketStatus) -> bool:
        return target in cls._TRANSITIONS.get(current, frozenset())

    @classmethod
    def assert_transition(cls, current: TicketStatus, target: TicketStatus) -> None:
        if not cls.can_transition(current, target):
            raise ValueError(f"Invalid ticket status transition: {current.value} -> {target.value}")

    @staticmethod
    def can_submit(ticket: Ticket, actor_id: str | None) -> bool:
        return (
            actor_id is not None
            and ticket.status in (TicketStatus.DRAFT, TicketStatus.REJECTED)
            and actor_id == ticket.maker
        )

    @staticmethod
    def can_decide(ticket: Ticket, actor_id: str | None, actor_roles: Iterable[Role]) -> bool:
        return (
            actor_id is not None
            and ticket.status is TicketStatus.SUBMITTED
            and has_checker_capability(actor_roles)
            and actor_id != ticket.maker
        )

    @staticmethod
    def can_complete(ticket: Ticket, actor_id: str | None, actor_roles: Iterable[Role]) -> bool:
        if actor_id is None or ticket.status is not TicketStatus.APPROVED:
            return False
        return actor_id == ticket.maker or Role.ADMIN in set(actor_roles)

    async def submit(self, ticket: Ticket, actor_id: str | None) -> Ticket:
        if not self.can_submit(ticket, actor_id):
            raise AuthorizationError(f"{actor_id or 'Anonymous'} may not submit ticket {ticket.id} ({ticket.status.value})")
        return await self._transition(ticket, TicketStatus.SUBMITTED, actor_id, self._gateway.submit)

    async def approve(self, ticket: Ticket, actor_id: str | None, actor_roles: Iterable[Role]) -> Ticket:
        if not self.can_decide(ticket, actor_id, actor_roles):
            raise AuthorizationError(self._decision_denied(ticket, actor_id))
        return await self._transition(ticket, TicketStatus.APPROVED, actor_id, self._gateway.approve)

    async def reject(
        self,
        ticket: Ticket,
        actor_id: str | None,
        actor_roles: Iterable[Role],
        reason: str | None,
    ) -> Ticket:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("A rejection reason is required")
        if len(cleaned) > MAX_REJECTION_REASON_LENGTH:
            raise ValidationError(f"The rejection reason must be at most {MAX_REJECTION_REASON_LENGTH} characters")
        if not self.can_decide(ticket, actor_id, actor_roles):
            raise AuthorizationError(self._decision_denied(ticket, actor_id))

        async def send(ticket_id: TicketId) -> Ticket:
            return await self._gateway.reject(ticket_id, cleaned)

        return await self._transition(ticket, TicketStatus.REJECTED, actor_id, send)

    async def complete(self, ticket: Ticket, actor_id: str | None, actor_roles: Iterable[Role]) -> Ticket:
        if not self.can_complete(ticket, actor_id, actor_roles):
            raise AuthorizationError(f"{actor_id or 'Anonymous'} may not close ticket {ticket.id} ({ticket.status.value})")
        return await self._transition(ticket, TicketStatus.COMPLETED, actor_id, self._gateway.complete)

    async def _transition(
        self,
        ticket: Ticket,
        target: TicketStatus,
        actor_id: str | None,
        send: Callable[[TicketId], Awaitable[Ticket]],
    ) -> Ticket:
        with tracer.start_as_current_span("ticket.transition") as span:
            span.set_attribute("ticket.id", str(ticket.id))
            span.set_attribute("ticket.target_status", target.value)
            logger.info("%s requests %s -> %s for ticket %s", actor_id, ticket.status.value, target.value, ticket.id)

            # The echoed representation is not trusted; reload instead.
            await send(ticket.id)
            reloaded = await self._gateway.get_ticket(ticket.id)

            if reloaded.status is not target:
                logger.info(
                    "Ticket %s is %s after requesting %s; keeping server state",
                    ticket.id,
                    reloaded.status.value,
                    target.value,
                )
            for problem in reloaded.invariant_violations():
                logger.warning("Ticket %s from server: %s", ticket.id, problem)
            return reloaded

    @staticmethod
    def _decision_denied(ticket: Ticket, actor_id: str | None) -> str:
        if actor_id is not None and actor_id == ticket.maker:
            return f"The maker of ticket {ticket.id} cannot approve or reject it"
        if ticket.status is not TicketStatus.SUBMITTED:
            return f"Ticket {ticket.id} is {ticket.status.value} and awaits no decision"
        return f"{actor_id or 'Anonymous'} lacks the checker role for ticket {ticket.id}"
