from __future__ import annotations

import itertools
import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from portal.tickets.models import Ticket, TicketPage, TicketStatus
from portal.tickets.state import TicketStateMachine

if TYPE_CHECKING:
    from .dependencies import User

logger = logging.getLogger(__name__)


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketNotFoundError(TicketServiceError):
    """Raised when a ticket could not be located."""


class InvalidTicketTransitionError(TicketServiceError):
    """Raised when the ticket's current status does not allow the change."""


class TicketPermissionError(TicketServiceError):
    """Raised when the caller may not act on the ticket."""


class TicketValidationError(TicketServiceError):
    """Raised for malformed input such as a blank rejection reason."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TicketService:
    """In-memory ticket store enforcing the maker/checker rules server-side.

    Every transition checks and mutates without awaiting in between, so two
    checkers racing on the same ticket are serialised by the event loop: the
    second one sees the decided status and gets a conflict.
    """

    def __init__(self) -> None:
        self._tickets: dict[int, Ticket] = {}
        self._ids = itertools.count(1)

    async def create_ticket(
        self,
        *,
        title: str,
        description: str | None,
        amount: Decimal | None,
        actor: "User",
    ) -> Ticket:
        if not title.strip():
            raise TicketValidationError("Title must not be blank")
        if amount is not None and amount < 0:
            raise TicketValidationError("Amount must not be negative")
        ticket_id = next(self._ids)
        now = _now()
        ticket = Ticket(
            id=ticket_id,
            code=f"TCK-{ticket_id:05d}",
            title=title.strip(),
            description=description,
            status=TicketStateMachine.initial_state(),
            amount=amount,
            maker=actor.user_id,
            created_at=now,
            updated_at=now,
        )
        self._tickets[ticket_id] = ticket
        logger.info("Ticket %s created by %s", ticket.code, actor.username)
        return ticket

    async def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def all_tickets(self) -> list[Ticket]:
        return sorted(self._tickets.values(), key=lambda ticket: ticket.id)

    async def list_tickets(
        self,
        *,
        page: int = 0,
        size: int = 10,
        search: str = "",
        status: TicketStatus | None = None,
    ) -> TicketPage:
        needle = search.strip().lower()
        matches = [
            ticket
            for ticket in sorted(self._tickets.values(), key=lambda ticket: ticket.id, reverse=True)
            if (status is None or ticket.status is status)
            and (not needle or needle in f"{ticket.title} {ticket.description or ''} {ticket.code or ''}".lower())
        ]
        start = page * size
        return TicketPage(
            items=matches[start : start + size],
            page=page,
            size=size,
            total_elements=len(matches),
            total_pages=math.ceil(len(matches) / size) if matches else 0,
        )

    async def submit(self, ticket_id: int, actor: "User") -> Ticket:
        ticket = self._expect(ticket_id, TicketStatus.SUBMITTED)
        if not TicketStateMachine.can_submit(ticket, actor.user_id):
            raise TicketPermissionError("Only the maker can submit this ticket")
        return self._store(ticket, TicketStatus.SUBMITTED, actor, checker=None, rejection_reason=None)

    async def approve(self, ticket_id: int, actor: "User") -> Ticket:
        ticket = self._expect(ticket_id, TicketStatus.APPROVED)
        self._check_decision(ticket, actor)
        return self._store(ticket, TicketStatus.APPROVED, actor, checker=actor.user_id, rejection_reason=None)

    async def reject(self, ticket_id: int, actor: "User", reason: str) -> Ticket:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise TicketValidationError("A rejection reason is required")
        ticket = self._expect(ticket_id, TicketStatus.REJECTED)
        self._check_decision(ticket, actor)
        return self._store(ticket, TicketStatus.REJECTED, actor, checker=actor.user_id, rejection_reason=cleaned)

    async def complete(self, ticket_id: int, actor: "User") -> Ticket:
        ticket = self._expect(ticket_id, TicketStatus.COMPLETED)
        if not TicketStateMachine.can_complete(ticket, actor.user_id, actor.roles):
            raise TicketPermissionError("Only the maker or an admin can close this ticket")
        return self._store(ticket, TicketStatus.COMPLETED, actor)

    def _expect(self, ticket_id: int, target: TicketStatus) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        if not TicketStateMachine.can_transition(ticket.status, target):
            raise InvalidTicketTransitionError(
                f"Cannot transition {ticket.status.value} -> {target.value}"
            )
        return ticket

    @staticmethod
    def _check_decision(ticket: Ticket, actor: "User") -> None:
        if actor.user_id == ticket.maker:
            raise TicketPermissionError("The maker cannot decide on their own ticket")
        if not TicketStateMachine.can_decide(ticket, actor.user_id, actor.roles):
            raise TicketPermissionError("Checker role required")

    def _store(self, ticket: Ticket, target: TicketStatus, actor: "User", **changes: Any) -> Ticket:
        updated = replace(ticket, status=target, updated_at=_now(), **changes)
        self._tickets[int(ticket.id)] = updated
        logger.info(
            "Ticket %s %s -> %s by %s",
            ticket.code,
            ticket.status.value,
            target.value,
            actor.username,
        )
        return updated
