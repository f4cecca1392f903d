from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Sequence, Union

TicketId = Union[int, str]

MAX_REJECTION_REASON_LENGTH = 1000


class TicketStatus(str, Enum):
    """Supported states of a ticket's approval lifecycle."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"

    @classmethod
    def _missing_(cls, value: object) -> "TicketStatus | None":
        if isinstance(value, str):
            normalized = value.strip().upper()
            # Older backends report submitted tickets as PENDING.
            if normalized == "PENDING":
                return cls.SUBMITTED
            for member in cls:
                if member.value == normalized:
                    return member
        return None


DECIDED_STATUSES = frozenset({TicketStatus.APPROVED, TicketStatus.REJECTED, TicketStatus.COMPLETED})


@dataclass(frozen=True, slots=True)
class Ticket:
    """Client-side view of a ticket; the server owns every field."""

    id: TicketId
    title: str
    status: TicketStatus
    maker: str
    description: str | None = None
    amount: Decimal | None = None
    checker: str | None = None
    rejection_reason: str | None = None
    code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def invariant_violations(self) -> list[str]:
        problems: list[str] = []
        if self.checker is not None and self.status not in DECIDED_STATUSES:
            problems.append(f"checker set while {self.status.value}")
        if self.checker is not None and self.checker == self.maker:
            problems.append("maker and checker are the same identity")
        has_reason = bool(self.rejection_reason and self.rejection_reason.strip())
        if has_reason != (self.status is TicketStatus.REJECTED):
            problems.append(f"rejection reason {'present' if has_reason else 'missing'} while {self.status.value}")
        if self.amount is not None and self.amount < 0:
            problems.append("negative amount")
        return problems


@dataclass(slots=True)
class TicketPage:
    items: Sequence[Ticket] = field(default_factory=list)
    page: int = 0
    size: int = 10
    total_elements: int = 0
    total_pages: int = 0
