from __future__ import annotations

from decimal import Decimal
from typing import Callable

import pytest

from portal.core.config import Settings
from portal.notifications import NotificationCenter
from portal.tickets.models import Ticket, TicketStatus

MAKER = "u-100"
CHECKER = "u-200"


def _make_ticket(
    *,
    ticket_id: int = 1,
    status: TicketStatus = TicketStatus.DRAFT,
    maker: str = MAKER,
    checker: str | None = None,
    rejection_reason: str | None = None,
    amount: Decimal | None = Decimal("125.00"),
) -> Ticket:
    return Ticket(
        id=ticket_id,
        code=f"TCK-{ticket_id:05d}",
        title="Vendor payment",
        description="Quarterly invoice",
        status=status,
        amount=amount,
        maker=maker,
        checker=checker,
        rejection_reason=rejection_reason,
    )


@pytest.fixture
def make_ticket() -> Callable[..., Ticket]:
    return _make_ticket


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        api_base_url="http://testserver/api",
        poll_interval_seconds=0.01,
        poll_jitter_seconds=0.0,
        search_debounce_seconds=0.01,
        report_step_delay_seconds=0.0,
        download_dir=str(tmp_path),
        status_rate_limit=1000,
    )
