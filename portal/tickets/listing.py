from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from portal.errors import PortalError, describe_error
from portal.notifications import NotificationCenter
from portal.scheduling import Debouncer

from .models import TicketPage, TicketStatus

logger = logging.getLogger(__name__)


class TicketListGateway(Protocol):
    async def list_tickets(
        self,
        *,
        page: int = 0,
        size: int = 10,
        search: str = "",
        status: TicketStatus | None = None,
    ) -> TicketPage: ...


class TicketListing:
    """State behind a ticket list view: filter, search and page position."""

    def __init__(
        self,
        gateway: TicketListGateway,
        *,
        page_size: int = 10,
        debounce_seconds: float = 0.3,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self._gateway = gateway
        self._notifications = notifications
        self._debouncer = Debouncer(debounce_seconds, name="ticket-search")
        self.page_size = page_size
        self.page = 0
        self.query = ""
        self.status: TicketStatus | None = None
        self.result = TicketPage(size=page_size)
        self.loading = False
        self.error: str | None = None

    async def load(self) -> TicketPage:
        self.loading = True
        self.error = None
        try:
            self.result = await self._gateway.list_tickets(
                page=self.page,
                size=self.page_size,
                search=self.query,
                status=self.status,
            )
        except PortalError as exc:
            logger.warning("Loading tickets failed: %s", exc)
            self.error = f"Could not load tickets: {describe_error(exc)}"
            if self._notifications is not None:
                self._notifications.error(self.error)
        finally:
            self.loading = False
        return self.result

    def on_search(self, query: str) -> asyncio.Task[None]:
        """Record a keystroke; only the latest query in the window is sent."""

        self.query = query.strip()

        async def run() -> None:
            self.page = 0
            await self.load()

        return self._debouncer.trigger(run)

    async def filter_status(self, status: TicketStatus | None) -> TicketPage:
        self.status = status
        self.page = 0
        return await self.load()

    async def go_to_page(self, page: int) -> TicketPage:
        if 0 <= page < max(self.result.total_pages, 1):
            self.page = page
            return await self.load()
        return self.result

    async def next_page(self) -> TicketPage:
        return await self.go_to_page(self.page + 1)

    async def previous_page(self) -> TicketPage:
        return await self.go_to_page(self.page - 1)

    def close(self) -> None:
        self._debouncer.cancel()
