from __future__ import annotations

from decimal import Decimal
from typing import Any

from portal.schemas import RejectRequest, TicketCreateRequest, TicketPageSchema, TicketSchema
from portal.tickets.models import Ticket, TicketId, TicketPage, TicketStatus

from .http import PortalHTTPClient


class TicketGateway(PortalHTTPClient):
    """REST client for ticket CRUD, listing and lifecycle transitions."""

    async def list_tickets(
        self,
        *,
        page: int = 0,
        size: int = 10,
        search: str = "",
        status: TicketStatus | None = None,
    ) -> TicketPage:
        params: dict[str, Any] = {"page": page, "size": size}
        if search:
            params["search"] = search
        if status is not None:
            params["status"] = status.value
        result = await self._request_model("GET", "/tickets", TicketPageSchema, empty={}, params=params)
        return result.to_domain()

    async def get_ticket(self, ticket_id: TicketId) -> Ticket:
        return await self._ticket("GET", f"/tickets/{ticket_id}")

    async def create_ticket(
        self,
        *,
        title: str,
        description: str | None = None,
        amount: Decimal | None = None,
    ) -> Ticket:
        payload = self._payload(TicketCreateRequest, title=title, description=description, amount=amount)
        return await self._ticket("POST", "/tickets", json=payload)

    async def submit(self, ticket_id: TicketId) -> Ticket:
        return await self._ticket("POST", f"/tickets/{ticket_id}/submit", json={})

    async def approve(self, ticket_id: TicketId) -> Ticket:
        return await self._ticket("POST", f"/tickets/{ticket_id}/approve", json={})

    async def reject(self, ticket_id: TicketId, reason: str) -> Ticket:
        payload = self._payload(RejectRequest, reason=reason)
        return await self._ticket("POST", f"/tickets/{ticket_id}/reject", json=payload)

    async def complete(self, ticket_id: TicketId) -> Ticket:
        return await self._ticket("POST", f"/tickets/{ticket_id}/complete", json={})

    async def _ticket(self, method: str, path: str, **kwargs: Any) -> Ticket:
        schema = await self._request_model(method, path, TicketSchema, **kwargs)
        return schema.to_domain()
