from __future__ import annotations

import logging

import httpx

from portal.auth.context import AuthContext
from portal.auth.sessions import Identity
from portal.core.config import Settings, get_settings
from portal.gateway import AuthGateway, ReportGateway, TicketGateway
from portal.notifications import NotificationCenter
from portal.reports import DirectorySaver, ReportExportOrchestrator, ReportSaver
from portal.tickets import TicketListing, TicketStateMachine, TicketWorkflow

logger = logging.getLogger(__name__)


class PortalClient:
    """Wire the gateways, auth context and ticket/report components together.

    All gateways share one ``httpx.AsyncClient`` and read the bearer token
    from the same :class:`AuthContext`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.auth = AuthContext(legacy_substring_match=self.settings.legacy_role_substring_match)
        self.notifications = NotificationCenter()
        self._http = httpx.AsyncClient(timeout=self.settings.request_timeout, transport=transport)

        def token() -> str | None:
            return self.auth.token

        options = {"token_provider": token, "timeout": self.settings.request_timeout, "client": self._http}
        self.tickets = TicketGateway(self.settings.api_base_url, **options)
        self.reports = ReportGateway(self.settings.api_base_url, **options)
        self.login_gateway = AuthGateway(self.settings.api_base_url, **options)
        self.state_machine = TicketStateMachine(self.tickets)
        self.workflow = TicketWorkflow(self.state_machine, self.auth, self.notifications)

    async def login(self, username: str, password: str) -> Identity:
        result = await self.login_gateway.login(username, password)
        return self.auth.sign_in_custom(result)

    def logout(self) -> None:
        self.auth.sign_out()

    def ticket_listing(self) -> TicketListing:
        return TicketListing(
            self.tickets,
            page_size=self.settings.page_size,
            debounce_seconds=self.settings.search_debounce_seconds,
            notifications=self.notifications,
        )

    def report_exporter(self, saver: ReportSaver | None = None) -> ReportExportOrchestrator:
        return ReportExportOrchestrator.from_settings(
            self.reports,
            saver or DirectorySaver(self.settings.download_dir),
            self.settings,
            notifications=self.notifications,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PortalClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
