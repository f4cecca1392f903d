"""HTTP gateways to the portal backend."""

from .auth import AuthGateway
from .http import PortalHTTPClient
from .reports import ReportGateway
from .tickets import TicketGateway

__all__ = ["AuthGateway", "PortalHTTPClient", "ReportGateway", "TicketGateway"]
