"""Ticket domain model and maker/checker lifecycle."""

from .listing import TicketListing
from .models import Ticket, TicketId, TicketPage, TicketStatus
from .state import TicketStateMachine
from .workflow import TicketWorkflow

__all__ = [
    "Ticket",
    "TicketId",
    "TicketListing",
    "TicketPage",
    "TicketStateMachine",
    "TicketStatus",
    "TicketWorkflow",
]
