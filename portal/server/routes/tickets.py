from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from portal.schemas import RejectRequest, TicketCreateRequest, TicketPageSchema, TicketSchema
from portal.tickets.models import Ticket, TicketPage, TicketStatus

from ..dependencies import CurrentUser, MakerUser, ViewerUser, get_ticket_service
from ..tickets import (
    InvalidTicketTransitionError,
    TicketNotFoundError,
    TicketPermissionError,
    TicketService,
    TicketServiceError,
    TicketValidationError,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])

TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]

_ERROR_STATUS: tuple[tuple[type[TicketServiceError], int], ...] = (
    (TicketNotFoundError, status.HTTP_404_NOT_FOUND),
    (TicketPermissionError, status.HTTP_403_FORBIDDEN),
    (InvalidTicketTransitionError, status.HTTP_409_CONFLICT),
    (TicketValidationError, status.HTTP_400_BAD_REQUEST),
)


def _to_response(ticket: Ticket) -> TicketSchema:
    return TicketSchema.from_domain(ticket)


def _to_page(page: TicketPage) -> TicketPageSchema:
    return TicketPageSchema(
        content=[_to_response(ticket) for ticket in page.items],
        page=page.page,
        size=page.size,
        total_elements=page.total_elements,
        total_pages=page.total_pages,
    )


def _raise_http(exc: TicketServiceError) -> NoReturn:
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=code, detail=str(exc)) from exc
    raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.get("", response_model=TicketPageSchema)
async def list_tickets(
    service: TicketServiceDep,
    _: ViewerUser,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    search: str = Query(default="", max_length=200),
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
) -> TicketPageSchema:
    result = await service.list_tickets(page=page, size=size, search=search, status=status_filter)
    return _to_page(result)


@router.post("", response_model=TicketSchema, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep, user: MakerUser) -> TicketSchema:
    try:
        ticket = await service.create_ticket(
            title=payload.title,
            description=payload.description,
            amount=payload.amount,
            actor=user,
        )
    except TicketServiceError as exc:
        _raise_http(exc)
    return _to_response(ticket)


@router.get("/{ticket_id}", response_model=TicketSchema)
async def get_ticket(ticket_id: int, service: TicketServiceDep, _: ViewerUser) -> TicketSchema:
    try:
        ticket = await service.get_ticket(ticket_id)
    except TicketServiceError as exc:
        _raise_http(exc)
    return _to_response(ticket)


@router.post("/{ticket_id}/submit", response_model=TicketSchema)
async def submit_ticket(ticket_id: int, service: TicketServiceDep, user: MakerUser) -> TicketSchema:
    try:
        ticket = await service.submit(ticket_id, user)
    except TicketServiceError as exc:
        _raise_http(exc)
    return _to_response(ticket)


@router.post("/{ticket_id}/approve", response_model=TicketSchema)
async def approve_ticket(ticket_id: int, service: TicketServiceDep, user: CurrentUser) -> TicketSchema:
    try:
        ticket = await service.approve(ticket_id, user)
    except TicketServiceError as exc:
        _raise_http(exc)
    return _to_response(ticket)


@router.post("/{ticket_id}/reject", response_model=TicketSchema)
async def reject_ticket(
    ticket_id: int,
    payload: RejectRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketSchema:
    try:
        ticket = await service.reject(ticket_id, user, payload.reason)
    except TicketServiceError as exc:
        _raise_http(exc)
    return _to_response(ticket)


@router.post("/{ticket_id}/complete", response_model=TicketSchema)
async def complete_ticket(ticket_id: int, service: TicketServiceDep, user: CurrentUser) -> TicketSchema:
    try:
        ticket = await service.complete(ticket_id, user)
    except TicketServiceError as exc:
        _raise_http(exc)
    return _to_response(ticket)
