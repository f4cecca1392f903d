"""Wire representations exchanged between the portal client and the backend."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from portal.reports.models import JobStatus, ReportJobStatus
from portal.tickets.models import MAX_REJECTION_REASON_LENGTH, Ticket, TicketPage, TicketStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TicketSchema(CamelModel):
    id: Union[int, str]
    code: str | None = None
    title: str
    description: str | None = None
    status: TicketStatus
    amount: Decimal | None = Field(default=None, ge=0)
    maker: str
    checker: str | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_domain(self) -> Ticket:
        return Ticket(
            id=self.id,
            code=self.code,
            title=self.title,
            description=self.description,
            status=self.status,
            amount=self.amount,
            maker=self.maker,
            checker=self.checker,
            rejection_reason=self.rejection_reason,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketSchema":
        return cls(
            id=ticket.id,
            code=ticket.code,
            title=ticket.title,
            description=ticket.description,
            status=ticket.status,
            amount=ticket.amount,
            maker=ticket.maker,
            checker=ticket.checker,
            rejection_reason=ticket.rejection_reason,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class TicketPageSchema(CamelModel):
    content: list[TicketSchema] = Field(default_factory=list)
    page: int = 0
    size: int = 10
    total_elements: int = 0
    total_pages: int = 0

    def to_domain(self) -> TicketPage:
        return TicketPage(
            items=[item.to_domain() for item in self.content],
            page=self.page,
            size=self.size,
            total_elements=self.total_elements,
            total_pages=self.total_pages,
        )


class TicketCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=4000)
    amount: Decimal | None = Field(default=None, ge=0)


class RejectRequest(CamelModel):
    reason: str = Field(..., max_length=MAX_REJECTION_REASON_LENGTH)


class ReportJobCreated(CamelModel):
    job_id: str
    status: JobStatus = JobStatus.PENDING
    message: str | None = None


class ReportJobStatusSchema(CamelModel):
    job_id: str
    status: JobStatus
    progress: int = 0
    error_message: str | None = None
    file_name: str | None = None
    download_url: str | None = None

    def to_domain(self) -> ReportJobStatus:
        return ReportJobStatus(
            job_id=self.job_id,
            status=self.status,
            progress=self.progress,
            error_message=self.error_message,
            file_name=self.file_name,
            download_url=self.download_url,
        )


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserSchema(CamelModel):
    id: str
    username: str
    display_name: str | None = None
    roles: list[str] = Field(default_factory=list)


class TokenSchema(CamelModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None


class LoginResponse(CamelModel):
    success: bool = True
    message: str = ""
    user: UserSchema
    token: TokenSchema
