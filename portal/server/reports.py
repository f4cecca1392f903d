from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO
from typing import Callable, Sequence

from openpyxl import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from portal.reports.models import JobStatus, ReportFormat
from portal.tickets.models import Ticket

from .tickets import TicketService

logger = logging.getLogger(__name__)

REPORT_COLUMNS: tuple[str, ...] = (
    "ID",
    "Code",
    "Title",
    "Status",
    "Amount",
    "Maker",
    "Checker",
    "Rejection reason",
    "Created",
    "Updated",
)

SUPPORTED_DOMAINS: tuple[str, ...] = ("tickets",)

# Progress reported while the data is gathered; rendering takes the rest.
_PROGRESS_STEPS: tuple[int, ...] = (10, 30, 50, 70, 90)


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)


def ticket_rows(tickets: Sequence[Ticket]) -> list[list[str]]:
    return [
        [
            _cell(ticket.id),
            _cell(ticket.code),
            _cell(ticket.title),
            ticket.status.value,
            _cell(ticket.amount),
            _cell(ticket.maker),
            _cell(ticket.checker),
            _cell(ticket.rejection_reason),
            _cell(ticket.created_at),
            _cell(ticket.updated_at),
        ]
        for ticket in tickets
    ]


def render_xlsx(tickets: Sequence[Ticket]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Tickets"
    sheet.append(list(REPORT_COLUMNS))
    for row in ticket_rows(tickets):
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def render_pdf(tickets: Sequence[Ticket]) -> bytes:
    buffer = BytesIO()
    document = SimpleDocTemplate(buffer, pagesize=landscape(A4), title="Ticket report")
    styles = getSampleStyleSheet()
    table = Table([list(REPORT_COLUMNS), *ticket_rows(tickets)], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
            ]
        )
    )
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    document.build(
        [
            Paragraph("Ticket report", styles["Title"]),
            Paragraph(f"Generated {generated} - {len(tickets)} tickets", styles["Normal"]),
            Spacer(1, 12),
            table,
        ]
    )
    return buffer.getvalue()


def render_report(report_format: ReportFormat, tickets: Sequence[Ticket]) -> bytes:
    if report_format is ReportFormat.PDF:
        return render_pdf(tickets)
    return render_xlsx(tickets)


class ReportJobNotFoundError(RuntimeError):
    """Raised when a job id is unknown (or belongs to someone else)."""


@dataclass(slots=True)
class ReportJob:
    job_id: str
    domain: str
    format: ReportFormat
    owner: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    file_name: str | None = None
    content: bytes | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None


Renderer = Callable[[ReportFormat, Sequence[Ticket]], bytes]


class ReportJobService:
    """Track report jobs in memory and run them in the background."""

    def __init__(
        self,
        ticket_service: TicketService,
        *,
        step_delay: float = 0.5,
        renderer: Renderer = render_report,
    ) -> None:
        self._tickets = ticket_service
        self._jobs: dict[str, ReportJob] = {}
        self.step_delay = step_delay
        self._renderer = renderer

    def create_job(self, domain: str, report_format: ReportFormat, owner: str) -> ReportJob:
        job = ReportJob(job_id=str(uuid.uuid4()), domain=domain, format=report_format, owner=owner)
        self._jobs[job.job_id] = job
        logger.info("Report job %s created (%s, %s) for %s", job.job_id, domain, report_format.value, owner)
        return job

    def get_job(self, job_id: str, *, owner: str | None = None) -> ReportJob:
        job = self._jobs.get(job_id)
        if job is None or (owner is not None and job.owner != owner):
            raise ReportJobNotFoundError(f"Report job {job_id} not found")
        return job

    def update_progress(self, job_id: str, progress: int) -> None:
        job = self.get_job(job_id)
        job.status = JobStatus.PROCESSING
        job.progress = max(job.progress, min(progress, 99))

    def mark_completed(self, job_id: str, content: bytes, file_name: str) -> None:
        job = self.get_job(job_id)
        job.status = JobStatus.COMPLETED
        job.progress = 100
        job.content = content
        job.file_name = file_name
        job.completed_at = datetime.now(timezone.utc)

    def mark_failed(self, job_id: str, message: str) -> None:
        job = self.get_job(job_id)
        job.status = JobStatus.FAILED
        job.error_message = message
        job.completed_at = datetime.now(timezone.utc)

    async def run_job(self, job_id: str) -> None:
        job = self.get_job(job_id)
        try:
            for progress in _PROGRESS_STEPS:
                self.update_progress(job_id, progress)
                if self.step_delay:
                    await asyncio.sleep(self.step_delay)
            tickets = await self._tickets.all_tickets()
            content = await asyncio.to_thread(self._renderer, job.format, tickets)
        except Exception as exc:
            logger.exception("Report job %s failed", job_id)
            self.mark_failed(job_id, str(exc) or exc.__class__.__name__)
            return
        self.mark_completed(job_id, content, f"{job.domain}_report.{job.format.extension}")
        logger.info("Report job %s completed (%d bytes)", job_id, len(content))
