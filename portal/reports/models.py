from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from portal.errors import ValidationError


class ReportFormat(str, Enum):
    """Export formats offered by the report service."""

    XLSX = "xlsx"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES[self]

    @classmethod
    def parse(cls, value: "ReportFormat | str") -> "ReportFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(f"Unsupported report format {value!r}; expected one of {allowed}") from exc


_CONTENT_TYPES = {
    ReportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ReportFormat.PDF: "application/pdf",
}


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True, slots=True)
class ReportJobStatus:
    job_id: str
    status: JobStatus
    progress: int = 0
    error_message: str | None = None
    file_name: str | None = None
    download_url: str | None = None


class ExportPhase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    POLLING = "polling"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ExportState:
    """Snapshot of an orchestrator, published after every change."""

    phase: ExportPhase = ExportPhase.IDLE
    exporting: bool = False
    progress: int = 0
    message: str | None = None
    error: str | None = None
    format: ReportFormat | None = None
    job_id: str | None = None
    saved_to: str | None = None
