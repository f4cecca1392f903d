"""Asynchronous report export."""

from .models import ExportPhase, ExportState, JobStatus, ReportFormat, ReportJobStatus
from .orchestrator import ReportExportOrchestrator, ReportJobGateway
from .saver import DirectorySaver, ReportSaver

__all__ = [
    "DirectorySaver",
    "ExportPhase",
    "ExportState",
    "JobStatus",
    "ReportExportOrchestrator",
    "ReportFormat",
    "ReportJobGateway",
    "ReportJobStatus",
    "ReportSaver",
]
