from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import replace
from typing import Any, Callable, Protocol

from opentelemetry import trace

from portal.core.config import Settings
from portal.errors import APIError, PortalError, RateLimited, ServerError
from portal.events import EventBus
from portal.notifications import NotificationCenter
from portal.scheduling import PollSchedule

from .models import ExportPhase, ExportState, JobStatus, ReportFormat, ReportJobStatus
from .saver import ReportSaver

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ReportJobGateway(Protocol):
    async def generate(self, domain: str, report_format: ReportFormat) -> str: ...

    async def status(self, job_id: str) -> ReportJobStatus: ...

    async def download(self, job_id: str) -> bytes: ...


def _status_label(error: APIError) -> str:
    return f"status {error.status_code}" if error.status_code is not None else "no response"


class ReportExportOrchestrator:
    """Drive one report export at a time: generate, poll, download.

    The orchestrator owns at most one :class:`PollSchedule`. It is cancelled
    on every terminal path and by :meth:`close`; responses that arrive after
    that are ignored. Rate-limited polls are absorbed and never end the export.
    """

    def __init__(
        self,
        gateway: ReportJobGateway,
        saver: ReportSaver,
        *,
        domain: str = "tickets",
        poll_interval: float = 2.0,
        poll_jitter: float = 0.5,
        rate_limit_threshold: int = 3,
        notifications: NotificationCenter | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if rate_limit_threshold < 1:
            raise ValueError("rate_limit_threshold must be at least 1")
        self._gateway = gateway
        self._saver = saver
        self.domain = domain
        self.poll_interval = poll_interval
        self.poll_jitter = poll_jitter
        self.rate_limit_threshold = rate_limit_threshold
        self._notifications = notifications
        self._rng = rng
        self.bus: EventBus[ExportState] = EventBus("report-export")
        self._state = ExportState()
        self._schedule: PollSchedule | None = None
        self._retired: PollSchedule | None = None
        self._finished: asyncio.Event | None = None
        self._run_id = 0
        self._rate_limited = 0
        self.last_error: PortalError | None = None

    @classmethod
    def from_settings(
        cls,
        gateway: ReportJobGateway,
        saver: ReportSaver,
        settings: Settings,
        *,
        notifications: NotificationCenter | None = None,
    ) -> "ReportExportOrchestrator":
        return cls(
            gateway,
            saver,
            domain=settings.report_domain,
            poll_interval=settings.poll_interval_seconds,
            poll_jitter=settings.poll_jitter_seconds,
            rate_limit_threshold=settings.rate_limit_notice_threshold,
            notifications=notifications,
        )

    @property
    def state(self) -> ExportState:
        return self._state

    @property
    def exporting(self) -> bool:
        return self._state.exporting

    @property
    def polling(self) -> bool:
        return self._schedule is not None and self._schedule.active

    def subscribe(self, handler: Callable[[ExportState], None]) -> Callable[[], None]:
        return self.bus.subscribe(handler)

    async def start(self, report_format: ReportFormat | str) -> bool:
        """Begin an export. Returns ``False`` if one is already in flight."""

        fmt = ReportFormat.parse(report_format)
        if self._state.exporting:
            logger.info("Export of %s ignored; job %s still in flight", fmt.value, self._state.job_id)
            return False

        self._run_id += 1
        run_id = self._run_id
        self._finished = asyncio.Event()
        self._rate_limited = 0
        self.last_error = None
        self._update(
            phase=ExportPhase.GENERATING,
            exporting=True,
            progress=0,
            message=f"Starting {fmt.value.upper()} export...",
            error=None,
            format=fmt,
            job_id=None,
            saved_to=None,
        )

        try:
            with tracer.start_as_current_span("report.generate") as span:
                span.set_attribute("report.domain", self.domain)
                span.set_attribute("report.format", fmt.value)
                job_id = await self._gateway.generate(self.domain, fmt)
        except APIError as exc:
            if self._is_live(run_id):
                self._fail(f"Could not start the report export ({_status_label(exc)}): {exc.message}", exc)
            return True
        except Exception as exc:
            logger.exception("Unexpected error creating a %s report job", fmt.value)
            if self._is_live(run_id):
                self._fail(f"Could not start the report export: {exc}")
            return True

        if not self._is_live(run_id):
            logger.info("Export closed while job %s was being created", job_id)
            return True

        logger.info("Report job %s started (%s, %s)", job_id, self.domain, fmt.value)
        self._update(phase=ExportPhase.POLLING, job_id=job_id, message="Processing...")
        schedule = PollSchedule(
            lambda: self._poll(run_id, job_id, fmt),
            interval=self.poll_interval,
            jitter=self.poll_jitter,
            rng=self._rng,
            name=f"report-{job_id}",
        )
        self._schedule = schedule
        schedule.start()
        return True

    async def wait(self) -> ExportState:
        """Wait until the current export reaches a terminal state."""

        if self._finished is not None:
            await self._finished.wait()
        return self._state

    def close(self) -> None:
        """Tear down: stop polling and forget the export in flight."""

        self._run_id += 1
        self._stop_schedule()
        if self._state.exporting:
            logger.info("Export of job %s cancelled", self._state.job_id)
            self._update(phase=ExportPhase.CANCELLED, exporting=False, progress=0, message=None)
        self._finish()

    async def aclose(self) -> None:
        """:meth:`close`, then wait for a status call still outstanding to settle."""

        self.close()
        if self._retired is not None:
            await self._retired.aclose()
            self._retired = None

    async def _poll(self, run_id: int, job_id: str, fmt: ReportFormat) -> None:
        try:
            with tracer.start_as_current_span("report.poll") as span:
                span.set_attribute("report.job_id", job_id)
                status = await self._gateway.status(job_id)
        except RateLimited:
            if not self._is_live(run_id):
                return
            self._rate_limited += 1
            logger.warning("Status poll for job %s rate limited (%d in a row)", job_id, self._rate_limited)
            if self._rate_limited >= self.rate_limit_threshold:
                self._update(message=f"Server is busy, waiting for server... ({self._rate_limited} throttled checks)")
            return
        except APIError as exc:
            if self._is_live(run_id):
                self._fail(f"Status check failed ({_status_label(exc)}): {exc.message}", exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error polling job %s", job_id)
            if self._is_live(run_id):
                self._fail(f"Status check failed: {exc}")
            return

        if not self._is_live(run_id):
            logger.debug("Discarding status of job %s received after teardown", job_id)
            return

        self._rate_limited = 0
        progress = max(self._state.progress, min(100, max(0, status.progress)))

        if not status.status.is_terminal:
            self._update(progress=progress, message=f"Processing... {progress}%")
            return

        self._stop_schedule()
        if status.status is JobStatus.COMPLETED:
            await self._download(run_id, job_id, fmt)
        else:
            reason = status.error_message or "Unknown error"
            self._fail(f"Report export failed: {reason}", ServerError(reason))

    async def _download(self, run_id: int, job_id: str, fmt: ReportFormat) -> None:
        self._update(phase=ExportPhase.DOWNLOADING, progress=100, message="Downloading...")
        try:
            with tracer.start_as_current_span("report.download") as span:
                span.set_attribute("report.job_id", job_id)
                data = await self._gateway.download(job_id)
        except APIError as exc:
            if self._is_live(run_id):
                self._fail(f"Could not download the report file ({_status_label(exc)}): {exc.message}", exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error downloading job %s", job_id)
            if self._is_live(run_id):
                self._fail(f"Could not download the report file: {exc}")
            return

        if not self._is_live(run_id):
            return

        filename = f"{self.domain}_report.{fmt.extension}"
        try:
            saved_to = self._saver.save(filename, fmt.content_type, data)
        except OSError as exc:
            self._fail(f"Could not save the report file: {exc}")
            return

        logger.info("Report job %s downloaded to %s", job_id, saved_to)
        self._update(
            phase=ExportPhase.COMPLETED,
            exporting=False,
            progress=0,
            message=None,
            saved_to=saved_to,
        )
        if self._notifications is not None:
            self._notifications.success(f"Report saved to {saved_to}")
        self._finish()

    def _fail(self, message: str, error: PortalError | None = None) -> None:
        self._stop_schedule()
        self.last_error = error
        logger.error("Report export failed: %s", message)
        self._update(phase=ExportPhase.FAILED, exporting=False, message=None, error=message)
        if self._notifications is not None:
            self._notifications.error(message)
        self._finish()

    def _is_live(self, run_id: int) -> bool:
        return run_id == self._run_id and self._state.exporting

    def _stop_schedule(self) -> None:
        if self._schedule is not None:
            self._schedule.cancel()
            self._retired = self._schedule
            self._schedule = None

    def _finish(self) -> None:
        if self._finished is not None:
            self._finished.set()

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        self.bus.publish(self._state)
