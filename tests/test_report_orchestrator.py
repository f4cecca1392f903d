import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from portal.errors import NetworkError, RateLimited, ServerError, ValidationError
from portal.gateway import ReportGateway
from portal.reports import (
    DirectorySaver,
    ExportPhase,
    ExportState,
    JobStatus,
    ReportExportOrchestrator,
    ReportFormat,
    ReportJobStatus,
)


class RecordingSaver:
    def __init__(self) -> None:
        self.saved: list[tuple[str, str, bytes]] = []

    def save(self, filename: str, content_type: str, data: bytes) -> str:
        self.saved.append((filename, content_type, data))
        return f"/downloads/{filename}"


def _status(status: JobStatus, progress: int = 0, error: str | None = None) -> ReportJobStatus:
    return ReportJobStatus(job_id="job-1", status=status, progress=progress, error_message=error)


def _throttled() -> RateLimited:
    return RateLimited("Too many status requests", status_code=429)


@pytest.fixture
def gateway():
    gateway = AsyncMock()
    gateway.generate.return_value = "job-1"
    gateway.download.return_value = b"report-bytes"
    return gateway


@pytest.fixture
def saver():
    return RecordingSaver()


@pytest_asyncio.fixture
async def orchestrator(gateway, saver, notifications):
    orchestrator = ReportExportOrchestrator(
        gateway,
        saver,
        poll_interval=0.01,
        poll_jitter=0.0,
        notifications=notifications,
    )
    yield orchestrator
    await orchestrator.aclose()


def _record(orchestrator: ReportExportOrchestrator) -> list[ExportState]:
    states: list[ExportState] = []
    orchestrator.subscribe(states.append)
    return states


async def _finish(orchestrator: ReportExportOrchestrator) -> ExportState:
    return await asyncio.wait_for(orchestrator.wait(), timeout=2)


@pytest.mark.asyncio
async def test_successful_export_downloads_exactly_once(orchestrator, gateway, saver, notifications):
    gateway.status.side_effect = [
        _status(JobStatus.PENDING),
        _status(JobStatus.PROCESSING, 40),
        _status(JobStatus.COMPLETED, 100),
    ]
    states = _record(orchestrator)

    assert await orchestrator.start("xlsx") is True
    final = await _finish(orchestrator)
    await asyncio.sleep(0.05)

    assert final.phase is ExportPhase.COMPLETED
    assert final.exporting is False
    assert final.progress == 0
    assert final.saved_to == "/downloads/tickets_report.xlsx"
    gateway.generate.assert_awaited_once_with("tickets", ReportFormat.XLSX)
    gateway.download.assert_awaited_once_with("job-1")
    assert gateway.status.await_count == 3
    assert saver.saved == [("tickets_report.xlsx", ReportFormat.XLSX.content_type, b"report-bytes")]
    assert "Processing... 40%" in [state.message for state in states]
    assert not orchestrator.polling
    assert notifications.active[-1].message == "Report saved to /downloads/tickets_report.xlsx"


@pytest.mark.asyncio
async def test_rate_limited_polls_keep_waiting(orchestrator, gateway):
    gateway.status.side_effect = [
        _throttled(),
        _throttled(),
        _throttled(),
        _throttled(),
        _status(JobStatus.COMPLETED, 100),
    ]
    states = _record(orchestrator)

    await orchestrator.start(ReportFormat.PDF)
    final = await _finish(orchestrator)

    waiting = [state.message for state in states if state.message and "waiting for server" in state.message]
    assert waiting == [
        "Server is busy, waiting for server... (3 throttled checks)",
        "Server is busy, waiting for server... (4 throttled checks)",
    ]
    assert final.phase is ExportPhase.COMPLETED
    assert final.error is None
    assert orchestrator.last_error is None
    gateway.download.assert_awaited_once()


@pytest.mark.asyncio
async def test_rate_limit_counter_resets_after_successful_poll(orchestrator, gateway):
    gateway.status.side_effect = [
        _throttled(),
        _throttled(),
        _status(JobStatus.PROCESSING, 10),
        _throttled(),
        _throttled(),
        _status(JobStatus.COMPLETED, 100),
    ]
    states = _record(orchestrator)

    await orchestrator.start("pdf")
    await _finish(orchestrator)

    assert not any(state.message and "waiting for server" in state.message for state in states)


@pytest.mark.asyncio
async def test_failed_job_surfaces_reason(orchestrator, gateway, saver, notifications):
    gateway.status.side_effect = [
        _status(JobStatus.PROCESSING, 20),
        _status(JobStatus.FAILED, 20, error="disk full"),
    ]

    await orchestrator.start("xlsx")
    final = await _finish(orchestrator)

    assert final.phase is ExportPhase.FAILED
    assert final.exporting is False
    assert final.error == "Report export failed: disk full"
    assert isinstance(orchestrator.last_error, ServerError)
    assert notifications.active[-1].message == "Report export failed: disk full"
    gateway.download.assert_not_awaited()
    assert saver.saved == []
    assert not orchestrator.polling


@pytest.mark.asyncio
async def test_failed_job_without_reason(orchestrator, gateway):
    gateway.status.side_effect = [_status(JobStatus.FAILED)]

    await orchestrator.start("xlsx")
    final = await _finish(orchestrator)

    assert final.error == "Report export failed: Unknown error"


@pytest.mark.asyncio
async def test_second_start_while_exporting_is_ignored(orchestrator, gateway):
    release = asyncio.Event()

    async def slow_generate(domain, report_format):
        await release.wait()
        return "job-1"

    gateway.generate.side_effect = slow_generate
    gateway.status.side_effect = [_status(JobStatus.COMPLETED, 100)]

    first = asyncio.create_task(orchestrator.start("xlsx"))
    await asyncio.sleep(0)

    assert orchestrator.exporting
    assert await orchestrator.start("pdf") is False

    release.set()
    assert await first is True
    await _finish(orchestrator)

    gateway.generate.assert_awaited_once()
    gateway.download.assert_awaited_once()


@pytest.mark.asyncio
async def test_generate_failure_never_polls(orchestrator, gateway, notifications):
    gateway.generate.side_effect = ServerError("Report service down", status_code=503)

    assert await orchestrator.start("xlsx") is True
    final = await _finish(orchestrator)
    await asyncio.sleep(0.03)

    assert final.phase is ExportPhase.FAILED
    assert final.error == "Could not start the report export (status 503): Report service down"
    assert not orchestrator.polling
    gateway.status.assert_not_awaited()
    assert notifications.active[-1].message == final.error


@pytest.mark.asyncio
async def test_status_error_other_than_rate_limit_fails(orchestrator, gateway):
    gateway.status.side_effect = [NetworkError("connection reset")]

    await orchestrator.start("xlsx")
    final = await _finish(orchestrator)

    assert final.phase is ExportPhase.FAILED
    assert final.error == "Status check failed (no response): connection reset"
    assert isinstance(orchestrator.last_error, NetworkError)


@pytest.mark.asyncio
async def test_download_failure_is_reported(orchestrator, gateway, saver):
    gateway.status.side_effect = [_status(JobStatus.COMPLETED, 100)]
    gateway.download.side_effect = ServerError("gone", status_code=500)

    await orchestrator.start("pdf")
    final = await _finish(orchestrator)

    assert final.phase is ExportPhase.FAILED
    assert "download" in final.error
    assert saver.saved == []


@pytest.mark.asyncio
async def test_unreadable_generate_response_allows_a_retry(saver, notifications):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>Maintenance</html>", headers={"Content-Type": "text/html"})

    async with ReportGateway("http://backend.test/api", transport=httpx.MockTransport(handler)) as gateway:
        orchestrator = ReportExportOrchestrator(gateway, saver, poll_interval=0.01, poll_jitter=0.0, notifications=notifications)

        assert await orchestrator.start("xlsx") is True
        final = await _finish(orchestrator)

        assert final.phase is ExportPhase.FAILED
        assert not orchestrator.exporting
        assert isinstance(orchestrator.last_error, ServerError)
        assert final.error.startswith("Could not start the report export (status 200)")
        assert await orchestrator.start("xlsx") is True
        await _finish(orchestrator)
        await orchestrator.aclose()


@pytest.mark.asyncio
async def test_unexpected_generate_error_clears_exporting(orchestrator, gateway):
    gateway.generate.side_effect = [KeyError("jobId"), "job-1"]
    gateway.status.side_effect = [_status(JobStatus.COMPLETED, 100)]

    await orchestrator.start("xlsx")
    failed = await _finish(orchestrator)
    assert failed.phase is ExportPhase.FAILED
    assert not orchestrator.exporting

    assert await orchestrator.start("xlsx") is True
    final = await _finish(orchestrator)
    assert final.phase is ExportPhase.COMPLETED


@pytest.mark.asyncio
async def test_unexpected_download_error_clears_exporting(orchestrator, gateway, saver):
    gateway.status.side_effect = [_status(JobStatus.COMPLETED, 100)]
    gateway.download.side_effect = RuntimeError("stream reset")

    await orchestrator.start("pdf")
    final = await _finish(orchestrator)

    assert final.phase is ExportPhase.FAILED
    assert final.error == "Could not download the report file: stream reset"
    assert not orchestrator.exporting
    assert saver.saved == []


@pytest.mark.asyncio
async def test_aclose_waits_for_outstanding_status_call(orchestrator, gateway):
    release = asyncio.Event()
    finished = []

    async def slow_status(job_id):
        await release.wait()
        finished.append(job_id)
        return _status(JobStatus.PROCESSING, 10)

    gateway.status.side_effect = slow_status

    await orchestrator.start("xlsx")
    await asyncio.sleep(0.05)
    closing = asyncio.create_task(orchestrator.aclose())
    await asyncio.sleep(0.01)
    assert not closing.done()

    release.set()
    await asyncio.wait_for(closing, timeout=1)

    assert finished == ["job-1"]
    assert orchestrator.state.phase is ExportPhase.CANCELLED


@pytest.mark.asyncio
async def test_close_ignores_late_status(orchestrator, gateway, saver):
    release = asyncio.Event()

    async def slow_status(job_id):
        await release.wait()
        return _status(JobStatus.COMPLETED, 100)

    gateway.status.side_effect = slow_status

    await orchestrator.start("xlsx")
    await asyncio.sleep(0.05)
    assert gateway.status.await_count == 1

    orchestrator.close()
    release.set()
    await asyncio.sleep(0.05)

    assert orchestrator.state.phase is ExportPhase.CANCELLED
    assert not orchestrator.exporting
    assert not orchestrator.polling
    gateway.download.assert_not_awaited()
    assert saver.saved == []


@pytest.mark.asyncio
async def test_progress_never_goes_backwards(orchestrator, gateway):
    gateway.status.side_effect = [
        _status(JobStatus.PROCESSING, 50),
        _status(JobStatus.PROCESSING, 30),
        _status(JobStatus.PROCESSING, 140),
        _status(JobStatus.COMPLETED, 100),
    ]
    states = _record(orchestrator)

    await orchestrator.start("xlsx")
    await _finish(orchestrator)

    polled = [state.progress for state in states if state.phase is ExportPhase.POLLING]
    assert polled == sorted(polled)
    assert max(polled) == 100


@pytest.mark.asyncio
async def test_export_can_run_again_after_completion(orchestrator, gateway):
    gateway.status.side_effect = [_status(JobStatus.COMPLETED, 100), _status(JobStatus.COMPLETED, 100)]

    await orchestrator.start("xlsx")
    await _finish(orchestrator)
    assert await orchestrator.start("pdf") is True
    final = await _finish(orchestrator)

    assert final.format is ReportFormat.PDF
    assert gateway.download.await_count == 2


@pytest.mark.asyncio
async def test_unknown_format_is_rejected_locally(orchestrator, gateway):
    with pytest.raises(ValidationError):
        await orchestrator.start("csv")

    gateway.generate.assert_not_awaited()
    assert not orchestrator.exporting


def test_directory_saver_never_overwrites(tmp_path):
    saver = DirectorySaver(tmp_path / "reports")

    first = saver.save("tickets_report.pdf", "application/pdf", b"one")
    second = saver.save("tickets_report.pdf", "application/pdf", b"two")

    assert first.endswith("tickets_report.pdf")
    assert second.endswith("tickets_report (1).pdf")
    assert (tmp_path / "reports" / "tickets_report.pdf").read_bytes() == b"one"
