from __future__ import annotations

from portal.reports.models import ReportFormat, ReportJobStatus
from portal.schemas import ReportJobCreated, ReportJobStatusSchema

from .http import PortalHTTPClient


class ReportGateway(PortalHTTPClient):
    """REST client for the report job lifecycle endpoints."""

    async def generate(self, domain: str, report_format: ReportFormat) -> str:
        created = await self._request_model(
            "POST",
            f"/reports/{domain}/generate",
            ReportJobCreated,
            params={"format": report_format.value},
        )
        return created.job_id

    async def status(self, job_id: str) -> ReportJobStatus:
        status = await self._request_model("GET", f"/reports/status/{job_id}", ReportJobStatusSchema)
        return status.to_domain()

    async def download(self, job_id: str) -> bytes:
        return await self._request_bytes("GET", f"/reports/download/{job_id}")
