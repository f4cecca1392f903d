from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response

from portal.auth.roles import Role
from portal.reports.models import JobStatus, ReportFormat
from portal.schemas import ReportJobCreated, ReportJobStatusSchema

from ..dependencies import CurrentUser, User, get_report_service, get_status_limiter
from ..ratelimit import FixedWindowRateLimiter
from ..reports import SUPPORTED_DOMAINS, ReportJob, ReportJobNotFoundError, ReportJobService

router = APIRouter(prefix="/reports", tags=["reports"])

ReportServiceDep = Annotated[ReportJobService, Depends(get_report_service)]
LimiterDep = Annotated[FixedWindowRateLimiter, Depends(get_status_limiter)]


def _find_job(service: ReportJobService, job_id: str, user: User) -> ReportJob:
    owner = None if user.has_role(Role.ADMIN) else user.user_id
    try:
        return service.get_job(job_id, owner=owner)
    except ReportJobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/{domain}/generate", response_model=ReportJobCreated)
async def generate_report(
    domain: str,
    service: ReportServiceDep,
    user: CurrentUser,
    background_tasks: BackgroundTasks,
    report_format: str = Query(..., alias="format"),
) -> ReportJobCreated:
    if domain not in SUPPORTED_DOMAINS:
        raise HTTPException(status_code=400, detail="Invalid report type")
    try:
        fmt = ReportFormat(report_format.lower())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid format") from exc

    job = service.create_job(domain, fmt, owner=user.user_id)
    background_tasks.add_task(service.run_job, job.job_id)
    return ReportJobCreated(job_id=job.job_id, status=job.status, message="Report generation started")


@router.get("/status/{job_id}", response_model=ReportJobStatusSchema, response_model_exclude_none=True)
async def get_job_status(
    job_id: str,
    service: ReportServiceDep,
    limiter: LimiterDep,
    user: CurrentUser,
) -> ReportJobStatusSchema:
    if not limiter.allow(user.user_id):
        raise HTTPException(
            status_code=429,
            detail="Too many status requests",
            headers={"Retry-After": str(limiter.retry_after(user.user_id))},
        )
    job = _find_job(service, job_id, user)
    completed = job.status is JobStatus.COMPLETED
    return ReportJobStatusSchema(
        job_id=job.job_id,
        status=job.status,
        progress=job.progress,
        error_message=job.error_message if job.status is JobStatus.FAILED else None,
        file_name=job.file_name if completed else None,
        download_url=f"/reports/download/{job.job_id}" if completed else None,
    )


@router.get("/download/{job_id}")
async def download_report(job_id: str, service: ReportServiceDep, user: CurrentUser) -> Response:
    job = _find_job(service, job_id, user)
    if job.status is not JobStatus.COMPLETED or job.content is None:
        raise HTTPException(status_code=400, detail=f"Report job {job_id} is {job.status.value}")
    return Response(
        content=job.content,
        media_type=job.format.content_type,
        headers={"Content-Disposition": f"attachment; filename={job.file_name}"},
    )
