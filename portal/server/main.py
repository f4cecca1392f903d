from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from portal.core.config import Settings, get_settings
from portal.core.logging import configure_logging, init_tracer, shutdown_tracer

from .ratelimit import FixedWindowRateLimiter
from .reports import ReportJobService
from .routes import auth, ping, reports, tickets
from .tickets import TicketService


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings: Settings = app.state.settings
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider
    try:
        yield
    finally:
        shutdown_tracer(tracer_provider)


def create_app(
    settings: Settings | None = None,
    *,
    ticket_service: TicketService | None = None,
    report_service: ReportJobService | None = None,
    status_limiter: FixedWindowRateLimiter | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    ticket_service = ticket_service or TicketService()
    if report_service is None:
        report_service = ReportJobService(ticket_service, step_delay=settings.report_step_delay_seconds)
    if status_limiter is None:
        status_limiter = FixedWindowRateLimiter(settings.status_rate_limit, settings.status_rate_window_seconds)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.ticket_service = ticket_service
    app.state.report_service = report_service
    app.state.status_limiter = status_limiter

    for module in (ping, auth, tickets, reports):
        app.include_router(module.router, prefix=settings.api_prefix)
    return app


app = create_app()
