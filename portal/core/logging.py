"""Logging and tracing set-up for the portal client and reference server."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from portal import __version__
from portal.core.config import Settings

_TRACER_INITIALISED = False

# Third-party loggers that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def parse_key_values(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key=value`` pairs, ignoring malformed items.

    Used for OTLP exporter headers and for per-logger level overrides.
    """

    if not raw:
        return {}
    pairs: dict[str, str] = {}
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            continue
        pairs[key.strip()] = value.strip()
    return pairs


def _level(name: str | None, default: int = logging.INFO) -> int:
    value = logging.getLevelName((name or "").upper())
    return value if isinstance(value, int) else default


class TraceContextFilter(logging.Filter):
    """Stamp ``trace_id``/``span_id`` on each record from the active span.

    Export polls and ticket transitions run inside spans, so their log lines
    can be matched to the trace in the collector. Outside a span both are
    ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = "-"
            record.span_id = "-"
        return True


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure root logging for the portal and return the ``portal`` logger.

    ``settings.log_levels`` (``portal.reports=DEBUG,httpx=INFO``) overrides
    individual loggers; ``httpx`` and ``httpcore`` default to WARNING.
    """

    level = _level(settings.log_level)
    loggers = {name: {"level": max(level, logging.WARNING)} for name in _NOISY_LOGGERS}
    for name, override in parse_key_values(settings.log_levels).items():
        loggers[name] = {"level": _level(override, level)}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "trace_context": {"()": TraceContextFilter},
            },
            "formatters": {
                "default": {
                    "format": settings.log_format,
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["trace_context"],
                    "level": level,
                }
            },
            "loggers": loggers,
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )

    logger = logging.getLogger("portal")
    logger.setLevel(loggers.get("portal", {}).get("level", level))
    logger.debug("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def build_resource(settings: Settings) -> Resource:
    return Resource(
        attributes={
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment,
        }
    )


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP-exporting tracer provider when tracing is enabled."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    provider = TracerProvider(resource=build_resource(settings))

    exporter_kwargs: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        exporter_kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = parse_key_values(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_kwargs["headers"] = headers

    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))

    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    logging.getLogger("portal").info(
        "Tracing enabled for %s (%s)", settings.otel_service_name, settings.otel_exporter_otlp_endpoint or "default endpoint"
    )
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Flush and shut down a provider returned by :func:`init_tracer`."""

    if provider is None:
        return

    global _TRACER_INITIALISED
    provider.shutdown()
    _TRACER_INITIALISED = False
