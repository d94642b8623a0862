"""structlog ロガーと OpenTelemetry トレーシングの初期化"""

from __future__ import annotations

import logging
import sys

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from .config import LogSection, ObservabilitySection, TraceSection

SERVICE_NAME = "kdm-convergence"


def configure_logging(config: LogSection | None = None) -> structlog.stdlib.BoundLogger:
    """structlog を設定し、ロガーを返す。

    Args:
        config: ログ設定。level は "DEBUG" などのレベル名、format は "json" か "text"

    Returns:
        設定済みの structlog.stdlib.BoundLogger
    """
    config = config or LogSection()
    log_level = getattr(logging, config.level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if config.format == "json":
        processors += [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.stdlib.get_logger(SERVICE_NAME)


def init_tracing(config: TraceSection, service_version: str = "0.1.0") -> bool:
    """トレーシングが有効なら TracerProvider を設定する。

    Returns:
        プロバイダーを設定した場合 True
    """
    if not config.enabled:
        return False
    resource = Resource.create(
        {
            "service.name": SERVICE_NAME,
            "service.version": service_version,
        }
    )
    provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(config.sample_rate))
    if config.endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=config.endpoint)))
    trace.set_tracer_provider(provider)
    return True


def init_telemetry(config: ObservabilitySection) -> structlog.stdlib.BoundLogger:
    """ログとトレーシングをまとめて初期化する。"""
    logger = configure_logging(config.log)
    if init_tracing(config.trace):
        logger.info("tracing_enabled", endpoint=config.trace.endpoint or None)
    return logger
