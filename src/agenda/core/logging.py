"""Structured logging for the agenda service.

Every ``logging.getLogger(__name__)`` record is rendered through structlog's
``ProcessorFormatter``: colored console lines in ``text`` mode, JSON lines in
``json`` mode. Each record carries the service name, the calling actor id and
the OTel trace/span ids of the request that emitted it.

With ``log_root`` set, a JSON copy of everything (uvicorn access lines
included) is also written to ``{log_root}/{service_name}.log``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

_actor_context: ContextVar[int | None] = ContextVar("actor_id", default=None)

# Per-query debug output from the driver and one line per HTTP request.
_QUIET_LOGGERS = {
    "asyncpg": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def set_actor_context(actor_id: int | None) -> None:
    """Set the calling actor id for the current async context."""
    _actor_context.set(actor_id)


def get_actor_context() -> int | None:
    return _actor_context.get()


def add_actor_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``actor_id`` from the ContextVar into the event dict."""
    event_dict["actor_id"] = _actor_context.get()
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``trace_id`` and ``span_id`` from the current OTel span."""
    ctx = trace.get_current_span().get_span_context()
    if ctx and ctx.trace_id:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    else:
        event_dict["trace_id"] = "0" * 32
        event_dict["span_id"] = "0" * 16
    return event_dict


def _service_stamper(service_name: str) -> structlog.types.Processor:
    def add_service(logger, method_name, event_dict):  # noqa: ARG001
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service


def _pre_chain(service_name: str, time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt, utc=True),
        _service_stamper(service_name),
        add_actor_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(
    renderer: structlog.types.Processor, pre_chain: list[structlog.types.Processor]
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | None = None,
    service_name: str = "agenda",
) -> None:
    """Configure structured logging for the process.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        ``"text"`` for colored console output or ``"json"`` for JSON lines.
    log_root:
        Directory for the JSON log file ``{service_name}.log``. Created if
        missing.
    service_name:
        Stamped on every record as ``service`` and used as the log file name.
    """
    if fmt == "json":
        pre_chain = _pre_chain(service_name, time_fmt="iso")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        pre_chain = _pre_chain(service_name, time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_formatter(renderer, pre_chain))

    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    if log_root is not None:
        log_root = Path(log_root)
        log_root.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_root / f"{service_name}.log")
        file_handler.setFormatter(
            _formatter(
                structlog.processors.JSONRenderer(),
                _pre_chain(service_name, time_fmt="iso"),
            )
        )
        root.addHandler(file_handler)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
