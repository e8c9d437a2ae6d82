"""structlog setup for the car tracker.

Every entry carries the service name and the broadcast channel the process
fans out on, so logs from several workers sharing one Redis relay can be
told apart. Request logs add the correlation ID; WebSocket handlers bind
the observer ID for the lifetime of the connection.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "car-tracker"

# Third-party loggers that are noisy at INFO during an event
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "websockets", "aiosqlite")


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


class ServiceContext:
    """Processor stamping service and broadcast_channel onto each entry."""

    def __init__(self, broadcast_channel: str):
        self.broadcast_channel = broadcast_channel

    def __call__(self, logger, method, event_dict):
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("broadcast_channel", self.broadcast_channel)
        return event_dict


@contextmanager
def observer_context(observer_id: str) -> Iterator[None]:
    """Bind observer_id to every log entry emitted while the block runs."""
    with structlog.contextvars.bound_contextvars(observer_id=observer_id):
        yield


def configure_structlog(
    log_level: str = "INFO",
    json_logs: bool = True,
    broadcast_channel: str = "car-updates",
) -> None:
    """Route structlog and stdlib logging through one renderer on stdout.

    Must run before modules grab loggers, since loggers are cached on first use.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        ServiceContext(broadcast_channel),
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
