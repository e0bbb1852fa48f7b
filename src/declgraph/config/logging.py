"""structlog configuration for declgraph.

Two output modes:
- Human (default): colored console output to stderr
- JSON (``log_json``): structured JSON lines to stderr

Modules log through stdlib ``logging.getLogger(__name__)``. The handler
installed here sits on the ``declgraph`` logger only, so an embedding runtime
keeps control of the root logger and its own handlers.
"""

from __future__ import annotations

import logging
import sys

import structlog

LOGGER_NAME = "declgraph"
_HANDLER_NAME = "declgraph-structlog"


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> logging.Handler:
    """Route ``declgraph`` logs to stderr through structlog.

    Replaces any handler installed by an earlier call, so repeated calls
    never stack output. Returns the installed handler.

    Args:
        verbose: Emit DEBUG records (node and edge declarations). When False,
            only WARNING+, such as dangling edges.
        log_json: Use JSON renderer instead of console renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )

    pkg = logging.getLogger(LOGGER_NAME)
    for old in [h for h in pkg.handlers if h.get_name() == _HANDLER_NAME]:
        pkg.removeHandler(old)
    pkg.addHandler(handler)
    pkg.setLevel(logging.DEBUG if verbose else logging.WARNING)
    pkg.propagate = False
    return handler
