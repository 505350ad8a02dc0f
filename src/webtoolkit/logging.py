"""
Structured logging setup for applications embedding the toolkit.

Toolkit modules log through ``structlog.get_logger(__name__)`` and never
configure logging themselves. A host application calls configure_logging()
once at startup to route those events, together with its own, to stderr as
JSON (python-json-logger) or as human-readable console output.
"""

import logging
import sys
from typing import IO, Optional, Union

import structlog
from pythonjsonlogger import jsonlogger

_configured = False


class ToolkitJSONFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding the service name and an ISO timestamp."""

    def __init__(self, service: str = 'webtoolkit', *args, **kwargs):
        super().__init__('%(asctime)s %(name)s %(levelname)s %(message)s', *args, **kwargs)
        self.service = service

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault('service', self.service)
        log_record['level'] = record.levelname.lower()


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = True,
    stream: Optional[IO[str]] = None,
    service: str = 'webtoolkit'
) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Calling it again is a no-op.

    Args:
        level: Minimum level for the root logger
        json_format: Emit JSON lines instead of console output
        stream: Output stream, stderr when omitted
        service: Value of the ``service`` field in JSON output
    """
    global _configured

    if _configured:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(stream or sys.stderr)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        # Event fields travel as ``extra`` and are rendered by the JSON formatter.
        handler.setFormatter(ToolkitJSONFormatter(service=service))
        processors.append(structlog.stdlib.render_to_log_kwargs)
    else:
        handler.setFormatter(logging.Formatter('%(message)s'))
        processors.append(structlog.dev.ConsoleRenderer())

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configured = True


__all__ = ['configure_logging', 'ToolkitJSONFormatter']
