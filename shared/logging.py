"""
Structured logging for the Daylight traffic cache layer.

Every module logs through ``get_logger(name)`` with keyword-argument events.
``configure_logging`` is called once by the composition root; until then
structlog's development defaults apply, which keeps tests quiet and readable.
"""

import sys
import uuid
import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

# Correlation fields carried across awaits within one lookup
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
cache_namespace_var: ContextVar[Optional[str]] = ContextVar('cache_namespace', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure JSON structured logging for a service."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _service_context(service_name),
            add_correlation_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def _service_context(service_name: str):
    """Build a processor stamping the configured service name."""

    def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service_context


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the request id and active cache namespace onto the event."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    namespace = cache_namespace_var.get()
    if namespace:
        event_dict.setdefault("namespace", namespace)

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request id for this context, generating one when omitted."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_cache_namespace(namespace: Optional[str]) -> None:
    """Tag subsequent log events in this context with a cache namespace."""
    cache_namespace_var.set(namespace)


def clear_context():
    request_id_var.set(None)
    cache_namespace_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
