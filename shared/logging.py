"""
Structured logging for the Concert Access Layer.

Every component logs through structlog with a dotted logger name
(``access.evaluator``, ``access.gate`` ...). Request correlation values are
held in context variables so decision logs of one request share the same
``request_id`` and ``subject``.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
subject_var: ContextVar[Optional[str]] = ContextVar('subject', default=None)


def configure_logging(service_name: str, log_level: str = "info", json_output: bool = True) -> None:
    """Configure structlog and the stdlib root logger for a service."""
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_component,
            add_correlation_context,
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    structlog.get_logger(service_name).debug("Logging configured", level=log_level)


def add_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Split ``access.gate`` into service ``access`` and component ``gate``."""
    name = event_dict.get("logger", "")
    service, _, component = name.partition(".")
    if component:
        event_dict["service"] = service
        event_dict["component"] = component
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the current request id and subject."""
    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)

    subject = subject_var.get()
    if subject:
        event_dict.setdefault("subject", subject)

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request id for the current context, generating one if absent."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_subject_context(subject: Optional[str] = None):
    """Record the authenticated subject for log correlation."""
    if subject:
        subject_var.set(subject)


def clear_context():
    request_id_var.set(None)
    subject_var.set(None)


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a request id for the duration of a block and restore the previous values after."""
    request_token = request_id_var.set(request_id or str(uuid.uuid4()))
    subject_token = subject_var.set(None)
    try:
        yield request_id_var.get()
    finally:
        request_id_var.reset(request_token)
        subject_var.reset(subject_token)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger by dotted name."""
    return structlog.get_logger(name)
