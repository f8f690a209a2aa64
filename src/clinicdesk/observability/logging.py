"""
Structured Logging

structlog configuration for the intake engine:
- JSON or console rendering
- ISO timestamps
- Contact redaction (phone numbers, email addresses) before rendering
"""

import logging
import re
import sys
from typing import Any

import structlog

from clinicdesk.config import get_settings

PHONE_RE = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

_PASSTHROUGH_KEYS = {"level", "logger", "timestamp"}


def redact_contacts(text: str, replacement: str = "[REDACTED]") -> str:
    """Mask phone numbers and email addresses in free text."""
    text = EMAIL_RE.sub(replacement, text)
    return PHONE_RE.sub(replacement, text)


def contact_redaction_processor(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Redact contact details from every string value in the event."""
    for key, value in event_dict.items():
        if isinstance(value, str) and key not in _PASSTHROUGH_KEYS:
            event_dict[key] = redact_contacts(value)
    return event_dict


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Install the structlog processor chain.

    Args:
        level: Minimum stdlib log level name (default: settings log_level)
        json_output: Render JSON lines instead of the console format
            (default: settings log_json)
    """
    settings = get_settings().engine
    level = level or settings.log_level
    if json_output is None:
        json_output = settings.log_json

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            contact_redaction_processor,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
