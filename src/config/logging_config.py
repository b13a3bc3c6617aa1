"""Logging configuration.

Application code logs through stdlib loggers; structlog's ``ProcessorFormatter``
renders the records, adding any context bound with
``structlog.contextvars.bind_contextvars`` (the request id, for example).
"""

import logging
import logging.config

import structlog

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def build_json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """One JSON object per record: timestamp, level, logger, message, exception."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
    )


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install the root handler.

    Args:
        level: Root log level name
        fmt: "json" for one JSON object per line, "text" for plain lines

    """
    formatter = "json" if fmt == "json" else "text"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": build_json_formatter},
                "text": {"format": TEXT_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                },
            },
            "root": {"level": level.upper(), "handlers": ["console"]},
        }
    )


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"
