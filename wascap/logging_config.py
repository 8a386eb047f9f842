"""
Logging configuration for wascap.

Provides structured JSON logging and an audit logger for token issuance,
validation and embedding. Library modules only emit records; handlers are
installed by ``configure_logging`` (the CLI calls it).
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Iterable, Optional

# Context variable for correlating the records of one issue/inspect run
correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per record, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Records every token signed, validated and embedded, keyed by token id
    so one token can be followed from issuance to inspection. Seeds are
    never passed here.
    """

    def __init__(self, name: str = "wascap.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "correlation_id": correlation_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def token_signed(
        self,
        token_id: str,
        issuer: str,
        subject: str,
        capabilities: Iterable[str],
        expires: Optional[int] = None
    ) -> None:
        """Log a newly signed token."""
        self._log(
            logging.INFO,
            "TOKEN_SIGNED",
            token_id=token_id,
            issuer=issuer,
            subject=subject,
            capabilities=sorted(capabilities),
            expires=expires,
            message=f"Token {token_id} signed by {issuer}"
        )

    def token_validated(
        self,
        token_id: str,
        subject: str,
        report: Dict[str, Any]
    ) -> None:
        """Log a validation result. Unusable tokens log at WARNING."""
        level = logging.INFO if report.get("can_use") else logging.WARNING
        self._log(
            level,
            "TOKEN_VALIDATED",
            token_id=token_id,
            subject=subject,
            report=report,
            message=f"Token {token_id} can_use={report.get('can_use')}"
        )

    def claims_embedded(
        self,
        token_id: str,
        section_name: str,
        module_hash: str,
        module_size: int
    ) -> None:
        """Log a token written into a module."""
        self._log(
            logging.INFO,
            "CLAIMS_EMBEDDED",
            token_id=token_id,
            section_name=section_name,
            module_hash=module_hash,
            module_size=module_size,
            message=f"Token {token_id} embedded in section {section_name!r}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "WARNING",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Diagnostics go to stderr so stdout stays clean for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set the correlation ID for the current context.

    Args:
        correlation_id: ID to set, or None to generate one

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    """Get the current correlation ID."""
    return correlation_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
