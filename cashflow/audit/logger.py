"""
Audit Logger

DESIGN DECISION: Every ledger mutation in the system is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A recent-activity feed the UI can show

The audit logger:
- Gracefully handles failures (never crashes the app if logging fails)
- Supports correlation IDs to trace related events
- Keeps a bounded in-memory buffer of recent events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from cashflow.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog on top of the standard library logger.

    Safe to call more than once; the last call wins.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", level=level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(level)
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
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (JSON via structlog)
    2. An in-memory ring buffer for the activity feed
    """

    def __init__(self, buffer_size: int = 200):
        """
        Initialize audit logger.

        Args:
            buffer_size: How many recent events to keep in memory.
        """
        self._events: deque[AuditEvent] = deque(maxlen=buffer_size)
        self._logger = structlog.get_logger("cashflow.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the local log write failed. Never raises.
        """
        self._events.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never break a ledger command
            logging.getLogger(__name__).error("audit log write failed: %s", e)
            return False
        return True

    def log_entity_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[UUID],
        description: str,
        actor_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a create/update/delete of a business, book, transaction or member."""
        event = AuditEventBuilder.entity_event(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            actor_id=actor_id,
            details=details,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        self.log(event)

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(self._events)
        events.reverse()
        return events[:limit]


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step user action (e.g., a CSV import).
    """
    return uuid4()
