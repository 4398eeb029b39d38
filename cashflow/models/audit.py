"""
Audit Models for Cashflow

Every mutation of the ledger tree is logged for audit purposes.
This provides:
1. Traceability of who changed which book
2. Debugging information when things go wrong
3. A record of team and ownership changes

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from cashflow.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    USER_SIGNED_UP = "user_signed_up"
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"

    # Businesses
    BUSINESS_CREATED = "business_created"
    BUSINESS_UPDATED = "business_updated"
    BUSINESS_DELETED = "business_deleted"

    # Books
    BOOK_CREATED = "book_created"
    BOOK_UPDATED = "book_updated"
    BOOK_DELETED = "book_deleted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTIONS_IMPORTED = "transactions_imported"

    # Team
    MEMBER_INVITED = "member_invited"
    MEMBER_ROLE_UPDATED = "member_role_updated"
    MEMBER_REMOVED = "member_removed"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"

    # Assist
    SEARCH_PARSED = "search_parsed"
    SUMMARY_GENERATED = "summary_generated"

    # Persistence / system
    SNAPSHOT_SAVE_FAILED = "snapshot_save_failed"
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger command creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'business', 'book', 'transaction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who did it
    actor_id: Optional[UUID] = Field(
        default=None,
        description="ID of the signed-in user who triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one import)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=True,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_event(
            AuditEventType.BOOK_CREATED, "book", book.id, f"Book created: {book.name}"
        )
        event = AuditEventBuilder.ownership_transferred(business_id, old, new)
    """

    @staticmethod
    def entity_event(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[UUID],
        description: str,
        actor_id: Optional[UUID] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def transactions_imported(
        book_id: UUID,
        count: int,
        actor_id: Optional[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_IMPORTED,
            entity_type="book",
            entity_id=book_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Imported {count} transactions",
            details={
                "count": count,
            },
        )

    @staticmethod
    def ownership_transferred(
        business_id: UUID,
        previous_owner_email: Optional[str],
        new_owner_email: str,
        actor_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OWNERSHIP_TRANSFERRED,
            severity=AuditSeverity.WARNING,
            entity_type="business",
            entity_id=business_id,
            actor_id=actor_id,
            description=f"Ownership transferred to {new_owner_email}",
            details={
                "previous_owner": previous_owner_email,
                "new_owner": new_owner_email,
            },
        )

    @staticmethod
    def snapshot_save_failed(
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            description="Failed to persist application snapshot",
            error_message=error_message,
            is_user_action=False,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
            is_user_action=False,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
