"""
Audit Models for the Finance Tracker

Every write made through the API is logged for audit purposes.
This provides:
1. Traceability of changes to money-related data
2. Debugging information when budget counters drift
3. A history that can be replayed to explain a balance

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.finance import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_SPENT_ADJUSTED = "budget_spent_adjusted"
    BUDGET_SPENT_UNMATCHED = "budget_spent_unmatched"
    BUDGET_RECALCULATED = "budget_recalculated"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    DEFAULT_CATEGORIES_INITIALIZED = "default_categories_initialized"
    DEFAULT_CATEGORIES_SKIPPED = "default_categories_skipped"

    # Users
    USER_REGISTERED = "user_registered"
    USER_UPDATED = "user_updated"

    # System events
    SYSTEM_ERROR = "system_error"


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

    Every significant write creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
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
        description="Type of entity (e.g., 'transaction', 'budget')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Document id of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owner the entity belongs to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a transaction and its budget update)"
    )

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
        default=False,
        description="Was this triggered directly by an API call?"
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
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_document(self) -> dict:
        """
        Convert to a MongoDB document.

        Same shape as the log dict, but keeps the timestamp as a
        datetime so the collection can be range-queried.
        """
        document = self.to_log_dict()
        document["timestamp"] = self.timestamp
        return document


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(transaction_id, ...)
        event = AuditEventBuilder.budget_spent_adjusted(user_id, ...)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        user_id: str,
        category: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {category} - {amount}",
            details={
                "category": category,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        user_id: str,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction edited ({', '.join(changed_fields) or 'no fields'})",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        user_id: str,
        category: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted: {category} - {amount}",
            details={
                "category": category,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_spent_adjusted(
        user_id: str,
        category: str,
        month: int,
        year: int,
        amount: str,
        matched: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        # No budget for the period is normal, but worth seeing
        if matched:
            event_type = AuditEventType.BUDGET_SPENT_ADJUSTED
            description = f"Budget {category} {year}-{month:02d} adjusted by {amount}"
        else:
            event_type = AuditEventType.BUDGET_SPENT_UNMATCHED
            description = f"No budget for {category} {year}-{month:02d}; {amount} not counted"
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            user_id=user_id,
            correlation_id=correlation_id,
            description=description,
            details={
                "category": category,
                "month": month,
                "year": year,
                "amount": amount,
            },
        )

    @staticmethod
    def budget_recalculated(
        budget_id: str,
        user_id: str,
        previous: str,
        current: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_RECALCULATED,
            severity=(
                AuditSeverity.WARNING if previous != current else AuditSeverity.INFO
            ),
            entity_type="budget",
            entity_id=budget_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Budget spent recalculated: {previous} -> {current}",
            details={
                "previous_spent": previous,
                "current_spent": current,
            },
            is_user_action=True,
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        user_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        """Plain create/update/delete of a category, budget or user."""
        action = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {action}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def default_categories(
        user_id: str,
        inserted: Optional[int],
        correlation_id: UUID
    ) -> AuditEvent:
        if inserted is None:
            return AuditEvent(
                event_type=AuditEventType.DEFAULT_CATEGORIES_SKIPPED,
                entity_type="category",
                user_id=user_id,
                correlation_id=correlation_id,
                description="Default categories already exist",
            )
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_CATEGORIES_INITIALIZED,
            entity_type="category",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Initialized {inserted} default categories",
            details={
                "count": inserted,
            },
        )

    @staticmethod
    def user_registered(
        user_id: str,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"User registered: {email}",
            details={
                "email": email,
            },
            is_user_action=True,
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
        )
