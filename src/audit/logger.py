"""
Audit Logger

DESIGN DECISION: Every write made through the API is logged.
This provides:
1. Traceability of changes to money-related data
2. A way to explain budget counter drift after the fact

The audit logger:
- Gracefully handles failures (a failed audit write never fails a request)
- Supports correlation IDs to tie a transaction to its budget adjustments
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
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


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit collection (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_transaction_created(
        self,
        transaction_id: str,
        user_id: str,
        category: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            user_id=user_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_transaction_updated(
        self,
        transaction_id: str,
        user_id: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            user_id=user_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_transaction_deleted(
        self,
        transaction_id: str,
        user_id: str,
        category: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            user_id=user_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_budget_adjusted(
        self,
        user_id: str,
        category: str,
        month: int,
        year: int,
        amount: str,
        matched: bool,
        correlation_id: UUID,
    ) -> None:
        """Log a spent counter adjustment (or that no budget matched)."""
        event = AuditEventBuilder.budget_spent_adjusted(
            user_id=user_id,
            category=category,
            month=month,
            year=year,
            amount=amount,
            matched=matched,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_budget_recalculated(
        self,
        budget_id: str,
        user_id: str,
        previous: str,
        current: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_recalculated(
            budget_id=budget_id,
            user_id=user_id,
            previous=previous,
            current=current,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        user_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        """Log a plain create, update or delete."""
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            correlation_id=correlation_id,
            details=details,
        )
        self.log(event)

    def log_default_categories(
        self,
        user_id: str,
        inserted: Optional[int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.default_categories(
            user_id=user_id,
            inserted=inserted,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_user_registered(
        self,
        user_id: str,
        email: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.user_registered(
            user_id=user_id,
            email=email,
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


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of each write request.
    Pass it through all subsequent operations.
    """
    return uuid4()
