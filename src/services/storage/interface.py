"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface per collection.
This allows us to:
1. Keep routes and flows decoupled from the MongoDB driver
2. Substitute an in-memory client in tests
3. Translate driver errors into one small error taxonomy

The interface is intentionally simple - we're not building a full ORM.
Just the operations the API needs, plus the aggregations behind the
dashboard charts.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from src.models.finance import (
    Budget,
    BudgetVsActual,
    Category,
    CategoryTotal,
    MonthlyTotal,
    Transaction,
    User,
)
from src.models.audit import AuditEvent


class TransactionStorageInterface(ABC):
    """Storage operations for transactions."""

    @abstractmethod
    def create(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction.

        Returns:
            The transaction with its assigned id

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    def find_by_user(
        self,
        user_id: str,
        limit: int = 50,
        skip: int = 0,
        sort_by: str = "date",
        sort_order: int = -1,
        category: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        List an owner's transactions.

        Args:
            user_id: Owner identifier
            limit: Maximum number of results
            skip: Number of results to skip
            sort_by: Stored field name to sort on
            sort_order: 1 for ascending, -1 for descending
            category: Only this category
            start_date: On or after this instant
            end_date: On or before this instant
        """
        pass

    @abstractmethod
    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Return the transaction, or None if the id is unknown or malformed."""
        pass

    @abstractmethod
    def update_by_id(self, transaction_id: str, changes: dict[str, Any]) -> Transaction:
        """
        Apply field changes and return the updated transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    def update_returning_previous(
        self,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> tuple[Transaction, Transaction]:
        """
        Apply field changes atomically and return (previous, updated).

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    def delete_by_id(self, transaction_id: str) -> Transaction:
        """
        Delete a transaction and return what was deleted.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    def get_monthly_totals(self, user_id: str, year: int) -> list[MonthlyTotal]:
        """
        Total and count per calendar month of `year`, ascending by month.

        Months without transactions are absent, not zero-filled.
        """
        pass

    @abstractmethod
    def get_category_totals(
        self,
        user_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> list[CategoryTotal]:
        """
        Total, count and average per category within an inclusive range,
        largest total first.
        """
        pass

    @abstractmethod
    def sum_for_period(
        self,
        user_id: str,
        category: str,
        month: int,
        year: int,
    ) -> Decimal:
        """Sum of the owner's transactions in one category and month."""
        pass


class BudgetStorageInterface(ABC):
    """Storage operations for budgets."""

    @abstractmethod
    def create(self, budget: Budget) -> Budget:
        """
        Insert a budget.

        Raises:
            DuplicateError: If a budget exists for the same owner, category and period
        """
        pass

    @abstractmethod
    def find_by_user(
        self,
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        """
        List an owner's budgets sorted by category.

        The period filter only applies when both month and year are given.
        """
        pass

    @abstractmethod
    def get_by_id(self, budget_id: str) -> Optional[Budget]:
        pass

    @abstractmethod
    def update_by_id(self, budget_id: str, changes: dict[str, Any]) -> Budget:
        pass

    @abstractmethod
    def delete_by_id(self, budget_id: str) -> Budget:
        pass

    @abstractmethod
    def update_spent_amount(
        self,
        user_id: str,
        category: str,
        month: int,
        year: int,
        amount: Decimal,
    ) -> bool:
        """
        Atomically add `amount` (may be negative) to the matching budget.

        Returns:
            True if a budget matched, False if none exists for the period
        """
        pass

    @abstractmethod
    def get_budget_vs_actual(self, user_id: str, year: int) -> list[BudgetVsActual]:
        """Budgeted and spent totals per month of `year`, ascending by month."""
        pass


class CategoryStorageInterface(ABC):
    """Storage operations for categories."""

    @abstractmethod
    def create(self, category: Category) -> Category:
        """
        Insert a category.

        Raises:
            DuplicateError: If the owner already has a category with this name
        """
        pass

    @abstractmethod
    def find_by_user(self, user_id: str) -> list[Category]:
        """List an owner's categories sorted by name."""
        pass

    @abstractmethod
    def get_by_id(self, category_id: str) -> Optional[Category]:
        pass

    @abstractmethod
    def update_by_id(self, category_id: str, changes: dict[str, Any]) -> Category:
        pass

    @abstractmethod
    def delete_by_id(self, category_id: str) -> Category:
        pass

    @abstractmethod
    def initialize_defaults(self, user_id: str) -> Optional[int]:
        """
        Insert the default category set for an owner.

        Returns:
            Number of categories inserted, or None if the owner already
            had (some of) them
        """
        pass


class UserStorageInterface(ABC):
    """Storage operations for users."""

    @abstractmethod
    def create(self, user: User) -> User:
        """
        Insert a user.

        Raises:
            DuplicateError: If the email is already registered
        """
        pass

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def update_by_id(self, user_id: str, changes: dict[str, Any]) -> User:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
