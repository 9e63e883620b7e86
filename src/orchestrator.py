"""
Main Orchestrator for the Finance Tracker

This module ties together all the components and defines the
flows for writes that touch more than one collection:
1. Transactions (write → adjust budget spent counters → audit)
2. Budgets (write → audit, reconcile spent against transactions)
3. Categories (write → audit, default set bootstrap)
4. Users (register → bootstrap default categories → audit)

DESIGN DECISION: Reads go straight to the repositories. Every write
goes through a flow so the budget counters and the audit trail stay
in step with the data.

The writes inside one flow are independent. There is no multi-document
transaction, so a crash between them leaves a counter off by one
transaction; BudgetFlow.recalculate_spent repairs that.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.config import AppSettings, get_settings
from src.models.audit import AuditEventType
from src.models.finance import (
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Category,
    CategoryCreate,
    CategoryUpdate,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
    User,
    UserCreate,
    UserUpdate,
)
from src.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    MongoAuditStorage,
    MongoBudgetStorage,
    MongoCategoryStorage,
    MongoDatabaseClient,
    MongoTransactionStorage,
    MongoUserStorage,
    NotFoundError,
    TransactionStorageInterface,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Orchestrates transaction writes.

    Every change to a transaction is mirrored onto the spent counter of
    the budget for its owner, category and month:
    - create → +amount
    - delete → -amount
    - edit   → -old amount on the old budget, +new amount on the new one

    A transaction with no budget for its period is still saved; the
    adjustment simply matches nothing.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        budget_storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transaction_storage
        self._budgets = budget_storage
        self._audit_logger = audit_logger

    def create(self, payload: TransactionCreate) -> Transaction:
        correlation_id = create_correlation_id()

        transaction = self._transactions.create(payload.to_transaction())

        if self._audit_logger:
            self._audit_logger.log_transaction_created(
                transaction_id=transaction.id,
                user_id=transaction.user_id,
                category=transaction.category,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )

        self._adjust_budget(transaction, transaction.amount, correlation_id)
        return transaction

    def update(self, transaction_id: str, payload: TransactionUpdate) -> Transaction:
        """
        Apply an edit.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        correlation_id = create_correlation_id()

        changes = payload.to_changes()
        if not changes:
            current = self._transactions.get_by_id(transaction_id)
            if current is None:
                raise NotFoundError("Transaction not found")
            return current

        # Compensate against the state this write replaced
        current, updated = self._transactions.update_returning_previous(
            transaction_id, changes
        )

        if self._audit_logger:
            self._audit_logger.log_transaction_updated(
                transaction_id=updated.id,
                user_id=updated.user_id,
                changed_fields=sorted(changes),
                correlation_id=correlation_id,
            )

        moved = (
            current.amount != updated.amount
            or current.category != updated.category
            or current.period != updated.period
        )
        if moved:
            self._adjust_budget(current, -current.amount, correlation_id)
            self._adjust_budget(updated, updated.amount, correlation_id)

        return updated

    def delete(self, transaction_id: str) -> Transaction:
        """
        Delete a transaction and take it off its budget.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        correlation_id = create_correlation_id()

        deleted = self._transactions.delete_by_id(transaction_id)

        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(
                transaction_id=deleted.id,
                user_id=deleted.user_id,
                category=deleted.category,
                amount=str(deleted.amount),
                correlation_id=correlation_id,
            )

        self._adjust_budget(deleted, -deleted.amount, correlation_id)
        return deleted

    def _adjust_budget(
        self,
        transaction: Transaction,
        amount: Decimal,
        correlation_id: UUID,
    ) -> bool:
        month, year = transaction.period
        matched = self._budgets.update_spent_amount(
            user_id=transaction.user_id,
            category=transaction.category,
            month=month,
            year=year,
            amount=amount,
        )

        if self._audit_logger:
            self._audit_logger.log_budget_adjusted(
                user_id=transaction.user_id,
                category=transaction.category,
                month=month,
                year=year,
                amount=str(amount),
                matched=matched,
                correlation_id=correlation_id,
            )

        return matched


class BudgetFlow:
    """Orchestrates budget writes and spent reconciliation."""

    def __init__(
        self,
        budget_storage: BudgetStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._budgets = budget_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger

    def create(self, payload: BudgetCreate) -> Budget:
        """
        Raises:
            DuplicateError: If the owner already has a budget for this
                category and period
        """
        correlation_id = create_correlation_id()

        try:
            budget = self._budgets.create(payload.to_budget())
        except DuplicateError as e:
            raise DuplicateError("Budget already exists for this category and period") from e

        self._audit(AuditEventType.BUDGET_CREATED, budget, correlation_id)
        return budget

    def update(self, budget_id: str, payload: BudgetUpdate) -> Budget:
        correlation_id = create_correlation_id()

        changes = payload.to_changes()
        if not changes:
            budget = self._budgets.get_by_id(budget_id)
            if budget is None:
                raise NotFoundError("Budget not found")
            return budget

        budget = self._budgets.update_by_id(budget_id, changes)
        self._audit(
            AuditEventType.BUDGET_UPDATED,
            budget,
            correlation_id,
            details={"changed_fields": sorted(changes)},
        )
        return budget

    def delete(self, budget_id: str) -> Budget:
        correlation_id = create_correlation_id()

        budget = self._budgets.delete_by_id(budget_id)
        self._audit(AuditEventType.BUDGET_DELETED, budget, correlation_id)
        return budget

    def recalculate_spent(self, budget_id: str) -> Budget:
        """
        Rebuild a budget's spent counter from its transactions.

        Raises:
            NotFoundError: If the budget doesn't exist
        """
        correlation_id = create_correlation_id()

        budget = self._budgets.get_by_id(budget_id)
        if budget is None:
            raise NotFoundError("Budget not found")

        actual = self._transactions.sum_for_period(
            user_id=budget.user_id,
            category=budget.category,
            month=budget.month,
            year=budget.year,
        )
        updated = self._budgets.update_by_id(budget_id, {"spentAmount": float(actual)})

        if budget.spent_amount != updated.spent_amount:
            logger.warning(
                "budget_spent_drift",
                budget_id=budget_id,
                previous=str(budget.spent_amount),
                current=str(updated.spent_amount),
            )

        if self._audit_logger:
            self._audit_logger.log_budget_recalculated(
                budget_id=budget_id,
                user_id=budget.user_id,
                previous=str(budget.spent_amount),
                current=str(updated.spent_amount),
                correlation_id=correlation_id,
            )

        return updated

    def _audit(
        self,
        event_type: AuditEventType,
        budget: Budget,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_entity_changed(
                event_type=event_type,
                entity_type="budget",
                entity_id=budget.id,
                user_id=budget.user_id,
                correlation_id=correlation_id,
                details=details,
            )


class CategoryFlow:
    """
    Orchestrates category writes.

    Renaming or deleting a category does not touch transactions or
    budgets that reference the old name.
    """

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = category_storage
        self._audit_logger = audit_logger

    def create(self, payload: CategoryCreate) -> Category:
        correlation_id = create_correlation_id()

        try:
            category = self._categories.create(payload.to_category())
        except DuplicateError as e:
            raise DuplicateError("Category name already exists") from e

        self._audit(AuditEventType.CATEGORY_CREATED, category, correlation_id)
        return category

    def update(self, category_id: str, payload: CategoryUpdate) -> Category:
        correlation_id = create_correlation_id()

        changes = payload.to_changes()
        if not changes:
            category = self._categories.get_by_id(category_id)
            if category is None:
                raise NotFoundError("Category not found")
            return category

        try:
            category = self._categories.update_by_id(category_id, changes)
        except DuplicateError as e:
            raise DuplicateError("Category name already exists") from e

        self._audit(
            AuditEventType.CATEGORY_UPDATED,
            category,
            correlation_id,
            details={"changed_fields": sorted(changes)},
        )
        return category

    def delete(self, category_id: str) -> Category:
        correlation_id = create_correlation_id()

        category = self._categories.delete_by_id(category_id)
        self._audit(AuditEventType.CATEGORY_DELETED, category, correlation_id)
        return category

    def initialize_defaults(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[int]:
        """
        Insert the default categories for an owner.

        Returns:
            Number inserted, or None if the owner already had them
        """
        correlation_id = correlation_id or create_correlation_id()

        inserted = self._categories.initialize_defaults(user_id)

        if self._audit_logger:
            self._audit_logger.log_default_categories(
                user_id=user_id,
                inserted=inserted,
                correlation_id=correlation_id,
            )

        return inserted

    def _audit(
        self,
        event_type: AuditEventType,
        category: Category,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_entity_changed(
                event_type=event_type,
                entity_type="category",
                entity_id=category.id,
                user_id=category.user_id,
                correlation_id=correlation_id,
                details=details,
            )


class UserFlow:
    """
    Orchestrates user writes.

    Registering a user also gives them the default category set.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        category_flow: CategoryFlow,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = user_storage
        self._category_flow = category_flow
        self._audit_logger = audit_logger

    def register(self, payload: UserCreate) -> User:
        """
        Raises:
            DuplicateError: If the email is already registered
        """
        correlation_id = create_correlation_id()

        try:
            user = self._users.create(payload.to_user())
        except DuplicateError as e:
            raise DuplicateError("Email already exists") from e

        if self._audit_logger:
            self._audit_logger.log_user_registered(
                user_id=user.id,
                email=user.email,
                correlation_id=correlation_id,
            )

        self._category_flow.initialize_defaults(user.id, correlation_id=correlation_id)
        return user

    def update(self, user_id: str, payload: UserUpdate) -> User:
        correlation_id = create_correlation_id()

        changes = payload.to_changes()
        if not changes:
            user = self._users.get_by_id(user_id)
            if user is None:
                raise NotFoundError("User not found")
            return user

        user = self._users.update_by_id(user_id, changes)

        if self._audit_logger:
            self._audit_logger.log_entity_changed(
                event_type=AuditEventType.USER_UPDATED,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                correlation_id=correlation_id,
                details={"changed_fields": sorted(changes)},
            )

        return user


@dataclass
class AppComponents:
    """Everything the HTTP layer needs, wired to one database client."""

    settings: AppSettings
    db_client: MongoDatabaseClient
    transactions: TransactionStorageInterface
    budgets: BudgetStorageInterface
    categories: CategoryStorageInterface
    users: UserStorageInterface
    audit_storage: Optional[AuditStorageInterface]
    audit_logger: AuditLogger
    transaction_flow: TransactionFlow
    budget_flow: BudgetFlow
    category_flow: CategoryFlow
    user_flow: UserFlow


def create_app_components(
    db_client: Optional[MongoDatabaseClient] = None,
    persist_audit: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Nothing connects here; the database client connects on first use.

    Args:
        db_client: Database client to use. Built from settings if None.
        persist_audit: Whether audit events are written to the audit
                       collection. Set to False to log locally only.
    """
    db_client = db_client or MongoDatabaseClient()

    transactions = MongoTransactionStorage(db_client)
    budgets = MongoBudgetStorage(db_client)
    categories = MongoCategoryStorage(db_client)
    users = MongoUserStorage(db_client)

    audit_storage = MongoAuditStorage(db_client) if persist_audit else None
    audit_logger = AuditLogger(audit_storage)

    category_flow = CategoryFlow(categories, audit_logger=audit_logger)

    return AppComponents(
        settings=get_settings().app,
        db_client=db_client,
        transactions=transactions,
        budgets=budgets,
        categories=categories,
        users=users,
        audit_storage=audit_storage,
        audit_logger=audit_logger,
        transaction_flow=TransactionFlow(transactions, budgets, audit_logger=audit_logger),
        budget_flow=BudgetFlow(budgets, transactions, audit_logger=audit_logger),
        category_flow=category_flow,
        user_flow=UserFlow(users, category_flow, audit_logger=audit_logger),
    )
