"""
Tests for the write flows.

Focus on the budget spent counter staying in step with transactions.
"""

import pytest
from datetime import date
from decimal import Decimal

from src.models.audit import AuditEventType
from src.models.finance import (
    BudgetCreate,
    BudgetUpdate,
    CategoryCreate,
    TransactionCreate,
    TransactionUpdate,
    UserCreate,
)
from src.services.storage import DuplicateError, NotFoundError


USER_ID = "user-1"


def new_transaction(amount, category="Food & Dining", day=date(2024, 3, 10), user_id=USER_ID):
    return TransactionCreate(
        amount=Decimal(amount),
        description="Test purchase",
        category=category,
        transaction_date=day,
        user_id=user_id,
    )


def new_budget(category="Food & Dining", month=3, year=2024, user_id=USER_ID):
    return BudgetCreate(
        category=category,
        budget_amount=Decimal("500"),
        month=month,
        year=year,
        user_id=user_id,
    )


def spent(components, budget_id):
    return components.budgets.get_by_id(budget_id).spent_amount


class TestTransactionFlow:
    """Tests for budget counter maintenance."""

    def test_create_increments_matching_budget(self, components):
        """Test that a transaction adds exactly its amount to its budget."""
        budget = components.budget_flow.create(new_budget())

        components.transaction_flow.create(new_transaction("12.34"))
        components.transaction_flow.create(new_transaction("7.66"))

        assert spent(components, budget.id) == Decimal("20.00")

    def test_create_only_touches_matching_budget(self, components):
        """Test that other categories, periods and owners are untouched."""
        food = components.budget_flow.create(new_budget())
        travel = components.budget_flow.create(new_budget(category="Travel"))
        april = components.budget_flow.create(new_budget(month=4))
        other = components.budget_flow.create(new_budget(user_id="user-2"))

        components.transaction_flow.create(new_transaction("10"))

        assert spent(components, food.id) == Decimal("10.00")
        assert spent(components, travel.id) == Decimal("0.00")
        assert spent(components, april.id) == Decimal("0.00")
        assert spent(components, other.id) == Decimal("0.00")

    def test_create_without_budget_still_saves(self, components):
        """Test that a transaction with no budget is saved."""
        created = components.transaction_flow.create(new_transaction("10", category="Travel"))
        assert components.transactions.get_by_id(created.id) is not None

    def test_delete_decrements_budget(self, components):
        """Test that deleting takes the amount back off."""
        budget = components.budget_flow.create(new_budget())
        created = components.transaction_flow.create(new_transaction("25"))

        components.transaction_flow.delete(created.id)

        assert spent(components, budget.id) == Decimal("0.00")
        assert components.transactions.get_by_id(created.id) is None

    def test_delete_missing_raises(self, components):
        """Test that deleting a non-existent transaction is a not-found signal."""
        with pytest.raises(NotFoundError):
            components.transaction_flow.delete("0123456789abcdef01234567")

    def test_update_amount_adjusts_budget(self, components):
        """Test that changing the amount moves the counter by the difference."""
        budget = components.budget_flow.create(new_budget())
        created = components.transaction_flow.create(new_transaction("25"))

        updated = components.transaction_flow.update(
            created.id, TransactionUpdate(amount=Decimal("40"))
        )

        assert updated.amount == Decimal("40.00")
        assert spent(components, budget.id) == Decimal("40.00")

    def test_update_category_moves_amount(self, components):
        """Test that recategorizing moves the amount between budgets."""
        food = components.budget_flow.create(new_budget())
        travel = components.budget_flow.create(new_budget(category="Travel"))
        created = components.transaction_flow.create(new_transaction("25"))

        components.transaction_flow.update(created.id, TransactionUpdate(category="Travel"))

        assert spent(components, food.id) == Decimal("0.00")
        assert spent(components, travel.id) == Decimal("25.00")

    def test_update_date_moves_amount_between_months(self, components):
        """Test that changing the date moves the amount between periods."""
        march = components.budget_flow.create(new_budget(month=3))
        april = components.budget_flow.create(new_budget(month=4))
        created = components.transaction_flow.create(new_transaction("25"))

        components.transaction_flow.update(
            created.id, TransactionUpdate(transaction_date=date(2024, 4, 2))
        )

        assert spent(components, march.id) == Decimal("0.00")
        assert spent(components, april.id) == Decimal("25.00")

    def test_update_description_leaves_budget(self, components):
        """Test that unrelated edits do not move the counter."""
        budget = components.budget_flow.create(new_budget())
        created = components.transaction_flow.create(new_transaction("25"))

        components.transaction_flow.update(created.id, TransactionUpdate(description="Lunch"))

        assert spent(components, budget.id) == Decimal("25.00")

    def test_update_missing_raises(self, components):
        """Test that editing a non-existent transaction is a not-found signal."""
        with pytest.raises(NotFoundError):
            components.transaction_flow.update("bogus", TransactionUpdate(description="x"))

    def test_update_compensates_against_replaced_state(self, components, monkeypatch):
        """Test that the counter follows the stored state, not an earlier read."""
        budget = components.budget_flow.create(new_budget())
        created = components.transaction_flow.create(new_transaction("25"))
        stale = created.model_copy(update={"amount": Decimal("999.00")})
        monkeypatch.setattr(components.transactions, "get_by_id", lambda transaction_id: stale)

        components.transaction_flow.update(created.id, TransactionUpdate(amount=Decimal("40")))

        assert spent(components, budget.id) == Decimal("40.00")

    def test_writes_are_audited(self, components):
        """Test that a create and its budget adjustment share a correlation id."""
        components.budget_flow.create(new_budget())
        created = components.transaction_flow.create(new_transaction("10"))

        events = components.audit_storage.get_recent_events(limit=50)
        created_event = next(e for e in events if e.entity_id == created.id)
        adjusted = [
            e for e in events
            if e.event_type == AuditEventType.BUDGET_SPENT_ADJUSTED
            and e.correlation_id == created_event.correlation_id
        ]

        assert created_event.event_type == AuditEventType.TRANSACTION_CREATED
        assert len(adjusted) == 1


class TestBudgetFlow:
    """Tests for budget writes and reconciliation."""

    def test_duplicate_budget_message(self, components):
        """Test the duplicate budget error message."""
        components.budget_flow.create(new_budget())
        with pytest.raises(DuplicateError, match="Budget already exists for this category and period"):
            components.budget_flow.create(new_budget())

    def test_recalculate_repairs_drift(self, components):
        """Test that reconciliation rebuilds spent from transactions."""
        budget = components.budget_flow.create(new_budget())
        components.transaction_flow.create(new_transaction("10"))
        components.transaction_flow.create(new_transaction("5.5"))
        components.budget_flow.update(budget.id, BudgetUpdate(spent_amount=Decimal("999")))

        repaired = components.budget_flow.recalculate_spent(budget.id)

        assert repaired.spent_amount == Decimal("15.50")
        assert spent(components, budget.id) == Decimal("15.50")

    def test_recalculate_counts_transactions_before_budget(self, components):
        """Test that spending recorded before the budget existed is picked up."""
        components.transaction_flow.create(new_transaction("30"))
        budget = components.budget_flow.create(new_budget())
        assert budget.spent_amount == Decimal("0.00")

        repaired = components.budget_flow.recalculate_spent(budget.id)
        assert repaired.spent_amount == Decimal("30.00")

    def test_recalculate_missing_raises(self, components):
        """Test reconciliation of a non-existent budget."""
        with pytest.raises(NotFoundError):
            components.budget_flow.recalculate_spent("0123456789abcdef01234567")

    def test_update_empty_returns_current(self, components):
        """Test that an empty edit is a no-op."""
        budget = components.budget_flow.create(new_budget())
        unchanged = components.budget_flow.update(budget.id, BudgetUpdate())
        assert unchanged.budget_amount == Decimal("500.00")

    def test_delete_missing_raises(self, components):
        """Test deleting a non-existent budget."""
        with pytest.raises(NotFoundError):
            components.budget_flow.delete("0123456789abcdef01234567")


class TestCategoryFlow:
    """Tests for category writes."""

    def test_duplicate_name_message(self, components):
        """Test the duplicate category error message."""
        components.category_flow.create(CategoryCreate(name="Pets", user_id=USER_ID))
        with pytest.raises(DuplicateError, match="Category name already exists"):
            components.category_flow.create(CategoryCreate(name="Pets", user_id=USER_ID))

    def test_initialize_defaults_twice(self, components):
        """Test that the second bootstrap is a no-op."""
        assert components.category_flow.initialize_defaults(USER_ID) == 10
        assert components.category_flow.initialize_defaults(USER_ID) is None


class TestUserFlow:
    """Tests for user registration."""

    def test_register_creates_default_categories(self, components):
        """Test that a new user gets the default categories."""
        user = components.user_flow.register(UserCreate(email="ana@example.com", name="Ana"))

        categories = components.categories.find_by_user(user.id)
        assert len(categories) == 10

    def test_register_duplicate_email(self, components):
        """Test the duplicate email error message."""
        components.user_flow.register(UserCreate(email="ana@example.com", name="Ana"))
        with pytest.raises(DuplicateError, match="Email already exists"):
            components.user_flow.register(UserCreate(email="ana@example.com", name="Ana"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
