"""
Data Models Package

This package contains all Pydantic models used by the Finance Tracker.
Every document stored and every payload accepted conforms to these schemas.
"""

from src.models.finance import (
    DEFAULT_CATEGORIES,
    Budget,
    BudgetCreate,
    BudgetUpdate,
    BudgetVsActual,
    Category,
    CategoryCreate,
    CategoryInitialize,
    CategoryTotal,
    CategoryUpdate,
    MonthlyTotal,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
    User,
    UserCreate,
    UserPreferences,
    UserUpdate,
    default_categories_for,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORIES",
    "Budget",
    "BudgetCreate",
    "BudgetUpdate",
    "BudgetVsActual",
    "Category",
    "CategoryCreate",
    "CategoryInitialize",
    "CategoryTotal",
    "CategoryUpdate",
    "MonthlyTotal",
    "Transaction",
    "TransactionCreate",
    "TransactionUpdate",
    "User",
    "UserCreate",
    "UserPreferences",
    "UserUpdate",
    "default_categories_for",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
