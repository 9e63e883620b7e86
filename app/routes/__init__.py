"""API route modules, one per collection."""

from app.routes import budgets, categories, transactions, users

__all__ = ["budgets", "categories", "transactions", "users"]
