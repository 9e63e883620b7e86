"""
Finance Tracker - Source Package

Storage, models and write flows behind the personal finance tracker API:
transactions, categories, budgets and users kept in MongoDB.

DESIGN PRINCIPLES:
1. Every write is owner-scoped; there is no default user
2. Budget spent counters follow transaction writes and can be rebuilt
3. Every write is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
