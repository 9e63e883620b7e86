"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements MongoDB as the backend, but designed to be swappable.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)
from src.services.storage.mongo import (
    MongoAuditStorage,
    MongoBudgetStorage,
    MongoCategoryStorage,
    MongoDatabaseClient,
    MongoTransactionStorage,
    MongoUserStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "TransactionStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # MongoDB implementation
    "MongoAuditStorage",
    "MongoBudgetStorage",
    "MongoCategoryStorage",
    "MongoDatabaseClient",
    "MongoTransactionStorage",
    "MongoUserStorage",
]
