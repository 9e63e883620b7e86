"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    MongoAuditStorage,
    MongoBudgetStorage,
    MongoCategoryStorage,
    MongoDatabaseClient,
    MongoTransactionStorage,
    MongoUserStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "MongoAuditStorage",
    "MongoBudgetStorage",
    "MongoCategoryStorage",
    "MongoDatabaseClient",
    "MongoTransactionStorage",
    "MongoUserStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
    "UserStorageInterface",
]
