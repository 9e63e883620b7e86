"""
MongoDB Storage Implementation

DESIGN DECISION: MongoDB is the storage backend because:
1. Entities are small, self-contained documents
2. The dashboard aggregations map directly onto aggregation pipelines
3. Unique indexes give us duplicate detection for free

TRADEOFFS:
- No multi-document transactions (a transaction insert and its budget
  counter update are two independent writes)
- No referential integrity between collections (categories are
  referenced by name)

One MongoClient is created lazily and shared by every repository.
Driver errors are translated into the storage error taxonomy here so
nothing above this module imports pymongo.
"""

import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import MongoSettings, get_settings
from src.models.finance import (
    CENTS,
    Budget,
    BudgetVsActual,
    Category,
    CategoryTotal,
    MongoDocument,
    MonthlyTotal,
    Transaction,
    User,
    default_categories_for,
    utc_now,
)
from src.models.audit import AuditEvent
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


DUPLICATE_KEY = 11000

logger = structlog.get_logger(__name__)


def _object_id(value: str) -> Optional[ObjectId]:
    """Parse a hex id; malformed ids are treated as unknown ids."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month)."""
    start = datetime(year, month, 1)
    if month == 12:
        return start, datetime(year + 1, 1, 1)
    return start, datetime(year, month + 1, 1)


class MongoDatabaseClient:
    """
    Low-level MongoDB client wrapper.

    Handles connection setup, index creation and health checks.
    The connection is established on first use and then reused.
    """

    def __init__(
        self,
        settings: Optional[MongoSettings] = None,
        client: Optional[MongoClient] = None,
    ):
        """
        Args:
            settings: Connection settings. Read from the environment if None.
            client: Pre-built client (e.g. an in-memory one for tests).
        """
        self._settings = settings or get_settings().mongo
        self._client = client
        self._database: Optional[Database] = None
        self._lock = threading.Lock()

    @property
    def settings(self) -> MongoSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ConnectionError),
        reraise=True,
    )
    def connect(self) -> MongoClient:
        """
        Establish the connection to MongoDB, retrying on failure.

        Verified with a ping so a bad URI fails here rather than on the
        first query.
        """
        return self._open()

    def _open(self) -> MongoClient:
        """Single connection attempt; reuses an open client."""
        with self._lock:
            if self._client is None:
                client = None
                try:
                    client = MongoClient(
                        self._settings.uri,
                        serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
                        maxPoolSize=self._settings.max_pool_size,
                    )
                    client.admin.command("ping")
                except PyMongoError as e:
                    if client is not None:
                        client.close()
                    logger.warning("mongo_connect_failed", error=str(e))
                    raise ConnectionError(f"Failed to connect to MongoDB: {e}")
                self._client = client
                logger.info("mongo_connected", db_name=self._settings.db_name)

        return self._client

    def get_database(self) -> Database:
        """Get the configured database, creating indexes on first access."""
        if self._database is None:
            database = self.connect()[self._settings.db_name]
            self._ensure_indexes(database)
            self._database = database
        return self._database

    def collection(self, name: str) -> Collection:
        return self.get_database()[name]

    def _ensure_indexes(self, database: Database) -> None:
        """Create the indexes the API relies on. Failures are logged, not raised."""
        s = self._settings
        try:
            transactions = database[s.transactions_collection]
            transactions.create_index([("userId", ASCENDING), ("date", DESCENDING)])
            transactions.create_index([("category", ASCENDING)])
            transactions.create_index([("createdAt", DESCENDING)])

            database[s.categories_collection].create_index(
                [("userId", ASCENDING), ("name", ASCENDING)],
                unique=True,
            )
            database[s.budgets_collection].create_index(
                [
                    ("userId", ASCENDING),
                    ("category", ASCENDING),
                    ("month", ASCENDING),
                    ("year", ASCENDING),
                ],
                unique=True,
            )
            database[s.users_collection].create_index([("email", ASCENDING)], unique=True)

            audit = database[s.audit_collection]
            audit.create_index([("entity_type", ASCENDING), ("entity_id", ASCENDING)])
            audit.create_index([("timestamp", DESCENDING)])

            logger.info("mongo_indexes_ready", db_name=s.db_name)
        except PyMongoError as e:
            logger.warning("mongo_index_creation_failed", error=str(e))

    def ping(self) -> bool:
        """
        Check the database answers.

        Makes one connection attempt so health checks answer within the
        server selection timeout.

        Raises:
            ConnectionError: If it doesn't
        """
        try:
            self._open().admin.command("ping")
        except PyMongoError as e:
            raise ConnectionError(f"MongoDB ping failed: {e}")
        return True

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
                self._database = None
                logger.info("mongo_connection_closed")


class MongoRepository:
    """
    Shared CRUD for one collection.

    Subclasses set `model` (the document model) and `entity_name`
    (used in error messages).
    """

    model: type[MongoDocument] = MongoDocument
    entity_name: str = "document"

    def __init__(self, client: MongoDatabaseClient, collection_name: str):
        self._client = client
        self._collection_name = collection_name

    @property
    def _collection(self) -> Collection:
        return self._client.collection(self._collection_name)

    def _not_found(self, entity_id: str) -> NotFoundError:
        logger.info("document_not_found", entity=self.entity_name, entity_id=entity_id)
        return NotFoundError(f"{self.entity_name.capitalize()} not found")

    def _insert(self, entity: MongoDocument):
        try:
            result = self._collection.insert_one(entity.to_document())
        except DuplicateKeyError as e:
            raise DuplicateError(f"{self.entity_name.capitalize()} already exists") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to save {self.entity_name}: {e}") from e
        return entity.model_copy(update={"id": str(result.inserted_id)})

    def _find(
        self,
        query: dict[str, Any],
        sort: list[tuple[str, int]],
        limit: int = 0,
        skip: int = 0,
    ) -> list:
        try:
            cursor = self._collection.find(query).sort(sort).skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return [self.model.from_document(doc) for doc in cursor]
        except PyMongoError as e:
            raise StorageError(f"Failed to list {self.entity_name}s: {e}") from e

    def _aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        try:
            return list(self._collection.aggregate(pipeline))
        except PyMongoError as e:
            raise StorageError(f"Failed to aggregate {self.entity_name}s: {e}") from e

    def get_by_id(self, entity_id: str):
        oid = _object_id(entity_id)
        if oid is None:
            return None
        try:
            document = self._collection.find_one({"_id": oid})
        except PyMongoError as e:
            raise StorageError(f"Failed to get {self.entity_name}: {e}") from e
        return self.model.from_document(document) if document else None

    def _set_fields(
        self,
        entity_id: str,
        fields: dict[str, Any],
        return_document: ReturnDocument,
    ) -> dict[str, Any]:
        oid = _object_id(entity_id)
        if oid is None:
            raise self._not_found(entity_id)
        try:
            document = self._collection.find_one_and_update(
                {"_id": oid},
                {"$set": fields},
                return_document=return_document,
            )
        except DuplicateKeyError as e:
            raise DuplicateError(f"{self.entity_name.capitalize()} already exists") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to update {self.entity_name}: {e}") from e
        if document is None:
            raise self._not_found(entity_id)
        return document

    def update_by_id(self, entity_id: str, changes: dict[str, Any]):
        document = self._set_fields(
            entity_id,
            {**changes, "updatedAt": utc_now()},
            ReturnDocument.AFTER,
        )
        return self.model.from_document(document)

    def update_returning_previous(self, entity_id: str, changes: dict[str, Any]) -> tuple:
        """
        Apply changes and return (previous, updated) from one atomic write.

        The previous state is the one this write replaced, so a
        concurrent edit can't slip in between the read and the update.
        """
        fields = {**changes, "updatedAt": utc_now()}
        previous = self._set_fields(entity_id, fields, ReturnDocument.BEFORE)
        return (
            self.model.from_document(previous),
            self.model.from_document({**previous, **fields}),
        )

    def delete_by_id(self, entity_id: str):
        oid = _object_id(entity_id)
        if oid is None:
            raise self._not_found(entity_id)
        try:
            document = self._collection.find_one_and_delete({"_id": oid})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete {self.entity_name}: {e}") from e
        if document is None:
            raise self._not_found(entity_id)
        return self.model.from_document(document)


class MongoTransactionStorage(MongoRepository, TransactionStorageInterface):
    """Transactions collection, including the spending aggregations."""

    model = Transaction
    entity_name = "transaction"

    def __init__(self, client: MongoDatabaseClient):
        super().__init__(client, client.settings.transactions_collection)

    def create(self, transaction: Transaction) -> Transaction:
        return self._insert(transaction)

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
        query: dict[str, Any] = {"userId": user_id}

        if start_date or end_date:
            date_range = {}
            if start_date:
                date_range["$gte"] = start_date
            if end_date:
                date_range["$lte"] = end_date
            query["date"] = date_range

        if category:
            query["category"] = category

        return self._find(query, sort=[(sort_by, sort_order)], limit=limit, skip=skip)

    def get_monthly_totals(self, user_id: str, year: int) -> list[MonthlyTotal]:
        pipeline = [
            {
                "$match": {
                    "userId": user_id,
                    "date": {
                        "$gte": datetime(year, 1, 1),
                        "$lt": datetime(year + 1, 1, 1),
                    },
                }
            },
            {
                "$group": {
                    "_id": {"$month": "$date"},
                    "total": {"$sum": "$amount"},
                    "count": {"$sum": 1},
                }
            },
            {"$sort": {"_id": 1}},
        ]

        return [
            MonthlyTotal(month=row["_id"], total=row["total"], count=row["count"])
            for row in self._aggregate(pipeline)
        ]

    def get_category_totals(
        self,
        user_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> list[CategoryTotal]:
        pipeline = [
            {
                "$match": {
                    "userId": user_id,
                    "date": {"$gte": start_date, "$lte": end_date},
                }
            },
            {
                "$group": {
                    "_id": "$category",
                    "total": {"$sum": "$amount"},
                    "count": {"$sum": 1},
                    "average": {"$avg": "$amount"},
                }
            },
            {"$sort": {"total": -1, "_id": 1}},
        ]

        return [
            CategoryTotal(
                category=row["_id"],
                total=row["total"],
                count=row["count"],
                average=row["average"],
            )
            for row in self._aggregate(pipeline)
        ]

    def sum_for_period(
        self,
        user_id: str,
        category: str,
        month: int,
        year: int,
    ) -> Decimal:
        start, end = _month_bounds(month, year)
        pipeline = [
            {
                "$match": {
                    "userId": user_id,
                    "category": category,
                    "date": {"$gte": start, "$lt": end},
                }
            },
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ]

        rows = self._aggregate(pipeline)
        if not rows:
            return Decimal("0.00")
        return Decimal(str(rows[0]["total"])).quantize(CENTS)


class MongoBudgetStorage(MongoRepository, BudgetStorageInterface):
    """Budgets collection, including the spent counter and budget-vs-actual."""

    model = Budget
    entity_name = "budget"

    def __init__(self, client: MongoDatabaseClient):
        super().__init__(client, client.settings.budgets_collection)

    def create(self, budget: Budget) -> Budget:
        return self._insert(budget)

    def find_by_user(
        self,
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        query: dict[str, Any] = {"userId": user_id}
        if month is not None and year is not None:
            query["month"] = month
            query["year"] = year
        return self._find(query, sort=[("category", ASCENDING)])

    def update_spent_amount(
        self,
        user_id: str,
        category: str,
        month: int,
        year: int,
        amount: Decimal,
    ) -> bool:
        try:
            result = self._collection.update_one(
                {"userId": user_id, "category": category, "month": month, "year": year},
                {
                    "$inc": {"spentAmount": float(amount)},
                    "$set": {"updatedAt": utc_now()},
                },
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to update budget spent amount: {e}") from e
        return result.matched_count > 0

    def get_budget_vs_actual(self, user_id: str, year: int) -> list[BudgetVsActual]:
        pipeline = [
            {"$match": {"userId": user_id, "year": year}},
            {
                "$group": {
                    "_id": "$month",
                    "totalBudget": {"$sum": "$budgetAmount"},
                    "totalSpent": {"$sum": "$spentAmount"},
                }
            },
            {"$sort": {"_id": 1}},
        ]

        return [
            BudgetVsActual(
                month=row["_id"],
                total_budget=row["totalBudget"],
                total_spent=row["totalSpent"],
            )
            for row in self._aggregate(pipeline)
        ]


class MongoCategoryStorage(MongoRepository, CategoryStorageInterface):
    """Categories collection."""

    model = Category
    entity_name = "category"

    def __init__(self, client: MongoDatabaseClient):
        super().__init__(client, client.settings.categories_collection)

    def create(self, category: Category) -> Category:
        return self._insert(category)

    def find_by_user(self, user_id: str) -> list[Category]:
        return self._find({"userId": user_id}, sort=[("name", ASCENDING)])

    def initialize_defaults(self, user_id: str) -> Optional[int]:
        documents = [category.to_document() for category in default_categories_for(user_id)]

        # Unordered so missing defaults are still filled in next to existing ones
        try:
            result = self._collection.insert_many(documents, ordered=False)
        except BulkWriteError as e:
            errors = e.details.get("writeErrors", [])
            if errors and all(error.get("code") == DUPLICATE_KEY for error in errors):
                logger.info(
                    "default_categories_exist",
                    user_id=user_id,
                    inserted=e.details.get("nInserted", 0),
                )
                return None
            raise StorageError(f"Failed to initialize categories: {e}") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to initialize categories: {e}") from e

        return len(result.inserted_ids)


class MongoUserStorage(MongoRepository, UserStorageInterface):
    """Users collection."""

    model = User
    entity_name = "user"

    def __init__(self, client: MongoDatabaseClient):
        super().__init__(client, client.settings.users_collection)

    def create(self, user: User) -> User:
        return self._insert(user)

    def get_by_email(self, email: str) -> Optional[User]:
        try:
            document = self._collection.find_one({"email": email})
        except PyMongoError as e:
            raise StorageError(f"Failed to get user: {e}") from e
        return User.from_document(document) if document else None


class MongoAuditStorage(AuditStorageInterface):
    """
    MongoDB implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: MongoDatabaseClient):
        self._client = client

    @property
    def _collection(self) -> Collection:
        return self._client.collection(self._client.settings.audit_collection)

    def append_event(self, event: AuditEvent) -> bool:
        try:
            self._collection.insert_one(event.to_document())
            return True
        except (PyMongoError, StorageError) as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_event_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            cursor = self._collection.find(
                {"entity_type": entity_type, "entity_id": entity_id}
            ).sort("timestamp", ASCENDING)
            return [AuditEvent.model_validate(doc) for doc in cursor]
        except PyMongoError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            cursor = self._collection.find().sort("timestamp", DESCENDING).limit(limit)
            return [AuditEvent.model_validate(doc) for doc in cursor]
        except PyMongoError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
