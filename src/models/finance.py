"""
Core Data Models for the Finance Tracker

These models define the schemas for every document stored in MongoDB
and every payload accepted by the API. They are designed to:
1. Validate input at the API boundary
2. Map cleanly to and from stored documents (camelCase keys, `_id` ids)
3. Keep money as Decimal in Python while storing plain numbers

DESIGN DECISION: Documents use camelCase field names so the stored data
and the JSON wire format are identical. Python code uses snake_case.
"""

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


CENTS = Decimal("0.01")

# Budget periods; December of YEAR_MAX still has a next month to bound it
YEAR_MIN = 1970
YEAR_MAX = 9998


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# Stored as BSON doubles and sent as JSON numbers
Money = Annotated[
    Decimal,
    AfterValidator(_to_cents),
    PlainSerializer(float, return_type=float),
]
PositiveMoney = Annotated[
    Decimal,
    Field(gt=0),
    AfterValidator(_to_cents),
    PlainSerializer(float, return_type=float),
]


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (what the driver hands back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _coerce_day(value: Any) -> Any:
    """Accept plain dates and YYYY-MM-DD strings for datetime fields."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and len(value.strip()) == 10:
        return datetime.combine(date.fromisoformat(value.strip()), time.min)
    return value


# =============================================================================
# BASE MODELS
# =============================================================================

class ApiModel(BaseModel):
    """Base for every API payload: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class MongoDocument(ApiModel):
    """
    Base for models persisted as MongoDB documents.

    The ObjectId is exposed as a string under `_id`.
    """

    id: Optional[str] = Field(
        default=None,
        alias="_id",
        description="Document id (hex ObjectId)"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_object_id(cls, v: Any) -> Any:
        if isinstance(v, ObjectId):
            return str(v)
        return v

    def to_document(self) -> dict[str, Any]:
        """Convert to a document ready for insertion (without `_id`)."""
        return self.model_dump(by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, document: dict[str, Any]):
        """Build a model from a stored document."""
        return cls.model_validate(document)


class ChangeSet(ApiModel):
    """Base for partial updates: only fields the caller sent are applied."""

    def to_changes(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(MongoDocument):
    """
    A single spending record.

    The category is stored by name, not as a reference. Renaming or
    deleting a category leaves existing transactions untouched.
    """

    amount: PositiveMoney = Field(
        ...,
        description="Amount spent"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name"
    )
    transaction_date: datetime = Field(
        ...,
        alias="date",
        description="When the money was spent"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the transaction"
    )

    @field_validator("transaction_date", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> Any:
        return _coerce_day(v)

    @field_validator("transaction_date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @property
    def period(self) -> tuple[int, int]:
        """(month, year) the transaction counts towards."""
        return self.transaction_date.month, self.transaction_date.year


class TransactionCreate(ApiModel):
    """Payload for creating a transaction."""

    amount: PositiveMoney
    description: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    transaction_date: datetime = Field(..., alias="date")
    user_id: str = Field(..., min_length=1)

    @field_validator("transaction_date", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> Any:
        return _coerce_day(v)

    @field_validator("transaction_date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    def to_transaction(self) -> Transaction:
        return Transaction(**self.model_dump())


class TransactionUpdate(ChangeSet):
    """Payload for editing a transaction. Owner cannot be changed."""

    amount: Optional[PositiveMoney] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    transaction_date: Optional[datetime] = Field(default=None, alias="date")

    @field_validator("transaction_date", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> Any:
        return _coerce_day(v)

    @field_validator("transaction_date")
    @classmethod
    def normalize_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v) if v is not None else v


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(MongoDocument):
    """
    Monthly spending limit for one category.

    spent_amount is a running total kept in step with transactions
    through compensating writes. It may be negative after drift and can
    be rebuilt from transactions at any time.
    """

    category: str = Field(..., min_length=1, max_length=100)
    budget_amount: PositiveMoney
    spent_amount: Money = Field(default=Decimal("0.00"))
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=YEAR_MIN, le=YEAR_MAX)
    user_id: str = Field(..., min_length=1)


class BudgetCreate(ApiModel):
    """Payload for creating a budget."""

    category: str = Field(..., min_length=1, max_length=100)
    budget_amount: PositiveMoney
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=YEAR_MIN, le=YEAR_MAX)
    user_id: str = Field(..., min_length=1)

    def to_budget(self) -> Budget:
        return Budget(**self.model_dump())


class BudgetUpdate(ChangeSet):
    """Payload for editing a budget's amounts."""

    budget_amount: Optional[PositiveMoney] = None
    spent_amount: Optional[Money] = None


# =============================================================================
# CATEGORIES
# =============================================================================

DEFAULT_ICON = "DollarSign"
DEFAULT_COLOR = "#45B7D1"

# (name, icon, color)
DEFAULT_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("Food & Dining", "Utensils", "#FF6B6B"),
    ("Transportation", "Car", "#4ECDC4"),
    ("Shopping", "ShoppingCart", "#45B7D1"),
    ("Bills & Utilities", "Zap", "#96CEB4"),
    ("Entertainment", "GamepadIcon", "#FFEAA7"),
    ("Travel", "Plane", "#DDA0DD"),
    ("Housing", "Home", "#98D8C8"),
    ("Healthcare", "Heart", "#FF7675"),
    ("Education", "BookOpen", "#74B9FF"),
    ("Personal Care", "User", "#FD79A8"),
)


class Category(MongoDocument):
    """A spending category. Names are unique per owner."""

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default=DEFAULT_ICON, max_length=50)
    color: str = Field(default=DEFAULT_COLOR, max_length=20)
    user_id: str = Field(..., min_length=1)


class CategoryCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    user_id: str = Field(..., min_length=1)

    def to_category(self) -> Category:
        return Category(
            name=self.name,
            icon=self.icon or DEFAULT_ICON,
            color=self.color or DEFAULT_COLOR,
            user_id=self.user_id,
        )


class CategoryUpdate(ChangeSet):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)


class CategoryInitialize(ApiModel):
    user_id: str = Field(..., min_length=1)


def default_categories_for(user_id: str) -> list[Category]:
    """Build the default category set for an owner."""
    return [
        Category(name=name, icon=icon, color=color, user_id=user_id)
        for name, icon, color in DEFAULT_CATEGORIES
    ]


# =============================================================================
# USERS
# =============================================================================

class UserPreferences(ApiModel):
    """Display preferences for a user."""

    currency: str = Field(default="USD", min_length=3, max_length=3)
    date_format: str = Field(default="MM/DD/YYYY", max_length=20)
    theme: str = Field(default="dark", max_length=20)


class User(MongoDocument):
    """An account. Email is globally unique."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    preferences: UserPreferences = Field(default_factory=UserPreferences)


class UserCreate(ApiModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    preferences: Optional[UserPreferences] = None

    def to_user(self) -> User:
        return User(
            email=self.email,
            name=self.name,
            preferences=self.preferences or UserPreferences(),
        )


class UserUpdate(ChangeSet):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    preferences: Optional[UserPreferences] = None


# =============================================================================
# ANALYTICS RESULTS
# =============================================================================

class MonthlyTotal(ApiModel):
    """Spending for one calendar month. Empty months are omitted."""

    month: int = Field(..., ge=1, le=12)
    total: Money
    count: int = Field(..., ge=0)


class CategoryTotal(ApiModel):
    """Spending for one category over a date range."""

    category: str
    total: Money
    count: int = Field(..., ge=0)
    average: Money


class BudgetVsActual(ApiModel):
    """Budgeted and spent amounts summed over all categories for one month."""

    month: int = Field(..., ge=1, le=12)
    total_budget: Money
    total_spent: Money
