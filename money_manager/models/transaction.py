"""
Core Data Models for Money Manager

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal end to end. Floats only appear at the
very edge, when a response body is rendered.
"""

from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach `tz` (UTC by default) to a naive datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz or timezone.utc)
    return value


def normalize_amount(value: Any) -> Any:
    """Collapse a negative zero to zero."""
    if isinstance(value, Decimal) and value.is_zero():
        return value.copy_abs()
    return value


def parse_datetime(value: Any, tz: Optional[tzinfo] = None) -> Any:
    """
    Parse an ISO 8601 date or datetime string.

    Date-only strings mean midnight. A trailing "Z" is accepted.
    Non-string values are returned untouched for pydantic to handle.
    """
    if not isinstance(value, str):
        if isinstance(value, datetime):
            return ensure_aware(value, tz)
        return value
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}")
    return ensure_aware(parsed, tz)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class Division(str, Enum):
    """
    Which side of life a transaction belongs to.

    Every transaction has exactly one division; PERSONAL is the default.
    """
    OFFICE = "office"
    PERSONAL = "personal"


class Period(str, Enum):
    """Relative time windows understood by the transaction list."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Query value meaning "no constraint on this dimension"
ALL = "all"


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    A stored income or expense entry.

    `created_at` and `id` never change after creation. `editable` only
    ever goes from True to False; it caches "less than the edit window has
    passed since created_at" and is never trusted on its own.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )

    kind: TransactionKind = Field(
        ...,
        description="Income or expense"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative amount"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="Free-text description"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Free-text grouping label"
    )
    division: Division = Field(
        default=Division.PERSONAL,
        description="Office or personal"
    )

    # Lifecycle
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the transaction was recorded (UTC)"
    )
    editable: bool = Field(
        default=True,
        description="Cached edit-window flag"
    )

    @field_validator('amount')
    @classmethod
    def amount_not_negative_zero(cls, v: Decimal) -> Decimal:
        return normalize_amount(v)

    @field_validator('created_at')
    @classmethod
    def created_at_is_aware(cls, v: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        return ensure_aware(v)

    @property
    def breakdown_key(self) -> str:
        """Key used by the category breakdown, e.g. "expense-food"."""
        return f"{self.kind.value}-{self.category}"


class TransactionCreate(BaseModel):
    """
    Fields accepted when recording a new transaction.

    Server-owned fields (id, created_at, editable) are ignored if sent.
    Web clients send `kind` as "type"; both names are accepted.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    kind: TransactionKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
    )
    amount: Decimal = Field(..., ge=0)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    division: Division = Division.PERSONAL

    @field_validator('amount')
    @classmethod
    def amount_not_negative_zero(cls, v: Decimal) -> Decimal:
        return normalize_amount(v)

    @field_validator('division', mode='before')
    @classmethod
    def default_division(cls, v: Any) -> Any:
        """A null division falls back to the default."""
        return Division.PERSONAL if v is None else v

    def to_transaction(self, created_at: datetime) -> Transaction:
        return Transaction(
            kind=self.kind,
            amount=self.amount,
            description=self.description,
            category=self.category,
            division=self.division,
            created_at=created_at,
            editable=True,
        )


class TransactionUpdate(BaseModel):
    """
    A partial update.

    Only the fields the caller actually sent are applied. Sending null for
    a field is an error because every stored field is required.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    kind: Optional[TransactionKind] = Field(
        default=None,
        validation_alias=AliasChoices("kind", "type"),
    )
    amount: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    division: Optional[Division] = None

    @field_validator('amount')
    @classmethod
    def amount_not_negative_zero(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return normalize_amount(v)

    @model_validator(mode='after')
    def no_explicit_nulls(self) -> 'TransactionUpdate':
        nulls = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None
        )
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self

    def to_patch(self) -> dict[str, Any]:
        """Only the fields that were sent, ready to merge into a record."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionQuery(BaseModel):
    """
    Typed list/summary query.

    "all" (or an empty value) for division/category means no constraint.
    Naive datetimes are read in the timezone passed as validation
    context under "tz".
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    division: Optional[Division] = None
    category: Optional[str] = None
    period: Optional[Period] = None
    start_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("start_date", "startDate"),
    )
    end_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("end_date", "endDate"),
    )

    @field_validator('division', 'period', mode='before')
    @classmethod
    def all_means_none(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("", ALL):
            return None
        return v

    @field_validator('category', mode='before')
    @classmethod
    def all_category_means_none(cls, v: Any) -> Any:
        """Categories are free text, so only the exact value "all" is special."""
        if isinstance(v, str) and v.strip() in ("", ALL):
            return None
        return v

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_dates(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        tz = (info.context or {}).get("tz")
        return parse_datetime(v, tz)

    @property
    def has_explicit_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


class TransactionFilter(BaseModel):
    """
    Predicate over stored transactions, built by the filter engine.

    Every set field must match (logical AND). Backends that filter in
    Python call `matches`; others can translate the fields directly.
    """

    division: Optional[Division] = None
    category: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def matches(self, record: Transaction) -> bool:
        if self.division is not None and record.division != self.division:
            return False
        if self.category is not None and record.category != self.category:
            return False
        if self.created_from is not None and record.created_at < self.created_from:
            return False
        if self.created_to is not None and record.created_at > self.created_to:
            return False
        return True


class SortSpec(BaseModel):
    """Result ordering. Newest first unless told otherwise."""

    field: str = Field(
        default="created_at",
        pattern="^(created_at|amount)$",
    )
    descending: bool = True

    def apply(self, records: list[Transaction]) -> list[Transaction]:
        return sorted(
            records,
            key=lambda r: getattr(r, self.field),
            reverse=self.descending,
        )


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class CategoryTotal(BaseModel):
    """Running total for one (kind, category) pair."""

    amount: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)

    def __add__(self, other: 'CategoryTotal') -> 'CategoryTotal':
        return CategoryTotal(
            amount=self.amount + other.amount,
            count=self.count + other.count,
        )


def _empty_division_breakdown() -> dict[Division, Decimal]:
    return {division: Decimal("0") for division in Division}


class TransactionSummary(BaseModel):
    """
    Aggregate view over a set of transactions.

    division_breakdown always carries both divisions and only counts
    expenses.
    """

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)
    category_breakdown: dict[str, CategoryTotal] = Field(default_factory=dict)
    division_breakdown: dict[Division, Decimal] = Field(
        default_factory=_empty_division_breakdown
    )

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expense

    def combine(self, other: 'TransactionSummary') -> 'TransactionSummary':
        """Element-wise sum of two summaries over disjoint record sets."""
        categories = dict(self.category_breakdown)
        for key, total in other.category_breakdown.items():
            categories[key] = categories[key] + total if key in categories else total

        return TransactionSummary(
            total_income=self.total_income + other.total_income,
            total_expense=self.total_expense + other.total_expense,
            transaction_count=self.transaction_count + other.transaction_count,
            category_breakdown=categories,
            division_breakdown={
                division: (
                    self.division_breakdown.get(division, Decimal("0"))
                    + other.division_breakdown.get(division, Decimal("0"))
                )
                for division in Division
            },
        )
