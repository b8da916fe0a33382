"""Data models and type aliases for ``statement_import``.

Two families live here:

- pipeline-internal records (frozen dataclasses): :class:`ImportableTransaction`,
  :class:`ParseResult`, :class:`HashedTransaction`, :class:`RecentTransaction`;
- boundary DTOs (pydantic models) returned by :mod:`statement_import.api` and
  serialized by the CLI: :class:`ColumnMapping`, :class:`DetectedColumns`,
  :class:`PreviewResult`, :class:`CommitResult` and friends.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .heuristics import CATEGORIES

# ---------------------------------------------------------------------------
# Raw rows
# ---------------------------------------------------------------------------

type Cell = str | int | float | Decimal | dt.date | dt.datetime | None
"""A single source cell: text for CSV, typed values for spreadsheet cells."""

type RawRow = Mapping[str, Cell]
"""One source row keyed by (trimmed) header name."""

MAX_TAGS = 20


class FileKind(StrEnum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"


class TransactionType(StrEnum):
    EXPENSE = "expense"
    INCOME = "income"


class SignPolicy(StrEnum):
    """How a bare signed amount maps to a transaction type.

    ``negative_is_income`` is the card-statement convention (charges positive,
    payments and credits negative). ``negative_is_expense`` fits plain bank
    exports where debits are already negative.
    """

    NEGATIVE_IS_INCOME = "negative_is_income"
    NEGATIVE_IS_EXPENSE = "negative_is_expense"


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------

REQUIRED_ROLES: tuple[str, ...] = ("date", "description", "amount")
OPTIONAL_ROLES: tuple[str, ...] = ("type", "category", "note")


class ColumnMapping(BaseModel):
    """Semantic role -> source column header.

    Blank values are normalized to ``None`` so that ``{"type": ""}`` from a
    form means "not mapped".
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    date: str | None = None
    description: str | None = None
    amount: str | None = None
    type: str | None = None
    category: str | None = None
    note: str | None = None
    sign_policy: SignPolicy = SignPolicy.NEGATIVE_IS_INCOME

    @field_validator("date", "description", "amount", "type", "category", "note", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def missing_required(self) -> list[str]:
        return [role for role in REQUIRED_ROLES if getattr(self, role) is None]

    def roles(self) -> Iterator[tuple[str, str]]:
        """Yield ``(role, column)`` for every mapped role."""
        for role in (*REQUIRED_ROLES, *OPTIONAL_ROLES):
            column = getattr(self, role)
            if column is not None:
                yield role, column


# ---------------------------------------------------------------------------
# Pipeline-internal records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportableTransaction:
    """A normalized row, ready for hashing, rules and persistence.

    ``amount`` is always non-negative; polarity is carried by ``type`` alone.
    ``date`` is the canonical ``YYYY-MM-DD`` string. ``row`` is the source row
    number used in user-facing error messages.
    """

    date: str
    description: str
    amount: Decimal
    type: TransactionType
    category: str | None = None
    note: str | None = None
    tags: tuple[str, ...] = ()
    merchant_canonical: str | None = None
    category_suggested: str | None = None
    category_confidence: float | None = None
    row: int = 0

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("ImportableTransaction.amount must be non-negative")
        if len(self.tags) > MAX_TAGS:
            raise ValueError(f"ImportableTransaction.tags is capped at {MAX_TAGS}")


class ImportRowError(BaseModel):
    """A row-level failure; never aborts the batch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    row: int
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.row}:{self.field}:{self.message}"


@dataclass(frozen=True, slots=True)
class ParseResult:
    rows: list[ImportableTransaction]
    total_rows: int
    errors: list[ImportRowError] = field(default_factory=list)
    truncated: bool = False


@dataclass(frozen=True, slots=True)
class HashedTransaction:
    tx: ImportableTransaction
    dedupe_hash: str


@dataclass(frozen=True, slots=True)
class RecentTransaction:
    """A projection of a persisted record used for duplicate estimation."""

    dedupe_hash: str | None
    date: str
    amount: Decimal
    description: str


# ---------------------------------------------------------------------------
# Boundary DTOs
# ---------------------------------------------------------------------------


class PreviewRow(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    row: int
    date: str
    description: str
    amount: Decimal
    type: TransactionType
    category: str | None = None
    note: str | None = None
    tags: tuple[str, ...] = ()
    merchant_canonical: str | None = None
    category_suggested: str | None = None
    category_confidence: float | None = None
    dedupe_hash: str

    @classmethod
    def from_hashed(cls, item: HashedTransaction) -> PreviewRow:
        tx = item.tx
        return cls(
            row=tx.row,
            date=tx.date,
            description=tx.description,
            amount=tx.amount,
            type=tx.type,
            category=tx.category,
            note=tx.note,
            tags=tx.tags,
            merchant_canonical=tx.merchant_canonical,
            category_suggested=tx.category_suggested,
            category_confidence=tx.category_confidence,
            dedupe_hash=item.dedupe_hash,
        )


class ImportPreset(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    id: int | None = None
    name: str
    signature: str
    mapping: ColumnMapping

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("preset name must be non-empty")
        return v


class DetectedColumns(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: FileKind
    columns: list[str]
    sheets: list[str] = Field(default_factory=list)
    delimiter: str | None = None
    suggested_mapping: ColumnMapping
    signature: str
    preset: ImportPreset | None = None


class PreviewResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    preview_rows: list[PreviewRow]
    total_rows: int
    errors: list[ImportRowError]
    duplicates: list[PreviewRow]


class CommitOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    skip_duplicates: bool = True
    overwrite_duplicates: bool = False
    run_async: bool = False
    use_enrichment: bool = True
    apply_suggested_category: bool = False
    account_id: str | None = None


class CommitResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool = True
    total_processed: int
    inserted: int
    updated: int
    duplicates_skipped: int
    errors: list[ImportRowError]
    total_rows: int


class QueuedCommit(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    queued: Literal[True] = True
    job_id: str


type JobState = Literal["queued", "running", "completed", "failed", "not_found"]


class JobStatus(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: str
    state: JobState
    result: CommitResult | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

type RuleField = Literal["description", "note", "merchant_canonical"]
type RuleMatchKind = Literal["contains", "regex"]

MAX_RULE_TAGS = 10


class RuleCondition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    field: RuleField = "description"
    kind: RuleMatchKind = "contains"
    value: str

    @field_validator("value")
    @classmethod
    def _value_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("rule match value must be non-empty")
        return v


class RuleAction(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    category: str | None = None
    tags: tuple[str, ...] = ()

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        items = list(dict.fromkeys(t.strip() for t in v if t.strip()))
        if len(items) > MAX_RULE_TAGS:
            raise ValueError(f"a rule sets at most {MAX_RULE_TAGS} tags")
        return tuple(items)


class ImportRule(BaseModel):
    """``when`` a field matches, apply ``action`` (category and/or tags)."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: int | None = None
    name: str
    sort_order: int | None = None
    enabled: bool = True
    when: RuleCondition
    action: RuleAction
    created_at: dt.datetime | None = None


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


class EnrichmentSuggestion(BaseModel):
    """One validated item returned by the enrichment collaborator.

    Unknown categories and out-of-range confidences are dropped to ``None``
    instead of failing the whole batch.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    merchant: str | None = None
    category: str | None = None
    confidence: float | None = None

    @field_validator("merchant", mode="before")
    @classmethod
    def _blank_merchant(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v: object) -> object:
        if not isinstance(v, str):
            return None
        for name in CATEGORIES:
            if name.lower() == v.strip().lower():
                return name
        return None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_in_unit_interval(cls, v: object) -> object:
        if isinstance(v, bool) or not isinstance(v, int | float):
            return None
        fv = float(v)
        return fv if 0.0 <= fv <= 1.0 else None


__all__ = [
    "Cell",
    "RawRow",
    "MAX_TAGS",
    "MAX_RULE_TAGS",
    "FileKind",
    "TransactionType",
    "SignPolicy",
    "REQUIRED_ROLES",
    "OPTIONAL_ROLES",
    "ColumnMapping",
    "ImportableTransaction",
    "ImportRowError",
    "ParseResult",
    "HashedTransaction",
    "RecentTransaction",
    "PreviewRow",
    "ImportPreset",
    "DetectedColumns",
    "PreviewResult",
    "CommitOptions",
    "CommitResult",
    "QueuedCommit",
    "JobState",
    "JobStatus",
    "RuleField",
    "RuleMatchKind",
    "RuleCondition",
    "RuleAction",
    "ImportRule",
    "EnrichmentSuggestion",
]
