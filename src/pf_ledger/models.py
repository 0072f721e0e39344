"""Data models for ledger transactions and reference tables."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

DEFAULT_CURRENCY = "RUB"
SUPPORTED_CURRENCIES = ["RUB", "USD", "EUR"]


class TransactionType(str, Enum):
    """Kind of money movement. The sign of a transaction lives here."""

    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    """Lifecycle status of a ledger row."""

    OK = "ok"
    NEEDS_REVIEW = "needs_review"
    DUPLICATE = "duplicate"
    DELETED = "deleted"


class Source:
    """Origin tags written to the ``source`` column."""

    MANUAL = "manual"
    CSV = "import:csv"
    SBERBANK = "import:sberbank"
    PDF_SBERBANK = "import:pdf:sberbank"
    PDF_YANDEX = "import:pdf:yandex"
    ERROR = "import:error"
    RAW_PREFIX = "raw:"

    @classmethod
    def raw(cls, sheet_name: str) -> str:
        """Return the source tag for a raw statement sheet."""
        return f"{cls.RAW_PREFIX}{sheet_name}"


@dataclass(frozen=True)
class FieldError:
    """A field-level validation failure attached to a staged transaction."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class Transaction:
    """Canonical ledger record shared by all import sources and manual entry."""

    date: date | None
    type: TransactionType
    account: str
    amount: Decimal
    currency: str = DEFAULT_CURRENCY
    account_to: str = ""
    category: str = ""
    subcategory: str = ""
    merchant: str = ""
    description: str = ""
    tags: str = ""
    source: str = Source.MANUAL
    source_id: str = ""
    status: TransactionStatus = TransactionStatus.OK
    errors: list[FieldError] = field(default_factory=list, compare=False)
    raw_data: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER

    @property
    def is_deleted(self) -> bool:
        return self.status == TransactionStatus.DELETED

    @property
    def signed_amount(self) -> Decimal:
        """Return the amount with the sign implied by the type (expenses negative)."""
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return self.amount

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary in ledger column order."""
        return {
            "date": self.date.isoformat() if self.date else "",
            "type": self.type.value,
            "account": self.account,
            "account_to": self.account_to,
            "amount": str(self.amount),
            "currency": self.currency,
            "category": self.category,
            "subcategory": self.subcategory,
            "merchant": self.merchant,
            "description": self.description,
            "tags": self.tags,
            "source": self.source,
            "source_id": self.source_id,
            "status": self.status.value,
        }


# Ledger columns, in the order they are exported
LEDGER_COLUMNS = list(
    Transaction(date=None, type=TransactionType.EXPENSE, account="", amount=Decimal(0))
    .to_dict()
    .keys()
)


@dataclass
class RawRecord:
    """Format-specific record produced by a parser before normalization.

    Values are kept as printed in the statement (amounts keep their sign and
    thousands separators) so the normalizer owns every conversion.
    """

    bank: str
    date: str = ""
    time: str = ""
    auth_code: str = ""
    category: str = ""
    amount: str = ""
    balance: str = ""
    processing_date: str = ""
    description: list[str] = field(default_factory=list)
    type_hint: str = ""
    account: str = ""
    account_to: str = ""
    currency: str = ""
    subcategory: str = ""
    merchant: str = ""
    tags: str = ""
    source_id: str = ""
    card: str = ""
    line_number: int = 0
    raw: str = ""
    errors: list[str] = field(default_factory=list)

    @property
    def description_text(self) -> str:
        """Continuation lines joined into a single description."""
        return " ".join(" ".join(self.description).split())

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage in ``Transaction.raw_data``."""
        data = {k: v for k, v in self.__dict__.items() if v not in ("", [], 0)}
        data["bank"] = self.bank
        return data


@dataclass
class ImportOptions:
    """Per-import settings passed to parsers and the normalizer."""

    default_account: str = ""
    default_currency: str = DEFAULT_CURRENCY
    source: str | None = None
    include_needs_review: bool = False
    column_mapping: dict[str, str] | None = None
    delimiter: str | None = None
    account_mappings: list["AccountMapping"] = field(default_factory=list)


@dataclass
class AccountMapping:
    """Maps account identifiers to friendly names."""

    identifier: str
    name: str
    bank: str = ""
    account_type: str = "card"  # cash, card, deposit, investment, other

    def matches(self, value: str) -> bool:
        """Check if value matches this account."""
        clean_value = value.replace("-", "").replace(" ", "").lstrip("*")
        clean_id = self.identifier.replace("-", "").replace(" ", "").lstrip("*")

        if not clean_value or not clean_id:
            return False

        # Exact match
        if clean_value == clean_id:
            return True

        # Last 4 digits match
        return len(clean_value) >= 4 and clean_value[-4:] == clean_id[-4:]


class BudgetPeriod(str, Enum):
    MONTH = "month"
    YEAR = "year"


class BudgetStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    EXCEEDED = "exceeded"


@dataclass
class Budget:
    """Planned spending (or income) for a category over a month or a year."""

    category: str
    period: BudgetPeriod
    period_value: str  # YYYY-MM for months, YYYY for years
    amount: Decimal
    subcategory: str = ""
    active: bool = True
    description: str = ""


class PatternType(str, Enum):
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EXACT = "exact"
    REGEX = "regex"


class ApplyTo(str, Enum):
    MERCHANT = "merchant"
    DESCRIPTION = "description"
    BOTH = "both"


@dataclass
class CategoryRule:
    """Assigns a category when merchant or description matches a pattern."""

    name: str
    pattern: str
    pattern_type: PatternType
    category: str
    subcategory: str = ""
    priority: int = 0
    active: bool = True
    apply_to: ApplyTo = ApplyTo.BOTH


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


@dataclass
class RecurringTemplate:
    """Template for a transaction that repeats on a schedule."""

    name: str
    type: TransactionType
    frequency: Frequency
    start_date: date
    account: str
    amount: Decimal
    currency: str = DEFAULT_CURRENCY
    day_of_month: int | None = None  # 1-31
    day_of_week: int | None = None  # 1=Monday .. 7=Sunday
    end_date: date | None = None
    account_to: str = ""
    category: str = ""
    subcategory: str = ""
    merchant: str = ""
    description: str = ""
    active: bool = True
    last_created: date | None = None
