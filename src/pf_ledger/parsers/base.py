"""Base parser class and registry for statement parsers."""

from abc import ABC, abstractmethod
from typing import ClassVar

from pf_ledger.exceptions import NoTransactionsFoundError
from pf_ledger.models import ImportOptions, RawRecord, Transaction, TransactionType
from pf_ledger.normalizer import normalize_record


class StatementParser(ABC):
    """Abstract base class for bank statement parsers."""

    # Class attributes to be overridden by subclasses
    bank_name: ClassVar[str] = "Unknown"
    source: ClassVar[str] = ""
    priority: ClassVar[int] = 100  # Lower runs first during detection
    file_patterns: ClassVar[list[str]] = []  # Markers looked for in content
    default_type: ClassVar[TransactionType] = TransactionType.EXPENSE

    def __init__(
        self,
        options: ImportOptions | None = None,
        file_name: str | None = None,
    ) -> None:
        """Initialize parser with import options and the source file name."""
        self.options = options or ImportOptions()
        self.file_name = file_name

    @classmethod
    @abstractmethod
    def can_parse(cls, content: str, file_name: str | None = None) -> bool:
        """
        Check if this parser can handle the given statement text.

        Args:
            content: Statement text
            file_name: Optional file name for extension checking

        Returns:
            True if this parser can handle the statement
        """

    @abstractmethod
    def parse(self, content: str) -> list[RawRecord]:
        """
        Parse statement text into raw records.

        Args:
            content: Statement text

        Returns:
            List of RawRecord objects

        Raises:
            NoTransactionsFoundError: If no transaction rows were found
        """

    @staticmethod
    def extract_merchant(description: str) -> str:
        """Derive a merchant name from the description. No-op by default."""
        return ""

    def normalize(self, raw: RawRecord) -> Transaction:
        """Convert a raw record from this parser into a canonical transaction."""
        return normalize_record(
            raw,
            self.options,
            source=self.source,
            default_type=self.default_type,
            merchant_extractor=self.extract_merchant,
        )

    def _require_records(self, records: list[RawRecord]) -> list[RawRecord]:
        if not records:
            raise NoTransactionsFoundError(self.bank_name)
        return records


class ParserRegistry:
    """Registry for statement parsers with automatic detection."""

    _parsers: ClassVar[list[type[StatementParser]]] = []

    @classmethod
    def register(cls, parser_class: type[StatementParser]) -> type[StatementParser]:
        """
        Register a parser class. Can be used as a decorator.

        Example:
            @ParserRegistry.register
            class MyBankParser(StatementParser):
                ...
        """
        if parser_class not in cls._parsers:
            cls._parsers.append(parser_class)
            cls._parsers.sort(key=lambda p: p.priority)
        return parser_class

    @classmethod
    def detect(
        cls, content: str, file_name: str | None = None
    ) -> type[StatementParser] | None:
        """Return the first parser class, in priority order, that accepts the content."""
        for parser_class in cls._parsers:
            if parser_class.can_parse(content, file_name):
                return parser_class
        return None

    @classmethod
    def get_parser(
        cls,
        content: str,
        file_name: str | None = None,
        options: ImportOptions | None = None,
    ) -> StatementParser | None:
        """
        Get appropriate parser for the given content.

        Args:
            content: Statement text
            file_name: Optional file name for extension detection
            options: Import options handed to the parser

        Returns:
            Parser instance if found, None otherwise
        """
        parser_class = cls.detect(content, file_name)
        if parser_class is None:
            return None
        return parser_class(options=options, file_name=file_name)

    @classmethod
    def get_all_parsers(cls) -> list[type[StatementParser]]:
        """Get all registered parser classes in detection order."""
        return cls._parsers.copy()
