"""Import orchestration: detect, parse, normalize, stage and commit."""

import logging
from pathlib import Path

from pf_ledger.dedupe import CommitResult, ImportStats, classify, commit, existing_keys
from pf_ledger.exceptions import FormatNotRecognizedError, ImportLimitError, StatementImportError
from pf_ledger.ledger import Ledger
from pf_ledger.models import CategoryRule, ImportOptions, Transaction
from pf_ledger.normalizer import error_transaction
from pf_ledger.parsers import ParserRegistry, StatementParser
from pf_ledger.rules import apply_rules_to_all
from pf_ledger.utils import read_file

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_TRANSACTIONS = 10_000


class StatementImporter:
    """
    Main class for importing bank statements into a ledger.

    Usage:
        importer = StatementImporter(ImportOptions(default_account="Сбер"))
        batch, stats = importer.import_file(Path("statement.txt"), ledger)
        result = importer.commit(batch, ledger)
    """

    def __init__(
        self,
        options: ImportOptions | None = None,
        rules: list[CategoryRule] | None = None,
    ) -> None:
        """
        Initialize importer.

        Args:
            options: Import options shared by every parser
            rules: Category rules applied to uncategorized transactions
        """
        self.options = options or ImportOptions()
        self.rules = rules or []
        self._errors: list[tuple[Path, str]] = []

    @property
    def errors(self) -> list[tuple[Path, str]]:
        """Get list of (filepath, error_message) for failed files."""
        return self._errors.copy()

    def detect(self, content: str, file_name: str | None = None) -> type[StatementParser]:
        """
        Pick the parser for a statement.

        Raises:
            FormatNotRecognizedError: If no parser accepts the content
        """
        parser_class = ParserRegistry.detect(content, file_name)
        if parser_class is None:
            raise FormatNotRecognizedError(file_name)
        logger.debug("Detected %s for %s", parser_class.__name__, file_name or "<text>")
        return parser_class

    def parse_text(self, content: str, file_name: str | None = None) -> list[Transaction]:
        """
        Detect, parse and normalize a statement.

        A record that fails to normalize becomes a needs_review placeholder
        and the rest of the statement is still processed.

        Args:
            content: Statement text
            file_name: Optional file name used for detection

        Returns:
            Normalized transactions, one per raw record
        """
        parser_class = self.detect(content, file_name)
        parser = parser_class(options=self.options, file_name=file_name)
        raw_records = parser.parse(content)

        if len(raw_records) > MAX_TRANSACTIONS:
            raise ImportLimitError(
                f"Statement has {len(raw_records)} transactions; "
                f"at most {MAX_TRANSACTIONS} can be imported at once. Split the file."
            )

        transactions: list[Transaction] = []
        for raw in raw_records:
            try:
                transactions.append(parser.normalize(raw))
            except Exception as e:
                logger.warning("Failed to normalize record at line %d: %s", raw.line_number, e)
                transactions.append(error_transaction(str(e), self.options, raw))

        if self.rules:
            apply_rules_to_all(transactions, self.rules)

        logger.info(
            "Parsed %d transactions with %s from %s",
            len(transactions),
            parser_class.__name__,
            file_name or "<text>",
        )
        return transactions

    def stage(
        self,
        transactions: list[Transaction],
        ledger: Ledger,
        existing: set[str] | None = None,
    ) -> ImportStats:
        """Mark duplicates against the ledger and count statuses."""
        if existing is None:
            existing = existing_keys(ledger.transactions)
        return classify(transactions, existing)

    def import_text(
        self,
        content: str,
        ledger: Ledger,
        file_name: str | None = None,
    ) -> tuple[list[Transaction], ImportStats]:
        """Parse and stage statement text; nothing is committed."""
        transactions = self.parse_text(content, file_name)
        return transactions, self.stage(transactions, ledger)

    def import_file(
        self,
        filepath: Path,
        ledger: Ledger,
        existing: set[str] | None = None,
    ) -> tuple[list[Transaction], ImportStats]:
        """
        Read, parse and stage a single file.

        Raises:
            ImportLimitError: If the file is larger than the size limit
            StatementImportError: If the statement cannot be imported
            ValueError: If the file cannot be read
        """
        if filepath.exists() and filepath.stat().st_size > MAX_FILE_SIZE:
            raise ImportLimitError(
                f"{filepath.name} is larger than {MAX_FILE_SIZE // (1024 * 1024)} MB"
            )
        content = read_file(filepath)
        transactions = self.parse_text(content, filepath.name)
        return transactions, self.stage(transactions, ledger, existing)

    def import_files(
        self,
        filepaths: list[Path],
        ledger: Ledger,
    ) -> tuple[list[Transaction], ImportStats]:
        """
        Stage several files as one batch.

        Failed files are recorded in ``errors`` and skipped. Duplicates are
        detected across files as well as against the ledger.

        Returns:
            Combined transactions and stats
        """
        self._errors = []
        existing = existing_keys(ledger.transactions)
        batch: list[Transaction] = []
        totals = ImportStats()

        for filepath in filepaths:
            try:
                transactions, stats = self.import_file(filepath, ledger, existing)
            except (StatementImportError, ValueError, OSError) as e:
                logger.error("Failed to import %s: %s", filepath, e)
                self._errors.append((filepath, str(e)))
                continue

            batch.extend(transactions)
            totals.total += stats.total
            totals.valid += stats.valid
            totals.needs_review += stats.needs_review
            totals.duplicates += stats.duplicates
            totals.errors += stats.errors

        return batch, totals

    def commit(self, batch: list[Transaction], ledger: Ledger) -> CommitResult:
        """Append the staged batch using the include_needs_review option."""
        return commit(batch, ledger, include_needs_review=self.options.include_needs_review)
