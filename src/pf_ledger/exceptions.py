"""Exceptions raised by the import pipeline."""


class StatementImportError(ValueError):
    """Base class for errors that abort a whole import."""


class FormatNotRecognizedError(StatementImportError):
    """No registered parser recognized the statement."""

    def __init__(self, file_name: str | None = None) -> None:
        self.file_name = file_name
        where = f" in {file_name}" if file_name else ""
        super().__init__(
            f"Statement format not recognized{where}. Supported formats: "
            "Sberbank (CSV, PDF text), Yandex (PDF text), raw statement sheets, "
            "generic CSV with a header row."
        )


class NoTransactionsFoundError(StatementImportError):
    """A parser recognized the statement but found no transaction rows."""

    def __init__(self, bank_name: str) -> None:
        self.bank_name = bank_name
        super().__init__(
            f"No transactions found in {bank_name} statement. "
            "Check that the file is a complete statement export."
        )


class ImportLimitError(StatementImportError):
    """The input exceeds the file size or transaction count limit."""
