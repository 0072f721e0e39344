"""In-memory ledger with CSV/JSON export and file persistence."""

import csv
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from io import StringIO
from pathlib import Path

from pf_ledger.models import (
    LEDGER_COLUMNS,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from pf_ledger.utils import parse_date

logger = logging.getLogger(__name__)

CSV_DELIMITER = ";"
_NEEDS_QUOTING = (";", ",", '"', "\n", "\r")


def _escape(value: str) -> str:
    if any(ch in value for ch in _NEEDS_QUOTING):
        return '"' + value.replace('"', '""') + '"'
    return value


def _export_row(tx: Transaction) -> dict[str, str]:
    row = tx.to_dict()
    row["date"] = tx.date.strftime("%d.%m.%Y") if tx.date else ""
    return row


def to_csv(transactions: list[Transaction]) -> str:
    """
    Render transactions as semicolon-delimited CSV.

    Dates are written as dd.mm.yyyy and amounts with a dot decimal
    separator. Fields containing ';', ',', quotes or newlines are quoted.

    Args:
        transactions: Transactions to export

    Returns:
        CSV text with a header row in ledger column order
    """
    lines = [CSV_DELIMITER.join(LEDGER_COLUMNS)]
    for tx in transactions:
        row = _export_row(tx)
        lines.append(CSV_DELIMITER.join(_escape(row[col]) for col in LEDGER_COLUMNS))
    return "\n".join(lines) + "\n"


def to_json(transactions: list[Transaction]) -> str:
    """Render transactions as a JSON list with ISO-8601 dates.

    Amounts are decimal strings, the same text as in the CSV ledger.
    """
    rows = [tx.to_dict() for tx in transactions]
    return json.dumps(rows, ensure_ascii=False, indent=2)


def read_csv(text: str) -> list[Transaction]:
    """
    Parse CSV text produced by to_csv back into transactions.

    Raises:
        ValueError: If a row has an unknown type, status or amount
    """
    reader = csv.DictReader(StringIO(text.lstrip("\ufeff")), delimiter=CSV_DELIMITER)
    transactions: list[Transaction] = []

    for row in reader:
        if not any((value or "").strip() for value in row.values()):
            continue
        values = {col: (row.get(col) or "").strip() for col in LEDGER_COLUMNS}
        try:
            tx = Transaction(
                date=parse_date(values["date"]),
                type=TransactionType(values["type"]),
                account=values["account"],
                account_to=values["account_to"],
                amount=Decimal(values["amount"] or "0"),
                currency=values["currency"],
                category=values["category"],
                subcategory=values["subcategory"],
                merchant=values["merchant"],
                description=values["description"],
                tags=values["tags"],
                source=values["source"],
                source_id=values["source_id"],
                status=TransactionStatus(values["status"] or TransactionStatus.OK.value),
            )
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"Invalid ledger row at line {reader.line_num}: {e}") from e
        transactions.append(tx)

    return transactions


@dataclass
class Ledger:
    """Transactions plus the archive of rows moved out of the active ledger."""

    transactions: list[Transaction] = field(default_factory=list)
    archive: list[Transaction] = field(default_factory=list)

    def append_many(self, transactions: list[Transaction]) -> None:
        """Append a batch of rows in one operation."""
        self.transactions.extend(transactions)

    def active(self) -> list[Transaction]:
        """Rows that are not deleted."""
        return [tx for tx in self.transactions if not tx.is_deleted]

    @staticmethod
    def archive_path(path: Path) -> Path:
        return path.with_name(f"{path.stem}.archive{path.suffix}")

    @classmethod
    def load(cls, path: Path) -> "Ledger":
        """Load a ledger and its archive; missing files give an empty ledger."""
        ledger = cls()
        if path.exists():
            ledger.transactions = read_csv(path.read_text(encoding="utf-8"))
        archive = cls.archive_path(path)
        if archive.exists():
            ledger.archive = read_csv(archive.read_text(encoding="utf-8"))
        logger.debug(
            "Loaded %d transactions (%d archived) from %s",
            len(ledger.transactions),
            len(ledger.archive),
            path,
        )
        return ledger

    def save(self, path: Path) -> None:
        """Write the ledger, and the archive when it has rows."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(to_csv(self.transactions), encoding="utf-8")
        if self.archive:
            self.archive_path(path).write_text(to_csv(self.archive), encoding="utf-8")
        logger.debug("Saved %d transactions to %s", len(self.transactions), path)
