"""Generic CSV parser with header-based column mapping."""

import csv
import logging
from io import StringIO
from typing import ClassVar

from pf_ledger.models import RawRecord, Source, TransactionType
from pf_ledger.parsers.base import ParserRegistry, StatementParser
from pf_ledger.utils import clean_description, detect_delimiter

logger = logging.getLogger(__name__)

# Header substrings per field. Order matters: a column is claimed by the
# first field that matches it, so the more specific fields come first.
DEFAULT_COLUMN_PATTERNS: dict[str, list[str]] = {
    "date": ["дата", "date", "transaction date"],
    "amount": ["сумма", "amount"],
    "type": ["тип", "type", "операция", "operation", "приход/расход", "приход", "расход"],
    "account_to": ["счет получателя", "счёт получателя", "account to", "account_to", "destination"],
    "account": ["счет", "счёт", "account", "account from"],
    "currency": ["валюта", "currency", "curr"],
    "subcategory": ["подкатегория", "subcategory"],
    "category": ["категория", "category", "кат"],
    "description": ["описание", "description", "назначение", "комментарий", "comment", "memo"],
    "merchant": ["место", "merchant", "контрагент", "магазин", "store"],
    "tags": ["теги", "tags"],
    "source_id": ["source_id", "transaction_id", "operation_id", "id"],
}


def map_columns(headers: list[str]) -> dict[str, str]:
    """
    Build a field -> header mapping from header names.

    Args:
        headers: Header row cells

    Returns:
        Mapping of RawRecord field names to header names
    """
    mapping: dict[str, str] = {}
    claimed: set[str] = set()

    for field_name, patterns in DEFAULT_COLUMN_PATTERNS.items():
        for header in headers:
            if header in claimed:
                continue
            key = header.lower().strip()
            if not key:
                continue
            if field_name == "source_id":
                # "id" is too short for substring matching
                matched = key == "id" or any(p in key for p in patterns[:-1])
            else:
                matched = any(p in key for p in patterns)
            if matched:
                mapping[field_name] = header
                claimed.add(header)
                break

    return mapping


def _first_line(content: str) -> str:
    for line in content.splitlines():
        if line.strip():
            return line
    return ""


@ParserRegistry.register
class GenericCSVParser(StatementParser):
    """Parser for delimited exports with a header row.

    Rows without an explicit type column are treated as income unless the
    amount is negative or the text says otherwise.
    """

    bank_name: ClassVar[str] = "CSV"
    source: ClassVar[str] = Source.CSV
    priority: ClassVar[int] = 90
    default_type: ClassVar[TransactionType] = TransactionType.INCOME

    @classmethod
    def can_parse(cls, content: str, file_name: str | None = None) -> bool:
        """Accept .csv files, or delimited text whose header maps a date or amount."""
        if file_name and file_name.lower().endswith(".csv"):
            return True
        header = _first_line(content)
        delimiter = detect_delimiter(header)
        if delimiter not in header:
            return False
        headers = next(csv.reader(StringIO(header), delimiter=delimiter), [])
        mapping = map_columns(headers)
        return "date" in mapping or "amount" in mapping

    def parse(self, content: str) -> list[RawRecord]:
        """Parse data rows into raw records."""
        content = content.lstrip("\ufeff")
        delimiter = self.options.delimiter or detect_delimiter(_first_line(content))
        reader = csv.reader(StringIO(content.strip()), delimiter=delimiter)

        headers: list[str] = []
        for row in reader:
            if any(cell.strip() for cell in row):
                headers = [cell.strip() for cell in row]
                break

        mapping = self.options.column_mapping or map_columns(headers)
        logger.debug("CSV column mapping: %s", mapping)

        records: list[RawRecord] = []
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            values = dict(zip(headers, (cell.strip() for cell in row)))

            def get(field_name: str) -> str:
                header = mapping.get(field_name)
                return values.get(header, "") if header else ""

            description = clean_description(get("description"))
            records.append(
                RawRecord(
                    bank="csv",
                    date=get("date"),
                    amount=get("amount"),
                    type_hint=get("type"),
                    account=get("account"),
                    account_to=get("account_to"),
                    currency=get("currency"),
                    category=get("category"),
                    subcategory=get("subcategory"),
                    merchant=get("merchant"),
                    description=[description] if description else [],
                    tags=get("tags"),
                    source_id=get("source_id"),
                    line_number=reader.line_num,
                    raw=delimiter.join(row),
                )
            )

        logger.info("Parsed %d CSV records", len(records))
        return self._require_records(records)
