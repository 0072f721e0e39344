"""Parser for raw statement sheets (one account per sheet)."""

import csv
import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from io import StringIO
from pathlib import Path
from typing import ClassVar

from pf_ledger.models import RawRecord, Source, Transaction
from pf_ledger.normalizer import normalize_record
from pf_ledger.parsers.base import ParserRegistry, StatementParser
from pf_ledger.utils import detect_delimiter, parse_amount, parse_date

logger = logging.getLogger(__name__)

RAW_PREFIX = "raw"
RAW_COLUMNS = ["ДАТА", "ВРЕМЯ", "КАТЕГОРИЯ", "ОПИСАНИЕ", "СУММА", "ОСТАТОК", "СЧЕТ"]
REQUIRED_COLUMNS = {"ДАТА", "ВРЕМЯ", "КАТЕГОРИЯ", "ОПИСАНИЕ", "СУММА"}


def normalize_time(value: str) -> str:
    """Render a time as HHMM: "16:40" -> "1640", "0:42" -> "0042", "" -> "0000"."""
    digits = value.strip().replace(":", "", 1)
    if len(digits) == 3:
        digits = "0" + digits
    if len(digits) < 4:
        digits = (digits + "0000")[:4]
    return digits


def raw_source_id(date_str: str, time_str: str, amount: Decimal) -> str:
    """Identifier for a raw row: ddmmyyyy + HHMM + whole amount."""
    parsed = parse_date(date_str)
    if parsed is not None:
        day_part = parsed.strftime("%d%m%Y")
    else:
        day_part = re.sub(r"\D", "", date_str)
        if len(day_part) != 8:
            day_part = "00000000"
    whole = abs(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return day_part + normalize_time(time_str) + str(whole)


def _column_key(cell: str) -> str:
    """Match header cells like "ОСТАТОК СРЕДСТВ" or "Счёт" to column names."""
    cell = cell.strip().upper().replace("Ё", "Е")
    for name in RAW_COLUMNS:
        if cell == name or cell.startswith(name + " "):
            return name
    return cell


@ParserRegistry.register
class RawSheetParser(StatementParser):
    """Parser for raw statement sheets.

    Columns: ДАТА, ВРЕМЯ, КАТЕГОРИЯ, ОПИСАНИЕ, СУММА, ОСТАТОК, СЧЕТ. The sign of
    СУММА gives the type and the account defaults to the sheet name.
    """

    bank_name: ClassVar[str] = "Raw sheet"
    source: ClassVar[str] = Source.RAW_PREFIX
    priority: ClassVar[int] = 40
    file_patterns: ClassVar[list[str]] = RAW_COLUMNS

    @classmethod
    def can_parse(cls, content: str, file_name: str | None = None) -> bool:
        """Check the file name prefix or the raw column header."""
        if file_name and Path(file_name).name.lower().startswith(RAW_PREFIX):
            return True
        return cls._find_header(content.splitlines()) is not None

    @staticmethod
    def _split(line: str) -> list[str]:
        return next(csv.reader(StringIO(line), delimiter=detect_delimiter(line)), [])

    @classmethod
    def _find_header(cls, lines: list[str]) -> int | None:
        for index, line in enumerate(lines[:10]):
            keys = {_column_key(cell) for cell in cls._split(line)}
            if REQUIRED_COLUMNS <= keys:
                return index
        return None

    @property
    def sheet_name(self) -> str:
        if self.file_name:
            return Path(self.file_name).stem
        return RAW_PREFIX

    def parse(self, content: str) -> list[RawRecord]:
        """Parse rows with a valid date and amount; other rows are skipped."""
        lines = content.lstrip("\ufeff").splitlines()
        header_index = self._find_header(lines)
        if header_index is None:
            columns = RAW_COLUMNS
            start = 0
        else:
            columns = [_column_key(cell) for cell in self._split(lines[header_index])]
            start = header_index + 1

        records: list[RawRecord] = []
        skipped = 0
        for line_number, line in enumerate(lines[start:], start=start + 1):
            if not line.strip():
                continue
            values = dict(zip(columns, (cell.strip() for cell in self._split(line))))
            date_str = values.get("ДАТА", "")
            amount_str = values.get("СУММА", "")
            value = parse_amount(amount_str)
            if parse_date(date_str) is None or value is None:
                skipped += 1
                continue

            time_str = values.get("ВРЕМЯ", "")
            description = values.get("ОПИСАНИЕ", "")
            records.append(
                RawRecord(
                    bank="raw",
                    date=date_str,
                    time=time_str,
                    category=values.get("КАТЕГОРИЯ", ""),
                    amount=amount_str,
                    balance=values.get("ОСТАТОК", ""),
                    description=[description] if description else [],
                    type_hint="expense" if value < 0 else "income",
                    account=values.get("СЧЕТ", "") or self.sheet_name,
                    source_id=raw_source_id(date_str, time_str, value),
                    line_number=line_number,
                    raw=line,
                )
            )

        if skipped:
            logger.debug("Skipped %d raw rows without a date or amount", skipped)
        logger.info("Parsed %d rows from raw sheet %s", len(records), self.sheet_name)
        return self._require_records(records)

    def normalize(self, raw: RawRecord) -> Transaction:
        """Normalize with the per-sheet source tag."""
        return normalize_record(raw, self.options, source=Source.raw(self.sheet_name))
