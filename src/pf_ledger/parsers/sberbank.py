"""Sberbank statement parsers."""

import csv
import logging
import re
from io import StringIO
from typing import ClassVar

from pf_ledger.models import RawRecord, Source
from pf_ledger.normalizer import sberbank_merchant
from pf_ledger.parsers.base import ParserRegistry, StatementParser
from pf_ledger.utils import detect_delimiter, is_page_break

logger = logging.getLogger(__name__)

SBERBANK_MARKERS = ["Выписка по счёту", "СберБанк Онлайн", "ДАТА ОПЕРАЦИИ (МСК)"]
SECTION_HEADER = "ДАТА ОПЕРАЦИИ (МСК)"

DATE_RE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")

# Amounts as printed: "204,98", "+46 696,61", "1 606,00"
MONEY = r"\d{1,3}(?:\s\d{3})*,\d{2}"

RECORD_RE = re.compile(
    r"^(?P<date>\d{2}\.\d{2}\.\d{4})\s+(?P<time>\d{2}:\d{2})\s+(?P<auth>\d{6})\s+"
    r"(?P<category>.+?)\s+(?P<amount>[+\-–−]?" + MONEY + r")\s+(?P<balance>" + MONEY + r")"
    r"(?:\s+(?P<processing>\d{2}\.\d{2}\.\d{4}))?(?:\s+(?P<rest>.*))?$"
)
RECORD_START_RE = re.compile(r"^(\d{2}\.\d{2}\.\d{4})\s+(\d{2}:\d{2})(?:\s+(\d{6}))?\b")
PROCESSING_PREFIX_RE = re.compile(r"^(\d{2}\.\d{2}\.\d{4})(?:\s+(.*))?$")
LOOSE_AMOUNT_RE = re.compile(r"[+\-–−]?" + MONEY)


def _is_footer(line: str) -> bool:
    return "Для проверки подлинности" in line or "Действителен" in line


@ParserRegistry.register
class SberbankCSVParser(StatementParser):
    """Parser for Sberbank statement CSV exports.

    The export repeats a header block per page. Each transaction starts on a
    row with a date in column 1 and an amount in column 5; following rows
    carry the description in column 4.
    """

    bank_name: ClassVar[str] = "Sberbank"
    source: ClassVar[str] = Source.SBERBANK
    priority: ClassVar[int] = 20
    file_patterns: ClassVar[list[str]] = SBERBANK_MARKERS

    @classmethod
    def can_parse(cls, content: str, file_name: str | None = None) -> bool:
        """Check for Sberbank markers plus delimited record rows."""
        if not any(marker in content for marker in SBERBANK_MARKERS):
            return False
        if file_name and file_name.lower().endswith(".csv"):
            return True
        for line in content.splitlines():
            fields = cls._split(line.strip())
            if len(fields) >= 5 and DATE_RE.match(fields[0].strip()):
                return True
        return False

    @staticmethod
    def _split(line: str, delimiter: str | None = None) -> list[str]:
        if not line:
            return []
        reader = csv.reader(StringIO(line), delimiter=delimiter or detect_delimiter(line))
        return next(reader, [])

    @staticmethod
    def extract_merchant(description: str) -> str:
        return sberbank_merchant(description)

    def parse(self, content: str) -> list[RawRecord]:
        """Parse rows from every section that follows a header."""
        records: list[RawRecord] = []
        current: RawRecord | None = None
        in_section = False
        delimiter = self.options.delimiter

        for line_number, raw_line in enumerate(content.splitlines(), start=1):
            line = raw_line.strip()

            if SECTION_HEADER in line:
                if current:
                    records.append(current)
                    current = None
                in_section = True
                delimiter = self.options.delimiter or detect_delimiter(line)
                continue

            if not in_section or not line or is_page_break(line):
                continue

            if _is_footer(line):
                if current:
                    records.append(current)
                    current = None
                in_section = False
                continue

            fields = [f.strip() for f in self._split(line, delimiter)]
            has_date = bool(fields) and bool(DATE_RE.match(fields[0]))
            has_amount = len(fields) > 4 and bool(fields[4])

            if has_date and has_amount:
                if current:
                    records.append(current)
                current = RawRecord(
                    bank="sberbank",
                    date=fields[0],
                    time=fields[1] if len(fields) > 1 else "",
                    auth_code=fields[2] if len(fields) > 2 else "",
                    category=fields[3] if len(fields) > 3 else "",
                    amount=fields[4],
                    balance=fields[5] if len(fields) > 5 else "",
                    line_number=line_number,
                    raw=line,
                )
            elif current and len(fields) > 3 and fields[3]:
                if has_date and not current.processing_date:
                    current.processing_date = fields[0]
                current.description.append(fields[3])

        if current:
            records.append(current)

        logger.info("Parsed %d Sberbank CSV records", len(records))
        return self._require_records(records)


@ParserRegistry.register
class SberbankPDFParser(StatementParser):
    """Parser for text extracted from Sberbank PDF statements.

    Record line format:
        29.10.2025 18:36 574763 Супермаркеты 204,98 97 005,99 29.10.2025 PYATEROCHKA ...
    followed by zero or more continuation lines with the rest of the
    description, optionally prefixed with the processing date.
    """

    bank_name: ClassVar[str] = "Sberbank"
    source: ClassVar[str] = Source.PDF_SBERBANK
    priority: ClassVar[int] = 30
    file_patterns: ClassVar[list[str]] = ["сбербанк", "sberbank", "выписка по счёту"]

    @classmethod
    def can_parse(cls, content: str, file_name: str | None = None) -> bool:
        """Check for Sberbank markers, case-insensitive, plus a record line.

        Delimited rows never match the space-separated record start, so a
        CSV mentioning Сбербанк in a description falls through to the CSV
        parsers.
        """
        lowered = content.lower()
        if not any(
            marker in lowered
            for marker in ("сбербанк", "sberbank", "выписка по счёту", "дата операции (мск)")
        ):
            return False
        return any(RECORD_START_RE.match(line.strip()) for line in content.splitlines())

    @staticmethod
    def extract_merchant(description: str) -> str:
        return sberbank_merchant(description)

    def parse(self, content: str) -> list[RawRecord]:
        """Parse record lines and their continuations."""
        lines = content.splitlines()
        has_header = any(SECTION_HEADER.lower() in line.lower() for line in lines)
        in_section = not has_header

        records: list[RawRecord] = []
        current: RawRecord | None = None

        def close() -> None:
            nonlocal current
            if current:
                records.append(current)
                current = None

        for line_number, raw_line in enumerate(lines, start=1):
            line = " ".join(raw_line.split())

            if SECTION_HEADER.lower() in line.lower():
                close()
                in_section = True
                continue

            if not in_section or not line or is_page_break(line):
                continue

            if _is_footer(line):
                close()
                in_section = not has_header
                continue

            match = RECORD_RE.match(line)
            if match:
                close()
                current = RawRecord(
                    bank="sberbank",
                    date=match.group("date"),
                    time=match.group("time"),
                    auth_code=match.group("auth"),
                    category=match.group("category").strip(),
                    amount=match.group("amount"),
                    balance=match.group("balance"),
                    processing_date=match.group("processing") or "",
                    line_number=line_number,
                    raw=line,
                )
                if match.group("rest"):
                    current.description.append(match.group("rest").strip())
                continue

            start = RECORD_START_RE.match(line)
            if start:
                close()
                current = self._partial_record(line, line_number, start)
                continue

            if current is None:
                continue

            prefix = PROCESSING_PREFIX_RE.match(line)
            if prefix:
                if not current.processing_date:
                    current.processing_date = prefix.group(1)
                rest = prefix.group(2) or ""
                if rest:
                    current.description.append(rest)
            else:
                current.description.append(line)

        close()

        logger.info("Parsed %d Sberbank PDF records", len(records))
        return self._require_records(records)

    @staticmethod
    def _partial_record(line: str, line_number: int, start: re.Match[str]) -> RawRecord:
        """Best-effort record for a line that starts a record but does not fit the layout."""
        remainder = line[start.end():].strip()
        amounts = LOOSE_AMOUNT_RE.findall(remainder)
        amount = amounts[0] if amounts else ""
        category = remainder.split(amount)[0].strip() if amount else remainder
        logger.warning("Line %d does not match the Sberbank layout: %s", line_number, line)
        return RawRecord(
            bank="sberbank",
            date=start.group(1),
            time=start.group(2),
            auth_code=start.group(3) or "",
            category=category,
            amount=amount,
            balance=amounts[1] if len(amounts) > 1 else "",
            line_number=line_number,
            raw=line,
            errors=[f"Could not fully parse statement line {line_number}: {line}"],
        )
