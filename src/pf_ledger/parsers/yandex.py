"""Yandex Bank statement parser."""

import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import ClassVar

from pf_ledger.models import RawRecord, Source
from pf_ledger.normalizer import yandex_merchant
from pf_ledger.parsers.base import ParserRegistry, StatementParser
from pf_ledger.utils import is_page_break, parse_amount

logger = logging.getLogger(__name__)

BANK_MARKERS = ["яндекс", "yandex"]
TABLE_MARKERS = ["дата и время операции", "в валюте договора", "выписка по договору"]

HEADER_RE = re.compile(r"описание операции", re.IGNORECASE)
DESC_WITH_DATETIME_RE = re.compile(r"^(.*?)(\d{2}\.\d{2}\.\d{4})\s+в\s+(\d{2}:\d{2})", re.IGNORECASE)
DATETIME_ONLY_RE = re.compile(r"^(\d{2}\.\d{2}\.\d{4})\s+в\s+(\d{2}:\d{2})", re.IGNORECASE)
INCOMING_SBP_RE = re.compile(r"^входящий перевод сбп", re.IGNORECASE)
# Column captions that wrap onto their own lines under the header
CAPTION_RE = re.compile(
    r"^(дата и время операции|дата обработки|карта|сумма в валюте.*)$", re.IGNORECASE
)

# "11.01.2025 *7088 –100,00 ₽ –100,00 ₽", possibly several per line
AMOUNTS_RE = re.compile(
    r"(\d{2}\.\d{2}\.\d{4})\s+(?:\*(\d{4})\s+)?([+\-–−]?\d[\d\s]*,\d{2})\s*₽\s+"
    r"([+\-–−]?\d[\d\s]*,\d{2})\s*₽"
)

# Lines that close the operations table
TABLE_END_RE = re.compile(
    r"исходящий остаток|всего расходных операций|выписка по договору", re.IGNORECASE
)
TOTALS_RE = re.compile(
    r"исходящий остаток|всего расходных операций|всего приходных операций|выписка по договору",
    re.IGNORECASE,
)


@dataclass
class _PendingOperation:
    description: str
    date: str
    time: str
    line_number: int


@ParserRegistry.register
class YandexPDFParser(StatementParser):
    """Parser for text extracted from Yandex Bank PDF statements.

    The operations table prints the description and the operation date/time
    on one row and the processing date and amounts on another, so rows are
    matched through a FIFO queue of pending operations:

      - "<description> dd.mm.yyyy в HH:MM" queues an operation
      - a bare "dd.mm.yyyy в HH:MM" line pairs with the buffered description
        or with the next queued "Входящий перевод СБП" line
      - every "dd.mm.yyyy [*NNNN] ±X,YY ₽ ±X,YY ₽" match consumes one
        pending operation
    """

    bank_name: ClassVar[str] = "Yandex"
    source: ClassVar[str] = Source.PDF_YANDEX
    priority: ClassVar[int] = 10
    file_patterns: ClassVar[list[str]] = BANK_MARKERS

    @classmethod
    def can_parse(cls, content: str, file_name: str | None = None) -> bool:
        """Check for a Yandex marker together with the operations table layout."""
        lowered = content.lower()
        return any(m in lowered for m in BANK_MARKERS) and any(
            m in lowered for m in TABLE_MARKERS
        )

    @staticmethod
    def extract_merchant(description: str) -> str:
        return yandex_merchant(description)

    def parse(self, content: str) -> list[RawRecord]:
        """Match queued descriptions with amount rows in order."""
        records: list[RawRecord] = []
        in_table = False
        pending: deque[_PendingOperation] = deque()
        pending_desc_only: deque[str] = deque()
        desc_buffer = ""
        unmatched_amounts = 0

        for line_number, raw_line in enumerate(content.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue

            if not in_table:
                if HEADER_RE.search(line):
                    in_table = True
                continue

            # Page footers and the header repeated on every page
            if CAPTION_RE.match(line) or HEADER_RE.search(line) or is_page_break(line):
                continue

            dt_match = DATETIME_ONLY_RE.match(line)
            if dt_match:
                if pending_desc_only:
                    description = pending_desc_only.popleft()
                else:
                    description = desc_buffer.strip()
                if description:
                    pending.append(
                        _PendingOperation(
                            description, dt_match.group(1), dt_match.group(2), line_number
                        )
                    )
                desc_buffer = ""
                continue

            desc_match = DESC_WITH_DATETIME_RE.match(line)
            if desc_match:
                description = " ".join(
                    part for part in (desc_buffer, desc_match.group(1).strip()) if part
                )
                desc_buffer = ""
                if description:
                    pending.append(
                        _PendingOperation(
                            description, desc_match.group(2), desc_match.group(3), line_number
                        )
                    )
                continue

            if "₽" not in line and not TOTALS_RE.search(line):
                if INCOMING_SBP_RE.match(line):
                    pending_desc_only.append(line)
                else:
                    desc_buffer = f"{desc_buffer} {line}".strip()

            has_amount = False
            for match in AMOUNTS_RE.finditer(line):
                has_amount = True
                if not pending:
                    unmatched_amounts += 1
                    continue
                operation = pending.popleft()
                record = self._make_record(operation, match, line)
                if record is not None:
                    records.append(record)

            if not has_amount and TABLE_END_RE.search(line):
                pending.clear()
                pending_desc_only.clear()
                desc_buffer = ""
                # A new table may follow
                in_table = False

        if unmatched_amounts:
            logger.warning("Skipped %d Yandex amount rows without a description", unmatched_amounts)
        logger.info("Parsed %d Yandex PDF records", len(records))
        return self._require_records(records)

    @staticmethod
    def _make_record(operation: _PendingOperation, match: re.Match[str], line: str) -> RawRecord | None:
        amount_text = " ".join(match.group(3).split())
        value = parse_amount(amount_text)
        if value is None:
            return None
        return RawRecord(
            bank="yandex",
            date=operation.date,
            time=operation.time,
            amount=amount_text,
            processing_date=match.group(1),
            card=match.group(2) or "",
            description=[operation.description],
            type_hint="income" if value >= 0 else "expense",
            currency="RUB",
            source_id=re.sub(r"\D", "", operation.date) + re.sub(r"\D", "", operation.time),
            line_number=operation.line_number,
            raw=line,
        )
