"""Parsing utilities for bank statement text."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pf_ledger.models import TransactionType

# Minus glyphs that PDF/OCR text uses interchangeably
MINUS_CHARS = "-–—−"
_MINUS_RE = re.compile(f"[{MINUS_CHARS}]")

INCOME_KEYWORDS = ["зачисление", "возврат", "пополнение", "заработная плата"]
EXPENSE_KEYWORDS = ["оплата"]

TYPE_WORDS: dict[TransactionType, list[str]] = {
    TransactionType.EXPENSE: ["expense", "расход", "debit", "дебет"],
    TransactionType.INCOME: ["income", "доход", "credit", "кредит"],
    TransactionType.TRANSFER: ["transfer", "перевод"],
}

# Page footers printed by PDF statements
PAGE_RE = re.compile(r"Страница\s*\d+\s*из\s*\d+", re.IGNORECASE)


def parse_date(date_str: str) -> date | None:
    """
    Parse various date formats to date object.

    Supported formats:
    - DD.MM.YYYY (15.01.2025)
    - DD/MM/YYYY (15/01/2025)
    - YYYY-MM-DD (2025-01-15)
    - DD.MM.YY (15.01.25)
    - DD/MM/YY (15/01/25)

    Args:
        date_str: Date string to parse

    Returns:
        date object if successful, None otherwise
    """
    date_str = date_str.strip().strip('"').strip()

    if not date_str:
        return None

    formats = [
        "%d.%m.%Y",  # 15.01.2025
        "%d/%m/%Y",  # 15/01/2025
        "%Y-%m-%d",  # 2025-01-15
        "%d.%m.%y",  # 15.01.25
        "%d/%m/%y",  # 15/01/25
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    return None


def parse_amount(amount_str: str) -> Decimal | None:
    """
    Parse a Russian-formatted amount string to Decimal.

    Handles:
    - Thousands separators (spaces, NBSP, narrow NBSP)
    - Comma decimal separator
    - Minus glyphs (-, –, —, −) and an explicit plus sign
    - Trailing currency (₽, руб., RUB)

    Args:
        amount_str: Amount string to parse

    Returns:
        Signed Decimal if successful, None otherwise
    """
    if not amount_str or not amount_str.strip():
        return None

    amount_str = amount_str.strip().strip('"').strip()

    # Remove currency markers and every kind of whitespace
    amount_str = re.sub(r"(₽|руб\.?|RUB)", "", amount_str, flags=re.IGNORECASE)
    amount_str = re.sub(r"\s+", "", amount_str)
    amount_str = _MINUS_RE.sub("-", amount_str)

    if amount_str.count(",") == 1 and "." not in amount_str:
        amount_str = amount_str.replace(",", ".")
    else:
        # 1,500.00 style
        amount_str = amount_str.replace(",", "")

    if not amount_str:
        return None

    try:
        return Decimal(amount_str)
    except InvalidOperation:
        return None


def has_explicit_sign(amount_str: str) -> str:
    """Return "+" or "-" when the amount text carries an explicit sign."""
    stripped = amount_str.strip().strip('"').strip()
    if stripped.startswith("+"):
        return "+"
    if stripped and stripped[0] in MINUS_CHARS:
        return "-"
    return ""


def type_from_word(value: str) -> TransactionType | None:
    """Map an explicit type column value (English or Russian) to a type."""
    value = value.strip().lower()
    if not value:
        return None
    for tx_type, words in TYPE_WORDS.items():
        if value in words:
            return tx_type
    return None


def infer_type(
    amount_text: str,
    text: str = "",
    default: TransactionType = TransactionType.EXPENSE,
) -> TransactionType:
    """
    Infer income or expense for a statement row.

    An explicit sign on the amount wins, then keywords in the row text,
    then the default.
    """
    sign = has_explicit_sign(amount_text)
    if sign == "+":
        return TransactionType.INCOME
    if sign == "-":
        return TransactionType.EXPENSE

    lowered = text.lower()
    if any(word in lowered for word in INCOME_KEYWORDS):
        return TransactionType.INCOME
    if any(word in lowered for word in EXPENSE_KEYWORDS):
        return TransactionType.EXPENSE
    return default


def clean_description(desc: str) -> str:
    """Collapse whitespace and newlines into single spaces."""
    return " ".join(desc.split())


def is_page_break(line: str) -> bool:
    return "Продолжение на следующей странице" in line or bool(PAGE_RE.search(line))


def detect_delimiter(line: str) -> str:
    """Pick the CSV delimiter from a header line: tab, then semicolon, then comma."""
    counts = {
        "\t": line.count("\t"),
        ";": line.count(";"),
        ",": line.count(","),
    }
    if counts["\t"] > 0 and counts["\t"] >= max(counts[";"], counts[","]):
        return "\t"
    if counts[";"] > 0 and counts[";"] >= counts[","]:
        return ";"
    return ","


def read_file(filepath: Path) -> str:
    """
    Read file content, handling both text and Excel files.

    Args:
        filepath: Path to the file

    Returns:
        File content as string (Excel files converted to semicolon-separated text)

    Raises:
        ValueError: If file cannot be read
    """
    if not filepath.exists():
        raise ValueError(f"File not found: {filepath}")

    is_xls = filepath.suffix.lower() in [".xls", ".xlsx"]
    if not is_xls:
        with open(filepath, "rb") as f:
            magic = f.read(4)
        # OLE2 magic bytes (used by .xls)
        is_xls = magic == b"\xd0\xcf\x11\xe0"

    if is_xls:
        return _read_excel(filepath)
    return _read_text(filepath)


def _read_text(filepath: Path) -> str:
    """Read text file with encoding detection."""
    # cp1251 before latin-1: latin-1 decodes anything
    encodings = ["utf-8-sig", "utf-8", "cp1251", "latin-1"]

    for encoding in encodings:
        try:
            with open(filepath, encoding=encoding) as f:
                return f.read()
        except UnicodeDecodeError:
            continue

    raise ValueError(f"Could not decode file {filepath} with any known encoding")


def _read_excel(filepath: Path) -> str:
    """Read the first sheet of an Excel file as semicolon-separated text."""
    import xlrd  # type: ignore[import-untyped]

    try:
        wb = xlrd.open_workbook(str(filepath))
        sheet = wb.sheet_by_index(0)

        lines = []
        for row in range(sheet.nrows):
            row_data = []
            for col in range(sheet.ncols):
                cell = sheet.cell(row, col)
                if cell.ctype == xlrd.XL_CELL_DATE:
                    dt = xlrd.xldate_as_datetime(cell.value, wb.datemode)
                    row_data.append(dt.strftime("%d.%m.%Y"))
                    continue
                if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
                    value = str(int(cell.value))
                else:
                    value = str(cell.value)
                if any(ch in value for ch in ';"\n'):
                    value = '"' + value.replace('"', '""') + '"'
                row_data.append(value)
            lines.append(";".join(row_data))

        return "\n".join(lines)

    except xlrd.XLRDError as e:
        raise ValueError(f"Could not read Excel file {filepath}: {e}") from e
