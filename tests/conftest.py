"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from pf_ledger.ledger import Ledger
from pf_ledger.models import (
    AccountMapping,
    ImportOptions,
    Source,
    Transaction,
    TransactionType,
)

# Fake card numbers used in the statement fixtures
TEST_ACCOUNT_MAPPINGS = [
    AccountMapping(identifier="4276 **** **** 7426", name="Сбер Visa", bank="Sberbank"),
    AccountMapping(identifier="7088", name="Яндекс Карта", bank="Yandex"),
]


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sberbank_pdf_file(fixtures_dir: Path) -> Path:
    """Return path to Sberbank PDF text fixture."""
    return fixtures_dir / "sberbank_statement.txt"


@pytest.fixture
def sberbank_csv_file(fixtures_dir: Path) -> Path:
    """Return path to Sberbank CSV export fixture."""
    return fixtures_dir / "sberbank_export.csv"


@pytest.fixture
def yandex_pdf_file(fixtures_dir: Path) -> Path:
    """Return path to Yandex PDF text fixture."""
    return fixtures_dir / "yandex_statement.txt"


@pytest.fixture
def generic_csv_file(fixtures_dir: Path) -> Path:
    """Return path to generic CSV fixture."""
    return fixtures_dir / "transactions.csv"


@pytest.fixture
def raw_sheet_file(fixtures_dir: Path) -> Path:
    """Return path to raw statement sheet fixture."""
    return fixtures_dir / "raw_sber.csv"


@pytest.fixture
def options() -> ImportOptions:
    """Import options with the test card mappings."""
    return ImportOptions(default_account="Основной", account_mappings=list(TEST_ACCOUNT_MAPPINGS))


@pytest.fixture
def ledger() -> Ledger:
    """Return an empty ledger."""
    return Ledger()


def _make_transaction(**overrides: object) -> Transaction:
    values: dict[str, object] = {
        "date": date(2025, 1, 15),
        "type": TransactionType.EXPENSE,
        "account": "Карта",
        "amount": Decimal("1500"),
        "source": Source.CSV,
    }
    values.update(overrides)
    return Transaction(**values)  # type: ignore[arg-type]


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    """Factory for valid expense transactions; keyword arguments override fields."""
    return _make_transaction
