"""Tests for duplicate detection and committing."""

import hashlib
from collections.abc import Callable
from datetime import date
from decimal import Decimal

from pf_ledger.dedupe import classify, commit, dedupe_key, existing_keys
from pf_ledger.ledger import Ledger
from pf_ledger.models import FieldError, Source, Transaction, TransactionStatus


class TestDedupeKey:
    """Tests for dedupe_key."""

    def test_source_id_key(self, make_tx: Callable[..., Transaction]) -> None:
        tx = make_tx(source=Source.PDF_SBERBANK, source_id="291020251836574763")
        assert dedupe_key(tx) == "import:pdf:sberbank:291020251836574763"

    def test_hash_key(self, make_tx: Callable[..., Transaction]) -> None:
        """Test the md5 key of date, account, amount and type."""
        expected = hashlib.md5("2025-01-15|Карта|1500|expense".encode()).hexdigest()
        assert dedupe_key(make_tx()) == f"import:csv:{expected}"

    def test_amount_trailing_zeros(self, make_tx: Callable[..., Transaction]) -> None:
        """Test amounts render without trailing zeros so 1500.00 and 1500 collide."""
        assert dedupe_key(make_tx(amount=Decimal("1500.00"))) == dedupe_key(make_tx())

        expected = hashlib.md5("2025-01-15|Карта|204.98|expense".encode()).hexdigest()
        assert dedupe_key(make_tx(amount=Decimal("204.980"))) == f"import:csv:{expected}"

    def test_zero_amount_renders_empty(self, make_tx: Callable[..., Transaction]) -> None:
        expected = hashlib.md5("2025-01-15|Карта||expense".encode()).hexdigest()
        assert dedupe_key(make_tx(amount=Decimal(0))) == f"import:csv:{expected}"

    def test_missing_source(self, make_tx: Callable[..., Transaction]) -> None:
        assert dedupe_key(make_tx(source="", source_id="x")) == "unknown:x"

    def test_key_ignores_description(self, make_tx: Callable[..., Transaction]) -> None:
        assert dedupe_key(make_tx(description="a")) == dedupe_key(make_tx(description="b"))


class TestClassify:
    """Tests for classify."""

    def test_duplicate_of_ledger_row(self, make_tx: Callable[..., Transaction]) -> None:
        existing = existing_keys([make_tx(source_id="op-1")])
        batch = [make_tx(source_id="op-1"), make_tx(source_id="op-2")]

        stats = classify(batch, existing)

        assert batch[0].status == TransactionStatus.DUPLICATE
        assert batch[1].status == TransactionStatus.OK
        assert stats.total == 2
        assert stats.valid == 1
        assert stats.duplicates == 1

    def test_duplicate_within_batch(self, make_tx: Callable[..., Transaction]) -> None:
        batch = [make_tx(), make_tx()]
        stats = classify(batch, set())
        assert [tx.status for tx in batch] == [TransactionStatus.OK, TransactionStatus.DUPLICATE]
        assert stats.duplicates == 1

    def test_errors_force_review(self, make_tx: Callable[..., Transaction]) -> None:
        """Test a record with errors is needs_review even when its key repeats."""
        bad = make_tx(source_id="op-1", errors=[FieldError("Amount", "bad")])
        stats = classify([bad], {"import:csv:op-1"})

        assert bad.status == TransactionStatus.NEEDS_REVIEW
        assert stats.needs_review == 1
        assert stats.errors == 1
        assert stats.duplicates == 0


class TestCommit:
    """Tests for commit."""

    def test_commit_counts(self, make_tx: Callable[..., Transaction]) -> None:
        ledger = Ledger()
        batch = [
            make_tx(source_id="a"),
            make_tx(source_id="b", status=TransactionStatus.DUPLICATE),
            make_tx(source_id="c", status=TransactionStatus.NEEDS_REVIEW),
        ]
        result = commit(batch, ledger)

        assert result.added == 1
        assert result.skipped == 1
        assert result.needs_review == 1
        assert [tx.source_id for tx in ledger.transactions] == ["a"]

    def test_include_needs_review(self, make_tx: Callable[..., Transaction]) -> None:
        ledger = Ledger()
        batch = [make_tx(source_id="a"), make_tx(source_id="c", status=TransactionStatus.NEEDS_REVIEW)]
        result = commit(batch, ledger, include_needs_review=True)

        assert result.added == 2
        assert result.needs_review == 0
        assert len(ledger.transactions) == 2

    def test_reimport_is_duplicate(self, make_tx: Callable[..., Transaction]) -> None:
        """Test committing the same records twice adds nothing the second time."""
        ledger = Ledger()
        first = [make_tx(source_id="op-1"), make_tx(date=date(2025, 1, 16))]
        classify(first, existing_keys(ledger.transactions))
        assert commit(first, ledger).added == 2

        second = [make_tx(source_id="op-1"), make_tx(date=date(2025, 1, 16))]
        stats = classify(second, existing_keys(ledger.transactions))
        result = commit(second, ledger)

        assert stats.duplicates == 2
        assert all(tx.status == TransactionStatus.DUPLICATE for tx in second)
        assert result.added == 0
        assert result.skipped == 2
        assert len(ledger.transactions) == 2
