"""Duplicate detection and committing of staged transactions."""

import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from pf_ledger.models import Transaction, TransactionStatus

if TYPE_CHECKING:
    from pf_ledger.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class ImportStats:
    """Counts for a staged batch."""

    total: int = 0
    valid: int = 0
    needs_review: int = 0
    duplicates: int = 0
    errors: int = 0


@dataclass
class CommitResult:
    """Outcome of committing a staged batch."""

    added: int = 0
    skipped: int = 0
    needs_review: int = 0


def _format_amount(amount: Decimal | None) -> str:
    """Render the amount without trailing zeros; zero renders as empty."""
    if not amount:
        return ""
    return format(amount.normalize(), "f")


def dedupe_key(tx: Transaction) -> str:
    """
    Build the dedupe key for a transaction.

    Format: "<source>:<source_id>" when an id exists, otherwise
    "<source>:" + md5 hex of "yyyy-mm-dd|account|amount|type".

    Args:
        tx: Transaction to key

    Returns:
        Stable key string
    """
    source = tx.source or "unknown"
    if tx.source_id:
        return f"{source}:{tx.source_id}"

    key_fields = "|".join(
        [
            tx.date.isoformat() if tx.date else "",
            tx.account or "",
            _format_amount(tx.amount),
            tx.type.value if tx.type else "",
        ]
    )
    digest = hashlib.md5(key_fields.encode("utf-8")).hexdigest()
    return f"{source}:{digest}"


def existing_keys(transactions: Iterable[Transaction]) -> set[str]:
    """Collect dedupe keys of every row already in the ledger."""
    return {dedupe_key(tx) for tx in transactions}


def classify(transactions: list[Transaction], existing: set[str]) -> ImportStats:
    """
    Mark duplicates in a staged batch and count statuses.

    Keys seen earlier in the same batch also count as duplicates. Records
    carrying errors end up as needs_review even when their key repeats.
    The ``existing`` set is updated in place.

    Args:
        transactions: Normalized transactions (statuses updated in place)
        existing: Keys already present in the ledger

    Returns:
        ImportStats for the batch
    """
    stats = ImportStats(total=len(transactions))

    for tx in transactions:
        key = dedupe_key(tx)
        if key in existing:
            tx.status = TransactionStatus.DUPLICATE
        else:
            existing.add(key)

        if tx.errors:
            stats.errors += 1
            tx.status = TransactionStatus.NEEDS_REVIEW

        if tx.status == TransactionStatus.OK:
            stats.valid += 1
        elif tx.status == TransactionStatus.NEEDS_REVIEW:
            stats.needs_review += 1
        elif tx.status == TransactionStatus.DUPLICATE:
            stats.duplicates += 1

    logger.info(
        "Staged %d transactions: %d valid, %d need review, %d duplicates",
        stats.total,
        stats.valid,
        stats.needs_review,
        stats.duplicates,
    )
    return stats


def commit(
    batch: list[Transaction],
    ledger: "Ledger",
    include_needs_review: bool = False,
) -> CommitResult:
    """
    Append a classified batch to the ledger in one operation.

    Duplicates are skipped. Rows needing review are only appended when
    ``include_needs_review`` is set.

    Args:
        batch: Transactions returned by classify
        ledger: Ledger to append to
        include_needs_review: Also append rows with status needs_review

    Returns:
        CommitResult with counts
    """
    result = CommitResult()
    to_add: list[Transaction] = []

    for tx in batch:
        if tx.status == TransactionStatus.DUPLICATE:
            result.skipped += 1
            continue
        if tx.status == TransactionStatus.NEEDS_REVIEW and not include_needs_review:
            result.needs_review += 1
            continue
        to_add.append(tx)

    ledger.append_many(to_add)
    result.added = len(to_add)

    logger.info(
        "Committed %d transactions (%d duplicates skipped, %d left for review)",
        result.added,
        result.skipped,
        result.needs_review,
    )
    return result
