"""Archiving of old ledger rows."""

import logging
from dataclasses import replace
from datetime import date

from pf_ledger.ledger import Ledger
from pf_ledger.models import Transaction, TransactionStatus

logger = logging.getLogger(__name__)


def _archivable(ledger: Ledger, cutoff: date) -> list[Transaction]:
    return [
        tx
        for tx in ledger.transactions
        if tx.date is not None and tx.date < cutoff and not tx.is_deleted
    ]


def count_archivable(ledger: Ledger, cutoff: date) -> int:
    """Number of rows archive_before would move."""
    return len(_archivable(ledger, cutoff))


def archive_before(ledger: Ledger, cutoff: date) -> int:
    """
    Copy rows dated before the cutoff into the archive and mark them deleted.

    Deleted rows stay in the ledger so they are excluded from aggregates
    while remaining visible; rows already deleted are left alone.

    Args:
        ledger: Ledger to archive from
        cutoff: First date that stays active

    Returns:
        Number of archived rows
    """
    rows = _archivable(ledger, cutoff)
    ledger.archive.extend(replace(tx, errors=[]) for tx in rows)
    for tx in rows:
        tx.status = TransactionStatus.DELETED

    logger.info("Archived %d transactions dated before %s", len(rows), cutoff.isoformat())
    return len(rows)


def restore_from_archive(
    ledger: Ledger,
    start: date | None = None,
    end: date | None = None,
) -> int:
    """
    Copy archived rows within [start, end] back into the ledger with status ok.

    Returns:
        Number of restored rows
    """
    restored: list[Transaction] = []
    for tx in ledger.archive:
        if start is not None and tx.date is not None and tx.date < start:
            continue
        if end is not None and tx.date is not None and tx.date > end:
            continue
        restored.append(replace(tx, status=TransactionStatus.OK, errors=[]))

    ledger.append_many(restored)
    logger.info("Restored %d transactions from archive", len(restored))
    return len(restored)
