"""Recurring transaction templates and their materialization."""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from pf_ledger.models import (
    DEFAULT_CURRENCY,
    Frequency,
    RecurringTemplate,
    Source,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from pf_ledger.normalizer import validate_transaction
from pf_ledger.utils import parse_date

logger = logging.getLogger(__name__)

_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


@dataclass
class RecurringStats:
    created: int = 0
    skipped: int = 0
    errors: int = 0


def _months_between(base: date, current: date) -> int:
    return (current.year - base.year) * 12 + (current.month - base.month)


def _clamp_day(year: int, month: int, day: int) -> date:
    """Date in the given month with the day clamped to the month length."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _add_months(value: date, months: int) -> date:
    index = value.month - 1 + months
    return _clamp_day(value.year + index // 12, index % 12 + 1, value.day)


def _day_of_month(template: RecurringTemplate) -> int:
    return template.day_of_month or template.start_date.day


def _due_day(template: RecurringTemplate, as_of: date) -> int:
    """Scheduled day in the month of as_of, clamped to the month length."""
    return min(_day_of_month(template), calendar.monthrange(as_of.year, as_of.month)[1])


def should_materialize(template: RecurringTemplate, as_of: date) -> bool:
    """
    Decide whether a template is due on a given date.

    Counting starts from last_created, or start_date when nothing has been
    created yet.

    - weekly: 7+ days since the base date, and the scheduled weekday is today
      or already passed this week (any day when no weekday is set)
    - monthly: base date before the current month and today's day of month
      has reached the scheduled day, clamped to the month length
    - quarterly/yearly: 3/12+ calendar months since the base date and the
      scheduled day reached

    Args:
        template: Recurring template
        as_of: Date to evaluate

    Returns:
        True if a transaction should be created
    """
    if not template.active:
        return False
    if as_of < template.start_date:
        return False
    if template.end_date is not None and as_of > template.end_date:
        return False

    base = template.last_created or template.start_date

    if template.frequency == Frequency.WEEKLY:
        if (as_of - base).days < 7:
            return False
        if not template.day_of_week:
            return True
        return as_of.isoweekday() >= template.day_of_week

    if template.frequency == Frequency.MONTHLY:
        if base >= as_of.replace(day=1):
            return False
        return as_of.day >= _due_day(template, as_of)

    if template.frequency in (Frequency.QUARTERLY, Frequency.YEARLY):
        if _months_between(base, as_of) < _MONTH_STEPS[template.frequency]:
            return False
        return as_of.day >= _due_day(template, as_of)

    logger.warning("Invalid frequency in recurring template %r: %s", template.name, template.frequency)
    return False


def next_due_date(template: RecurringTemplate) -> date | None:
    """Next scheduled date after the base date, or None past the end date."""
    base = template.last_created or template.start_date

    if template.frequency == Frequency.WEEKLY:
        next_date = base + timedelta(days=7)
    else:
        next_date = _add_months(base, _MONTH_STEPS[template.frequency])
        if template.day_of_month:
            next_date = _clamp_day(next_date.year, next_date.month, template.day_of_month)

    if template.end_date is not None and next_date > template.end_date:
        return None
    return next_date


def _transaction_date(template: RecurringTemplate, as_of: date) -> date:
    if template.frequency == Frequency.WEEKLY:
        return as_of
    return _clamp_day(as_of.year, as_of.month, _day_of_month(template))


def materialize(
    templates: list[RecurringTemplate],
    as_of: date,
    period_start: date | None = None,
    period_end: date | None = None,
) -> tuple[list[Transaction], RecurringStats]:
    """
    Create transactions for every template due on ``as_of``.

    The period defaults to the month containing ``as_of``; transactions
    dated outside it are skipped. Templates that produced a transaction get
    their last_created date updated.

    Args:
        templates: Recurring templates (updated in place)
        as_of: Evaluation date
        period_start: First day of the period
        period_end: Last day of the period

    Returns:
        Tuple of (created transactions, stats)
    """
    if period_start is None:
        period_start = as_of.replace(day=1)
    if period_end is None:
        period_end = _clamp_day(as_of.year, as_of.month, 31)

    stats = RecurringStats()
    created: list[Transaction] = []

    for template in templates:
        if not should_materialize(template, as_of):
            stats.skipped += 1
            continue

        tx_date = _transaction_date(template, as_of)
        if tx_date < period_start or tx_date > period_end:
            stats.skipped += 1
            continue

        tx = Transaction(
            date=tx_date,
            type=template.type,
            account=template.account,
            account_to=template.account_to,
            amount=template.amount,
            currency=template.currency or DEFAULT_CURRENCY,
            category=template.category,
            subcategory=template.subcategory,
            merchant=template.merchant,
            description=template.description or template.name,
            source=Source.MANUAL,
            status=TransactionStatus.OK,
        )
        errors = validate_transaction(tx)
        if errors:
            stats.errors += 1
            logger.warning(
                "Recurring template %r is invalid: %s",
                template.name,
                "; ".join(str(e) for e in errors),
            )
            continue

        created.append(tx)
        template.last_created = tx_date
        stats.created += 1

    logger.info("Created %d recurring transactions (%d skipped)", stats.created, stats.skipped)
    return created, stats


def _optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def _optional_date(value: Any) -> date | None:
    if not value:
        return None
    parsed = parse_date(str(value))
    if parsed is None:
        raise ValueError(f"Invalid date: {value}")
    return parsed


def recurring_from_config(config: dict[str, Any] | None) -> list[RecurringTemplate]:
    """Build recurring templates from the "recurring" config list."""
    if not config or "recurring" not in config:
        return []

    templates: list[RecurringTemplate] = []
    for entry in config["recurring"]:
        try:
            start_date = _optional_date(entry.get("start_date"))
            if start_date is None:
                raise ValueError("start_date is required")
            templates.append(
                RecurringTemplate(
                    name=str(entry["name"]).strip(),
                    type=TransactionType(entry.get("type", "expense")),
                    frequency=Frequency(entry["frequency"]),
                    start_date=start_date,
                    end_date=_optional_date(entry.get("end_date")),
                    day_of_month=_optional_int(entry.get("day_of_month")),
                    day_of_week=_optional_int(entry.get("day_of_week")),
                    account=str(entry.get("account", "")).strip(),
                    account_to=str(entry.get("account_to", "")).strip(),
                    amount=Decimal(str(entry["amount"])),
                    currency=str(entry.get("currency", DEFAULT_CURRENCY)).strip(),
                    category=str(entry.get("category", "")).strip(),
                    subcategory=str(entry.get("subcategory", "")).strip(),
                    merchant=str(entry.get("merchant", "")).strip(),
                    description=str(entry.get("description", "")).strip(),
                    active=entry.get("active") is not False,
                    last_created=_optional_date(entry.get("last_created")),
                )
            )
        except (KeyError, ValueError, InvalidOperation) as e:
            logger.warning("Skipping invalid recurring template %s: %s", entry.get("name"), e)
    return templates
