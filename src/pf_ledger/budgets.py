"""Budget evaluation over the ledger."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pf_ledger.models import (
    Budget,
    BudgetPeriod,
    BudgetStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

# Share of the plan left at or below which a budget is flagged
WARNING_THRESHOLD = Decimal("0.1")


@dataclass
class BudgetReport:
    budget: Budget
    fact: Decimal
    remaining: Decimal
    percent_used: Decimal
    status: BudgetStatus


def _in_period(tx: Transaction, period: BudgetPeriod, period_value: str) -> bool:
    if tx.date is None:
        return False
    if period == BudgetPeriod.MONTH:
        return tx.date.strftime("%Y-%m") == period_value
    return str(tx.date.year) == period_value


def compute_actual(
    transactions: list[Transaction],
    category: str,
    subcategory: str,
    period: BudgetPeriod,
    period_value: str,
) -> Decimal:
    """
    Sum absolute amounts of ok expense/income rows in a category and period.

    Args:
        transactions: Ledger rows
        category: Category to match exactly
        subcategory: Subcategory to match; empty matches any
        period: month or year
        period_value: YYYY-MM for months, YYYY for years

    Returns:
        Total amount
    """
    category = category.strip()
    subcategory = subcategory.strip()
    total = Decimal(0)

    for tx in transactions:
        if tx.status != TransactionStatus.OK:
            continue
        if tx.type not in (TransactionType.EXPENSE, TransactionType.INCOME):
            continue
        if tx.category.strip() != category:
            continue
        if subcategory and tx.subcategory.strip() != subcategory:
            continue
        if not _in_period(tx, period, period_value):
            continue
        total += abs(tx.amount)

    return total


def budget_status(plan: Decimal, fact: Decimal, threshold: Decimal = WARNING_THRESHOLD) -> BudgetStatus:
    """Exceeded above plan (or with no plan), warning when little is left."""
    if plan <= 0:
        return BudgetStatus.EXCEEDED
    if fact > plan:
        return BudgetStatus.EXCEEDED
    if (plan - fact) / plan <= threshold:
        return BudgetStatus.WARNING
    return BudgetStatus.OK


def evaluate_budgets(budgets: list[Budget], transactions: list[Transaction]) -> list[BudgetReport]:
    """Compute fact, remaining and status for every active budget."""
    reports: list[BudgetReport] = []
    for budget in budgets:
        if not budget.active:
            continue
        fact = compute_actual(
            transactions, budget.category, budget.subcategory, budget.period, budget.period_value
        )
        if budget.amount > 0:
            percent = (fact / budget.amount * 100).quantize(Decimal("0.01"))
        else:
            percent = Decimal(0)
        reports.append(
            BudgetReport(
                budget=budget,
                fact=fact,
                remaining=budget.amount - fact,
                percent_used=percent,
                status=budget_status(budget.amount, fact),
            )
        )
    return reports


def budgets_from_config(config: dict[str, Any] | None) -> list[Budget]:
    """
    Build budgets from the "budgets" config list.

    A budget is inactive only when "active" is explicitly false.
    """
    if not config or "budgets" not in config:
        return []

    budgets: list[Budget] = []
    for entry in config["budgets"]:
        try:
            budgets.append(
                Budget(
                    category=str(entry["category"]).strip(),
                    subcategory=str(entry.get("subcategory", "")).strip(),
                    period=BudgetPeriod(entry.get("period", "month")),
                    period_value=str(entry["period_value"]).strip(),
                    amount=Decimal(str(entry["amount"])),
                    active=entry.get("active") is not False,
                    description=str(entry.get("description", "")),
                )
            )
        except (KeyError, ValueError, InvalidOperation) as e:
            logger.warning("Skipping invalid budget %s: %s", entry, e)
    return budgets
