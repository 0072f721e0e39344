"""Category rules: fill in empty categories from merchant or description."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from pf_ledger.models import ApplyTo, CategoryRule, PatternType, Transaction

logger = logging.getLogger(__name__)

# Accept the camelCase spellings used by older configs
_PATTERN_TYPE_ALIASES = {
    "startswith": PatternType.STARTS_WITH,
    "endswith": PatternType.ENDS_WITH,
}


@dataclass
class CategorizeStats:
    processed: int = 0
    categorized: int = 0


def match_pattern(value: str, pattern: str, pattern_type: PatternType) -> bool:
    """
    Case-insensitive match of a field value against a rule pattern.

    Invalid regular expressions never match.
    """
    if not value or not pattern:
        return False

    value = value.strip().lower()
    pattern = pattern.strip()
    lowered = pattern.lower()

    if pattern_type == PatternType.CONTAINS:
        return lowered in value
    if pattern_type == PatternType.STARTS_WITH:
        return value.startswith(lowered)
    if pattern_type == PatternType.ENDS_WITH:
        return value.endswith(lowered)
    if pattern_type == PatternType.EXACT:
        return value == lowered
    if pattern_type == PatternType.REGEX:
        try:
            return re.search(pattern, value, re.IGNORECASE) is not None
        except re.error as e:
            logger.warning("Invalid regex pattern %r: %s", pattern, e)
            return False
    return False


def match_rule(merchant: str, description: str, rules: list[CategoryRule]) -> CategoryRule | None:
    """
    Find the first matching active rule, highest priority first.

    For each rule the merchant is checked before the description.

    Args:
        merchant: Transaction merchant
        description: Transaction description
        rules: Candidate rules

    Returns:
        Matching rule or None
    """
    merchant = (merchant or "").strip()
    description = (description or "").strip()

    for rule in sorted(rules, key=lambda r: r.priority, reverse=True):
        if not rule.active:
            continue
        check_merchant = rule.apply_to in (ApplyTo.MERCHANT, ApplyTo.BOTH)
        check_description = rule.apply_to in (ApplyTo.DESCRIPTION, ApplyTo.BOTH)

        if check_merchant and match_pattern(merchant, rule.pattern, rule.pattern_type):
            return rule
        if check_description and match_pattern(description, rule.pattern, rule.pattern_type):
            return rule

    return None


def apply_rules(tx: Transaction, rules: list[CategoryRule]) -> bool:
    """
    Fill an empty category from the first matching rule.

    Existing categories are never overwritten and transfers never get one.

    Returns:
        True if the transaction was categorized
    """
    if tx.category.strip() or tx.is_transfer or not rules:
        return False

    rule = match_rule(tx.merchant, tx.description, rules)
    if rule is None:
        return False

    tx.category = rule.category
    if rule.subcategory:
        tx.subcategory = rule.subcategory
    logger.debug("Applied rule %r, category: %s", rule.name, rule.category)
    return True


def apply_rules_to_all(transactions: list[Transaction], rules: list[CategoryRule]) -> CategorizeStats:
    """Categorize every uncategorized, non-transfer transaction."""
    stats = CategorizeStats()
    for tx in transactions:
        if tx.category.strip() or tx.is_transfer:
            continue
        stats.processed += 1
        if apply_rules(tx, rules):
            stats.categorized += 1
    if stats.categorized:
        logger.info("Applied category rules to %d transactions", stats.categorized)
    return stats


def _rule(name: str, category: str, subcategory: str = "", priority: int = 5) -> CategoryRule:
    return CategoryRule(
        name=name,
        pattern=name,
        pattern_type=PatternType.CONTAINS,
        category=category,
        subcategory=subcategory,
        priority=priority,
    )


def default_rules() -> list[CategoryRule]:
    """Built-in rules for common Russian merchants."""
    return [
        # Grocery stores
        _rule("Пятёрочка", "Продукты", priority=10),
        _rule("Магнит", "Продукты", priority=10),
        _rule("Перекресток", "Продукты", priority=10),
        _rule("Ашан", "Продукты", priority=10),
        _rule("Лента", "Продукты", priority=10),
        # Restaurants and cafes
        _rule("Кафе", "Еда", "Рестораны"),
        _rule("Ресторан", "Еда", "Рестораны"),
        _rule("Макдональдс", "Еда", "Рестораны"),
        _rule("KFC", "Еда", "Рестораны"),
        # Transport
        _rule("Метро", "Транспорт", "Общественный"),
        _rule("Автобус", "Транспорт", "Общественный"),
        _rule("Такси", "Транспорт", "Такси"),
        _rule("Яндекс.Такси", "Транспорт", "Такси"),
        _rule("Uber", "Транспорт", "Такси"),
        # Health
        _rule("Аптека", "Здоровье", "Аптека"),
        _rule("36,6", "Здоровье", "Аптека"),
        # Entertainment
        _rule("Кино", "Развлечения", "Кино"),
        _rule("Netflix", "Развлечения", "Подписки"),
        # Housing
        _rule("ЖКУ", "Жильё", "Коммунальные"),
        _rule("Коммунальные", "Жильё", "Коммунальные"),
        # Income
        _rule("Зарплата", "Зарплата", priority=10),
    ]


def _pattern_type(value: str) -> PatternType:
    key = value.strip().lower()
    return _PATTERN_TYPE_ALIASES.get(key) or PatternType(key)


def rules_from_config(config: dict[str, Any] | None) -> list[CategoryRule]:
    """
    Build category rules from the "category_rules" config list.

    Incomplete or invalid entries are skipped with a warning.

    Args:
        config: Loaded JSON config

    Returns:
        List of CategoryRule objects
    """
    if not config or "category_rules" not in config:
        return []

    rules: list[CategoryRule] = []
    for entry in config["category_rules"]:
        name = str(entry.get("name", "")).strip()
        pattern = str(entry.get("pattern", "")).strip()
        category = str(entry.get("category", "")).strip()
        if not (name and pattern and category):
            logger.warning("Skipping incomplete category rule: %s", entry)
            continue
        try:
            rules.append(
                CategoryRule(
                    name=name,
                    pattern=pattern,
                    pattern_type=_pattern_type(entry.get("pattern_type", "contains")),
                    category=category,
                    subcategory=str(entry.get("subcategory", "")).strip(),
                    priority=int(entry.get("priority", 0) or 0),
                    active=bool(entry.get("active", True)),
                    apply_to=ApplyTo(entry.get("apply_to", "both")),
                )
            )
        except ValueError as e:
            logger.warning("Skipping invalid category rule %r: %s", name, e)
    return rules
