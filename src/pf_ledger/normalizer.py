"""Normalization of raw parser records into canonical transactions."""

import logging
import re
from collections.abc import Callable
from decimal import Decimal

from pf_ledger.config import get_account_name
from pf_ledger.models import (
    SUPPORTED_CURRENCIES,
    FieldError,
    ImportOptions,
    RawRecord,
    Source,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from pf_ledger.utils import infer_type, parse_amount, parse_date, type_from_word

logger = logging.getLogger(__name__)

MerchantExtractor = Callable[[str], str]

CARD_RE = re.compile(r"\*{2,4}\s?(\d{4})")

_SBERBANK_MERCHANT_SPLIT = re.compile(r"\.|RUS|Операция")
_YANDEX_GOODS = re.compile(r"Оплата товаров и услуг\s+(.+?)(?:\s+\d+|$)", re.IGNORECASE)
_YANDEX_QR = re.compile(r"Оплата СБП QR\s*\(([^)]+)\)", re.IGNORECASE)
_YANDEX_INCOMING = re.compile(r"Входящий перевод СБП[,\s]+([^,]+)", re.IGNORECASE)


def sberbank_merchant(description: str) -> str:
    """Merchant is the text before the first '.', 'RUS' or 'Операция'."""
    if not description:
        return ""
    return _SBERBANK_MERCHANT_SPLIT.split(description, maxsplit=1)[0].strip()


def yandex_merchant(description: str) -> str:
    """Extract the merchant or sender from a Yandex operation description."""
    for pattern in (_YANDEX_GOODS, _YANDEX_QR, _YANDEX_INCOMING):
        match = pattern.search(description)
        if match:
            return match.group(1).strip()
    return ""


def build_source_id(raw: RawRecord) -> str:
    """
    Build a stable per-bank identifier for a raw record.

    An explicit id wins. Otherwise the date and time digits are combined
    with the authorization code (ddmmyyyyHHMMAUTH), or date and code when
    the time is missing. Records without an auth code get no id.
    """
    if raw.source_id:
        return raw.source_id.strip()
    if raw.date and raw.auth_code:
        if raw.time:
            return raw.date.replace(".", "") + raw.time.replace(":", "") + raw.auth_code
        return raw.date.replace(".", "") + raw.auth_code
    return ""


def resolve_account(raw: RawRecord, options: ImportOptions) -> str:
    """Pick the account: explicit value, then mapped card number, then default."""
    if raw.account:
        return raw.account.strip()

    card = raw.card
    if not card:
        match = CARD_RE.search(raw.description_text)
        if match:
            card = match.group(1)

    if card:
        name = get_account_name(card, mappings=options.account_mappings)
        if name:
            return name

    return options.default_account


def validate_transaction(tx: Transaction) -> list[FieldError]:
    """Check a transaction against the ledger invariants.

    Args:
        tx: Transaction to validate

    Returns:
        List of field errors; empty when the transaction is valid
    """
    errors: list[FieldError] = []

    if tx.date is None:
        errors.append(FieldError("Date", "Date is missing or invalid"))

    if not isinstance(tx.type, TransactionType):
        errors.append(FieldError("Type", f"Unknown transaction type: {tx.type}"))

    if not tx.account:
        errors.append(FieldError("Account", "Account is required"))

    if tx.type == TransactionType.TRANSFER:
        if not tx.account_to:
            errors.append(FieldError("AccountTo", "Transfer requires a destination account"))
        elif tx.account_to == tx.account:
            errors.append(
                FieldError("AccountTo", "Destination account must differ from source account")
            )
        if tx.category:
            errors.append(FieldError("Category", "Transfers cannot have a category"))
    elif tx.account_to:
        errors.append(
            FieldError("AccountTo", "Only transfers can have a destination account")
        )

    if tx.amount is None or tx.amount <= 0:
        errors.append(FieldError("Amount", "Amount must be greater than zero"))

    if tx.currency not in SUPPORTED_CURRENCIES:
        errors.append(FieldError("Currency", f"Unsupported currency: {tx.currency}"))

    if not tx.source:
        errors.append(FieldError("Source", "Source is required"))

    return errors


def normalize_record(
    raw: RawRecord,
    options: ImportOptions,
    source: str,
    default_type: TransactionType = TransactionType.EXPENSE,
    merchant_extractor: MerchantExtractor | None = None,
) -> Transaction:
    """
    Convert a parser's raw record into a canonical transaction.

    Bad field values never raise: they are recorded as field errors and
    the transaction is marked for review.

    Args:
        raw: Record produced by a statement parser
        options: Import options (defaults, source override, account mappings)
        source: Source tag used when options do not override it
        default_type: Type used when neither the row nor the amount says
        merchant_extractor: Bank-specific merchant extraction from description

    Returns:
        Transaction with status ok or needs_review
    """
    errors: list[FieldError] = []

    tx_date = parse_date(raw.date) if raw.date else None
    if raw.date and tx_date is None:
        errors.append(FieldError("Date", f"Unrecognized date: {raw.date}"))

    value = parse_amount(raw.amount)
    if value is None:
        if raw.amount:
            errors.append(FieldError("Amount", f"Unrecognized amount: {raw.amount}"))
        value = Decimal(0)

    description = raw.description_text or raw.category

    tx_type = type_from_word(raw.type_hint)
    if tx_type is None:
        tx_type = infer_type(raw.amount, description, default_type)
        # A negative number is an expense even without a leading minus glyph
        if value < 0:
            tx_type = TransactionType.EXPENSE

    merchant = raw.merchant
    if not merchant and merchant_extractor is not None:
        merchant = merchant_extractor(description)

    tx = Transaction(
        date=tx_date,
        type=tx_type,
        account=resolve_account(raw, options),
        account_to=raw.account_to.strip(),
        amount=abs(value),
        currency=(raw.currency or options.default_currency).strip().upper(),
        category=raw.category.strip(),
        subcategory=raw.subcategory.strip(),
        merchant=merchant,
        description=description,
        tags=raw.tags,
        source=options.source or source,
        source_id=build_source_id(raw),
        raw_data=raw.to_dict(),
    )

    for note in raw.errors:
        errors.append(FieldError("General", note))
    for error in validate_transaction(tx):
        # Keep the more specific parse error for a field
        if all(e.field != error.field for e in errors):
            errors.append(error)

    tx.errors = errors
    tx.status = TransactionStatus.NEEDS_REVIEW if errors else TransactionStatus.OK
    if errors:
        logger.debug(
            "Record at line %d needs review: %s",
            raw.line_number,
            "; ".join(str(e) for e in errors),
        )
    return tx


def error_transaction(message: str, options: ImportOptions, raw: RawRecord | None = None) -> Transaction:
    """Placeholder record for a raw record whose normalization failed."""
    return Transaction(
        date=None,
        type=TransactionType.EXPENSE,
        account=options.default_account,
        amount=Decimal(0),
        currency=options.default_currency,
        source=options.source or Source.ERROR,
        status=TransactionStatus.NEEDS_REVIEW,
        errors=[FieldError("General", f"Normalization failed: {message}")],
        raw_data=raw.to_dict() if raw is not None else {},
    )
