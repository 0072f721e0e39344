"""Utility functions for pf-ledger."""

from pf_ledger.utils.parsing import (
    clean_description,
    detect_delimiter,
    infer_type,
    is_page_break,
    parse_amount,
    parse_date,
    read_file,
    type_from_word,
)

__all__ = [
    "parse_date",
    "parse_amount",
    "infer_type",
    "type_from_word",
    "clean_description",
    "detect_delimiter",
    "is_page_break",
    "read_file",
]
