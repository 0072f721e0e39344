"""Statement parsers package.

Importing this package registers every parser with the registry, in
detection priority order.
"""

from pf_ledger.parsers.base import ParserRegistry, StatementParser
from pf_ledger.parsers.csv_generic import GenericCSVParser
from pf_ledger.parsers.raw_sheet import RawSheetParser
from pf_ledger.parsers.sberbank import SberbankCSVParser, SberbankPDFParser
from pf_ledger.parsers.yandex import YandexPDFParser

__all__ = [
    "StatementParser",
    "ParserRegistry",
    "YandexPDFParser",
    "SberbankCSVParser",
    "SberbankPDFParser",
    "RawSheetParser",
    "GenericCSVParser",
]
