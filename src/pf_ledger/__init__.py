"""pf-ledger - Import bank statements into a personal-finance ledger."""

from pf_ledger.importer import StatementImporter
from pf_ledger.ledger import Ledger
from pf_ledger.models import ImportOptions, Transaction

__version__ = "0.1.0"
__all__ = ["ImportOptions", "Ledger", "StatementImporter", "Transaction"]
