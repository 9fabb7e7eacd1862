"""Monthly attendance ledger, expense sub-ledger and approval workflow."""

__version__ = "0.1.0"
