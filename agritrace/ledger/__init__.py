"""
Ledger client port and implementations.
"""

from .base import (
    LedgerClient,
    LedgerError,
    LedgerOutcomeUnknown,
    LedgerRejected,
    LedgerTimeout,
    LedgerUnavailable,
    Transactions,
)
from .gateway_client import LedgerGatewayClient
from .memory import InMemoryLedger

__all__ = [
    "LedgerClient",
    "LedgerError",
    "LedgerOutcomeUnknown",
    "LedgerRejected",
    "LedgerTimeout",
    "LedgerUnavailable",
    "Transactions",
    "LedgerGatewayClient",
    "InMemoryLedger",
]
