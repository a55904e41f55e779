"""
Ledger client port.

The engine talks to the distributed ledger only through this narrow
interface: ``submit`` for writes that must reach consensus and
``evaluate`` for reads against (possibly slightly stale) ledger state.
Arguments are strings, structured payloads are JSON, mirroring the
chaincode's transaction signatures.
"""

from abc import ABC, abstractmethod
from typing import Any


class Transactions:
    """Chaincode transaction names."""

    CREATE_PRODUCT = "CreateProduct"
    GET_PRODUCT = "GetProduct"
    UPDATE_PRODUCT_STATUS = "UpdateProductStatus"
    ADD_SUPPLY_CHAIN_STEP = "AddSupplyChainStep"
    GET_PRODUCT_HISTORY = "GetProductHistory"
    QUERY_PRODUCTS_BY_FARMER = "QueryProductsByFarmer"
    CREATE_FARMER = "CreateFarmer"
    GET_FARMER = "GetFarmer"
    ADD_CERTIFICATE = "AddCertificate"
    GET_CERTIFICATE = "GetCertificate"


class LedgerError(Exception):
    """Base class for failures reported by a ledger client."""

    def __init__(self, message: str, transaction: str | None = None):
        self.transaction = transaction
        super().__init__(message)


class LedgerUnavailable(LedgerError):
    """Network failure or no reachable peer; the request did not execute."""


class LedgerTimeout(LedgerError):
    """No answer in time; for submits the outcome is unknown."""


class LedgerOutcomeUnknown(LedgerTimeout):
    """A submit reached the gateway but no usable answer came back; it may have committed."""


class LedgerRejected(LedgerError):
    """
    Business rule violation inside the ledger logic.

    Attributes:
        reason: "not_found", "already_exists", "conflict" or "invalid"
    """

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    CONFLICT = "conflict"
    INVALID = "invalid"

    def __init__(self, message: str, transaction: str | None = None, reason: str = INVALID):
        super().__init__(message, transaction)
        self.reason = reason


class LedgerClient(ABC):
    """Abstract named-transaction interface to the ledger."""

    @abstractmethod
    async def submit(self, transaction: str, *args: str) -> Any:
        """
        Execute a write transaction and wait for commit.

        Not idempotent: callers must not blindly retry after a timeout.

        Returns:
            The transaction's decoded JSON result (None when empty)

        Raises:
            LedgerUnavailable: The request was never delivered
            LedgerRejected: The ledger logic refused the transaction
            LedgerTimeout: The outcome is unknown (LedgerOutcomeUnknown included)
        """

    @abstractmethod
    async def evaluate(self, transaction: str, *args: str) -> Any:
        """
        Execute a read-only query without consensus.

        Returns:
            The query's decoded JSON result (None when empty)

        Raises:
            LedgerUnavailable, LedgerRejected, LedgerTimeout
        """

    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
