"""
In-memory ledger implementing the agricultural chaincode's transactions.

Used for local development and tests. World state is kept as JSON
strings so every read returns an independent copy, as with a real
ledger. The status-update transaction enforces the forward chain on
the ledger side, which gives the engine compare-and-submit semantics:
a transition based on a stale read is rejected with reason "conflict".
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable

from agritrace.core.state_machine import ProductStatus, is_valid_transition

from .base import LedgerClient, LedgerRejected, Transactions


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryLedger(LedgerClient):
    """
    Chaincode semantics over dicts.

    Args:
        clock: Source of ledger time for timestamps it assigns
        latency: Optional delay in seconds applied to every call
    """

    def __init__(self, clock: Callable[[], datetime] = _now, latency: float = 0.0) -> None:
        self.clock = clock
        self.latency = latency
        self.products: dict[str, str] = {}
        self.farmers: dict[str, str] = {}
        self.certificates: dict[str, str] = {}
        self.submitted: list[tuple[str, tuple[str, ...]]] = []

        self._submit_handlers: dict[str, Callable[..., Any]] = {
            Transactions.CREATE_PRODUCT: self._create_product,
            Transactions.UPDATE_PRODUCT_STATUS: self._update_product_status,
            Transactions.ADD_SUPPLY_CHAIN_STEP: self._add_supply_chain_step,
            Transactions.CREATE_FARMER: self._create_farmer,
            Transactions.ADD_CERTIFICATE: self._add_certificate,
        }
        self._evaluate_handlers: dict[str, Callable[..., Any]] = {
            Transactions.GET_PRODUCT: self._get_product,
            Transactions.GET_PRODUCT_HISTORY: self._get_product_history,
            Transactions.QUERY_PRODUCTS_BY_FARMER: self._query_products_by_farmer,
            Transactions.GET_FARMER: self._get_farmer,
            Transactions.GET_CERTIFICATE: self._get_certificate,
        }

    async def submit(self, transaction: str, *args: str) -> Any:
        if self.latency:
            await asyncio.sleep(self.latency)
        handler = self._submit_handlers.get(transaction)
        if handler is None:
            raise LedgerRejected(f"unknown submit transaction {transaction}", transaction)
        result = handler(*args)
        self.submitted.append((transaction, args))
        return result

    async def evaluate(self, transaction: str, *args: str) -> Any:
        if self.latency:
            await asyncio.sleep(self.latency)
        handler = self._evaluate_handlers.get(transaction)
        if handler is None:
            raise LedgerRejected(f"unknown evaluate transaction {transaction}", transaction)
        return handler(*args)

    # products

    def _load(self, table: dict[str, str], key: str, kind: str, transaction: str) -> dict[str, Any]:
        raw = table.get(key)
        if raw is None:
            raise LedgerRejected(f"{kind} {key} does not exist", transaction, reason=LedgerRejected.NOT_FOUND)
        return json.loads(raw)

    def _parse(self, payload: str, kind: str, transaction: str) -> dict[str, Any]:
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise LedgerRejected(f"failed to unmarshal {kind} data: {e}", transaction) from e
        if not isinstance(data, dict) or not data.get("id"):
            raise LedgerRejected(f"{kind} data must be an object with an id", transaction)
        return data

    def _create_product(self, product_json: str) -> None:
        tx = Transactions.CREATE_PRODUCT
        product = self._parse(product_json, "product", tx)
        if product["id"] in self.products:
            raise LedgerRejected(f"product {product['id']} already exists", tx,
                                 reason=LedgerRejected.ALREADY_EXISTS)
        now = self.clock().isoformat()
        product.setdefault("createdAt", now)
        product.setdefault("updatedAt", now)
        product.setdefault("supplyChainSteps", [])
        self.products[product["id"]] = json.dumps(product)

    def _get_product(self, product_id: str) -> dict[str, Any]:
        return self._load(self.products, product_id, "product", Transactions.GET_PRODUCT)

    def _update_product_status(self, product_id: str, status: str, location: str, actor: str) -> dict[str, Any]:
        tx = Transactions.UPDATE_PRODUCT_STATUS
        product = self._load(self.products, product_id, "product", tx)

        try:
            current, new = ProductStatus(product.get("status", "PLANTED")), ProductStatus(status)
        except ValueError as e:
            raise LedgerRejected(str(e), tx) from e
        if not is_valid_transition(current, new):
            raise LedgerRejected(
                f"product {product_id} is {current.value}; cannot move to {new.value}",
                tx, reason=LedgerRejected.CONFLICT,
            )

        loc = json.loads(location) if location else None
        now = self.clock().isoformat()
        steps = product.get("supplyChainSteps") or []

        product["status"] = new.value
        if loc is not None:
            product["currentLocation"] = loc
        product["currentOwner"] = actor
        product["updatedAt"] = now
        steps.append({
            "id": f"{product_id}-{len(steps)}",
            "stepType": new.value,
            "actor": actor,
            "location": loc,
            "timestamp": now,
            "description": f"Product status updated to {new.value}",
            "metadata": {},
        })
        product["supplyChainSteps"] = steps
        self.products[product_id] = json.dumps(product)
        return product

    def _add_supply_chain_step(self, product_id: str, step_json: str) -> dict[str, Any]:
        tx = Transactions.ADD_SUPPLY_CHAIN_STEP
        product = self._load(self.products, product_id, "product", tx)
        if product.get("status") == ProductStatus.SOLD.value:
            raise LedgerRejected(f"product {product_id} is closed", tx, reason=LedgerRejected.CONFLICT)

        try:
            step = json.loads(step_json)
        except ValueError as e:
            raise LedgerRejected(f"failed to unmarshal step data: {e}", tx) from e

        steps = product.get("supplyChainSteps") or []
        step["id"] = f"{product_id}-{len(steps)}"
        step.setdefault("timestamp", self.clock().isoformat())
        steps.append(step)
        product["supplyChainSteps"] = steps
        product["updatedAt"] = step["timestamp"]
        self.products[product_id] = json.dumps(product)
        return step

    def _get_product_history(self, product_id: str) -> list[dict[str, Any]]:
        product = self._load(self.products, product_id, "product", Transactions.GET_PRODUCT_HISTORY)
        return product.get("supplyChainSteps") or []

    def _query_products_by_farmer(self, farmer_id: str) -> list[dict[str, Any]] | None:
        matches = [
            product for product in map(json.loads, self.products.values())
            if product.get("farmerId") == farmer_id
        ]
        # an empty query result comes back as null, like the chaincode's nil slice
        return matches or None

    # farmers and certificates

    def _create_farmer(self, farmer_json: str) -> None:
        tx = Transactions.CREATE_FARMER
        farmer = self._parse(farmer_json, "farmer", tx)
        if farmer["id"] in self.farmers:
            raise LedgerRejected(f"farmer {farmer['id']} already exists", tx,
                                 reason=LedgerRejected.ALREADY_EXISTS)
        farmer.setdefault("createdAt", self.clock().isoformat())
        self.farmers[farmer["id"]] = json.dumps(farmer)

    def _get_farmer(self, farmer_id: str) -> dict[str, Any]:
        return self._load(self.farmers, farmer_id, "farmer", Transactions.GET_FARMER)

    def _add_certificate(self, certificate_json: str) -> None:
        tx = Transactions.ADD_CERTIFICATE
        certificate = self._parse(certificate_json, "certificate", tx)
        if certificate["id"] in self.certificates:
            raise LedgerRejected(f"certificate {certificate['id']} already exists", tx,
                                 reason=LedgerRejected.ALREADY_EXISTS)
        self.certificates[certificate["id"]] = json.dumps(certificate)

    def _get_certificate(self, certificate_id: str) -> dict[str, Any]:
        return self._load(self.certificates, certificate_id, "certificate", Transactions.GET_CERTIFICATE)
