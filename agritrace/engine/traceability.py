"""
Traceability engine: the orchestration core.

The engine owns the entity model and the status state machine, and is
the only component that talks to both the ledger and the content store.
It is constructed explicitly with its two adapters and shared by
reference; it keeps no mutable state of its own, so concurrent calls
are safe and ordering is left to the ledger.

Write path: validate locally, read the current state, check the
transition, then submit. A submit that times out is reported as an
ambiguous outcome and never retried. Reads are retried with bounded
exponential backoff.
"""

import asyncio
import json
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from agritrace.config import Settings
from agritrace.core.errors import (
    AmbiguousOutcomeError,
    ClockSkewError,
    ConflictError,
    ContentUnavailableError,
    CreationFailedError,
    HistoryInconsistentError,
    InvalidTransitionError,
    LedgerTimeoutError,
    LedgerUnavailableError,
    NotFoundError,
    ProductClosedError,
    TraceabilityError,
    ValidationFailedError,
)
from agritrace.core.models import (
    Certificate,
    Farmer,
    Location,
    Product,
    ProductHistory,
    StatusUpdate,
    StepType,
    SupplyChainStep,
    TraceabilityReference,
)
from agritrace.core.models.base import utc_now
from agritrace.core.rules import RuleEngine, build_rule_engines
from agritrace.core.state_machine import INITIAL_STATUS, ProductStatus, check_transition, parse_status
from agritrace.ledger import (
    LedgerClient,
    LedgerError,
    LedgerGatewayClient,
    LedgerOutcomeUnknown,
    LedgerRejected,
    LedgerTimeout,
    LedgerUnavailable,
    Transactions,
)
from agritrace.observability.logger import get_logger, log_operation
from agritrace.observability.metrics import (
    increment_counter,
    operation_duration_seconds,
    pin_failures_total,
    record_content_call,
    record_ledger_call,
    record_operation,
    status_transitions_total,
    track_duration,
)
from agritrace.storage import (
    ContentNotFound,
    ContentStore,
    ContentStoreError,
    ContentStoreUnavailable,
    IPFSContentStore,
)
from agritrace.utils.validation import ValidationError as InputError
from agritrace.utils.validation import validate_document, validate_entity_id

from .projection import build_history
from .reference import derive_traceability_reference
from .retry import RetryPolicy, retry_read

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# Input key spellings that to_camel does not produce
_KEY_ALIASES = {"farmerID": "farmerId"}


def _camel_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with top-level keys in ledger (camelCase) spelling."""
    normalized = {}
    for key, value in data.items():
        key = _KEY_ALIASES.get(key, key)
        normalized[to_camel(key) if "_" in key else key] = value
    return normalized


def _canonical_json(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


class TraceabilityEngine:
    """
    Orchestrates products, farmers and certificates over a ledger and a content store.

    Args:
        ledger: Ledger client adapter
        content_store: Content store adapter
        settings: Timeouts, retry bounds and validation configuration
        clock: Source of engine time for created/step timestamps
        rule_engines: Input rule engines by kind; built from settings when omitted
        sleep: Awaitable sleep used between read retries
    """

    def __init__(
        self,
        ledger: LedgerClient,
        content_store: ContentStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        rule_engines: dict[str, RuleEngine] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.content_store = content_store
        self.settings = settings or Settings()
        self.clock = clock or utc_now
        self.step_types = [t.value for t in StepType] + list(self.settings.extra_step_types)
        self.rule_engines = rule_engines or build_rule_engines(
            self.step_types, self.settings.validation_rules_path
        )
        self.read_policy = RetryPolicy(
            max_attempts=self.settings.read_max_attempts,
            base_delay=self.settings.read_backoff_base,
            max_delay=self.settings.read_backoff_max,
        )
        self._sleep = sleep
        # committed content hash -> owning entity id, for hashes whose pin failed
        self.unpinned: dict[str, str] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TraceabilityEngine":
        """Engine wired to the HTTP ledger gateway and an IPFS node."""
        settings = settings or Settings.from_env()
        ledger = LedgerGatewayClient(
            base_url=settings.ledger_gateway_url,
            channel=settings.ledger_channel,
            chaincode=settings.ledger_chaincode,
            timeout=settings.submit_timeout,
        )
        content_store = IPFSContentStore(
            base_url=settings.content_store_url,
            timeout=settings.content_timeout,
        )
        return cls(ledger, content_store, settings=settings)

    async def repin_unpinned(self) -> dict[str, str]:
        """
        Retry pinning committed content whose pin failed earlier.

        Returns:
            Hashes still unpinned, mapped to their entity ids
        """
        operation = "repin_unpinned"
        with self._instrumented(operation, pending=len(self.unpinned)):
            for content_hash, entity_id in list(self.unpinned.items()):
                await self._pin_all([content_hash], operation, entity_id)
            return dict(self.unpinned)

    async def close(self) -> None:
        await self.ledger.close()
        await self.content_store.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    # =======================
    # PRODUCTS
    # =======================

    async def create_product(self, data: dict[str, Any]) -> Product:
        """
        Validate and register a new product in status PLANTED.

        When certifications are given, ``{productId, certifications, metadata}``
        is stored in the content store and its hash recorded as ``contentHash``.
        The bundle is pinned only after the ledger commit.

        Raises:
            ValidationFailedError: Invalid input (nothing is written)
            CreationFailedError: Content write or ledger submit failed
            AmbiguousOutcomeError: The submit timed out
        """
        operation = "create_product"
        payload = _camel_keys(data)
        with self._instrumented(operation, batch_number=payload.get("batchNumber")):
            self._validate("product", payload, operation)

            product_id = str(uuid.uuid4())
            now = self.clock()
            product = self._build(Product, {
                **payload,
                "id": product_id,
                "status": INITIAL_STATUS,
                "currentOwner": payload.get("currentOwner") or payload.get("farmerId"),
                "supplyChainSteps": [],
                "contentHash": None,
                "createdAt": now,
                "updatedAt": now,
            }, operation)

            if product.certifications:
                bundle = _canonical_json({
                    "productId": product.id,
                    "certifications": product.certifications,
                    "metadata": product.metadata,
                })
                try:
                    content_hash = await self._store(bundle, f"{product.id}.json", operation, product.id)
                except ContentUnavailableError as e:
                    raise CreationFailedError(
                        f"Could not store certification bundle for product {product.id}: {e.message}",
                        cause=e, operation=operation, product_id=product.id,
                    ) from e
                product = product.model_copy(update={"content_hash": content_hash})

            await self._submit_create(Transactions.CREATE_PRODUCT, product, operation)

            if product.content_hash:
                await self._pin_all([product.content_hash], operation, product.id)

            logger.info(
                f"Product {product.id} created",
                extra={"product_id": product.id, "farmer_id": product.farmer_id,
                       "content_hash": product.content_hash},
            )
            return product

    async def get_product(self, product_id: str) -> Product:
        operation = "get_product"
        with self._instrumented(operation, product_id=product_id):
            product_id = self._check_id(product_id, "product_id", operation)
            return await self._fetch_product(product_id, operation)

    async def update_product_status(
        self,
        product_id: str,
        new_status: str | ProductStatus,
        location: Location | dict[str, Any] | None,
        actor: str,
    ) -> StatusUpdate:
        """
        Move a product to the next status of the chain.

        The current status is read from the ledger before submitting.
        If the ledger then rejects the transition as stale, a
        ConflictError is raised; nothing is retried.

        Raises:
            ValidationFailedError, InvalidTransitionError, ProductClosedError,
            ConflictError, NotFoundError, AmbiguousOutcomeError
        """
        operation = "update_product_status"
        with self._instrumented(operation, product_id=product_id, new_status=str(new_status)):
            product_id = self._check_id(product_id, "product_id", operation)
            actor = self._check_actor(actor, operation)
            new = self._check_status(new_status, operation)
            loc = None
            if location is not None:
                loc = location if isinstance(location, Location) else self._build(Location, location, operation)

            product = await self._fetch_product(product_id, operation)
            check_transition(product.status, new, product_id)

            result = await self._submit(
                Transactions.UPDATE_PRODUCT_STATUS,
                product_id, new.value, loc.to_ledger_json() if loc else "", actor,
                operation=operation, entity_id=product_id,
            )
            increment_counter(
                status_transitions_total, 1, from_status=product.status.value, to_status=new.value
            )

            updated_at = result.get("updatedAt") if isinstance(result, dict) else None
            return StatusUpdate(
                product_id=product_id,
                previous_status=product.status,
                status=new,
                location=loc,
                actor=actor,
                updated_at=updated_at or self.clock(),
            )

    async def add_supply_chain_step(self, product_id: str, step: dict[str, Any]) -> SupplyChainStep:
        """
        Append a custody/handling step to a product that is not SOLD.

        The step is timestamped by the engine clock and must not be earlier
        than the product's last recorded step.

        Raises:
            ValidationFailedError, ClockSkewError, ProductClosedError,
            NotFoundError, AmbiguousOutcomeError
        """
        operation = "add_supply_chain_step"
        payload = _camel_keys(step)
        with self._instrumented(operation, product_id=product_id, step_type=payload.get("stepType")):
            product_id = self._check_id(product_id, "product_id", operation)
            payload.pop("id", None)
            payload.pop("timestamp", None)
            self._validate("step", payload, operation)

            product = await self._fetch_product(product_id, operation)
            if product.is_closed:
                raise ProductClosedError(
                    f"Product {product_id} is SOLD; no further steps are accepted",
                    operation=operation, product_id=product_id,
                )

            timestamp = self.clock()
            last = product.last_step_timestamp
            if last is not None and timestamp < last:
                raise ClockSkewError(
                    f"Step time {timestamp.isoformat()} is earlier than the last recorded "
                    f"step of product {product_id} ({last.isoformat()})",
                    errors=["timestamp: earlier than last recorded step"],
                    operation=operation, product_id=product_id,
                )

            new_step = self._build(SupplyChainStep, {**payload, "timestamp": timestamp}, operation)
            try:
                result = await self._submit(
                    Transactions.ADD_SUPPLY_CHAIN_STEP, product_id, new_step.to_ledger_json(),
                    operation=operation, entity_id=product_id,
                )
            except ConflictError as e:
                # sold between our read and the submit
                raise ProductClosedError(e.message, operation=operation, product_id=product_id) from e

            if isinstance(result, dict) and result.get("id"):
                new_step = new_step.model_copy(update={"id": result["id"]})
            return new_step

    async def get_product_history(self, product_id: str) -> ProductHistory:
        """
        Chronological timeline and derived status of a product.

        The ledger may answer with a bare step list or with
        ``{"status", "steps"}``; for a bare list the reported status is
        read with GetProduct.

        Raises:
            NotFoundError, HistoryInconsistentError, LedgerUnavailableError
        """
        operation = "get_product_history"
        with self._instrumented(operation, product_id=product_id):
            product_id = self._check_id(product_id, "product_id", operation)
            raw = await self._evaluate(
                Transactions.GET_PRODUCT_HISTORY, product_id, operation=operation, entity_id=product_id
            )

            if isinstance(raw, dict):
                steps = raw.get("steps", raw.get("supplyChainSteps"))
                reported = raw.get("status")
            else:
                steps = raw
                reported = (await self._fetch_product(product_id, operation)).status

            if steps is not None and not isinstance(steps, list):
                raise HistoryInconsistentError(
                    f"Ledger returned a {type(steps).__name__} as history of product {product_id}",
                    operation=operation, product_id=product_id,
                )
            return build_history(product_id, steps, reported)

    async def query_products_by_farmer(self, farmer_id: str) -> list[Product]:
        """
        Products registered by ``farmer_id``, oldest first.

        An empty (null) ledger answer is an empty list. A row belonging to
        another farmer is a consistency fault.
        """
        operation = "query_products_by_farmer"
        with self._instrumented(operation, farmer_id=farmer_id):
            farmer_id = self._check_id(farmer_id, "farmer_id", operation)
            raw = await self._evaluate(
                Transactions.QUERY_PRODUCTS_BY_FARMER, farmer_id, operation=operation, entity_id=farmer_id
            )
            if raw is None:
                return []
            if not isinstance(raw, list):
                raise HistoryInconsistentError(
                    f"Ledger returned a {type(raw).__name__} for products of farmer {farmer_id}",
                    operation=operation, farmer_id=farmer_id,
                )

            products = [self._parse_ledger(Product, row, operation, farmer_id) for row in raw]
            foreign = [p.id for p in products if p.farmer_id != farmer_id]
            if foreign:
                raise HistoryInconsistentError(
                    f"Query for farmer {farmer_id} returned products of other farmers",
                    operation=operation, farmer_id=farmer_id, product_ids=foreign,
                )
            return sorted(products, key=lambda p: p.created_at)

    def derive_traceability_reference(
        self, product: Product, base_url: str | None = None
    ) -> TraceabilityReference:
        """QR payload for ``product``; ``base_url`` defaults to the configured history address."""
        return derive_traceability_reference(product, base_url or self.settings.history_base_url)

    # =======================
    # FARMERS
    # =======================

    async def create_farmer(self, data: dict[str, Any]) -> Farmer:
        """
        Register a farmer. ``verified`` always starts False.

        Raises:
            ValidationFailedError, CreationFailedError, AmbiguousOutcomeError
        """
        operation = "create_farmer"
        payload = _camel_keys(data)
        with self._instrumented(operation):
            self._validate("farmer", payload, operation)
            farmer = self._build(Farmer, {
                **payload,
                "id": str(uuid.uuid4()),
                "verified": False,
                "createdAt": self.clock(),
            }, operation)
            await self._submit_create(Transactions.CREATE_FARMER, farmer, operation)
            return farmer

    async def get_farmer(self, farmer_id: str) -> Farmer:
        operation = "get_farmer"
        with self._instrumented(operation, farmer_id=farmer_id):
            farmer_id = self._check_id(farmer_id, "farmer_id", operation)
            raw = await self._evaluate(
                Transactions.GET_FARMER, farmer_id, operation=operation, entity_id=farmer_id
            )
            if raw is None:
                raise NotFoundError(f"Farmer {farmer_id} does not exist",
                                    operation=operation, farmer_id=farmer_id)
            return self._parse_ledger(Farmer, raw, operation, farmer_id)

    # =======================
    # CERTIFICATES
    # =======================

    async def add_certificate(
        self,
        data: dict[str, Any],
        document: bytes | None = None,
        filename: str | None = None,
        mimetype: str | None = None,
    ) -> Certificate:
        """
        Record a certificate for one product or one farmer.

        When a document is given it is stored together with a metadata
        record ``{id, filename, mimetype, size, hash, uploadedAt}``; both
        are read back before the ledger submit and pinned after it.

        Raises:
            ValidationFailedError: Invalid input or document
            NotFoundError: Unknown subject
            CreationFailedError, AmbiguousOutcomeError
        """
        operation = "add_certificate"
        payload = _camel_keys(data)
        with self._instrumented(operation, certificate_type=payload.get("type")):
            self._validate("certificate", payload, operation)
            if document is not None:
                try:
                    mimetype = validate_document(document, mimetype, self.settings.max_document_bytes)
                except InputError as e:
                    raise ValidationFailedError(str(e), errors=[str(e)], operation=operation) from e

            certificate_id = str(uuid.uuid4())
            certificate = self._build(Certificate, {
                **payload,
                "id": certificate_id,
                "payloadHash": None,
                "metadataHash": None,
                "createdAt": self.clock(),
            }, operation)

            if certificate.subject_product_id:
                await self._fetch_product(
                    self._check_id(certificate.subject_product_id, "subject_product_id", operation), operation
                )
            else:
                subject = self._check_id(certificate.subject_farmer_id, "subject_farmer_id", operation)
                if await self._evaluate(Transactions.GET_FARMER, subject,
                                        operation=operation, entity_id=subject) is None:
                    raise NotFoundError(f"Farmer {subject} does not exist",
                                        operation=operation, farmer_id=subject)

            if document is not None:
                filename = filename or f"{certificate_id}.bin"
                try:
                    payload_hash = await self._store(bytes(document), filename, operation, certificate_id)
                    metadata = _canonical_json({
                        "id": certificate_id,
                        "filename": filename,
                        "mimetype": mimetype,
                        "size": len(document),
                        "hash": payload_hash,
                        "uploadedAt": self.clock().isoformat(),
                    })
                    metadata_hash = await self._store(
                        metadata, f"{certificate_id}.metadata.json", operation, certificate_id
                    )
                except ContentUnavailableError as e:
                    raise CreationFailedError(
                        f"Could not store document for certificate {certificate_id}: {e.message}",
                        cause=e, operation=operation, certificate_id=certificate_id,
                    ) from e
                certificate = certificate.model_copy(
                    update={"payload_hash": payload_hash, "metadata_hash": metadata_hash}
                )

            await self._submit_create(Transactions.ADD_CERTIFICATE, certificate, operation)

            hashes = [h for h in (certificate.payload_hash, certificate.metadata_hash) if h]
            if hashes:
                await self._pin_all(hashes, operation, certificate_id)
            return certificate

    async def get_certificate(self, certificate_id: str) -> Certificate:
        operation = "get_certificate"
        with self._instrumented(operation, certificate_id=certificate_id):
            return await self._fetch_certificate(certificate_id, operation)

    async def get_certificate_document(self, certificate_id: str) -> bytes:
        """
        Bytes of a certificate's document.

        Raises:
            NotFoundError: Unknown certificate, or one without a document
            ContentUnavailableError: The document cannot be fetched
        """
        operation = "get_certificate_document"
        with self._instrumented(operation, certificate_id=certificate_id):
            certificate = await self._fetch_certificate(certificate_id, operation)
            if not certificate.payload_hash:
                raise NotFoundError(
                    f"Certificate {certificate.id} has no document",
                    operation=operation, certificate_id=certificate.id,
                )
            return await self._fetch_content(certificate.payload_hash, operation, certificate.id)

    # =======================
    # INTERNALS
    # =======================

    @contextmanager
    def _instrumented(self, operation: str, **fields: Any):
        with log_operation(operation, logger=logger, **fields), \
                track_duration(operation_duration_seconds, operation=operation):
            try:
                yield
            except Exception as e:
                record_operation(operation, getattr(e, "kind", type(e).__name__))
                raise
        record_operation(operation)

    def _validate(self, subject: str, payload: dict[str, Any], operation: str) -> None:
        result = self.rule_engines[subject].validate(payload)
        if not result.passed:
            raise ValidationFailedError(
                f"Invalid {subject} input: {'; '.join(result.errors)}",
                errors=result.errors,
                operation=operation,
                failed_rules=result.failed_rules,
            )

    @staticmethod
    def _build(model: type[M], data: Any, operation: str) -> M:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc']) or model.__name__}: {err['msg']}"
                for err in e.errors()
            ]
            raise ValidationFailedError(
                f"Invalid {model.__name__} input: {'; '.join(errors)}",
                errors=errors, operation=operation,
            ) from e

    @staticmethod
    def _parse_ledger(model: type[M], raw: Any, operation: str, entity_id: str) -> M:
        try:
            return model.model_validate(raw)
        except PydanticValidationError as e:
            raise HistoryInconsistentError(
                f"Ledger returned a malformed {model.__name__} for {entity_id}: "
                f"{e.error_count()} error(s)",
                operation=operation, entity_id=entity_id,
            ) from e

    @staticmethod
    def _check_id(value: Any, field_name: str, operation: str) -> str:
        try:
            return validate_entity_id(value, field_name)
        except InputError as e:
            raise ValidationFailedError(str(e), errors=[str(e)], operation=operation) from e

    @staticmethod
    def _check_actor(actor: Any, operation: str) -> str:
        if not isinstance(actor, str) or not actor.strip():
            message = "actor must be a non-empty string"
            raise ValidationFailedError(message, errors=[message], operation=operation)
        return actor.strip()

    @staticmethod
    def _check_status(new_status: Any, operation: str) -> ProductStatus:
        """Parse a requested status; malformed names are input errors, not transitions."""
        if isinstance(new_status, ProductStatus):
            return new_status
        if not isinstance(new_status, str) or not new_status.strip():
            message = "status must be a non-empty status name"
            raise ValidationFailedError(message, errors=[message], operation=operation)
        try:
            return parse_status(new_status)
        except InvalidTransitionError:
            message = f"status must be one of {', '.join(s.value for s in ProductStatus)}"
            raise ValidationFailedError(
                f"Unknown product status '{new_status}'", errors=[message], operation=operation
            ) from None

    async def _fetch_product(self, product_id: str, operation: str) -> Product:
        raw = await self._evaluate(
            Transactions.GET_PRODUCT, product_id, operation=operation, entity_id=product_id
        )
        if raw is None:
            raise NotFoundError(f"Product {product_id} does not exist",
                                operation=operation, product_id=product_id)
        return self._parse_ledger(Product, raw, operation, product_id)

    async def _fetch_certificate(self, certificate_id: str, operation: str) -> Certificate:
        certificate_id = self._check_id(certificate_id, "certificate_id", operation)
        raw = await self._evaluate(
            Transactions.GET_CERTIFICATE, certificate_id, operation=operation, entity_id=certificate_id
        )
        if raw is None:
            raise NotFoundError(f"Certificate {certificate_id} does not exist",
                                operation=operation, certificate_id=certificate_id)
        return self._parse_ledger(Certificate, raw, operation, certificate_id)

    # ledger

    async def _evaluate(self, transaction: str, *args: str, operation: str, entity_id: str) -> Any:
        async def attempt():
            try:
                result = await asyncio.wait_for(
                    self.ledger.evaluate(transaction, *args), timeout=self.settings.evaluate_timeout
                )
            except asyncio.TimeoutError as e:
                record_ledger_call(transaction, "evaluate", False)
                raise LedgerTimeout(
                    f"{transaction} did not answer within {self.settings.evaluate_timeout}s", transaction
                ) from e
            except LedgerError:
                record_ledger_call(transaction, "evaluate", False)
                raise
            record_ledger_call(transaction, "evaluate", True)
            return result

        try:
            return await retry_read(
                attempt,
                operation=transaction,
                policy=self.read_policy,
                retry_on=(LedgerUnavailable, LedgerTimeout),
                sleep=self._sleep,
            )
        except LedgerError as e:
            raise self._ledger_failure(e, operation, entity_id, submitted=False) from e

    async def _submit(self, transaction: str, *args: str, operation: str, entity_id: str) -> Any:
        try:
            result = await asyncio.wait_for(
                self.ledger.submit(transaction, *args), timeout=self.settings.submit_timeout
            )
        except asyncio.TimeoutError as e:
            record_ledger_call(transaction, "submit", False)
            raise self._ledger_failure(
                LedgerTimeout(f"{transaction} did not answer within {self.settings.submit_timeout}s",
                              transaction),
                operation, entity_id, submitted=True,
            ) from e
        except LedgerError as e:
            record_ledger_call(transaction, "submit", False)
            raise self._ledger_failure(e, operation, entity_id, submitted=True) from e
        record_ledger_call(transaction, "submit", True)
        return result

    async def _submit_create(self, transaction: str, entity: BaseModel, operation: str) -> None:
        try:
            await self._submit(transaction, entity.to_ledger_json(), operation=operation, entity_id=entity.id)
        except (AmbiguousOutcomeError, CreationFailedError):
            raise
        except TraceabilityError as e:
            raise CreationFailedError(
                f"{transaction} for {entity.id} failed: {e.message}",
                cause=e, operation=operation, entity_id=entity.id,
            ) from e

    @staticmethod
    def _ledger_failure(
        error: LedgerError, operation: str, entity_id: str, submitted: bool
    ) -> TraceabilityError:
        """Map an adapter error to the engine taxonomy and log it."""
        context = {"operation": operation, "entity_id": entity_id, "transaction": error.transaction}
        logger.error(f"Ledger call failed: {error}", extra={**context, "error_type": type(error).__name__})

        if isinstance(error, LedgerTimeout):
            if submitted:
                cause = "lost its answer" if isinstance(error, LedgerOutcomeUnknown) else "timed out"
                return AmbiguousOutcomeError(
                    f"{error.transaction} for {entity_id} {cause}; it may or may not have "
                    "been committed. Re-read before retrying.",
                    **context,
                )
            return LedgerTimeoutError(str(error), **context)
        if isinstance(error, LedgerRejected):
            if error.reason == LedgerRejected.NOT_FOUND:
                return NotFoundError(str(error), **context)
            if error.reason == LedgerRejected.CONFLICT:
                return ConflictError(str(error), **context)
            if error.reason == LedgerRejected.ALREADY_EXISTS:
                return CreationFailedError(str(error), cause=error, **context)
            return ValidationFailedError(str(error), errors=[str(error)], **context)
        return LedgerUnavailableError(str(error), **context)

    # content store

    async def _store(self, data: bytes, name: str, operation: str, entity_id: str) -> str:
        """Put ``data`` and, when configured, confirm it can be read back."""
        try:
            content_hash = await asyncio.wait_for(
                self.content_store.put(data, name), timeout=self.settings.content_timeout
            )
        except (ContentStoreError, asyncio.TimeoutError) as e:
            record_content_call("put", False)
            logger.error(
                f"Content put failed: {e!r}",
                extra={"operation": operation, "entity_id": entity_id, "content_name": name},
            )
            raise ContentUnavailableError(
                f"Content store rejected {name}: {e}", operation=operation, entity_id=entity_id
            ) from e
        record_content_call("put", True)

        if self.settings.verify_content:
            stored = await self._fetch_content(content_hash, operation, entity_id)
            if stored != data:
                raise ContentUnavailableError(
                    f"Content {content_hash} read back differs from what was stored",
                    operation=operation, entity_id=entity_id, content_hash=content_hash,
                )
        return content_hash

    async def _fetch_content(self, content_hash: str, operation: str, entity_id: str) -> bytes:
        async def attempt():
            try:
                data = await asyncio.wait_for(
                    self.content_store.get(content_hash), timeout=self.settings.content_timeout
                )
            except asyncio.TimeoutError as e:
                record_content_call("get", False)
                raise ContentStoreUnavailable(f"get {content_hash} timed out", content_hash) from e
            except ContentStoreError:
                record_content_call("get", False)
                raise
            record_content_call("get", True)
            return data

        try:
            return await retry_read(
                attempt,
                operation="content_get",
                policy=self.read_policy,
                retry_on=(ContentStoreUnavailable,),
                sleep=self._sleep,
            )
        except ContentStoreError as e:
            logger.error(
                f"Content get failed: {e}",
                extra={"operation": operation, "entity_id": entity_id, "content_hash": content_hash},
            )
            reason = "is missing" if isinstance(e, ContentNotFound) else "is unavailable"
            raise ContentUnavailableError(
                f"Content {content_hash} {reason}: {e}",
                operation=operation, entity_id=entity_id, content_hash=content_hash,
            ) from e

    async def _pin_all(self, hashes: Iterable[str], operation: str, entity_id: str) -> list[str]:
        """
        Pin committed content. Failures are logged, counted and kept in
        ``unpinned`` rather than raised: the ledger transaction is already
        committed.

        Returns:
            Hashes that could not be pinned
        """
        failed = []
        for content_hash in hashes:
            async def attempt(content_hash=content_hash):
                try:
                    await asyncio.wait_for(
                        self.content_store.pin(content_hash), timeout=self.settings.content_timeout
                    )
                except asyncio.TimeoutError as e:
                    record_content_call("pin", False)
                    raise ContentStoreUnavailable(f"pin {content_hash} timed out", content_hash) from e
                except ContentStoreError:
                    record_content_call("pin", False)
                    raise
                record_content_call("pin", True)

            try:
                await retry_read(
                    attempt,
                    operation="content_pin",
                    policy=self.read_policy,
                    retry_on=(ContentStoreUnavailable,),
                    sleep=self._sleep,
                )
            except ContentStoreError as e:
                increment_counter(pin_failures_total)
                logger.error(
                    f"Could not pin {content_hash} after commit: {e}",
                    extra={"operation": operation, "entity_id": entity_id, "content_hash": content_hash},
                )
                self.unpinned[content_hash] = entity_id
                failed.append(content_hash)
            else:
                self.unpinned.pop(content_hash, None)
        return failed
