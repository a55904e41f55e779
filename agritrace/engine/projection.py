"""
Query/projection layer: pure functions over ledger-returned step lists.

The ledger returns a product's steps in storage order, which is not
guaranteed to be chronological. These functions rebuild the timeline,
derive the current status from the status-change events and check it
against what the ledger reports. No I/O happens here.
"""

from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError

from agritrace.core.errors import HistoryInconsistentError
from agritrace.core.models import ProductHistory, SupplyChainStep
from agritrace.core.state_machine import (
    INITIAL_STATUS,
    ProductStatus,
    is_valid_transition,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_steps(raw_steps: Iterable[Any] | None, product_id: str) -> list[SupplyChainStep]:
    """
    Parse raw step dicts (or models) into SupplyChainStep objects.

    Raises:
        HistoryInconsistentError: If an entry is not a well-formed step
    """
    steps = []
    for index, raw in enumerate(raw_steps or []):
        if isinstance(raw, SupplyChainStep):
            steps.append(raw)
            continue
        try:
            steps.append(SupplyChainStep.model_validate(raw))
        except PydanticValidationError as e:
            raise HistoryInconsistentError(
                f"Malformed history entry {index} for product {product_id}: {e.error_count()} error(s)",
                product_id=product_id,
                index=index,
            ) from e
    return steps


def chronological(steps: Iterable[SupplyChainStep]) -> list[SupplyChainStep]:
    """
    Sort steps by timestamp, oldest first.

    The sort is stable, so steps with equal timestamps keep the order the
    ledger returned them in. Steps without a timestamp sort first.
    """
    return sorted(steps, key=lambda step: step.timestamp or _EPOCH)


def status_events(timeline: Iterable[SupplyChainStep]) -> list[SupplyChainStep]:
    """The status-change subset of a timeline, in timeline order."""
    return [step for step in timeline if step.is_status_change]


def derive_status(events: list[SupplyChainStep], product_id: str) -> ProductStatus:
    """
    Status implied by a product's status-change events.

    A product with no events is PLANTED. Otherwise the events must walk
    the forward chain one step at a time starting from PLANTED, and the
    last event is the current status.

    Raises:
        HistoryInconsistentError: If the events skip, repeat or go backwards
    """
    current = INITIAL_STATUS
    for event in events:
        new = ProductStatus(event.step_type)
        if not is_valid_transition(current, new):
            raise HistoryInconsistentError(
                f"History of product {product_id} moves from {current.value} to {new.value}",
                product_id=product_id,
                step_id=event.id,
            )
        current = new
    return current


def check_consistency(
    product_id: str,
    derived: ProductStatus,
    reported: ProductStatus | None,
) -> None:
    """
    Raises:
        HistoryInconsistentError: If the ledger reports a status different
            from the one implied by the history
    """
    if reported is not None and reported is not derived:
        raise HistoryInconsistentError(
            f"Product {product_id} is reported as {reported.value} "
            f"but its history implies {derived.value}",
            product_id=product_id,
            derived_status=derived.value,
            reported_status=reported.value,
        )


def check_monotonic(timeline: list[SupplyChainStep]) -> bool:
    """True if timestamps are non-decreasing along ``timeline``."""
    stamps = [step.timestamp for step in timeline if step.timestamp is not None]
    return all(a <= b for a, b in zip(stamps, stamps[1:]))


def build_history(
    product_id: str,
    raw_steps: Iterable[Any] | None,
    reported_status: ProductStatus | str | None = None,
) -> ProductHistory:
    """
    Reconstruct a product's chronological history.

    Args:
        product_id: Product the steps belong to
        raw_steps: Steps as returned by the ledger, in any order
        reported_status: Status the ledger holds for the product, if known

    Returns:
        ProductHistory with sorted timeline and derived status

    Raises:
        HistoryInconsistentError: On malformed steps, an invalid status
            walk, or a derived/reported status mismatch
    """
    if reported_status is not None and not isinstance(reported_status, ProductStatus):
        try:
            reported_status = ProductStatus(reported_status)
        except ValueError:
            raise HistoryInconsistentError(
                f"Product {product_id} has unknown status '{reported_status}'",
                product_id=product_id,
            ) from None

    timeline = chronological(parse_steps(raw_steps, product_id))
    events = status_events(timeline)
    derived = derive_status(events, product_id)
    check_consistency(product_id, derived, reported_status)

    return ProductHistory(
        product_id=product_id,
        status=derived,
        reported_status=reported_status,
        timeline=timeline,
        status_changes=events,
    )

