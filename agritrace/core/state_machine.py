"""
Product status state machine.

Statuses form a single forward chain; each status has exactly one
successor except SOLD, which is terminal.
"""

from enum import Enum

from agritrace.core.errors import InvalidTransitionError, ProductClosedError


class ProductStatus(str, Enum):
    PLANTED = "PLANTED"
    HARVESTED = "HARVESTED"
    PROCESSED = "PROCESSED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    SOLD = "SOLD"


STATUS_ORDER: tuple[ProductStatus, ...] = (
    ProductStatus.PLANTED,
    ProductStatus.HARVESTED,
    ProductStatus.PROCESSED,
    ProductStatus.IN_TRANSIT,
    ProductStatus.DELIVERED,
    ProductStatus.SOLD,
)

INITIAL_STATUS = ProductStatus.PLANTED
TERMINAL_STATUS = ProductStatus.SOLD

TRANSITIONS: dict[ProductStatus, ProductStatus] = {
    current: successor for current, successor in zip(STATUS_ORDER, STATUS_ORDER[1:])
}

STATUS_VALUES = frozenset(status.value for status in ProductStatus)


def parse_status(value: "str | ProductStatus") -> ProductStatus:
    """
    Parse a status name.

    Raises:
        InvalidTransitionError: If the value is not a known status
    """
    if isinstance(value, ProductStatus):
        return value
    try:
        return ProductStatus(str(value).strip().upper())
    except ValueError:
        raise InvalidTransitionError(f"Unknown product status '{value}'", status=value)


def next_status(current: ProductStatus) -> ProductStatus | None:
    """Return the only legal successor of ``current`` (None for SOLD)."""
    return TRANSITIONS.get(current)


def is_terminal(status: ProductStatus) -> bool:
    return status is TERMINAL_STATUS


def is_valid_transition(current: ProductStatus, new: ProductStatus) -> bool:
    return TRANSITIONS.get(current) is new


def check_transition(current: ProductStatus, new: ProductStatus, product_id: str | None = None) -> None:
    """
    Enforce the forward-chain rule.

    Raises:
        ProductClosedError: If the product is already SOLD
        InvalidTransitionError: For skips, backward moves and self loops
    """
    if is_terminal(current):
        raise ProductClosedError(
            f"Product is closed in status {current.value}; no further changes are accepted",
            product_id=product_id,
        )

    if not is_valid_transition(current, new):
        expected = next_status(current)
        raise InvalidTransitionError(
            f"Cannot move from {current.value} to {new.value}; "
            f"the only allowed next status is {expected.value}",
            product_id=product_id,
            current_status=current.value,
            requested_status=new.value,
        )
