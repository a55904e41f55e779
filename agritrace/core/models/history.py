"""
Read-side models: reconstructed product history and status update receipts.
"""

from datetime import datetime

from pydantic import Field

from agritrace.core.state_machine import ProductStatus

from .base import TraceModel
from .location import Location
from .supply_chain_step import SupplyChainStep


class ProductHistory(TraceModel):
    """
    Chronological view of a product built by the projection layer.

    Attributes:
        product_id: Product the history belongs to
        status: Status derived from the last status-change event
        reported_status: Status the ledger reports for the product
        timeline: All steps, oldest first
        status_changes: The status-change subset of ``timeline``
    """

    product_id: str
    status: ProductStatus
    reported_status: ProductStatus | None = None
    timeline: list[SupplyChainStep] = Field(default_factory=list)
    status_changes: list[SupplyChainStep] = Field(default_factory=list)

    @property
    def last_timestamp(self) -> datetime | None:
        for step in reversed(self.timeline):
            if step.timestamp is not None:
                return step.timestamp
        return None


class StatusUpdate(TraceModel):
    """Receipt returned after a committed status transition."""

    product_id: str
    previous_status: ProductStatus
    status: ProductStatus
    location: Location | None = None
    actor: str
    updated_at: datetime
