"""
SupplyChainStep model representing one custody/handling event of a product.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from agritrace.core.state_machine import STATUS_VALUES

from .base import TraceModel, ensure_utc
from .location import Location


class StepType(str, Enum):
    """Recognized vocabulary for manually appended steps."""

    PLANTING = "PLANTING"
    IRRIGATION = "IRRIGATION"
    FERTILIZATION = "FERTILIZATION"
    PEST_CONTROL = "PEST_CONTROL"
    HARVESTING = "HARVESTING"
    QUALITY_CHECK = "QUALITY_CHECK"
    INSPECTION = "INSPECTION"
    CERTIFICATION = "CERTIFICATION"
    PROCESSING = "PROCESSING"
    PACKAGING = "PACKAGING"
    STORAGE = "STORAGE"
    TRANSPORT = "TRANSPORT"
    DELIVERY = "DELIVERY"
    RETAIL = "RETAIL"


class SupplyChainStep(TraceModel):
    """
    One entry of a product's append-only history.

    Steps whose ``step_type`` is a product status name are status-change
    events recorded by the ledger on UpdateProductStatus; all other steps
    are appended through AddSupplyChainStep.

    Attributes:
        id: Ledger-assigned "<productId>-<n>" in append order
        step_type: Step vocabulary entry or status name
        actor: Identifier of the party performing the step
        location: Where the step happened
        description: Free text
        metadata: Open key-value bag
        timestamp: Engine/ledger-assigned time, non-decreasing per product
    """

    id: str | None = None
    step_type: str = Field(..., min_length=1)
    actor: str = ""
    location: Location | None = None
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime | None = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v):
        return ensure_utc(v)

    @property
    def is_status_change(self) -> bool:
        return self.step_type in STATUS_VALUES

    class Config:
        json_schema_extra = {
            "example": {
                "id": "0b6c5f0e-5d1e-4c52-9a55-0f4f6f3f7a10-2",
                "stepType": "TRANSPORT",
                "actor": "logistics-co-17",
                "location": {"latitude": 22.3, "longitude": 73.2, "address": "Vadodara depot"},
                "description": "Loaded onto refrigerated truck",
                "metadata": {"temperature": "4C"},
                "timestamp": "2024-04-03T09:30:00Z"
            }
        }
