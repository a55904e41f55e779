"""
Product model representing an agricultural batch traced through the supply chain.
"""

from datetime import date, datetime
from typing import Any

from pydantic import Field, field_validator, model_validator

from agritrace.core.state_machine import ProductStatus

from .base import TraceModel, ensure_utc, utc_now
from .location import Location
from .supply_chain_step import SupplyChainStep


class Product(TraceModel):
    """
    An agricultural product and its embedded, append-only step history.

    Created once by the engine; afterwards only changed through status
    updates and step appends, never deleted.

    Attributes:
        id: Engine-generated unique identifier, immutable
        name: Product name ("Rice", "Basmati Rice")
        batch_number: Producer batch number
        farmer_id: Reference to the producing Farmer
        farm_location: Where it was grown
        current_location: Last known location
        planting_date: Must not be after harvest_date
        harvest_date: Harvest date
        quality: Optional quality grade
        certifications: Certificate references (may be empty)
        current_owner: Actor of the last status change (farmer at creation)
        status: Position in the PLANTED..SOLD chain
        supply_chain_steps: Steps recorded by the ledger
        content_hash: Content address of the certification bundle
        metadata: Open key-value bag, stored with the certification bundle
        created_at: Creation time
        updated_at: Advances on every status change or step append
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    batch_number: str = Field(..., min_length=1)
    farmer_id: str = Field(..., min_length=1)
    farm_location: Location
    current_location: Location
    planting_date: date
    harvest_date: date
    quality: str | None = None
    certifications: list[str] = Field(default_factory=list)
    current_owner: str | None = None
    status: ProductStatus = ProductStatus.PLANTED
    supply_chain_steps: list[SupplyChainStep] = Field(default_factory=list)
    content_hash: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("supply_chain_steps", "certifications", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        # the ledger serializes empty slices as null
        return [] if v is None else v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v):
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.planting_date > self.harvest_date:
            raise ValueError(
                f"plantingDate ({self.planting_date}) must not be after harvestDate ({self.harvest_date})"
            )
        return self

    @property
    def is_closed(self) -> bool:
        return self.status is ProductStatus.SOLD

    @property
    def last_step_timestamp(self) -> datetime | None:
        timestamps = [s.timestamp for s in self.supply_chain_steps if s.timestamp is not None]
        return max(timestamps) if timestamps else None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "0b6c5f0e-5d1e-4c52-9a55-0f4f6f3f7a10",
                "name": "Rice",
                "batchNumber": "B1",
                "farmerId": "F1",
                "farmLocation": {"latitude": 23.02, "longitude": 72.57, "address": "Plot 12"},
                "currentLocation": {"latitude": 23.02, "longitude": 72.57, "address": "Plot 12"},
                "plantingDate": "2024-01-01",
                "harvestDate": "2024-04-01",
                "quality": "A",
                "certifications": ["organic-2024"],
                "status": "PLANTED",
                "contentHash": "bafkreib2...",
            }
        }
