"""
Farmer model representing a registered producer.
"""

import re
from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from .base import TraceModel, ensure_utc, utc_now
from .location import Location

EMAIL_PATTERN = r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$"


class Farmer(TraceModel):
    """
    A producer registered on the ledger.

    Attributes:
        id: Engine-generated unique identifier
        name: Display name
        email: Contact address (syntactically validated)
        phone: Contact phone
        farm_location: Location of the farm
        certifications: Certificate references held by the farmer
        verified: Flipped only by an external trust workflow
        metadata: Open key-value bag
        created_at: Registration time
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    email: str
    phone: str = Field(..., min_length=1)
    farm_location: Location
    certifications: list[str] = Field(default_factory=list)
    verified: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError(f"'{v}' is not a valid email address")
        return v

    @field_validator("certifications", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v):
        return ensure_utc(v)
