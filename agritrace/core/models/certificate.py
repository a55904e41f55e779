"""
Certificate model: quality/organic certification anchored in the content store.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import Field, model_validator

from .base import TraceModel, utc_now


class Certificate(TraceModel):
    """
    A certification issued for exactly one product or one farmer.

    The certificate document itself lives in the content store; the
    ledger only records its content hash.

    Attributes:
        id: Engine-generated unique identifier
        type: Certification scheme ("ORGANIC", "FAIR_TRADE", ...)
        issuer: Issuing body
        subject_product_id: Certified product (exclusive with subject_farmer_id)
        subject_farmer_id: Certified farmer (exclusive with subject_product_id)
        issued_date: Date of issue
        valid_until: Expiry date, not before issued_date
        payload_hash: Content hash of the certificate document
        metadata_hash: Content hash of the document's metadata record
        status: VALID, REVOKED or EXPIRED
    """

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    issuer: str = Field(..., min_length=1)
    subject_product_id: str | None = None
    subject_farmer_id: str | None = None
    issued_date: date | None = None
    valid_until: date | None = None
    payload_hash: str | None = None
    metadata_hash: str | None = None
    status: Literal["VALID", "REVOKED", "EXPIRED"] = "VALID"
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_subject_and_dates(self):
        if (self.subject_product_id is None) == (self.subject_farmer_id is None):
            raise ValueError("exactly one of subjectProductId or subjectFarmerId must be set")
        if self.issued_date and self.valid_until and self.issued_date > self.valid_until:
            raise ValueError("issuedDate must not be after validUntil")
        return self
