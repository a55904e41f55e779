"""
TraceabilityReference model: the compact payload encoded into a QR code.
"""

import json

from .base import TraceModel


class TraceabilityReference(TraceModel):
    """
    Lookup reference printed on packaging so a viewer can fetch the full history.

    Attributes:
        product_id: Product identifier
        batch_number: Producer batch number
        farmer_id: Producing farmer
        name: Product name
        history_url: Absolute URL of the product's history
    """

    product_id: str
    batch_number: str
    farmer_id: str
    name: str
    history_url: str

    class Config:
        frozen = True

    def to_qr_payload(self) -> str:
        """Canonical compact JSON (sorted keys) for QR encoding."""
        return json.dumps(self.to_ledger_dict(), sort_keys=True, separators=(",", ":"))
