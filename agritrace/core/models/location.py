"""
Location model: a geocoordinate pair plus a free-text address.
"""

from pydantic import Field

from .base import TraceModel


class Location(TraceModel):
    """
    Geographical position of a farm, product or supply chain step.

    Attributes:
        latitude: Degrees, -90..90
        longitude: Degrees, -180..180
        address: Free-text address (may be empty on ledger-generated steps)
    """

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    address: str = ""

    class Config:
        json_schema_extra = {
            "example": {
                "latitude": 23.0225,
                "longitude": 72.5714,
                "address": "Village Road 4, Ahmedabad, Gujarat"
            }
        }
