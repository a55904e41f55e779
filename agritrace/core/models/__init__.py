"""
Core entity models for the traceability engine.

All models use Pydantic for runtime validation and camelCase ledger JSON.
"""

from .certificate import Certificate
from .farmer import Farmer
from .history import ProductHistory, StatusUpdate
from .location import Location
from .product import Product
from .supply_chain_step import StepType, SupplyChainStep
from .traceability_reference import TraceabilityReference
from .validation_result import ValidationResult

__all__ = [
    "Location",
    "Product",
    "Farmer",
    "Certificate",
    "SupplyChainStep",
    "StepType",
    "ProductHistory",
    "StatusUpdate",
    "TraceabilityReference",
    "ValidationResult",
]
