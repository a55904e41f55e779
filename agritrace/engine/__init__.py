"""
Traceability engine, projection layer and result envelope.
"""

from .projection import build_history, chronological, derive_status
from .reference import HISTORY_PATH, derive_traceability_reference, encode_reference
from .results import OperationResult, run_operation
from .retry import RetryPolicy, retry_read
from .traceability import TraceabilityEngine

__all__ = [
    "TraceabilityEngine",
    "build_history",
    "chronological",
    "derive_status",
    "HISTORY_PATH",
    "derive_traceability_reference",
    "encode_reference",
    "OperationResult",
    "run_operation",
    "RetryPolicy",
    "retry_read",
]
