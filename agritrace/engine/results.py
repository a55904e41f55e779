"""
Result envelope for callers that want a value instead of an exception.

The HTTP layer and the CLI wrap engine calls with ``run_operation`` and
map ``error.kind`` to their own status codes.
"""

from typing import Any, Awaitable

from pydantic import BaseModel, Field

from agritrace.core.errors import TraceabilityError


class OperationError(BaseModel):
    kind: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class OperationResult(BaseModel):
    """
    Outcome of one engine operation.

    Attributes:
        success: True when the operation completed
        data: JSON-ready payload on success
        error: Error kind, message and context on failure
    """

    success: bool
    data: Any = None
    error: OperationError | None = None

    @classmethod
    def ok(cls, value: Any) -> "OperationResult":
        return cls(success=True, data=_to_data(value))

    @classmethod
    def failed(cls, error: TraceabilityError) -> "OperationResult":
        details = error.to_dict()
        return cls(
            success=False,
            error=OperationError(
                kind=details["kind"],
                message=details["message"],
                context=details["context"],
                errors=details.get("errors", []),
            ),
        )

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "data": None,
                "error": {
                    "kind": "InvalidTransition",
                    "message": "Cannot move from HARVESTED to IN_TRANSIT; "
                               "the only allowed next status is PROCESSED",
                    "context": {"product_id": "0b6c5f0e", "current_status": "HARVESTED"},
                    "errors": [],
                },
            }
        }


def _to_data(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_to_data(item) for item in value]
    if isinstance(value, bytes):
        return {"size": len(value)}
    return value


async def run_operation(operation: Awaitable[Any]) -> OperationResult:
    """
    Await an engine call and wrap its outcome.

    Only TraceabilityError is converted; anything else is a programming
    error and propagates.
    """
    try:
        value = await operation
    except TraceabilityError as e:
        return OperationResult.failed(e)
    return OperationResult.ok(value)
