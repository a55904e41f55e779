"""
Shared pydantic base for entity models.

Entities are stored on the ledger as camelCase JSON; Python code uses
snake_case attribute names. Both spellings are accepted on input.
"""

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes coming back from the ledger as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TraceModel(BaseModel):
    """Base model with camelCase aliases and ledger JSON helpers."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_ledger_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_ledger_json(self) -> str:
        return json.dumps(self.to_ledger_dict(), separators=(",", ":"))
