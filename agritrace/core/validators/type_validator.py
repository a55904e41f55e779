"""
TypeValidator - validates that a field has (or can be coerced to) the expected type.
"""

from datetime import date, datetime
from typing import Any

from .base_validator import BaseValidator, ValidationError


def parse_date(value: Any) -> date:
    """
    Parse an ISO date or datetime string into a date.

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected ISO date string, got {type(value).__name__}")
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


class TypeValidator(BaseValidator):
    """
    Validates that a field matches the expected type.

    Supports optional type coercion ("23.5" -> 23.5 for float,
    "2024-01-01" -> date for date).

    Supported types: int, float, str, bool, date, dict, list
    (and aliases "integer", "decimal", "string", "boolean", "object", "array").
    """

    TYPE_MAPPING = {
        "integer": int,
        "int": int,
        "decimal": float,
        "float": float,
        "double": float,
        "string": str,
        "str": str,
        "boolean": bool,
        "bool": bool,
        "date": date,
        "object": dict,
        "dict": dict,
        "array": list,
        "list": list,
    }

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = self.parameters.get("expected_type")
        if not expected_type:
            raise ValueError("TypeValidator requires 'expected_type' parameter")

        if isinstance(expected_type, str):
            self.expected_type = self.TYPE_MAPPING.get(expected_type.lower())
            if not self.expected_type:
                raise ValueError(f"Unsupported type: {expected_type}")
        else:
            self.expected_type = expected_type

        self.coerce = self.parameters.get("coerce", True)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        # None is the required_field validator's concern
        if value is None:
            return

        # bool is an int subclass; never accept it for numeric fields
        if isinstance(value, bool) and self.expected_type in (int, float):
            raise ValidationError(
                rule_name="type_check",
                field_name=self.field_name,
                message=f"Expected {self.expected_type.__name__}, got bool"
            )

        if isinstance(value, self.expected_type):
            return

        if self.expected_type is float and isinstance(value, int):
            return

        if self.coerce:
            try:
                self._coerce_type(value)
                return
            except (ValueError, TypeError) as e:
                raise ValidationError(
                    rule_name="type_check",
                    field_name=self.field_name,
                    message=f"Cannot coerce {type(value).__name__} to {self.expected_type.__name__}: {e}"
                )
        else:
            raise ValidationError(
                rule_name="type_check",
                field_name=self.field_name,
                message=f"Expected {self.expected_type.__name__}, got {type(value).__name__}"
            )

    def _coerce_type(self, value: Any) -> Any:
        if self.expected_type is bool:
            if isinstance(value, str):
                if value.lower() in ("true", "1", "yes"):
                    return True
                elif value.lower() in ("false", "0", "no"):
                    return False
                else:
                    raise ValueError(f"Cannot parse '{value}' as boolean")
            return bool(value)

        if self.expected_type is date:
            return parse_date(value)

        if self.expected_type in (dict, list):
            raise TypeError(f"{type(value).__name__} is not a {self.expected_type.__name__}")

        return self.expected_type(value)

    @property
    def rule_type(self) -> str:
        return "type_check"
