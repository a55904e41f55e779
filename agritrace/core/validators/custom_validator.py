"""
CustomValidator - validates using a Python callable (cross-field rules).
"""

from typing import Any

from .base_validator import BaseValidator, ValidationError


class CustomValidator(BaseValidator):
    """
    Validates using a custom validation function.

    Parameters:
    - validator_func: Callable taking (value, record); returns None on
      success, raises ValueError/TypeError on failure
    - error_message: Optional prefix for the failure message

    Used for rules that span fields, e.g. plantingDate <= harvestDate.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.validator_func = self.parameters.get("validator_func")
        if not self.validator_func:
            raise ValueError("CustomValidator requires 'validator_func' parameter")

        if not callable(self.validator_func):
            raise ValueError("validator_func must be callable")

        self.error_message = self.parameters.get("error_message", "Custom validation failed")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        try:
            self.validator_func(value, record)
        except (ValueError, TypeError) as e:
            raise ValidationError(
                rule_name="custom",
                field_name=self.field_name,
                message=f"{self.error_message}: {e}"
            )

    @property
    def rule_type(self) -> str:
        return "custom"
