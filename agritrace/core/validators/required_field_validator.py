"""
RequiredFieldValidator - ensures a field is present and not null/empty.
"""

from typing import Any, Dict

from .base_validator import BaseValidator, ValidationError, lookup_field


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field is present and not null/empty.

    Fails if:
    - Field (or any segment of its dotted path) is missing
    - Field value is None
    - Field value is an empty or whitespace-only string (configurable)
    - Field value is an empty dict (a location with no content)
    """

    def __init__(self, field_name: str, parameters: Dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.allow_empty_string = self.parameters.get("allow_empty_string", False)

    def validate(self, value: Any, record: Dict[str, Any]) -> None:
        present, _ = lookup_field(record, self.field_name)
        if not present:
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field is missing"
            )

        if value is None:
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field value is null"
            )

        if not self.allow_empty_string and isinstance(value, str) and value.strip() == "":
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field value is empty string"
            )

        if isinstance(value, dict) and not value:
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field value is an empty object"
            )

    @property
    def rule_type(self) -> str:
        return "required_field"
