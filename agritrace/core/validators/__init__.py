"""
Input validation rule implementations.

Provides validators for required fields, type checking, numeric ranges,
regex patterns and cross-field custom logic.
"""

from .base_validator import BaseValidator, ValidationError, lookup_field
from .custom_validator import CustomValidator
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator, parse_date

__all__ = [
    "BaseValidator",
    "ValidationError",
    "lookup_field",
    "parse_date",
    "RequiredFieldValidator",
    "TypeValidator",
    "RangeValidator",
    "RegexValidator",
    "CustomValidator",
]
