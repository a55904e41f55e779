"""
Rule engine for validating engine inputs.

The rule engine instantiates validators from rule configurations,
applies them to a plain input dict and produces a ValidationResult.
"""

from typing import Any

from agritrace.core.models import ValidationResult
from agritrace.core.validators import (
    BaseValidator,
    CustomValidator,
    RangeValidator,
    RegexValidator,
    RequiredFieldValidator,
    TypeValidator,
    ValidationError,
    lookup_field,
)
from agritrace.observability.logger import get_logger

logger = get_logger(__name__)


class RuleEngine:
    """
    Orchestrates validation rules for one kind of input.

    Rules are applied in order; every rule runs so that the caller gets
    all failures at once rather than only the first.
    """

    VALIDATOR_REGISTRY = {
        "required_field": RequiredFieldValidator,
        "type_check": TypeValidator,
        "range": RangeValidator,
        "regex": RegexValidator,
        "custom": CustomValidator,
    }

    def __init__(self, rules: list[dict[str, Any]], subject: str = "input"):
        """
        Initialize the rule engine with validation rules.

        Args:
            rules: List of rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (required_field, type_check, range, regex, custom)
                   - field_name: str (dotted paths allowed)
                   - parameters: Dict[str, Any] (optional)
                   - severity: str (error or warning)
                   - enabled: bool (default True)
            subject: Name of the validated input kind, used in results and logs
        """
        self.rules = rules
        self.subject = subject
        self.validators: list[tuple[str, str, BaseValidator]] = []
        self._build_validators()

    def _build_validators(self) -> None:
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]
            field_name = rule["field_name"]
            parameters = rule.get("parameters", {})
            severity = rule.get("severity", "error")

            validator_class = self.VALIDATOR_REGISTRY.get(rule_type)
            if not validator_class:
                raise ValueError(f"Unknown rule type: {rule_type}")

            try:
                validator = validator_class(field_name, parameters)
            except ValueError as e:
                raise ValueError(f"Failed to create validator for rule '{rule_name}': {e}") from e
            self.validators.append((rule_name, severity, validator))

    def extend(self, rules: list[dict[str, Any]]) -> "RuleEngine":
        """Return a new engine with ``rules`` appended to this one's."""
        return RuleEngine(self.rules + list(rules), subject=self.subject)

    def validate(self, payload: dict[str, Any]) -> ValidationResult:
        """
        Validate an input dict against all rules.

        Args:
            payload: The input to validate

        Returns:
            ValidationResult containing pass/fail status and messages
        """
        passed_rules = []
        failed_rules = []
        warnings = []
        errors = []

        for rule_name, severity, validator in self.validators:
            _, value = lookup_field(payload, validator.field_name)

            try:
                validator.validate(value, payload)
                passed_rules.append(rule_name)

            except ValidationError as e:
                if severity == "error":
                    failed_rules.append(rule_name)
                    errors.append(str(e))
                else:
                    warnings.append(rule_name)
                    logger.warning(
                        f"Validation warning on {self.subject}: {e}",
                        extra={"subject": self.subject, "rule_name": rule_name},
                    )

        return ValidationResult(
            subject=self.subject,
            passed=len(failed_rules) == 0,
            passed_rules=passed_rules,
            failed_rules=failed_rules,
            warnings=warnings,
            errors=errors,
        )

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts and types
        """
        return {
            "subject": self.subject,
            "total_rules": len(self.validators),
            "rules_by_type": self._count_by_type(),
            "rules_by_severity": self._count_by_severity(),
        }

    def _count_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for _, _, validator in self.validators:
            rule_type = validator.rule_type
            counts[rule_type] = counts.get(rule_type, 0) + 1
        return counts

    def _count_by_severity(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for _, severity, _ in self.validators:
            counts[severity] = counts.get(severity, 0) + 1
        return counts
