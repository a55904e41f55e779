"""
Rule configuration management.

Loads extra validation rules from YAML files and provides a builder
for assembling rule sets in code.
"""

from pathlib import Path
from typing import Any, Callable

import yaml

SUBJECTS = ("product", "farmer", "step", "certificate")


class RuleConfigLoader:
    """
    Loads validation rules from a YAML configuration file.

    Expected YAML format (one section per input kind):
    ```yaml
    rules:
      product:
        quality:
          - type: regex
            params:
              pattern: "^[A-C]$"
            severity: warning
      farmer:
        phone:
          - type: regex
            params:
              pattern: "^\\+?[0-9 \\-]{7,20}$"
    ```
    The top-level ``rules:`` key is optional.
    """

    def __init__(self, config_path: str | Path):
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_all(self) -> dict[str, list[dict[str, Any]]]:
        """
        Load and parse the rules of every section.

        Returns:
            Mapping of subject ("product", "farmer", ...) to rule dicts

        Raises:
            ValueError: If YAML is invalid or has unknown sections
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config:
            raise ValueError("Configuration file is empty")

        sections = config.get("rules", config)
        if not isinstance(sections, dict):
            raise ValueError("Rules must be a mapping of input kind to field rules")

        result: dict[str, list[dict[str, Any]]] = {}
        for subject, field_rules in sections.items():
            if subject not in SUBJECTS:
                raise ValueError(f"Unknown rule section '{subject}'. Must be one of {', '.join(SUBJECTS)}")
            result[subject] = self._parse_section(subject, field_rules or {})
        return result

    def load_rules(self, subject: str) -> list[dict[str, Any]]:
        """Rules of a single section (empty if the section is absent)."""
        return self.load_all().get(subject, [])

    def _parse_section(self, subject: str, field_rules: dict[str, Any]) -> list[dict[str, Any]]:
        rules = []
        for field_name, field_rule_list in field_rules.items():
            if not isinstance(field_rule_list, list):
                raise ValueError(f"Rules for {subject} field '{field_name}' must be a list")

            for idx, rule_def in enumerate(field_rule_list):
                rules.append(self._parse_rule(field_name, rule_def, idx))
        return rules

    def _parse_rule(self, field_name: str, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        if "type" not in rule_def:
            raise ValueError(f"Rule for field '{field_name}' is missing 'type'")

        rule_type = rule_def["type"]
        if rule_type == "custom":
            raise ValueError(f"Rule for field '{field_name}': custom rules cannot be declared in YAML")

        rule_name = rule_def.get("name", f"{field_name}_{rule_type}_{idx}")
        parameters = rule_def.get("params", rule_def.get("parameters", {}))

        severity = rule_def.get("severity", "error")
        if severity not in ("error", "warning"):
            raise ValueError(f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'")

        return {
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "severity": severity,
            "enabled": rule_def.get("enabled", True),
        }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations.
    """

    def __init__(self):
        self.rules: list[dict[str, Any]] = []

    def _add(self, rule_name: str, rule_type: str, field_name: str,
             parameters: dict[str, Any], severity: str = "error") -> "RuleConfigBuilder":
        self.rules.append({
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "severity": severity,
            "enabled": True,
        })
        return self

    def add_required_field(self, field_name: str, allow_empty_string: bool = False) -> "RuleConfigBuilder":
        return self._add(f"{field_name}_required", "required_field", field_name,
                         {"allow_empty_string": allow_empty_string})

    def add_type_check(self, field_name: str, expected_type: str, coerce: bool = True) -> "RuleConfigBuilder":
        return self._add(f"{field_name}_type_check", "type_check", field_name,
                         {"expected_type": expected_type, "coerce": coerce})

    def add_range(
        self,
        field_name: str,
        min_value: float | None = None,
        max_value: float | None = None
    ) -> "RuleConfigBuilder":
        params = {}
        if min_value is not None:
            params["min"] = min_value
        if max_value is not None:
            params["max"] = max_value
        return self._add(f"{field_name}_range", "range", field_name, params)

    def add_regex(self, field_name: str, pattern: str, description: str | None = None) -> "RuleConfigBuilder":
        params: dict[str, Any] = {"pattern": pattern}
        if description:
            params["description"] = description
        return self._add(f"{field_name}_regex", "regex", field_name, params)

    def add_custom(
        self,
        rule_name: str,
        field_name: str,
        func: Callable[[Any, dict[str, Any]], None],
        error_message: str = "Custom validation failed",
    ) -> "RuleConfigBuilder":
        return self._add(rule_name, "custom", field_name,
                         {"validator_func": func, "error_message": error_message})

    def add_location(self, field_name: str, require_address: bool = True) -> "RuleConfigBuilder":
        """Required location object with valid coordinates."""
        self.add_required_field(field_name)
        self.add_type_check(field_name, "object", coerce=False)
        self.add_required_field(f"{field_name}.latitude")
        self.add_range(f"{field_name}.latitude", min_value=-90.0, max_value=90.0)
        self.add_required_field(f"{field_name}.longitude")
        self.add_range(f"{field_name}.longitude", min_value=-180.0, max_value=180.0)
        if require_address:
            self.add_required_field(f"{field_name}.address")
        return self

    def build(self) -> list[dict[str, Any]]:
        return self.rules
