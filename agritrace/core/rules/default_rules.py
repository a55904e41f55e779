"""
Built-in rule sets for the engine's inputs.

Each function returns rule dicts for RuleEngine; ``build_rule_engines``
assembles one engine per input kind, optionally extended from YAML.
"""

from pathlib import Path
from typing import Any, Iterable

from agritrace.core.models.farmer import EMAIL_PATTERN
from agritrace.core.state_machine import STATUS_VALUES, ProductStatus
from agritrace.core.validators import parse_date

from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import RuleEngine


def _planting_not_after_harvest(value: Any, record: dict[str, Any]) -> None:
    planting, harvest = record.get("plantingDate"), record.get("harvestDate")
    if planting is None or harvest is None:
        return
    if parse_date(planting) > parse_date(harvest):
        raise ValueError(f"plantingDate {planting} is after harvestDate {harvest}")


def _initial_status(value: Any, record: dict[str, Any]) -> None:
    if value is None:
        return
    if str(value).upper() != ProductStatus.PLANTED.value:
        raise ValueError(f"a product must be created in status PLANTED, got {value}")


def _string_list(value: Any, record: dict[str, Any]) -> None:
    if value is None:
        return
    if not isinstance(value, list) or not all(isinstance(item, str) and item.strip() for item in value):
        raise ValueError("must be a list of non-empty strings")


def _single_subject(value: Any, record: dict[str, Any]) -> None:
    subjects = [record.get("subjectProductId"), record.get("subjectFarmerId")]
    if sum(1 for s in subjects if s) != 1:
        raise ValueError("exactly one of subjectProductId or subjectFarmerId must be set")


def _issued_before_expiry(value: Any, record: dict[str, Any]) -> None:
    issued, until = record.get("issuedDate"), record.get("validUntil")
    if issued is None or until is None:
        return
    if parse_date(issued) > parse_date(until):
        raise ValueError(f"issuedDate {issued} is after validUntil {until}")


def product_rules() -> list[dict[str, Any]]:
    return (
        RuleConfigBuilder()
        .add_required_field("name")
        .add_custom("name_length", "name",
                    lambda v, r: _length_between(v, 2, 100), "Invalid product name")
        .add_required_field("batchNumber")
        .add_required_field("farmerId")
        .add_location("farmLocation")
        .add_location("currentLocation")
        .add_required_field("plantingDate")
        .add_type_check("plantingDate", "date")
        .add_required_field("harvestDate")
        .add_type_check("harvestDate", "date")
        .add_custom("harvest_after_planting", "harvestDate", _planting_not_after_harvest,
                    "Planting date must not be after harvest date")
        .add_custom("initial_status", "status", _initial_status, "Invalid initial status")
        .add_custom("certifications_list", "certifications", _string_list, "Invalid certifications")
        .add_type_check("metadata", "object", coerce=False)
        .build()
    )


def farmer_rules() -> list[dict[str, Any]]:
    return (
        RuleConfigBuilder()
        .add_required_field("name")
        .add_custom("name_length", "name",
                    lambda v, r: _length_between(v, 2, 100), "Invalid farmer name")
        .add_required_field("email")
        .add_regex("email", EMAIL_PATTERN, description="a valid email address")
        .add_required_field("phone")
        .add_location("farmLocation")
        .add_custom("certifications_list", "certifications", _string_list, "Invalid certifications")
        .add_type_check("metadata", "object", coerce=False)
        .build()
    )


def step_rules(step_types: Iterable[str]) -> list[dict[str, Any]]:
    allowed = frozenset(step_types)

    def _recognized(value: Any, record: dict[str, Any]) -> None:
        if value is None:
            return
        if value in STATUS_VALUES:
            raise ValueError(f"'{value}' is a status; use a status update instead")
        if value not in allowed:
            raise ValueError(f"unknown step type '{value}'")

    return (
        RuleConfigBuilder()
        .add_required_field("stepType")
        .add_custom("stepType_vocabulary", "stepType", _recognized, "Unrecognized step type")
        .add_required_field("actor")
        .add_location("location")
        .add_required_field("description")
        .add_type_check("metadata", "object", coerce=False)
        .build()
    )


def certificate_rules() -> list[dict[str, Any]]:
    return (
        RuleConfigBuilder()
        .add_required_field("type")
        .add_required_field("issuer")
        .add_custom("single_subject", "subjectProductId", _single_subject, "Invalid certificate subject")
        .add_type_check("issuedDate", "date")
        .add_type_check("validUntil", "date")
        .add_custom("issued_before_expiry", "validUntil", _issued_before_expiry,
                    "Issue date must not be after expiry")
        .build()
    )


def _length_between(value: Any, low: int, high: int) -> None:
    if value is None:
        return
    if not isinstance(value, str) or not low <= len(value.strip()) <= high:
        raise ValueError(f"must be a string of {low} to {high} characters")


def build_rule_engines(
    step_types: Iterable[str],
    extra_rules_path: str | Path | None = None,
) -> dict[str, RuleEngine]:
    """
    Assemble the rule engine for every input kind.

    Args:
        step_types: Accepted step vocabulary
        extra_rules_path: Optional YAML file with additional rules

    Returns:
        Mapping of input kind to RuleEngine
    """
    engines = {
        "product": RuleEngine(product_rules(), subject="product"),
        "farmer": RuleEngine(farmer_rules(), subject="farmer"),
        "step": RuleEngine(step_rules(step_types), subject="step"),
        "certificate": RuleEngine(certificate_rules(), subject="certificate"),
    }

    if extra_rules_path:
        extra = RuleConfigLoader(extra_rules_path).load_all()
        for subject, rules in extra.items():
            engines[subject] = engines[subject].extend(rules)

    return engines
