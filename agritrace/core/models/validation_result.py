"""
ValidationResult model representing the outcome of validating an input (ephemeral).
"""

from typing import List

from pydantic import BaseModel, Field, field_validator


class ValidationResult(BaseModel):
    """
    Outcome of validating an engine input against a rule set (not persisted).

    Attributes:
        subject: What was validated ("product", "farmer", "step", "certificate")
        passed: Overall validation status
        passed_rules: Rules that succeeded
        failed_rules: Error-severity rules that failed
        warnings: Warning-severity rules that failed (non-blocking)
        errors: Human-readable messages for failed_rules, same order
    """

    subject: str
    passed: bool
    passed_rules: List[str] = Field(default_factory=list)
    failed_rules: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @field_validator('failed_rules')
    @classmethod
    def check_passed_consistency(cls, v, info):
        """Validate that passed=True implies failed_rules is empty."""
        if info.data.get('passed') and len(v) > 0:
            raise ValueError("passed=True but failed_rules is not empty")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "subject": "product",
                "passed": False,
                "passed_rules": ["name_required", "batchNumber_required"],
                "failed_rules": ["harvestDate_after_planting"],
                "warnings": [],
                "errors": ["[custom] harvestDate: plantingDate must not be after harvestDate"]
            }
        }
