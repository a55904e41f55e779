"""
Validation rule engine, built-in rule sets and configuration management.
"""

from .default_rules import build_rule_engines
from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import RuleEngine

__all__ = [
    "RuleEngine",
    "RuleConfigLoader",
    "RuleConfigBuilder",
    "build_rule_engines",
]
