# =============================================================================
# ADAPTIVE AUTH - VALIDATION PACKAGE
# =============================================================================
# File: validation/__init__.py
# Description: Generic rule-based validator and custom rule registry
# =============================================================================

from adaptive_auth.validation.rules import (
    ADULT,
    BUILTIN_RULES,
    STRONG_PASSWORD,
    RuleRegistry,
    RuleDefinition,
    is_empty,
)
from adaptive_auth.validation.validator import (
    DEFAULT_MESSAGES,
    IssueLevel,
    ValidationIssue,
    Validator,
    parse_rules,
)

__all__ = [
    "ADULT",
    "BUILTIN_RULES",
    "STRONG_PASSWORD",
    "RuleRegistry",
    "RuleDefinition",
    "is_empty",
    "DEFAULT_MESSAGES",
    "IssueLevel",
    "ValidationIssue",
    "Validator",
    "parse_rules",
]
