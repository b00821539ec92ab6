# =============================================================================
# ADAPTIVE AUTH - GENERIC VALIDATOR
# =============================================================================
# File: validation/validator.py
# Description: Rule-based validation of arbitrary field/value mappings
#              Leveled, timestamped issues with overridable messages
# =============================================================================

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from datetime import datetime, timezone
from enum import Enum
import logging

from pydantic import BaseModel, Field

from adaptive_auth.validation.rules import (
    BUILTIN_RULES,
    RulePredicate,
    RuleRegistry,
    is_empty,
    rule_numeric,
)

logger = logging.getLogger(__name__)

RuleList = Union[str, Iterable[str]]


class IssueLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ValidationIssue(BaseModel):
    """One problem recorded against a field."""
    level: IssueLevel
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


DEFAULT_MESSAGES: Dict[str, str] = {
    "required": "The {field} field is required.",
    "email": "The {field} field must be a valid email address.",
    "tel": "The {field} field must be a valid phone number.",
    "url": "The {field} field must be a valid URL.",
    "numeric": "The {field} field must be a number.",
    "integer": "The {field} field must be an integer.",
    "min": "The {field} field must be at least {param}.",
    "max": "The {field} field must not exceed {param}.",
    "regex": "The {field} field format is invalid.",
    "date": "The {field} field must be a valid date ({param}).",
    "alpha": "The {field} field may only contain letters.",
    "alphanumeric": "The {field} field may only contain letters and digits.",
}

GENERIC_MESSAGE = "Validation error for the {field} field."


def parse_rules(rules: RuleList) -> List[Tuple[str, Optional[str]]]:
    """
    Split a rule expression into ``(name, param)`` pairs.

    ``"required|min:5"`` gives ``[("required", None), ("min", "5")]``.
    Patterns containing ``|`` must be passed as a list.
    """
    items = rules.split("|") if isinstance(rules, str) else list(rules)
    parsed = []
    for item in items:
        item = item.strip()
        if not item:
            continue
        name, sep, param = item.partition(":")
        parsed.append((name.strip(), param if sep else None))
    return parsed


class Validator:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    GENERIC DATA VALIDATOR                                │
    │  Field → rule expression, evaluated against a data mapping              │
    │  Custom rules resolved through an instance-owned RuleRegistry           │
    └─────────────────────────────────────────────────────────────────────────┘

    Example:
        validator = Validator({"email": "a@b.io", "age": "17"})
        validator.validate({"email": "required|email", "age": "adult"})
        validator.first_message("age")
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        rules: Optional[Mapping[str, RuleList]] = None,
        messages: Optional[Mapping[str, str]] = None,
        registry: Optional[RuleRegistry] = None,
    ):
        self._data: Dict[str, Any] = dict(data or {})
        self._rules: Dict[str, RuleList] = dict(rules or {})
        self._messages: Dict[str, str] = dict(messages or {})
        self.registry = registry if registry is not None else RuleRegistry.with_defaults()
        self._errors: Dict[str, List[ValidationIssue]] = {}

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def set_data(self, data: Mapping[str, Any]) -> "Validator":
        self._data = dict(data)
        return self

    def set_rules(self, rules: Mapping[str, RuleList]) -> "Validator":
        self._rules = dict(rules)
        return self

    def set_messages(self, messages: Mapping[str, str]) -> "Validator":
        """Override messages keyed by ``"rule"`` or ``"field.rule"``."""
        self._messages.update(messages)
        return self

    def add_rule(self, name: str, predicate: RulePredicate) -> "Validator":
        self.registry.register(name, predicate)
        return self

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, rules: Optional[Mapping[str, RuleList]] = None) -> bool:
        """
        Check every field against its rules.

        A field stops at its first failing rule. Previous issues are
        cleared first.

        Returns:
            bool: True when no error-level issue was recorded
        """
        if rules is not None:
            self._rules = dict(rules)
        self.clear_errors()

        for field, expression in self._rules.items():
            value = self._data.get(field)
            for name, param in parse_rules(expression):
                if not self._apply(field, name, param, value):
                    break
        return not self.failed()

    def combine_rules(self, field: str, rules: RuleList) -> bool:
        """Evaluate all ``rules`` on one field without stopping at a failure."""
        value = self._data.get(field)
        results = [self._apply(field, name, param, value) for name, param in parse_rules(rules)]
        return all(results)

    def detect_rules(self) -> Dict[str, str]:
        """
        Guess rules from field names and values.

        email → email, tel/phone → tel, url/website → url, date → date,
        numeric values → numeric, anything else → required.
        """
        detected: Dict[str, str] = {}
        for field, value in self._data.items():
            lowered = field.lower()
            if "email" in lowered:
                detected[field] = "email"
            elif "tel" in lowered or "phone" in lowered:
                detected[field] = "tel"
            elif "url" in lowered or "website" in lowered:
                detected[field] = "url"
            elif "date" in lowered:
                detected[field] = "date"
            elif not is_empty(value) and rule_numeric(value):
                detected[field] = "numeric"
            else:
                detected[field] = "required"
        self._rules.update(detected)
        return detected

    def _apply(self, field: str, name: str, param: Optional[str], value: Any) -> bool:
        custom = self.registry.get(name)
        if custom is not None:
            passed = bool(custom(value, param))
        elif name in BUILTIN_RULES:
            if name != "required" and is_empty(value):
                return True
            try:
                passed = BUILTIN_RULES[name](value, param)
            except (TypeError, ValueError) as e:
                logger.debug(f"Rule '{name}' raised on field '{field}': {e}")
                passed = False
        else:
            self.add_error(field, IssueLevel.WARNING, f"Unknown rule: {name}")
            return False

        if not passed:
            self.add_error(field, IssueLevel.ERROR, self._message(field, name, param))
        return passed

    def _message(self, field: str, rule: str, param: Optional[str]) -> str:
        template = (
            self._messages.get(f"{field}.{rule}")
            or self._messages.get(rule)
            or self.registry.message_for(rule)
            or DEFAULT_MESSAGES.get(rule)
            or GENERIC_MESSAGE
        )
        return template.replace("{field}", field).replace("{param}", param or "")

    # =========================================================================
    # ISSUES
    # =========================================================================

    def add_error(self, field: str, level: Union[IssueLevel, str], message: str) -> None:
        self._errors.setdefault(field, []).append(
            ValidationIssue(level=IssueLevel(level), message=message)
        )

    def errors(self) -> Dict[str, List[ValidationIssue]]:
        return {field: list(issues) for field, issues in self._errors.items()}

    def field_errors(self, field: str) -> List[ValidationIssue]:
        return list(self._errors.get(field, []))

    def first_message(self, field: str) -> Optional[str]:
        issues = self._errors.get(field)
        return issues[0].message if issues else None

    def all_messages(self) -> Dict[str, List[str]]:
        return {
            field: [issue.message for issue in issues]
            for field, issues in self._errors.items()
        }

    def failed(self) -> bool:
        """True when any issue above info level was recorded."""
        return any(
            issue.level != IssueLevel.INFO
            for issues in self._errors.values()
            for issue in issues
        )

    def clear_errors(self) -> None:
        self._errors = {}
