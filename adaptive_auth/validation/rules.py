# =============================================================================
# ADAPTIVE AUTH - VALIDATION RULES
# =============================================================================
# File: validation/rules.py
# Description: Built-in field rules, declarative custom rules and the
#              registry that persists them as JSON
# =============================================================================

from typing import Any, Callable, Dict, Iterator, List, Optional, Union
from datetime import datetime
from pathlib import Path
import json
import logging
import re

from email_validator import EmailNotValidError, validate_email
from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

RulePredicate = Callable[[Any, Optional[str]], bool]

PHONE_PATTERN = re.compile(r"^(\+33|0)[1-9](\d{8})$|^\+\d{1,3}\d{4,14}$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_url_adapter = TypeAdapter(AnyUrl)


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections count as "no value"."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


# =============================================================================
# BUILT-IN RULES
# =============================================================================
# Every rule except ``required`` accepts an empty value; combine with
# ``required`` to demand one.

def rule_required(value: Any, param: Optional[str] = None) -> bool:
    return not is_empty(value)


def rule_email(value: Any, param: Optional[str] = None) -> bool:
    try:
        validate_email(str(value), check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def rule_tel(value: Any, param: Optional[str] = None) -> bool:
    compact = re.sub(r"[ .\-]", "", str(value))
    return bool(PHONE_PATTERN.match(compact))


def rule_url(value: Any, param: Optional[str] = None) -> bool:
    try:
        _url_adapter.validate_python(str(value))
        return True
    except PydanticValidationError:
        return False


def rule_numeric(value: Any, param: Optional[str] = None) -> bool:
    return _as_number(value) is not None


def rule_integer(value: Any, param: Optional[str] = None) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return bool(INTEGER_PATTERN.match(str(value).strip()))


def _measure(value: Any) -> Optional[float]:
    if isinstance(value, str):
        return float(len(value))
    if isinstance(value, (list, tuple, dict, set)):
        return float(len(value))
    return _as_number(value)


def rule_min(value: Any, param: Optional[str] = None) -> bool:
    measured = _measure(value)
    return measured is not None and measured >= float(param or 0)


def rule_max(value: Any, param: Optional[str] = None) -> bool:
    measured = _measure(value)
    return measured is not None and measured <= float(param or 0)


def _compile_pattern(param: str) -> "re.Pattern[str]":
    # Accept "/pattern/flags" as well as a bare pattern.
    match = re.match(r"^/(.*)/([imsx]*)$", param, re.DOTALL)
    if not match:
        return re.compile(param)
    flags = 0
    for letter in match.group(2):
        flags |= {"i": re.IGNORECASE, "m": re.MULTILINE,
                  "s": re.DOTALL, "x": re.VERBOSE}[letter]
    return re.compile(match.group(1), flags)


def rule_regex(value: Any, param: Optional[str] = None) -> bool:
    if not param:
        return False
    return bool(_compile_pattern(param).search(str(value)))


def rule_date(value: Any, param: Optional[str] = None) -> bool:
    fmt = param or "%Y-%m-%d"
    try:
        parsed = datetime.strptime(str(value), fmt)
    except ValueError:
        return False
    return parsed.strftime(fmt) == str(value)


def rule_alpha(value: Any, param: Optional[str] = None) -> bool:
    return isinstance(value, str) and value.isalpha()


def rule_alphanumeric(value: Any, param: Optional[str] = None) -> bool:
    return isinstance(value, str) and value.isalnum()


BUILTIN_RULES: Dict[str, RulePredicate] = {
    "required": rule_required,
    "email": rule_email,
    "tel": rule_tel,
    "url": rule_url,
    "numeric": rule_numeric,
    "integer": rule_integer,
    "min": rule_min,
    "max": rule_max,
    "regex": rule_regex,
    "date": rule_date,
    "alpha": rule_alpha,
    "alphanumeric": rule_alphanumeric,
}


# =============================================================================
# DECLARATIVE CUSTOM RULES
# =============================================================================

class RuleDefinition(BaseModel):
    """
    A custom rule described by data, so it can be saved and reloaded.

    All declared constraints must hold. Empty values pass unless
    ``required`` is set.

    Example:
        RuleDefinition(name="strong_password", min_length=8,
                       patterns=["[A-Z]", "[a-z]", "[0-9]"])
    """
    name: str
    patterns: List[str] = Field(default_factory=list)
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    choices: Optional[List[Any]] = None
    required: bool = False
    message: Optional[str] = None

    def check(self, value: Any, param: Optional[str] = None) -> bool:
        if is_empty(value):
            return not self.required
        text = str(value)
        if self.min_length is not None and len(text) < self.min_length:
            return False
        if self.max_length is not None and len(text) > self.max_length:
            return False
        if self.min_value is not None or self.max_value is not None:
            number = _as_number(value)
            if number is None:
                return False
            if self.min_value is not None and number < self.min_value:
                return False
            if self.max_value is not None and number > self.max_value:
                return False
        if self.choices is not None and value not in self.choices:
            return False
        return all(_compile_pattern(p).search(text) for p in self.patterns)


STRONG_PASSWORD = RuleDefinition(
    name="strong_password",
    min_length=8,
    patterns=["[A-Z]", "[a-z]", "[0-9]"],
    message="The {field} field must have 8 characters with upper case, lower case and a digit.",
)

ADULT = RuleDefinition(
    name="adult",
    min_value=18,
    required=True,
    message="The {field} field must be at least 18.",
)


class RuleRegistry:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    CUSTOM RULE REGISTRY                                  │
    │  Name → predicate table owned by one validator (or shared explicitly)   │
    └─────────────────────────────────────────────────────────────────────────┘

    Declarative ``RuleDefinition`` rules round-trip through a JSON file; plain
    callables registered in code live only in memory and are skipped by
    ``save()``.
    """

    def __init__(self, rules_file: Optional[Union[str, Path]] = None):
        self._predicates: Dict[str, RulePredicate] = {}
        self._definitions: Dict[str, RuleDefinition] = {}
        self.rules_file = Path(rules_file) if rules_file else None

    @classmethod
    def with_defaults(cls, rules_file: Optional[Union[str, Path]] = None) -> "RuleRegistry":
        registry = cls(rules_file)
        registry.register_definition(STRONG_PASSWORD)
        registry.register_definition(ADULT)
        return registry

    def register(self, name: str, predicate: RulePredicate) -> None:
        if not callable(predicate):
            raise TypeError(f"Rule '{name}' must be callable")
        self._predicates[name] = predicate
        self._definitions.pop(name, None)

    def register_definition(self, definition: RuleDefinition) -> None:
        self._predicates[definition.name] = definition.check
        self._definitions[definition.name] = definition

    def get(self, name: str) -> Optional[RulePredicate]:
        return self._predicates.get(name)

    def message_for(self, name: str) -> Optional[str]:
        definition = self._definitions.get(name)
        return definition.message if definition else None

    def names(self) -> List[str]:
        return list(self._predicates)

    def __contains__(self, name: object) -> bool:
        return name in self._predicates

    def __iter__(self) -> Iterator[str]:
        return iter(self._predicates)

    # -------------------------------------------------------------------------
    # PERSISTENCE
    # -------------------------------------------------------------------------

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write declarative rules to ``path`` (or ``rules_file``)."""
        target = Path(path) if path else self.rules_file
        if target is None:
            raise ValueError("No rules file configured")
        payload = {"rules": [d.model_dump(exclude_none=True) for d in self._definitions.values()]}
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return target

    def load(self, path: Optional[Union[str, Path]] = None) -> List[str]:
        """
        Register every valid rule of a JSON rules file.

        Returns:
            List[str]: Names of the rules that could not be loaded
        """
        source = Path(path) if path else self.rules_file
        if source is None or not source.is_file():
            return []
        try:
            payload = json.loads(source.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Rules file {source} is not valid JSON: {e}")
            return [str(source)]

        rejected = []
        for entry in payload.get("rules", []):
            try:
                self.register_definition(RuleDefinition(**entry))
            except (PydanticValidationError, TypeError):
                name = entry.get("name", "?") if isinstance(entry, dict) else "?"
                logger.warning(f"Ignoring invalid rule '{name}' in {source}")
                rejected.append(name)
        return rejected
