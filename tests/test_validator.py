# =============================================================================
# ADAPTIVE AUTH - VALIDATOR TESTS
# =============================================================================
# File: tests/test_validator.py
# Description: Built-in rules, custom rules, messages and rule persistence
# =============================================================================

import json

import pytest

from adaptive_auth.validation import (
    BUILTIN_RULES,
    IssueLevel,
    RuleRegistry,
    RuleDefinition,
    Validator,
    is_empty,
    parse_rules,
)


class TestBuiltinRules:
    """Individual rule predicates."""

    @pytest.mark.parametrize("rule, value, param, expected", [
        ("email", "alice@mail.org", None, True),
        ("email", "alice@", None, False),
        ("tel", "06 12 34 56 78", None, True),
        ("tel", "+33612345678", None, True),
        ("tel", "12", None, False),
        ("url", "https://exemple.fr/page", None, True),
        ("url", "not a url", None, False),
        ("numeric", "3.14", None, True),
        ("numeric", "abc", None, False),
        ("integer", "-42", None, True),
        ("integer", "4.2", None, False),
        ("min", "abc", "5", False),
        ("min", 7, "5", True),
        ("max", "abcdef", "5", False),
        ("regex", "AB-12", r"/^[a-z]{2}-\d+$/i", True),
        ("regex", "AB12", r"^[A-Z]{2}-\d+$", False),
        ("date", "2024-02-29", None, True),
        ("date", "2024-02-30", None, False),
        ("date", "2024-2-3", None, False),
        ("date", "01/05/2024", "%d/%m/%Y", True),
        ("alpha", "Eloise", None, True),
        ("alpha", "Eloise2", None, False),
        ("alphanumeric", "Eloise2", None, True),
    ])
    def test_rule(self, rule, value, param, expected):
        assert BUILTIN_RULES[rule](value, param) is expected

    @pytest.mark.parametrize("value, expected", [
        (None, True), ("", True), ("   ", True), ([], True),
        ("0", False), (0, False), (False, False),
    ])
    def test_is_empty(self, value, expected):
        assert is_empty(value) is expected

    def test_parse_rules(self):
        assert parse_rules("required|min:5|date:%d/%m/%Y") == [
            ("required", None), ("min", "5"), ("date", "%d/%m/%Y"),
        ]
        assert parse_rules(["regex:^(a|b)$"]) == [("regex", "^(a|b)$")]


class TestValidator:
    """Test suite for Validator."""

    def test_valid_data(self):
        validator = Validator(
            {"email": "alice@mail.org", "age": "30"},
            {"email": "required|email", "age": "required|integer|min:1"},
        )

        assert validator.validate() is True
        assert validator.errors() == {}

    def test_stops_at_first_failure(self):
        validator = Validator({"nom": ""}, {"nom": "required|min:3"})

        assert validator.validate() is False
        assert validator.all_messages() == {"nom": ["The nom field is required."]}

    def test_combine_rules_reports_everything(self):
        validator = Validator({"code": "a!"})

        assert validator.combine_rules("code", "alphanumeric|min:3") is False
        assert len(validator.field_errors("code")) == 2

    def test_empty_values_skip_format_rules(self):
        validator = Validator({"site": ""}, {"site": "url"})

        assert validator.validate() is True

    def test_zero_string_satisfies_required(self):
        assert Validator({"qty": "0"}, {"qty": "required"}).validate() is True

    def test_unknown_rule_is_a_warning(self):
        validator = Validator({"x": "1"}, {"x": "frobnicate"})

        assert validator.validate() is False
        issue = validator.field_errors("x")[0]
        assert issue.level is IssueLevel.WARNING
        assert issue.message == "Unknown rule: frobnicate"

    def test_message_overrides(self):
        validator = Validator({"a": "", "b": ""}, {"a": "required", "b": "required"})
        validator.set_messages({"required": "Missing {field}", "b.required": "B please"})

        validator.validate()

        assert validator.first_message("a") == "Missing a"
        assert validator.first_message("b") == "B please"

    def test_param_in_default_message(self):
        validator = Validator({"nom": "ab"}, {"nom": "min:3"})
        validator.validate()

        assert validator.first_message("nom") == "The nom field must be at least 3."

    def test_validate_clears_previous_issues(self):
        validator = Validator({"nom": ""}, {"nom": "required"})
        validator.validate()

        validator.set_data({"nom": "Alice"})

        assert validator.validate() is True
        assert validator.first_message("nom") is None

    def test_info_issues_do_not_fail(self):
        validator = Validator()
        validator.add_error("nom", "info", "Trimmed whitespace")

        assert validator.failed() is False

    def test_detect_rules(self):
        validator = Validator({
            "email": "alice@mail.org",
            "telephone": "0612345678",
            "website": "https://a.fr",
            "birth_date": "2000-01-01",
            "age": "42",
            "nom": "",
        })

        detected = validator.detect_rules()

        assert detected == {
            "email": "email", "telephone": "tel", "website": "url",
            "birth_date": "date", "age": "numeric", "nom": "required",
        }
        assert validator.validate() is False
        assert list(validator.errors()) == ["nom"]


class TestCustomRules:
    """Registry-backed rules."""

    def test_strong_password_and_adult_are_registered(self):
        validator = Validator(
            {"pwd": "weakpass", "age": "17"},
            {"pwd": "strong_password", "age": "adult"},
        )

        assert validator.validate() is False
        assert "upper case" in validator.first_message("pwd")
        assert validator.first_message("age") == "The age field must be at least 18."

        validator.set_data({"pwd": "Str0ngPass", "age": "18"})
        assert validator.validate() is True

    def test_adult_requires_a_value(self):
        assert Validator({"age": ""}, {"age": "adult"}).validate() is False

    def test_callable_rule_receives_param(self):
        validator = Validator({"color": "teal"})
        validator.add_rule("one_of", lambda value, param: value in (param or "").split(","))

        assert validator.validate({"color": "one_of:red,teal"}) is True
        assert validator.validate({"color": "one_of:red,blue"}) is False
        assert validator.first_message("color") == "Validation error for the color field."

    def test_registry_rejects_non_callable(self):
        with pytest.raises(TypeError):
            RuleRegistry().register("bad", "not callable")

    def test_registries_are_independent(self):
        first = Validator()
        first.add_rule("always", lambda value, param: True)

        assert "always" in first.registry
        assert "always" not in Validator().registry

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "rules" / "custom.json"
        registry = RuleRegistry(path)
        registry.register_definition(RuleDefinition(name="postcode", patterns=[r"^\d{5}$"],
                                                     message="Bad postcode"))
        registry.register("in_memory_only", lambda value, param: True)

        registry.save()
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert [rule["name"] for rule in saved["rules"]] == ["postcode"]

        reloaded = RuleRegistry()
        assert reloaded.load(path) == []
        validator = Validator({"cp": "7500"}, {"cp": "postcode"}, registry=reloaded)
        assert validator.validate() is False
        assert validator.first_message("cp") == "Bad postcode"

    def test_load_reports_invalid_entries(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [
            {"name": "ok", "min_length": 2},
            {"name": "broken", "min_length": "many"},
        ]}), encoding="utf-8")
        registry = RuleRegistry()

        assert registry.load(path) == ["broken"]
        assert "ok" in registry

    def test_load_missing_file(self, tmp_path):
        assert RuleRegistry().load(tmp_path / "absent.json") == []

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            RuleRegistry().save()
