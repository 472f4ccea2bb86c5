"""
Field value validation.

Rules are small objects keyed by name. ``FieldValidator`` applies the
``required`` rule first, skips everything else for empty values, and then
runs type rules, the field's own rules and rules derived from settings.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from .values import DateTimeTransformer, is_empty

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z0-9-]{2,}$")
COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
INTEGER_PATTERN = re.compile(r"^-?\d+$")


@dataclass
class ValidationResult:
    """Outcome of validating one value."""

    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, errors: Union[str, Iterable[str]]) -> "ValidationResult":
        if isinstance(errors, str):
            return cls([errors])
        return cls(list(errors))

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(_unique(self.errors + other.errors))


def _unique(messages: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for message in messages:
        seen.setdefault(message, None)
    return list(seen)


# ==================== RULES ====================


class ValidationRule(ABC):
    """A named check applied to a single value."""

    name: str = ""
    # Rules applied to each item of a list value instead of the list itself
    per_item: bool = True

    @abstractmethod
    def check(self, value: Any, parameter: Any, label: str) -> Optional[str]:
        """Return an error message, or None when the value passes."""

    def validate(self, value: Any, parameter: Any, label: str) -> ValidationResult:
        if self.per_item and isinstance(value, (list, tuple)):
            errors = [self.check(item, parameter, label) for item in value if not is_empty(item)]
            return ValidationResult.failure(_unique(e for e in errors if e))
        error = self.check(value, parameter, label)
        return ValidationResult.failure(error) if error else ValidationResult.success()


class RequiredRule(ValidationRule):
    name = "required"
    per_item = False

    def check(self, value, parameter, label):
        if parameter and is_empty(value):
            return f"{label} is required"
        return None


class MinLengthRule(ValidationRule):
    name = "min_length"

    def check(self, value, parameter, label):
        if isinstance(value, str) and len(value) < int(parameter):
            return f"{label} must be at least {parameter} characters"
        return None


class MaxLengthRule(ValidationRule):
    name = "max_length"

    def check(self, value, parameter, label):
        if isinstance(value, str) and len(value) > int(parameter):
            return f"{label} must be at most {parameter} characters"
        return None


class MinValueRule(ValidationRule):
    name = "min"

    def check(self, value, parameter, label):
        number = _as_number(value)
        if number is not None and number < float(parameter):
            return f"{label} must be at least {parameter}"
        return None


class MaxValueRule(ValidationRule):
    name = "max"

    def check(self, value, parameter, label):
        number = _as_number(value)
        if number is not None and number > float(parameter):
            return f"{label} must be at most {parameter}"
        return None


class PatternRule(ValidationRule):
    name = "pattern"

    def check(self, value, parameter, label):
        pattern = str(parameter)
        # Accept delimited patterns like /^abc$/
        if len(pattern) > 1 and pattern.startswith("/") and pattern.rstrip("imsux").endswith("/"):
            pattern = pattern[1 : pattern.rstrip("imsux").rfind("/")]
        if isinstance(value, str) and re.search(pattern, value) is None:
            return f"{label} format is invalid"
        return None


class EmailRule(ValidationRule):
    name = "email"

    def check(self, value, parameter, label):
        if not EMAIL_PATTERN.match(str(value)):
            return f"{label} must be a valid email address"
        return None


class UrlRule(ValidationRule):
    name = "url"

    def check(self, value, parameter, label):
        parsed = urlparse(str(value))
        if parsed.scheme not in ("http", "https", "ftp", "mailto") or not (
            parsed.netloc or parsed.scheme == "mailto"
        ):
            return f"{label} must be a valid URL"
        return None


class IntegerRule(ValidationRule):
    name = "integer"

    def check(self, value, parameter, label):
        if isinstance(value, bool):
            return f"{label} must be a whole number"
        if isinstance(value, int):
            return None
        if isinstance(value, float) and value.is_integer():
            return None
        if not INTEGER_PATTERN.match(str(value).strip()):
            return f"{label} must be a whole number"
        return None


class NumericRule(ValidationRule):
    name = "numeric"

    def check(self, value, parameter, label):
        if _as_number(value) is None:
            return f"{label} must be a number"
        return None


class InArrayRule(ValidationRule):
    name = "in"

    def check(self, value, parameter, label):
        allowed = [str(option) for option in (parameter.keys() if isinstance(parameter, dict) else parameter)]
        if str(value) not in allowed:
            return f"{label} must be one of: {', '.join(allowed)}"
        return None


class DateRule(ValidationRule):
    name = "date"

    def check(self, value, parameter, label):
        if isinstance(value, (date, datetime)):
            return None
        if DateTimeTransformer.parse(value) is None:
            return f"{label} must be a valid date"
        return None


class JsonRule(ValidationRule):
    name = "json"
    per_item = False

    def check(self, value, parameter, label):
        if isinstance(value, (dict, list)):
            return None
        try:
            json.loads(str(value))
        except ValueError:
            return f"{label} must be valid JSON"
        return None


class ColorRule(ValidationRule):
    name = "color"

    def check(self, value, parameter, label):
        if not COLOR_PATTERN.match(str(value)):
            return f"{label} must be a valid hex color (e.g., #FF0000)"
        return None


class SlugRule(ValidationRule):
    name = "slug"

    def check(self, value, parameter, label):
        if not SLUG_PATTERN.match(str(value)):
            return f"{label} must be a valid slug (lowercase letters, numbers, and hyphens)"
        return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


# Accepted spellings of rule names in stored validation settings
RULE_ALIASES = {
    "minLength": "min_length",
    "maxLength": "max_length",
    "minlength": "min_length",
    "maxlength": "max_length",
    "regex": "pattern",
    "options": "in",
}

TYPE_RULES: Dict[str, Dict[str, Any]] = {
    "email": {"email": True},
    "url": {"url": True},
    "integer": {"integer": True},
    "float": {"numeric": True},
    "decimal": {"numeric": True},
    "date": {"date": True},
    "datetime": {"date": True},
    "json": {"json": True},
    "color": {"color": True},
    "slug": {"slug": True},
}

SETTING_RULES = ("max_length", "min_length", "max", "min", "pattern")


class FieldValidator:
    """Validates field values against registered rules."""

    def __init__(self):
        self._rules: Dict[str, ValidationRule] = {}
        self.register_rules(
            [
                RequiredRule(),
                MinLengthRule(),
                MaxLengthRule(),
                MinValueRule(),
                MaxValueRule(),
                PatternRule(),
                EmailRule(),
                UrlRule(),
                IntegerRule(),
                NumericRule(),
                InArrayRule(),
                DateRule(),
                JsonRule(),
                ColorRule(),
                SlugRule(),
            ]
        )

    def register_rule(self, rule: ValidationRule) -> "FieldValidator":
        self._rules[rule.name] = rule
        return self

    def register_rules(self, rules: Iterable[ValidationRule]) -> "FieldValidator":
        for rule in rules:
            self.register_rule(rule)
        return self

    def get_rule(self, name: str) -> Optional[ValidationRule]:
        return self._rules.get(RULE_ALIASES.get(name, name))

    def has_rule(self, name: str) -> bool:
        return self.get_rule(name) is not None

    def _apply(self, name: str, parameter: Any, value: Any, label: str) -> List[str]:
        rule = self.get_rule(name)
        if rule is None or parameter is None or parameter is False:
            return []
        return rule.validate(value, parameter, label).errors

    def validate(self, field_def, value: Any) -> ValidationResult:
        """
        Validate one value for a field.

        Args:
            field_def: FieldDefinition being validated
            value: Submitted or prepared value

        Returns:
            ValidationResult with every error found
        """
        label = field_def.label

        if field_def.required:
            errors = self._apply("required", True, value, label)
            if errors:
                return ValidationResult.failure(errors)

        if is_empty(value):
            return ValidationResult.success()

        errors: List[str] = []
        for name, parameter in TYPE_RULES.get(field_def.field_type, {}).items():
            errors.extend(self._apply(name, parameter, value, label))

        for name, parameter in field_def.validation.items():
            if RULE_ALIASES.get(name, name) == "required":
                continue
            errors.extend(self._apply(name, parameter, value, label))

        settings = field_def.widget_settings_merged()
        for name in SETTING_RULES:
            parameter = settings.get(name)
            if parameter is None or parameter == "":
                continue
            errors.extend(self._apply(name, parameter, value, label))

        return ValidationResult.failure(_unique(errors))

    def validate_many(self, fields: Iterable[Any], values: Dict[str, Any]) -> Dict[str, List[str]]:
        """
        Validate several fields.

        Returns:
            Errors keyed by machine name, only for fields that failed
        """
        all_errors: Dict[str, List[str]] = {}
        for field_def in fields:
            result = self.validate(field_def, values.get(field_def.machine_name))
            if not result.is_valid:
                all_errors[field_def.machine_name] = result.errors
        return all_errors
