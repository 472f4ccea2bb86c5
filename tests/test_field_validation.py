"""
Tests for field value validation.
"""

from monkeyscms.fields.definition import FieldDefinition
from monkeyscms.fields.validation import (FieldValidator, ValidationResult,
                                          ValidationRule)


def validate(value, **definition):
    definition.setdefault("name", "Value")
    return FieldValidator().validate(FieldDefinition(**definition), value)


class TestValidationResult:
    """Test validation results."""

    def test_success(self):
        """Test an empty result is valid."""
        result = ValidationResult.success()
        assert result.is_valid
        assert result.first_error is None

    def test_merge_removes_duplicates(self):
        """Test merged errors keep order and drop repeats."""
        merged = ValidationResult.failure(["a", "b"]).merge(ValidationResult.failure(["b", "c"]))
        assert merged.errors == ["a", "b", "c"]
        assert merged.first_error == "a"


class TestRequired:
    """Test the required rule."""

    def test_missing_value(self):
        """Test required fields reject empty values."""
        for value in (None, "", "  ", []):
            result = validate(value, name="Title", required=True)
            assert result.errors == ["Title is required"]

    def test_required_stops_other_rules(self):
        """Test only the required error is reported for a missing value."""
        result = validate("", name="Email", field_type="email", required=True)
        assert result.errors == ["Email is required"]

    def test_optional_empty_skips_rules(self):
        """Test empty optional values pass every rule."""
        assert validate("", field_type="email", validation={"min_length": 5}).is_valid


class TestTypeRules:
    """Test rules implied by the field type."""

    def test_email(self):
        """Test email format."""
        assert validate("user@example.com", field_type="email").is_valid
        assert validate("bad", name="Email", field_type="email").errors == [
            "Email must be a valid email address"
        ]

    def test_url(self):
        """Test URL scheme and host."""
        assert validate("https://example.com/page", field_type="url").is_valid
        assert validate("mailto:someone@example.com", field_type="url").is_valid
        assert validate("example.com", name="Website", field_type="url").errors == ["Website must be a valid URL"]

    def test_integer(self):
        """Test whole numbers."""
        assert validate("42", field_type="integer").is_valid
        assert validate(-3, field_type="integer").is_valid
        assert validate("4.5", name="Count", field_type="integer").errors == ["Count must be a whole number"]
        assert not validate(True, field_type="integer").is_valid

    def test_numeric(self):
        """Test decimal numbers."""
        assert validate("4.5", field_type="float").is_valid
        assert validate("abc", name="Price", field_type="decimal").errors == ["Price must be a number"]

    def test_date(self):
        """Test ISO dates."""
        assert validate("2024-01-31", field_type="date").is_valid
        assert validate("31/01/2024", name="Day", field_type="date").errors == ["Day must be a valid date"]

    def test_json(self):
        """Test JSON strings and decoded structures."""
        assert validate('{"a": 1}', field_type="json").is_valid
        assert validate({"a": 1}, field_type="json").is_valid
        assert validate("{nope", name="Data", field_type="json").errors == ["Data must be valid JSON"]

    def test_color(self):
        """Test hex colors."""
        assert validate("#A1b2C3", field_type="color").is_valid
        assert validate("red", name="Tint", field_type="color").errors == [
            "Tint must be a valid hex color (e.g., #FF0000)"
        ]

    def test_slug(self):
        """Test slugs."""
        assert validate("my-page-2", field_type="slug").is_valid
        assert validate("My Page", name="Path", field_type="slug").errors == [
            "Path must be a valid slug (lowercase letters, numbers, and hyphens)"
        ]


class TestExplicitRules:
    """Test rules configured on the field."""

    def test_length(self):
        """Test min and max length."""
        assert validate("ab", name="Code", validation={"min_length": 3}).errors == [
            "Code must be at least 3 characters"
        ]
        assert validate("abcd", name="Code", validation={"max_length": 3}).errors == [
            "Code must be at most 3 characters"
        ]

    def test_aliases(self):
        """Test alternative rule spellings."""
        assert not validate("ab", validation={"minLength": 3}).is_valid
        assert not validate("abc", validation={"regex": "^[0-9]+$"}).is_valid

    def test_range(self):
        """Test min and max values."""
        assert validate("0", name="Rating", field_type="integer", validation={"min": 1}).errors == [
            "Rating must be at least 1"
        ]
        assert validate(6, name="Rating", field_type="integer", validation={"max": 5}).errors == [
            "Rating must be at most 5"
        ]

    def test_pattern_with_delimiters(self):
        """Test /delimited/ patterns."""
        assert validate("abc123", validation={"pattern": "/^[a-z]+[0-9]+$/"}).is_valid
        assert validate("123abc", name="Ref", validation={"pattern": "/^[a-z]+$/i"}).errors == [
            "Ref format is invalid"
        ]

    def test_in(self):
        """Test allowed values from a list or option dict."""
        assert validate("b", validation={"in": ["a", "b"]}).is_valid
        assert validate("z", name="Size", validation={"in": {"s": "Small", "m": "Medium"}}).errors == [
            "Size must be one of: s, m"
        ]

    def test_settings_rules(self):
        """Test max_length from widget settings is enforced."""
        result = validate("toolong", name="Short", widget_settings={"max_length": 3})
        assert result.errors == ["Short must be at most 3 characters"]

    def test_list_values_checked_per_item(self):
        """Test rules apply to each item of a list."""
        result = validate(["ok@example.com", "bad", "also bad"], name="Emails", field_type="email", multiple=True)
        assert result.errors == ["Emails must be a valid email address"]

    def test_unknown_rule_ignored(self):
        """Test unregistered rules are skipped."""
        assert validate("x", validation={"no_such_rule": True}).is_valid


class TestFieldValidator:
    """Test the validator itself."""

    def test_custom_rule(self):
        """Test registering an additional rule."""

        class EvenRule(ValidationRule):
            name = "even"

            def check(self, value, parameter, label):
                return None if int(value) % 2 == 0 else f"{label} must be even"

        validator = FieldValidator().register_rule(EvenRule())
        definition = FieldDefinition(name="Pairs", field_type="integer", validation={"even": True})

        assert validator.has_rule("even")
        assert validator.validate(definition, "4").is_valid
        assert validator.validate(definition, "3").errors == ["Pairs must be even"]

    def test_validate_many(self):
        """Test errors are keyed by machine name for failing fields only."""
        fields = [
            FieldDefinition(name="Title", required=True),
            FieldDefinition(name="Email", field_type="email"),
            FieldDefinition(name="Notes"),
        ]
        errors = FieldValidator().validate_many(fields, {"field_email": "nope", "field_notes": "fine"})
        assert errors == {
            "field_title": ["Title is required"],
            "field_email": ["Email must be a valid email address"],
        }
