"""
Tests for field types, field definitions and value transformers.
"""

from datetime import date, datetime

import pytest

from monkeyscms.fields.definition import UNLIMITED, FieldDefinition
from monkeyscms.fields.types import FieldType
from monkeyscms.fields.values import (BooleanTransformer, DateTimeTransformer,
                                      DateTransformer, FloatTransformer,
                                      IntegerTransformer, JsonTransformer,
                                      StringTransformer, TransformerChain,
                                      is_empty, to_bool, transformer_for)


class TestFieldType:
    """Test field type metadata."""

    def test_every_type_has_label_and_widget(self):
        """Test no type is missing a label, default widget or storage column."""
        for field_type in FieldType:
            assert field_type.label
            assert field_type.default_widget
            assert field_type.storage_column.startswith("value_")

    def test_grouped_covers_every_type_once(self):
        """Test the category groups partition the types."""
        grouped = FieldType.grouped()
        flattened = [field_type for types in grouped.values() for field_type in types]

        assert list(grouped) == ["Text", "Number", "Date/Time", "Selection", "Media", "Reference", "Special"]
        assert sorted(flattened) == sorted(FieldType)
        assert len(flattened) == len(set(flattened))

    def test_category(self):
        """Test category lookup."""
        assert FieldType.MARKDOWN.category == "Text"
        assert FieldType.BOOLEAN.category == "Selection"
        assert FieldType.GEOLOCATION.category == "Special"

    def test_supports_multiple(self):
        """Test only collection types hold several values by nature."""
        assert FieldType.GALLERY.supports_multiple
        assert FieldType.CHECKBOX.supports_multiple
        assert not FieldType.STRING.supports_multiple

    def test_choices(self):
        """Test choices map values to labels."""
        choices = FieldType.choices()
        assert choices["boolean"] == "Boolean (Yes/No)"
        assert len(choices) == len(FieldType)

    def test_default_widgets(self):
        """Test a few well known defaults."""
        assert FieldType.STRING.default_widget == "text_input"
        assert FieldType.BOOLEAN.default_widget == "switch"
        assert FieldType.LINK.default_widget == "link_field"


class TestFieldDefinition:
    """Test field definition normalization."""

    def test_machine_name_derived_with_prefix(self):
        """Test the machine name is built from the name with the field_ prefix."""
        definition = FieldDefinition(name="Hero Image", field_type="image")
        assert definition.machine_name == "field_hero_image"
        assert definition.label == "Hero Image"

    def test_explicit_machine_name_gets_prefix(self):
        """Test explicit machine names are normalized too."""
        assert FieldDefinition(name="Body", machine_name="body").machine_name == "field_body"
        assert FieldDefinition(name="Body", machine_name="field_body").machine_name == "field_body"

    def test_enum_type_is_stored_as_value(self):
        """Test FieldType members are stored as their string value."""
        definition = FieldDefinition(name="Count", field_type=FieldType.INTEGER)
        assert definition.field_type == "integer"
        assert definition.type_enum is FieldType.INTEGER

    def test_unknown_type_has_no_enum(self):
        """Test widget-only types like repeater have no FieldType."""
        assert FieldDefinition(name="Items", field_type="repeater").type_enum is None

    def test_empty_name_rejected(self):
        """Test a name is required."""
        with pytest.raises(ValueError):
            FieldDefinition(name="")

    def test_invalid_cardinality_rejected(self):
        """Test zero and values below -1 are rejected."""
        with pytest.raises(ValueError):
            FieldDefinition(name="Tags", cardinality=0)
        with pytest.raises(ValueError):
            FieldDefinition(name="Tags", cardinality=-2)

    def test_multiple_with_single_cardinality_is_unlimited(self):
        """Test multiple fields left at cardinality 1 accept any number of values."""
        definition = FieldDefinition(name="Tags", multiple=True)
        assert definition.cardinality == UNLIMITED
        assert definition.is_multi_valued

    def test_validation_rules_implied_by_type(self):
        """Test required and type rules are merged into the explicit ones."""
        definition = FieldDefinition(name="Contact", field_type="email", required=True, validation={"max_length": 80})
        assert definition.get_validation_rules() == {"max_length": 80, "required": True, "email": True}

    def test_options_from_list(self):
        """Test list options become value/label pairs."""
        definition = FieldDefinition(name="Size", field_type="select", settings={"options": ["S", "M"]})
        assert definition.get_options() == {"S": "S", "M": "M"}

    def test_widget_settings_override_settings(self):
        """Test widget settings win over field settings."""
        definition = FieldDefinition(
            name="Title",
            settings={"placeholder": "Field", "max_length": 10},
            widget_settings={"placeholder": "Widget"},
        )
        assert definition.get_setting("placeholder") == "Widget"
        assert definition.get_setting("max_length") == 10
        assert definition.get_setting("missing", "x") == "x"

    def test_cast_and_serialize_multi_values(self):
        """Test multi-valued fields cast every item."""
        definition = FieldDefinition(name="Scores", field_type="integer", multiple=True)
        assert definition.cast_value(["1", "2"]) == [1, 2]
        assert definition.serialize_value([1, 2]) == ["1", "2"]
        assert definition.cast_value(None) is None

    def test_from_dict_aliases(self):
        """Test type, label and default aliases."""
        definition = FieldDefinition.from_dict({"label": "Color", "type": "color", "default": "#FF0000"})
        assert definition.name == "Color"
        assert definition.field_type == "color"
        assert definition.default_value == "#FF0000"

    def test_to_dict_round_trip(self):
        """Test a definition survives to_dict/from_dict."""
        definition = FieldDefinition(
            name="Rating", field_type="integer", required=True, settings={"min": 1, "max": 5}, weight=3
        )
        restored = FieldDefinition.from_dict(definition.to_dict())
        assert restored.to_dict() == definition.to_dict()


class TestEmptiness:
    """Test empty value detection and boolean coercion."""

    def test_is_empty(self):
        """Test None, blank strings and empty containers are empty."""
        for value in (None, "", "   ", [], {}, ()):
            assert is_empty(value)
        for value in (0, False, "0", [None]):
            assert not is_empty(value)

    def test_to_bool(self):
        """Test form spellings of true."""
        assert to_bool("on")
        assert to_bool("Yes")
        assert to_bool(1)
        assert not to_bool("0")
        assert not to_bool("off")


class TestTransformers:
    """Test value transformers."""

    def test_string_trims_and_truncates(self):
        """Test trimming, truncation and blank-to-None."""
        transformer = StringTransformer(max_length=5)
        assert transformer.to_storage("  hello world ") == "hello"
        assert transformer.to_storage("   ") is None
        assert transformer.to_form(None) == ""

    def test_integer(self):
        """Test integer parsing."""
        transformer = IntegerTransformer()
        assert transformer.to_storage("42") == 42
        assert transformer.to_storage("4.7") == 4
        assert transformer.to_storage("abc") is None
        assert transformer.to_form(None) == ""

    def test_float_with_decimals(self):
        """Test rounding to the configured decimals."""
        transformer = FloatTransformer(decimals=2)
        assert transformer.to_storage("3.14159") == 3.14
        assert transformer.to_form(2) == "2.00"

    def test_boolean_labels(self):
        """Test boolean display labels."""
        transformer = BooleanTransformer(true_label="On", false_label="Off")
        assert transformer.to_storage("1") is True
        assert transformer.to_form(False) == "0"
        assert transformer.to_display("yes") == "On"
        assert transformer.to_display("") == "Off"

    def test_date(self):
        """Test dates are exchanged as ISO strings."""
        transformer = DateTransformer()
        assert transformer.to_storage("2024-03-05") == date(2024, 3, 5)
        assert transformer.to_storage(datetime(2024, 3, 5, 10, 30)) == date(2024, 3, 5)
        assert transformer.to_form(date(2024, 3, 5)) == "2024-03-05"
        assert transformer.to_display("2024-03-05") == "Mar 05, 2024"
        assert transformer.to_storage("not a date") is None

    def test_datetime_drops_timezone(self):
        """Test stored date-times are naive."""
        transformer = DateTimeTransformer()
        stored = transformer.to_storage("2024-03-05T10:30:00Z")
        assert stored == datetime(2024, 3, 5, 10, 30)
        assert stored.tzinfo is None
        assert transformer.to_form(stored) == "2024-03-05T10:30"

    def test_json(self):
        """Test JSON decoding and pretty printing."""
        transformer = JsonTransformer()
        assert transformer.to_storage('{"a": 1}') == {"a": 1}
        assert transformer.to_storage("{broken") is None
        assert transformer.to_form({"a": 1}) == '{\n  "a": 1\n}'
        assert transformer.to_display([1, 2]) == "[1, 2]"

    def test_chain_order(self):
        """Test storage runs back to front through the chain."""
        chain = TransformerChain(IntegerTransformer(), StringTransformer())
        assert chain.to_storage(" 7 ") == 7
        assert chain.to_display(7) == "7"

    def test_transformer_for(self):
        """Test the transformer chosen per field type."""
        assert isinstance(transformer_for("taxonomy_reference"), IntegerTransformer)
        assert isinstance(transformer_for("link"), JsonTransformer)
        assert isinstance(transformer_for("boolean"), BooleanTransformer)
        assert transformer_for("decimal").to_storage("1.239") == 1.24
        assert transformer_for("float", {"decimals": 1}).to_storage("1.26") == 1.3
        assert transformer_for("code").to_storage("  x = 1\n") == "  x = 1\n"
        assert transformer_for("string", {"max_length": 3}).to_storage("abcdef") == "abc"
