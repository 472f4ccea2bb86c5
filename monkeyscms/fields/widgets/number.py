"""
Numeric widgets: number, decimal and range.
"""

from ..html import Html
from ..validation import ValidationResult
from ..values import is_empty
from .base import BaseWidget

CURRENCIES = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "MXN": "$",
}


def _to_number(field, value):
    if value is None or value == "":
        return None
    try:
        if field.field_type == "integer":
            return int(float(value))
        return float(value)
    except (TypeError, ValueError):
        return value


class NumberWidget(BaseWidget):
    id = "number"
    label = "Number"
    category = "Number"
    icon = "#"
    priority = 100
    supported_types = ["integer", "float", "decimal"]
    settings_schema = {
        "min": {"type": "number", "label": "Minimum Value"},
        "max": {"type": "number", "label": "Maximum Value"},
        "step": {"type": "number", "label": "Step"},
        "prefix": {"type": "string", "label": "Prefix"},
        "suffix": {"type": "string", "label": "Suffix"},
        "decimals": {"type": "integer", "label": "Decimal Places"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        step = settings.get("step") or (1 if field.field_type == "integer" else "any")
        element = (
            Html.input("number")
            .attrs(self.common_attributes(field, context))
            .attr("min", settings.get("min"))
            .attr("max", settings.get("max"))
            .attr("step", step)
            .value(value)
        )
        return self.input_group(element, settings.get_string("prefix"), settings.get_string("suffix"))

    def prepare_value(self, field, value):
        return _to_number(field, value)

    def validate(self, field, value):
        number = _to_number(field, value)
        if number is None or isinstance(number, str):
            return ValidationResult.success()

        settings = self.get_settings(field)
        errors = []
        if settings.has("min") and number < settings.get_float("min"):
            errors.append(f"Value must be at least {settings.get('min')}")
        if settings.has("max") and number > settings.get_float("max"):
            errors.append(f"Value must be at most {settings.get('max')}")
        return ValidationResult.failure(errors)

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        decimals = self.get_settings(field).get_int("decimals", 0 if field.field_type == "integer" else 2)
        return self.display("number", self.format_number(value, decimals))


class DecimalWidget(BaseWidget):
    id = "decimal"
    label = "Decimal / Currency"
    category = "Number"
    icon = "\U0001F4B2"
    priority = 110
    supported_types = ["decimal", "float"]
    settings_schema = {
        "decimals": {"type": "integer", "label": "Decimal Places", "default": 2},
        "min": {"type": "number", "label": "Minimum Value"},
        "max": {"type": "number", "label": "Maximum Value"},
        "currency": {"type": "string", "label": "Currency", "options": list(CURRENCIES)},
        "prefix": {"type": "string", "label": "Prefix (if no currency)"},
        "suffix": {"type": "string", "label": "Suffix"},
    }

    def _prefix(self, settings):
        currency = settings.get_string("currency")
        if currency:
            return CURRENCIES.get(currency, currency)
        return settings.get_string("prefix")

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        decimals = settings.get_int("decimals", 2)
        step = "1" if decimals <= 0 else "0." + "0" * (decimals - 1) + "1"
        element = (
            Html.input("number")
            .attrs(self.common_attributes(field, context))
            .attr("step", step)
            .attr("min", settings.get("min"))
            .attr("max", settings.get("max"))
            .value(value)
        )
        return self.input_group(element, self._prefix(settings), settings.get_string("suffix"))

    def prepare_value(self, field, value):
        if value is None or value == "":
            return None
        try:
            return round(float(value), self.get_settings(field).get_int("decimals", 2))
        except (TypeError, ValueError):
            return value

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        settings = self.get_settings(field)
        formatted = self.format_number(value, settings.get_int("decimals", 2))
        return self.display("decimal", f"{self._prefix(settings)}{formatted}{settings.get_string('suffix')}")


class RangeWidget(BaseWidget):
    id = "range"
    label = "Range Slider"
    category = "Number"
    icon = "\U0001F39A"
    priority = 80
    supported_types = ["integer", "float", "decimal"]
    settings_schema = {
        "min": {"type": "number", "label": "Minimum", "default": 0},
        "max": {"type": "number", "label": "Maximum", "default": 100},
        "step": {"type": "number", "label": "Step", "default": 1},
        "show_value": {"type": "boolean", "label": "Show Value", "default": True},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        current = settings.get("min") if value is None or value == "" else value
        wrapper = Html.div().class_("field-range")
        wrapper.child(
            Html.input("range")
            .attrs(self.common_attributes(field, context))
            .attr("min", settings.get("min"))
            .attr("max", settings.get("max"))
            .attr("step", settings.get("step"))
            .value(current)
        )
        if settings.get_bool("show_value", True):
            wrapper.child(
                Html.element("output")
                .class_("field-range__value")
                .id(self.field_id(field, context) + "_output")
                .text(current)
            )
        return wrapper

    def init_script(self, field, element_id):
        if not self.get_settings(field).get_bool("show_value", True):
            return None
        return f"CmsRange.init('{element_id}');"

    def prepare_value(self, field, value):
        return _to_number(field, value)
