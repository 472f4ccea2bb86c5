"""
Date and time widgets.

Dates are exchanged as ``YYYY-MM-DD``, date-times are shown in
``datetime-local`` format and stored as ``YYYY-MM-DD HH:MM:SS``, and
times are shown as ``HH:MM`` and stored with seconds.
"""

import json
from datetime import date

from ..html import Html
from ..validation import ValidationResult
from ..values import DateTransformer, is_empty
from .base import BaseWidget

PICKER_CSS = ["https://cdn.jsdelivr.net/npm/flatpickr/dist/flatpickr.min.css", "/css/fields/date.css"]
PICKER_JS = ["https://cdn.jsdelivr.net/npm/flatpickr", "/js/fields/date.js"]


class DateWidget(BaseWidget):
    id = "date"
    label = "Date Picker"
    category = "Date/Time"
    icon = "\U0001F4C5"
    priority = 100
    supported_types = ["date"]
    css_files = PICKER_CSS
    js_files = PICKER_JS
    settings_schema = {
        "min_date": {"type": "string", "label": "Minimum Date (YYYY-MM-DD)"},
        "max_date": {"type": "string", "label": "Maximum Date (YYYY-MM-DD)"},
        "display_format": {"type": "string", "label": "Display Format", "default": "%B %d, %Y"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        element = (
            Html.input("date")
            .id(field_id)
            .name(self.field_name(field, context))
            .class_("field-date__input")
            .attr("min", settings.get_string("min_date") or None)
            .attr("max", settings.get_string("max_date") or None)
            .required(field.required)
            .disabled(context.disabled)
            .value(value)
        )
        return (
            Html.div()
            .class_("field-date")
            .data("field-id", field_id)
            .child(Html.div().class_("field-date__input-wrapper").child(element))
        )

    def init_script(self, field, element_id):
        settings = self.get_settings(field)
        options = {}
        if settings.get_string("min_date"):
            options["minDate"] = settings.get_string("min_date")
        if settings.get_string("max_date"):
            options["maxDate"] = settings.get_string("max_date")
        return f"CmsDate.init('{element_id}', {json.dumps(options)});"

    def format_value(self, field, value):
        return "" if is_empty(value) else self.format_date(value, "%Y-%m-%d")

    def prepare_value(self, field, value):
        return None if is_empty(value) else self.format_date(value, "%Y-%m-%d")

    def validate(self, field, value):
        if is_empty(value):
            return ValidationResult.success()
        if isinstance(value, date):
            parsed = DateTransformer.parse(value)
        else:
            try:
                parsed = date.fromisoformat(str(value).strip())
            except ValueError:
                return ValidationResult.failure("Please enter a valid date")

        settings = self.get_settings(field)
        min_date = DateTransformer.parse(settings.get_string("min_date"))
        if min_date and parsed < min_date:
            return ValidationResult.failure(f"Date must be on or after {min_date.isoformat()}")
        max_date = DateTransformer.parse(settings.get_string("max_date"))
        if max_date and parsed > max_date:
            return ValidationResult.failure(f"Date must be on or before {max_date.isoformat()}")
        return ValidationResult.success()

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        display_format = self.get_settings(field).get_string("display_format")
        return self.display("date", self.format_date(value, display_format))


class DateTimeWidget(BaseWidget):
    id = "datetime"
    label = "Date & Time"
    category = "Date/Time"
    icon = "\U0001F552"
    priority = 100
    supported_types = ["datetime"]
    settings_schema = {
        "min_datetime": {"type": "string", "label": "Minimum Date/Time"},
        "max_datetime": {"type": "string", "label": "Maximum Date/Time"},
        "step": {"type": "integer", "label": "Step (seconds)"},
        "display_format": {"type": "string", "label": "Display Format", "default": "%B %d, %Y %I:%M %p"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        return (
            Html.input("datetime-local")
            .attrs(self.common_attributes(field, context))
            .attr("min", settings.get_string("min_datetime") or None)
            .attr("max", settings.get_string("max_datetime") or None)
            .attr("step", settings.get_int("step") or None)
            .value(value)
        )

    def format_value(self, field, value):
        return "" if is_empty(value) else self.format_date(value, "%Y-%m-%dT%H:%M")

    def prepare_value(self, field, value):
        return None if is_empty(value) else self.format_date(value, "%Y-%m-%d %H:%M:%S")

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        display_format = self.get_settings(field).get_string("display_format")
        return self.display("datetime", self.format_date(value, display_format))


class TimeWidget(BaseWidget):
    id = "time"
    label = "Time Picker"
    category = "Date/Time"
    icon = "⏰"
    priority = 100
    supported_types = ["time"]
    css_files = PICKER_CSS
    js_files = PICKER_JS
    settings_schema = {
        "step": {"type": "integer", "label": "Step (seconds)"},
        "display_format": {"type": "string", "label": "Display Format", "default": "%I:%M %p"},
    }

    def build_input(self, field, value, context):
        field_id = self.field_id(field, context)
        element = (
            Html.input("time")
            .id(field_id)
            .name(self.field_name(field, context))
            .class_("field-time__input")
            .attr("step", self.get_settings(field).get_int("step") or None)
            .required(field.required)
            .disabled(context.disabled)
            .value(value)
        )
        return (
            Html.div()
            .class_("field-time")
            .data("field-id", field_id)
            .child(Html.div().class_("field-time__input-wrapper").child(element))
        )

    def init_script(self, field, element_id):
        options = {"enableTime": True, "noCalendar": True, "dateFormat": "H:i"}
        return f"CmsDate.init('{element_id}', {json.dumps(options)});"

    def format_value(self, field, value):
        return "" if is_empty(value) else self.format_date(value, "%H:%M")

    def prepare_value(self, field, value):
        return None if is_empty(value) else self.format_date(value, "%H:%M:%S")

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        display_format = self.get_settings(field).get_string("display_format")
        return self.display("time", self.format_date(value, display_format))
