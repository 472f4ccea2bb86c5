"""
Selection widgets: select, checkbox, checkboxes, radio and switch.
"""

from ..html import Html
from ..values import is_empty, to_bool
from .base import BaseWidget


def _as_list(value):
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _checked(value):
    # Hidden "0" input plus a checked box submit both values
    if isinstance(value, (list, tuple)):
        return any(to_bool(item) for item in value)
    return to_bool(value)


def _labels(options, values):
    return [str(options.get(str(value), value)) for value in values]


class SelectWidget(BaseWidget):
    id = "select"
    label = "Select"
    category = "Selection"
    icon = "▼"
    priority = 100
    supported_types = ["select", "string", "integer", "entity_reference", "taxonomy_reference"]
    supports_multiple = True
    settings_schema = {
        "empty_option": {"type": "string", "label": "Empty Option Text", "default": "- Select -"},
        "searchable": {"type": "boolean", "label": "Searchable", "default": False},
        "options": {"type": "json", "label": "Options (JSON)"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        selected = {str(v) for v in _as_list(value)}

        select = (
            Html.select()
            .attrs(self.common_attributes(field, context))
            .attr("multiple", field.multiple)
            .data("searchable", "true" if settings.get_bool("searchable") else None)
        )
        empty_option = settings.get_string("empty_option", "- Select -")
        if empty_option and not field.multiple:
            select.child(Html.option("", empty_option))

        for option_value, option_label in self.get_options(field).items():
            # {"label": ..., "options": {...}} renders as an optgroup
            if isinstance(option_label, dict) and "options" in option_label:
                group = Html.element("optgroup").attr("label", option_label.get("label", option_value))
                for group_value, group_label in option_label["options"].items():
                    group.child(Html.option(group_value, group_label, str(group_value) in selected))
                select.child(group)
            else:
                select.child(Html.option(option_value, option_label, str(option_value) in selected))
        return select

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        options = self._flat_options(field)
        return self.display("select", ", ".join(_labels(options, _as_list(value))))

    def _flat_options(self, field):
        flat = {}
        for option_value, option_label in self.get_options(field).items():
            if isinstance(option_label, dict) and "options" in option_label:
                flat.update({str(k): v for k, v in option_label["options"].items()})
            else:
                flat[str(option_value)] = option_label
        return flat


class CheckboxWidget(BaseWidget):
    id = "checkbox"
    label = "Checkbox"
    category = "Selection"
    icon = "☑"
    priority = 100
    supported_types = ["boolean", "checkbox"]
    css_files = ["/css/fields/checkboxes.css"]
    settings_schema = {
        "checkbox_label": {"type": "string", "label": "Checkbox Label"},
    }

    def build_input(self, field, value, context):
        name = self.field_name(field, context)
        checkbox_label = self.get_settings(field).get_string("checkbox_label", field.name)
        checkbox = (
            Html.input("checkbox")
            .id(self.field_id(field, context))
            .name(name)
            .value("1")
            .class_("field-checkbox__input")
            .attr("checked", _checked(value))
            .disabled(context.disabled)
        )
        # The hidden input submits "0" when the box is unchecked
        return (
            Html.div()
            .class_("field-checkbox")
            .child(Html.hidden(name, "0"))
            .child(
                Html.label()
                .child(checkbox)
                .child(Html.span().class_("field-checkbox__mark"))
                .child(Html.span().class_("field-checkbox__label").text(checkbox_label))
            )
        )

    def prepare_value(self, field, value):
        return _checked(value)

    def render_display(self, field, value, context):
        checked = _checked(value)
        return self.display("checked" if checked else "unchecked", "✓" if checked else "✗")


class CheckboxesWidget(BaseWidget):
    id = "checkboxes"
    label = "Checkboxes"
    category = "Selection"
    icon = "☑"
    priority = 100
    supported_types = ["checkbox", "multiselect"]
    supports_multiple = True
    css_files = ["/css/fields/checkboxes.css"]
    js_files = ["/js/fields/checkboxes.js"]
    settings_schema = {
        "layout": {"type": "string", "label": "Layout", "options": ["vertical", "grid"], "default": "vertical"},
        "select_all": {"type": "boolean", "label": "Show Select All / Deselect All", "default": False},
        "options": {"type": "json", "label": "Options"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        name = self.base_name(field, context) + "[]"
        selected = {str(v) for v in _as_list(value)}

        wrapper = Html.div().id(f"{field_id}_wrapper")
        if settings.get_bool("select_all"):
            wrapper.child(
                Html.div()
                .class_("field-checkbox-actions")
                .child(Html.button().class_("field-checkbox-action").data("action", "select-all").text("Select All"))
                .child(
                    Html.button().class_("field-checkbox-action").data("action", "deselect-all").text("Deselect All")
                )
            )

        group = Html.div().class_("field-checkbox-group", f"field-checkbox-group--{settings.get_string('layout')}")
        for index, (option_value, option_label) in enumerate(self.get_options(field).items()):
            group.child(
                Html.label()
                .class_("field-checkbox")
                .child(
                    Html.input("checkbox")
                    .id(f"{field_id}_{index}")
                    .name(name)
                    .value(option_value)
                    .class_("field-checkbox__input")
                    .attr("checked", str(option_value) in selected)
                    .disabled(context.disabled)
                )
                .child(Html.span().class_("field-checkbox__mark"))
                .child(Html.span().class_("field-checkbox__label").text(option_label))
            )
        return wrapper.child(group)

    def init_script(self, field, element_id):
        return f"CmsCheckboxes.init('{element_id}_wrapper');"

    def prepare_value(self, field, value):
        return [item for item in _as_list(value) if not is_empty(item)]

    def render_display(self, field, value, context):
        values = _as_list(value)
        if not values:
            return self.empty_display()
        return self.display("checkboxes", ", ".join(_labels(self.get_options(field), values)))


class RadioWidget(BaseWidget):
    id = "radio"
    label = "Radio Buttons"
    category = "Selection"
    icon = "◉"
    priority = 90
    supported_types = ["radio", "select", "string", "integer", "boolean"]
    settings_schema = {
        "layout": {"type": "string", "label": "Layout", "options": ["vertical", "horizontal"], "default": "vertical"},
        "options": {"type": "json", "label": "Options (JSON)"},
    }

    def build_input(self, field, value, context):
        field_id = self.field_id(field, context)
        name = self.field_name(field, context)
        layout = self.get_settings(field).get_string("layout")

        group = Html.div().class_("field-radio-group", f"field-radio-group--{layout}")
        for index, (option_value, option_label) in enumerate(self.get_options(field).items()):
            group.child(
                Html.label()
                .class_("field-radio")
                .child(
                    Html.input("radio")
                    .id(f"{field_id}_{index}")
                    .name(name)
                    .value(option_value)
                    .attr("checked", value is not None and str(value) == str(option_value))
                    .disabled(context.disabled)
                )
                .child(Html.span().class_("field-radio__mark"))
                .child(Html.span().class_("field-radio__label").text(option_label))
            )
        return group

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        return self.display("radio", _labels(self.get_options(field), [value])[0])


class SwitchWidget(BaseWidget):
    id = "switch"
    label = "Toggle Switch"
    category = "Selection"
    icon = "⏻"
    priority = 110
    supported_types = ["boolean"]
    settings_schema = {
        "on_label": {"type": "string", "label": "On Label", "default": "On"},
        "off_label": {"type": "string", "label": "Off Label", "default": "Off"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        name = self.field_name(field, context)
        return (
            Html.label()
            .class_("field-switch")
            .child(Html.hidden(name, "0"))
            .child(
                Html.input("checkbox")
                .id(self.field_id(field, context))
                .name(name)
                .value("1")
                .attr("checked", _checked(value))
                .disabled(context.disabled)
            )
            .child(Html.span().class_("field-switch__track").child(Html.span().class_("field-switch__thumb")))
            .child(
                Html.span()
                .class_("field-switch__labels")
                .child(Html.span().class_("field-switch__on").text(settings.get_string("on_label")))
                .child(Html.span().class_("field-switch__off").text(settings.get_string("off_label")))
            )
        )

    def prepare_value(self, field, value):
        return _checked(value)

    def render_display(self, field, value, context):
        settings = self.get_settings(field)
        on = _checked(value)
        element = (
            Html.span()
            .class_("field-display", "field-display--switch", "field-display--on" if on else "field-display--off")
            .text(settings.get_string("on_label") if on else settings.get_string("off_label"))
        )
        return self.result(element)
