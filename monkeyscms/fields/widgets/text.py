"""
Text input widgets: plain text, textarea, email, URL, phone, password,
slug, color and hidden.
"""

import json
import re

from ..html import Html
from ..rendering import RenderResult
from ..validation import COLOR_PATTERN
from ..values import is_empty
from .base import BaseWidget


class TextInputWidget(BaseWidget):
    id = "text_input"
    label = "Text Input"
    category = "Text"
    priority = 100
    supported_types = ["string", "text"]
    settings_schema = {
        "placeholder": {"type": "string", "label": "Placeholder"},
        "prefix": {"type": "string", "label": "Prefix"},
        "suffix": {"type": "string", "label": "Suffix"},
        "max_length": {"type": "integer", "label": "Max Length"},
        "min_length": {"type": "integer", "label": "Min Length"},
        "pattern": {"type": "string", "label": "Regex Pattern"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        element = Html.input("text").attrs(self.common_attributes(field, context)).value(value)
        element.attr("maxlength", settings.get_int("max_length") or None)
        element.attr("minlength", settings.get_int("min_length") or None)
        element.attr("pattern", settings.get_string("pattern") or None)
        return self.input_group(element, settings.get_string("prefix"), settings.get_string("suffix"))


class TextareaWidget(BaseWidget):
    id = "textarea"
    label = "Textarea"
    category = "Text"
    icon = "\U0001F4C4"
    priority = 90
    supported_types = ["text", "textarea", "string"]
    css_files = ["/css/fields/textarea.css"]
    js_files = ["/js/fields/textarea.js"]
    settings_schema = {
        "rows": {"type": "integer", "label": "Rows", "default": 5},
        "cols": {"type": "integer", "label": "Columns"},
        "max_length": {"type": "integer", "label": "Max Length"},
        "resize": {
            "type": "string",
            "label": "Resize",
            "options": ["none", "vertical", "horizontal", "both", "auto"],
            "default": "vertical",
        },
        "show_counter": {"type": "boolean", "label": "Show Character Counter", "default": False},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        max_length = settings.get_int("max_length")
        resize = settings.get_string("resize", "vertical")

        textarea = (
            Html.textarea()
            .attrs(self.common_attributes(field, context))
            .add_class("field-textarea__input")
            .attr("rows", settings.get_int("rows", 5))
            .attr("cols", settings.get_int("cols") or None)
            .attr("maxlength", max_length or None)
            .attr("style", "resize: none; overflow-y: hidden;" if resize == "auto" else f"resize: {resize};")
            .text(value)
        )

        wrapper = Html.div().class_("field-textarea").data("field-id", field_id).child(textarea)
        if settings.get_bool("show_counter") and max_length:
            wrapper.child(
                Html.div().class_("field-textarea__counter").text(f"{len(value or '')} / {max_length}")
            )
        return wrapper

    def init_script(self, field, element_id):
        settings = self.get_settings(field)
        options = {
            "autoResize": settings.get_string("resize") == "auto",
            "showCounter": settings.get_bool("show_counter"),
            "maxLength": settings.get_int("max_length"),
        }
        if not options["autoResize"] and not options["showCounter"]:
            return None
        return f"CmsTextarea.init('{element_id}', {json.dumps(options)});"


class EmailWidget(BaseWidget):
    id = "email"
    label = "Email"
    category = "Text"
    icon = "\U0001F4E7"
    priority = 100
    supported_types = ["email", "string"]

    def build_input(self, field, value, context):
        return Html.input("email").attrs(self.common_attributes(field, context)).value(value)

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        link = Html.element("a").class_("field-display", "field-display--email").attr("href", f"mailto:{value}")
        return self.result(link.text(value))


class UrlWidget(BaseWidget):
    id = "url"
    label = "URL"
    category = "Text"
    icon = "\U0001F517"
    priority = 100
    supported_types = ["url", "string"]
    settings_schema = {
        "placeholder": {"type": "string", "label": "Placeholder", "default": "https://"},
        "show_preview": {"type": "boolean", "label": "Show Preview Link", "default": False},
    }

    def build_input(self, field, value, context):
        element = Html.input("url").attrs(self.common_attributes(field, context)).value(value)
        if not (self.get_settings(field).get_bool("show_preview") and value):
            return element
        preview = (
            Html.element("a")
            .class_("field-url__preview")
            .attrs({"href": value, "target": "_blank", "rel": "noopener"})
            .text("Open ↗")
        )
        return Html.div().class_("field-url").child(element).child(preview)

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        link = (
            Html.element("a")
            .class_("field-display", "field-display--url")
            .attrs({"href": value, "target": "_blank", "rel": "noopener"})
            .text(value)
        )
        return self.result(link)


class PhoneWidget(BaseWidget):
    id = "phone"
    label = "Phone"
    category = "Text"
    icon = "\U0001F4DE"
    priority = 100
    supported_types = ["phone", "string"]
    settings_schema = {
        "placeholder": {"type": "string", "label": "Placeholder"},
        "pattern": {"type": "string", "label": "Pattern"},
    }

    def build_input(self, field, value, context):
        return (
            Html.input("tel")
            .attrs(self.common_attributes(field, context))
            .attr("pattern", self.get_settings(field).get_string("pattern") or None)
            .value(value)
        )

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        dial = re.sub(r"[^+0-9]", "", str(value))
        link = Html.element("a").class_("field-display", "field-display--phone").attr("href", f"tel:{dial}")
        return self.result(link.text(value))


class PasswordWidget(BaseWidget):
    id = "password"
    label = "Password"
    category = "Special"
    icon = "\U0001F512"
    priority = 100
    supported_types = ["password", "string"]
    settings_schema = {
        "show_toggle": {"type": "boolean", "label": "Show Toggle Button", "default": True},
        "show_strength": {"type": "boolean", "label": "Show Strength Indicator", "default": False},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        # Stored passwords are never echoed back into the form
        wrapper = Html.div().class_("field-password").child(
            Html.input("password")
            .attrs(self.common_attributes(field, context))
            .attr("autocomplete", "new-password")
        )
        if settings.get_bool("show_toggle", True):
            wrapper.child(
                Html.button()
                .class_("field-password__toggle")
                .data("target", field_id)
                .aria("label", "Toggle password visibility")
                .text("Show")
            )
        if settings.get_bool("show_strength"):
            wrapper.child(Html.div().class_("field-password__strength").id(f"{field_id}_strength"))
        return wrapper

    def init_script(self, field, element_id):
        settings = self.get_settings(field)
        options = {"toggle": settings.get_bool("show_toggle", True), "strength": settings.get_bool("show_strength")}
        return f"CmsPassword.init('{element_id}', {json.dumps(options)});"

    def render_display(self, field, value, context):
        return self.display("password", "•" * 8 if value else "—")


class SlugWidget(BaseWidget):
    id = "slug"
    label = "Slug"
    category = "Special"
    icon = "\U0001F517"
    priority = 100
    supported_types = ["slug", "string"]
    settings_schema = {
        "source_field": {"type": "string", "label": "Source Field (for auto-generation)"},
    }

    def build_input(self, field, value, context):
        source = self.get_settings(field).get_string("source_field")
        element = (
            Html.input("text")
            .attrs(self.common_attributes(field, context))
            .attr("pattern", "[a-z0-9]+(?:-[a-z0-9]+)*")
            .data("source", source or None)
            .value(value)
        )
        wrapper = Html.div().class_("field-slug").child(element)
        if source:
            wrapper.child(
                Html.button()
                .class_("field-slug__generate")
                .data("target", self.field_id(field, context))
                .text("Generate")
            )
        return wrapper

    def init_script(self, field, element_id):
        source = self.get_settings(field).get_string("source_field")
        if not source:
            return None
        return f"CmsSlug.init('{element_id}', '{source}');"

    def prepare_value(self, field, value):
        if is_empty(value):
            return None
        return re.sub(r"[^a-z0-9-]", "", str(value).lower())


class ColorWidget(BaseWidget):
    id = "color"
    label = "Color Picker"
    category = "Special"
    icon = "\U0001F3A8"
    priority = 100
    supported_types = ["color", "string"]
    settings_schema = {
        "show_preview": {"type": "boolean", "label": "Show Preview", "default": True},
        "show_hex": {"type": "boolean", "label": "Show Hex Input", "default": True},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        current = value or "#000000"

        wrapper = Html.div().class_("field-color")
        wrapper.child(Html.input("color").attrs(self.common_attributes(field, context)).value(current))
        if settings.get_bool("show_hex", True):
            wrapper.child(
                Html.input("text")
                .class_("field-color__hex")
                .id(f"{field_id}_hex")
                .attr("pattern", COLOR_PATTERN.pattern)
                .attr("maxlength", 7)
                .value(current)
            )
        if settings.get_bool("show_preview", True):
            wrapper.child(
                Html.div()
                .class_("field-color__preview")
                .id(f"{field_id}_preview")
                .attr("style", f"background-color: {current};")
            )
        return wrapper

    def init_script(self, field, element_id):
        if not self.get_settings(field).get_bool("show_hex", True):
            return None
        return f"CmsColor.init('{element_id}');"

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        element = (
            Html.span()
            .class_("field-display", "field-display--color")
            .child(Html.span().class_("field-display__swatch").attr("style", f"background-color: {value};"))
            .child(Html.span().class_("field-display__value").text(value))
        )
        return self.result(element)


class HiddenWidget(BaseWidget):
    id = "hidden"
    label = "Hidden"
    category = "Special"
    icon = "\U0001F441"
    priority = 100
    supported_types = ["hidden", "string", "integer"]

    def build_input(self, field, value, context):
        return Html.hidden(self.field_name(field, context), value).id(self.field_id(field, context))

    def build_wrapper(self, field, input_html, context):
        return input_html

    def render_display(self, field, value, context):
        return RenderResult.empty()
