"""
Rich text widgets: WYSIWYG, markdown, code and JSON editors.
"""

import json

from ..html import Html
from ..validation import ValidationResult
from ..values import is_empty
from .base import BaseWidget

TOOLBAR_PRESETS = {
    "minimal": "undo redo | bold italic | bullist numlist",
    "simple": "undo redo | formatselect | bold italic underline | bullist numlist | link image",
    "default": (
        "undo redo | formatselect | bold italic underline | alignleft aligncenter alignright"
        " | bullist numlist | link image | code"
    ),
    "full": (
        "undo redo | formatselect | bold italic underline strikethrough | forecolor backcolor"
        " | alignleft aligncenter alignright alignjustify | bullist numlist outdent indent"
        " | link image media table | code removeformat"
    ),
}

MARKDOWN_TOOLBAR = [
    ("bold", "B", "Bold"),
    ("italic", "I", "Italic"),
    ("heading", "H", "Heading"),
    ("link", "Link", "Link"),
    ("image", "Img", "Image"),
    ("code", "<>", "Code"),
    ("quote", '"', "Quote"),
    ("ul", "•", "Bullet List"),
    ("ol", "1.", "Numbered List"),
]

CODE_LANGUAGES = {
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "php": "PHP",
    "python": "Python",
    "html": "HTML",
    "css": "CSS",
    "sql": "SQL",
    "json": "JSON",
    "yaml": "YAML",
    "shell": "Shell",
}


class WysiwygWidget(BaseWidget):
    id = "wysiwyg"
    label = "WYSIWYG Editor"
    category = "Rich Text"
    icon = "\U0001F4DD"
    priority = 100
    supported_types = ["html", "text"]
    css_files = ["/css/fields/wysiwyg.css"]
    js_files = ["/vendor/tinymce/tinymce.min.js", "/js/fields/wysiwyg.js"]
    settings_schema = {
        "height": {"type": "integer", "label": "Editor Height (px)", "default": 400},
        "toolbar": {"type": "string", "label": "Toolbar Preset", "options": list(TOOLBAR_PRESETS), "default": "default"},
        "menubar": {"type": "boolean", "label": "Show Menu Bar", "default": True},
        "plugins": {"type": "array", "label": "Enabled Plugins"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        plugins = settings.get_list("plugins", ["link", "image", "lists", "table", "code"])
        return (
            Html.div()
            .class_("field-wysiwyg")
            .data("field-id", self.field_id(field, context))
            .data("height", settings.get_int("height"))
            .data("toolbar", settings.get_string("toolbar"))
            .data("plugins", json.dumps(plugins))
            .child(Html.textarea().attrs(self.common_attributes(field, context)).add_class("field-wysiwyg__editor").text(value))
        )

    def init_script(self, field, element_id):
        settings = self.get_settings(field)
        options = {
            "height": settings.get_int("height"),
            "toolbar": TOOLBAR_PRESETS.get(settings.get_string("toolbar"), TOOLBAR_PRESETS["default"]),
            "menubar": settings.get_bool("menubar", True),
        }
        return f"CmsWysiwyg.init('{element_id}', {json.dumps(options)});"

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        # Stored HTML is trusted editor output
        return self.result(Html.div().class_("field-display", "field-display--wysiwyg", "prose").html(value))


class MarkdownWidget(BaseWidget):
    id = "markdown"
    label = "Markdown Editor"
    category = "Rich Text"
    icon = "M↓"
    priority = 90
    supported_types = ["markdown", "text", "string"]
    css_files = ["/css/fields/markdown.css"]
    js_files = ["/vendor/marked/marked.min.js", "/js/fields/markdown.js"]
    settings_schema = {
        "rows": {"type": "integer", "label": "Rows", "default": 15},
        "show_preview": {"type": "boolean", "label": "Show Preview", "default": True},
        "show_toolbar": {"type": "boolean", "label": "Show Toolbar", "default": True},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        wrapper = Html.div().class_("field-markdown").data("field-id", field_id)

        if settings.get_bool("show_toolbar", True):
            toolbar = Html.div().class_("field-markdown__toolbar")
            for action, icon, title in MARKDOWN_TOOLBAR:
                toolbar.child(
                    Html.button()
                    .class_("field-markdown__btn")
                    .data("action", action)
                    .data("target", field_id)
                    .attr("title", title)
                    .text(icon)
                )
            wrapper.child(toolbar)

        container = Html.div().class_("field-markdown__container")
        container.child(
            Html.textarea()
            .attrs(self.common_attributes(field, context))
            .add_class("field-markdown__input")
            .attr("rows", settings.get_int("rows"))
            .text(value)
        )
        if settings.get_bool("show_preview", True):
            container.child(Html.div().class_("field-markdown__preview", "prose").id(f"{field_id}_preview"))
        return wrapper.child(container)

    def init_script(self, field, element_id):
        return f"CmsMarkdown.init('{element_id}');"

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        element = Html.div().class_("field-display", "field-display--markdown", "prose").data("markdown", value)
        return self.result(element)


class CodeWidget(BaseWidget):
    id = "code"
    label = "Code Editor"
    category = "Rich Text"
    icon = "</>"
    priority = 80
    supported_types = ["code", "text", "string"]
    css_files = ["/vendor/codemirror/codemirror.min.css", "/css/fields/code.css"]
    js_files = ["/vendor/codemirror/codemirror.min.js", "/js/fields/code.js"]
    settings_schema = {
        "language": {"type": "string", "label": "Default Language", "options": list(CODE_LANGUAGES), "default": "javascript"},
        "theme": {"type": "string", "label": "Theme", "options": ["default", "dracula", "monokai", "material"], "default": "dracula"},
        "height": {"type": "integer", "label": "Height (px)", "default": 300},
        "line_numbers": {"type": "boolean", "label": "Show Line Numbers", "default": True},
        "language_selector": {"type": "boolean", "label": "Show Language Selector", "default": False},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        language = settings.get_string("language")

        wrapper = (
            Html.div()
            .class_("field-code")
            .data("field-id", field_id)
            .data("language", language)
            .data("theme", settings.get_string("theme"))
            .data("line-numbers", "true" if settings.get_bool("line_numbers", True) else "false")
            .data("height", settings.get_int("height"))
        )
        if settings.get_bool("language_selector"):
            select = Html.select().class_("field-code__language").id(f"{field_id}_language").data("target", field_id)
            for key, name in CODE_LANGUAGES.items():
                select.child(Html.option(key, name, key == language))
            wrapper.child(
                Html.div().class_("field-code__language-wrapper").child(Html.label().text("Language: ")).child(select)
            )
        wrapper.child(
            Html.textarea().attrs(self.common_attributes(field, context)).add_class("field-code__textarea").text(value)
        )
        return wrapper

    def init_script(self, field, element_id):
        return f"CmsCode.init('{element_id}');"

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        language = self.get_settings(field).get_string("language")
        element = (
            Html.element("pre")
            .class_("field-display", "field-display--code")
            .child(Html.element("code").class_(f"language-{language}").text(value))
        )
        return self.result(element)


class JsonWidget(BaseWidget):
    id = "json"
    label = "JSON Editor"
    category = "Rich Text"
    icon = "{ }"
    priority = 100
    supported_types = ["json"]
    settings_schema = {
        "rows": {"type": "integer", "label": "Rows", "default": 10},
    }

    def build_input(self, field, value, context):
        return (
            Html.textarea()
            .attrs(self.common_attributes(field, context))
            .add_class("field-json__input")
            .attr("rows", self.get_settings(field).get_int("rows", 10))
            .attr("spellcheck", "false")
            .text(value)
        )

    def format_value(self, field, value):
        if value is None:
            return ""
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return value
        return json.dumps(value, indent=2, ensure_ascii=False)

    def prepare_value(self, field, value):
        if is_empty(value):
            return None
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value

    def validate(self, field, value):
        if is_empty(value) or not isinstance(value, str):
            return ValidationResult.success()
        try:
            json.loads(value)
        except json.JSONDecodeError as e:
            return ValidationResult.failure(f"Invalid JSON: {e.msg}")
        return ValidationResult.success()

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        return self.display("json", self.format_value(field, value), tag="pre")
