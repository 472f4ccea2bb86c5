"""
Base widget.

A widget renders one field as a form input and as read-only display
output, and converts submitted values into storable ones. Rendering runs
``format_value`` -> ``build_input`` -> ``build_wrapper`` and attaches the
widget's assets plus an optional per-field init script.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Union

from ..definition import FieldDefinition
from ..html import Html, HtmlBuilder
from ..rendering import AssetCollection, RenderContext, RenderResult
from ..settings import FieldSettings
from ..validation import ValidationResult
from ..values import DateTimeTransformer, is_empty

CONTROL_CLASS = "field-widget__control"
EMPTY_DISPLAY = "—"


class BaseWidget:
    """
    Base class for all field widgets.

    Subclasses set the class attributes and implement ``build_input``.
    """

    id: str = ""
    label: str = ""
    category: str = "General"
    icon: str = "\U0001F4DD"
    priority: int = 0
    supported_types: List[str] = []
    supports_multiple: bool = False
    settings_schema: Dict[str, Dict[str, Any]] = {}
    css_files: List[str] = []
    js_files: List[str] = []

    def __init__(self):
        self.assets = AssetCollection()
        self.assets.add_css_files(self.css_files)
        self.assets.add_js_files(self.js_files)

    # ==================== RENDERING ====================

    def render_field(self, field: FieldDefinition, value: Any, context: RenderContext) -> RenderResult:
        """Render the field as a form input wrapped with label, help and errors."""
        formatted = self.format_value(field, value)
        built = self.build_input(field, formatted, context)
        input_html = built.render() if isinstance(built, HtmlBuilder) else built
        html = self.build_wrapper(field, input_html, context)

        assets = AssetCollection().merge(self.assets)
        init_script = self.init_script(field, self.field_id(field, context))
        if init_script:
            assets.add_init_script(init_script)
        return RenderResult.create(html, assets)

    def render_display(self, field: FieldDefinition, value: Any, context: RenderContext) -> RenderResult:
        """Render the stored value for reading."""
        if is_empty(value):
            return self.empty_display()
        return RenderResult.from_html(Html.span().class_("field-display").text(value).render())

    @staticmethod
    def empty_display() -> RenderResult:
        return RenderResult.from_html(
            Html.span().class_("field-display", "field-display--empty").text(EMPTY_DISPLAY).render()
        )

    @staticmethod
    def result(element: HtmlBuilder) -> RenderResult:
        return RenderResult.from_html(element.render())

    @staticmethod
    def display(modifier: str, text: Any, tag: str = "span") -> RenderResult:
        """Display element with the ``field-display--{modifier}`` class and escaped text."""
        element = Html.element(tag).class_("field-display", f"field-display--{modifier}").text(text)
        return RenderResult.from_html(element.render())

    def build_input(
        self, field: FieldDefinition, value: Any, context: RenderContext
    ) -> Union[HtmlBuilder, str]:
        raise NotImplementedError

    def build_wrapper(self, field: FieldDefinition, input_html: str, context: RenderContext) -> str:
        has_errors = context.has_errors_for(field.machine_name)
        wrapper = Html.div().class_(
            "field-widget",
            f"field-widget--{self.id}",
            f"field-type--{field.field_type}",
            "field-widget--required" if field.required else None,
            "field-widget--error" if has_errors else None,
        )

        if not context.hide_label:
            wrapper.child(self.build_label(field, context))

        wrapper.child(Html.div().class_("field-widget__input").html(input_html))

        if not context.hide_help and field.help_text:
            wrapper.child(
                Html.div().class_("field-widget__help").id(self.help_id(field, context)).text(field.help_text)
            )

        if has_errors:
            errors = Html.div().class_("field-widget__errors")
            for error in context.errors_for(field.machine_name):
                errors.child(Html.div().class_("field-widget__error").text(error))
            wrapper.child(errors)

        return wrapper.render()

    def build_label(self, field: FieldDefinition, context: RenderContext) -> HtmlBuilder:
        label = Html.label().class_("field-widget__label").attr("for", self.field_id(field, context)).text(field.name)
        if field.required:
            label.child(Html.span().class_("field-widget__required").text("*"))
        return label

    def init_script(self, field: FieldDefinition, element_id: str) -> Optional[str]:
        """JavaScript run on DOMContentLoaded for this field, if any."""
        return None

    # ==================== VALUES ====================

    def prepare_value(self, field: FieldDefinition, value: Any) -> Any:
        """Convert a submitted value into its storable form."""
        return value

    def format_value(self, field: FieldDefinition, value: Any) -> Any:
        """Convert a stored value into what the input shows."""
        return value

    def validate(self, field: FieldDefinition, value: Any) -> ValidationResult:
        """Widget specific checks, run after the generic field rules."""
        return ValidationResult.success()

    # ==================== NAMING ====================

    def field_id(self, field: FieldDefinition, context: RenderContext) -> str:
        field_id = f"{context.form_id}_{field.machine_name}"
        if context.index is not None:
            field_id += f"_{context.index}"
        if context.delta is not None:
            field_id += f"_{context.delta}"
        return field_id

    def base_name(self, field: FieldDefinition, context: RenderContext) -> str:
        name = field.machine_name
        if context.name_prefix:
            name = f"{context.name_prefix}[{name}]"
        if context.delta is not None:
            name += f"[{context.delta}]"
        return name

    def field_name(self, field: FieldDefinition, context: RenderContext) -> str:
        name = self.base_name(field, context)
        if field.multiple and self.supports_multiple and context.delta is None:
            name += "[]"
        return name

    def help_id(self, field: FieldDefinition, context: RenderContext) -> str:
        return self.field_id(field, context) + "_help"

    def common_attributes(self, field: FieldDefinition, context: RenderContext) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {
            "id": self.field_id(field, context),
            "name": self.field_name(field, context),
            "class": CONTROL_CLASS,
            "required": field.required,
            "disabled": context.disabled,
            "readonly": context.readonly,
        }
        if field.help_text:
            attributes["aria-describedby"] = self.help_id(field, context)
        placeholder = field.get_setting("placeholder")
        if placeholder:
            attributes["placeholder"] = placeholder
        return attributes

    # ==================== HELPERS ====================

    def get_settings(self, field: FieldDefinition) -> FieldSettings:
        return FieldSettings(field.widget_settings_merged(), self.settings_schema)

    def get_options(self, field: FieldDefinition) -> Dict[str, Any]:
        settings = self.get_settings(field)
        options = settings.get("options", {})
        if isinstance(options, str):
            options = settings.get_dict("options") or settings.get_list("options")
        if isinstance(options, (list, tuple)):
            return {str(option): option for option in options}
        return dict(options)

    @staticmethod
    def input_group(input_element: HtmlBuilder, prefix: str = "", suffix: str = "") -> HtmlBuilder:
        """Wrap an input with prefix and suffix addons, or return it unchanged."""
        if not prefix and not suffix:
            return input_element
        group = Html.div().class_("field-input-group")
        if prefix:
            group.child(Html.span().class_("field-input-group__prefix").text(prefix))
        group.child(input_element)
        if suffix:
            group.child(Html.span().class_("field-input-group__suffix").text(suffix))
        return group

    @staticmethod
    def format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
        """Format dates, datetimes and ISO strings; unparseable strings come back as-is."""
        if isinstance(value, (datetime, date)):
            return value.strftime(fmt)
        if isinstance(value, time):
            return value.strftime(fmt)
        if isinstance(value, str) and value:
            parsed = DateTimeTransformer.parse(value)
            if parsed is None:
                try:
                    parsed = datetime.combine(date.today(), time.fromisoformat(value))
                except ValueError:
                    return value
            return parsed.strftime(fmt)
        return ""

    @staticmethod
    def format_number(value: Any, decimals: int = 0) -> str:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return str(value)
        return f"{number:,.{decimals}f}"

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "category": self.category,
            "icon": self.icon,
            "priority": self.priority,
            "supported_types": list(self.supported_types),
            "supports_multiple": self.supports_multiple,
            "settings_schema": self.settings_schema,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"
