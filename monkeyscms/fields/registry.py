"""
Widget registry.

Holds the available widgets, picks the widget for a field and is the
single entry point the form builder, field manager and repeater use to
render, prepare and validate field values. Callers that render without
building their own asset list can let the registry collect the assets of
everything it renders.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import WidgetNotFoundException
from ..logging_config import get_logger
from .definition import FieldDefinition
from .html import Html
from .rendering import AssetCollection, RenderContext, RenderResult
from .validation import FieldValidator, ValidationResult
from .values import is_empty
from .widgets.base import BaseWidget

logger = get_logger(__name__)

FALLBACK_WIDGET = "text_input"
REPEATED_CSS = "/css/fields/field-repeater.css"
REPEATED_JS = "/js/fields/field-repeater.js"
INDEX_PLACEHOLDER = "__INDEX__"


def _delta_values(value: Any) -> List[Any]:
    """Values of a multi-valued field, accepting lists and ``{"0": ..}`` form dicts."""
    if value is None or value == "":
        return []
    if isinstance(value, dict):
        if all(str(key).isdigit() for key in value):
            return [value[key] for key in sorted(value, key=lambda k: int(k))]
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class WidgetRegistry:
    """
    Registry of field widgets.

    Widgets are resolved for a field in this order: the field's own
    ``widget``, the default registered for its type, the highest priority
    widget supporting the type, then ``text_input``.
    """

    def __init__(self, validator: Optional[FieldValidator] = None):
        self.validator = validator or FieldValidator()
        self._widgets: "OrderedDict[str, BaseWidget]" = OrderedDict()
        self._type_defaults: Dict[str, str] = {}
        self._assets = AssetCollection()

    # ==================== REGISTRATION ====================

    def register(self, widget: BaseWidget) -> "WidgetRegistry":
        self._widgets[widget.id] = widget
        # Composite widgets render sub-fields through the registry
        if hasattr(widget, "set_registry"):
            widget.set_registry(self)
        return self

    def register_many(self, widgets: Iterable[BaseWidget]) -> "WidgetRegistry":
        for widget in widgets:
            self.register(widget)
        return self

    def set_type_default(self, field_type: str, widget_id: str) -> "WidgetRegistry":
        """
        Set the default widget for a field type.

        Raises:
            WidgetNotFoundException: If the widget is not registered
        """
        if widget_id not in self._widgets:
            raise WidgetNotFoundException(widget_id)
        self._type_defaults[field_type] = widget_id
        return self

    def set_type_defaults(self, defaults: Dict[str, str]) -> "WidgetRegistry":
        for field_type, widget_id in defaults.items():
            self.set_type_default(field_type, widget_id)
        return self

    def type_default(self, field_type: str) -> Optional[str]:
        return self._type_defaults.get(field_type)

    # ==================== RESOLUTION ====================

    def get(self, widget_id: str) -> Optional[BaseWidget]:
        return self._widgets.get(widget_id)

    def has(self, widget_id: str) -> bool:
        return widget_id in self._widgets

    def all(self) -> Dict[str, BaseWidget]:
        return dict(self._widgets)

    def get_for_type(self, field_type: str) -> Dict[str, BaseWidget]:
        """Widgets supporting a type, highest priority first."""
        matching = [widget for widget in self._widgets.values() if field_type in widget.supported_types]
        matching.sort(key=lambda widget: widget.priority, reverse=True)
        return OrderedDict((widget.id, widget) for widget in matching)

    def resolve(self, field: FieldDefinition) -> BaseWidget:
        """
        Pick the widget that renders a field.

        Raises:
            WidgetNotFoundException: If not even the fallback widget is registered
        """
        if field.widget and field.widget in self._widgets:
            return self._widgets[field.widget]
        if field.widget:
            logger.debug(
                f"Widget '{field.widget}' not registered, falling back",
                extra={"extra_fields": {"field": field.machine_name, "widget": field.widget}},
            )

        default_id = self._type_defaults.get(field.field_type)
        if default_id:
            return self._widgets[default_id]

        for widget in self.get_for_type(field.field_type).values():
            return widget

        if FALLBACK_WIDGET in self._widgets:
            return self._widgets[FALLBACK_WIDGET]
        raise WidgetNotFoundException(field.widget or field.field_type)

    # ==================== RENDERING ====================

    def render_field(
        self, field: FieldDefinition, value: Any, context: RenderContext, collect: bool = True
    ) -> RenderResult:
        """
        Render a field input.

        With ``collect=False`` the assets are only returned on the result and
        the registry's own collection is left untouched.
        """
        widget = self.resolve(field)
        if field.multiple and not widget.supports_multiple and context.delta is None:
            result = self._render_repeated(widget, field, value, context)
        else:
            result = widget.render_field(field, value, context)
        if collect:
            self._assets.merge(result.assets)
        return result

    def _render_repeated(
        self, widget: BaseWidget, field: FieldDefinition, value: Any, context: RenderContext
    ) -> RenderResult:
        """Render one input per value, plus a template for adding more."""
        assets = AssetCollection().add_css(REPEATED_CSS).add_js(REPEATED_JS)
        values = _delta_values(value) or [None]
        item_context = context.with_hide_label().with_errors({})
        container_id = f"{context.form_id}_{field.machine_name}_items"

        container = Html.div().class_("field-repeated__items").id(container_id)
        for delta, item_value in enumerate(values):
            rendered = widget.render_field(field, item_value, item_context.with_delta(delta))
            assets.merge(rendered.assets)
            container.child(self._repeated_item(rendered.html))
        if field.cardinality > 0:
            container.data("max-items", field.cardinality)

        template = widget.render_field(field, None, item_context.with_delta(INDEX_PLACEHOLDER))
        assets.add_css_files(template.assets.css_files).add_js_files(template.assets.js_files)

        repeated = (
            Html.div()
            .class_("field-repeated")
            .data("container", container_id)
            .child(container)
            .child(Html.element("template").id(f"{container_id}_template").html(self._repeated_item(template.html)))
            .child(Html.button().class_("field-repeated__add").data("action", "add").text("Add another"))
        )
        assets.add_init_script(f"CmsFieldRepeater.init('{container_id}');")

        html = widget.build_wrapper(field, repeated.render(), context)
        return RenderResult.create(html, assets)

    @staticmethod
    def _repeated_item(html: str) -> str:
        return (
            Html.div()
            .class_("field-repeated__item")
            .child(Html.div().class_("field-repeated__content").html(html))
            .child(Html.button().class_("field-repeated__remove").data("action", "remove").attr("title", "Remove").text("×"))
            .render()
        )

    def render_field_display(self, field: FieldDefinition, value: Any, context: RenderContext) -> RenderResult:
        widget = self.resolve(field)
        if field.multiple and not widget.supports_multiple and isinstance(value, (list, tuple)):
            values = [item for item in value if not is_empty(item)]
            if not values:
                return widget.empty_display()
            result = RenderResult.empty()
            for item in values:
                result = result.combine(widget.render_display(field, item, context))
            return result.wrap('<div class="field-display-list">', "</div>")
        return widget.render_display(field, value, context)

    def render_fields(
        self, fields: Iterable[FieldDefinition], values: Dict[str, Any], context: RenderContext, collect: bool = True
    ) -> RenderResult:
        """Render several fields, using each field's default when no value is given."""
        combined = RenderResult.empty()
        for field in fields:
            value = values.get(field.machine_name)
            if value is None:
                value = field.default_value
            combined = combined.combine(self.render_field(field, value, context, collect))
        return combined

    # ==================== VALUES ====================

    def prepare_value(self, field: FieldDefinition, value: Any) -> Any:
        """Convert a submitted value into its storable form."""
        widget = self.resolve(field)
        if field.multiple and not widget.supports_multiple:
            prepared = [widget.prepare_value(field, item) for item in _delta_values(value)]
            return [item for item in prepared if not is_empty(item)]
        return widget.prepare_value(field, value)

    def prepare_values(self, fields: Iterable[FieldDefinition], values: Dict[str, Any]) -> Dict[str, Any]:
        return {field.machine_name: self.prepare_value(field, values.get(field.machine_name)) for field in fields}

    def format_value(self, field: FieldDefinition, value: Any) -> Any:
        return self.resolve(field).format_value(field, value)

    # ==================== VALIDATION ====================

    def validate_field(self, field: FieldDefinition, value: Any) -> ValidationResult:
        """Run the generic field rules and then the widget's own checks."""
        widget = self.resolve(field)
        if field.multiple and not widget.supports_multiple:
            values = _delta_values(value)
            result = self.validator.validate(field, values)
            for item in values:
                if not is_empty(item):
                    result = result.merge(widget.validate(field, item))
            return result
        return self.validator.validate(field, value).merge(widget.validate(field, value))

    def validate_fields(self, fields: Iterable[FieldDefinition], values: Dict[str, Any]) -> Dict[str, List[str]]:
        """
        Validate several fields.

        Returns:
            Errors keyed by machine name, only for fields that failed
        """
        errors: Dict[str, List[str]] = {}
        for field in fields:
            result = self.validate_field(field, values.get(field.machine_name))
            if not result.is_valid:
                errors[field.machine_name] = result.errors
        return errors

    # ==================== ASSETS ====================

    @property
    def assets(self) -> AssetCollection:
        """Assets collected from everything rendered since the last clear."""
        return self._assets

    def clear_assets(self) -> "WidgetRegistry":
        self._assets = AssetCollection()
        return self

    # ==================== METADATA ====================

    def grouped_by_category(self) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for widget in self._widgets.values():
            grouped.setdefault(widget.category, []).append(widget.metadata())
        return dict(sorted(grouped.items()))

    def options_for_type(self, field_type: str) -> Dict[str, str]:
        """Widget choices for a type as ``{id: label}``, highest priority first."""
        return {widget_id: widget.label for widget_id, widget in self.get_for_type(field_type).items()}

    def all_metadata(self) -> Dict[str, Dict[str, Any]]:
        return {widget_id: widget.metadata() for widget_id, widget in self._widgets.items()}

    def __len__(self) -> int:
        return len(self._widgets)

    def __contains__(self, widget_id: str) -> bool:
        return widget_id in self._widgets
