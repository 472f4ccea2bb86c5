"""
Repeater widget.

A repeater holds a list of items, each a dict of sub-field values. Sub
fields are rendered through the registry with a context whose name prefix
is ``{name}[{index}]``, so nested inputs submit as
``field_items[0][field_title]``. A ``<template>`` rendered with the
``__INDEX__`` placeholder lets the browser add items.
"""

import json
from typing import Any, Dict, List

from ..definition import FieldDefinition
from ..html import Html
from ..rendering import AssetCollection, RenderContext, RenderResult
from ..validation import ValidationResult
from ..values import is_empty
from .base import BaseWidget

INDEX_PLACEHOLDER = "__INDEX__"


class RepeaterWidget(BaseWidget):
    id = "repeater"
    label = "Repeater"
    category = "Special"
    icon = "\U0001F501"
    priority = 100
    supported_types = ["repeater"]
    supports_multiple = True
    css_files = ["/css/fields/repeater.css"]
    js_files = ["/js/fields/repeater.js"]
    settings_schema = {
        "sub_fields": {"type": "array", "label": "Sub Fields"},
        "min_items": {"type": "integer", "label": "Minimum Items", "default": 0},
        "max_items": {"type": "integer", "label": "Maximum Items (0 = unlimited)", "default": 0},
        "collapsible": {"type": "boolean", "label": "Collapsible Items", "default": True},
        "confirm_delete": {"type": "boolean", "label": "Confirm Delete", "default": True},
        "item_label": {"type": "string", "label": "Item Label", "default": "Item"},
        "add_label": {"type": "string", "label": "Add Button Label", "default": "+ Add Item"},
    }

    def __init__(self, registry=None):
        super().__init__()
        self.registry = registry

    def set_registry(self, registry) -> None:
        self.registry = registry

    def _registry(self):
        if self.registry is None:
            raise RuntimeError("Repeater widget used without a widget registry")
        return self.registry

    def sub_fields(self, field: FieldDefinition) -> List[FieldDefinition]:
        definitions = []
        for sub_field in self.get_settings(field).get_list("sub_fields"):
            if isinstance(sub_field, FieldDefinition):
                definitions.append(sub_field)
            elif isinstance(sub_field, dict):
                definitions.append(FieldDefinition.from_dict(sub_field))
        return definitions

    @staticmethod
    def items(value: Any) -> List[Dict[str, Any]]:
        """Normalize a value to a list of item dicts, keeping submitted order."""
        if is_empty(value):
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return []
        if isinstance(value, dict):
            # Form posts arrive as {"0": {...}, "1": {...}}
            value = [value[key] for key in sorted(value, key=_index_key)]
        if not isinstance(value, (list, tuple)):
            return []
        return [item for item in value if isinstance(item, dict)]

    # ==================== RENDERING ====================

    def item_context(self, field: FieldDefinition, context: RenderContext, index: Any) -> RenderContext:
        name = self.base_name(field, context)
        return RenderContext(
            form_id=self.field_id(field, context),
            name_prefix=f"{name}[{index}]",
            index=index,
            disabled=context.disabled,
            readonly=context.readonly,
            hide_help=context.hide_help,
            data=context.data,
        )

    def build_item(self, field, sub_fields, item, index, context, assets: AssetCollection):
        settings = self.get_settings(field)
        item_context = self.item_context(field, context, index)
        label = settings.get_string("item_label")
        number = index + 1 if isinstance(index, int) else index

        header = (
            Html.div()
            .class_("field-repeater__item-header")
            .child(Html.span().class_("field-repeater__handle").text("☰"))
            .child(Html.span().class_("field-repeater__item-label").text(f"{label} {number}"))
        )
        if settings.get_bool("collapsible", True):
            header.child(Html.button().class_("field-repeater__toggle").data("action", "toggle").text("▾"))
        header.child(Html.button().class_("field-repeater__remove").data("action", "remove").text("Remove"))

        body = Html.div().class_("field-repeater__item-body")
        for sub_field in sub_fields:
            rendered = self._registry().render_field(
                sub_field, item.get(sub_field.machine_name, sub_field.default_value), item_context, collect=False
            )
            assets.merge(rendered.assets)
            body.html(rendered.html)

        return Html.div().class_("field-repeater__item").data("index", index).child(header).child(body)

    def build_input(self, field, value, context):
        return self.build_items(field, value, context, AssetCollection())

    def build_items(self, field, value, context, assets: AssetCollection):
        """Build the repeater markup, collecting sub-field assets into ``assets``."""
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        sub_fields = self.sub_fields(field)
        items = self.items(value)

        wrapper = (
            Html.div()
            .class_("field-repeater")
            .id(f"{field_id}_repeater")
            .data("field-id", field_id)
            .data("min-items", settings.get_int("min_items"))
            .data("max-items", settings.get_int("max_items"))
            .data("confirm-delete", "true" if settings.get_bool("confirm_delete", True) else "false")
        )

        container = Html.div().class_("field-repeater__items").id(f"{field_id}_items")
        for index, item in enumerate(items):
            container.child(self.build_item(field, sub_fields, item, index, context, assets))
        wrapper.child(container)

        # Template init scripts run when the browser clones an item, not on load
        template_assets = AssetCollection()
        template = self.build_item(field, sub_fields, {}, INDEX_PLACEHOLDER, context, template_assets)
        assets.add_css_files(template_assets.css_files).add_js_files(template_assets.js_files)
        wrapper.child(Html.element("template").id(f"{field_id}_template").child(template))

        add_button = (
            Html.button()
            .class_("field-repeater__add")
            .data("action", "add")
            .text(settings.get_string("add_label"))
            .disabled(context.disabled)
        )
        return wrapper.child(Html.div().class_("field-repeater__actions").child(add_button))

    def render_field(self, field, value, context):
        assets = AssetCollection().merge(self.assets)
        built = self.build_items(field, self.format_value(field, value), context, assets)
        html = self.build_wrapper(field, built.render(), context)
        assets.add_init_script(self.init_script(field, self.field_id(field, context)))
        return RenderResult.create(html, assets)

    def init_script(self, field, element_id):
        return f"CmsRepeater.init('{element_id}_repeater');"

    # ==================== VALUES ====================

    def prepare_value(self, field, value):
        registry = self._registry()
        sub_fields = self.sub_fields(field)
        prepared = []
        for item in self.items(value):
            values = {
                sub_field.machine_name: registry.prepare_value(sub_field, item.get(sub_field.machine_name))
                for sub_field in sub_fields
            }
            if all(is_empty(v) or v is False for v in values.values()):
                continue
            prepared.append(values)
        return prepared

    def validate(self, field, value):
        settings = self.get_settings(field)
        items = self.items(value)
        errors = []

        min_items = settings.get_int("min_items")
        max_items = settings.get_int("max_items")
        if min_items and len(items) < min_items:
            errors.append(f"At least {min_items} items are required")
        if max_items and len(items) > max_items:
            errors.append(f"No more than {max_items} items are allowed")

        registry = self._registry()
        for index, item in enumerate(items, start=1):
            for sub_field in self.sub_fields(field):
                result = registry.validate_field(sub_field, item.get(sub_field.machine_name))
                errors.extend(f"Item {index}: {error}" for error in result.errors)
        return ValidationResult.failure(errors)

    def render_display(self, field, value, context):
        items = self.items(value)
        if not items:
            return self.empty_display()

        registry = self._registry()
        sub_fields = self.sub_fields(field)
        assets = AssetCollection()
        listing = Html.element("ul").class_("field-display", "field-display--repeater")
        for item in items:
            entry = Html.element("li").class_("field-display__item")
            for sub_field in sub_fields:
                sub_value = item.get(sub_field.machine_name)
                if is_empty(sub_value):
                    continue
                rendered = registry.render_field_display(sub_field, sub_value, context)
                assets.merge(rendered.assets)
                entry.child(
                    Html.div()
                    .class_("field-display__row")
                    .child(Html.span().class_("field-display__label").text(f"{sub_field.name}: "))
                    .html(rendered.html)
                )
            listing.child(entry)
        result = self.result(listing)
        result.assets.merge(assets)
        return result


def _index_key(key: Any) -> Any:
    try:
        return (0, int(key))
    except (TypeError, ValueError):
        return (1, str(key))

