"""
Reference widgets: content entities, taxonomy terms and users.

Referenced ids are integers. Multi-valued references are exchanged as a
JSON encoded list in a single hidden input.
"""

import json
from typing import Any, Dict, List

from ..html import Html
from ..values import is_empty
from .base import BaseWidget


def parse_ids(value: Any) -> List[int]:
    """Normalize a submitted reference value to a list of integer ids."""
    if is_empty(value):
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                return []
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple, set)):
        value = [value]

    ids = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("id")
        try:
            ids.append(int(str(item).strip()))
        except (TypeError, ValueError):
            continue
    return ids


class EntityReferenceWidget(BaseWidget):
    id = "entity_reference"
    label = "Entity Reference"
    category = "Reference"
    icon = "\U0001F517"
    priority = 100
    supported_types = ["entity_reference", "block_reference"]
    supports_multiple = True
    css_files = ["/css/fields/reference.css"]
    js_files = ["/js/fields/reference.js"]
    settings_schema = {
        "target_type": {"type": "string", "label": "Target Entity Type", "default": "node"},
        "target_bundles": {"type": "array", "label": "Allowed Bundles"},
        "autocomplete_url": {"type": "string", "label": "Autocomplete URL"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        ids = parse_ids(value)
        hidden_value = json.dumps(ids) if field.multiple else (str(ids[0]) if ids else "")

        wrapper = (
            Html.div()
            .class_("field-reference")
            .data("field-id", field_id)
            .data("target-type", settings.get_string("target_type"))
            .data("multiple", "true" if field.multiple else "false")
            .data("autocomplete-url", settings.get_string("autocomplete_url") or None)
        )
        wrapper.child(Html.hidden(self.base_name(field, context), hidden_value).id(field_id).class_("field-reference__value"))

        selected = Html.div().class_("field-reference__selected")
        for ref_id in ids:
            selected.child(
                Html.span()
                .class_("field-reference__item")
                .data("id", ref_id)
                .text(f"#{ref_id}")
                .child(Html.button().class_("field-reference__remove").data("action", "remove").text("×"))
            )
        wrapper.child(selected)
        wrapper.child(
            Html.input("search")
            .id(f"{field_id}_search")
            .class_("field-reference__search")
            .placeholder("Search...")
            .disabled(context.disabled)
            .attr("autocomplete", "off")
        )
        return wrapper

    def init_script(self, field, element_id):
        return f"CmsReference.init('{element_id}');"

    def prepare_value(self, field, value):
        ids = parse_ids(value)
        if field.multiple:
            return ids
        return ids[0] if ids else None

    def render_display(self, field, value, context):
        ids = parse_ids(value)
        if not ids:
            return self.empty_display()
        return self.display("reference", ", ".join(f"#{ref_id}" for ref_id in ids))


class TaxonomyWidget(BaseWidget):
    """
    Term picker for a vocabulary.

    Terms come from ``context.data["taxonomy_terms"][vocabulary]``, which
    the field manager fills from the vocabulary, and otherwise from the
    ``options`` setting.
    """

    id = "taxonomy"
    label = "Taxonomy Terms"
    category = "Reference"
    icon = "\U0001F3F7"
    priority = 100
    supported_types = ["taxonomy_reference"]
    supports_multiple = True
    css_files = ["/css/fields/checkboxes.css"]
    settings_schema = {
        "vocabulary": {"type": "string", "label": "Vocabulary", "default": "tags"},
        "display": {"type": "string", "label": "Display As", "options": ["checkboxes", "select"], "default": "checkboxes"},
    }

    def get_terms(self, field, context=None) -> List[Dict[str, Any]]:
        vocabulary = self.get_settings(field).get_string("vocabulary")
        if context is not None:
            terms = context.get("taxonomy_terms", {}).get(vocabulary)
            if terms:
                return list(terms)
        return [{"id": key, "name": label, "depth": 0} for key, label in self.get_options(field).items()]

    def build_input(self, field, value, context):
        field_id = self.field_id(field, context)
        selected = {str(term_id) for term_id in parse_ids(value)}
        terms = self.get_terms(field, context)

        if self.get_settings(field).get_string("display") == "select":
            select = Html.select().attrs(self.common_attributes(field, context)).attr("multiple", field.multiple)
            if not field.multiple:
                select.child(Html.option("", "- None -"))
            for term in terms:
                indent = "-" * int(term.get("depth", 0))
                label = f"{indent} {term['name']}".strip()
                select.child(Html.option(term["id"], label, str(term["id"]) in selected))
            return select

        name = self.base_name(field, context) + "[]"
        group = Html.div().class_("field-taxonomy", "field-checkbox-group").id(f"{field_id}_wrapper")
        if not terms:
            return group.child(Html.span().class_("field-taxonomy__empty").text("No terms available"))
        for index, term in enumerate(terms):
            group.child(
                Html.label()
                .class_("field-checkbox", f"field-taxonomy__depth-{int(term.get('depth', 0))}")
                .child(
                    Html.input("checkbox")
                    .id(f"{field_id}_{index}")
                    .name(name)
                    .value(term["id"])
                    .attr("checked", str(term["id"]) in selected)
                    .disabled(context.disabled)
                )
                .child(Html.span().class_("field-checkbox__label").text(term["name"]))
            )
        return group

    def prepare_value(self, field, value):
        ids = parse_ids(value)
        if field.multiple:
            return ids
        return ids[0] if ids else None

    def render_display(self, field, value, context):
        ids = parse_ids(value)
        if not ids:
            return self.empty_display()
        names = {str(term["id"]): term["name"] for term in self.get_terms(field, context)}
        return self.display("taxonomy", ", ".join(str(names.get(str(term_id), term_id)) for term_id in ids))


class UserReferenceWidget(EntityReferenceWidget):
    id = "user_reference"
    label = "User Reference"
    icon = "\U0001F464"
    supported_types = ["user_reference"]
    settings_schema = {
        "roles": {"type": "array", "label": "Allowed Roles"},
        "autocomplete_url": {"type": "string", "label": "Autocomplete URL", "default": "/admin/users/autocomplete"},
    }

    def build_input(self, field, value, context):
        return super().build_input(field, value, context).data("target-type", "user")

    def render_display(self, field, value, context):
        ids = parse_ids(value)
        if not ids:
            return self.empty_display()
        return self.display("user", ", ".join(f"User #{user_id}" for user_id in ids))
