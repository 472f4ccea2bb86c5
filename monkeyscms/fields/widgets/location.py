"""
Composite widgets: link, geolocation and postal address.

Each renders several inputs named ``{name}[part]`` and stores a dict.
"""

import json
from typing import Any, Dict, List, Tuple
from urllib.parse import urlparse

from ..html import Html
from ..validation import ValidationResult
from ..values import is_empty, to_bool
from .base import BaseWidget

ADDRESS_PARTS: List[Tuple[str, str]] = [
    ("street1", "Street Address"),
    ("street2", "Address Line 2"),
    ("city", "City"),
    ("state", "State / Province"),
    ("postal_code", "Postal Code"),
    ("country", "Country"),
]

LINK_TARGETS = {"_self": "Same window", "_blank": "New window"}


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, str) and value.strip().startswith("{"):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


class LinkWidget(BaseWidget):
    id = "link_field"
    label = "Link"
    category = "Special"
    icon = "\U0001F517"
    priority = 100
    supported_types = ["link"]
    settings_schema = {
        "show_title": {"type": "boolean", "label": "Show Title Field", "default": True},
        "show_target": {"type": "boolean", "label": "Show Target Option", "default": True},
    }

    def format_value(self, field, value):
        if isinstance(value, str) and not value.strip().startswith("{"):
            return {"url": value, "title": "", "target": "_self"}
        return _as_dict(value)

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        name = self.base_name(field, context)

        wrapper = Html.div().class_("field-link")
        wrapper.child(
            Html.input("url")
            .id(field_id)
            .name(f"{name}[url]")
            .class_("field-link__url")
            .placeholder("https://")
            .required(field.required)
            .disabled(context.disabled)
            .value(value.get("url"))
        )
        if settings.get_bool("show_title", True):
            wrapper.child(
                Html.input("text")
                .id(f"{field_id}_title")
                .name(f"{name}[title]")
                .class_("field-link__title")
                .placeholder("Link text")
                .disabled(context.disabled)
                .value(value.get("title"))
            )
        if settings.get_bool("show_target", True):
            target = value.get("target") or "_self"
            select = Html.select().id(f"{field_id}_target").name(f"{name}[target]").class_("field-link__target")
            for option_value, option_label in LINK_TARGETS.items():
                select.child(Html.option(option_value, option_label, option_value == target))
            wrapper.child(select)
        return wrapper

    def prepare_value(self, field, value):
        if isinstance(value, str):
            value = {"url": value}
        data = _as_dict(value)
        url = str(data.get("url") or "").strip()
        if not url:
            return None
        target = data.get("target") or "_self"
        if target == "external" or to_bool(data.get("external")):
            target = "_blank"
        return {"url": url, "title": str(data.get("title") or "").strip(), "target": target}

    def validate(self, field, value):
        data = self.format_value(field, value)
        url = str(data.get("url") or "").strip()
        if not url or url.startswith("/") or url.startswith("#"):
            return ValidationResult.success()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https", "mailto", "tel") or not (parsed.netloc or parsed.path):
            return ValidationResult.failure("Please enter a valid URL")
        return ValidationResult.success()

    def render_display(self, field, value, context):
        data = self.format_value(field, value)
        url = data.get("url")
        if not url:
            return self.empty_display()
        target = data.get("target") or "_self"
        link = (
            Html.element("a")
            .class_("field-display", "field-display--link")
            .attr("href", url)
            .attr("target", target if target != "_self" else None)
            .attr("rel", "noopener noreferrer" if target == "_blank" else None)
            .text(data.get("title") or url)
        )
        return self.result(link)


class GeolocationWidget(BaseWidget):
    id = "geolocation"
    label = "Geolocation"
    category = "Special"
    icon = "\U0001F4CD"
    priority = 100
    supported_types = ["geolocation"]
    css_files = ["/css/fields/geolocation.css"]
    js_files = ["/js/fields/geolocation.js"]
    settings_schema = {
        "show_map": {"type": "boolean", "label": "Show Map", "default": True},
        "default_lat": {"type": "number", "label": "Default Latitude", "default": 0},
        "default_lng": {"type": "number", "label": "Default Longitude", "default": 0},
        "zoom": {"type": "integer", "label": "Zoom", "default": 13, "min": 1, "max": 20},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        name = self.base_name(field, context)
        data = _as_dict(value)

        wrapper = Html.div().class_("field-geolocation").data("field-id", field_id).data("zoom", settings.get_int("zoom"))
        coordinates = Html.div().class_("field-geolocation__coordinates")
        for part, label in (("lat", "Latitude"), ("lng", "Longitude")):
            coordinates.child(
                Html.label()
                .class_("field-geolocation__label")
                .text(label)
                .child(
                    Html.input("number")
                    .id(field_id if part == "lat" else f"{field_id}_lng")
                    .name(f"{name}[{part}]")
                    .class_(f"field-geolocation__{part}")
                    .attr("step", "any")
                    .required(field.required)
                    .disabled(context.disabled)
                    .value(data.get(part))
                )
            )
        wrapper.child(coordinates)
        if settings.get_bool("show_map", True):
            wrapper.child(
                Html.div()
                .class_("field-geolocation__map")
                .id(f"{field_id}_map")
                .data("default-lat", settings.get("default_lat"))
                .data("default-lng", settings.get("default_lng"))
            )
        return wrapper

    def init_script(self, field, element_id):
        if not self.get_settings(field).get_bool("show_map", True):
            return None
        return f"CmsGeolocation.init('{element_id}');"

    def prepare_value(self, field, value):
        data = _as_dict(value)
        if is_empty(data.get("lat")) or is_empty(data.get("lng")):
            return None
        try:
            return {"lat": float(data["lat"]), "lng": float(data["lng"])}
        except (TypeError, ValueError):
            return data

    def validate(self, field, value):
        data = _as_dict(value)
        if is_empty(data.get("lat")) and is_empty(data.get("lng")):
            return ValidationResult.success()
        try:
            lat = float(data.get("lat"))
            lng = float(data.get("lng"))
        except (TypeError, ValueError):
            return ValidationResult.failure("Invalid coordinate format")

        errors = []
        if not -90 <= lat <= 90:
            errors.append("Latitude must be between -90 and 90")
        if not -180 <= lng <= 180:
            errors.append("Longitude must be between -180 and 180")
        return ValidationResult.failure(errors)

    def render_display(self, field, value, context):
        data = _as_dict(value)
        if is_empty(data.get("lat")) or is_empty(data.get("lng")):
            return self.empty_display()
        lat, lng = data["lat"], data["lng"]
        link = (
            Html.element("a")
            .class_("field-display", "field-display--geolocation")
            .attr("href", f"https://maps.google.com/?q={lat},{lng}")
            .attr("target", "_blank")
            .attr("rel", "noopener noreferrer")
            .text(f"{lat}, {lng}")
        )
        return self.result(link)


class AddressWidget(BaseWidget):
    id = "address"
    label = "Address"
    category = "Special"
    icon = "\U0001F3E0"
    priority = 100
    supported_types = ["address"]
    settings_schema = {
        "show_street2": {"type": "boolean", "label": "Show Address Line 2", "default": True},
        "default_country": {"type": "string", "label": "Default Country"},
    }

    def _parts(self, field):
        show_street2 = self.get_settings(field).get_bool("show_street2", True)
        return [(part, label) for part, label in ADDRESS_PARTS if part != "street2" or show_street2]

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        name = self.base_name(field, context)
        data = _as_dict(value)
        if not data.get("country") and settings.get_string("default_country"):
            data["country"] = settings.get_string("default_country")

        wrapper = Html.div().class_("field-address")
        for part, label in self._parts(field):
            part_id = field_id if part == "street1" else f"{field_id}_{part}"
            wrapper.child(
                Html.div()
                .class_("field-address__row", f"field-address__row--{part}")
                .child(Html.label().attr("for", part_id).text(label))
                .child(
                    Html.input("text")
                    .id(part_id)
                    .name(f"{name}[{part}]")
                    .class_(f"field-address__{part}")
                    .required(field.required and part in ("street1", "city"))
                    .disabled(context.disabled)
                    .value(data.get(part))
                )
            )
        return wrapper

    def prepare_value(self, field, value):
        data = _as_dict(value)
        address = {part: str(data.get(part) or "").strip() for part, _ in ADDRESS_PARTS}
        if not any(address.values()):
            return None
        return address

    def render_display(self, field, value, context):
        data = _as_dict(value)
        if not any(str(data.get(part) or "").strip() for part, _ in ADDRESS_PARTS):
            return self.empty_display()

        locality = " ".join(
            part for part in (
                str(data.get("city") or "").strip() + ("," if data.get("city") and data.get("state") else ""),
                str(data.get("state") or "").strip(),
                str(data.get("postal_code") or "").strip(),
            ) if part
        )
        lines = [data.get("street1"), data.get("street2"), locality, data.get("country")]

        element = Html.element("address").class_("field-display", "field-display--address")
        first = True
        for line in lines:
            if not line:
                continue
            if not first:
                element.child(Html.element("br"))
            element.text(line)
            first = False
        return self.result(element)
