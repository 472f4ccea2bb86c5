"""
Field types supported by the CMS.

Each type knows its label, category, default widget, storage column and
whether it holds several values by nature.
"""

from enum import Enum
from typing import Dict, List


class FieldType(str, Enum):
    """Enumeration of field types."""

    # Text
    STRING = "string"
    TEXT = "text"
    TEXTAREA = "textarea"
    HTML = "html"
    MARKDOWN = "markdown"

    # Numbers
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"

    # Boolean
    BOOLEAN = "boolean"

    # Date/Time
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"

    # Selection
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    MULTISELECT = "multiselect"

    # Media
    IMAGE = "image"
    FILE = "file"
    GALLERY = "gallery"
    VIDEO = "video"

    # References
    ENTITY_REFERENCE = "entity_reference"
    TAXONOMY_REFERENCE = "taxonomy_reference"
    USER_REFERENCE = "user_reference"
    BLOCK_REFERENCE = "block_reference"

    # Special
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    COLOR = "color"
    SLUG = "slug"
    JSON = "json"
    CODE = "code"
    LINK = "link"
    ADDRESS = "address"
    GEOLOCATION = "geolocation"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS.get(self, "")

    @property
    def category(self) -> str:
        for category, types in CATEGORIES.items():
            if self in types:
                return category
        return "Other"

    @property
    def default_widget(self) -> str:
        return _DEFAULT_WIDGETS[self]

    @property
    def sql_type(self) -> str:
        return _SQL_TYPES[self]

    @property
    def storage_column(self) -> str:
        """Name of the ``field_values`` column holding values of this type."""
        return _STORAGE_COLUMNS[self]

    @property
    def supports_multiple(self) -> bool:
        return self in (FieldType.GALLERY, FieldType.MULTISELECT, FieldType.CHECKBOX)

    @classmethod
    def grouped(cls) -> Dict[str, List["FieldType"]]:
        """Field types grouped by category, in display order."""
        return {category: list(types) for category, types in CATEGORIES.items()}

    @classmethod
    def choices(cls) -> Dict[str, str]:
        """Map of type value to label, for select options."""
        return {field_type.value: field_type.label for field_type in cls}


CATEGORIES: Dict[str, List[FieldType]] = {
    "Text": [FieldType.STRING, FieldType.TEXT, FieldType.TEXTAREA, FieldType.HTML, FieldType.MARKDOWN],
    "Number": [FieldType.INTEGER, FieldType.FLOAT, FieldType.DECIMAL],
    "Date/Time": [FieldType.DATE, FieldType.DATETIME, FieldType.TIME],
    "Selection": [
        FieldType.BOOLEAN,
        FieldType.SELECT,
        FieldType.RADIO,
        FieldType.CHECKBOX,
        FieldType.MULTISELECT,
    ],
    "Media": [FieldType.IMAGE, FieldType.FILE, FieldType.GALLERY, FieldType.VIDEO],
    "Reference": [
        FieldType.ENTITY_REFERENCE,
        FieldType.TAXONOMY_REFERENCE,
        FieldType.USER_REFERENCE,
        FieldType.BLOCK_REFERENCE,
    ],
    "Special": [
        FieldType.EMAIL,
        FieldType.URL,
        FieldType.PHONE,
        FieldType.COLOR,
        FieldType.SLUG,
        FieldType.CODE,
        FieldType.JSON,
        FieldType.LINK,
        FieldType.ADDRESS,
        FieldType.GEOLOCATION,
    ],
}

_LABELS = {
    FieldType.STRING: "Text (single line)",
    FieldType.TEXT: "Text (plain)",
    FieldType.TEXTAREA: "Text (multiline)",
    FieldType.HTML: "HTML (formatted)",
    FieldType.MARKDOWN: "Markdown",
    FieldType.INTEGER: "Integer",
    FieldType.FLOAT: "Decimal",
    FieldType.DECIMAL: "Decimal (precise)",
    FieldType.BOOLEAN: "Boolean (Yes/No)",
    FieldType.DATE: "Date",
    FieldType.DATETIME: "Date and Time",
    FieldType.TIME: "Time",
    FieldType.SELECT: "Select list",
    FieldType.RADIO: "Radio buttons",
    FieldType.CHECKBOX: "Checkboxes",
    FieldType.MULTISELECT: "Multi-select",
    FieldType.IMAGE: "Image",
    FieldType.FILE: "File",
    FieldType.GALLERY: "Image Gallery",
    FieldType.VIDEO: "Video",
    FieldType.ENTITY_REFERENCE: "Content Reference",
    FieldType.TAXONOMY_REFERENCE: "Taxonomy Term",
    FieldType.USER_REFERENCE: "User Reference",
    FieldType.BLOCK_REFERENCE: "Block Reference",
    FieldType.EMAIL: "Email",
    FieldType.URL: "URL",
    FieldType.PHONE: "Phone",
    FieldType.COLOR: "Color",
    FieldType.SLUG: "URL Slug",
    FieldType.JSON: "JSON",
    FieldType.CODE: "Code",
    FieldType.LINK: "Link",
    FieldType.ADDRESS: "Address",
    FieldType.GEOLOCATION: "Geolocation",
}

_DESCRIPTIONS = {
    FieldType.STRING: "A simple single-line text field",
    FieldType.TEXT: "A multi-line text area",
    FieldType.TEXTAREA: "A multi-line text area",
    FieldType.HTML: "Rich text editor with HTML support",
    FieldType.MARKDOWN: "Markdown editor with preview",
    FieldType.INTEGER: "Whole number input",
    FieldType.FLOAT: "Decimal number input",
    FieldType.DECIMAL: "Decimal number input",
    FieldType.BOOLEAN: "True/False toggle or checkbox",
    FieldType.DATE: "Date picker",
    FieldType.DATETIME: "Date and time picker",
    FieldType.TIME: "Time picker",
    FieldType.SELECT: "Dropdown select list",
    FieldType.RADIO: "Radio button group",
    FieldType.CHECKBOX: "Checkboxes for multiple selections",
    FieldType.MULTISELECT: "Multi-select dropdown",
    FieldType.IMAGE: "Image upload",
    FieldType.FILE: "File upload",
    FieldType.GALLERY: "Multiple image gallery",
    FieldType.VIDEO: "Video upload or embed",
    FieldType.ENTITY_REFERENCE: "Link to other content items",
    FieldType.TAXONOMY_REFERENCE: "Tag content with taxonomy terms",
    FieldType.USER_REFERENCE: "Link to a user account",
    FieldType.EMAIL: "Email address with validation",
    FieldType.URL: "Website URL with validation",
    FieldType.PHONE: "Phone number",
    FieldType.COLOR: "Color picker",
    FieldType.SLUG: "URL-friendly identifier",
    FieldType.JSON: "Raw JSON data editor",
    FieldType.CODE: "Code editor with syntax highlighting",
    FieldType.LINK: "Link with title and target",
    FieldType.ADDRESS: "Physical address fields",
    FieldType.GEOLOCATION: "Map coordinates",
}

_DEFAULT_WIDGETS = {
    FieldType.STRING: "text_input",
    FieldType.TEXT: "textarea",
    FieldType.TEXTAREA: "textarea",
    FieldType.HTML: "wysiwyg",
    FieldType.MARKDOWN: "markdown",
    FieldType.INTEGER: "number",
    FieldType.FLOAT: "number",
    FieldType.DECIMAL: "decimal",
    FieldType.BOOLEAN: "switch",
    FieldType.DATE: "date",
    FieldType.DATETIME: "datetime",
    FieldType.TIME: "time",
    FieldType.SELECT: "select",
    FieldType.RADIO: "radio",
    FieldType.CHECKBOX: "checkboxes",
    FieldType.MULTISELECT: "checkboxes",
    FieldType.IMAGE: "image",
    FieldType.FILE: "file",
    FieldType.GALLERY: "gallery",
    FieldType.VIDEO: "video",
    FieldType.ENTITY_REFERENCE: "entity_reference",
    FieldType.TAXONOMY_REFERENCE: "taxonomy",
    FieldType.USER_REFERENCE: "user_reference",
    FieldType.BLOCK_REFERENCE: "entity_reference",
    FieldType.EMAIL: "email",
    FieldType.URL: "url",
    FieldType.PHONE: "phone",
    FieldType.COLOR: "color",
    FieldType.SLUG: "slug",
    FieldType.JSON: "json",
    FieldType.CODE: "code",
    FieldType.LINK: "link_field",
    FieldType.ADDRESS: "address",
    FieldType.GEOLOCATION: "geolocation",
}

_SQL_TYPES = {
    FieldType.STRING: "VARCHAR(255)",
    FieldType.EMAIL: "VARCHAR(255)",
    FieldType.URL: "VARCHAR(255)",
    FieldType.PHONE: "VARCHAR(255)",
    FieldType.COLOR: "VARCHAR(255)",
    FieldType.SLUG: "VARCHAR(255)",
    FieldType.TEXT: "TEXT",
    FieldType.TEXTAREA: "TEXT",
    FieldType.HTML: "TEXT",
    FieldType.MARKDOWN: "TEXT",
    FieldType.CODE: "TEXT",
    FieldType.INTEGER: "INTEGER",
    FieldType.ENTITY_REFERENCE: "INTEGER",
    FieldType.TAXONOMY_REFERENCE: "INTEGER",
    FieldType.USER_REFERENCE: "INTEGER",
    FieldType.BLOCK_REFERENCE: "INTEGER",
    FieldType.IMAGE: "VARCHAR(500)",
    FieldType.FILE: "VARCHAR(500)",
    FieldType.VIDEO: "VARCHAR(500)",
    FieldType.FLOAT: "FLOAT",
    FieldType.DECIMAL: "DECIMAL(15,4)",
    FieldType.BOOLEAN: "BOOLEAN",
    FieldType.DATE: "DATE",
    FieldType.DATETIME: "DATETIME",
    FieldType.TIME: "TIME",
    FieldType.SELECT: "VARCHAR(100)",
    FieldType.RADIO: "VARCHAR(100)",
    FieldType.CHECKBOX: "JSON",
    FieldType.MULTISELECT: "JSON",
    FieldType.GALLERY: "JSON",
    FieldType.JSON: "JSON",
    FieldType.LINK: "JSON",
    FieldType.ADDRESS: "JSON",
    FieldType.GEOLOCATION: "JSON",
}

_STORAGE_COLUMNS = {
    FieldType.STRING: "value_string",
    FieldType.EMAIL: "value_string",
    FieldType.URL: "value_string",
    FieldType.PHONE: "value_string",
    FieldType.SLUG: "value_string",
    FieldType.COLOR: "value_string",
    FieldType.SELECT: "value_string",
    FieldType.RADIO: "value_string",
    FieldType.TIME: "value_string",
    FieldType.TEXT: "value_text",
    FieldType.TEXTAREA: "value_text",
    FieldType.HTML: "value_text",
    FieldType.MARKDOWN: "value_text",
    FieldType.CODE: "value_text",
    FieldType.INTEGER: "value_int",
    FieldType.ENTITY_REFERENCE: "value_int",
    FieldType.TAXONOMY_REFERENCE: "value_int",
    FieldType.USER_REFERENCE: "value_int",
    FieldType.BLOCK_REFERENCE: "value_int",
    FieldType.IMAGE: "value_string",
    FieldType.FILE: "value_string",
    FieldType.VIDEO: "value_string",
    FieldType.FLOAT: "value_decimal",
    FieldType.DECIMAL: "value_decimal",
    FieldType.BOOLEAN: "value_boolean",
    FieldType.DATE: "value_date",
    FieldType.DATETIME: "value_datetime",
    FieldType.CHECKBOX: "value_json",
    FieldType.MULTISELECT: "value_json",
    FieldType.GALLERY: "value_json",
    FieldType.JSON: "value_json",
    FieldType.LINK: "value_json",
    FieldType.ADDRESS: "value_json",
    FieldType.GEOLOCATION: "value_json",
}
