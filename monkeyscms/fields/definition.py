"""
Field definition entity.

A field definition describes one configurable field: its type, widget,
cardinality, settings and validation rules. Definitions are attached to
entity types (nodes, blocks, terms) and drive both form rendering and
value storage.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..helpers import machine_name as make_machine_name
from .types import FieldType
from .values import is_empty, transformer_for

FIELD_PREFIX = "field_"
UNLIMITED = -1


@dataclass
class FieldDefinition:
    """
    Definition of a configurable field.

    ``machine_name`` is derived from ``name`` when empty and always carries
    the ``field_`` prefix. ``cardinality`` of -1 means unlimited values.
    """

    name: str
    field_type: str = FieldType.STRING.value
    machine_name: str = ""
    id: Optional[int] = None
    description: Optional[str] = None
    help_text: Optional[str] = None
    widget: Optional[str] = None
    required: bool = False
    multiple: bool = False
    cardinality: int = 1
    default_value: Any = None
    settings: Dict[str, Any] = field(default_factory=dict)
    validation: Dict[str, Any] = field(default_factory=dict)
    widget_settings: Dict[str, Any] = field(default_factory=dict)
    weight: int = 0
    searchable: bool = False
    translatable: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Normalize type and machine name."""
        if isinstance(self.field_type, FieldType):
            self.field_type = self.field_type.value
        self.machine_name = make_machine_name(self.machine_name or self.name, prefix=FIELD_PREFIX)
        if not self.name:
            raise ValueError("Field name is required")
        if self.cardinality == 0 or self.cardinality < UNLIMITED:
            raise ValueError(f"Invalid cardinality: {self.cardinality}")
        # A multiple field left at the single-value default accepts any number of values
        if self.multiple and self.cardinality == 1:
            self.cardinality = UNLIMITED

    @property
    def label(self) -> str:
        return self.name

    @property
    def type_enum(self) -> Optional[FieldType]:
        """The FieldType for this field, None for widget-only types like ``repeater``."""
        try:
            return FieldType(self.field_type)
        except ValueError:
            return None

    @property
    def is_multi_valued(self) -> bool:
        """Whether stored values come back as a list."""
        return self.multiple or self.cardinality > 1 or self.cardinality == UNLIMITED

    def supports_multiple(self) -> bool:
        field_type = self.type_enum
        return self.multiple or (field_type is not None and field_type.supports_multiple)

    def get_validation_rules(self) -> Dict[str, Any]:
        """Explicit rules merged with the ones implied by ``required`` and the type."""
        rules = dict(self.validation)
        if self.required:
            rules["required"] = True

        field_type = self.type_enum
        if field_type == FieldType.EMAIL:
            rules["email"] = True
        elif field_type == FieldType.URL:
            rules["url"] = True
        elif field_type == FieldType.INTEGER:
            rules["integer"] = True
        elif field_type in (FieldType.FLOAT, FieldType.DECIMAL):
            rules["numeric"] = True
        return rules

    def get_options(self) -> Dict[str, Any]:
        """Options for selection fields as ``{value: label}``."""
        options = self.settings.get("options", {})
        if isinstance(options, list):
            return {str(option): str(option) for option in options}
        return dict(options)

    def widget_settings_merged(self) -> Dict[str, Any]:
        """Field settings overlaid by widget-specific settings."""
        return {**self.settings, **self.widget_settings}

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self.widget_settings_merged().get(key, default)

    def cast_value(self, value: Any) -> Any:
        """Convert a raw value to its Python representation."""
        if value is None:
            return None
        transformer = transformer_for(self.field_type, self.settings)
        if self.is_multi_valued and isinstance(value, (list, tuple)):
            return [transformer.to_storage(item) for item in value]
        return transformer.to_storage(value)

    def serialize_value(self, value: Any) -> Any:
        """Convert a Python value to its form/JSON representation."""
        if value is None:
            return None
        transformer = transformer_for(self.field_type, self.settings)
        if self.is_multi_valued and isinstance(value, (list, tuple)):
            return [transformer.to_form(item) for item in value]
        return transformer.to_form(value)

    def validate_value(self, value: Any) -> List[str]:
        """Validate a value with the standard validator, returning error messages."""
        from .validation import FieldValidator

        return FieldValidator().validate(self, value).errors

    def is_empty_value(self, value: Any) -> bool:
        return is_empty(value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDefinition":
        """
        Build a definition from a plain dict.

        Accepts ``type`` as an alias of ``field_type``, ``label`` as an alias
        of ``name`` and ``default`` as an alias of ``default_value``.
        """
        return cls(
            id=data.get("id"),
            name=data.get("name") or data.get("label") or data.get("machine_name", ""),
            machine_name=data.get("machine_name", ""),
            field_type=data.get("field_type") or data.get("type") or FieldType.STRING.value,
            description=data.get("description"),
            help_text=data.get("help_text"),
            widget=data.get("widget"),
            required=bool(data.get("required", False)),
            multiple=bool(data.get("multiple", False)),
            cardinality=int(data.get("cardinality", 1)),
            default_value=data.get("default_value", data.get("default")),
            settings=dict(data.get("settings") or {}),
            validation=dict(data.get("validation") or {}),
            widget_settings=dict(data.get("widget_settings") or {}),
            weight=int(data.get("weight", 0)),
            searchable=bool(data.get("searchable", False)),
            translatable=bool(data.get("translatable", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "machine_name": self.machine_name,
            "field_type": self.field_type,
            "description": self.description,
            "help_text": self.help_text,
            "widget": self.widget,
            "required": self.required,
            "multiple": self.multiple,
            "cardinality": self.cardinality,
            "default_value": self.default_value,
            "settings": self.settings,
            "validation": self.validation,
            "widget_settings": self.widget_settings,
            "weight": self.weight,
            "searchable": self.searchable,
            "translatable": self.translatable,
        }
