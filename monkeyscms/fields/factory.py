"""
Default widget registry construction.
"""

from typing import Dict, Optional

from .registry import WidgetRegistry
from .types import FieldType
from .validation import FieldValidator
from .widgets import CORE_WIDGETS

# Field types without a FieldType member that still have a natural widget
EXTRA_TYPE_DEFAULTS: Dict[str, str] = {
    "repeater": "repeater",
}


def create_default_registry(validator: Optional[FieldValidator] = None) -> WidgetRegistry:
    """
    Create a registry with the core widgets and the default widget per type.

    Args:
        validator: Validator used for field rules, a new one when omitted

    Returns:
        Configured WidgetRegistry
    """
    registry = WidgetRegistry(validator)
    registry.register_many(widget_class() for widget_class in CORE_WIDGETS)

    defaults = {field_type.value: field_type.default_widget for field_type in FieldType}
    defaults.update(EXTRA_TYPE_DEFAULTS)
    registry.set_type_defaults(defaults)
    return registry


_default_registry: Optional[WidgetRegistry] = None


def get_widget_registry() -> WidgetRegistry:
    """Shared registry for the application, created on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = create_default_registry()
    return _default_registry
