"""
Field and widget rendering pipeline.

Field definitions, value transformers, validation, widgets, the widget
registry, form building and field value persistence.
"""

from .definition import FieldDefinition
from .factory import create_default_registry, get_widget_registry
from .form import FormBuilder, FormResult
from .manager import FieldManager
from .registry import WidgetRegistry
from .rendering import AssetCollection, RenderContext, RenderResult
from .repository import FieldRepository
from .settings import FieldSettings
from .storage import FieldValueStorage
from .types import FieldType
from .validation import FieldValidator, ValidationResult

__all__ = [
    "AssetCollection",
    "FieldDefinition",
    "FieldManager",
    "FieldRepository",
    "FieldSettings",
    "FieldType",
    "FieldValidator",
    "FieldValueStorage",
    "FormBuilder",
    "FormResult",
    "RenderContext",
    "RenderResult",
    "ValidationResult",
    "WidgetRegistry",
    "create_default_registry",
    "get_widget_registry",
]
