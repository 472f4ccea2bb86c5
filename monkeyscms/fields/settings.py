"""
Typed access to widget and field settings.
"""

import json
from typing import Any, Dict, List, Optional


class FieldSettings:
    """
    Immutable settings bag checked against a schema.

    A schema maps setting keys to definitions such as
    ``{"type": "integer", "default": 5, "min": 1, "required": False}``.
    Missing keys take the schema default.
    """

    def __init__(self, settings: Optional[Dict[str, Any]] = None, schema: Optional[Dict[str, Dict[str, Any]]] = None):
        self._schema = dict(schema or {})
        self._settings = self._apply_defaults(dict(settings or {}), self._schema)

    @staticmethod
    def _apply_defaults(settings: Dict[str, Any], schema: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        for key, definition in schema.items():
            if settings.get(key) is None and definition.get("default") is not None:
                settings[key] = definition["default"]
        return settings

    # ==================== GETTERS ====================

    def get(self, key: str, default: Any = None) -> Any:
        value = self._settings.get(key)
        return default if value is None else value

    def get_string(self, key: str, default: str = "") -> str:
        value = self.get(key, default)
        return value if isinstance(value, str) else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    def get_list(self, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        """Return a list setting, decoding JSON strings."""
        default = default if default is not None else []
        value = self.get(key, default)
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return default
            return decoded if isinstance(decoded, list) else default
        if isinstance(value, dict):
            return list(value.items())
        return list(value) if isinstance(value, (list, tuple)) else default

    def get_dict(self, key: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        default = default if default is not None else {}
        value = self.get(key, default)
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return default
            return decoded if isinstance(decoded, dict) else default
        return dict(value) if isinstance(value, dict) else default

    def has(self, key: str) -> bool:
        return self._settings.get(key) is not None

    def all(self) -> Dict[str, Any]:
        return dict(self._settings)

    @property
    def schema(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._schema)

    # ==================== TRANSFORMATIONS ====================

    def with_value(self, key: str, value: Any) -> "FieldSettings":
        return FieldSettings({**self._settings, key: value}, self._schema)

    def without(self, key: str) -> "FieldSettings":
        settings = dict(self._settings)
        settings.pop(key, None)
        return FieldSettings(settings, self._schema)

    def merge(self, settings: Dict[str, Any]) -> "FieldSettings":
        return FieldSettings({**self._settings, **settings}, self._schema)

    def with_schema(self, schema: Dict[str, Dict[str, Any]]) -> "FieldSettings":
        return FieldSettings(self._settings, schema)

    # ==================== VALIDATION ====================

    def validate(self) -> Dict[str, str]:
        """
        Check settings against the schema.

        Returns:
            Mapping of setting key to error message, empty when valid
        """
        errors: Dict[str, str] = {}
        for key, definition in self._schema.items():
            value = self._settings.get(key)
            if value is None:
                if definition.get("required"):
                    errors[key] = f"Setting '{key}' is required"
                continue

            type_error = self._validate_type(key, value, definition.get("type", "string"))
            if type_error:
                errors[key] = type_error
                continue

            if _is_number(value):
                if "min" in definition and float(value) < definition["min"]:
                    errors[key] = f"Setting '{key}' must be at least {definition['min']}"
                if "max" in definition and float(value) > definition["max"]:
                    errors[key] = f"Setting '{key}' must be at most {definition['max']}"

            options = definition.get("options")
            if options and str(value) not in {str(option) for option in options}:
                errors[key] = f"Setting '{key}' must be one of: {', '.join(str(o) for o in options)}"
        return errors

    @staticmethod
    def _validate_type(key: str, value: Any, setting_type: str) -> Optional[str]:
        if setting_type == "string" and not isinstance(value, str):
            return f"Setting '{key}' must be a string"
        if setting_type in ("integer", "int"):
            if isinstance(value, bool) or not (
                isinstance(value, int) or (isinstance(value, str) and value.isdigit())
            ):
                return f"Setting '{key}' must be an integer"
        if setting_type in ("float", "number") and not _is_number(value):
            return f"Setting '{key}' must be a number"
        if setting_type in ("boolean", "bool") and value not in (True, False, 0, 1, "0", "1"):
            return f"Setting '{key}' must be a boolean"
        if setting_type == "array" and not isinstance(value, (list, dict)):
            return f"Setting '{key}' must be an array"
        if setting_type == "json" and not isinstance(value, (list, dict)):
            try:
                json.loads(value)
            except (TypeError, ValueError):
                return f"Setting '{key}' must be valid JSON"
        return None

    def to_json(self) -> str:
        return json.dumps(self._settings)

    def __repr__(self) -> str:
        return f"FieldSettings({self._settings!r})"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True
