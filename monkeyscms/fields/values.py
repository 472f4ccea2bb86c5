"""
Value transformers.

A transformer converts a field value between three representations:
what a form input shows (``to_form``), what is persisted
(``to_storage``) and what a reader sees (``to_display``).
"""

import json
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

TRUE_STRINGS = {"1", "true", "yes", "on"}


def is_empty(value: Any) -> bool:
    """None, empty strings and empty containers count as empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


class ValueTransformer(ABC):
    """Converts values between form, storage and display form."""

    @abstractmethod
    def to_form(self, value: Any) -> Any:
        """Convert a stored value to what an input shows."""

    @abstractmethod
    def to_storage(self, value: Any) -> Any:
        """Convert a submitted value to what is persisted."""

    def to_display(self, value: Any) -> str:
        """Convert a stored value to a readable string."""
        if is_empty(value):
            return ""
        return str(value)


class StringTransformer(ValueTransformer):
    def __init__(self, trim: bool = True, max_length: Optional[int] = None):
        self.trim = trim
        self.max_length = max_length

    def to_form(self, value: Any) -> str:
        return "" if value is None else str(value)

    def to_storage(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value)
        if self.trim:
            text = text.strip()
        if self.max_length is not None:
            text = text[: self.max_length]
        return text if text != "" else None


class IntegerTransformer(ValueTransformer):
    def to_form(self, value: Any) -> str:
        return "" if is_empty(value) else str(value)

    def to_storage(self, value: Any) -> Optional[int]:
        if is_empty(value):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None


class FloatTransformer(ValueTransformer):
    def __init__(self, decimals: Optional[int] = None):
        self.decimals = decimals

    def to_form(self, value: Any) -> str:
        if is_empty(value):
            return ""
        if self.decimals is not None:
            return f"{float(value):.{self.decimals}f}"
        return str(value)

    def to_storage(self, value: Any) -> Optional[float]:
        if is_empty(value):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if self.decimals is not None:
            number = round(number, self.decimals)
        return number


class BooleanTransformer(ValueTransformer):
    def __init__(self, true_label: str = "Yes", false_label: str = "No"):
        self.true_label = true_label
        self.false_label = false_label

    def to_form(self, value: Any) -> str:
        return "1" if to_bool(value) else "0"

    def to_storage(self, value: Any) -> bool:
        return to_bool(value)

    def to_display(self, value: Any) -> str:
        return self.true_label if to_bool(value) else self.false_label


class DateTransformer(ValueTransformer):
    """Dates are exchanged as ``YYYY-MM-DD`` and stored as ``date``."""

    def __init__(self, display_format: str = "%b %d, %Y"):
        self.display_format = display_format

    @staticmethod
    def parse(value: Any) -> Optional[date]:
        if is_empty(value):
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value).strip()[:10])
        except ValueError:
            return None

    def to_form(self, value: Any) -> str:
        parsed = self.parse(value)
        return parsed.isoformat() if parsed else ""

    def to_storage(self, value: Any) -> Optional[date]:
        return self.parse(value)

    def to_display(self, value: Any) -> str:
        parsed = self.parse(value)
        return parsed.strftime(self.display_format) if parsed else ""


class DateTimeTransformer(ValueTransformer):
    """Date-times are shown as ``YYYY-MM-DDTHH:MM`` and stored as ``datetime``."""

    FORM_FORMAT = "%Y-%m-%dT%H:%M"

    def __init__(self, display_format: str = "%b %d, %Y %H:%M"):
        self.display_format = display_format

    @staticmethod
    def parse(value: Any) -> Optional[datetime]:
        if is_empty(value):
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time())
        try:
            return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None

    def to_form(self, value: Any) -> str:
        parsed = self.parse(value)
        return parsed.strftime(self.FORM_FORMAT) if parsed else ""

    def to_storage(self, value: Any) -> Optional[datetime]:
        parsed = self.parse(value)
        return parsed.replace(tzinfo=None) if parsed else None

    def to_display(self, value: Any) -> str:
        parsed = self.parse(value)
        return parsed.strftime(self.display_format) if parsed else ""


class JsonTransformer(ValueTransformer):
    """Structured values are stored decoded and edited as pretty JSON."""

    def to_form(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, indent=2, ensure_ascii=False)

    def to_storage(self, value: Any) -> Any:
        if is_empty(value):
            return None
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return None
        return value

    def to_display(self, value: Any) -> str:
        if value is None:
            return ""
        return json.dumps(value, ensure_ascii=False)


class TransformerChain(ValueTransformer):
    """
    Applies several transformers in sequence.

    ``to_form`` runs front to back, ``to_storage`` back to front and
    ``to_display`` is delegated to the last transformer.
    """

    def __init__(self, *transformers: ValueTransformer):
        self.transformers: List[ValueTransformer] = list(transformers)

    def to_form(self, value: Any) -> Any:
        for transformer in self.transformers:
            value = transformer.to_form(value)
        return value

    def to_storage(self, value: Any) -> Any:
        for transformer in reversed(self.transformers):
            value = transformer.to_storage(value)
        return value

    def to_display(self, value: Any) -> str:
        if not self.transformers:
            return super().to_display(value)
        return self.transformers[-1].to_display(value)


_STRUCTURED_TYPES = {
    "checkbox",
    "multiselect",
    "gallery",
    "json",
    "link",
    "address",
    "geolocation",
    "repeater",
}

_INTEGER_TYPES = {
    "integer",
    "entity_reference",
    "taxonomy_reference",
    "user_reference",
    "block_reference",
}


def transformer_for(field_type: str, settings: Optional[Dict[str, Any]] = None) -> ValueTransformer:
    """
    Build the transformer for a field type.

    Args:
        field_type: Field type value
        settings: Field settings (``decimals``, ``max_length``, labels)

    Returns:
        Transformer instance
    """
    settings = settings or {}
    if field_type in _INTEGER_TYPES:
        return IntegerTransformer()
    if field_type in ("float", "decimal"):
        decimals = settings.get("decimals", 2 if field_type == "decimal" else None)
        return FloatTransformer(decimals=int(decimals) if decimals is not None else None)
    if field_type == "boolean":
        return BooleanTransformer(
            true_label=settings.get("on_label", "Yes"),
            false_label=settings.get("off_label", "No"),
        )
    if field_type == "date":
        return DateTransformer()
    if field_type == "datetime":
        return DateTimeTransformer()
    if field_type in _STRUCTURED_TYPES:
        return JsonTransformer()
    max_length = settings.get("max_length")
    return StringTransformer(
        trim=field_type not in ("code", "html", "markdown"),
        max_length=int(max_length) if max_length else None,
    )
