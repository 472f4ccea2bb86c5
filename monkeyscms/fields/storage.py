"""
Entity-attribute-value storage for field values.

Each value is one ``field_values`` row keyed by field, entity type, entity
id, language and delta. The column a value lands in depends on the field
type (see ``FieldType.storage_column``); types without a FieldType member
such as ``repeater`` are stored as JSON.
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from ..exceptions import NotFoundException
from ..logging_config import get_logger
from ..models import FieldRevision, FieldValue
from .definition import FieldDefinition
from .repository import FieldRepository
from .types import FieldType
from .values import DateTimeTransformer, DateTransformer, is_empty, to_bool

logger = get_logger(__name__)

VALUE_COLUMNS = (
    "value_string",
    "value_text",
    "value_int",
    "value_decimal",
    "value_boolean",
    "value_date",
    "value_datetime",
    "value_json",
)

FieldRef = Union[FieldDefinition, int, str]


def storage_column(field: FieldDefinition) -> str:
    field_type = field.type_enum
    return field_type.storage_column if field_type is not None else "value_json"


def to_column_value(column: str, value: Any) -> Any:
    """Convert a prepared value to what the given column holds, None when it does not fit."""
    if value is None:
        return None
    if column in ("value_string", "value_text"):
        return str(value)
    if column == "value_int":
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    if column == "value_decimal":
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if column == "value_boolean":
        return to_bool(value)
    if column == "value_date":
        return DateTransformer.parse(value)
    if column == "value_datetime":
        return DateTimeTransformer.parse(value)
    return value


def _column_values(field: FieldDefinition, value: Any) -> Dict[str, Any]:
    row = dict.fromkeys(VALUE_COLUMNS)
    column = storage_column(field)
    converted = to_column_value(column, value)
    if converted is None and column != "value_json":
        # Values that do not fit the typed column are kept as JSON
        row["value_json"] = value
    else:
        row[column] = converted
    return row


def _row_value(field: FieldDefinition, row: Any) -> Any:
    value = getattr(row, storage_column(field))
    if value is not None:
        return value
    return row.value_json


class FieldValueStorage:
    """
    Reads and writes field values for entities.

    Multi-valued fields (``multiple`` or cardinality other than 1) come back
    as lists ordered by delta; single-valued fields come back as the value
    or None.
    """

    def __init__(self, db: Session, repository: Optional[FieldRepository] = None):
        self.db = db
        self.repository = repository or FieldRepository(db)

    def _field(self, field: FieldRef) -> FieldDefinition:
        if isinstance(field, FieldDefinition):
            return field
        if isinstance(field, int):
            definition = self.repository.find(field)
        else:
            definition = self.repository.find_by_machine_name(field)
        if definition is None:
            raise NotFoundException("Field", field)
        return definition

    @staticmethod
    def _collect(field: FieldDefinition, rows: Iterable[Any]) -> Any:
        values = [_row_value(field, row) for row in rows]
        if field.is_multi_valued:
            return values
        return values[0] if values else None

    # ==================== READ ====================

    def get_value(self, field: FieldRef, entity_type: str, entity_id: int, langcode: str = "en") -> Any:
        definition = self._field(field)
        rows = (
            self.db.query(FieldValue)
            .filter(
                FieldValue.field_id == definition.id,
                FieldValue.entity_type == entity_type,
                FieldValue.entity_id == entity_id,
                FieldValue.langcode == langcode,
            )
            .order_by(FieldValue.delta.asc())
            .all()
        )
        return self._collect(definition, rows)

    def get_entity_values(self, entity_type: str, entity_id: int, langcode: str = "en") -> Dict[str, Any]:
        """All stored values of an entity keyed by field machine name."""
        rows = (
            self.db.query(FieldValue)
            .filter(
                FieldValue.entity_type == entity_type,
                FieldValue.entity_id == entity_id,
                FieldValue.langcode == langcode,
            )
            .order_by(FieldValue.field_id.asc(), FieldValue.delta.asc())
            .all()
        )
        return self._group(rows)

    def _group(self, rows: List[Any]) -> Dict[str, Any]:
        by_field: Dict[int, List[Any]] = {}
        for row in rows:
            by_field.setdefault(row.field_id, []).append(row)

        values: Dict[str, Any] = {}
        for field_id, field_rows in by_field.items():
            definition = self.repository.find(field_id)
            if definition is None:
                logger.warning(
                    "Skipping values of a deleted field",
                    extra={"extra_fields": {"field_id": field_id}},
                )
                continue
            values[definition.machine_name] = self._collect(definition, field_rows)
        return values

    # ==================== WRITE ====================

    def set_value(
        self,
        field: FieldRef,
        entity_type: str,
        entity_id: int,
        value: Any,
        langcode: str = "en",
        commit: bool = True,
    ) -> None:
        """
        Replace the stored value of one field.

        Existing rows are deleted first. List values of multi-valued fields
        get one row per item, truncated to the field's cardinality.
        """
        definition = self._field(field)
        self.delete_value(definition, entity_type, entity_id, langcode, commit=False)

        if definition.is_multi_valued and isinstance(value, (list, tuple)):
            items = [item for item in value if not is_empty(item)]
        else:
            items = [] if is_empty(value) else [value]
        if definition.cardinality > 0:
            items = items[: definition.cardinality]

        for delta, item in enumerate(items):
            self.db.add(
                FieldValue(
                    field_id=definition.id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    langcode=langcode,
                    delta=delta,
                    **_column_values(definition, item),
                )
            )
        if commit:
            self.db.commit()

    def set_values(self, entity_type: str, entity_id: int, values: Dict[Any, Any], langcode: str = "en") -> None:
        """
        Replace several values in one transaction.

        Args:
            values: Values keyed by field id or machine name
        """
        try:
            for field, value in values.items():
                self.set_value(field, entity_type, entity_id, value, langcode, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def delete_value(
        self, field: FieldRef, entity_type: str, entity_id: int, langcode: str = "en", commit: bool = True
    ) -> None:
        definition = self._field(field)
        self.db.query(FieldValue).filter(
            FieldValue.field_id == definition.id,
            FieldValue.entity_type == entity_type,
            FieldValue.entity_id == entity_id,
            FieldValue.langcode == langcode,
        ).delete(synchronize_session=False)
        if commit:
            self.db.commit()

    def delete_entity_values(self, entity_type: str, entity_id: int, commit: bool = True) -> None:
        """Delete every value and revision snapshot of an entity."""
        for model in (FieldValue, FieldRevision):
            self.db.query(model).filter(
                model.entity_type == entity_type,
                model.entity_id == entity_id,
            ).delete(synchronize_session=False)
        if commit:
            self.db.commit()

    # ==================== REVISIONS ====================

    def create_revision(self, entity_type: str, entity_id: int, revision_id: int, commit: bool = True) -> int:
        """
        Snapshot the current values of an entity under a revision id.

        Returns:
            Number of value rows copied
        """
        rows = (
            self.db.query(FieldValue)
            .filter(FieldValue.entity_type == entity_type, FieldValue.entity_id == entity_id)
            .all()
        )
        for row in rows:
            self.db.add(FieldRevision(revision_id=revision_id, **_copy_columns(row)))
        if commit:
            self.db.commit()
        return len(rows)

    def get_revision_values(
        self, entity_type: str, entity_id: int, revision_id: int, langcode: str = "en"
    ) -> Dict[str, Any]:
        rows = (
            self.db.query(FieldRevision)
            .filter(
                FieldRevision.entity_type == entity_type,
                FieldRevision.entity_id == entity_id,
                FieldRevision.revision_id == revision_id,
                FieldRevision.langcode == langcode,
            )
            .order_by(FieldRevision.field_id.asc(), FieldRevision.delta.asc())
            .all()
        )
        return self._group(rows)

    def restore_revision(self, entity_type: str, entity_id: int, revision_id: int) -> None:
        """Replace the current values of an entity with a revision snapshot."""
        try:
            self.db.query(FieldValue).filter(
                FieldValue.entity_type == entity_type,
                FieldValue.entity_id == entity_id,
            ).delete(synchronize_session=False)

            rows = (
                self.db.query(FieldRevision)
                .filter(
                    FieldRevision.entity_type == entity_type,
                    FieldRevision.entity_id == entity_id,
                    FieldRevision.revision_id == revision_id,
                )
                .all()
            )
            for row in rows:
                self.db.add(FieldValue(**_copy_columns(row)))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Restored {entity_type} {entity_id} field values from revision {revision_id}",
            extra={"extra_fields": {"entity_type": entity_type, "entity_id": entity_id, "revision_id": revision_id}},
        )


def _copy_columns(row: Any) -> Dict[str, Any]:
    copied = {
        "field_id": row.field_id,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "langcode": row.langcode,
        "delta": row.delta,
    }
    copied.update({column: getattr(row, column) for column in VALUE_COLUMNS})
    return copied
