"""
Field definition persistence.

Definitions live in ``field_definitions``; ``field_attachments`` records
which entity types and bundles a field is attached to.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import DuplicateException
from ..logging_config import get_logger
from ..models import FieldAttachment, FieldDefinitionRecord, utcnow
from .definition import FieldDefinition

logger = get_logger(__name__)

_COPIED_ATTRIBUTES = (
    "name",
    "machine_name",
    "field_type",
    "description",
    "help_text",
    "widget",
    "required",
    "multiple",
    "cardinality",
    "default_value",
    "settings",
    "validation",
    "widget_settings",
    "weight",
    "searchable",
    "translatable",
)


def to_definition(record: FieldDefinitionRecord) -> FieldDefinition:
    """Build a FieldDefinition from its database row."""
    definition = FieldDefinition(
        id=record.id,
        name=record.name,
        machine_name=record.machine_name,
        field_type=record.field_type,
        description=record.description,
        help_text=record.help_text,
        widget=record.widget,
        required=bool(record.required),
        multiple=bool(record.multiple),
        cardinality=record.cardinality or 1,
        default_value=record.default_value,
        settings=dict(record.settings or {}),
        validation=dict(record.validation or {}),
        widget_settings=dict(record.widget_settings or {}),
        weight=record.weight or 0,
        searchable=bool(record.searchable),
        translatable=bool(record.translatable),
    )
    definition.created_at = record.created_at
    definition.updated_at = record.updated_at
    return definition


class FieldRepository:
    """
    Loads and stores field definitions.

    Definitions are cached by id for the lifetime of the repository, which
    normally matches one request's database session.
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: Dict[int, FieldDefinition] = {}

    # ==================== QUERIES ====================

    def find(self, field_id: int) -> Optional[FieldDefinition]:
        if field_id in self._cache:
            return self._cache[field_id]
        record = self.db.query(FieldDefinitionRecord).filter(FieldDefinitionRecord.id == field_id).first()
        return self._remember(record) if record else None

    def find_by_machine_name(self, machine_name: str) -> Optional[FieldDefinition]:
        record = (
            self.db.query(FieldDefinitionRecord)
            .filter(FieldDefinitionRecord.machine_name == machine_name)
            .first()
        )
        return self._remember(record) if record else None

    def find_all(self) -> List[FieldDefinition]:
        records = (
            self.db.query(FieldDefinitionRecord)
            .order_by(FieldDefinitionRecord.weight.asc(), FieldDefinitionRecord.name.asc())
            .all()
        )
        return [self._remember(record) for record in records]

    def find_by_ids(self, field_ids: Iterable[int]) -> List[FieldDefinition]:
        field_ids = list(field_ids)
        if not field_ids:
            return []
        records = (
            self.db.query(FieldDefinitionRecord)
            .filter(FieldDefinitionRecord.id.in_(field_ids))
            .order_by(FieldDefinitionRecord.weight.asc())
            .all()
        )
        return [self._remember(record) for record in records]

    def find_by_entity_type(self, entity_type: str, bundle: Optional[str] = None) -> List[FieldDefinition]:
        """
        Fields attached to an entity type, ordered by attachment weight then name.

        Args:
            entity_type: Entity type such as ``node`` or ``block``
            bundle: Bundle (content type id), None for every bundle
        """
        query = (
            self.db.query(FieldDefinitionRecord)
            .join(FieldAttachment, FieldAttachment.field_id == FieldDefinitionRecord.id)
            .filter(FieldAttachment.entity_type == entity_type)
        )
        if bundle is not None:
            query = query.filter(FieldAttachment.bundle == bundle)
        records = query.order_by(FieldAttachment.weight.asc(), FieldDefinitionRecord.name.asc()).all()

        definitions = []
        seen = set()
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            definitions.append(self._remember(record))
        return definitions

    # ==================== PERSISTENCE ====================

    def save(self, definition: FieldDefinition) -> FieldDefinition:
        """
        Insert or update a definition.

        Raises:
            DuplicateException: If another field already uses the machine name
        """
        existing = self.find_by_machine_name(definition.machine_name)
        if existing is not None and existing.id != definition.id:
            raise DuplicateException("Field", "machine_name", definition.machine_name)

        if definition.id is None:
            record = FieldDefinitionRecord()
            self.db.add(record)
        else:
            record = self.db.query(FieldDefinitionRecord).filter(FieldDefinitionRecord.id == definition.id).first()
            if record is None:
                record = FieldDefinitionRecord(id=definition.id)
                self.db.add(record)

        for attribute in _COPIED_ATTRIBUTES:
            setattr(record, attribute, getattr(definition, attribute))
        record.updated_at = utcnow()

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateException("Field", "machine_name", definition.machine_name)
        self.db.refresh(record)

        definition.id = record.id
        definition.created_at = record.created_at
        definition.updated_at = record.updated_at
        self._cache[definition.id] = definition

        logger.info(
            f"Saved field {definition.machine_name}",
            extra={"extra_fields": {"field_id": definition.id, "field_type": definition.field_type}},
        )
        return definition

    def delete(self, definition: FieldDefinition) -> None:
        """Delete a definition together with its attachments."""
        if definition.id is None:
            return
        self.db.query(FieldAttachment).filter(FieldAttachment.field_id == definition.id).delete()
        self.db.query(FieldDefinitionRecord).filter(FieldDefinitionRecord.id == definition.id).delete()
        self.db.commit()
        self._cache.pop(definition.id, None)
        logger.info(f"Deleted field {definition.machine_name}", extra={"extra_fields": {"field_id": definition.id}})

    # ==================== ATTACHMENTS ====================

    def _attachment(self, field_id: int, entity_type: str, bundle: Optional[str]) -> Optional[FieldAttachment]:
        query = self.db.query(FieldAttachment).filter(
            FieldAttachment.field_id == field_id,
            FieldAttachment.entity_type == entity_type,
        )
        if bundle is None:
            query = query.filter(FieldAttachment.bundle.is_(None))
        else:
            query = query.filter(FieldAttachment.bundle == bundle)
        return query.first()

    def attach_to_entity(
        self,
        definition: FieldDefinition,
        entity_type: str,
        bundle: Optional[str] = None,
        weight: int = 0,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Attach a field to an entity type, updating weight and settings when already attached."""
        attachment = self._attachment(definition.id, entity_type, bundle)
        if attachment is None:
            attachment = FieldAttachment(field_id=definition.id, entity_type=entity_type, bundle=bundle)
            self.db.add(attachment)
        attachment.weight = weight
        attachment.settings = dict(settings or {})
        self.db.commit()

    def detach_from_entity(self, definition: FieldDefinition, entity_type: str, bundle: Optional[str] = None) -> None:
        query = self.db.query(FieldAttachment).filter(
            FieldAttachment.field_id == definition.id,
            FieldAttachment.entity_type == entity_type,
        )
        if bundle is not None:
            query = query.filter(FieldAttachment.bundle == bundle)
        query.delete()
        self.db.commit()

    def get_attachment_settings(
        self, definition: FieldDefinition, entity_type: str, bundle: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        attachment = self._attachment(definition.id, entity_type, bundle)
        if attachment is None:
            return None
        return {"weight": attachment.weight, "settings": dict(attachment.settings or {})}

    # ==================== CACHE ====================

    def clear_cache(self) -> None:
        self._cache.clear()

    def _remember(self, record: FieldDefinitionRecord) -> FieldDefinition:
        definition = to_definition(record)
        self._cache[definition.id] = definition
        return definition
