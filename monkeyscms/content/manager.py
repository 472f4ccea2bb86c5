"""
Content types and nodes.

A content type is a node bundle: its fields are attached to entity type
``node`` with the type id as bundle. Node field values go through the
widget registry for validation and preparation and are stored with
``FieldValueStorage``. Each save snapshots the values as a new revision.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import DuplicateException, FormValidationException, NotFoundException, ValidationException
from ..fields.definition import FieldDefinition
from ..fields.manager import FieldManager
from ..fields.widgets.reference import parse_ids
from ..helpers import machine_name, slugify
from ..logging_config import get_logger
from ..metrics import track_content_save
from ..models import ContentTaxonomy, ContentTypeRecord, Node, NodeRevision
from ..taxonomy.manager import TaxonomyManager

logger = get_logger(__name__)

NODE_ENTITY = "node"
NODE_STATUSES = ("draft", "published")


class ContentTypeManager:
    """
    Content type definitions and their field attachments.

    Args:
        db: Database session
        fields: Field manager, built from ``db`` when omitted
    """

    def __init__(self, db: Session, fields: Optional[FieldManager] = None):
        self.db = db
        self.fields = fields or FieldManager(db)

    def get(self, type_id: str) -> Optional[ContentTypeRecord]:
        return self.db.query(ContentTypeRecord).filter(ContentTypeRecord.type_id == type_id).first()

    def require(self, type_id: str) -> ContentTypeRecord:
        content_type = self.get(type_id)
        if content_type is None:
            raise NotFoundException("Content type", type_id)
        return content_type

    def list(self, enabled_only: bool = False) -> List[ContentTypeRecord]:
        query = self.db.query(ContentTypeRecord)
        if enabled_only:
            query = query.filter(ContentTypeRecord.enabled.is_(True))
        return query.order_by(ContentTypeRecord.label).all()

    def create(
        self,
        label: str,
        type_id: Optional[str] = None,
        description: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> ContentTypeRecord:
        """
        Create a content type.

        Raises:
            DuplicateException: If the type id is taken
        """
        type_id = type_id or machine_name(label)
        if not type_id:
            raise ValidationException("type_id", type_id, "is required")
        if self.get(type_id):
            raise DuplicateException("Content type", "type_id", type_id)

        content_type = ContentTypeRecord(
            type_id=type_id, label=label, description=description, settings=settings or {}
        )
        self.db.add(content_type)
        self.db.commit()
        self.db.refresh(content_type)
        logger.info(f"Content type created: {type_id}")
        return content_type

    def register(
        self,
        type_id: str,
        label: str,
        description: Optional[str] = None,
        fields: Iterable[FieldDefinition] = (),
        settings: Optional[Dict[str, Any]] = None,
    ) -> ContentTypeRecord:
        """
        Register a code-defined content type.

        Safe to call on every start: the type and its fields are created
        when missing and left alone otherwise.
        """
        content_type = self.get(type_id) or self.create(label, type_id, description, settings)
        for weight, definition in enumerate(fields):
            existing = self.fields.get_field(definition.machine_name)
            self.add_field(type_id, existing or definition, weight=definition.weight or weight)
        return content_type

    def update(self, type_id: str, data: Dict[str, Any]) -> ContentTypeRecord:
        content_type = self.require(type_id)
        for column in ("label", "description", "enabled", "settings"):
            if column in data:
                setattr(content_type, column, data[column])
        self.db.commit()
        self.db.refresh(content_type)
        return content_type

    def delete(self, type_id: str) -> None:
        """
        Delete a content type without nodes.

        Raises:
            ValidationException: If nodes of the type still exist
        """
        content_type = self.require(type_id)
        if self.db.query(Node).filter(Node.content_type == type_id).count():
            raise ValidationException("type_id", type_id, "content type still has nodes")
        for definition in self.get_fields(type_id):
            self.fields.repository.detach_from_entity(definition, NODE_ENTITY, type_id)
        self.db.delete(content_type)
        self.db.commit()
        logger.info(f"Content type deleted: {type_id}")

    # ==================== FIELDS ====================

    def get_fields(self, type_id: str) -> List[FieldDefinition]:
        return self.fields.get_fields_for(NODE_ENTITY, type_id)

    def add_field(self, type_id: str, definition: FieldDefinition, weight: Optional[int] = None) -> FieldDefinition:
        """Save the field when new and attach it to the content type."""
        self.require(type_id)
        self.fields.attach_field(definition, NODE_ENTITY, type_id, weight)
        return definition

    def remove_field(self, type_id: str, field_name: str) -> None:
        definition = self.fields.get_field(field_name)
        if definition is None:
            raise NotFoundException("Field", field_name)
        self.fields.repository.detach_from_entity(definition, NODE_ENTITY, type_id)


class NodeManager:
    """
    Node CRUD with field values and revisions.

    Args:
        db: Database session
        fields: Field manager, built from ``db`` when omitted
    """

    def __init__(self, db: Session, fields: Optional[FieldManager] = None):
        self.db = db
        self.fields = fields or FieldManager(db)
        self.types = ContentTypeManager(db, self.fields)
        self.taxonomy = TaxonomyManager(db)

    # ==================== READ ====================

    def get(self, node_id: int) -> Optional[Node]:
        return self.db.query(Node).filter(Node.id == node_id).first()

    def require(self, node_id: int) -> Node:
        node = self.get(node_id)
        if node is None:
            raise NotFoundException("Node", node_id)
        return node

    def get_by_slug(self, content_type: str, slug: str) -> Optional[Node]:
        return self.db.query(Node).filter(Node.content_type == content_type, Node.slug == slug).first()

    def list(
        self,
        content_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Node]:
        """Nodes newest first."""
        query = self.db.query(Node)
        if content_type:
            query = query.filter(Node.content_type == content_type)
        if status:
            query = query.filter(Node.status == status)
        query = query.order_by(Node.updated_at.desc(), Node.id.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, content_type: Optional[str] = None) -> int:
        query = self.db.query(Node)
        if content_type:
            query = query.filter(Node.content_type == content_type)
        return query.count()

    def get_values(self, node: Node) -> Dict[str, Any]:
        return self.fields.get_values(NODE_ENTITY, node.id)

    def revisions(self, node: Node) -> List[NodeRevision]:
        return (
            self.db.query(NodeRevision)
            .filter(NodeRevision.node_id == node.id)
            .order_by(NodeRevision.revision_id.desc())
            .all()
        )

    # ==================== WRITE ====================

    def _unique_slug(self, content_type: str, base: str, exclude_id: Optional[int] = None) -> str:
        slug = base
        suffix = 2
        while True:
            existing = self.get_by_slug(content_type, slug)
            if existing is None or existing.id == exclude_id:
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    def _check_values(self, fields: List[FieldDefinition], values: Dict[str, Any]) -> Dict[str, Any]:
        """Validate submitted values and return them prepared for storage."""
        errors = self.fields.validate_fields(fields, values)
        if errors:
            raise FormValidationException(errors)
        return self.fields.prepare_values(fields, values)

    @staticmethod
    def _check_title(title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise FormValidationException({"title": ["Title is required"]})
        return title

    @staticmethod
    def _check_status(status: str) -> str:
        if status not in NODE_STATUSES:
            raise ValidationException("status", status, "must be draft or published")
        return status

    def _snapshot(self, node: Node, author_id: Optional[int], log_message: Optional[str]) -> None:
        node.revision_id = (node.revision_id or 0) + 1
        self.db.add(
            NodeRevision(
                node_id=node.id,
                revision_id=node.revision_id,
                title=node.title,
                author_id=author_id,
                log_message=log_message,
            )
        )
        self.fields.storage.create_revision(NODE_ENTITY, node.id, node.revision_id, commit=False)

    def _sync_terms(self, node: Node) -> None:
        """Mirror the node's taxonomy field values into the content term index."""
        fields = [field for field in self.types.get_fields(node.content_type) if field.field_type == "taxonomy_reference"]
        if not fields:
            return
        self.db.flush()
        values = self.get_values(node)
        term_ids: List[int] = []
        for field in fields:
            term_ids.extend(parse_ids(values.get(field.machine_name)))
        self.taxonomy.attach_terms_to_content(node.id, node.content_type, term_ids, commit=False)

    def create(
        self,
        content_type: str,
        title: str,
        values: Optional[Dict[str, Any]] = None,
        author_id: Optional[int] = None,
        status: str = "draft",
        slug: Optional[str] = None,
        log_message: Optional[str] = None,
    ) -> Node:
        """
        Create a node.

        Args:
            content_type: Content type id
            title: Node title
            values: Submitted field values keyed by machine name
            author_id: Creating user
            status: ``draft`` or ``published``
            slug: URL slug, generated from the title when omitted
            log_message: Message stored with the first revision

        Raises:
            NotFoundException: If the content type does not exist
            FormValidationException: If the title or a field value is invalid
        """
        self.types.require(content_type)
        title = self._check_title(title)
        fields = self.types.get_fields(content_type)
        prepared = self._check_values(fields, values or {})

        node = Node(
            content_type=content_type,
            title=title,
            slug=self._unique_slug(content_type, slugify(slug or title, fallback="node")),
            status=self._check_status(status),
            author_id=author_id,
            revision_id=0,
        )
        try:
            self.db.add(node)
            self.db.flush()
            self.fields.set_values(NODE_ENTITY, node.id, prepared, fields=fields)
            self._sync_terms(node)
            self._snapshot(node, author_id, log_message or "Created")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        track_content_save(content_type, "create")
        self.db.refresh(node)
        logger.info(
            f"Node created: {node.title}",
            extra={"extra_fields": {"node_id": node.id, "content_type": content_type}},
        )
        return node

    def update(
        self,
        node: Node,
        title: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
        status: Optional[str] = None,
        slug: Optional[str] = None,
        author_id: Optional[int] = None,
        log_message: Optional[str] = None,
    ) -> Node:
        """
        Update a node and snapshot a new revision.

        Only the field values present in ``values`` are validated and
        replaced; other fields keep their stored values.

        Raises:
            FormValidationException: If the title or a field value is invalid
        """
        submitted: List[FieldDefinition] = []
        prepared: Dict[str, Any] = {}
        if values:
            fields = self.types.get_fields(node.content_type)
            submitted = [field for field in fields if field.machine_name in values]
            prepared = self._check_values(submitted, values)

        if title is not None:
            node.title = self._check_title(title)
        if status is not None:
            node.status = self._check_status(status)
        if slug:
            node.slug = self._unique_slug(node.content_type, slugify(slug, fallback="node"), exclude_id=node.id)

        try:
            if submitted:
                self.fields.set_values(NODE_ENTITY, node.id, prepared, fields=submitted)
                self._sync_terms(node)
            self._snapshot(node, author_id, log_message)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        track_content_save(node.content_type, "update")
        self.db.refresh(node)
        logger.info(
            f"Node updated: {node.title}",
            extra={"extra_fields": {"node_id": node.id, "revision_id": node.revision_id}},
        )
        return node

    def delete(self, node: Node) -> None:
        """Delete a node with its values, revisions and term links."""
        node_id = node.id
        content_type = node.content_type
        self.fields.storage.delete_entity_values(NODE_ENTITY, node_id, commit=False)
        self.db.query(NodeRevision).filter(NodeRevision.node_id == node_id).delete(synchronize_session=False)
        self.db.query(ContentTaxonomy).filter(
            ContentTaxonomy.content_id == node_id, ContentTaxonomy.content_type == content_type
        ).delete(synchronize_session=False)
        self.db.delete(node)
        self.db.commit()
        track_content_save(content_type, "delete")
        logger.info(f"Node deleted: {node_id}", extra={"extra_fields": {"node_id": node_id}})

    def revert(self, node: Node, revision_id: int, author_id: Optional[int] = None) -> Node:
        """
        Restore the title and field values of a revision.

        The restored state is saved as a new revision.

        Raises:
            NotFoundException: If the node has no such revision
        """
        revision = (
            self.db.query(NodeRevision)
            .filter(NodeRevision.node_id == node.id, NodeRevision.revision_id == revision_id)
            .first()
        )
        if revision is None:
            raise NotFoundException("Revision", revision_id)

        self.fields.storage.restore_revision(NODE_ENTITY, node.id, revision_id)
        node.title = revision.title
        self._sync_terms(node)
        self._snapshot(node, author_id, f"Reverted to revision {revision_id}")
        self.db.commit()
        self.db.refresh(node)
        logger.info(
            f"Node reverted: {node.title}",
            extra={"extra_fields": {"node_id": node.id, "from_revision": revision_id}},
        )
        return node
