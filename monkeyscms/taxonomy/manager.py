"""
Taxonomy management.

Vocabularies group hierarchical terms. Terms reference their parent by
id, so trees, breadcrumbs and descendant lookups are built in Python from
the terms of one vocabulary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..exceptions import DuplicateException, NotFoundException, ValidationException
from ..helpers import machine_name, slugify
from ..logging_config import get_logger
from ..models import ContentTaxonomy, TaxonomyTerm, Vocabulary

logger = get_logger(__name__)

TERM_STATUSES = ("active", "inactive")
_TERM_COLUMNS = ("name", "description", "weight", "status")


@dataclass
class TermNode:
    """Term with its child nodes, as returned by ``get_term_tree``."""

    term: TaxonomyTerm
    children: List["TermNode"] = field(default_factory=list)
    depth: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.term.id,
            "name": self.term.name,
            "slug": self.term.slug,
            "weight": self.term.weight,
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }


class TaxonomyManager:
    """
    Vocabulary and term operations.

    Attributes:
        db: Database session
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================== VOCABULARIES ====================

    def create_vocabulary(
        self,
        name: str,
        vocabulary_id: Optional[str] = None,
        description: Optional[str] = None,
        hierarchical: bool = True,
        weight: int = 0,
    ) -> Vocabulary:
        """
        Create a vocabulary.

        Raises:
            DuplicateException: If the vocabulary id is taken
        """
        vocabulary_id = vocabulary_id or machine_name(name)
        if not vocabulary_id:
            raise ValidationException("vocabulary_id", vocabulary_id, "is required")
        if self.get_vocabulary(vocabulary_id):
            raise DuplicateException("Vocabulary", "vocabulary_id", vocabulary_id)

        vocabulary = Vocabulary(
            vocabulary_id=vocabulary_id,
            name=name,
            description=description,
            hierarchical=hierarchical,
            weight=weight,
        )
        self.db.add(vocabulary)
        self.db.commit()
        self.db.refresh(vocabulary)
        logger.info(f"Vocabulary created: {vocabulary_id}")
        return vocabulary

    def get_vocabulary(self, vocabulary_id: str) -> Optional[Vocabulary]:
        return self.db.query(Vocabulary).filter(Vocabulary.vocabulary_id == vocabulary_id).first()

    def _require_vocabulary(self, vocabulary_id: str) -> Vocabulary:
        vocabulary = self.get_vocabulary(vocabulary_id)
        if vocabulary is None:
            raise NotFoundException("Vocabulary", vocabulary_id)
        return vocabulary

    def list_vocabularies(self, enabled_only: bool = False) -> List[Vocabulary]:
        query = self.db.query(Vocabulary)
        if enabled_only:
            query = query.filter(Vocabulary.enabled.is_(True))
        return query.order_by(Vocabulary.weight, Vocabulary.name).all()

    def delete_vocabulary(self, vocabulary_id: str) -> bool:
        """Delete a vocabulary together with its terms and their content links."""
        vocabulary = self.get_vocabulary(vocabulary_id)
        if vocabulary is None:
            return False

        term_ids = [row.id for row in self.db.query(TaxonomyTerm.id).filter(TaxonomyTerm.vocabulary_id == vocabulary_id)]
        if term_ids:
            self.db.query(ContentTaxonomy).filter(ContentTaxonomy.term_id.in_(term_ids)).delete(synchronize_session=False)
            self.db.query(TaxonomyTerm).filter(TaxonomyTerm.id.in_(term_ids)).delete(synchronize_session=False)
        self.db.delete(vocabulary)
        self.db.commit()
        logger.info(
            f"Vocabulary deleted: {vocabulary_id}",
            extra={"extra_fields": {"terms_deleted": len(term_ids)}},
        )
        return True

    # ==================== TERMS ====================

    def get_terms(
        self,
        vocabulary_id: str,
        parent_id: Optional[int] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        roots_only: bool = False,
    ) -> List[TaxonomyTerm]:
        """
        List terms of a vocabulary ordered by weight, then name.

        Args:
            vocabulary_id: Vocabulary to list
            parent_id: Only direct children of this term
            status: Only terms with this status
            search: Case-insensitive substring of the name
            limit: Maximum number of terms
            offset: Number of terms to skip
            roots_only: Only terms without a parent
        """
        query = self.db.query(TaxonomyTerm).filter(TaxonomyTerm.vocabulary_id == vocabulary_id)
        if parent_id is not None:
            query = query.filter(TaxonomyTerm.parent_id == parent_id)
        elif roots_only:
            query = query.filter(TaxonomyTerm.parent_id.is_(None))
        if status:
            query = query.filter(TaxonomyTerm.status == status)
        if search:
            query = query.filter(TaxonomyTerm.name.ilike(f"%{search}%"))
        query = query.order_by(TaxonomyTerm.weight, TaxonomyTerm.name)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_term_tree(self, vocabulary_id: str, parent_id: Optional[int] = None) -> List[TermNode]:
        """Nested terms below ``parent_id`` (the roots when None)."""
        terms = self.get_terms(vocabulary_id)
        by_parent: Dict[Optional[int], List[TaxonomyTerm]] = {}
        for term in terms:
            by_parent.setdefault(term.parent_id, []).append(term)

        def build(parent: Optional[int], depth: int, seen: Set[int]) -> List[TermNode]:
            nodes = []
            for term in by_parent.get(parent, []):
                if term.id in seen:
                    continue
                children = build(term.id, depth + 1, seen | {term.id})
                nodes.append(TermNode(term=term, children=children, depth=depth))
            return nodes

        return build(parent_id, 0, set())

    def flatten_tree(self, vocabulary_id: str) -> List[TermNode]:
        """Tree nodes in display order, each carrying its depth."""
        flat: List[TermNode] = []

        def walk(nodes: Iterable[TermNode]) -> None:
            for node in nodes:
                flat.append(node)
                walk(node.children)

        walk(self.get_term_tree(vocabulary_id))
        return flat

    def term_options(self, vocabulary_id: str) -> List[Dict[str, Any]]:
        """Active terms as ``{id, name, depth}`` dicts in tree order, for pickers."""
        return [
            {"id": node.term.id, "name": node.term.name, "depth": node.depth}
            for node in self.flatten_tree(vocabulary_id)
            if node.term.status == "active"
        ]

    def get_term(self, term_id: int) -> Optional[TaxonomyTerm]:
        return self.db.query(TaxonomyTerm).filter(TaxonomyTerm.id == term_id).first()

    def get_term_by_slug(self, vocabulary_id: str, slug: str) -> Optional[TaxonomyTerm]:
        return (
            self.db.query(TaxonomyTerm)
            .filter(TaxonomyTerm.vocabulary_id == vocabulary_id, TaxonomyTerm.slug == slug)
            .first()
        )

    def _unique_slug(self, vocabulary_id: str, base: str, exclude_id: Optional[int] = None) -> str:
        slug = base
        suffix = 2
        while True:
            existing = self.get_term_by_slug(vocabulary_id, slug)
            if existing is None or existing.id == exclude_id:
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    def _check_parent(self, vocabulary_id: str, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        parent = self.get_term(parent_id)
        if parent is None or parent.vocabulary_id != vocabulary_id:
            raise ValidationException("parent_id", parent_id, "parent term must exist in the same vocabulary")

    def create_term(self, vocabulary_id: str, data: Dict[str, Any]) -> TaxonomyTerm:
        """
        Create a term.

        Args:
            vocabulary_id: Vocabulary of the term
            data: ``name`` plus optional slug, description, parent_id,
                weight, status and metadata

        Returns:
            Saved term; its slug is made unique within the vocabulary

        Raises:
            NotFoundException: If the vocabulary does not exist
            ValidationException: If the name, status or parent is invalid
        """
        vocabulary = self._require_vocabulary(vocabulary_id)
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationException("name", name, "is required")
        status = data.get("status") or "active"
        if status not in TERM_STATUSES:
            raise ValidationException("status", status, "must be active or inactive")

        parent_id = data.get("parent_id") or None
        if parent_id is not None and not vocabulary.hierarchical:
            raise ValidationException("parent_id", parent_id, "vocabulary is not hierarchical")
        self._check_parent(vocabulary_id, parent_id)

        term = TaxonomyTerm(
            vocabulary_id=vocabulary_id,
            name=name,
            slug=self._unique_slug(vocabulary_id, slugify(data.get("slug") or name, fallback="term")),
            description=data.get("description"),
            parent_id=parent_id,
            weight=int(data.get("weight") or 0),
            status=status,
            metadata_=dict(data.get("metadata") or {}),
        )
        self.db.add(term)
        self.db.commit()
        self.db.refresh(term)
        logger.info(
            f"Term created: {term.name}",
            extra={"extra_fields": {"term_id": term.id, "vocabulary_id": vocabulary_id}},
        )
        return term

    def update_term(self, term_id: int, data: Dict[str, Any]) -> TaxonomyTerm:
        """
        Update a term. Metadata is merged into the existing metadata.

        Raises:
            NotFoundException: If the term does not exist
        """
        term = self.get_term(term_id)
        if term is None:
            raise NotFoundException("Term", term_id)

        for column in _TERM_COLUMNS:
            if data.get(column) is not None:
                setattr(term, column, data[column])
        if term.status not in TERM_STATUSES:
            raise ValidationException("status", term.status, "must be active or inactive")
        if data.get("slug"):
            term.slug = self._unique_slug(term.vocabulary_id, slugify(data["slug"], fallback="term"), exclude_id=term.id)
        if data.get("metadata"):
            term.metadata_ = {**(term.metadata_ or {}), **data["metadata"]}
        if "parent_id" in data and data["parent_id"] != term.parent_id:
            if not self.move_term(term.id, data["parent_id"] or None, commit=False):
                raise ValidationException("parent_id", data["parent_id"], "cannot move a term below itself")

        self.db.commit()
        self.db.refresh(term)
        return term

    def _descendant_ids(self, term_id: int) -> List[int]:
        term = self.get_term(term_id)
        if term is None:
            return []
        by_parent: Dict[int, List[int]] = {}
        rows = self.db.query(TaxonomyTerm.id, TaxonomyTerm.parent_id).filter(
            TaxonomyTerm.vocabulary_id == term.vocabulary_id
        )
        for row_id, parent in rows:
            if parent is not None:
                by_parent.setdefault(parent, []).append(row_id)

        found: List[int] = []
        pending = list(by_parent.get(term_id, []))
        while pending:
            current = pending.pop()
            if current in found or current == term_id:
                continue
            found.append(current)
            pending.extend(by_parent.get(current, []))
        return found

    def delete_term(self, term_id: int, delete_children: bool = False) -> bool:
        """
        Delete a term.

        Args:
            term_id: Term to delete
            delete_children: Delete all descendants too; otherwise direct
                children become root terms
        """
        term = self.get_term(term_id)
        if term is None:
            return False

        if delete_children:
            removed = self._descendant_ids(term_id) + [term_id]
        else:
            removed = [term_id]
            self.db.query(TaxonomyTerm).filter(TaxonomyTerm.parent_id == term_id).update(
                {TaxonomyTerm.parent_id: None}, synchronize_session=False
            )

        self.db.query(ContentTaxonomy).filter(ContentTaxonomy.term_id.in_(removed)).delete(synchronize_session=False)
        self.db.query(TaxonomyTerm).filter(TaxonomyTerm.id.in_(removed)).delete(synchronize_session=False)
        self.db.commit()
        self.db.expire_all()
        logger.info(f"Term deleted: {term_id}", extra={"extra_fields": {"terms_deleted": len(removed)}})
        return True

    def reorder_terms(self, term_ids: List[int]) -> None:
        """Assign weights following the order of ``term_ids``."""
        for weight, term_id in enumerate(term_ids):
            self.db.query(TaxonomyTerm).filter(TaxonomyTerm.id == term_id).update(
                {TaxonomyTerm.weight: weight}, synchronize_session=False
            )
        self.db.commit()
        self.db.expire_all()

    def move_term(self, term_id: int, new_parent_id: Optional[int], commit: bool = True) -> bool:
        """
        Move a term below another parent, or to the root with ``None``.

        Returns:
            False when the new parent is the term itself or one of its
            descendants, True once moved

        Raises:
            NotFoundException: If the term does not exist
        """
        term = self.get_term(term_id)
        if term is None:
            raise NotFoundException("Term", term_id)
        if new_parent_id is not None:
            if new_parent_id == term_id or new_parent_id in self._descendant_ids(term_id):
                return False
            self._check_parent(term.vocabulary_id, new_parent_id)

        term.parent_id = new_parent_id
        if commit:
            self.db.commit()
        return True

    def get_breadcrumbs(self, term_id: int) -> List[TaxonomyTerm]:
        """Ancestors of a term from the root down to the term itself."""
        trail: List[TaxonomyTerm] = []
        seen: Set[int] = set()
        term = self.get_term(term_id)
        while term is not None and term.id not in seen:
            trail.append(term)
            seen.add(term.id)
            term = self.get_term(term.parent_id) if term.parent_id is not None else None
        return list(reversed(trail))

    def get_term_count(self, vocabulary_id: str) -> int:
        return (
            self.db.query(func.count(TaxonomyTerm.id))
            .filter(TaxonomyTerm.vocabulary_id == vocabulary_id)
            .scalar()
        ) or 0

    # ==================== CONTENT ====================

    def attach_terms_to_content(
        self, content_id: int, content_type: str, term_ids: Iterable[int], commit: bool = True
    ) -> None:
        """Replace the terms attached to a content item."""
        self.db.query(ContentTaxonomy).filter(
            ContentTaxonomy.content_id == content_id, ContentTaxonomy.content_type == content_type
        ).delete(synchronize_session=False)
        for term_id in dict.fromkeys(int(t) for t in term_ids):
            self.db.add(ContentTaxonomy(content_id=content_id, content_type=content_type, term_id=term_id))
        if commit:
            self.db.commit()

    def get_terms_for_content(
        self, content_id: int, content_type: str, vocabulary_id: Optional[str] = None
    ) -> List[TaxonomyTerm]:
        query = (
            self.db.query(TaxonomyTerm)
            .join(ContentTaxonomy, ContentTaxonomy.term_id == TaxonomyTerm.id)
            .filter(ContentTaxonomy.content_id == content_id, ContentTaxonomy.content_type == content_type)
        )
        if vocabulary_id:
            query = query.filter(TaxonomyTerm.vocabulary_id == vocabulary_id)
        return query.order_by(TaxonomyTerm.vocabulary_id, TaxonomyTerm.weight, TaxonomyTerm.name).all()
