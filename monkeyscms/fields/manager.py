"""
Field manager.

Facade over the field repository, value storage and widget registry used
by the content, block and admin layers.
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from markupsafe import escape
from sqlalchemy.orm import Session

from ..exceptions import NotFoundException
from ..logging_config import get_logger
from ..models import FieldValue
from ..taxonomy.manager import TaxonomyManager
from .definition import FieldDefinition
from .factory import get_widget_registry
from .form import FormBuilder, FormResult
from .registry import WidgetRegistry
from .rendering import AssetCollection, RenderContext, RenderResult
from .repository import FieldRepository
from .storage import FieldValueStorage
from .widgets.reference import TaxonomyWidget
from .widgets.repeater import RepeaterWidget

logger = get_logger(__name__)


class FieldManager:
    """
    Entry point for working with fields.

    Args:
        db: Database session
        registry: Widget registry, the shared default registry when omitted
    """

    def __init__(self, db: Session, registry: Optional[WidgetRegistry] = None):
        self.db = db
        self.registry = registry or get_widget_registry()
        self.repository = FieldRepository(db)
        self.storage = FieldValueStorage(db, self.repository)

    # ==================== DEFINITIONS ====================

    def define_field(self, name: str, field_type: str, save: bool = False, **attributes: Any) -> FieldDefinition:
        """
        Create a field definition.

        Args:
            name: Human readable name, also the source of the machine name
            field_type: FieldType value or ``repeater``
            save: Persist the definition immediately
            **attributes: Any other FieldDefinition attribute

        Returns:
            The new definition
        """
        definition = FieldDefinition(name=name, field_type=field_type, **attributes)
        return self.save_field(definition) if save else definition

    def get_field(self, field: Union[int, str]) -> Optional[FieldDefinition]:
        """Look a field up by id or machine name."""
        if isinstance(field, int):
            return self.repository.find(field)
        return self.repository.find_by_machine_name(field)

    def get_all_fields(self) -> List[FieldDefinition]:
        return self.repository.find_all()

    def get_fields_for(self, entity_type: str, bundle: Optional[str] = None) -> List[FieldDefinition]:
        return self.repository.find_by_entity_type(entity_type, bundle)

    def save_field(self, definition: FieldDefinition) -> FieldDefinition:
        return self.repository.save(definition)

    def attach_field(
        self,
        definition: FieldDefinition,
        entity_type: str,
        bundle: Optional[str] = None,
        weight: Optional[int] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        if definition.id is None:
            self.save_field(definition)
        self.repository.attach_to_entity(
            definition, entity_type, bundle, definition.weight if weight is None else weight, settings
        )

    def delete_field(self, field: Union[int, str, FieldDefinition]) -> None:
        """
        Delete a field with its attachments and stored values.

        Raises:
            NotFoundException: If the field does not exist
        """
        definition = field if isinstance(field, FieldDefinition) else self.get_field(field)
        if definition is None:
            raise NotFoundException("Field", field)
        self.db.query(FieldValue).filter(FieldValue.field_id == definition.id).delete(synchronize_session=False)
        self.repository.delete(definition)

    # ==================== VALUES ====================

    def get_values(self, entity_type: str, entity_id: int, langcode: str = "en") -> Dict[str, Any]:
        return self.storage.get_entity_values(entity_type, entity_id, langcode)

    def set_values(
        self,
        entity_type: str,
        entity_id: int,
        values: Dict[str, Any],
        fields: Optional[Iterable[FieldDefinition]] = None,
        langcode: str = "en",
    ) -> None:
        """
        Store values keyed by machine name.

        When ``fields`` is given only those fields are written and values
        for other keys are ignored.
        """
        if fields is not None:
            by_name = {field.machine_name: field for field in fields}
            values = {by_name[key].id: value for key, value in values.items() if key in by_name}
        self.storage.set_values(entity_type, entity_id, values, langcode)

    def prepare_values(self, fields: Iterable[FieldDefinition], data: Dict[str, Any]) -> Dict[str, Any]:
        return self.registry.prepare_values(fields, data)

    # ==================== RENDERING ====================

    def form_builder(self, fields: Optional[Iterable[FieldDefinition]] = None) -> FormBuilder:
        """A form builder on this manager's registry, loaded with the taxonomy terms ``fields`` need."""
        builder = FormBuilder(self.registry)
        terms = self.taxonomy_terms(fields) if fields is not None else {}
        return builder.with_data("taxonomy_terms", terms) if terms else builder

    def _vocabularies(self, fields: Iterable[FieldDefinition]) -> List[str]:
        vocabularies: List[str] = []
        for field in fields:
            widget = self.registry.resolve(field)
            if isinstance(widget, TaxonomyWidget):
                vocabularies.append(widget.get_settings(field).get_string("vocabulary"))
            elif isinstance(widget, RepeaterWidget):
                vocabularies.extend(self._vocabularies(widget.sub_fields(field)))
        return list(dict.fromkeys(vocabularies))

    def taxonomy_terms(self, fields: Iterable[FieldDefinition]) -> Dict[str, List[Dict[str, Any]]]:
        """Term options of every vocabulary the given fields pick from, repeater sub-fields included."""
        taxonomy = TaxonomyManager(self.db)
        return {vocabulary: taxonomy.term_options(vocabulary) for vocabulary in self._vocabularies(fields)}

    def render_field(
        self, field: FieldDefinition, value: Any = None, context: Optional[RenderContext] = None
    ) -> RenderResult:
        context = context or RenderContext.create().with_data("taxonomy_terms", self.taxonomy_terms([field]))
        return self.registry.render_field(field, value, context, collect=False)

    def render_field_display(
        self, field: FieldDefinition, value: Any, context: Optional[RenderContext] = None
    ) -> RenderResult:
        context = context or RenderContext.for_display(data={"taxonomy_terms": self.taxonomy_terms([field])})
        return self.registry.render_field_display(field, value, context)

    def render_form(
        self,
        fields: Iterable[FieldDefinition],
        values: Optional[Dict[str, Any]] = None,
        errors: Optional[Dict[str, List[str]]] = None,
        builder: Optional[FormBuilder] = None,
    ) -> FormResult:
        fields = list(fields)
        if builder is None:
            builder = self.form_builder(fields)
        elif "taxonomy_terms" not in builder.data:
            builder = builder.with_data("taxonomy_terms", self.taxonomy_terms(fields))
        if errors:
            builder = builder.with_errors(errors)
        return builder.build(fields, values)

    def render_entity_form(
        self,
        entity_type: str,
        entity_id: Optional[int] = None,
        bundle: Optional[str] = None,
        builder: Optional[FormBuilder] = None,
    ) -> FormResult:
        """Render the form for an entity's attached fields filled with its stored values."""
        fields = self.get_fields_for(entity_type, bundle)
        values = self.get_values(entity_type, entity_id) if entity_id is not None else {}
        return self.render_form(fields, values, builder=builder)

    def render_entity_display(self, entity_type: str, entity_id: int, bundle: Optional[str] = None) -> RenderResult:
        fields = self.get_fields_for(entity_type, bundle)
        values = self.get_values(entity_type, entity_id)
        context = RenderContext.for_display(data={"taxonomy_terms": self.taxonomy_terms(fields)})

        result = RenderResult.empty()
        for field in fields:
            result = result.combine(self.render_field_display(field, values.get(field.machine_name), context))
        return result.wrap('<div class="field-display-container">', "</div>")

    # ==================== VALIDATION ====================

    def validate_fields(self, fields: Iterable[FieldDefinition], values: Dict[str, Any]) -> Dict[str, List[str]]:
        return self.registry.validate_fields(fields, values)

    def validate_entity_values(
        self, entity_type: str, values: Dict[str, Any], bundle: Optional[str] = None
    ) -> Dict[str, List[str]]:
        return self.validate_fields(self.get_fields_for(entity_type, bundle), values)

    def is_valid(self, fields: Iterable[FieldDefinition], values: Dict[str, Any]) -> bool:
        return not self.validate_fields(fields, values)

    # ==================== ASSETS ====================

    def assets_for(self, fields: Iterable[FieldDefinition]) -> AssetCollection:
        assets = AssetCollection()
        for field in fields:
            widget = self.registry.resolve(field)
            assets.add_css_files(widget.assets.css_files).add_js_files(widget.assets.js_files)
        return assets

    def asset_tags(self, fields: Iterable[FieldDefinition]) -> str:
        """``<link>`` and ``<script>`` tags for the widgets of the given fields."""
        assets = self.assets_for(fields)
        html = "".join(f'<link rel="stylesheet" href="{escape(url)}">\n' for url in assets.css_files)
        html += "".join(f'<script src="{escape(url)}"></script>\n' for url in assets.js_files)
        return html
