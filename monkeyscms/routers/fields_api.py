"""
Field endpoints used by the admin field editor.

List field types and widgets, preview a field's widget and validate
values without saving them.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth.dependencies import ADMIN_PERMISSION, require_permission
from ..exceptions import WidgetNotFoundException
from ..fields.definition import FieldDefinition
from ..fields.factory import get_widget_registry
from ..fields.registry import WidgetRegistry
from ..fields.rendering import RenderContext
from ..fields.types import FieldType
from ..metrics import track_field_render
from ..schemas import (FieldPayload, FieldRenderRequest, FieldRenderResponse,
                       FieldValidateRequest, FieldValidateResponse)

router = APIRouter(
    prefix="/api/fields",
    tags=["Fields"],
    dependencies=[Depends(require_permission(ADMIN_PERMISSION))],
)


def _definition(payload: FieldPayload) -> FieldDefinition:
    try:
        return FieldDefinition.from_dict(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/types", summary="Field types grouped by category")
async def list_field_types(registry: WidgetRegistry = Depends(get_widget_registry)) -> Dict[str, List[Dict[str, Any]]]:
    return {
        category: [
            {
                "id": field_type.value,
                "label": field_type.label,
                "description": field_type.description,
                "default_widget": field_type.default_widget,
                "widgets": registry.options_for_type(field_type.value),
            }
            for field_type in types
        ]
        for category, types in FieldType.grouped().items()
    }


@router.get("/widgets", summary="Widgets grouped by category")
async def list_widgets(registry: WidgetRegistry = Depends(get_widget_registry)) -> Dict[str, List[Dict[str, Any]]]:
    return registry.grouped_by_category()


@router.post("/render", response_model=FieldRenderResponse, summary="Render a field preview")
async def render_field(payload: FieldRenderRequest, registry: WidgetRegistry = Depends(get_widget_registry)):
    """
    Render the form widget of an unsaved field definition.

    Raises:
        HTTPException: 422 if the definition is invalid or no widget can render it
    """
    definition = _definition(payload.field)
    try:
        result = registry.render_field(
            definition, payload.value, RenderContext.create(form_id=payload.form_id), collect=False
        )
    except WidgetNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    track_field_render(definition.field_type)
    return FieldRenderResponse(
        html=result.html,
        css=result.assets.css_files,
        js=result.assets.js_files,
        init_scripts=result.assets.init_scripts,
    )


@router.post("/validate", response_model=FieldValidateResponse, summary="Validate field values")
async def validate_fields(payload: FieldValidateRequest, registry: WidgetRegistry = Depends(get_widget_registry)):
    """Validate values keyed by machine name and return them prepared when valid."""
    definitions = [_definition(field) for field in payload.fields]
    try:
        errors = registry.validate_fields(definitions, payload.values)
        prepared = {} if errors else registry.prepare_values(definitions, payload.values)
    except WidgetNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    return FieldValidateResponse(valid=not errors, errors=errors, values=prepared)
