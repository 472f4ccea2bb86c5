"""
Form building.

``FormBuilder`` is immutable: every ``with_*`` call returns a configured
copy, so a base builder can be shared and specialised per request. Each
build collects the assets of the fields it rendered into its own result.
"""

import secrets
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from .definition import FieldDefinition
from .html import Html, HtmlBuilder
from .registry import WidgetRegistry
from .rendering import AssetCollection, RenderContext, RenderResult

FORM_ERRORS_KEY = "_form"
CSRF_FIELD = "_token"
DEFAULT_GROUP = "General"


@dataclass
class FormResult:
    """Rendered form markup and the assets its widgets need."""

    html: str
    assets: AssetCollection

    def html_with_assets(self) -> str:
        return self.html + self.assets.render()

    def __html__(self) -> str:
        return self.html_with_assets()

    def __str__(self) -> str:
        return self.html_with_assets()


@dataclass(frozen=True)
class FormBuilder:
    """
    Builds CMS forms from field definitions.

    Example:
        >>> form = (
        ...     FormBuilder(registry)
        ...     .with_id("node_form")
        ...     .with_action("/admin/content/article/create")
        ...     .csrf_token(token)
        ...     .build(fields, values)
        ... )
    """

    registry: WidgetRegistry
    form_id: str = "form"
    action: str = ""
    method: str = "POST"
    css_class: str = "cms-form"
    enctype: Optional[str] = "multipart/form-data"
    is_ajax: bool = False
    group_fields: bool = True
    submit_text: str = "Save"
    cancel: Optional[str] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)
    include_csrf: bool = True
    token: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    # ==================== CONFIGURATION ====================

    def with_id(self, form_id: str) -> "FormBuilder":
        return replace(self, form_id=form_id)

    def with_action(self, action: str) -> "FormBuilder":
        return replace(self, action=action)

    def with_method(self, method: str) -> "FormBuilder":
        return replace(self, method=method.upper())

    def with_class(self, css_class: str) -> "FormBuilder":
        return replace(self, css_class=css_class)

    def multipart(self, enabled: bool = True) -> "FormBuilder":
        return replace(self, enctype="multipart/form-data" if enabled else None)

    def ajax(self, enabled: bool = True) -> "FormBuilder":
        return replace(self, is_ajax=enabled)

    def grouped(self, enabled: bool = True) -> "FormBuilder":
        return replace(self, group_fields=enabled)

    def submit_label(self, label: str) -> "FormBuilder":
        return replace(self, submit_text=label)

    def cancel_url(self, url: Optional[str]) -> "FormBuilder":
        return replace(self, cancel=url)

    def with_errors(self, errors: Dict[str, List[str]]) -> "FormBuilder":
        return replace(self, errors=dict(errors))

    def without_csrf(self) -> "FormBuilder":
        return replace(self, include_csrf=False)

    def csrf_token(self, token: str) -> "FormBuilder":
        """Use the session's CSRF token instead of a throwaway one."""
        return replace(self, token=token)

    def with_data(self, key: str, value: Any) -> "FormBuilder":
        """Extra render data passed to every widget, such as taxonomy terms."""
        return replace(self, data={**self.data, key: value})

    # ==================== BUILD ====================

    def context(self) -> RenderContext:
        return RenderContext(form_id=self.form_id, errors=self.errors, data=self.data)

    def build(self, fields: Iterable[FieldDefinition], values: Optional[Dict[str, Any]] = None) -> FormResult:
        """
        Render a complete ``<form>``.

        Args:
            fields: Field definitions in display order
            values: Current values keyed by machine name

        Returns:
            FormResult with the form HTML and collected assets
        """
        values = values or {}

        form = (
            Html.element("form")
            .id(self.form_id)
            .attr("action", self.action)
            .attr("method", self.method)
            .class_(self.css_class)
            .attr("enctype", self.enctype)
            .data("ajax", "true" if self.is_ajax else None)
        )

        if self.include_csrf and self.method == "POST":
            form.child(Html.hidden(CSRF_FIELD, self.token or secrets.token_hex(32)))

        form_errors = self.errors.get(FORM_ERRORS_KEY)
        if form_errors:
            form.child(self._form_errors(form_errors))

        rendered = self._render_fields(list(fields), values)
        form.child(Html.div().class_("cms-form__fields").html(rendered.html))
        form.child(self._actions())

        return FormResult(html=form.render(), assets=rendered.assets)

    def build_fields(
        self, fields: Iterable[FieldDefinition], values: Optional[Dict[str, Any]] = None
    ) -> RenderResult:
        """Render only the fields, for embedding in a template's own form."""
        return self._render_fields(list(fields), values or {})

    def build_field(self, field_def: FieldDefinition, value: Any = None) -> RenderResult:
        if value is None:
            value = field_def.default_value
        return self.registry.render_field(field_def, value, self.context(), collect=False)

    # ==================== VALUES ====================

    def validate(self, fields: Iterable[FieldDefinition], data: Dict[str, Any]) -> Dict[str, List[str]]:
        return self.registry.validate_fields(fields, data)

    def prepare(self, fields: Iterable[FieldDefinition], data: Dict[str, Any]) -> Dict[str, Any]:
        return self.registry.prepare_values(fields, data)

    # ==================== PARTS ====================

    def _render_fields(self, fields: List[FieldDefinition], values: Dict[str, Any]) -> RenderResult:
        context = self.context()
        if not self.group_fields:
            return self.registry.render_fields(fields, values, context, collect=False)

        groups: Dict[str, List[FieldDefinition]] = {}
        for field_def in fields:
            groups.setdefault(field_def.get_setting("group") or DEFAULT_GROUP, []).append(field_def)

        result = RenderResult.empty()
        for index, (group_name, group_fields) in enumerate(groups.items()):
            # Groups after the first start collapsed
            fieldset = Html.element("fieldset").class_(
                "cms-form__group", "cms-form__group--collapsed" if index > 0 else None
            )
            fieldset.child(
                Html.element("legend")
                .class_("cms-form__group-title")
                .child(Html.span().class_("cms-form__group-toggle").text("▼"))
                .text(f" {group_name}")
            )
            content = Html.div().class_("cms-form__group-content")
            group = self.registry.render_fields(group_fields, values, context, collect=False)
            content.html(group.html)
            result = result.combine(RenderResult.create(fieldset.child(content).render(), group.assets))
        return result

    @staticmethod
    def _form_errors(errors: List[str]) -> HtmlBuilder:
        container = Html.div().class_("cms-form__errors").attr("role", "alert")
        for error in errors:
            container.child(Html.div().class_("cms-form__error").text(error))
        return container

    def _actions(self) -> HtmlBuilder:
        actions = Html.div().class_("cms-form__actions")
        actions.child(Html.button("submit").class_("cms-form__submit").text(self.submit_text))
        if self.cancel:
            actions.child(Html.element("a").class_("cms-form__cancel").attr("href", self.cancel).text("Cancel"))
        return actions
