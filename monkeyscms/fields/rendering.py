"""
Rendering context, render results and asset collection for widgets.

``RenderContext`` is threaded through every widget call and carries the
naming information (form id, name prefix, item index) that lets nested
widgets such as the repeater produce correctly scoped ids and names.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Union

from markupsafe import escape


# ==================== CONTEXT ====================


@dataclass(frozen=True)
class RenderContext:
    """Immutable options for rendering a field."""

    form_id: str = "form"
    name_prefix: str = ""
    index: Optional[int] = None
    # Value slot of a multi-valued field rendered by a single-value widget
    delta: Optional[Union[int, str]] = None
    disabled: bool = False
    readonly: bool = False
    hide_label: bool = False
    hide_help: bool = False
    display: bool = False
    errors: Dict[str, List[str]] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, **options: Any) -> "RenderContext":
        return cls(**options)

    @classmethod
    def for_display(cls, **options: Any) -> "RenderContext":
        """Context for read-only display rendering."""
        options.setdefault("readonly", True)
        options.setdefault("hide_help", True)
        return cls(display=True, **options)

    def errors_for(self, field_name: str) -> List[str]:
        return list(self.errors.get(field_name, []))

    def has_errors_for(self, field_name: str) -> bool:
        return bool(self.errors.get(field_name))

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def with_form_id(self, form_id: str) -> "RenderContext":
        return replace(self, form_id=form_id)

    def with_prefix(self, prefix: str) -> "RenderContext":
        return replace(self, name_prefix=prefix)

    def with_index(self, index: Optional[int]) -> "RenderContext":
        return replace(self, index=index)

    def with_delta(self, delta: Optional[Union[int, str]]) -> "RenderContext":
        return replace(self, delta=delta)

    def with_hide_label(self, hide_label: bool = True) -> "RenderContext":
        return replace(self, hide_label=hide_label)

    def with_disabled(self, disabled: bool = True) -> "RenderContext":
        return replace(self, disabled=disabled)

    def with_errors(self, errors: Dict[str, List[str]]) -> "RenderContext":
        return replace(self, errors=dict(errors))

    def with_data(self, key: str, value: Any) -> "RenderContext":
        return replace(self, data={**self.data, key: value})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "form_id": self.form_id,
            "name_prefix": self.name_prefix,
            "index": self.index,
            "delta": self.delta,
            "disabled": self.disabled,
            "readonly": self.readonly,
            "hide_label": self.hide_label,
            "hide_help": self.hide_help,
            "display": self.display,
            "errors": self.errors,
            "data": self.data,
        }


# ==================== ASSETS ====================


class AssetCollection:
    """
    CSS and JavaScript needed by rendered widgets.

    Files are kept unique in insertion order; inline styles and scripts
    are keyed so the same widget type contributes them only once.
    """

    def __init__(self):
        self._css: Dict[str, None] = {}
        self._js: Dict[str, None] = {}
        self._init_scripts: List[str] = []
        self._inline_styles: Dict[str, str] = {}
        self._inline_scripts: Dict[str, str] = {}

    def add_css(self, path: str) -> "AssetCollection":
        self._css.setdefault(path, None)
        return self

    def add_css_files(self, paths: Iterable[str]) -> "AssetCollection":
        for path in paths:
            self.add_css(path)
        return self

    def add_js(self, path: str) -> "AssetCollection":
        self._js.setdefault(path, None)
        return self

    def add_js_files(self, paths: Iterable[str]) -> "AssetCollection":
        for path in paths:
            self.add_js(path)
        return self

    def add_init_script(self, script: str) -> "AssetCollection":
        self._init_scripts.append(script)
        return self

    def add_inline_style(self, key: str, css: str) -> "AssetCollection":
        self._inline_styles[key] = css
        return self

    def add_inline_script(self, key: str, js: str) -> "AssetCollection":
        self._inline_scripts[key] = js
        return self

    def merge(self, other: "AssetCollection") -> "AssetCollection":
        self.add_css_files(other.css_files)
        self.add_js_files(other.js_files)
        self._init_scripts.extend(other.init_scripts)
        self._inline_styles.update(other.inline_styles)
        self._inline_scripts.update(other.inline_scripts)
        return self

    @property
    def css_files(self) -> List[str]:
        return list(self._css)

    @property
    def js_files(self) -> List[str]:
        return list(self._js)

    @property
    def init_scripts(self) -> List[str]:
        return list(self._init_scripts)

    @property
    def inline_styles(self) -> Dict[str, str]:
        return dict(self._inline_styles)

    @property
    def inline_scripts(self) -> Dict[str, str]:
        return dict(self._inline_scripts)

    def render_css(self) -> str:
        html = "".join(f'<link rel="stylesheet" href="{escape(path)}">\n' for path in self._css)
        if self._inline_styles:
            html += "<style>\n" + "".join(f"{css}\n" for css in self._inline_styles.values()) + "</style>\n"
        return html

    def render_js(self) -> str:
        html = "".join(f'<script src="{escape(path)}"></script>\n' for path in self._js)
        if self._init_scripts or self._inline_scripts:
            html += "<script>\n"
            html += 'document.addEventListener("DOMContentLoaded", function() {\n'
            html += "".join(f"{script}\n" for script in self._init_scripts)
            html += "});\n"
            html += "".join(f"{script}\n" for script in self._inline_scripts.values())
            html += "</script>\n"
        return html

    def render(self) -> str:
        return self.render_css() + self.render_js()

    def is_empty(self) -> bool:
        return not (self._css or self._js or self._init_scripts or self._inline_styles or self._inline_scripts)

    def clear(self) -> "AssetCollection":
        self._css.clear()
        self._js.clear()
        self._init_scripts.clear()
        self._inline_styles.clear()
        self._inline_scripts.clear()
        return self

    def stats(self) -> Dict[str, int]:
        return {
            "css_files": len(self._css),
            "js_files": len(self._js),
            "init_scripts": len(self._init_scripts),
            "inline_styles": len(self._inline_styles),
            "inline_scripts": len(self._inline_scripts),
        }


# ==================== RESULT ====================


class RenderResult:
    """Rendered HTML together with the assets it needs."""

    def __init__(self, html: str = "", assets: Optional[AssetCollection] = None):
        self.html = html
        self.assets = assets if assets is not None else AssetCollection()

    @classmethod
    def create(cls, html: str, assets: Optional[AssetCollection] = None) -> "RenderResult":
        return cls(html, assets)

    @classmethod
    def empty(cls) -> "RenderResult":
        return cls("")

    @classmethod
    def from_html(cls, html: str) -> "RenderResult":
        return cls(html)

    def html_with_assets(self) -> str:
        return self.html + self.assets.render()

    def combine(self, other: "RenderResult") -> "RenderResult":
        assets = AssetCollection().merge(self.assets).merge(other.assets)
        return RenderResult(self.html + other.html, assets)

    def wrap(self, before: str, after: str) -> "RenderResult":
        return RenderResult(before + self.html + after, self.assets)

    def is_empty(self) -> bool:
        return self.html == ""

    def __html__(self) -> str:
        return self.html

    def __str__(self) -> str:
        return self.html
