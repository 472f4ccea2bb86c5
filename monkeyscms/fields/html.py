"""
Fluent HTML element builder used by widgets.

Text content and attribute values are escaped with MarkupSafe; raw HTML
is only inserted through ``html()``.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from markupsafe import Markup, escape

VOID_ELEMENTS = {"area", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}


class HtmlBuilder:
    """
    Builds a single HTML element and its children.

    Example:
        >>> HtmlBuilder("div").class_("card").text("<hi>").render()
        '<div class="card">&lt;hi&gt;</div>'
    """

    def __init__(self, tag: str):
        self.tag = tag
        self._attributes: Dict[str, Union[str, bool]] = {}
        self._content: List[Tuple[str, Any]] = []
        self._void = tag in VOID_ELEMENTS

    # ==================== ATTRIBUTES ====================

    def attr(self, name: str, value: Any) -> "HtmlBuilder":
        """
        Set an attribute.

        ``None`` and ``False`` remove it, ``True`` renders a bare boolean attribute.
        """
        if value is None or value is False:
            self._attributes.pop(name, None)
        elif value is True:
            self._attributes[name] = True
        else:
            self._attributes[name] = str(value)
        return self

    def attrs(self, attributes: Dict[str, Any]) -> "HtmlBuilder":
        for name, value in attributes.items():
            self.attr(name, value)
        return self

    def get_attr(self, name: str) -> Optional[Union[str, bool]]:
        return self._attributes.get(name)

    def id(self, element_id: str) -> "HtmlBuilder":
        return self.attr("id", element_id)

    def name(self, name: str) -> "HtmlBuilder":
        return self.attr("name", name)

    def value(self, value: Any) -> "HtmlBuilder":
        return self.attr("value", "" if value is None else value)

    def class_(self, *classes: Optional[str]) -> "HtmlBuilder":
        """Replace the class attribute, skipping empty names."""
        return self.attr("class", " ".join(c for c in classes if c) or None)

    def add_class(self, *classes: Optional[str]) -> "HtmlBuilder":
        existing = str(self._attributes.get("class", "")).split()
        merged: List[str] = []
        for css_class in existing + [c for c in classes if c]:
            if css_class not in merged:
                merged.append(css_class)
        return self.attr("class", " ".join(merged) or None)

    def data(self, name: str, value: Any) -> "HtmlBuilder":
        return self.attr(f"data-{name}", value)

    def aria(self, name: str, value: Any) -> "HtmlBuilder":
        return self.attr(f"aria-{name}", value)

    def placeholder(self, placeholder: Optional[str]) -> "HtmlBuilder":
        return self.attr("placeholder", placeholder or None)

    def required(self, required: bool = True) -> "HtmlBuilder":
        return self.attr("required", required)

    def disabled(self, disabled: bool = True) -> "HtmlBuilder":
        return self.attr("disabled", disabled)

    def readonly(self, readonly: bool = True) -> "HtmlBuilder":
        return self.attr("readonly", readonly)

    # ==================== CONTENT ====================

    def text(self, text: Any) -> "HtmlBuilder":
        """Append escaped text."""
        self._content.append(("text", "" if text is None else str(text)))
        return self

    def html(self, html: Any) -> "HtmlBuilder":
        """Append raw HTML."""
        self._content.append(("html", "" if html is None else str(html)))
        return self

    def child(self, child: "HtmlBuilder") -> "HtmlBuilder":
        self._content.append(("builder", child))
        return self

    def children(self, children: Iterable[Union["HtmlBuilder", str]]) -> "HtmlBuilder":
        for child in children:
            if isinstance(child, HtmlBuilder):
                self.child(child)
            elif child:
                self.html(child)
        return self

    def when(self, condition: Any, callback: Callable[["HtmlBuilder"], Any]) -> "HtmlBuilder":
        """Apply ``callback`` to the builder only when ``condition`` holds."""
        if condition:
            callback(self)
        return self

    # ==================== OUTPUT ====================

    def render(self) -> str:
        parts = [f"<{self.tag}"]
        for name, value in self._attributes.items():
            if value is True:
                parts.append(f" {escape(name)}")
            else:
                parts.append(f' {escape(name)}="{escape(value)}"')

        if self._void and not self._content:
            return "".join(parts) + ">"

        parts.append(">")
        for kind, item in self._content:
            if kind == "text":
                parts.append(str(escape(item)))
            elif kind == "html":
                parts.append(item)
            else:
                parts.append(item.render())
        parts.append(f"</{self.tag}>")
        return "".join(parts)

    def __html__(self) -> str:
        return self.render()

    def __str__(self) -> str:
        return self.render()


class Html:
    """Shortcuts for common elements."""

    @staticmethod
    def element(tag: str) -> HtmlBuilder:
        return HtmlBuilder(tag)

    @staticmethod
    def div() -> HtmlBuilder:
        return HtmlBuilder("div")

    @staticmethod
    def span() -> HtmlBuilder:
        return HtmlBuilder("span")

    @staticmethod
    def label() -> HtmlBuilder:
        return HtmlBuilder("label")

    @staticmethod
    def input(input_type: str = "text") -> HtmlBuilder:
        return HtmlBuilder("input").attr("type", input_type)

    @staticmethod
    def textarea() -> HtmlBuilder:
        return HtmlBuilder("textarea")

    @staticmethod
    def select() -> HtmlBuilder:
        return HtmlBuilder("select")

    @staticmethod
    def button(button_type: str = "button") -> HtmlBuilder:
        return HtmlBuilder("button").attr("type", button_type)

    @staticmethod
    def option(value: Any, label: Any, selected: bool = False) -> HtmlBuilder:
        return HtmlBuilder("option").attr("value", str(value)).text(label).attr("selected", selected)

    @staticmethod
    def hidden(name: str, value: Any) -> HtmlBuilder:
        return Html.input("hidden").name(name).value(value)

    @staticmethod
    def escape(value: Any) -> str:
        return str(escape("" if value is None else value))

    @staticmethod
    def markup(html: str) -> Markup:
        """Mark a rendered fragment safe for Jinja2 templates."""
        return Markup(html)
