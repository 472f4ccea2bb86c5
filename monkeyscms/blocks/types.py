"""
Code-defined block types.

A block type renders the inner content of a block from the block's
``settings``. The renderer wraps the output in the block container.
"""

import re
from typing import Any, Dict, List, Optional

from markupsafe import escape

from ..fields.html import Html
from ..fields.widgets.media import video_embed_html
from ..models import Block

BODY_FORMATS = {"html": "HTML", "markdown": "Markdown", "plain": "Plain Text"}
ALIGNMENTS = {"left": "Left", "center": "Center", "right": "Right", "justify": "Justify"}


def nl2br(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\n", "<br>\n")


_MARKDOWN_RULES = [
    (re.compile(r"^### (.+)$", re.MULTILINE), r"<h3>\1</h3>"),
    (re.compile(r"^## (.+)$", re.MULTILINE), r"<h2>\1</h2>"),
    (re.compile(r"^# (.+)$", re.MULTILINE), r"<h1>\1</h1>"),
    (re.compile(r"\*\*(.+?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.+?)\*"), r"<em>\1</em>"),
    (re.compile(r"^- (.+)$", re.MULTILINE), r"<li>\1</li>"),
]
_LIST_RUN = re.compile(r"((?:<li>.*</li>\n?)+)")
_LINK = re.compile(r"\[(.+?)\]\((.+?)\)")
_SAFE_LINK = re.compile(r"^(https?:|mailto:|/|#|[^:]*$)", re.IGNORECASE)


def _link(match) -> str:
    label, href = match.group(1), match.group(2)
    if not _SAFE_LINK.match(href):
        return label
    return f'<a href="{href}">{label}</a>'


def markdown_to_html(text: str) -> str:
    """
    Convert a small Markdown subset to HTML.

    Handles headings, bold, italics, links and flat ``-`` lists. The input
    is escaped first, so raw HTML in the source is shown as text.

    Examples:
        >>> markdown_to_html("# Title")
        '<h1>Title</h1>'
    """
    html = str(escape(text or ""))
    for pattern, replacement in _MARKDOWN_RULES:
        html = pattern.sub(replacement, html)
    html = _LINK.sub(_link, html)
    html = _LIST_RUN.sub(lambda m: "<ul>" + m.group(1).replace("\n", "") + "</ul>\n", html)
    return nl2br(html.strip())


def format_body(body: str, body_format: str) -> str:
    """Render block body text according to its format."""
    if body_format == "markdown":
        return markdown_to_html(body)
    if body_format == "plain":
        return nl2br(str(escape(body)))
    return body


class BlockType:
    """
    Base class for block types.

    Subclasses set the class attributes and implement ``render``.
    ``fields`` maps setting keys to ``{type, label, required, default, settings}``.
    """

    id: str = ""
    label: str = ""
    description: str = ""
    icon: str = "\U0001F9F1"
    category: str = "General"
    cache_ttl: int = 3600
    fields: Dict[str, Dict[str, Any]] = {}
    css_files: List[str] = []
    js_files: List[str] = []

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        raise NotImplementedError

    def validate(self, data: Dict[str, Any]) -> Dict[str, str]:
        """
        Check required settings.

        Returns:
            Mapping of setting key to error message, empty when valid
        """
        errors = {}
        for name, options in self.fields.items():
            value = data.get(name)
            if options.get("required") and (value is None or value == "" or value == []):
                errors[name] = f"{options.get('label', name)} is required"
        return errors

    def process_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill defaults for settings the submitted data leaves out."""
        processed = dict(data)
        for name, options in self.fields.items():
            if name not in processed and "default" in options:
                processed[name] = options["default"]
        return processed

    def default_settings(self) -> Dict[str, Any]:
        return {name: options["default"] for name, options in self.fields.items() if "default" in options}

    def cache_tags(self, block: Block) -> List[str]:
        return ["blocks", f"block:{block.id}", f"block_type:{self.id}"]

    def can_be_placed_in_region(self, region: str) -> bool:
        return True

    @staticmethod
    def setting(block: Block, key: str, default: Any = None) -> Any:
        value = (block.settings or {}).get(key)
        return default if value is None else value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
            "fields": self.fields,
        }


class TextBlock(BlockType):
    id = "text"
    label = "Text Block"
    description = "Rich text content with formatting"
    icon = "\U0001F4C4"
    category = "Basic"
    fields = {
        "content": {"type": "html", "label": "Content", "required": True, "widget": "wysiwyg"},
        "format": {"type": "select", "label": "Text Format", "default": "html", "settings": {"options": BODY_FORMATS}},
        "text_align": {"type": "select", "label": "Text Alignment", "default": "left", "settings": {"options": ALIGNMENTS}},
    }

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        content = self.setting(block, "content", "")
        body_format = self.setting(block, "format", "html")
        if block.body:
            content = block.body
            body_format = block.body_format or "html"
        if not content:
            return ""

        align = self.setting(block, "text_align", "left")
        element = Html.div().class_("text-block").html(format_body(content, body_format))
        if align in ALIGNMENTS and align != "left":
            element.attr("style", f"text-align: {align};")
        return element.render()


class HtmlBlock(BlockType):
    id = "html"
    label = "HTML Block"
    description = "Renders raw HTML"
    icon = "code"
    category = "Basic"
    fields = {
        "content": {"type": "textarea", "label": "HTML Content", "required": True, "widget": "code_editor"},
        "classes": {"type": "string", "label": "CSS Classes"},
    }

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        content = self.setting(block, "content", "") or block.body or ""
        if not content:
            return ""
        return Html.div().class_("html-block", self.setting(block, "classes", "")).html(content).render()


class ImageBlock(BlockType):
    id = "image"
    label = "Image Block"
    description = "Display a single image with optional caption"
    icon = "\U0001F5BC"
    category = "Media"
    css_files = ["/css/blocks/image-block.css"]
    fields = {
        "image": {"type": "image", "label": "Image", "required": True},
        "alt_text": {"type": "string", "label": "Alt Text"},
        "caption": {"type": "string", "label": "Caption"},
        "link_url": {"type": "url", "label": "Link URL"},
        "link_target": {
            "type": "select",
            "label": "Link Target",
            "default": "_self",
            "settings": {"options": {"_self": "Same Window", "_blank": "New Window"}},
        },
        "alignment": {
            "type": "select",
            "label": "Alignment",
            "default": "center",
            "settings": {"options": {"left": "Left", "center": "Center", "right": "Right"}},
        },
    }

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        src = self.setting(block, "image")
        if not src:
            return Html.div().class_("image-block", "image-block--placeholder").text("No image selected").render()

        image = (
            Html.element("img")
            .attr("src", src)
            .attr("alt", self.setting(block, "alt_text", ""))
            .class_("image-block__image")
            .attr("loading", "lazy")
        )
        link_url = self.setting(block, "link_url")
        if link_url:
            image = (
                Html.element("a")
                .attr("href", link_url)
                .attr("target", self.setting(block, "link_target", "_self"))
                .class_("image-block__link")
                .child(image)
            )

        figure = Html.element("figure").class_("image-block", f"image-block--{self.setting(block, 'alignment', 'center')}")
        figure.child(image)
        caption = self.setting(block, "caption")
        if caption:
            figure.child(Html.element("figcaption").class_("image-block__caption").text(caption))
        return figure.render()


class VideoBlock(BlockType):
    id = "video"
    label = "Video Block"
    description = "Embed videos from YouTube, Vimeo, or a video file"
    icon = "\U0001F3AC"
    category = "Media"
    fields = {
        "video_url": {"type": "url", "label": "Video URL", "required": True},
        "title": {"type": "string", "label": "Video Title"},
        "caption": {"type": "text", "label": "Caption"},
        "aspect_ratio": {
            "type": "select",
            "label": "Aspect Ratio",
            "default": "16:9",
            "settings": {"options": {"16:9": "16:9", "4:3": "4:3", "1:1": "1:1", "9:16": "9:16", "21:9": "21:9"}},
        },
        "max_width": {"type": "string", "label": "Maximum Width", "default": "100%"},
    }

    @staticmethod
    def padding_for(aspect_ratio: str) -> str:
        """Bottom padding percentage keeping the embed at ``aspect_ratio``."""
        try:
            width, height = (float(part) for part in aspect_ratio.split(":"))
            return f"{height / width * 100:.2f}%"
        except ValueError:
            return "56.25%"

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        url = self.setting(block, "video_url", "")
        embed = video_embed_html(url) if url else None
        if not embed:
            return Html.div().class_("video-block", "video-block--empty").text("No video selected").render()

        ratio = self.setting(block, "aspect_ratio", "16:9")
        wrapper = (
            Html.div()
            .class_("video-block")
            .attr("style", f"max-width: {escape(self.setting(block, 'max_width', '100%'))};")
            .child(
                Html.div()
                .class_("video-block__embed")
                .attr("style", f"padding-bottom: {self.padding_for(ratio)};")
                .html(embed)
            )
        )
        caption = self.setting(block, "caption")
        if caption:
            wrapper.child(Html.div().class_("video-block__caption").text(caption))
        return wrapper.render()


class GalleryBlock(BlockType):
    id = "gallery"
    label = "Gallery Block"
    description = "Display a gallery of images in a grid or slider"
    icon = "\U0001F5BC"
    category = "Media"
    fields = {
        "images": {"type": "gallery", "label": "Images", "required": True},
        "layout": {
            "type": "select",
            "label": "Layout",
            "default": "grid",
            "settings": {"options": {"grid": "Grid", "masonry": "Masonry", "slider": "Slider/Carousel"}},
        },
        "columns": {"type": "integer", "label": "Columns", "default": 3},
        "gap": {
            "type": "select",
            "label": "Gap Between Images",
            "default": "medium",
            "settings": {"options": {"none": "None", "small": "Small", "medium": "Medium", "large": "Large"}},
        },
        "lightbox": {"type": "boolean", "label": "Enable Lightbox", "default": True},
        "show_captions": {"type": "boolean", "label": "Show Captions", "default": False},
    }

    @staticmethod
    def _image(item: Any) -> Dict[str, str]:
        if isinstance(item, dict):
            return {"url": str(item.get("url", "")), "alt": str(item.get("alt", "")), "caption": str(item.get("caption", ""))}
        return {"url": str(item), "alt": "", "caption": ""}

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        images = [self._image(item) for item in self.setting(block, "images", []) or []]
        images = [image for image in images if image["url"]]
        if not images:
            return Html.div().class_("gallery-block", "gallery-block--empty").text("No images selected").render()

        layout = self.setting(block, "layout", "grid")
        lightbox = bool(self.setting(block, "lightbox", True))
        show_captions = bool(self.setting(block, "show_captions", False))

        gallery = Html.div().class_(
            "gallery-block", f"gallery-block--{layout}", f"gallery-block--gap-{self.setting(block, 'gap', 'medium')}"
        )
        if layout == "grid":
            gallery.attr("style", f"--columns: {int(self.setting(block, 'columns', 3))};")
        gallery.when(lightbox, lambda el: el.data("lightbox", "true"))

        for image in images:
            img = (
                Html.element("img")
                .attr("src", image["url"])
                .attr("alt", image["alt"])
                .class_("gallery-block__image")
                .attr("loading", "lazy")
            )
            item = Html.div().class_("gallery-block__item")
            if lightbox:
                item.child(
                    Html.element("a")
                    .attr("href", image["url"])
                    .class_("gallery-block__link")
                    .data("lightbox-group", f"block-{block.id}")
                    .child(img)
                )
            else:
                item.child(img)
            if show_captions and image["caption"]:
                item.child(Html.div().class_("gallery-block__caption").text(image["caption"]))
            gallery.child(item)
        return gallery.render()


CORE_BLOCK_TYPES = [TextBlock, HtmlBlock, ImageBlock, VideoBlock, GalleryBlock]
