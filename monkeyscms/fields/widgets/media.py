"""
Media widgets: image, file, gallery and video.

Media values are URLs or site-relative paths.
"""

import json
import posixpath
import re
from typing import Optional
from urllib.parse import urlparse

from markupsafe import escape

from ..html import Html
from ..validation import ValidationResult
from ..values import is_empty
from .base import BaseWidget

VIDEO_PATTERNS = {
    "youtube": re.compile(r"(?:youtube\.com/(?:watch\?v=|embed/)|youtu\.be/)([A-Za-z0-9_-]{6,})"),
    "vimeo": re.compile(r"vimeo\.com/(?:video/)?(\d+)"),
}
VIDEO_FILE = re.compile(r"\.(mp4|webm|ogg)$", re.IGNORECASE)

FILE_ICONS = {
    "pdf": "\U0001F4D5",
    "doc": "\U0001F4D8",
    "docx": "\U0001F4D8",
    "xls": "\U0001F4D7",
    "xlsx": "\U0001F4D7",
    "zip": "\U0001F4E6",
    "txt": "\U0001F4C4",
    "csv": "\U0001F4CA",
}
DEFAULT_IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]


def video_embed_html(url: str) -> Optional[str]:
    """
    Build embed markup for YouTube, Vimeo or a direct video file.

    Returns:
        HTML string, or None when the URL is not embeddable
    """
    match = VIDEO_PATTERNS["youtube"].search(url)
    if match:
        return f'<iframe src="https://www.youtube.com/embed/{match.group(1)}" frameborder="0" allowfullscreen></iframe>'
    match = VIDEO_PATTERNS["vimeo"].search(url)
    if match:
        return f'<iframe src="https://player.vimeo.com/video/{match.group(1)}" frameborder="0" allowfullscreen></iframe>'
    if VIDEO_FILE.search(urlparse(url).path):
        return f'<video src="{escape(url)}" controls></video>'
    return None


def _is_url_or_path(value: str) -> bool:
    parsed = urlparse(value)
    return value.startswith("/") or (parsed.scheme in ("http", "https") and bool(parsed.netloc))


def file_icon(filename: str) -> str:
    extension = posixpath.splitext(filename)[1].lstrip(".").lower()
    return FILE_ICONS.get(extension, "\U0001F4CE")


class ImageWidget(BaseWidget):
    id = "image"
    label = "Image Upload"
    category = "Media"
    icon = "\U0001F5BC"
    priority = 100
    supported_types = ["image", "file"]
    css_files = ["/css/fields/media.css"]
    js_files = ["/js/fields/media.js"]
    settings_schema = {
        "preview_size": {"type": "string", "label": "Preview Size", "options": ["small", "medium", "large"], "default": "medium"},
        "display_size": {"type": "integer", "label": "Display Size (px)", "default": 100},
        "allowed_types": {"type": "array", "label": "Allowed MIME Types"},
        "max_size": {"type": "integer", "label": "Max File Size (bytes)", "default": 5242880},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        wrapper = Html.div().class_("field-image").data("field-id", field_id)
        wrapper.child(Html.hidden(self.field_name(field, context), value).id(field_id).class_("field-image__value"))

        preview = Html.div().class_("field-image__preview", f"field-image__preview--{settings.get_string('preview_size')}")
        if value:
            preview.child(Html.element("img").class_("field-image__img").attr("src", value).attr("alt", "Preview"))
        else:
            preview.child(Html.div().class_("field-image__placeholder").text("No image selected"))
        wrapper.child(preview)

        accept = ",".join(settings.get_list("allowed_types", DEFAULT_IMAGE_TYPES))
        wrapper.child(
            Html.div()
            .class_("field-image__actions")
            .child(
                Html.label()
                .class_("field-image__upload")
                .child(Html.input("file").class_("field-image__file").attr("accept", accept).data("max-size", settings.get_int("max_size")))
                .child(Html.span().text("Upload"))
            )
            .child(Html.button().class_("field-image__remove").data("action", "remove").text("Remove"))
        )
        return wrapper

    def init_script(self, field, element_id):
        return f"CmsMedia.initImage('{element_id}');"

    def validate(self, field, value):
        if is_empty(value):
            return ValidationResult.success()
        if isinstance(value, str) and not _is_url_or_path(value):
            return ValidationResult.failure("Invalid image URL")
        return ValidationResult.success()

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        size = self.get_settings(field).get_int("display_size", 100)
        element = (
            Html.element("img")
            .class_("field-display", "field-display--image")
            .attr("src", value)
            .attr("alt", "")
            .attr("style", f"max-width: {size}px; max-height: {size}px;")
        )
        return self.result(element)


class FileWidget(BaseWidget):
    id = "file"
    label = "File Upload"
    category = "Media"
    icon = "\U0001F4CE"
    priority = 100
    supported_types = ["file"]
    css_files = ["/css/fields/media.css"]
    js_files = ["/js/fields/media.js"]
    settings_schema = {
        "allowed_extensions": {"type": "array", "label": "Allowed Extensions"},
        "max_size": {"type": "integer", "label": "Max File Size (bytes)", "default": 10485760},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        wrapper = Html.div().class_("field-file").data("field-id", field_id)
        wrapper.child(Html.hidden(self.field_name(field, context), value).id(field_id).class_("field-file__value"))

        info = Html.div().class_("field-file__info").attr("style", None if value else "display: none;")
        if value:
            filename = posixpath.basename(str(value))
            info.child(Html.span().class_("field-file__icon").text(file_icon(filename)))
            info.child(Html.span().class_("field-file__name").text(filename))
            info.child(Html.element("a").class_("field-file__download").attrs({"href": value, "target": "_blank"}).text("Download"))
        wrapper.child(info)

        extensions = settings.get_list("allowed_extensions")
        accept = ",".join(f".{ext.lstrip('.')}" for ext in extensions) or None
        wrapper.child(
            Html.div()
            .class_("field-file__dropzone")
            .text("Drag & drop file here or click to browse")
            .child(Html.input("file").class_("field-file__input").attr("accept", accept).data("max-size", settings.get_int("max_size")))
        )
        return wrapper

    def init_script(self, field, element_id):
        return f"CmsMedia.initFile('{element_id}');"

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        filename = posixpath.basename(str(value))
        link = (
            Html.element("a")
            .class_("field-display", "field-display--file")
            .attrs({"href": value, "target": "_blank"})
            .child(Html.span().text(file_icon(filename) + " "))
            .text(filename)
        )
        return self.result(link)


class GalleryWidget(BaseWidget):
    id = "gallery"
    label = "Image Gallery"
    category = "Media"
    icon = "\U0001F5BC"
    priority = 90
    supported_types = ["gallery"]
    supports_multiple = True
    css_files = ["/css/fields/media.css"]
    js_files = ["/js/fields/media.js"]
    settings_schema = {
        "max_items": {"type": "integer", "label": "Max Items (0 = unlimited)", "default": 0},
        "thumb_size": {"type": "integer", "label": "Thumbnail Size (px)", "default": 80},
        "allowed_types": {"type": "array", "label": "Allowed MIME Types"},
    }

    def build_input(self, field, value, context):
        settings = self.get_settings(field)
        field_id = self.field_id(field, context)
        images = self._images(value)

        wrapper = Html.div().class_("field-gallery").data("field-id", field_id).data("max-items", settings.get_int("max_items"))
        # Images travel as one JSON encoded hidden value
        wrapper.child(Html.hidden(self.base_name(field, context), json.dumps(images)).id(field_id).class_("field-gallery__value"))

        grid = Html.div().class_("field-gallery__grid")
        for index, url in enumerate(images):
            grid.child(
                Html.div()
                .class_("field-gallery__item")
                .data("index", index)
                .attr("draggable", "true")
                .child(Html.element("img").attr("src", url).attr("alt", ""))
                .child(Html.button().class_("field-gallery__remove").data("action", "remove").text("×"))
            )
        wrapper.child(grid)

        accept = ",".join(settings.get_list("allowed_types", DEFAULT_IMAGE_TYPES))
        wrapper.child(
            Html.div()
            .class_("field-gallery__actions")
            .child(
                Html.label()
                .class_("field-gallery__upload")
                .child(Html.input("file").class_("field-gallery__file").attr("accept", accept).attr("multiple", True))
                .child(Html.span().text("Upload"))
            )
            .child(Html.button().class_("field-gallery__browse").data("action", "browse").text("Browse Library"))
        )
        return wrapper

    def init_script(self, field, element_id):
        return f"CmsMedia.initGallery('{element_id}');"

    @staticmethod
    def _images(value):
        if is_empty(value):
            return []
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return [value]
            return decoded if isinstance(decoded, list) else [value]
        if isinstance(value, (list, tuple)):
            return [item for item in value if not is_empty(item)]
        return [value]

    def prepare_value(self, field, value):
        return self._images(value)

    def validate(self, field, value):
        max_items = self.get_settings(field).get_int("max_items")
        if max_items and len(self._images(value)) > max_items:
            return ValidationResult.failure(f"No more than {max_items} images are allowed")
        return ValidationResult.success()

    def render_display(self, field, value, context):
        images = self._images(value)
        if not images:
            return self.empty_display()
        size = self.get_settings(field).get_int("thumb_size", 80)
        grid = Html.div().class_("field-display", "field-display--gallery")
        for url in images:
            grid.child(
                Html.element("img")
                .attr("src", url)
                .attr("alt", "")
                .attr("style", f"width: {size}px; height: {size}px; object-fit: cover;")
            )
        return self.result(grid)


class VideoWidget(BaseWidget):
    id = "video"
    label = "Video Embed"
    category = "Media"
    icon = "\U0001F3AC"
    priority = 100
    supported_types = ["video"]
    css_files = ["/css/fields/media.css"]
    js_files = ["/js/fields/media.js"]
    settings_schema = {
        "allowed_providers": {"type": "array", "label": "Allowed Providers", "default": ["youtube", "vimeo"]},
    }

    def build_input(self, field, value, context):
        field_id = self.field_id(field, context)
        preview = Html.div().class_("field-video__preview").id(f"{field_id}_preview")
        embed = video_embed_html(str(value)) if value else None
        if embed:
            preview.html(embed)
        return (
            Html.div()
            .class_("field-video")
            .data("field-id", field_id)
            .child(
                Html.input("url")
                .attrs(self.common_attributes(field, context))
                .attr("placeholder", "https://youtube.com/watch?v=... or https://vimeo.com/...")
                .value(value)
            )
            .child(preview)
        )

    def render_display(self, field, value, context):
        if is_empty(value):
            return self.empty_display()
        embed = video_embed_html(str(value))
        if embed:
            return self.result(Html.div().class_("field-display", "field-display--video").html(embed))
        link = Html.element("a").class_("field-display", "field-display--video-link").attrs({"href": value, "target": "_blank"})
        return self.result(link.text(value))
