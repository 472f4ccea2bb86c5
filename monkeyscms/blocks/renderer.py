"""
Block rendering.

Renders blocks with visibility rules applied, wraps them in the block
container and caches the output per block, path, user and language.
"""

from typing import Any, Dict, Iterable, List, Optional

from ..cache import CmsCacheService
from ..config import settings
from ..fields.html import Html
from ..helpers import path_matches
from ..logging_config import get_logger
from ..models import Block
from .manager import BlockManager
from .types import format_body

logger = get_logger(__name__)

CACHE_PREFIX = "block:rendered:"
CACHE_TAG = "blocks"
ANONYMOUS_ROLE = "anonymous"


def is_visible_on_path(block: Block, path: str) -> bool:
    """
    Apply the block's page visibility.

    ``show`` limits the block to matching pages, ``hide`` excludes them.
    """
    pages = block.visibility_pages or []
    if block.visibility_mode == "all" or not pages:
        return True
    matches = any(path_matches(path, pattern) for pattern in pages)
    return matches if block.visibility_mode == "show" else not matches


def is_visible_for_user(block: Block, user: Any) -> bool:
    roles = block.visibility_roles or []
    if not roles:
        return True
    if user is None:
        return ANONYMOUS_ROLE in roles
    return any(user.has_role(role) for role in roles)


def is_visible(block: Block, context: Dict[str, Any]) -> bool:
    if not block.is_published:
        return False
    if not is_visible_on_path(block, context.get("current_path", "/")):
        return False
    return is_visible_for_user(block, context.get("user"))


class BlockRenderer:
    """
    Renders single blocks and whole regions.

    Context keys:
        current_path: Request path used for page visibility (default ``/``)
        user: Current user or None for anonymous visitors
        langcode: Language of the page (default ``en``)
        theme: Theme whose regions are rendered
    """

    def __init__(self, manager: BlockManager, cache: Optional[CmsCacheService] = None):
        self.manager = manager
        self.cache = cache
        self._rendered: Dict[str, str] = {}
        self.css_files: List[str] = []
        self.js_files: List[str] = []

    @staticmethod
    def cache_key(block: Block, context: Dict[str, Any]) -> str:
        user = context.get("user")
        user_key = str(user.id) if user is not None else ANONYMOUS_ROLE
        path = context.get("current_path", "/")
        return f"{CACHE_PREFIX}{block.id}:{path}:{user_key}:{context.get('langcode', 'en')}"

    def render(self, block: Block, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a block with its container.

        Returns:
            HTML, or an empty string when the block is hidden or has no content
        """
        context = context or {}
        if not is_visible(block, context):
            return ""

        key = self.cache_key(block, context)
        if key in self._rendered:
            return self._rendered[key]

        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                self._rendered[key] = cached
                return cached

        html = self.wrap(block, self._render_content(block, context))
        self._rendered[key] = html

        if self.cache is not None:
            block_type = self.manager.get_type(block.block_type)
            ttl = block_type.cache_ttl if block_type else settings.CACHE_DEFAULT_TTL
            tags = block_type.cache_tags(block) if block_type else [CACHE_TAG, f"block:{block.id}"]
            if ttl > 0:
                self.cache.tags(tags).set(key, html, ttl)
        return html

    def _render_content(self, block: Block, context: Dict[str, Any]) -> str:
        block_type = self.manager.get_type(block.block_type)
        if block_type is not None:
            self._collect_assets(block_type.css_files, block_type.js_files)
        html = self.manager.render_block(block, context)
        if not html and block.body:
            html = format_body(block.body, block.body_format or "html")
        return html

    def _collect_assets(self, css: Iterable[str], js: Iterable[str]) -> None:
        self.css_files.extend(path for path in css if path not in self.css_files)
        self.js_files.extend(path for path in js if path not in self.js_files)

    @staticmethod
    def wrap(block: Block, content: str) -> str:
        if not content:
            return ""
        container = (
            Html.div()
            .id(block.css_id or f"block-{block.id}")
            .class_("block", f"block--{block.block_type}", block.css_class)
            .data("block-id", block.id)
            .data("block-type", block.block_type)
        )
        if block.show_title and block.title:
            container.child(Html.element("h2").class_("block__title").text(block.title))
        container.child(Html.div().class_("block__content").html(content))
        return container.render()

    def render_region(self, region: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Render every visible block of a region inside the region container."""
        context = context or {}
        blocks = self.manager.blocks_for_region(region, context.get("theme"))
        html = "".join(self.render(block, context) for block in blocks)
        if not html:
            return ""
        return Html.div().class_("region", f"region--{region}").data("region", region).html(html).render()

    def render_regions(
        self, regions: Optional[Iterable[str]] = None, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, str]:
        """Render several regions, every theme region by default."""
        names = list(regions) if regions is not None else list(settings.get_theme_regions())
        return {region: self.render_region(region, context) for region in names}

    def render_by_id(self, block_id: int, context: Optional[Dict[str, Any]] = None) -> str:
        block = self.manager.get_block(block_id)
        return self.render(block, context) if block else ""

    def render_by_name(self, machine_name: str, context: Optional[Dict[str, Any]] = None) -> str:
        block = self.manager.get_block_by_name(machine_name)
        return self.render(block, context) if block else ""

    def clear_cache(self, block_id: Optional[int] = None) -> None:
        """Drop rendered output of one block, or of every block."""
        if block_id is None:
            self._rendered.clear()
            if self.cache is not None:
                self.cache.tags([CACHE_TAG]).clear()
            return

        prefix = f"{CACHE_PREFIX}{block_id}:"
        for key in [k for k in self._rendered if k.startswith(prefix)]:
            del self._rendered[key]
        if self.cache is not None:
            self.cache.tags([f"block:{block_id}"]).clear()
        logger.debug("Block cache cleared", extra={"extra_fields": {"block_id": block_id}})
