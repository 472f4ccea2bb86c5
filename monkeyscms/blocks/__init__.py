"""
Blocks: placeable content units rendered into theme regions.
"""

from .manager import BlockManager
from .renderer import BlockRenderer, is_visible_for_user, is_visible_on_path
from .types import CORE_BLOCK_TYPES, BlockType, markdown_to_html

__all__ = [
    "BlockManager",
    "BlockRenderer",
    "BlockType",
    "CORE_BLOCK_TYPES",
    "is_visible_for_user",
    "is_visible_on_path",
    "markdown_to_html",
]
