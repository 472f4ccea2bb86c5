"""
Content: content types (node bundles) and nodes.
"""

from .manager import NODE_ENTITY, ContentTypeManager, NodeManager

__all__ = ["ContentTypeManager", "NODE_ENTITY", "NodeManager"]
