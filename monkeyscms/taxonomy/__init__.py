"""
Taxonomy: vocabularies of hierarchical terms attached to content.
"""

from .manager import TaxonomyManager, TermNode

__all__ = ["TaxonomyManager", "TermNode"]
