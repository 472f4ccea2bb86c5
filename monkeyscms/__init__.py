"""
MonkeysCMS - content management with configurable fields, blocks and taxonomy.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
