"""
HTTP routers for MonkeysCMS.
"""

from . import admin, auth_api, fields_api, health

__all__ = ["admin", "auth_api", "fields_api", "health"]
