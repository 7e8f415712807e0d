"""
API Routers package.
"""

from . import simulator, templates

__all__ = ["simulator", "templates"]
