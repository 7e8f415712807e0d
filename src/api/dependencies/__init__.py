"""
API Dependencies package.

Cross-cutting concerns like authentication.
"""

from .auth import auth_enabled, verify_api_key

__all__ = ["auth_enabled", "verify_api_key"]
