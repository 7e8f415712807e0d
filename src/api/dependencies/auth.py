"""
API key authentication dependency.

Controlled by environment variables, read on every request:
- API_AUTH_ENABLED=true turns authentication on
- API_KEY holds the expected X-API-Key header value
"""

import hmac
import os
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,  # missing keys are only an error when auth is enabled
    description="API key (required when API_AUTH_ENABLED=true)",
)


def auth_enabled() -> bool:
    return os.getenv("API_AUTH_ENABLED", "false").lower() == "true"


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Verify the X-API-Key header when authentication is enabled.

    Raises:
        HTTPException: 401 if auth is enabled and the key is missing or wrong,
            500 if auth is enabled without API_KEY configured

    Returns:
        The API key if valid, None if auth is disabled
    """
    if not auth_enabled():
        return None

    expected = os.getenv("API_KEY", "")
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API_AUTH_ENABLED is set but API_KEY is not configured",
        )

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key
