"""
Admin authentication - a single bearer token shared with the business owner.
"""

import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

# auto_error off so a missing header yields 401, not 403
security = HTTPBearer(auto_error=False)


async def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> None:
    """
    Dependency guarding the admin API.

    Raises:
        HTTPException: 503 if no admin token is configured, 401 if the token is wrong
    """
    expected = request.app.state.container.settings.admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API disabled: ADMIN_TOKEN is not configured"
        )

    if credentials is None or not hmac.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
