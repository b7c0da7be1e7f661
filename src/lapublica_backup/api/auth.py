"""Bearer token authentication for the backup API.

Usage as FastAPI dependencies::

    @router.post("/export")
    async def export(principal: ApiToken = Depends(require_admin)):
        ...
"""

import hmac
import logging

from fastapi import Depends, HTTPException, Request

from lapublica_backup.config import ApiToken, Settings

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "No autoritzat"
ADMIN_ONLY_MESSAGE = "Només els administradors poden realitzar aquesta acció"


def _extract_bearer(request: Request) -> str | None:
    """Extract a Bearer token from the Authorization header."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def require_auth(request: Request) -> ApiToken:
    """FastAPI dependency: extract and validate the Bearer token.

    Raises ``HTTPException(401)`` if the token is missing or unknown.
    When ``auth_disabled`` is set, returns a synthetic admin principal.
    """
    settings: Settings = request.app.state.settings
    if settings.auth_disabled:
        return ApiToken(token="auth-disabled", role="admin")

    raw_token = _extract_bearer(request)
    if not raw_token:
        raise HTTPException(
            status_code=401,
            detail=UNAUTHORIZED_MESSAGE,
            headers={"WWW-Authenticate": "Bearer"},
        )

    for candidate in settings.api_tokens:
        if hmac.compare_digest(candidate.token.encode(), raw_token.encode()):
            return candidate

    logger.warning("Rejected unknown bearer token")
    raise HTTPException(
        status_code=401,
        detail=UNAUTHORIZED_MESSAGE,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin(principal: ApiToken = Depends(require_auth)) -> ApiToken:
    """FastAPI dependency: require an administrator principal.

    Raises ``HTTPException(403)`` for authenticated non-administrators.
    """
    if principal.role != "admin":
        raise HTTPException(status_code=403, detail=ADMIN_ONLY_MESSAGE)
    return principal
