"""Minimal identity dependency.

Resolves the caller from a "Bearer <user_id>" header, or falls back to the
development user when no header is sent. There is no credential check.
"""

import uuid
from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.docchat.db.context import RequestContext

DEV_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        authorization: Authorization header (e.g., "Bearer <user_id>")

    Returns:
        RequestContext with user_id

    Raises:
        HTTPException: If the header is present but malformed
    """
    if not authorization:
        return RequestContext(user_id=DEV_USER_ID)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:].strip()  # Strip "Bearer "

    try:
        return RequestContext(user_id=uuid.UUID(token))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token (expected a user id)",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
