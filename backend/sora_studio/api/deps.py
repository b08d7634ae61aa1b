from __future__ import annotations
"""Shared API dependencies — optional Supabase JWT authentication, provider HTTP client."""

import logging
from collections.abc import AsyncGenerator
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from sora_studio.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthUser]:
    """Verify the Supabase access token when AUTH_ENABLED; no-op otherwise."""
    if not settings.AUTH_ENABLED:
        return None

    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=settings.AUTH_AUDIENCE,
        )
    except JWTError as exc:
        logger.warning("Rejected access token: %s", exc)
        raise _unauthorized("Could not validate credentials") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Could not validate credentials")

    return AuthUser(id=user_id, email=payload.get("email"), role=payload.get("role"))


async def provider_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Per-request HTTP client for provider calls, closed after the response."""
    async with httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT) as client:
        yield client
