"""FastAPI authentication dependencies."""

from __future__ import annotations

import hmac
import uuid

import jwt
from fastapi import Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from trippey.auth.jwt import verify_token
from trippey.config import get_settings

_bearer = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> uuid.UUID:
    """Verify the bearer token and return the caller's user id. Raises 401 on failure."""
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    try:
        return uuid.UUID(str(payload["sub"]))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid subject claim") from e


async def require_service_role(
    x_service_key: str | None = Header(default=None),
) -> None:
    """
    Gate internal endpoints behind the shared service key.

    An unset key on the server side rejects every call.
    """
    expected = get_settings().service_role_key
    if not expected or not x_service_key or not hmac.compare_digest(x_service_key, expected):
        raise HTTPException(status_code=401, detail="Invalid service key")
