"""
User authentication dependency for the Daper API.

Sign-in is handled by the identity provider; this module only verifies the
bearer token it issued and extracts the user's identity.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import httpx
from cachetools import TTLCache
from fastapi import HTTPException, Request, status

from daper.infrastructure.settings import TOKEN_INFO_URL, USERINFO_URL
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter

logger = get_logger(__name__)

_CACHE_MAX_SIZE = 1000
# Shorter than the provider's one-hour token lifetime so revocations take effect
_CACHE_TTL_SECONDS = 600


@dataclass
class AuthenticatedUser:
    """Identity extracted from a verified token."""

    id: str
    email: str
    name: str | None = None
    picture: str | None = None

    def __str__(self) -> str:
        return f"User({self.id})"


_token_cache: TTLCache[str, AuthenticatedUser] = TTLCache(
    maxsize=_CACHE_MAX_SIZE, ttl=_CACHE_TTL_SECONDS
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_token(token: str) -> AuthenticatedUser:
    """
    Verify an OAuth access token with the identity provider.

    Raises:
        HTTPException: 401 for invalid tokens, 503 when the provider is unreachable
    """
    if token in _token_cache:
        return _token_cache[token]

    async with httpx.AsyncClient() as client:
        try:
            token_response = await client.get(
                TOKEN_INFO_URL,
                params={"access_token": token},
                timeout=10.0,
            )
        except httpx.TimeoutException:
            logger.warning("Token validation timed out")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable",
            ) from None
        except httpx.RequestError as e:
            logger.error("Token validation request failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable",
            ) from e

        if token_response.status_code != 200:
            counter("auth.invalid_token")
            logger.warning("Invalid token (status %d)", token_response.status_code)
            raise _unauthorized("Invalid or expired token")

        token_info = token_response.json()

        # The audience check is mandatory in production
        expected_client_id = os.getenv("DAPER_OAUTH_CLIENT_ID")
        is_production = os.getenv("DAPER_ENV", "development") == "production"

        if not expected_client_id and is_production:
            logger.error("DAPER_OAUTH_CLIENT_ID not configured in production")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server misconfiguration: OAuth client ID not set",
            )

        if expected_client_id:
            aud = token_info.get("aud", "")
            if aud != expected_client_id:
                logger.warning("Token audience mismatch: expected=%s, got=%s", expected_client_id, aud)
                raise _unauthorized("Token not issued for this application")
        else:
            logger.warning("DAPER_OAUTH_CLIENT_ID not set - skipping audience validation")

        try:
            userinfo_response = await client.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {token}"},
                timeout=10.0,
            )
        except (httpx.TimeoutException, httpx.RequestError) as e:
            logger.error("Failed to get user info: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Failed to retrieve user information",
            ) from e

        if userinfo_response.status_code != 200:
            logger.warning("Failed to get user info (status %d)", userinfo_response.status_code)
            raise _unauthorized("Failed to retrieve user information")

        userinfo = userinfo_response.json()

    user = AuthenticatedUser(
        id=userinfo["id"],
        email=userinfo.get("email", ""),
        name=userinfo.get("name"),
        picture=userinfo.get("picture"),
    )
    _token_cache[token] = user

    logger.info("Authenticated %s (cache size: %d)", user, len(_token_cache))
    return user


def _extract_bearer_token(authorization: str | None) -> str:
    """Extract token from Authorization header."""
    if not authorization:
        raise _unauthorized("Missing authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized("Invalid authorization header format. Expected: Bearer <token>")

    return parts[1]


async def get_current_user(request: Request) -> AuthenticatedUser:
    """
    FastAPI dependency to get the current authenticated user.

    Usage:
        @router.get("/api/ideas")
        async def list_ideas(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    return await verify_token(token)


def clear_token_cache() -> None:
    """Clear the token cache. Useful for testing."""
    _token_cache.clear()
