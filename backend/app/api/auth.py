############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# auth.py: API authentication and relay context resolution
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""API authentication and authorization."""

import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.canonical_schemas import RelayContext
from backend.app.db.models import ApiKey, ApiKeyStatus, User
from backend.app.db.session import get_async_db
from backend.app.logging_config import bind_request_context, get_logger
from backend.app.security.api_keys import verify_api_key
from backend.app.settings import Settings, get_settings

logger = get_logger(__name__)

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_api_key_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """
    Extract API key from request.

    Supports:
    - Authorization: Bearer <key>
    - X-API-Key: <key>
    """
    if credentials and credentials.credentials:
        return credentials.credentials

    x_api_key = request.headers.get("X-API-Key")
    if x_api_key:
        return x_api_key

    return None


async def authenticate_request(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    api_key_str: Optional[str] = Depends(get_api_key_from_request),
) -> Tuple[User, ApiKey]:
    """
    Authenticate a request using API key.

    Returns:
        Tuple of (User, ApiKey)

    Raises:
        HTTPException: 401 if authentication fails
    """
    if not api_key_str:
        logger.warning("missing_api_key", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide via 'Authorization: Bearer <key>' or 'X-API-Key: <key>'",
        )

    api_key = await verify_api_key(db, api_key_str)
    if not api_key:
        logger.warning(
            "invalid_api_key",
            path=request.url.path,
            key_prefix=api_key_str[:8] if len(api_key_str) >= 8 else "short",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    if api_key.status != ApiKeyStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"API key is {api_key.status.value}",
        )

    # MariaDB returns naive datetimes
    expires_at = api_key.expires_at
    if expires_at and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at and expires_at < datetime.now(timezone.utc):
        logger.warning("expired_api_key", key_id=api_key.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key has expired",
        )

    user = api_key.user
    if not user or not user.is_active or user.deleted_at:
        logger.warning(
            "inactive_user",
            key_id=api_key.id,
            user_id=user.id if user else None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    return user, api_key


def build_relay_context(
    user: User,
    api_key: Optional[ApiKey],
    settings: Settings,
    request_id: Optional[str] = None,
) -> RelayContext:
    """Resolve the immutable relay context for an authenticated caller."""
    group = user.group
    return RelayContext(
        request_id=request_id or f"video-{uuid.uuid4().hex[:24]}",
        user_id=user.id,
        api_key_id=api_key.id if api_key else None,
        api_type=settings.relay_api_type,
        group=group.name if group else "default",
        group_ratio=group.ratio if group else settings.default_group_ratio,
        base_url=settings.relay_base_url,
        upstream_key=settings.relay_api_key,
        status_code_mapping=settings.status_code_mapping,
        timeout=settings.upstream_request_timeout,
    )


async def get_relay_context(
    request: Request,
    auth: Tuple[User, ApiKey] = Depends(authenticate_request),
) -> RelayContext:
    """FastAPI dependency: authenticated relay context for this request."""
    user, api_key = auth
    # Reuse the id RequestIDMiddleware bound and echoes back
    request_id = (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or None
    )
    ctx = build_relay_context(user, api_key, get_settings(), request_id=request_id)
    bind_request_context(request_id=ctx.request_id, user_id=user.id)
    return ctx
