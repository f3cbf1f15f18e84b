############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# crud.py: Database CRUD operations for all entities
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database CRUD operations for VideoRelay.

Functions flush but never commit; transaction boundaries belong to the
caller (TaskRecorder, QuotaLedger).
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.db.models import (
    ApiKey,
    ApiKeyStatus,
    ConsumeLog,
    Group,
    Task,
    User,
)


# Group CRUD
async def get_group_by_name(db: AsyncSession, name: str) -> Optional[Group]:
    """Get group by name."""
    result = await db.execute(select(Group).where(Group.name == name))
    return result.scalar_one_or_none()


async def create_group(
    db: AsyncSession,
    name: str,
    display_name: str,
    ratio: float = 1.0,
    description: Optional[str] = None,
) -> Group:
    """Create a billing group."""
    group = Group(name=name, display_name=display_name, ratio=ratio, description=description)
    db.add(group)
    await db.flush()
    return group


# User CRUD
async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    """Get user by username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    username: str,
    email: Optional[str] = None,
    group_id: Optional[int] = None,
    quota: int = 0,
) -> User:
    """Create a new user with an initial balance."""
    user = User(username=username, email=email, group_id=group_id, quota=quota)
    db.add(user)
    await db.flush()
    return user


# Quota CRUD
async def get_user_quota(db: AsyncSession, user_id: int) -> Optional[int]:
    """Current balance of a user, or None if the user does not exist."""
    result = await db.execute(
        select(User.quota).where(User.id == user_id, User.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def decrease_user_quota(db: AsyncSession, user_id: int, quota: int) -> int:
    """Atomically subtract ``quota`` from the balance; returns rows updated."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(quota=User.quota - quota)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def update_user_used_quota(db: AsyncSession, user_id: int, quota: int) -> None:
    """Add to lifetime usage and bump the request counter."""
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            used_quota=User.used_quota + quota,
            request_count=User.request_count + 1,
        )
        .execution_options(synchronize_session=False)
    )


# API Key CRUD
async def get_api_key_by_prefix(db: AsyncSession, key_prefix: str) -> Optional[ApiKey]:
    """Get an active API key by prefix, with its user and group loaded."""
    result = await db.execute(
        select(ApiKey)
        .options(selectinload(ApiKey.user).selectinload(User.group))
        .where(ApiKey.key_prefix == key_prefix, ApiKey.status == ApiKeyStatus.ACTIVE)
    )
    return result.scalars().first()


async def create_api_key(
    db: AsyncSession,
    user_id: int,
    key_hash: str,
    key_prefix: str,
    name: str,
    expires_at: Optional[datetime] = None,
) -> ApiKey:
    """Create a new API key."""
    api_key = ApiKey(
        user_id=user_id,
        key_hash=key_hash,
        key_prefix=key_prefix,
        name=name,
        expires_at=expires_at,
        status=ApiKeyStatus.ACTIVE,
    )
    db.add(api_key)
    await db.flush()
    return api_key


async def update_api_key_usage(db: AsyncSession, api_key_id: int, quota: int = 0) -> None:
    """Record a use of an API key and the quota it spent."""
    await db.execute(
        update(ApiKey)
        .where(ApiKey.id == api_key_id)
        .values(
            usage_count=ApiKey.usage_count + 1,
            used_quota=ApiKey.used_quota + quota,
            last_used_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )


# Task CRUD
async def insert_task(db: AsyncSession, task: Task) -> Task:
    """Stage a task row and flush it to obtain its primary key."""
    db.add(task)
    await db.flush()
    return task


async def get_task_by_task_id(
    db: AsyncSession, user_id: int, task_id: str
) -> Optional[Task]:
    """Latest task with the given upstream id owned by ``user_id``."""
    result = await db.execute(
        select(Task)
        .where(Task.user_id == user_id, Task.task_id == task_id)
        .order_by(Task.id.desc())
    )
    return result.scalars().first()


async def get_user_tasks(
    db: AsyncSession, user_id: int, limit: int = 50
) -> List[Task]:
    """Most recent tasks of a user."""
    result = await db.execute(
        select(Task)
        .where(Task.user_id == user_id)
        .order_by(Task.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# Consume Log CRUD
async def create_consume_log(
    db: AsyncSession,
    user_id: int,
    model_name: str,
    quota: int,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    content: Optional[str] = None,
    api_key_id: Optional[int] = None,
    group: Optional[str] = None,
    is_stream: bool = False,
    other: Optional[Dict[str, Any]] = None,
) -> ConsumeLog:
    """Create a billing log entry."""
    entry = ConsumeLog(
        user_id=user_id,
        api_key_id=api_key_id,
        model_name=model_name,
        group=group,
        quota=quota,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        is_stream=is_stream,
        content=content,
        other=other,
    )
    db.add(entry)
    await db.flush()
    return entry
