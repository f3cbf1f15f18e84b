############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# models.py: SQLAlchemy ORM models for all database entities
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""SQLAlchemy database models for VideoRelay."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, TimestampMixin, SoftDeleteMixin

# Use enum values (lowercase) for database storage, not enum names (uppercase)
_enum_values = lambda obj: [e.value for e in obj]


# Enums
class ApiKeyStatus(str, PyEnum):
    """API key status types."""
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class TaskPlatform(str, PyEnum):
    """Upstream platform that owns an asynchronous task."""
    ALI = "ali"
    GENERIC = "generic"


class TaskStatus(str, PyEnum):
    """Lifecycle of an upstream task as seen by the completion poller."""
    NOT_START = "not_start"
    SUBMITTED = "submitted"
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    FAILURE = "failure"
    SUCCESS = "success"
    UNKNOWN = "unknown"


# Group Model
class Group(Base, TimestampMixin):
    """Billing tier; ratio scales every quota charged to its members."""

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ratio: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    users: Mapped[List["User"]] = relationship("User", back_populates="group")


# User and Authentication Models
class User(Base, TimestampMixin, SoftDeleteMixin):
    """Account holding a quota balance."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    group_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("groups.id"), nullable=True)

    # Balance in quota units
    quota: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    used_quota: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    group: Mapped[Optional["Group"]] = relationship("Group", back_populates="users")
    api_keys: Mapped[List["ApiKey"]] = relationship("ApiKey", back_populates="user")
    tasks: Mapped[List["Task"]] = relationship("Task", back_populates="user")

    __table_args__ = (
        Index("ix_users_group_active", "group_id", "is_active"),
    )


class ApiKey(Base, TimestampMixin):
    """API key model."""

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    key_hash: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[ApiKeyStatus] = mapped_column(
        Enum(ApiKeyStatus, values_callable=_enum_values), nullable=False, default=ApiKeyStatus.ACTIVE
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    usage_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    used_quota: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="api_keys")

    __table_args__ = (
        Index("ix_api_keys_status_user", "status", "user_id"),
    )


# Task Model
class Task(Base, TimestampMixin):
    """Durable record of an upstream asynchronous job and the quota reserved for it.

    Written once by the relay at submission time; later status transitions
    belong to the task completion poller.
    """

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(191), nullable=False, index=True)
    platform: Mapped[TaskPlatform] = mapped_column(
        Enum(TaskPlatform, values_callable=_enum_values), nullable=False
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    api_key_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("api_keys.id"), nullable=True)
    group: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    action: Mapped[str] = mapped_column(String(40), nullable=False, default="generate")
    model: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, values_callable=_enum_values), nullable=False, default=TaskStatus.NOT_START
    )
    progress: Mapped[str] = mapped_column(String(20), nullable=False, default="0%")
    fail_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submit_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finish_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Billing
    quota: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consume_quota: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Snapshot of the relay context at submission; raw upstream payload
    relay_info: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="tasks")

    __table_args__ = (
        Index("ix_tasks_user_created", "user_id", "created_at"),
        Index("ix_tasks_platform_status", "platform", "status"),
    )


# Consumption Log Model
class ConsumeLog(Base, TimestampMixin):
    """Billing log entry written with every quota debit."""

    __tablename__ = "consume_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    api_key_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("api_keys.id"), nullable=True)
    model_name: Mapped[str] = mapped_column(String(100), nullable=False)
    group: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    quota: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_stream: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    other: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_consume_logs_user_created", "user_id", "created_at"),
    )
