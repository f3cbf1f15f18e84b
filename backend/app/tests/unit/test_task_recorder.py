############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# test_task_recorder.py: Unit tests for task recording and retry
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for TaskRecorder."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from backend.app.core.errors import PersistenceError
from backend.app.db.models import Task, TaskPlatform, TaskStatus
from backend.app.services.task_recorder import TaskRecorder


def _failing_db():
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


def _db_error():
    return OperationalError("INSERT INTO tasks", {}, Exception("database is locked"))


class TestInitTask:
    """Tests for building the task row."""

    def test_fields(self, relay_ctx):
        ctx = relay_ctx.with_models("client-model", "vendor-model")
        task = TaskRecorder.init_task(
            ctx, platform=TaskPlatform.GENERIC, task_id="t-1", quota=1500, data={"id": "t-1"}
        )
        assert task.task_id == "t-1"
        assert task.user_id == 1
        assert task.model == "vendor-model"
        assert task.status == TaskStatus.SUBMITTED
        assert task.quota == 1500
        assert task.consume_quota is True
        assert task.submit_time is not None
        assert task.relay_info["origin_model"] == "client-model"
        assert "upstream_key" not in task.relay_info


class TestInsertRetry:
    """Tests for the fixed-delay retry loop."""

    @pytest.mark.asyncio
    async def test_gives_up_after_five_attempts(self, relay_ctx):
        db = _failing_db()
        recorder = TaskRecorder(db, max_attempts=5, retry_delay=0.2)
        recorder._sleep = AsyncMock()
        task = TaskRecorder.init_task(relay_ctx, TaskPlatform.GENERIC, "t-1", 100)

        with patch(
            "backend.app.services.task_recorder.crud.insert_task",
            new=AsyncMock(side_effect=_db_error()),
        ) as insert:
            with pytest.raises(PersistenceError) as exc_info:
                await recorder.insert(task)

        assert insert.await_count == 5
        assert recorder._sleep.await_count == 4
        recorder._sleep.assert_awaited_with(0.2)
        assert db.rollback.await_count == 5
        assert exc_info.value.code == "sql_insert_failed"
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, relay_ctx):
        db = _failing_db()
        recorder = TaskRecorder(db, max_attempts=5, retry_delay=0.2)
        recorder._sleep = AsyncMock()
        task = TaskRecorder.init_task(relay_ctx, TaskPlatform.GENERIC, "t-1", 100)

        with patch(
            "backend.app.services.task_recorder.crud.insert_task",
            new=AsyncMock(side_effect=[_db_error(), _db_error(), task]),
        ) as insert:
            result = await recorder.insert(task)

        assert result is task
        assert insert.await_count == 3
        assert recorder._sleep.await_count == 2
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_commit_failure_is_retried(self, relay_ctx):
        db = _failing_db()
        db.commit = AsyncMock(side_effect=[_db_error(), None])
        recorder = TaskRecorder(db, max_attempts=5, retry_delay=0)
        task = TaskRecorder.init_task(relay_ctx, TaskPlatform.GENERIC, "t-1", 100)

        with patch(
            "backend.app.services.task_recorder.crud.insert_task",
            new=AsyncMock(return_value=task),
        ):
            await recorder.insert(task)

        assert db.commit.await_count == 2


class TestInsertSqlite:
    """Tests against a real database."""

    @pytest.mark.asyncio
    async def test_insert_persists_row(self, db_session, funded_user, relay_ctx):
        ctx = relay_ctx.with_models("wanx2.1-i2v-turbo", "wanx2.1-i2v-turbo")
        recorder = TaskRecorder(db_session, retry_delay=0)
        task = TaskRecorder.init_task(
            ctx, TaskPlatform.GENERIC, "t-42", 200000, data={"task_id": "t-42"}
        )

        await recorder.insert(task)

        rows = (await db_session.execute(select(Task).where(Task.task_id == "t-42"))).scalars().all()
        assert len(rows) == 1
        assert rows[0].id is not None
        assert rows[0].quota == 200000
        assert rows[0].data == {"task_id": "t-42"}

    @pytest.mark.asyncio
    async def test_duplicate_task_ids_not_deduplicated(self, db_session, funded_user, relay_ctx):
        recorder = TaskRecorder(db_session, retry_delay=0)
        for _ in range(2):
            await recorder.insert(
                TaskRecorder.init_task(relay_ctx, TaskPlatform.GENERIC, "dup", 1)
            )

        rows = (await db_session.execute(select(Task).where(Task.task_id == "dup"))).scalars().all()
        assert len(rows) == 2
