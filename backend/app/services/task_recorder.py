############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# task_recorder.py: Durable task insertion with bounded retry
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Task recorder - persists upstream jobs before any quota is debited."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.canonical_schemas import RelayContext
from backend.app.core.errors import PersistenceError
from backend.app.core.metrics import ORPHANED_TASKS, TASK_INSERT_RETRIES
from backend.app.db import crud
from backend.app.db.models import Task, TaskPlatform, TaskStatus
from backend.app.logging_config import get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)


class TaskRecorder:
    """
    Inserts task rows with a fixed-delay retry.

    Up to ``task_insert_max_attempts`` attempts, sleeping
    ``task_insert_retry_delay`` seconds between them (no backoff, no
    jitter). Inserts are not deduplicated on ``task_id``.
    """

    def __init__(
        self,
        db: AsyncSession,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self.db = db
        self.max_attempts = max_attempts or settings.task_insert_max_attempts
        self.retry_delay = (
            settings.task_insert_retry_delay if retry_delay is None else retry_delay
        )
        self._sleep = asyncio.sleep

    @staticmethod
    def init_task(
        ctx: RelayContext,
        platform: TaskPlatform,
        task_id: str,
        quota: int,
        consume_quota: bool = True,
        action: str = "generate",
        data: Optional[dict] = None,
    ) -> Task:
        """Build an unsaved task row for a freshly submitted upstream job."""
        return Task(
            task_id=task_id,
            platform=platform,
            user_id=ctx.user_id,
            api_key_id=ctx.api_key_id,
            group=ctx.group,
            action=action,
            model=ctx.upstream_model,
            status=TaskStatus.SUBMITTED,
            progress="0%",
            submit_time=datetime.now(timezone.utc),
            quota=quota,
            consume_quota=consume_quota,
            relay_info=ctx.snapshot(),
            data=data,
        )

    async def insert(self, task: Task) -> Task:
        """
        Insert and commit ``task``.

        Raises:
            PersistenceError: when every attempt failed; the upstream job
                exists but has no local record.
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await crud.insert_task(self.db, task)
                await self.db.commit()
                if attempt > 1:
                    logger.info(
                        "task_insert_recovered",
                        task_id=task.task_id,
                        attempt=attempt,
                    )
                return task
            except SQLAlchemyError as e:
                last_error = e
                TASK_INSERT_RETRIES.inc()
                await self._rollback()
                logger.warning(
                    "task_insert_retry",
                    task_id=task.task_id,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )

            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay)

        ORPHANED_TASKS.inc()
        logger.error(
            "task_insert_failed",
            task_id=task.task_id,
            user_id=task.user_id,
            quota=task.quota,
            attempts=self.max_attempts,
            error=str(last_error),
        )
        raise PersistenceError(
            f"task insert failed after {self.max_attempts} attempts: {last_error}",
            code="sql_insert_failed",
        )

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("task_insert_rollback_failed", error=str(e))
