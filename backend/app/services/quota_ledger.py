############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# quota_ledger.py: Balance reads, pre-flight checks and debits
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Quota ledger.

The balance read and the final debit are separate transactions, so two
concurrent requests from one account can both pass the pre-flight check.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.canonical_schemas import PriceData, RelayContext, UsageInfo
from backend.app.core.errors import ConsumptionError, InsufficientQuota, PersistenceError
from backend.app.core.metrics import QUOTA_CONSUMED
from backend.app.core.pricing import format_quota
from backend.app.db import crud
from backend.app.logging_config import get_logger
from backend.app.settings import Settings, get_settings

logger = get_logger(__name__)


class QuotaLedger:
    """Reads and debits account balances."""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self._settings = settings or get_settings()

    async def get_user_quota(self, user_id: int) -> int:
        """
        Current balance of ``user_id``.

        Raises:
            PersistenceError: if the user is missing or the read fails
        """
        try:
            balance = await crud.get_user_quota(self.db, user_id)
        except SQLAlchemyError as e:
            logger.error("get_user_quota_failed", user_id=user_id, error=str(e))
            raise PersistenceError(
                f"failed to read user quota: {e}", code="get_user_quota_failed"
            )
        if balance is None:
            raise PersistenceError(
                f"user {user_id} not found", code="get_user_quota_failed"
            )
        return balance

    @staticmethod
    def has_sufficient(balance: int, quota: int) -> bool:
        """A balance exactly equal to the cost is sufficient."""
        return balance - quota >= 0

    async def check_sufficient(self, user_id: int, quota: int) -> bool:
        """Read the balance of ``user_id`` and compare it against ``quota``."""
        return self.has_sufficient(await self.get_user_quota(user_id), quota)

    def ensure_sufficient(self, balance: int, quota: int) -> None:
        """Raise InsufficientQuota unless ``balance`` covers ``quota``."""
        if not self.has_sufficient(balance, quota):
            per_unit = self._settings.quota_per_unit
            raise InsufficientQuota(
                "video pre-consumed quota failed, "
                f"user quota: {format_quota(balance, per_unit)}, "
                f"need quota: {format_quota(quota, per_unit)}"
            )

    async def consume(
        self,
        ctx: RelayContext,
        usage: UsageInfo,
        quota: int,
        price_data: PriceData,
        log_content: str,
        task_id: Optional[str] = None,
        is_stream: bool = False,
    ) -> None:
        """
        Debit ``quota`` and write the billing log in one transaction.

        Must only be called once the task row is committed.

        Raises:
            ConsumptionError: if the debit could not be written
        """
        try:
            if quota != 0:
                updated = await crud.decrease_user_quota(self.db, ctx.user_id, quota)
                if updated == 0:
                    await self.db.rollback()
                    raise ConsumptionError(f"user {ctx.user_id} vanished before debit")
            await crud.update_user_used_quota(self.db, ctx.user_id, quota)
            if ctx.api_key_id is not None:
                await crud.update_api_key_usage(self.db, ctx.api_key_id, quota)
            if self._settings.log_consume_enabled:
                other = price_data.to_dict()
                other["task_id"] = task_id
                await crud.create_consume_log(
                    self.db,
                    user_id=ctx.user_id,
                    api_key_id=ctx.api_key_id,
                    model_name=ctx.upstream_model,
                    group=ctx.group,
                    quota=quota,
                    prompt_tokens=usage.prompt_tokens,
                    completion_tokens=usage.completion_tokens,
                    content=log_content,
                    is_stream=is_stream,
                    other=other,
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            try:
                await self.db.rollback()
            except SQLAlchemyError as rollback_error:
                logger.warning("quota_rollback_failed", error=str(rollback_error))
            raise ConsumptionError(f"quota debit failed: {e}")

        QUOTA_CONSUMED.labels(model=ctx.upstream_model).inc(quota)
        logger.info(
            "quota_consumed",
            user_id=ctx.user_id,
            quota=quota,
            task_id=task_id,
            content=log_content,
        )
