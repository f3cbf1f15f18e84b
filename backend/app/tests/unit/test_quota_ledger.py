############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# test_quota_ledger.py: Unit tests for quota checks and debits
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for QuotaLedger."""

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from backend.app.core.canonical_schemas import PriceData, UsageInfo
from backend.app.core.errors import ConsumptionError, InsufficientQuota, PersistenceError
from backend.app.db import crud
from backend.app.db.models import ConsumeLog, User
from backend.app.security import generate_api_key
from backend.app.services.quota_ledger import QuotaLedger


def _price() -> PriceData:
    return PriceData(use_price=False, model_price=0.2, model_ratio=16.0, group_ratio=1.0)


class TestSufficiency:
    """Tests for the pre-flight comparison."""

    def test_exact_balance_is_sufficient(self):
        assert QuotaLedger.has_sufficient(1000, 1000)

    def test_short_balance_is_insufficient(self):
        assert not QuotaLedger.has_sufficient(999, 1000)

    def test_zero_cost_always_sufficient(self):
        assert QuotaLedger.has_sufficient(0, 0)

    def test_ensure_sufficient_message(self, settings):
        ledger = QuotaLedger(MagicMock(), settings)
        with pytest.raises(InsufficientQuota) as exc_info:
            ledger.ensure_sufficient(250000, 500000)
        assert exc_info.value.status_code == 403
        assert "user quota: $0.500000" in exc_info.value.message
        assert "need quota: $1.000000" in exc_info.value.message


class TestBalance:
    """Tests for balance reads."""

    @pytest.mark.asyncio
    async def test_reads_balance(self, db_session, funded_user, settings):
        ledger = QuotaLedger(db_session, settings)
        assert await ledger.get_user_quota(funded_user.id) == 5_000_000

    @pytest.mark.asyncio
    async def test_missing_user(self, db_session, settings):
        ledger = QuotaLedger(db_session, settings)
        with pytest.raises(PersistenceError) as exc_info:
            await ledger.get_user_quota(999)
        assert exc_info.value.code == "get_user_quota_failed"

    @pytest.mark.asyncio
    async def test_check_sufficient(self, db_session, funded_user, settings):
        ledger = QuotaLedger(db_session, settings)
        assert await ledger.check_sufficient(funded_user.id, 5_000_000)
        assert not await ledger.check_sufficient(funded_user.id, 5_000_001)

    @pytest.mark.asyncio
    async def test_read_failure_is_persistence_error(self, settings):
        db = MagicMock()
        with patch(
            "backend.app.services.quota_ledger.crud.get_user_quota",
            new=AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("gone"))),
        ):
            with pytest.raises(PersistenceError):
                await QuotaLedger(db, settings).get_user_quota(1)


class TestConsume:
    """Tests for the debit transaction."""

    @pytest.mark.asyncio
    async def test_debits_and_logs(self, db_session, funded_user, relay_ctx, settings):
        ctx = relay_ctx.with_models("wanx2.1-t2v-turbo", "wanx2.1-t2v-turbo")
        ledger = QuotaLedger(db_session, settings)

        await ledger.consume(
            ctx,
            UsageInfo(prompt_tokens=5, total_tokens=5),
            100000,
            _price(),
            log_content="duration 5s",
            task_id="t-1",
        )

        user = (
            await db_session.execute(
                select(User).where(User.id == funded_user.id).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert user.quota == 4_900_000
        assert user.used_quota == 100000
        assert user.request_count == 1

        log = (await db_session.execute(select(ConsumeLog))).scalar_one()
        assert log.quota == 100000
        assert log.prompt_tokens == 5
        assert log.content == "duration 5s"
        assert log.model_name == "wanx2.1-t2v-turbo"
        assert log.other["task_id"] == "t-1"
        assert log.other["model_ratio"] == 16.0

    @pytest.mark.asyncio
    async def test_updates_api_key_usage(self, db_session, funded_user, relay_ctx, settings):
        _, key_hash, key_prefix = generate_api_key()
        api_key = await crud.create_api_key(
            db_session, user_id=funded_user.id, key_hash=key_hash, key_prefix=key_prefix, name="k"
        )
        await db_session.commit()
        ctx = replace(relay_ctx.with_models("m", "m"), api_key_id=api_key.id)

        await QuotaLedger(db_session, settings).consume(
            ctx, UsageInfo(), 1234, _price(), log_content="duration 5s"
        )

        await db_session.refresh(api_key)
        assert api_key.usage_count == 1
        assert api_key.used_quota == 1234

    @pytest.mark.asyncio
    async def test_log_disabled(self, db_session, funded_user, relay_ctx, settings):
        settings.log_consume_enabled = False
        await QuotaLedger(db_session, settings).consume(
            relay_ctx.with_models("m", "m"), UsageInfo(), 10, _price(), log_content="duration 5s"
        )
        assert (await db_session.execute(select(ConsumeLog))).first() is None

    @pytest.mark.asyncio
    async def test_missing_user_is_consumption_error(self, db_session, relay_ctx, settings):
        ctx = relay_ctx.with_models("m", "m")
        with pytest.raises(ConsumptionError):
            await QuotaLedger(db_session, settings).consume(
                ctx, UsageInfo(), 10, _price(), log_content="duration 5s"
            )

    @pytest.mark.asyncio
    async def test_database_failure_rolls_back(self, relay_ctx, settings):
        db = MagicMock()
        db.rollback = AsyncMock()
        db.commit = AsyncMock()
        with patch(
            "backend.app.services.quota_ledger.crud.decrease_user_quota",
            new=AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("gone"))),
        ):
            with pytest.raises(ConsumptionError) as exc_info:
                await QuotaLedger(db, settings).consume(
                    relay_ctx, UsageInfo(), 10, _price(), log_content="duration 5s"
                )
        assert exc_info.value.code == "consume_quota_failed"
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
