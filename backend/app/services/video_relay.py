############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# video_relay.py: Video relay pipeline from request to billed task
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Video relay service - validates, prices, dispatches, records and bills."""

import json
from enum import Enum
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.adaptors import get_adaptor, is_event_stream, relay_error_handler
from backend.app.core.canonical_schemas import (
    RelayContext,
    UsageInfo,
    VideoRelayResult,
)
from backend.app.core.errors import (
    ConfigError,
    ConsumptionError,
    ConversionError,
    RelayError,
    UpstreamError,
    reset_status_code,
)
from backend.app.core.metrics import RELAY_REQUESTS, UNBILLED_TASKS
from backend.app.core.pricing import apply_duration_ratio, compute_quota, model_price_helper
from backend.app.core.validators import VideoRequestValidator
from backend.app.logging_config import bind_relay_stage, get_logger
from backend.app.services.quota_ledger import QuotaLedger
from backend.app.services.task_recorder import TaskRecorder
from backend.app.settings import Settings, get_settings

logger = get_logger(__name__)


class RelayStage(str, Enum):
    """Pipeline states, in order."""
    VALIDATING = "validating"
    PRICING = "pricing"
    RESOLVING_ADAPTOR = "resolving_adaptor"
    CONVERTING = "converting"
    DISPATCHING = "dispatching"
    PARSING_RESPONSE = "parsing_response"
    RECORDING = "recording"
    CONSUMING = "consuming"
    DONE = "done"
    ERROR = "error"


class VideoRelayService:
    """
    Runs one video generation request through the relay pipeline.

    validate -> price -> resolve adaptor -> convert -> dispatch -> parse
    -> record -> consume

    Steps run strictly in sequence and are never retried, except the task
    insert. Failures raise a RelayError tagged with the stage that failed.
    Nothing is rolled back upstream: once dispatched, the job runs
    regardless of local bookkeeping.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        ledger: Optional[QuotaLedger] = None,
        recorder: Optional[TaskRecorder] = None,
    ):
        self.db = db
        self._settings = settings or get_settings()
        self._validator = VideoRequestValidator()
        self._ledger = ledger or QuotaLedger(db, self._settings)
        self._recorder = recorder or TaskRecorder(db)
        self.stage = RelayStage.VALIDATING

    def _enter(self, stage: RelayStage) -> None:
        self.stage = stage
        bind_relay_stage(stage.value)

    async def relay(self, ctx: RelayContext, raw: Any) -> VideoRelayResult:
        """
        Relay a raw request body.

        Args:
            ctx: Per-request context (user, group ratio, api type, upstream)
            raw: Decoded JSON request body

        Returns:
            VideoRelayResult once the task is recorded and billing attempted

        Raises:
            RelayError: from whichever stage failed
        """
        try:
            result = await self._run(ctx, raw)
        except RelayError as e:
            e.stage = e.stage or self.stage.value
            self._enter(RelayStage.ERROR)
            self._log_failure(ctx, e)
            RELAY_REQUESTS.labels(outcome="error", kind=e.kind).inc()
            raise

        self._enter(RelayStage.DONE)
        RELAY_REQUESTS.labels(outcome="done", kind="none").inc()
        logger.info(
            "video_relay_done",
            user_id=ctx.user_id,
            task_id=result.task_id,
            model=result.model,
            quota=result.quota,
            consumed=result.consumed,
        )
        return result

    async def _run(self, ctx: RelayContext, raw: Any) -> VideoRelayResult:
        settings = self._settings

        self._enter(RelayStage.VALIDATING)
        request = self._validator.validate(self._validator.parse(raw))

        self._enter(RelayStage.PRICING)
        upstream_model = settings.get_upstream_model(request.model)
        if not upstream_model:
            raise ConfigError(
                f"model {request.model!r} maps to an empty upstream model",
                code="model_mapped_error",
            )
        ctx = ctx.with_models(request.model, upstream_model)
        request = request.model_copy(update={"model": upstream_model})

        price_data = model_price_helper(ctx, settings)
        user_quota = await self._ledger.get_user_quota(ctx.user_id)
        duration_ratio = apply_duration_ratio(price_data, request.model, request.duration)
        quota = compute_quota(price_data, settings.quota_per_unit)
        self._ledger.ensure_sufficient(user_quota, quota)

        self._enter(RelayStage.RESOLVING_ADAPTOR)
        adaptor = get_adaptor(ctx.api_type)
        if adaptor is None:
            raise ConfigError(f"invalid api type: {ctx.api_type}", code="invalid_api_type")
        adaptor.init(ctx)

        self._enter(RelayStage.CONVERTING)
        try:
            payload = adaptor.convert_video_request(ctx, request)
        except RelayError:
            raise
        except Exception as e:
            raise ConversionError(f"convert request failed: {e}")
        try:
            body = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ConversionError(f"json marshal failed: {e}", code="json_marshal_failed")

        self._enter(RelayStage.DISPATCHING)
        response = await adaptor.do_request(ctx, body)
        is_stream = is_event_stream(response)
        if not response.is_success:
            raise reset_status_code(relay_error_handler(response), ctx.status_code_mapping)

        self._enter(RelayStage.PARSING_RESPONSE)
        try:
            task_result = await adaptor.do_response(ctx, response)
        except UpstreamError as e:
            raise reset_status_code(e, ctx.status_code_mapping)

        self._enter(RelayStage.RECORDING)
        task = TaskRecorder.init_task(
            ctx,
            platform=adaptor.platform,
            task_id=task_result.task_id,
            quota=quota,
            consume_quota=True,
            data=task_result.raw,
        )
        await self._recorder.insert(task)

        self._enter(RelayStage.CONSUMING)
        seconds = int(duration_ratio)
        usage = UsageInfo(prompt_tokens=seconds, total_tokens=seconds)
        consumed = True
        try:
            await self._ledger.consume(
                ctx,
                usage,
                quota,
                price_data,
                log_content=f"duration {seconds}s",
                task_id=task_result.task_id,
                is_stream=is_stream,
            )
        except ConsumptionError as e:
            # Task is recorded and the upstream job is running; billing is best effort
            consumed = False
            UNBILLED_TASKS.inc()
            logger.error(
                "quota_consume_failed",
                user_id=ctx.user_id,
                task_id=task_result.task_id,
                quota=quota,
                error=e.message,
            )

        return VideoRelayResult(
            task_id=task_result.task_id,
            model=ctx.origin_model,
            quota=quota,
            duration_ratio=duration_ratio,
            is_stream=is_stream,
            consumed=consumed,
        )

    def _log_failure(self, ctx: RelayContext, error: RelayError) -> None:
        fields = dict(
            user_id=ctx.user_id,
            stage=error.stage,
            kind=error.kind,
            code=error.code,
            status=error.status_code,
            error=error.message,
        )
        if error.local and error.status_code < 500:
            logger.warning("video_relay_rejected", **fields)
        else:
            logger.error("video_relay_failed", **fields)
