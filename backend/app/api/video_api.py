############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# video_api.py: Video generation API endpoints (/v1/video/*)
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Video generation endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_relay_context
from backend.app.core.canonical_schemas import RelayContext
from backend.app.core.errors import ValidationError
from backend.app.db import crud
from backend.app.db.models import Task
from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.services.video_relay import VideoRelayService

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["video"])


def _task_to_dict(task: Task) -> Dict[str, Any]:
    return {
        "id": task.task_id,
        "object": "video.generation",
        "platform": task.platform.value,
        "model": task.model,
        "action": task.action,
        "status": task.status.value,
        "progress": task.progress,
        "fail_reason": task.fail_reason,
        "quota": task.quota,
        "submit_time": task.submit_time.isoformat() if task.submit_time else None,
        "finish_time": task.finish_time.isoformat() if task.finish_time else None,
    }


@router.post("/video/generations")
async def create_video_generation(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    ctx: RelayContext = Depends(get_relay_context),
) -> Dict[str, Any]:
    """
    Submit a video generation job.

    Body: ``{model, prompt, image_url, size, duration}``. Returns once the
    upstream job is accepted and recorded; poll the task endpoint for the
    result.
    """
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")

    service = VideoRelayService(db)
    result = await service.relay(ctx, body)
    return result.to_response()


@router.get("/video/generations")
async def list_video_generations(
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
    ctx: RelayContext = Depends(get_relay_context),
) -> Dict[str, Any]:
    """List the caller's most recent video tasks."""
    tasks = await crud.get_user_tasks(db, ctx.user_id, limit=limit)
    return {"object": "list", "data": [_task_to_dict(t) for t in tasks]}


@router.get("/video/generations/{task_id}")
async def get_video_generation(
    task_id: str,
    db: AsyncSession = Depends(get_async_db),
    ctx: RelayContext = Depends(get_relay_context),
) -> Dict[str, Any]:
    """Fetch one of the caller's video tasks by upstream task id."""
    task = await crud.get_task_by_task_id(db, ctx.user_id, task_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task '{task_id}' not found",
        )
    return _task_to_dict(task)
