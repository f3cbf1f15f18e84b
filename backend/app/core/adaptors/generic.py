############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# generic.py: Vendor-neutral JSON task adaptor
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Generic task adaptor.

Forwards the canonical request as JSON to ``{base_url}/v1/video/generations``
and reads the task id back from the first of ``task_id``, ``id`` or
``output.task_id``.
"""

from typing import Any, Dict, Optional

import httpx

from backend.app.core.adaptors.base import VideoAdaptor
from backend.app.core.canonical_schemas import RelayContext, TaskResult, VideoRequest
from backend.app.core.errors import UpstreamError
from backend.app.db.models import TaskPlatform


class GenericTaskAdaptor(VideoAdaptor):
    """Adaptor for upstreams that accept the canonical request shape."""

    api_type = "generic"
    platform = TaskPlatform.GENERIC

    def convert_video_request(
        self, ctx: RelayContext, request: VideoRequest
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": ctx.upstream_model or request.model,
            "prompt": request.prompt,
        }
        if request.image_url:
            payload["image_url"] = request.image_url
        if request.size:
            payload["size"] = request.size
        if request.duration:
            payload["duration"] = request.duration
        return payload

    def get_request_url(self, ctx: RelayContext) -> str:
        return f"{ctx.base_url.rstrip('/')}/v1/video/generations"

    async def do_response(
        self, ctx: RelayContext, response: httpx.Response
    ) -> TaskResult:
        try:
            body = response.json()
        except ValueError:
            raise UpstreamError(
                "upstream returned a non-JSON body",
                code="bad_response_body",
                status_code=500,
            )
        if not isinstance(body, dict):
            raise UpstreamError(
                "upstream returned an unexpected body",
                code="bad_response_body",
                status_code=500,
            )

        task_id = self._extract_task_id(body)
        if not task_id:
            raise UpstreamError(
                "upstream response carries no task id",
                code="bad_response_body",
                status_code=500,
            )

        output = body.get("output") if isinstance(body.get("output"), dict) else {}
        status = body.get("status") or output.get("task_status")
        return TaskResult(task_id=str(task_id), status=status, raw=body)

    @staticmethod
    def _extract_task_id(body: Dict[str, Any]) -> Optional[str]:
        if body.get("task_id"):
            return body["task_id"]
        if body.get("id"):
            return body["id"]
        output = body.get("output")
        if isinstance(output, dict) and output.get("task_id"):
            return output["task_id"]
        return None
