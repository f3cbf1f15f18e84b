############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# base.py: Upstream video adaptor contract and shared HTTP helpers
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Upstream adaptor contract.

An adaptor encapsulates everything vendor-specific about one upstream:
payload shape, endpoint, auth headers and response parsing. The relay only
ever talks to this interface.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from backend.app.core.canonical_schemas import RelayContext, TaskResult, VideoRequest
from backend.app.core.errors import TransportError, UpstreamError
from backend.app.db.models import TaskPlatform
from backend.app.logging_config import get_logger

logger = get_logger(__name__)


class VideoAdaptor(ABC):
    """Base class for upstream video adaptors."""

    api_type: str = ""
    platform: TaskPlatform = TaskPlatform.GENERIC

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        # An injected client is shared and never closed by the adaptor
        self._client = client
        self.ctx: Optional[RelayContext] = None

    def init(self, ctx: RelayContext) -> None:
        """Bind the adaptor to one relay request."""
        self.ctx = ctx

    @abstractmethod
    def convert_video_request(
        self, ctx: RelayContext, request: VideoRequest
    ) -> Dict[str, Any]:
        """Translate a canonical request into the vendor payload."""

    @abstractmethod
    def get_request_url(self, ctx: RelayContext) -> str:
        """Full URL of the vendor's submit endpoint."""

    def setup_request_headers(self, ctx: RelayContext) -> Dict[str, str]:
        """Headers sent with the submit call."""
        headers = {
            "Content-Type": "application/json",
            "X-Request-ID": ctx.request_id,
        }
        if ctx.upstream_key:
            headers["Authorization"] = f"Bearer {ctx.upstream_key}"
        return headers

    async def do_request(self, ctx: RelayContext, body: bytes) -> httpx.Response:
        """
        Send the serialized payload upstream.

        Returns the raw response whatever its status; only network-level
        failures raise.

        Raises:
            TransportError: on connect, read, timeout, decoding or redirect failures
        """
        url = self.get_request_url(ctx)
        headers = self.setup_request_headers(ctx)
        try:
            if self._client is not None:
                return await self._client.post(url, content=body, headers=headers)
            timeout = httpx.Timeout(ctx.timeout, connect=10.0)
            async with httpx.AsyncClient(timeout=timeout) as client:
                return await client.post(url, content=body, headers=headers)
        except httpx.RequestError as e:
            logger.warning(
                "upstream_transport_error",
                api_type=self.api_type,
                url=url,
                error=str(e) or type(e).__name__,
            )
            raise TransportError(f"do request failed: {e or type(e).__name__}")

    @abstractmethod
    async def do_response(
        self, ctx: RelayContext, response: httpx.Response
    ) -> TaskResult:
        """Parse a successful submit response into a TaskResult.

        Raises:
            UpstreamError: if the body carries an error or no task id
        """


def is_event_stream(response: httpx.Response) -> bool:
    """True when the upstream answered with an SSE stream."""
    return response.headers.get("content-type", "").startswith("text/event-stream")


def relay_error_handler(response: httpx.Response) -> UpstreamError:
    """Build an UpstreamError from a non-success upstream response.

    Understands OpenAI-style ``{"error": {...}}`` bodies and flat
    ``{"code": ..., "message": ...}`` bodies; anything else is passed
    through as text.
    """
    status_code = response.status_code
    message = f"bad response status code {status_code}"
    code = "bad_response_status_code"

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            message = err.get("message") or message
            code = str(err.get("code") or err.get("type") or code)
        elif isinstance(err, str) and err:
            message = err
        elif body.get("message"):
            message = str(body["message"])
            code = str(body.get("code") or code)
    elif response.text:
        message = response.text[:500]

    return UpstreamError(message, code=code, status_code=status_code)
