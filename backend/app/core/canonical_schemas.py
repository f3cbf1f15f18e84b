############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# canonical_schemas.py: Internal canonical request/response schemas
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Canonical schemas for the video relay.

Every inbound request is parsed into a ``VideoRequest``; adaptors translate
from it into vendor payloads and back into a ``TaskResult``.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ModelFamily(str, Enum):
    """Model families with distinct validation and pricing rules."""
    IMAGE_TO_VIDEO = "image_to_video"
    TEXT_TO_VIDEO = "text_to_video"
    OTHER = "other"


IMAGE_TO_VIDEO_MODELS = frozenset({"wanx2.1-i2v-turbo", "wanx2.1-i2v-plus"})
TEXT_TO_VIDEO_MODELS = frozenset({"wanx2.1-t2v-turbo", "wanx2.1-t2v-plus"})

# Resolutions accepted by text-to-video models ("" = upstream default)
TEXT_TO_VIDEO_SIZES = frozenset({
    "",
    "1280 * 720",
    "960 * 960",
    "720 * 1280",
    "1088 * 832",
    "832 * 1088",
})


def get_model_family(model: str) -> ModelFamily:
    """Classify a model name into its family."""
    if model in IMAGE_TO_VIDEO_MODELS:
        return ModelFamily.IMAGE_TO_VIDEO
    if model in TEXT_TO_VIDEO_MODELS:
        return ModelFamily.TEXT_TO_VIDEO
    return ModelFamily.OTHER


class VideoRequest(BaseModel):
    """Canonical video generation request."""

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    prompt: str = ""
    image_url: str = ""
    size: str = ""
    duration: int = 0  # seconds; 0 = unspecified

    @property
    def family(self) -> ModelFamily:
        return get_model_family(self.model)


class UsageInfo(BaseModel):
    """Usage recorded with a debit; for video, tokens are billed seconds."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TaskResult(BaseModel):
    """Canonical result of a successful upstream submission."""
    task_id: str
    status: Optional[str] = None
    raw: Dict[str, Any] = {}


@dataclass
class PriceData:
    """Pricing inputs for one request.

    ``model_price`` is scaled in place by the duration ratio before the
    quota is computed.
    """

    use_price: bool = False
    model_price: float = 0.0
    model_ratio: float = 0.0
    group_ratio: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RelayContext:
    """Immutable per-request context passed to every relay component."""

    request_id: str
    user_id: int
    api_type: str
    origin_model: str = ""
    upstream_model: str = ""
    api_key_id: Optional[int] = None
    group: str = "default"
    group_ratio: float = 1.0
    base_url: str = ""
    upstream_key: Optional[str] = field(default=None, repr=False)
    status_code_mapping: str = ""
    timeout: float = 60.0

    def with_models(self, origin_model: str, upstream_model: str) -> "RelayContext":
        """Return a copy carrying the resolved model names."""
        return replace(self, origin_model=origin_model, upstream_model=upstream_model)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the context stored with the task (no secrets)."""
        return {
            "request_id": self.request_id,
            "user_id": self.user_id,
            "api_key_id": self.api_key_id,
            "api_type": self.api_type,
            "group": self.group,
            "group_ratio": self.group_ratio,
            "origin_model": self.origin_model,
            "upstream_model": self.upstream_model,
            "base_url": self.base_url,
        }


@dataclass
class VideoRelayResult:
    """Outcome of a relay that reached the Done state."""

    task_id: str
    model: str
    quota: int
    duration_ratio: float
    is_stream: bool = False
    consumed: bool = True

    def to_response(self) -> Dict[str, Any]:
        """Client-facing acknowledgement body."""
        return {
            "id": self.task_id,
            "object": "video.generation",
            "model": self.model,
            "status": "submitted",
        }
