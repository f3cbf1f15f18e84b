############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# errors.py: Relay error hierarchy and upstream status code mapping
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Relay error kinds.

Every failure of the relay pipeline is raised as a ``RelayError`` subclass
carrying a stable ``kind`` tag, an error ``code`` and an HTTP-equivalent
status. The API layer renders them as::

    {"error": {"message": ..., "type": ..., "code": ...}}
"""

import json
from typing import Any, Dict, Optional

from fastapi import status

from backend.app.logging_config import get_logger

logger = get_logger(__name__)


class RelayError(Exception):
    """Base class for all relay failures."""

    kind: str = "relay_error"
    default_code: str = "relay_error"
    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    # Local errors originate in this service rather than upstream
    local: bool = True

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status
        self.stage = stage

    @property
    def error_type(self) -> str:
        return "videorelay_error" if self.local else "upstream_error"

    def to_dict(self) -> Dict[str, Any]:
        """Render the client-facing error envelope."""
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, status={self.status_code}, "
            f"stage={self.stage!r}, message={self.message!r})"
        )


class ValidationError(RelayError):
    """Malformed or out-of-range request fields."""
    kind = "validation_error"
    default_code = "invalid_video_request"
    default_status = status.HTTP_400_BAD_REQUEST


class MissingField(ValidationError):
    """A required field is empty."""

    def __init__(self, field: str):
        super().__init__(f"{field} is required")
        self.field = field


class InvalidSize(ValidationError):
    """Resolution not in the model's accepted set."""

    def __init__(self, size: str):
        super().__init__(f"size is error: {size!r} is not supported")
        self.size = size


class InvalidDuration(ValidationError):
    """Duration not accepted by the model family."""

    def __init__(self, duration: int):
        super().__init__(f"duration is error: {duration}s is not supported")
        self.duration = duration


class ConfigError(RelayError):
    """Unresolvable adaptor type, model mapping or pricing entry."""
    kind = "config_error"
    default_code = "invalid_api_type"


class InsufficientQuota(RelayError):
    """Pre-flight balance check failed."""
    kind = "insufficient_quota"
    default_code = "insufficient_user_quota"
    default_status = status.HTTP_403_FORBIDDEN


class ConversionError(RelayError):
    """Adaptor could not build the vendor payload."""
    kind = "conversion_error"
    default_code = "convert_request_failed"


class TransportError(RelayError):
    """Network-level dispatch failure; upstream state unknown."""
    kind = "transport_error"
    default_code = "do_request_failed"
    local = False


class UpstreamError(RelayError):
    """Upstream answered with an error payload or non-success status."""
    kind = "upstream_error"
    default_code = "bad_response_status_code"
    local = False


class PersistenceError(RelayError):
    """Task row or balance could not be read or written."""
    kind = "persistence_error"
    default_code = "sql_insert_failed"


class ConsumptionError(RelayError):
    """Quota debit failed after the task was recorded."""
    kind = "consumption_error"
    default_code = "consume_quota_failed"


def reset_status_code(error: RelayError, status_code_mapping: str) -> RelayError:
    """Remap ``error.status_code`` through a JSON mapping such as ``{"429": "503"}``.

    A success status (200) is never remapped. Malformed mappings are logged
    and leave the status unchanged.
    """
    if not status_code_mapping or status_code_mapping == "{}":
        return error
    try:
        mapping = json.loads(status_code_mapping)
    except json.JSONDecodeError:
        logger.warning("status_code_mapping_invalid", mapping=status_code_mapping)
        return error
    if not isinstance(mapping, dict):
        return error

    current = str(error.status_code)
    if current == "200" or current not in mapping:
        return error
    try:
        error.status_code = int(mapping[current])
    except (TypeError, ValueError):
        logger.warning(
            "status_code_mapping_target_invalid",
            source=current,
            target=mapping[current],
        )
    return error
