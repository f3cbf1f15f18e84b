############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# validators.py: Model-specific validation of video requests
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Video request validation for VideoRelay."""

from typing import Any, Dict

import pydantic

from backend.app.core.canonical_schemas import (
    TEXT_TO_VIDEO_SIZES,
    ModelFamily,
    VideoRequest,
)
from backend.app.core.errors import (
    InvalidDuration,
    InvalidSize,
    MissingField,
    ValidationError,
)

# Image-to-video accepts 3, 4 or 5 seconds; 0 defers to the upstream default
I2V_MIN_DURATION = 3
I2V_MAX_DURATION = 5
T2V_DURATION = 5


class VideoRequestValidator:
    """
    Validates a parsed video request against its model family.

    Checks, in order:
    - prompt is non-empty (every model)
    - image-to-video: image_url present, duration 0 or within [3, 5]
    - text-to-video: size in the enumerated set, duration 0 or 5

    Models outside both families only need a prompt.
    """

    def parse(self, raw: Any) -> VideoRequest:
        """Parse a raw JSON body into a VideoRequest."""
        if not isinstance(raw, dict):
            raise ValidationError("request body must be a JSON object")
        try:
            return VideoRequest.model_validate(raw)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(p) for p in first.get("loc", ()))
            raise ValidationError(f"invalid field {location}: {first.get('msg')}")

    def validate(self, request: VideoRequest) -> VideoRequest:
        """
        Validate a parsed request.

        Args:
            request: The parsed request

        Returns:
            The same request, unchanged

        Raises:
            ValidationError: on the first failed check
        """
        if request.prompt == "":
            raise MissingField("prompt")

        family = request.family
        if family == ModelFamily.IMAGE_TO_VIDEO:
            self._validate_image_to_video(request)
        elif family == ModelFamily.TEXT_TO_VIDEO:
            self._validate_text_to_video(request)

        return request

    def _validate_image_to_video(self, request: VideoRequest) -> None:
        if request.image_url == "":
            raise MissingField("image_url")
        # NOTE: the legacy check `d != 0 || d < 3 && d > 5` rejected every
        # nonzero duration; only out-of-range durations are rejected here.
        duration = request.duration
        if duration != 0 and (duration < I2V_MIN_DURATION or duration > I2V_MAX_DURATION):
            raise InvalidDuration(duration)

    def _validate_text_to_video(self, request: VideoRequest) -> None:
        if request.size not in TEXT_TO_VIDEO_SIZES:
            raise InvalidSize(request.size)
        if request.duration not in (0, T2V_DURATION):
            raise InvalidDuration(request.duration)


_validator = VideoRequestValidator()


def validate_video_request(raw: Dict[str, Any]) -> VideoRequest:
    """Parse and validate a raw request body in one step."""
    return _validator.validate(_validator.parse(raw))
