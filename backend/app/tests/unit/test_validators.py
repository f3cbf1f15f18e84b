############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# test_validators.py: Unit tests for video request validation
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for video request validation."""

import pytest

from backend.app.core.canonical_schemas import ModelFamily
from backend.app.core.errors import (
    InvalidDuration,
    InvalidSize,
    MissingField,
    ValidationError,
)
from backend.app.core.validators import VideoRequestValidator, validate_video_request


@pytest.fixture
def validator():
    return VideoRequestValidator()


class TestParse:
    """Tests for raw body parsing."""

    def test_non_object_body_rejected(self, validator):
        with pytest.raises(ValidationError):
            validator.parse(["not", "an", "object"])

    def test_wrong_field_type_rejected(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.parse({"model": "wanx2.1-i2v-turbo", "prompt": "x", "duration": "long"})
        assert "duration" in exc_info.value.message
        assert exc_info.value.status_code == 400

    def test_unknown_fields_ignored(self, validator):
        request = validator.parse({"model": "m", "prompt": "p", "seed": 42})
        assert request.model == "m"
        assert not hasattr(request, "seed")

    def test_defaults(self, validator):
        request = validator.parse({"model": "m", "prompt": "p"})
        assert request.image_url == ""
        assert request.size == ""
        assert request.duration == 0


class TestPrompt:
    """The prompt is required for every model."""

    @pytest.mark.parametrize(
        "model",
        ["wanx2.1-i2v-turbo", "wanx2.1-t2v-plus", "some-other-model"],
    )
    def test_empty_prompt_rejected(self, model):
        with pytest.raises(MissingField) as exc_info:
            validate_video_request({"model": model, "prompt": "", "image_url": "u"})
        assert exc_info.value.field == "prompt"
        assert exc_info.value.code == "invalid_video_request"

    def test_other_family_needs_only_prompt(self):
        request = validate_video_request({"model": "some-other-model", "prompt": "hi", "size": "1x1"})
        assert request.family == ModelFamily.OTHER


class TestImageToVideo:
    """Image-to-video rules."""

    @pytest.mark.parametrize("duration", [0, 3, 4, 5])
    def test_missing_image_rejected_regardless_of_duration(self, duration):
        with pytest.raises(MissingField) as exc_info:
            validate_video_request(
                {"model": "wanx2.1-i2v-turbo", "prompt": "p", "duration": duration}
            )
        assert exc_info.value.field == "image_url"

    @pytest.mark.parametrize("duration", [0, 3, 4, 5])
    def test_accepted_durations(self, i2v_request, duration):
        i2v_request["duration"] = duration
        request = validate_video_request(i2v_request)
        assert request.duration == duration

    @pytest.mark.parametrize("duration", [1, 2, 6, 10, -1])
    def test_out_of_range_durations_rejected(self, i2v_request, duration):
        i2v_request["duration"] = duration
        with pytest.raises(InvalidDuration) as exc_info:
            validate_video_request(i2v_request)
        assert exc_info.value.duration == duration

    def test_size_not_checked(self, i2v_request):
        i2v_request["size"] = "100x100"
        assert validate_video_request(i2v_request).size == "100x100"


class TestTextToVideo:
    """Text-to-video rules."""

    @pytest.mark.parametrize(
        "size",
        ["", "1280 * 720", "960 * 960", "720 * 1280", "1088 * 832", "832 * 1088"],
    )
    def test_accepted_sizes(self, t2v_request, size):
        t2v_request["size"] = size
        assert validate_video_request(t2v_request).size == size

    @pytest.mark.parametrize("size", ["100x100", "1280*720", "1280 x 720"])
    def test_unknown_size_rejected(self, t2v_request, size):
        t2v_request["size"] = size
        with pytest.raises(InvalidSize) as exc_info:
            validate_video_request(t2v_request)
        assert exc_info.value.size == size

    @pytest.mark.parametrize("duration", [0, 5])
    def test_accepted_durations(self, t2v_request, duration):
        t2v_request["duration"] = duration
        assert validate_video_request(t2v_request).duration == duration

    @pytest.mark.parametrize("duration", [3, 4, 10])
    def test_other_durations_rejected(self, t2v_request, duration):
        t2v_request["duration"] = duration
        with pytest.raises(InvalidDuration):
            validate_video_request(t2v_request)

    def test_image_not_required(self, t2v_request):
        assert validate_video_request(t2v_request).image_url == ""
