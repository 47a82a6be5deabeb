"""End-to-end tests for ObjectLocalizer on synthetic images."""

import cv2
import numpy as np
import pytest

from object_recognizer.config import RecognizerConfig
from object_recognizer.io.frames import Frame, ReferenceImageError
from object_recognizer.pipeline.features.extractor import FeatureExtractor
from object_recognizer.pipeline.features.reference import ReferenceModel
from object_recognizer.pipeline.geometry.estimator import (
    REASON_INSUFFICIENT,
    Found,
    NotFound,
)
from object_recognizer.pipeline.localizer import ObjectLocalizer
from object_recognizer.pipeline.matching.match_filter import MatchFilter
from object_recognizer.pipeline.matching.matcher import CorrespondenceMatcher


def _build_localizer(reference_image, max_features=500):
    extractor = FeatureExtractor(max_features=max_features)
    reference = ReferenceModel.from_image(reference_image, extractor)
    return ObjectLocalizer(
        reference=reference,
        extractor=extractor,
        matcher=CorrespondenceMatcher(),
        match_filter=MatchFilter(),
    )


def test_reference_image_locates_itself(textured_image):
    localizer = _build_localizer(textured_image)
    frame = Frame.from_image(cv2.cvtColor(textured_image, cv2.COLOR_GRAY2BGR), index=7)

    result = localizer.localize(frame)

    outcome = result["outcome"]
    assert isinstance(outcome, Found)
    np.testing.assert_allclose(outcome.corners, localizer.reference.boundary, atol=1.0)
    assert result["frame_index"] == 7

    location = result["location"]
    assert location is not None
    assert location.center == pytest.approx((160.0, 120.0), abs=1.0)
    assert location.scale == pytest.approx(1.0, abs=0.01)
    assert location.angle_deg == pytest.approx(0.0, abs=0.5)

    debug = result["debug"]
    assert debug["good_match_count"] >= 4
    assert debug["good_match_count"] <= debug["match_count"]
    assert debug["match_count"] == len(localizer.reference.features)
    assert all(match.distance == 0 for match in debug["good_matches"])


def test_translated_object_is_located(textured_image):
    localizer = _build_localizer(textured_image, max_features=1000)
    canvas = np.full((400, 480), 127, dtype=np.uint8)
    offset_x, offset_y = 40, 30
    canvas[offset_y:offset_y + 240, offset_x:offset_x + 320] = textured_image

    result = localizer.localize(Frame.from_image(canvas))

    outcome = result["outcome"]
    assert isinstance(outcome, Found)
    expected = localizer.reference.boundary + np.array([offset_x, offset_y], dtype=np.float32)
    np.testing.assert_allclose(outcome.corners, expected, atol=1.5)
    assert result["location"].in_frame is True


def test_textureless_frame_is_not_found(textured_image, blank_image):
    localizer = _build_localizer(textured_image)

    result = localizer.localize(Frame.from_image(blank_image))

    outcome = result["outcome"]
    assert isinstance(outcome, NotFound)
    assert outcome.reason == REASON_INSUFFICIENT
    assert result["location"] is None
    assert result["debug"]["frame_keypoint_count"] == 0
    assert result["debug"]["match_count"] == 0
    assert result["debug"]["good_match_count"] == 0


def test_textureless_reference_is_never_found(textured_image, blank_image):
    localizer = _build_localizer(blank_image)

    result = localizer.localize(Frame.from_image(textured_image))

    assert isinstance(result["outcome"], NotFound)
    assert result["debug"]["match_count"] == 0


def test_from_config_loads_reference_image(tmp_path, textured_image):
    image_path = tmp_path / "reference.png"
    assert cv2.imwrite(str(image_path), textured_image)

    localizer = ObjectLocalizer.from_config(str(image_path), RecognizerConfig())

    assert (localizer.reference.width, localizer.reference.height) == (320, 240)
    result = localizer.localize(Frame.from_image(textured_image))
    assert isinstance(result["outcome"], Found)


def test_from_config_missing_reference_raises(tmp_path):
    with pytest.raises(ReferenceImageError):
        ObjectLocalizer.from_config(str(tmp_path / "missing.png"), RecognizerConfig())
