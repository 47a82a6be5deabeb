"""Tests for the annotated-frame renderer."""

import numpy as np

from object_recognizer.pipeline.geometry.estimator import Found, NotFound
from object_recognizer.pipeline.localizer import LocalizationResult
from object_recognizer.utils.draw import BOUNDARY_COLOR, render_result


def _result(outcome):
    return LocalizationResult(
        outcome=outcome,
        location=None,
        frame_index=0,
        debug={"frame_keypoint_count": 0, "match_count": 0, "good_match_count": 0},
    )


def test_render_found_draws_green_boundary():
    image = np.zeros((120, 160), dtype=np.uint8)
    corners = np.array([[10, 10], [150, 10], [150, 110], [10, 110]], dtype=np.float64)
    outcome = Found(corners=corners, homography=np.eye(3), inlier_mask=np.ones(4, dtype=bool))

    canvas = render_result(image, _result(outcome))

    assert canvas.shape == (120, 160, 3)
    assert tuple(int(value) for value in canvas[110, 100]) == BOUNDARY_COLOR
    assert not image.any(), "input image must not be modified"


def test_render_not_found_draws_no_boundary():
    image = np.zeros((120, 160, 3), dtype=np.uint8)

    canvas = render_result(image, _result(NotFound("insufficient_correspondences")))

    assert canvas is not image
    assert canvas[110, 100].sum() == 0
    assert not image.any()
