"""Drawing helpers for the recognizer's visual output.

All helpers here are **generic**: they take corners, points and status
values as plain arguments and mutate the image in-place.  Only
:func:`render_result` works on a copy.  Nothing in the pipeline depends on
this module.
"""

from __future__ import annotations

from collections.abc import Sequence

import cv2
import numpy as np

from object_recognizer.pipeline.geometry.estimator import Found, NotFound
from object_recognizer.pipeline.localizer import LocalizationResult

# ---------------------------------------------------------------------------
# Colour constants (BGR for OpenCV)
# ---------------------------------------------------------------------------

BOUNDARY_COLOR: tuple[int, int, int] = (0, 255, 0)  # Green
KEYPOINT_COLOR: tuple[int, int, int] = (0, 0, 255)  # Red
MATCHED_KEYPOINT_COLOR: tuple[int, int, int] = (255, 165, 0)  # Orange
STATUS_OK_COLOR: tuple[int, int, int] = (0, 255, 0)  # Green
STATUS_FAIL_COLOR: tuple[int, int, int] = (0, 0, 255)  # Red
TEXT_BG_COLOR: tuple[int, int, int] = (0, 0, 0)  # Black outline


def ensure_bgr(image: np.ndarray) -> np.ndarray:
    """Return a 3-channel BGR copy of *image* suitable for drawing."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


# ---------------------------------------------------------------------------
# Boundary / keypoints
# ---------------------------------------------------------------------------


def draw_boundary(
    image: np.ndarray,
    corners: np.ndarray,
    color: tuple[int, int, int] = BOUNDARY_COLOR,
    thickness: int = 4,
) -> None:
    """Draw the closed quadrilateral through *corners* (``(4, 2)``).

    Mutates *image* in-place.
    """
    points = np.round(np.asarray(corners, dtype=np.float64)).astype(np.int32).reshape(-1, 1, 2)
    cv2.polylines(image, [points], True, color, thickness, cv2.LINE_AA)


def draw_keypoints(
    image: np.ndarray,
    points: Sequence[tuple[float, float]] | np.ndarray,
    color: tuple[int, int, int] = KEYPOINT_COLOR,
    radius: int = 3,
) -> None:
    """Draw a filled circle at each ``(x, y)`` point.  Mutates *image*."""
    for x_value, y_value in points:
        centre = (round(float(x_value)), round(float(y_value)))
        cv2.circle(image, centre, radius, color, -1, cv2.LINE_AA)


# ---------------------------------------------------------------------------
# Text overlay
# ---------------------------------------------------------------------------


def overlay_text_with_outline(
    image: np.ndarray,
    text: str,
    position: tuple[int, int],
    font_scale: float,
    foreground_color: tuple[int, int, int],
    thickness: int = 1,
) -> None:
    """Draw *text* with a black outline for contrast.

    Mutates *image* in-place.
    """
    cv2.putText(
        image,
        text,
        position,
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        TEXT_BG_COLOR,
        thickness + 2,
        cv2.LINE_AA,
    )
    cv2.putText(
        image,
        text,
        position,
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        foreground_color,
        thickness,
        cv2.LINE_AA,
    )


def _compute_font_metrics(frame_width: int) -> tuple[float, int, int]:
    """Return ``(font_scale, thickness, line_height)`` scaled to frame width."""
    font_scale = max(0.5, frame_width / 1280.0)
    thickness = max(1, int(font_scale * 2))
    line_height = int(30 + font_scale * 10)
    return font_scale, thickness, line_height


def overlay_localization_status(image: np.ndarray, result: LocalizationResult) -> None:
    """Draw a two-line HUD: frame index, then match counts and outcome."""
    _frame_height, frame_width = image.shape[:2]
    font_scale, thickness, line_height = _compute_font_metrics(frame_width)

    overlay_text_with_outline(
        image,
        f"Frame {result['frame_index']}",
        (10, line_height),
        font_scale,
        (255, 255, 255),
        thickness,
    )

    debug = result["debug"]
    counts = (
        f"kp={debug.get('frame_keypoint_count', 0)} "
        f"good={debug.get('good_match_count', 0)}/{debug.get('match_count', 0)}"
    )
    outcome = result["outcome"]
    location = result["location"]
    if isinstance(outcome, Found) and location is not None:
        text = (
            f"FOUND {counts} inliers={outcome.inlier_count} "
            f"at=({location.center_x:.0f},{location.center_y:.0f}) scale={location.scale:.2f}"
        )
        color = STATUS_OK_COLOR
    else:
        reason = outcome.reason if isinstance(outcome, NotFound) else "unknown"
        text = f"NOT FOUND ({reason}) {counts}"
        color = STATUS_FAIL_COLOR

    position = (10, line_height + int(font_scale * 30))
    overlay_text_with_outline(image, text, position, font_scale, color, thickness)


def render_result(
    image: np.ndarray,
    result: LocalizationResult,
    show_keypoints: bool = False,
) -> np.ndarray:
    """Return an annotated BGR copy of *image* for display or video output."""
    canvas = ensure_bgr(image)
    if show_keypoints:
        keypoints = result["debug"].get("frame_keypoints", ())
        draw_keypoints(canvas, [keypoint.pt for keypoint in keypoints], KEYPOINT_COLOR, 2)
        matched = {match.frame_index for match in result["debug"].get("good_matches", [])}
        draw_keypoints(
            canvas,
            [keypoints[index].pt for index in sorted(matched)],
            MATCHED_KEYPOINT_COLOR,
            4,
        )
    outcome = result["outcome"]
    if isinstance(outcome, Found):
        draw_boundary(canvas, outcome.corners)
    overlay_localization_status(canvas, result)
    return canvas
