"""Object position summary derived from a projected boundary."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np


def polygon_area(corners: np.ndarray) -> float:
    """Unsigned shoelace area of a closed polygon."""
    x_values = corners[:, 0]
    y_values = corners[:, 1]
    signed = np.dot(x_values, np.roll(y_values, -1)) - np.dot(y_values, np.roll(x_values, -1))
    return float(abs(signed) / 2.0)


def polygon_centroid(corners: np.ndarray) -> tuple[float, float]:
    """Area centroid of a closed polygon (vertex mean if the area is ~0)."""
    x_values = corners[:, 0].astype(np.float64)
    y_values = corners[:, 1].astype(np.float64)
    x_next = np.roll(x_values, -1)
    y_next = np.roll(y_values, -1)
    cross = x_values * y_next - x_next * y_values
    signed_area = cross.sum() / 2.0
    if abs(signed_area) < 1e-9:
        return float(x_values.mean()), float(y_values.mean())
    centroid_x = ((x_values + x_next) * cross).sum() / (6.0 * signed_area)
    centroid_y = ((y_values + y_next) * cross).sum() / (6.0 * signed_area)
    return float(centroid_x), float(centroid_y)


@dataclass(frozen=True)
class ObjectLocation:
    """Where the object is in the current frame.

    Attributes
    ----------
    center_x, center_y : float
        Centroid of the projected boundary, in frame pixels.
    area : float
        Projected boundary area in square pixels.
    scale : float
        ``sqrt(area / reference_area)``: apparent size relative to the
        calibration image.
    angle_deg : float
        Direction of the boundary's top edge (corner 0 → corner 1) in
        degrees, measured from the frame's +x axis with y pointing down.
    in_frame : bool | None
        ``True`` if every corner lies inside the frame; ``None`` when the
        frame size is unknown.
    """

    center_x: float
    center_y: float
    area: float
    scale: float
    angle_deg: float
    in_frame: bool | None = None

    @classmethod
    def from_corners(
        cls,
        corners: np.ndarray,
        reference_area: float,
        frame_size: tuple[int, int] | None = None,
    ) -> ObjectLocation:
        """Summarise a ``(4, 2)`` projected boundary.

        *frame_size* is ``(width, height)``.
        """
        corners = np.asarray(corners, dtype=np.float64).reshape(-1, 2)
        center_x, center_y = polygon_centroid(corners)
        area = polygon_area(corners)
        scale = math.sqrt(area / reference_area) if reference_area > 0 else 0.0
        top_edge = corners[1] - corners[0]
        angle_deg = math.degrees(math.atan2(top_edge[1], top_edge[0]))

        in_frame: bool | None = None
        if frame_size is not None:
            width, height = frame_size
            in_frame = bool(
                np.all(corners[:, 0] >= 0)
                and np.all(corners[:, 0] <= width)
                and np.all(corners[:, 1] >= 0)
                and np.all(corners[:, 1] <= height)
            )

        return cls(
            center_x=center_x,
            center_y=center_y,
            area=area,
            scale=scale,
            angle_deg=angle_deg,
            in_frame=in_frame,
        )

    @property
    def center(self) -> tuple[float, float]:
        return self.center_x, self.center_y

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
