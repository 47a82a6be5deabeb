"""Robust homography fitting and boundary projection.

Given matched point pairs (reference image → current frame), fit a
homography with RANSAC and project the reference boundary quadrilateral
into the frame.

Design notes
------------
- Every numerical failure is reported as a :class:`NotFound` value with
  a short machine-readable reason.  ``estimate`` never raises for bad
  geometry, so the caller can simply move on to the next frame.
- Collinear or coincident point sets are rejected *before* calling the
  solver, since ``cv2.findHomography`` behaviour on them varies across
  OpenCV builds.
- Homographies are defined up to scale; the returned matrix is
  normalised to ``H[2,2] = 1``.
- A projected boundary must stay a convex quadrilateral with the same
  winding as the reference.  A folded, self-intersecting or mirrored
  quadrilateral cannot be the image of a physical planar object and is
  treated as a failed fit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

MIN_CORRESPONDENCES = 4

REASON_INSUFFICIENT = "insufficient_correspondences"
REASON_DEGENERATE = "degenerate_configuration"
REASON_SOLVER_FAILED = "solver_failed"
REASON_SINGULAR = "singular_homography"
REASON_TOO_FEW_INLIERS = "too_few_inliers"
REASON_BAD_PROJECTION = "invalid_projection"

_COLLINEAR_TOLERANCE = 1e-6
_DETERMINANT_EPSILON = 1e-9
_W_EPSILON = 1e-10


@dataclass(frozen=True)
class Found:
    """The object boundary was located in the frame.

    Attributes
    ----------
    corners : np.ndarray
        ``(4, 2)`` float64 projected boundary, same corner order as the
        reference boundary.
    homography : np.ndarray
        ``(3, 3)`` reference-to-frame homography with ``H[2,2] = 1``.
    inlier_mask : np.ndarray
        ``(N,)`` bool, RANSAC inliers among the input correspondences.
    """

    corners: np.ndarray
    homography: np.ndarray
    inlier_mask: np.ndarray

    @property
    def correspondence_count(self) -> int:
        return int(self.inlier_mask.size)

    @property
    def inlier_count(self) -> int:
        return int(np.count_nonzero(self.inlier_mask))

    @property
    def inlier_ratio(self) -> float:
        if self.inlier_mask.size == 0:
            return 0.0
        return self.inlier_count / self.inlier_mask.size


@dataclass(frozen=True)
class NotFound:
    """No usable homography could be estimated for this frame."""

    reason: str
    correspondence_count: int = 0


EstimateResult = Union[Found, NotFound]


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------


def is_degenerate(points: np.ndarray) -> bool:
    """``True`` when *points* are all coincident or all on one line."""
    if len(points) < 3:
        return True
    centred = points.astype(np.float64) - points.astype(np.float64).mean(axis=0)
    singular_values = np.linalg.svd(centred, compute_uv=False)
    if singular_values[0] < _COLLINEAR_TOLERANCE:
        return True
    return bool(singular_values[1] / singular_values[0] < _COLLINEAR_TOLERANCE)


def project_points(points: np.ndarray, homography: np.ndarray) -> np.ndarray | None:
    """Project ``(N, 2)`` points through *homography*.

    Returns
    -------
    np.ndarray | None
        ``(N, 2)`` float64 projected points, or ``None`` when any point
        maps to infinity or the points land on both sides of the
        horizon line (mixed-sign ``w``).
    """
    points_homogeneous = np.hstack([points.astype(np.float64), np.ones((len(points), 1))])
    projected = points_homogeneous @ homography.T
    w = projected[:, 2]
    if np.any(np.abs(w) < _W_EPSILON):
        return None
    if not (np.all(w > 0) or np.all(w < 0)):
        return None
    result = projected[:, :2] / w[:, None]
    if not np.all(np.isfinite(result)):
        return None
    return result


def winding_signs(quad: np.ndarray) -> np.ndarray:
    """Sign of the turn at each vertex of a closed polygon."""
    edges = np.roll(quad, -1, axis=0) - quad
    next_edges = np.roll(edges, -1, axis=0)
    cross = edges[:, 0] * next_edges[:, 1] - edges[:, 1] * next_edges[:, 0]
    return np.sign(cross)


def is_convex_with_winding(quad: np.ndarray, reference_quad: np.ndarray) -> bool:
    """``True`` if *quad* is strictly convex and turns the same way as *reference_quad*."""
    signs = winding_signs(quad)
    reference_sign = winding_signs(reference_quad)[0]
    return bool(reference_sign != 0 and np.all(signs == reference_sign))


# ---------------------------------------------------------------------------
# GeometryEstimator
# ---------------------------------------------------------------------------


class GeometryEstimator:
    """Fit a reference-to-frame homography and project the object boundary.

    Parameters
    ----------
    boundary : np.ndarray
        ``(4, 2)`` reference boundary corners, usually
        :attr:`ReferenceModel.boundary`.
    ransac_reproj_threshold : float
        Maximum reprojection error (pixels) for a pair to count as a
        RANSAC inlier.  Default ``3.0``.
    max_iters : int
        RANSAC iteration cap.  Default ``2000``.
    confidence : float
        RANSAC confidence level in ``(0, 1)``.  Default ``0.995``.
    min_inliers : int
        Minimum number of inliers for the fit to be accepted.  Values
        below 4 are raised to 4.  Default ``4``.
    require_convex : bool
        Reject fits whose projected boundary is not a convex
        quadrilateral with the reference winding.  Default ``True``.
    """

    def __init__(
        self,
        boundary: np.ndarray,
        ransac_reproj_threshold: float = 3.0,
        max_iters: int = 2000,
        confidence: float = 0.995,
        min_inliers: int = MIN_CORRESPONDENCES,
        require_convex: bool = True,
    ) -> None:
        boundary = np.asarray(boundary, dtype=np.float64).reshape(-1, 2)
        if boundary.shape != (4, 2):
            raise ValueError(f"boundary must have 4 corners, got shape {boundary.shape}")
        if ransac_reproj_threshold <= 0.0:
            raise ValueError(
                f"ransac_reproj_threshold must be > 0, got {ransac_reproj_threshold}"
            )
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        if max_iters < 1:
            raise ValueError(f"max_iters must be >= 1, got {max_iters}")

        self.boundary = boundary
        self.ransac_reproj_threshold = ransac_reproj_threshold
        self.max_iters = max_iters
        self.confidence = confidence
        self.min_inliers = max(MIN_CORRESPONDENCES, min_inliers)
        self.require_convex = require_convex

    def estimate(self, reference_points: np.ndarray, frame_points: np.ndarray) -> EstimateResult:
        """Fit a homography from *reference_points* to *frame_points*.

        Parameters
        ----------
        reference_points, frame_points : np.ndarray
            Parallel ``(N, 2)`` (or ``(N, 1, 2)``) point arrays.

        Returns
        -------
        Found | NotFound
            ``Found`` with the projected boundary, or ``NotFound`` with
            the reason the fit was rejected.
        """
        source = np.asarray(reference_points, dtype=np.float32).reshape(-1, 2)
        destination = np.asarray(frame_points, dtype=np.float32).reshape(-1, 2)
        if len(source) != len(destination):
            raise ValueError(
                f"Point sets differ in length: {len(source)} reference vs "
                f"{len(destination)} frame points"
            )

        count = len(source)
        if count < MIN_CORRESPONDENCES:
            return NotFound(REASON_INSUFFICIENT, count)
        if is_degenerate(source) or is_degenerate(destination):
            return NotFound(REASON_DEGENERATE, count)

        try:
            homography, mask = cv2.findHomography(
                source.reshape(-1, 1, 2),
                destination.reshape(-1, 1, 2),
                cv2.RANSAC,
                self.ransac_reproj_threshold,
                maxIters=self.max_iters,
                confidence=self.confidence,
            )
        except cv2.error as exc:
            logger.debug("findHomography failed on %d points: %s", count, exc)
            return NotFound(REASON_SOLVER_FAILED, count)

        if homography is None or mask is None:
            return NotFound(REASON_SOLVER_FAILED, count)

        if not np.all(np.isfinite(homography)) or abs(homography[2, 2]) < 1e-12:
            return NotFound(REASON_SINGULAR, count)
        homography = homography / homography[2, 2]
        if abs(np.linalg.det(homography)) < _DETERMINANT_EPSILON:
            return NotFound(REASON_SINGULAR, count)

        inlier_mask = mask.ravel().astype(bool)
        if np.count_nonzero(inlier_mask) < self.min_inliers:
            return NotFound(REASON_TOO_FEW_INLIERS, count)

        corners = project_points(self.boundary, homography)
        if corners is None:
            return NotFound(REASON_BAD_PROJECTION, count)
        if self.require_convex and not is_convex_with_winding(corners, self.boundary):
            return NotFound(REASON_BAD_PROJECTION, count)

        return Found(corners=corners, homography=homography, inlier_mask=inlier_mask)
