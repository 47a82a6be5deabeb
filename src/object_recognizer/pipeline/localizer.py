"""End-to-end localization of the reference object in one frame.

:class:`ObjectLocalizer` chains the pipeline stages::

    frame.gray ─► FeatureExtractor ─► CorrespondenceMatcher(reference, frame)
               ─► MatchFilter ─► GeometryEstimator ─► Found | NotFound

and wraps the outcome in a :class:`LocalizationResult` dict together with
the derived :class:`ObjectLocation` and a debug payload for drawing and
logging collaborators.

Empty intermediate results (no keypoints, no matches, no good matches)
are normal and simply end in ``NotFound``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, TypedDict

from object_recognizer.config import RecognizerConfig
from object_recognizer.io.frames import Frame
from object_recognizer.pipeline.features.extractor import FeatureExtractor
from object_recognizer.pipeline.features.reference import ReferenceModel
from object_recognizer.pipeline.geometry.estimator import (
    EstimateResult,
    Found,
    GeometryEstimator,
    NotFound,
)
from object_recognizer.pipeline.geometry.location import ObjectLocation
from object_recognizer.pipeline.matching.match_filter import MatchFilter
from object_recognizer.pipeline.matching.matcher import CorrespondenceMatcher

logger = logging.getLogger(__name__)


class LocalizationResult(TypedDict):
    """Typed dictionary returned by :meth:`ObjectLocalizer.localize`.

    Attributes
    ----------
    outcome : Found | NotFound
        The projected boundary, or the reason it could not be found.
    location : ObjectLocation | None
        Position summary derived from the boundary; ``None`` when the
        outcome is ``NotFound``.
    frame_index : int
        Index of the processed frame (``-1`` when unknown).
    debug : dict[str, Any]
        ``frame_keypoint_count``, ``match_count``, ``good_match_count``,
        ``good_matches``, ``frame_keypoints`` and ``elapsed_ms``.
    """

    outcome: EstimateResult
    location: ObjectLocation | None
    frame_index: int
    debug: dict[str, Any]


class ObjectLocalizer:
    """Locate the reference object in incoming frames.

    Parameters
    ----------
    reference : ReferenceModel
        Features of the calibration image.
    extractor : FeatureExtractor
        Must be configured like the one that built *reference*.
    matcher : CorrespondenceMatcher
    match_filter : MatchFilter
    estimator : GeometryEstimator | None
        Defaults to an estimator over ``reference.boundary``.
    """

    def __init__(
        self,
        reference: ReferenceModel,
        extractor: FeatureExtractor,
        matcher: CorrespondenceMatcher,
        match_filter: MatchFilter,
        estimator: GeometryEstimator | None = None,
    ) -> None:
        self.reference = reference
        self.extractor = extractor
        self.matcher = matcher
        self.match_filter = match_filter
        self.estimator = (
            estimator if estimator is not None else GeometryEstimator(reference.boundary)
        )

    @classmethod
    def from_config(cls, reference_path: str, config: RecognizerConfig) -> ObjectLocalizer:
        """Build every stage from *config* and load the calibration image.

        Raises :class:`~object_recognizer.io.frames.ReferenceImageError`
        if the calibration image cannot be read.
        """
        config.validate()
        extractor = FeatureExtractor(
            detector=config.features.detector,
            descriptor=config.features.descriptor,
            max_features=config.features.max_features,
        )
        reference = ReferenceModel.from_path(reference_path, extractor)
        estimator = GeometryEstimator(
            reference.boundary,
            ransac_reproj_threshold=config.geometry.ransac_reproj_threshold,
            max_iters=config.geometry.max_iters,
            confidence=config.geometry.confidence,
            min_inliers=config.geometry.min_inliers,
            require_convex=config.geometry.require_convex,
        )
        localizer = cls(
            reference=reference,
            extractor=extractor,
            matcher=CorrespondenceMatcher(config.match_metric),
            match_filter=MatchFilter(config.matching.ratio),
            estimator=estimator,
        )
        logger.info(
            "Localizer ready: %s  |  %s  |  ransac_thresh=%.1fpx",
            localizer.matcher,
            localizer.match_filter,
            estimator.ransac_reproj_threshold,
        )
        return localizer

    def localize(self, frame: Frame) -> LocalizationResult:
        """Run the full pipeline on one frame."""
        start_time = time.perf_counter()

        frame_features = self.extractor.extract(frame.gray)
        matches = self.matcher.match(
            self.reference.features.descriptors, frame_features.descriptors
        )
        good_matches = self.match_filter.filter(matches)

        reference_points = self.reference.features.points(
            [match.reference_index for match in good_matches]
        )
        frame_points = frame_features.points([match.frame_index for match in good_matches])
        outcome = self.estimator.estimate(reference_points, frame_points)

        location: ObjectLocation | None = None
        if isinstance(outcome, Found):
            location = ObjectLocation.from_corners(
                outcome.corners,
                reference_area=self.reference.area,
                frame_size=(frame.width, frame.height),
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000.0
        logger.debug(
            "Frame %d: kp=%d matches=%d good=%d -> %s (%.1f ms)",
            frame.index,
            len(frame_features),
            len(matches),
            len(good_matches),
            "found" if location is not None else _reason(outcome),
            elapsed_ms,
        )

        return LocalizationResult(
            outcome=outcome,
            location=location,
            frame_index=frame.index,
            debug={
                "frame_keypoint_count": len(frame_features),
                "match_count": len(matches),
                "good_match_count": len(good_matches),
                "good_matches": good_matches,
                "frame_keypoints": frame_features.keypoints,
                "elapsed_ms": elapsed_ms,
            },
        )


def _reason(outcome: EstimateResult) -> str:
    return outcome.reason if isinstance(outcome, NotFound) else "found"
