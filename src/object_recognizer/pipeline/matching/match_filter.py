"""Minimum-distance ratio filter for correspondences.

A match is "good" when its distance is below ``ratio * min_dist``, where
``min_dist`` is the smallest distance in the batch.  The best match(es)
always survive, so a batch whose minimum is exactly zero keeps its
zero-distance matches and nothing else.

This is a heuristic, not a statistical outlier test; the robust
homography fit downstream is what actually rejects bad pairs.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from object_recognizer.pipeline.matching.matcher import Correspondence

logger = logging.getLogger(__name__)

DEFAULT_DISTANCE_RATIO = 3.0


class MatchFilter:
    """Keep correspondences whose distance is close to the best one.

    Parameters
    ----------
    ratio : float
        Multiple of the minimum distance used as the (exclusive)
        threshold.  Default ``3.0``.
    """

    def __init__(self, ratio: float = DEFAULT_DISTANCE_RATIO) -> None:
        if ratio <= 0.0:
            raise ValueError(f"ratio must be > 0, got {ratio}")
        self.ratio = ratio

    def __repr__(self) -> str:
        return f"MatchFilter(ratio={self.ratio})"

    def filter(self, matches: Sequence[Correspondence]) -> list[Correspondence]:
        """Return the good matches, preserving input order."""
        if not matches:
            return []

        min_dist = min(match.distance for match in matches)
        threshold = self.ratio * min_dist
        good_matches = [
            match for match in matches if match.distance < threshold or match.distance == min_dist
        ]
        logger.debug(
            "Match filter: min_dist=%.1f threshold=%.1f kept %d/%d",
            min_dist,
            threshold,
            len(good_matches),
            len(matches),
        )
        return good_matches
