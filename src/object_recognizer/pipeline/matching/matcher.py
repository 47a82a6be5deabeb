"""Brute-force nearest-neighbour descriptor matching.

Every reference descriptor is paired with its single nearest frame
descriptor under the configured metric.  No cross check and no k-NN ratio
test are applied here; pruning is :class:`MatchFilter`'s job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import cv2
import numpy as np

from object_recognizer.pipeline.features.extractor import DescriptorKind


class MatchMetric(str, Enum):
    """Descriptor distance metrics."""

    HAMMING = "hamming"
    HAMMING2 = "hamming2"
    L2 = "l2"

    @classmethod
    def from_name(cls, name: str | MatchMetric) -> MatchMetric:
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid_names = ", ".join(metric.value for metric in cls)
            raise ValueError(f"Unknown match metric '{name}'. Available: {valid_names}") from None

    @classmethod
    def default_for(cls, descriptor: DescriptorKind) -> MatchMetric:
        """Hamming for binary descriptors, L2 for floating-point ones."""
        return cls.HAMMING if descriptor.is_binary else cls.L2

    @property
    def norm_type(self) -> int:
        """The matching ``cv2.NORM_*`` constant."""
        return {
            MatchMetric.HAMMING: cv2.NORM_HAMMING,
            MatchMetric.HAMMING2: cv2.NORM_HAMMING2,
            MatchMetric.L2: cv2.NORM_L2,
        }[self]

    def check_compatible(self, descriptor: DescriptorKind) -> None:
        """Raise ``ValueError`` if this metric cannot compare *descriptor*."""
        if self is not MatchMetric.L2 and not descriptor.is_binary:
            raise ValueError(
                f"Metric '{self.value}' needs binary descriptors, "
                f"but '{descriptor.value}' produces floating-point ones."
            )


@dataclass(frozen=True)
class Correspondence:
    """A proposed pairing of a reference keypoint with a frame keypoint."""

    reference_index: int
    frame_index: int
    distance: float


class CorrespondenceMatcher:
    """Nearest-neighbour matcher backed by ``cv2.BFMatcher``.

    Parameters
    ----------
    metric : MatchMetric | str
        Distance used to compare descriptors.  Default ``"hamming"``.
    """

    def __init__(self, metric: MatchMetric | str = MatchMetric.HAMMING) -> None:
        self.metric = MatchMetric.from_name(metric)
        self._matcher = cv2.BFMatcher(self.metric.norm_type, crossCheck=False)

    def __repr__(self) -> str:
        return f"CorrespondenceMatcher(metric={self.metric.value!r})"

    def match(
        self,
        descriptors_a: np.ndarray | None,
        descriptors_b: np.ndarray | None,
    ) -> list[Correspondence]:
        """Pair each row of *descriptors_a* with its nearest row in *descriptors_b*.

        Returns an empty list when either side has no descriptors.
        """
        if descriptors_a is None or descriptors_b is None:
            return []
        if len(descriptors_a) == 0 or len(descriptors_b) == 0:
            return []

        raw_matches = self._matcher.match(descriptors_a, descriptors_b)
        return [
            Correspondence(
                reference_index=int(raw_match.queryIdx),
                frame_index=int(raw_match.trainIdx),
                distance=float(raw_match.distance),
            )
            for raw_match in raw_matches
        ]
