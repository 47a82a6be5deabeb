"""Keypoint detection and descriptor computation.

The detector and the descriptor are chosen independently by name, mapped
once to concrete OpenCV objects when the extractor is constructed.  When
both names refer to the same algorithm the combined ``detectAndCompute``
path is used; otherwise keypoints from the detector are handed to the
descriptor's ``compute``.

Design notes
------------
- ``compute`` may drop keypoints it cannot describe (too close to the
  border).  :class:`FeatureSet` always stores the keypoints *returned by
  compute*, so keypoints and descriptor rows stay parallel.
- FREAK is only shipped with ``opencv-contrib-python``; requesting it
  without the contrib modules fails at construction, not on the first
  frame.
- AKAZE descriptors depend on AKAZE's own keypoint metadata and can only
  be paired with the AKAZE detector.  ORB descriptors size their image
  pyramid from `keypoint.octave`, so they need ORB or FAST keypoints
  (SIFT, BRISK and AKAZE store other data there).
- BRISK and AKAZE are not in every OpenCV build; a missing factory is
  reported like a missing FREAK.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import cv2
import numpy as np


DEFAULT_MAX_FEATURES = 500


class DetectorKind(str, Enum):
    """Keypoint detectors the extractor can be configured with."""

    ORB = "orb"
    BRISK = "brisk"
    AKAZE = "akaze"
    SIFT = "sift"
    FAST = "fast"

    @classmethod
    def from_name(cls, name: str | DetectorKind) -> DetectorKind:
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid_names = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown detector '{name}'. Available: {valid_names}") from None


class DescriptorKind(str, Enum):
    """Descriptor extractors the extractor can be configured with."""

    ORB = "orb"
    BRISK = "brisk"
    AKAZE = "akaze"
    SIFT = "sift"
    FREAK = "freak"

    @classmethod
    def from_name(cls, name: str | DescriptorKind) -> DescriptorKind:
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            valid_names = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown descriptor '{name}'. Available: {valid_names}") from None

    @property
    def is_binary(self) -> bool:
        """``True`` for bit-string descriptors compared by Hamming distance."""
        return self is not DescriptorKind.SIFT


# ---------------------------------------------------------------------------
# FeatureSet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureSet:
    """Parallel keypoints and descriptors extracted from one image.

    Attributes
    ----------
    keypoints : tuple[cv2.KeyPoint, ...]
        Detected keypoints in pixel coordinates.
    descriptors : np.ndarray | None
        ``(N, D)`` array, one row per keypoint; ``None`` when no keypoint
        was found.
    """

    keypoints: tuple[cv2.KeyPoint, ...]
    descriptors: np.ndarray | None

    @classmethod
    def empty(cls) -> FeatureSet:
        return cls(keypoints=(), descriptors=None)

    def __len__(self) -> int:
        return len(self.keypoints)

    @property
    def is_empty(self) -> bool:
        return len(self.keypoints) == 0

    def points(self, indices: list[int] | None = None) -> np.ndarray:
        """Keypoint locations as an ``(N, 2)`` float32 array.

        When *indices* is given, only those keypoints are returned, in
        that order.
        """
        selected = self.keypoints if indices is None else [self.keypoints[i] for i in indices]
        if not selected:
            return np.empty((0, 2), dtype=np.float32)
        return np.array([keypoint.pt for keypoint in selected], dtype=np.float32)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

# OpenCV factories that some builds do not ship.
_OPTIONAL_FACTORIES = {
    "brisk": "BRISK_create",
    "akaze": "AKAZE_create",
}


def _require_factory(name: str) -> None:
    factory = _OPTIONAL_FACTORIES.get(name)
    if factory is not None and not hasattr(cv2, factory):
        raise ValueError(
            f"{name.upper()} is not available in this OpenCV build "
            f"(cv2.{factory} is missing; opencv-python 4.x ships it)."
        )


def check_pairing(detector: DetectorKind, descriptor: DescriptorKind) -> None:
    """Raise ``ValueError`` if *descriptor* cannot describe *detector* keypoints."""
    if descriptor is DescriptorKind.AKAZE and detector is not DetectorKind.AKAZE:
        raise ValueError("The AKAZE descriptor can only be used with the AKAZE detector.")
    if descriptor is DescriptorKind.ORB and detector not in (DetectorKind.ORB, DetectorKind.FAST):
        raise ValueError(
            f"The ORB descriptor needs ORB or FAST keypoints, not '{detector.value}'."
        )


def create_detector(kind: DetectorKind, max_features: int = DEFAULT_MAX_FEATURES) -> Any:
    """Instantiate the OpenCV keypoint detector for *kind*."""
    _require_factory(kind.value)
    if kind is DetectorKind.ORB:
        return cv2.ORB_create(nfeatures=max_features)
    if kind is DetectorKind.BRISK:
        return cv2.BRISK_create()
    if kind is DetectorKind.AKAZE:
        return cv2.AKAZE_create()
    if kind is DetectorKind.SIFT:
        return cv2.SIFT_create(nfeatures=max_features)
    if kind is DetectorKind.FAST:
        return cv2.FastFeatureDetector_create()
    raise ValueError(f"Unsupported detector: {kind}")


def create_descriptor(kind: DescriptorKind, max_features: int = DEFAULT_MAX_FEATURES) -> Any:
    """Instantiate the OpenCV descriptor extractor for *kind*."""
    _require_factory(kind.value)
    if kind is DescriptorKind.ORB:
        return cv2.ORB_create(nfeatures=max_features)
    if kind is DescriptorKind.BRISK:
        return cv2.BRISK_create()
    if kind is DescriptorKind.AKAZE:
        return cv2.AKAZE_create()
    if kind is DescriptorKind.SIFT:
        return cv2.SIFT_create(nfeatures=max_features)
    if kind is DescriptorKind.FREAK:
        if not hasattr(cv2, "xfeatures2d"):
            raise ValueError(
                "The FREAK descriptor requires opencv-contrib-python "
                "(cv2.xfeatures2d is not available)."
            )
        return cv2.xfeatures2d.FREAK_create()
    raise ValueError(f"Unsupported descriptor: {kind}")


# ---------------------------------------------------------------------------
# FeatureExtractor
# ---------------------------------------------------------------------------


class FeatureExtractor:
    """Detect keypoints and compute their descriptors on grayscale images.

    Parameters
    ----------
    detector : DetectorKind | str
        Keypoint detector name.  Default ``"orb"``.
    descriptor : DescriptorKind | str
        Descriptor extractor name.  Default ``"orb"``.
    max_features : int
        Keypoint cap for detectors that accept one (ORB, SIFT).
    """

    def __init__(
        self,
        detector: DetectorKind | str = DetectorKind.ORB,
        descriptor: DescriptorKind | str = DescriptorKind.ORB,
        max_features: int = DEFAULT_MAX_FEATURES,
    ) -> None:
        if max_features < 1:
            raise ValueError(f"max_features must be >= 1, got {max_features}")

        self.detector_kind = DetectorKind.from_name(detector)
        self.descriptor_kind = DescriptorKind.from_name(descriptor)
        self.max_features = max_features

        check_pairing(self.detector_kind, self.descriptor_kind)

        self._combined = self.detector_kind.value == self.descriptor_kind.value
        self._detector = create_detector(self.detector_kind, max_features)
        self._descriptor = (
            self._detector
            if self._combined
            else create_descriptor(self.descriptor_kind, max_features)
        )

    def __repr__(self) -> str:
        return (
            f"FeatureExtractor(detector={self.detector_kind.value!r}, "
            f"descriptor={self.descriptor_kind.value!r}, max_features={self.max_features})"
        )

    def extract(self, image: np.ndarray) -> FeatureSet:
        """Extract keypoints and descriptors from a grayscale image.

        Parameters
        ----------
        image : np.ndarray
            ``(H, W)`` uint8 grayscale image.

        Returns
        -------
        FeatureSet
            Possibly empty when the image has no detectable texture.

        Raises
        ------
        ValueError
            If *image* is not a 2D uint8 array.
        """
        if image.ndim != 2 or image.dtype != np.uint8:
            raise ValueError(
                f"Expected a (H, W) uint8 grayscale image, got shape {image.shape} "
                f"dtype {image.dtype}"
            )

        if self._combined:
            keypoints, descriptors = self._detector.detectAndCompute(image, None)
        else:
            keypoints = self._detector.detect(image, None)
            if not keypoints:
                return FeatureSet.empty()
            keypoints, descriptors = self._descriptor.compute(image, keypoints)

        if descriptors is None or not keypoints:
            return FeatureSet.empty()

        return FeatureSet(keypoints=tuple(keypoints), descriptors=descriptors)
