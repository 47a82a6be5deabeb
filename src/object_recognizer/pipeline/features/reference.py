"""Reference model built once from the calibration image."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from object_recognizer.io.frames import load_reference_image, to_grayscale
from object_recognizer.pipeline.features.extractor import FeatureExtractor, FeatureSet

logger = logging.getLogger(__name__)


def boundary_quadrilateral(width: float, height: float) -> np.ndarray:
    """Corners of a ``width x height`` image as a ``(4, 2)`` float32 array.

    Order is top-left, top-right, bottom-right, bottom-left.
    """
    return np.array(
        [[0.0, 0.0], [width, 0.0], [width, height], [0.0, height]],
        dtype=np.float32,
    )


@dataclass(frozen=True)
class ReferenceModel:
    """Keypoints, descriptors and size of the calibration image.

    Attributes
    ----------
    width, height : int
        Calibration image size in pixels.
    features : FeatureSet
        Features extracted from the calibration image.
    """

    width: int
    height: int
    features: FeatureSet

    @classmethod
    def from_image(cls, image: np.ndarray, extractor: FeatureExtractor) -> ReferenceModel:
        """Run *extractor* on the calibration image (gray or colour)."""
        gray = to_grayscale(image)
        features = extractor.extract(gray)
        height, width = gray.shape[:2]

        if features.is_empty:
            logger.warning(
                "Reference image (%dx%d) has no detectable features; "
                "the object will never be found.",
                width,
                height,
            )
        else:
            logger.info(
                "Reference model: %dx%d  |  %d keypoints  |  %s",
                width,
                height,
                len(features),
                extractor,
            )
        return cls(width=int(width), height=int(height), features=features)

    @classmethod
    def from_path(cls, path: str | Path, extractor: FeatureExtractor) -> ReferenceModel:
        """Load the calibration image from *path* and build the model.

        Raises :class:`~object_recognizer.io.frames.ReferenceImageError`
        when the file is missing or undecodable.
        """
        return cls.from_image(load_reference_image(path), extractor)

    @property
    def boundary(self) -> np.ndarray:
        """``[(0,0), (W,0), (W,H), (0,H)]`` as a ``(4, 2)`` float32 array."""
        return boundary_quadrilateral(self.width, self.height)

    @property
    def area(self) -> float:
        return float(self.width * self.height)
