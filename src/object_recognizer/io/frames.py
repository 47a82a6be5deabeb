"""Frame containers and image decoding for the localization pipeline.

Design notes
------------
- A :class:`Frame` pairs the colour image with the grayscale derivative
  used for feature extraction.  The grayscale conversion happens once,
  when the frame is built, so every pipeline stage sees the same pixels.
- Two error types separate the fatal case (the calibration image is
  unusable) from the recoverable one (a single bad frame that the runner
  skips).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ReferenceImageError(OSError):
    """The calibration image is missing or cannot be decoded."""


class FrameDecodeError(ValueError):
    """A frame cannot be converted into the format the pipeline needs."""


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or already-gray ``uint8`` image to grayscale.

    Raises
    ------
    FrameDecodeError
        If *image* is not a non-empty ``uint8`` array with 1, 3 or 4
        channels.
    """
    if not isinstance(image, np.ndarray):
        raise FrameDecodeError(f"Expected a numpy array, got {type(image).__name__}")
    if image.size == 0:
        raise FrameDecodeError("Frame is empty")
    if image.dtype != np.uint8:
        raise FrameDecodeError(f"Expected uint8 pixels, got {image.dtype}")

    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise FrameDecodeError(f"Unsupported frame shape {image.shape}")


def load_reference_image(path: str | Path) -> np.ndarray:
    """Read the calibration image from disk as a grayscale ``uint8`` array.

    Raises
    ------
    ReferenceImageError
        If the file does not exist or OpenCV cannot decode it.
    """
    image_path = Path(path)
    if not image_path.exists():
        raise ReferenceImageError(f"Reference image not found: {image_path}")

    image = cv2.imread(str(image_path), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise ReferenceImageError(f"Failed to decode reference image: {image_path}")

    logger.info(
        "Loaded reference image: %s  |  %dx%d", image_path, image.shape[1], image.shape[0]
    )
    return image


# ---------------------------------------------------------------------------
# Frame
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Frame:
    """One camera frame, ready for feature extraction.

    Attributes
    ----------
    color : np.ndarray
        The image as received (BGR, BGRA or gray).  Used only by drawing
        collaborators.
    gray : np.ndarray
        ``(H, W)`` uint8 grayscale derivative of *color*.
    index : int
        Frame index assigned by the source (``-1`` when unknown).
    timestamp : float
        ``time.monotonic()`` at construction, i.e. roughly arrival time.
    """

    color: np.ndarray
    gray: np.ndarray
    index: int = -1
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def from_image(cls, image: np.ndarray, index: int = -1) -> Frame:
        """Build a frame from a raw image, converting it to grayscale.

        Raises :class:`FrameDecodeError` for unusable input.
        """
        return cls(color=image, gray=to_grayscale(image), index=index)

    @property
    def width(self) -> int:
        return int(self.gray.shape[1])

    @property
    def height(self) -> int:
        return int(self.gray.shape[0])
