"""Frame sources and annotated-video output on top of OpenCV.

Design notes
------------
- A source is either a video file path or a camera index; the CLI turns
  an all-digit argument into an index via :func:`parse_source`.
- ``VideoReader`` yields ``(frame_index, bgr_image)`` packets, which is
  exactly what :class:`~object_recognizer.pipeline.runner.FrameFeeder`
  pushes into the frame gate.
- Cameras cannot seek and often report ``0`` fps.  ``start_frame`` is
  ignored for them and pacing is left to the device.
- The reader and the writer are context managers; the feeder thread may
  still be iterating when the main thread closes the reader, so
  iteration re-checks the capture on every read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def parse_source(value: str) -> str | int:
    """``'0'`` → camera ``0``; anything else is treated as a file path."""
    return int(value) if value.isdigit() else value


# ---------------------------------------------------------------------------
# VideoReader
# ---------------------------------------------------------------------------


class VideoReader:
    """Iterate over the frames of a video file or a live camera.

    Parameters
    ----------
    source : str | int
        Video file path or camera device index.
    start_frame : int
        Index of the first file frame to yield.  Cameras always start at
        ``0``.
    max_frames : int | None
        Stop after yielding this many frames.  ``None`` reads until the
        stream ends.
    stride : int
        Keep one frame out of every *stride*; skipped frames are grabbed
        but never decoded.
    resize : tuple[int, int] | None
        ``(width, height)`` applied to every yielded frame.
    """

    def __init__(
        self,
        source: str | int,
        start_frame: int = 0,
        max_frames: int | None = None,
        stride: int = 1,
        resize: tuple[int, int] | None = None,
    ) -> None:
        if stride < 1:
            raise ValueError(f"stride must be >= 1, got {stride}")
        if start_frame < 0:
            raise ValueError(f"start_frame must be >= 0, got {start_frame}")
        self.source = source
        self.start_frame = start_frame
        self.max_frames = max_frames
        self.stride = stride
        self.resize = resize
        self._capture: cv2.VideoCapture | None = None

    def __repr__(self) -> str:
        return f"VideoReader(source={self.source!r}, stride={self.stride})"

    @property
    def is_camera(self) -> bool:
        return isinstance(self.source, int)

    @property
    def fps(self) -> float:
        """Nominal frame rate; ``0.0`` when the backend does not know it."""
        return float(self._require_capture().get(cv2.CAP_PROP_FPS))

    @property
    def width(self) -> int:
        return int(self._require_capture().get(cv2.CAP_PROP_FRAME_WIDTH))

    @property
    def height(self) -> int:
        return int(self._require_capture().get(cv2.CAP_PROP_FRAME_HEIGHT))

    @property
    def output_size(self) -> tuple[int, int]:
        """``(width, height)`` of the yielded frames, after any resize."""
        if self.resize is not None:
            return self.resize
        return self.width, self.height

    def open(self) -> VideoReader:
        """Open the capture.  Raises ``OSError`` if the source is unavailable."""
        capture = cv2.VideoCapture(self.source)
        if not capture.isOpened():
            capture.release()
            kind = "camera" if self.is_camera else "video file"
            raise OSError(f"Cannot open {kind}: {self.source}")
        self._capture = capture
        logger.info(
            "Opened %s %s  |  %.1f fps  |  %dx%d",
            "camera" if self.is_camera else "video",
            self.source,
            self.fps,
            self.width,
            self.height,
        )
        return self

    def close(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()

    def __enter__(self) -> VideoReader:
        return self.open()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        capture = self._require_capture()
        frame_index = 0
        if self.start_frame > 0 and not self.is_camera:
            capture.set(cv2.CAP_PROP_POS_FRAMES, self.start_frame)
            frame_index = self.start_frame

        yielded = 0
        while self.max_frames is None or yielded < self.max_frames:
            capture = self._capture
            if capture is None:
                return
            ok, image = capture.read()
            if not ok:
                return
            if self.resize is not None:
                image = cv2.resize(image, self.resize, interpolation=cv2.INTER_LINEAR)

            yield frame_index, image
            yielded += 1

            skipped = self._skip(self.stride - 1)
            frame_index += 1 + skipped
            if skipped < self.stride - 1:
                return

    # -- internals ---------------------------------------------------------

    def _skip(self, count: int) -> int:
        """Grab (without decoding) up to *count* frames; return how many succeeded."""
        for skipped in range(count):
            capture = self._capture
            if capture is None or not capture.grab():
                return skipped
        return count

    def _require_capture(self) -> cv2.VideoCapture:
        if self._capture is None:
            raise RuntimeError("VideoReader is not open; call open() or use it in a with block.")
        return self._capture


# ---------------------------------------------------------------------------
# VideoWriter
# ---------------------------------------------------------------------------


class VideoWriter:
    """Write annotated frames to a video file.

    Frames of the wrong size are resized and gray frames are expanded to
    BGR, so callers can hand over whatever :func:`render_result` produced.

    Parameters
    ----------
    path : str
        Output file, typically ``.mp4``.
    fps : float
        Playback rate stored in the container.
    width, height : int
        Output frame size.
    codec : str
        FourCC code.  Default ``"mp4v"``.
    """

    def __init__(
        self,
        path: str,
        fps: float,
        width: int,
        height: int,
        codec: str = "mp4v",
    ) -> None:
        self.path = path
        self.fps = fps
        self.width = width
        self.height = height
        self.codec = codec
        self._writer: cv2.VideoWriter | None = None
        self._frames_written = 0

    @property
    def frames_written(self) -> int:
        return self._frames_written

    def open(self) -> VideoWriter:
        """Create the output file.  Raises ``OSError`` if the codec is unavailable."""
        fourcc = cv2.VideoWriter_fourcc(*self.codec)  # type: ignore[attr-defined]
        writer = cv2.VideoWriter(self.path, fourcc, self.fps, (self.width, self.height))
        if not writer.isOpened():
            writer.release()
            raise OSError(f"Cannot open video writer for {self.path} (codec {self.codec})")
        self._writer = writer
        logger.info(
            "Writing annotated video to %s  |  %.1f fps  |  %dx%d  |  %s",
            self.path,
            self.fps,
            self.width,
            self.height,
            self.codec,
        )
        return self

    def close(self) -> None:
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.release()
            logger.info("Closed %s after %d frames", self.path, self._frames_written)

    def __enter__(self) -> VideoWriter:
        return self.open()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def write(self, image: np.ndarray) -> None:
        if self._writer is None:
            raise RuntimeError("VideoWriter is not open; call open() or use it in a with block.")
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if image.shape[:2] != (self.height, self.width):
            image = cv2.resize(image, (self.width, self.height), interpolation=cv2.INTER_LINEAR)
        self._writer.write(image)
        self._frames_written += 1
