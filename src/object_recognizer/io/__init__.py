"""Image, video and result I/O."""

from object_recognizer.io.frames import (
    Frame,
    FrameDecodeError,
    ReferenceImageError,
    load_reference_image,
    to_grayscale,
)
from object_recognizer.io.jsonl import JsonlWriter
from object_recognizer.io.video import VideoReader, VideoWriter, parse_source

__all__ = [
    "Frame",
    "FrameDecodeError",
    "JsonlWriter",
    "ReferenceImageError",
    "VideoReader",
    "VideoWriter",
    "load_reference_image",
    "parse_source",
    "to_grayscale",
]
