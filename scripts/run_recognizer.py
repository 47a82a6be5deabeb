#!/usr/bin/env python3
"""CLI entrypoint -- locate a reference object in a live or recorded video.

Usage
-----
    # Webcam 0, 30 Hz, live window:
    python scripts/run_recognizer.py box.png 0 --display

    # Recorded video, annotated output + JSON-lines locations:
    python scripts/run_recognizer.py box.png clip.mp4 \\
        --output annotated.mp4 --out_jsonl data/locations.jsonl

    # Different features (SIFT needs the L2 metric, chosen automatically):
    python scripts/run_recognizer.py box.png clip.mp4 \\
        --detector sift --descriptor sift

    # Original node's setup (ORB keypoints + FREAK, needs opencv-contrib):
    python scripts/run_recognizer.py box.png 0 --detector orb --descriptor freak

Config defaults are loaded from ``configs/default.yaml``; any CLI flag
overrides the corresponding config value.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
import threading
import time
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path

import cv2
import numpy as np

# ---------------------------------------------------------------------------
# Make the ``src/`` tree importable when running the script directly.
# ---------------------------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from object_recognizer.config import RecognizerConfig, parse_resize  # noqa: E402
from object_recognizer.io.frames import Frame, ReferenceImageError  # noqa: E402
from object_recognizer.io.jsonl import JsonlWriter  # noqa: E402
from object_recognizer.io.video import VideoReader, VideoWriter, parse_source  # noqa: E402
from object_recognizer.pipeline.features.extractor import (  # noqa: E402
    DescriptorKind,
    DetectorKind,
)
from object_recognizer.pipeline.frame_gate import FrameGate  # noqa: E402
from object_recognizer.pipeline.geometry.estimator import Found  # noqa: E402
from object_recognizer.pipeline.localizer import (  # noqa: E402
    LocalizationResult,
    ObjectLocalizer,
)
from object_recognizer.pipeline.matching.matcher import MatchMetric  # noqa: E402
from object_recognizer.pipeline.runner import (  # noqa: E402
    FrameFeeder,
    FrameSourceError,
    RecognizerRunner,
)
from object_recognizer.utils.draw import render_result  # noqa: E402

logger = logging.getLogger("run_recognizer")

DEFAULTS_CONFIG_PATH = _PROJECT_ROOT / "configs" / "default.yaml"
WINDOW_NAME = "OUT"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_argument_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "Object Recognizer -- locate the object shown in a reference image "
            "in every frame of a video file or camera stream."
        ),
    )
    parser.add_argument("reference", help="Path to the calibration (reference) image")
    parser.add_argument("input", help="Video file path, or camera index such as '0'")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file (default: configs/default.yaml)",
    )

    # --- Outputs ----------------------------------------------------------
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write an annotated output video to this path (default: none)",
    )
    parser.add_argument(
        "--out_jsonl",
        type=str,
        default=None,
        help=(
            "Write one JSON line per located object to this file, "
            "replacing any existing content (default: none)"
        ),
    )
    parser.add_argument(
        "--display",
        action="store_true",
        default=False,
        help="Show annotated frames in a window; press 'q' to quit.",
    )
    parser.add_argument(
        "--show_keypoints",
        action="store_true",
        default=False,
        help="Draw frame keypoints and matched keypoints on the annotated output.",
    )

    # --- Features / matching ----------------------------------------------
    parser.add_argument(
        "--detector",
        type=str,
        default=None,
        choices=[kind.value for kind in DetectorKind],
        help="Keypoint detector (default: orb)",
    )
    parser.add_argument(
        "--descriptor",
        type=str,
        default=None,
        choices=[kind.value for kind in DescriptorKind],
        help="Descriptor extractor (default: orb)",
    )
    parser.add_argument(
        "--max_features",
        type=int,
        default=None,
        help="Keypoint cap for ORB / SIFT (default: 500)",
    )
    parser.add_argument(
        "--metric",
        type=str,
        default=None,
        choices=[metric.value for metric in MatchMetric],
        help="Descriptor distance (default: hamming for binary, l2 for sift)",
    )
    parser.add_argument(
        "--ratio",
        type=float,
        default=None,
        help="Keep matches with distance < ratio * min distance (default: 3.0)",
    )
    parser.add_argument(
        "--ransac_thresh",
        type=float,
        default=None,
        help="RANSAC reprojection threshold in pixels (default: 3.0)",
    )

    # --- Runtime ------------------------------------------------------------
    parser.add_argument(
        "--rate_hz",
        type=float,
        default=None,
        help="Pipeline tick rate (default: 30)",
    )
    parser.add_argument(
        "--max_frames",
        type=int,
        default=None,
        help="Maximum number of frames to read (default: all)",
    )
    parser.add_argument(
        "--start_frame",
        type=int,
        default=None,
        help="Frame index to start from, 0-based, files only (default: 0)",
    )
    parser.add_argument(
        "--stride",
        type=int,
        default=None,
        help="Read every N-th frame (default: 1)",
    )
    parser.add_argument(
        "--resize",
        type=str,
        default=None,
        help="Resize frames to WIDTHxHEIGHT, e.g. '1280x720' (default: original)",
    )
    parser.add_argument(
        "--no_pace",
        action="store_true",
        default=False,
        help="Feed video files as fast as they decode instead of at their native fps.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log per-frame pipeline details.",
    )
    return parser


def merge_config(config: RecognizerConfig, args: argparse.Namespace) -> RecognizerConfig:
    """Apply CLI overrides on top of the file config."""
    features = config.features
    if args.detector is not None:
        features = dataclasses.replace(features, detector=DetectorKind.from_name(args.detector))
    if args.descriptor is not None:
        features = dataclasses.replace(
            features, descriptor=DescriptorKind.from_name(args.descriptor)
        )
    if args.max_features is not None:
        features = dataclasses.replace(features, max_features=args.max_features)

    matching = config.matching
    if args.metric is not None:
        matching = dataclasses.replace(matching, metric=MatchMetric.from_name(args.metric))
    elif args.descriptor is not None:
        # A new descriptor from the CLI gets its natural metric unless one is given.
        matching = dataclasses.replace(matching, metric=None)
    if args.ratio is not None:
        matching = dataclasses.replace(matching, ratio=args.ratio)

    geometry = config.geometry
    if args.ransac_thresh is not None:
        geometry = dataclasses.replace(geometry, ransac_reproj_threshold=args.ransac_thresh)

    runtime = config.runtime
    overrides = {
        "rate_hz": args.rate_hz,
        "max_frames": args.max_frames,
        "start_frame": args.start_frame,
        "stride": args.stride,
        "resize": parse_resize(args.resize),
    }
    runtime = dataclasses.replace(
        runtime, **{key: value for key, value in overrides.items() if value is not None}
    )

    merged = RecognizerConfig(
        features=features, matching=matching, geometry=geometry, runtime=runtime
    )
    merged.validate()
    return merged


def location_record(result: LocalizationResult) -> dict[str, object] | None:
    """JSON-serialisable record for a found object, ``None`` otherwise."""
    outcome = result["outcome"]
    location = result["location"]
    if not isinstance(outcome, Found) or location is None:
        return None
    return {
        "frame_index": result["frame_index"],
        "time": time.time(),
        "corners": np.round(outcome.corners, 2).tolist(),
        "inliers": outcome.inlier_count,
        "good_matches": result["debug"]["good_match_count"],
        **location.to_dict(),
    }


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # --- Merge config defaults with CLI overrides -------------------------
    config_path = Path(args.config) if args.config else DEFAULTS_CONFIG_PATH
    try:
        config = merge_config(RecognizerConfig.from_file(config_path), args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    logger.info("Loaded config from %s", config_path)

    # --- Reference model (read once, never re-read) -----------------------
    try:
        localizer = ObjectLocalizer.from_config(args.reference, config)
    except (ReferenceImageError, ValueError) as exc:
        logger.error("Cannot build reference model: %s", exc)
        return 1

    source = parse_source(args.input)
    reader = VideoReader(
        source,
        start_frame=config.runtime.start_frame,
        max_frames=config.runtime.max_frames,
        stride=config.runtime.stride,
        resize=config.runtime.resize,
    )

    wall_clock_start = time.perf_counter()
    stop_event = threading.Event()

    try:
        reader.open()
    except OSError as exc:
        logger.error("%s", exc)
        return 1

    with closing(reader), open_optional_jsonl(args.out_jsonl) as jsonl_writer:
        writer: VideoWriter | None = None
        if args.output is not None:
            width, height = reader.output_size
            writer = VideoWriter(args.output, config.runtime.rate_hz, width, height).open()

        def on_result(frame: Frame, result: LocalizationResult) -> None:
            record = location_record(result)
            if record is not None and jsonl_writer is not None:
                jsonl_writer.write(record)

            if writer is None and not args.display:
                return
            annotated = render_result(frame.color, result, show_keypoints=args.show_keypoints)
            if writer is not None:
                writer.write(annotated)
            if args.display:
                cv2.imshow(WINDOW_NAME, annotated)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    stop_event.set()

        pace_fps = None
        if not reader.is_camera and not args.no_pace:
            pace_fps = reader.fps / config.runtime.stride if reader.fps > 0 else None

        gate: FrameGate = FrameGate()
        feeder = FrameFeeder(reader, gate, stop_event=stop_event, pace_fps=pace_fps)
        runner = RecognizerRunner(
            gate, localizer, on_result=on_result, rate_hz=config.runtime.rate_hz
        )

        feeder.start()
        try:
            stats = runner.run(stop_event=stop_event, feeder=feeder)
        except KeyboardInterrupt:
            logger.info("Interrupted -- stopping.")
            stats = runner.stats
        except FrameSourceError as exc:
            logger.error("%s", exc)
            return 1
        finally:
            stop_event.set()
            feeder.join(timeout=2.0)
            if writer is not None:
                writer.close()
            if args.display:
                cv2.destroyAllWindows()

    elapsed = time.perf_counter() - wall_clock_start
    logger.info(
        "Done -- %.1f s  |  frames arrived=%d dropped=%d  |  tick overruns=%d",
        elapsed,
        gate.arrived_count,
        gate.dropped_count,
        runner.limiter.overrun_count,
    )
    logger.info("Localization stats -- %s", stats.to_log_string())
    return 0


@contextmanager
def open_optional_jsonl(path: str | None) -> Iterator[JsonlWriter | None]:
    """Open a JSON-lines writer for *path*; yield ``None`` when no path is set."""
    if path is None:
        yield None
        return
    with JsonlWriter(path) as writer:
        yield writer


if __name__ == "__main__":
    sys.exit(main())
