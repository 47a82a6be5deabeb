"""Recognizer configuration: dataclasses plus YAML loading.

The YAML file mirrors the dataclass nesting::

    features:
      detector: orb
      descriptor: orb
      max_features: 500
    matching:
      metric: hamming      # omit to use the descriptor's natural metric
      ratio: 3.0
    geometry:
      ransac_reproj_threshold: 3.0
      max_iters: 2000
      confidence: 0.995
      min_inliers: 4
      require_convex: true
    runtime:
      rate_hz: 30.0
      start_frame: 0
      max_frames: null
      stride: 1
      resize: null         # or "WIDTHxHEIGHT"

Every key is optional.  CLI flags override file values (see
``scripts/run_recognizer.py``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from object_recognizer.pipeline.features.extractor import (
    DescriptorKind,
    DetectorKind,
    check_pairing,
)
from object_recognizer.pipeline.matching.matcher import MatchMetric

logger = logging.getLogger(__name__)


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a YAML config file and return its contents as a dict."""
    if config_path.exists():
        with open(config_path) as config_file:
            data = yaml.safe_load(config_file) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Top level of {config_path} must be a mapping")
        return data
    logger.warning("Config file not found: %s -- using built-in defaults.", config_path)
    return {}


def parse_resize(value: str | None) -> tuple[int, int] | None:
    """Parse a ``'WIDTHxHEIGHT'`` string into an ``(int, int)`` tuple.

    Returns ``None`` when *value* is ``None``.
    """
    if value is None:
        return None
    parts = str(value).lower().split("x")
    if len(parts) != 2:
        raise ValueError(
            f"Invalid resize format '{value}'. Expected 'WIDTHxHEIGHT', e.g. '1280x720'."
        )
    return int(parts[0]), int(parts[1])


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureConfig:
    detector: DetectorKind = DetectorKind.ORB
    descriptor: DescriptorKind = DescriptorKind.ORB
    max_features: int = 500


@dataclass(frozen=True)
class MatchingConfig:
    # None selects the descriptor's natural metric.
    metric: MatchMetric | None = None
    ratio: float = 3.0


@dataclass(frozen=True)
class GeometryConfig:
    ransac_reproj_threshold: float = 3.0
    max_iters: int = 2000
    confidence: float = 0.995
    min_inliers: int = 4
    require_convex: bool = True


@dataclass(frozen=True)
class RuntimeConfig:
    rate_hz: float = 30.0
    start_frame: int = 0
    max_frames: int | None = None
    stride: int = 1
    resize: tuple[int, int] | None = None


@dataclass(frozen=True)
class RecognizerConfig:
    features: FeatureConfig = field(default_factory=FeatureConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    @property
    def match_metric(self) -> MatchMetric:
        """Configured metric, or the natural one for the descriptor."""
        if self.matching.metric is not None:
            return self.matching.metric
        return MatchMetric.default_for(self.features.descriptor)

    def validate(self) -> None:
        """Raise ``ValueError`` for algorithm combinations that cannot work together."""
        check_pairing(self.features.detector, self.features.descriptor)
        self.match_metric.check_compatible(self.features.descriptor)

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> RecognizerConfig:
        """Build a config from a parsed YAML mapping.

        Raises
        ------
        ValueError
            On unknown sections or keys, or unknown algorithm names.
        """
        known_sections = {"features", "matching", "geometry", "runtime"}
        unknown = set(mapping) - known_sections
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        features = _section(mapping, "features", FeatureConfig)
        if "detector" in features:
            features["detector"] = DetectorKind.from_name(features["detector"])
        if "descriptor" in features:
            features["descriptor"] = DescriptorKind.from_name(features["descriptor"])

        matching = _section(mapping, "matching", MatchingConfig)
        if matching.get("metric") is not None:
            matching["metric"] = MatchMetric.from_name(matching["metric"])

        geometry = _section(mapping, "geometry", GeometryConfig)

        runtime = _section(mapping, "runtime", RuntimeConfig)
        if "resize" in runtime and not isinstance(runtime["resize"], tuple):
            runtime["resize"] = parse_resize(runtime["resize"])

        config = cls(
            features=FeatureConfig(**features),
            matching=MatchingConfig(**matching),
            geometry=GeometryConfig(**geometry),
            runtime=RuntimeConfig(**runtime),
        )
        config.validate()
        return config

    @classmethod
    def from_file(cls, config_path: Path) -> RecognizerConfig:
        return cls.from_mapping(load_config(config_path))


def _section(mapping: dict[str, Any], name: str, section_type: type) -> dict[str, Any]:
    """Copy one section out of *mapping*, rejecting keys the dataclass lacks."""
    section = mapping.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    allowed = {section_field.name for section_field in fields(section_type)}
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {sorted(unknown)}")
    return dict(section)
