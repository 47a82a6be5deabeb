"""Tests for YAML config loading and validation."""

import pytest

from object_recognizer.config import (
    RecognizerConfig,
    load_config,
    parse_resize,
)
from object_recognizer.pipeline.features.extractor import DescriptorKind, DetectorKind
from object_recognizer.pipeline.matching.matcher import MatchMetric


def test_defaults_follow_orb_pipeline():
    config = RecognizerConfig()

    assert config.features.detector is DetectorKind.ORB
    assert config.features.descriptor is DescriptorKind.ORB
    assert config.match_metric is MatchMetric.HAMMING
    assert config.matching.ratio == 3.0
    assert config.runtime.rate_hz == 30.0


def test_shipped_default_config_is_valid(project_root):
    config = RecognizerConfig.from_file(project_root / "configs" / "default.yaml")

    assert config == RecognizerConfig()


def test_from_file_parses_names_and_resize(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "features:\n"
        "  detector: SIFT\n"
        "  descriptor: sift\n"
        "matching:\n"
        "  ratio: 2.5\n"
        "runtime:\n"
        "  resize: 640x480\n"
        "  max_frames: 10\n",
        encoding="utf-8",
    )

    config = RecognizerConfig.from_file(path)

    assert config.features.detector is DetectorKind.SIFT
    assert config.match_metric is MatchMetric.L2
    assert config.matching.ratio == 2.5
    assert config.runtime.resize == (640, 480)
    assert config.runtime.max_frames == 10


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "missing.yaml") == {}
    assert RecognizerConfig.from_file(tmp_path / "missing.yaml") == RecognizerConfig()


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert RecognizerConfig.from_file(path) == RecognizerConfig()


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- orb\n- sift\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


@pytest.mark.parametrize(
    "mapping, message",
    [
        ({"tracking": {}}, "Unknown config sections"),
        ({"features": {"nfeatures": 100}}, "Unknown keys"),
        ({"features": {"detector": "surf"}}, "Unknown detector"),
        ({"matching": {"metric": "cosine"}}, "Unknown match metric"),
        ({"features": "orb"}, "must be a mapping"),
    ],
)
def test_invalid_mappings_are_rejected(mapping, message):
    with pytest.raises(ValueError, match=message):
        RecognizerConfig.from_mapping(mapping)


def test_hamming_metric_with_sift_is_rejected():
    mapping = {
        "features": {"detector": "sift", "descriptor": "sift"},
        "matching": {"metric": "hamming"},
    }

    with pytest.raises(ValueError, match="binary descriptors"):
        RecognizerConfig.from_mapping(mapping)


def test_parse_resize():
    assert parse_resize(None) is None
    assert parse_resize("1280x720") == (1280, 720)
    assert parse_resize("640X480") == (640, 480)
    with pytest.raises(ValueError):
        parse_resize("1280")


@pytest.mark.parametrize("detector", ["sift", "brisk", "akaze"])
def test_orb_descriptor_with_foreign_detector_is_rejected(detector):
    mapping = {"features": {"detector": detector, "descriptor": "orb"}}

    with pytest.raises(ValueError, match="ORB or FAST keypoints"):
        RecognizerConfig.from_mapping(mapping)


def test_orb_keypoints_with_sift_descriptor_is_accepted():
    config = RecognizerConfig.from_mapping(
        {"features": {"detector": "orb", "descriptor": "sift"}}
    )

    assert config.match_metric is MatchMetric.L2
