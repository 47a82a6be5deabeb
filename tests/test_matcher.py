"""Tests for brute-force descriptor matching and metric selection."""

import numpy as np
import pytest

from object_recognizer.pipeline.features.extractor import DescriptorKind
from object_recognizer.pipeline.matching.matcher import CorrespondenceMatcher, MatchMetric


def _binary_descriptors(rows):
    return np.array(rows, dtype=np.uint8)


@pytest.mark.parametrize(
    "descriptors_a, descriptors_b",
    [
        (None, np.zeros((3, 32), dtype=np.uint8)),
        (np.zeros((3, 32), dtype=np.uint8), None),
        (np.zeros((0, 32), dtype=np.uint8), np.zeros((3, 32), dtype=np.uint8)),
        (np.zeros((3, 32), dtype=np.uint8), np.zeros((0, 32), dtype=np.uint8)),
    ],
)
def test_empty_side_yields_no_matches(descriptors_a, descriptors_b):
    assert CorrespondenceMatcher().match(descriptors_a, descriptors_b) == []


def test_hamming_nearest_neighbour():
    zeros = [0] * 32
    ones = [255] * 32
    one_bit = [1] + [0] * 31
    reference = _binary_descriptors([zeros, ones])
    frame = _binary_descriptors([ones, one_bit, zeros])

    matches = CorrespondenceMatcher("hamming").match(reference, frame)

    assert len(matches) == 2
    by_reference = {match.reference_index: match for match in matches}
    assert by_reference[0].frame_index == 2
    assert by_reference[0].distance == 0.0
    assert by_reference[1].frame_index == 0
    assert by_reference[1].distance == 0.0


def test_one_match_per_reference_descriptor():
    rng = np.random.default_rng(3)
    reference = rng.integers(0, 256, size=(40, 32), dtype=np.uint8)
    frame = rng.integers(0, 256, size=(15, 32), dtype=np.uint8)

    matches = CorrespondenceMatcher().match(reference, frame)

    assert sorted(match.reference_index for match in matches) == list(range(40))
    assert all(0 <= match.frame_index < 15 for match in matches)


def test_l2_metric_on_float_descriptors():
    reference = np.array([[0.0, 0.0], [10.0, 10.0]], dtype=np.float32)
    frame = np.array([[9.0, 10.0], [0.0, 3.0]], dtype=np.float32)

    matches = CorrespondenceMatcher(MatchMetric.L2).match(reference, frame)
    by_reference = {match.reference_index: match for match in matches}

    assert by_reference[0].frame_index == 1
    assert by_reference[0].distance == pytest.approx(3.0)
    assert by_reference[1].frame_index == 0
    assert by_reference[1].distance == pytest.approx(1.0)


def test_metric_from_name():
    assert MatchMetric.from_name("HAMMING") is MatchMetric.HAMMING
    assert MatchMetric.from_name(" l2 ") is MatchMetric.L2
    with pytest.raises(ValueError, match="Unknown match metric"):
        MatchMetric.from_name("cosine")


def test_default_metric_follows_descriptor_type():
    assert MatchMetric.default_for(DescriptorKind.ORB) is MatchMetric.HAMMING
    assert MatchMetric.default_for(DescriptorKind.FREAK) is MatchMetric.HAMMING
    assert MatchMetric.default_for(DescriptorKind.SIFT) is MatchMetric.L2


def test_hamming_rejects_float_descriptors():
    with pytest.raises(ValueError):
        MatchMetric.HAMMING.check_compatible(DescriptorKind.SIFT)
    MatchMetric.L2.check_compatible(DescriptorKind.SIFT)
    MatchMetric.HAMMING.check_compatible(DescriptorKind.BRISK)
