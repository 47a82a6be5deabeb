"""Descriptor matching and correspondence filtering."""

from object_recognizer.pipeline.matching.match_filter import MatchFilter
from object_recognizer.pipeline.matching.matcher import (
    Correspondence,
    CorrespondenceMatcher,
    MatchMetric,
)

__all__ = ["Correspondence", "CorrespondenceMatcher", "MatchFilter", "MatchMetric"]
