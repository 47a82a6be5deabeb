"""Homography estimation and object location."""

from object_recognizer.pipeline.geometry.estimator import (
    EstimateResult,
    Found,
    GeometryEstimator,
    NotFound,
)
from object_recognizer.pipeline.geometry.location import ObjectLocation

__all__ = ["EstimateResult", "Found", "GeometryEstimator", "NotFound", "ObjectLocation"]
