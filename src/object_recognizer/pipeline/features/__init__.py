"""Feature extraction and the calibration-image reference model."""

from object_recognizer.pipeline.features.extractor import (
    DescriptorKind,
    DetectorKind,
    FeatureExtractor,
    FeatureSet,
)
from object_recognizer.pipeline.features.reference import ReferenceModel, boundary_quadrilateral

__all__ = [
    "DescriptorKind",
    "DetectorKind",
    "FeatureExtractor",
    "FeatureSet",
    "ReferenceModel",
    "boundary_quadrilateral",
]
