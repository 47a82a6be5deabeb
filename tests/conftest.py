"""Shared pytest fixtures.

The package uses a src layout; ``src/`` is put on ``sys.path`` here so the
tests run from a plain checkout without installing the package.
"""

from __future__ import annotations

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = str(_PROJECT_ROOT / "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)


def make_textured_image(width: int = 320, height: int = 240, seed: int = 0) -> np.ndarray:
    """Grayscale image of random 16 px blocks: plenty of sharp corners."""
    rng = np.random.default_rng(seed)
    blocks = rng.integers(0, 256, size=(height // 16, width // 16), dtype=np.uint8)
    return cv2.resize(blocks, (width, height), interpolation=cv2.INTER_NEAREST)


@pytest.fixture
def textured_image() -> np.ndarray:
    return make_textured_image()


@pytest.fixture
def blank_image() -> np.ndarray:
    return np.full((240, 320), 127, dtype=np.uint8)


@pytest.fixture
def project_root() -> Path:
    return _PROJECT_ROOT
