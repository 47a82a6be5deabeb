"""Smoke tests: verify that imports work and the CLI is wired up correctly."""

import subprocess
import sys


def test_core_imports():
    """The pipeline stages can be imported without error."""
    from object_recognizer.pipeline.features import FeatureExtractor, ReferenceModel
    from object_recognizer.pipeline.geometry import GeometryEstimator
    from object_recognizer.pipeline.matching import CorrespondenceMatcher, MatchFilter

    assert FeatureExtractor is not None
    assert ReferenceModel is not None
    assert CorrespondenceMatcher is not None
    assert MatchFilter is not None
    assert GeometryEstimator is not None


def test_package_init_imports():
    """Top-level and sub-package __init__ modules import cleanly."""
    import object_recognizer
    import object_recognizer.io
    import object_recognizer.pipeline
    import object_recognizer.utils

    assert object_recognizer.__version__


def test_cli_help_exits_zero(project_root):
    """``scripts/run_recognizer.py --help`` exits with code 0 and shows usage."""
    script_path = str(project_root / "scripts" / "run_recognizer.py")
    result = subprocess.run(
        [sys.executable, script_path, "--help"],
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, f"CLI --help failed:\n{result.stderr}"
    assert "reference" in result.stdout.lower()
    assert "input" in result.stdout.lower()
