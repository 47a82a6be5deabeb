"""Drawing utilities for recognizer output."""
