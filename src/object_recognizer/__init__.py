"""Locate a known planar object in a video stream by feature matching."""

__version__ = "0.1.0"
