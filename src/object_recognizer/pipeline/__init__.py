"""Localization pipeline -- features, matching, geometry and scheduling."""
