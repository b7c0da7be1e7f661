"""Granular backup and restore engine for the La Pública platform."""

__version__ = "2.0.0"
