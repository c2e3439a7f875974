"""Anansi: a content tagging service for discovery and organization."""

__version__ = "0.1.0"
