"""Semantic content index for lessons and resources."""

__version__ = "0.1.0"
