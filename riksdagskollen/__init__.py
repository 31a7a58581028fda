"""Batch orchestration for Swedish parliament open data."""

__version__ = "0.3.0"
