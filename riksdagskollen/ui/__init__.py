"""User interaction helpers."""

from .progress import BatchProgressDisplay, ProgressActivity, RateColumn, error_table, summary_table

__all__ = [
    "BatchProgressDisplay",
    "ProgressActivity",
    "RateColumn",
    "error_table",
    "summary_table",
]
