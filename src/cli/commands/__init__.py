"""CLI command groups."""

__all__ = [
    "config",
    "mismatch",
    "queue",
    "report",
    "scheduler",
]

from . import config, mismatch, queue, report, scheduler
