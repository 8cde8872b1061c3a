"""Persistence subsystem exports."""

from persistence.fs_store import FsDumpSource
from persistence.reference_store import ReferenceStore
from persistence.report_store import SqliteReportStore

__all__ = ["FsDumpSource", "ReferenceStore", "SqliteReportStore"]
