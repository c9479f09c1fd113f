"""
Observability Module
====================

Derived views of a session for operators.

Components:
    - compute_statistics: Aggregate discrepancy counts
    - export_rows / to_csv: Flat per-frame export
    - format_*: Display formatters

Nothing here changes a session or its results.
"""

from screenshot_debugger.observability.statistics import SessionStatistics, compute_statistics
from screenshot_debugger.observability.export import (
    CSV_HEADERS,
    ExportRow,
    export_filename,
    export_row,
    export_rows,
    to_csv,
)
from screenshot_debugger.observability.formatting import (
    format_airtime,
    format_file_size,
    format_timestamp,
)

__all__ = [
    "SessionStatistics",
    "compute_statistics",
    "CSV_HEADERS",
    "ExportRow",
    "export_filename",
    "export_row",
    "export_rows",
    "to_csv",
    "format_airtime",
    "format_file_size",
    "format_timestamp",
]
