"""
Tabular Export
==============

Flat one-row-per-frame export of a session, for spreadsheets.

Columns:
    Index, Timestamp, ML Games, Post-Processed Games, DB Sessions,
    ML vs Post, Post vs DB, Missing in DB, Extra in DB

Flags are rendered as the literal strings YES / NO. Game counts are the
effective counts the discrepancy flags are derived from (a failed stage
counts as 0).

Export always covers the full session, independent of the active filter.
"""

import csv
import io
import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from screenshot_debugger.models import FrameResult


logger = logging.getLogger(__name__)


CSV_HEADERS = (
    "Index",
    "Timestamp",
    "ML Games",
    "Post-Processed Games",
    "DB Sessions",
    "ML vs Post",
    "Post vs DB",
    "Missing in DB",
    "Extra in DB",
)


def _yes_no(flag: bool) -> str:
    return "YES" if flag else "NO"


@dataclass(frozen=True, slots=True)
class ExportRow:
    """One exported frame."""

    index: int
    timestamp: str
    ml_games: int
    post_processed_games: int
    db_sessions: int
    ml_vs_post: str
    post_vs_db: str
    missing_in_db: str
    extra_in_db: str

    def as_tuple(self) -> tuple:
        return (
            self.index,
            self.timestamp,
            self.ml_games,
            self.post_processed_games,
            self.db_sessions,
            self.ml_vs_post,
            self.post_vs_db,
            self.missing_in_db,
            self.extra_in_db,
        )


def export_row(result: FrameResult) -> ExportRow:
    comparison = result.comparison
    flags = result.discrepancy_flags
    timestamp = result.screenshot.timestamp if result.screenshot else None
    return ExportRow(
        index=result.index,
        timestamp=timestamp or "",
        ml_games=comparison.inference_count,
        post_processed_games=comparison.post_count,
        db_sessions=comparison.db_count,
        ml_vs_post=_yes_no(flags.ml_vs_postprocessing),
        post_vs_db=_yes_no(flags.postprocessing_vs_db),
        missing_in_db=_yes_no(flags.missing_in_db),
        extra_in_db=_yes_no(flags.extra_in_db),
    )


def export_rows(results: Iterable[FrameResult]) -> List[ExportRow]:
    """One ExportRow per result, in input order."""
    return [export_row(result) for result in results]


def to_csv(rows: Iterable[ExportRow]) -> str:
    """Render rows as CSV text with a header line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    count = 0
    for row in rows:
        writer.writerow(row.as_tuple())
        count += 1
    logger.debug(f"Exported {count} rows to CSV")
    return buffer.getvalue()


def export_filename(session_id: str, now: Optional[float] = None) -> str:
    """
    Download file name: ``analysis_export_<session_id>_<epoch_ms>.csv``.

    Args:
        session_id: Session identifier
        now: Epoch seconds, defaults to the current time
    """
    if now is None:
        now = time.time()
    return f"analysis_export_{session_id}_{int(now * 1000)}.csv"
