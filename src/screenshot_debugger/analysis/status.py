"""
Stage Status Badges
===================

One badge per comparison column (inference, post-processing, database).

Badge Precedence:
    Error     the stage recorded a failure
    Mismatch  a discrepancy flag touching this stage is set
    OK        the stage has data
    Empty     otherwise

Flags touching each stage:
    inference:        ml_vs_postprocessing
    post-processing:  ml_vs_postprocessing, postprocessing_vs_db
    database:         postprocessing_vs_db, missing_in_db, extra_in_db
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from screenshot_debugger.models import FrameResult, StageStatus


class BadgeKind(str, Enum):
    """Badge text shown above a comparison column."""

    ERROR = "Error"
    MISMATCH = "Mismatch"
    OK = "OK"
    EMPTY = "Empty"


_TONES = {
    BadgeKind.ERROR: "error",
    BadgeKind.MISMATCH: "warning",
    BadgeKind.OK: "success",
    BadgeKind.EMPTY: "",
}


@dataclass(frozen=True, slots=True)
class StatusBadge:
    """Badge kind plus the display tone used by the UI."""

    kind: BadgeKind

    @property
    def text(self) -> str:
        return self.kind.value

    @property
    def tone(self) -> str:
        return _TONES[self.kind]


def status_badge(has_data: bool, has_error: bool, has_discrepancy: bool) -> StatusBadge:
    """Resolve one badge from its three inputs."""
    if has_error:
        return StatusBadge(BadgeKind.ERROR)
    if has_discrepancy:
        return StatusBadge(BadgeKind.MISMATCH)
    if has_data:
        return StatusBadge(BadgeKind.OK)
    return StatusBadge(BadgeKind.EMPTY)


def stage_badges(result: FrameResult) -> Dict[str, StatusBadge]:
    """
    Badges for the three comparison columns of a frame.

    Returns:
        Mapping with keys "inference", "post_processing" and "database"
    """
    flags = result.discrepancy_flags
    return {
        "inference": status_badge(
            has_data=result.inference_status is StageStatus.OK,
            has_error=result.inference_status is StageStatus.FAILED,
            has_discrepancy=flags.ml_vs_postprocessing,
        ),
        "post_processing": status_badge(
            has_data=result.post_processing_status is StageStatus.OK,
            has_error=result.post_processing_status is StageStatus.FAILED,
            has_discrepancy=flags.ml_vs_postprocessing or flags.postprocessing_vs_db,
        ),
        "database": status_badge(
            has_data=result.database_status is StageStatus.OK,
            has_error=False,
            has_discrepancy=(
                flags.postprocessing_vs_db
                or flags.missing_in_db
                or flags.extra_in_db
            ),
        ),
    }
