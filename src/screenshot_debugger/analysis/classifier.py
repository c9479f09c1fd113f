"""
Discrepancy Classifier
======================

Explains, per frame, why adjacent stages of the detection chain disagree.

    inference  ->  post-processing  ->  database

Classification Rules (evaluated independently, in this order):
    1. ML_VS_POST (flag ml_vs_postprocessing)
        inference > post:  INFO    normal sliding-window buildup
        inference < post:  ERROR   post-processing invented games
        equal counts:      WARNING same count, different game ids
    2. POST_VS_DB (flag postprocessing_vs_db)
        always ERROR       confirmed games must be persisted
    3. MISSING_IN_DB (flag missing_in_db)
        always ERROR       post-processed sessions absent from the DB
    4. EXTRA_IN_DB (flag extra_in_db)
        always WARNING     DB sessions absent from post-processing; may be
                           a session opened in an earlier frame

Design Rules:
    - Stateless: one instance may classify any number of frames
    - Reads flags and evidence from the same FrameResult.comparison, so an
      explanation never contradicts its flag
    - A failed stage counts as 0 games; evidence carries the stage status
      so "zero detected" and "stage failed" stay distinguishable
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from screenshot_debugger.models import (
    Discrepancy,
    DiscrepancyCategory,
    FrameResult,
    Severity,
    StageStatus,
)


logger = logging.getLogger(__name__)


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
}


class DiscrepancyClassifier:
    """
    Produces ordered Discrepancy records for a FrameResult.

    Example:
        classifier = DiscrepancyClassifier()
        for discrepancy in classifier.classify(result):
            print(discrepancy.severity.value, discrepancy.title)
    """

    def __init__(self) -> None:
        self._analyzers: Dict[DiscrepancyCategory, Callable[[FrameResult], Discrepancy]] = {
            DiscrepancyCategory.ML_VS_POST: self.analyze_ml_vs_post,
            DiscrepancyCategory.POST_VS_DB: self.analyze_post_vs_db,
            DiscrepancyCategory.MISSING_IN_DB: self.analyze_missing_in_db,
            DiscrepancyCategory.EXTRA_IN_DB: self.analyze_extra_in_db,
        }

    def classify(self, result: FrameResult) -> List[Discrepancy]:
        """
        Explain every mismatch flagged on a frame.

        Args:
            result: Frame to classify

        Returns:
            One Discrepancy per set flag, in category order; empty when
            the frame has no discrepancy
        """
        flags = result.discrepancy_flags
        discrepancies = [
            self._analyzers[category](result)
            for category in DiscrepancyCategory
            if flags.is_set(category)
        ]
        if discrepancies:
            logger.debug(
                f"Result {result.index}: "
                f"{[d.category.value for d in discrepancies]}"
            )
        return discrepancies

    # -------------------------------------------------------------------------
    # Category analyzers
    # -------------------------------------------------------------------------

    def analyze_ml_vs_post(self, result: FrameResult) -> Discrepancy:
        """Inference vs post-processing: severity follows the count direction."""
        comparison = result.comparison
        ml_games = comparison.inference_count
        post_games = comparison.post_count

        if ml_games > post_games:
            severity = Severity.INFO
            description = (
                f"ML detected {ml_games} game(s), but post-processing filtered down to "
                f"{post_games}. This is normal for sliding window logic building up threshold."
            )
        elif ml_games < post_games:
            severity = Severity.ERROR
            description = (
                f"ML detected {ml_games} game(s), but post-processing returned "
                f"{post_games}. This should not happen!"
            )
        else:
            severity = Severity.WARNING
            description = (
                f"ML and post-processing both show {ml_games} game(s), "
                f"but with different game IDs."
            )

        return Discrepancy(
            category=DiscrepancyCategory.ML_VS_POST,
            title="ML API vs Post-Processing Mismatch",
            description=description + _stage_failure_note(result),
            severity=severity,
            evidence={
                "ml_games": list(result.detected_games),
                "post_games": list(result.post_processed_games),
                "sliding_window_state": list(result.sliding_window_state),
                "only_in_ml": sorted({game.label for game in comparison.inference_vs_post.only_in_first}),
                "only_in_post": sorted({game.game_id for game in comparison.inference_vs_post.only_in_second}),
                "inference_status": result.inference_status.value,
                "post_processing_status": result.post_processing_status.value,
            },
        )

    def analyze_post_vs_db(self, result: FrameResult) -> Discrepancy:
        """Post-processing vs database count mismatch: always an error."""
        comparison = result.comparison
        description = (
            f"Post-processing shows {comparison.post_count} game(s), but database has "
            f"{comparison.db_count} session(s). This indicates a DB write issue."
        )

        return Discrepancy(
            category=DiscrepancyCategory.POST_VS_DB,
            title="Post-Processing vs Database Mismatch",
            description=description + _stage_failure_note(result, include_inference=False),
            severity=Severity.ERROR,
            evidence={
                "post_games": list(result.post_processed_games),
                "db_sessions": list(result.db_sessions),
                "post_processing_status": result.post_processing_status.value,
            },
        )

    def analyze_missing_in_db(self, result: FrameResult) -> Discrepancy:
        """Post-processed sessions with no matching DB row: lost writes."""
        missing = list(result.comparison.post_vs_db.only_in_first)

        return Discrepancy(
            category=DiscrepancyCategory.MISSING_IN_DB,
            title="Games Missing in Database",
            description=f"{len(missing)} game(s) from post-processing are missing in the database.",
            severity=Severity.ERROR,
            evidence={
                "missing_games": missing,
                "expected_count": len(result.post_processed_games),
                "actual_count": len(result.db_sessions),
            },
        )

    def analyze_extra_in_db(self, result: FrameResult) -> Discrepancy:
        """DB rows with no matching post-processed game."""
        extra = list(result.comparison.post_vs_db.only_in_second)

        return Discrepancy(
            category=DiscrepancyCategory.EXTRA_IN_DB,
            title="Extra Sessions in Database",
            description=f"{len(extra)} session(s) in database that were not in post-processing output.",
            severity=Severity.WARNING,
            evidence={
                "extra_sessions": extra,
            },
        )


# =============================================================================
# Helpers
# =============================================================================

def highest_severity(discrepancies: Iterable[Discrepancy]) -> Optional[Severity]:
    """Most serious severity among the records, None when there are none."""
    worst: Optional[Severity] = None
    for discrepancy in discrepancies:
        if worst is None or _SEVERITY_RANK[discrepancy.severity] > _SEVERITY_RANK[worst]:
            worst = discrepancy.severity
    return worst


def _stage_failure_note(result: FrameResult, include_inference: bool = True) -> str:
    notes = []
    if include_inference and result.inference_status is StageStatus.FAILED:
        notes.append(f"ML inference failed ({result.inference.error})")
    if result.post_processing_status is StageStatus.FAILED:
        notes.append(f"post-processing failed ({result.post_processed.error})")
    if not notes:
        return ""
    return " Note: " + "; ".join(notes) + "; counted as 0 game(s)."
