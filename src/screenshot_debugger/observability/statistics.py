"""
Aggregate Statistics
====================

Discrepancy counts over a sequence of FrameResults.

Statistics are recomputed from the results on every call and never
maintained incrementally, so replacing the loaded session can not leave
stale counts behind.

Invariants:
    - with_discrepancies == number of results with at least one flag set
    - Each per-category count == number of results with that flag set
    - The per-category counts need not sum to with_discrepancies, since
      one result may set several flags
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable

from screenshot_debugger.models import DiscrepancyCategory, FrameResult, StageStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionStatistics:
    """
    Discrepancy statistics for a result sequence.

    Attributes:
        total: Number of results
        with_discrepancies: Results with at least one discrepancy flag
        per_category: Results with each category's flag set
        flag_drift: Results whose reported flags disagree with derived ones
        inference_failures: Results whose inference stage failed
        post_processing_failures: Results whose post-processing stage failed
    """

    total: int
    with_discrepancies: int
    per_category: Dict[DiscrepancyCategory, int] = field(default_factory=dict)
    flag_drift: int = 0
    inference_failures: int = 0
    post_processing_failures: int = 0

    @property
    def discrepancy_rate(self) -> float:
        """Fraction of results with a discrepancy (0.0 for an empty sequence)."""
        if self.total == 0:
            return 0.0
        return self.with_discrepancies / self.total

    def to_dict(self) -> dict:
        """Export statistics as a JSON-friendly dict."""
        return {
            "total": self.total,
            "with_discrepancies": self.with_discrepancies,
            "per_category": {
                category.value: self.per_category.get(category, 0)
                for category in DiscrepancyCategory
            },
            "flag_drift": self.flag_drift,
            "inference_failures": self.inference_failures,
            "post_processing_failures": self.post_processing_failures,
        }


def compute_statistics(results: Iterable[FrameResult]) -> SessionStatistics:
    """
    Count discrepancies over a result sequence.

    Args:
        results: Any iterable of FrameResults (typically ``session.results``)

    Returns:
        Freshly computed SessionStatistics
    """
    total = 0
    with_discrepancies = 0
    per_category = {category: 0 for category in DiscrepancyCategory}
    flag_drift = 0
    inference_failures = 0
    post_processing_failures = 0

    for result in results:
        total += 1
        flags = result.discrepancy_flags
        if flags.has_any:
            with_discrepancies += 1
        for category in flags.categories:
            per_category[category] += 1
        if result.flag_drift:
            flag_drift += 1
        if result.inference_status is StageStatus.FAILED:
            inference_failures += 1
        if result.post_processing_status is StageStatus.FAILED:
            post_processing_failures += 1

    stats = SessionStatistics(
        total=total,
        with_discrepancies=with_discrepancies,
        per_category=per_category,
        flag_drift=flag_drift,
        inference_failures=inference_failures,
        post_processing_failures=post_processing_failures,
    )
    logger.debug(f"Statistics computed: {stats.to_dict()}")
    return stats
