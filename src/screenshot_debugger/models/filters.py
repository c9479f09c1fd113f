"""
Filter Criteria
===============

Independent boolean predicates over a FrameResult's discrepancy flags.

Combination Rule:
    All active predicates combine with logical AND. A result passes when,
    for every predicate that is set, the corresponding condition holds:

        only_discrepancies  -> result.has_discrepancy
        ml_vs_post_only     -> flags.ml_vs_postprocessing
        post_vs_db_only     -> flags.postprocessing_vs_db
        missing_in_db_only  -> flags.missing_in_db
        extra_in_db_only    -> flags.extra_in_db

    With no predicate set every result passes.

Lifecycle:
    Created empty, replaced (never mutated in place) on every UI toggle,
    never persisted.
"""

from typing import Dict

from pydantic import BaseModel, Field

from screenshot_debugger.models.discrepancy import DiscrepancyCategory
from screenshot_debugger.models.result import FrameResult


class FilterCriteria(BaseModel):
    """Set of active filter toggles."""

    only_discrepancies: bool = Field(default=False, description="Only frames with any discrepancy")
    ml_vs_post_only: bool = Field(default=False, description="Require ML vs post mismatch")
    post_vs_db_only: bool = Field(default=False, description="Require post vs DB mismatch")
    missing_in_db_only: bool = Field(default=False, description="Require missing DB sessions")
    extra_in_db_only: bool = Field(default=False, description="Require extra DB sessions")

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def is_empty(self) -> bool:
        return not any(self.model_dump().values())

    @property
    def required_categories(self) -> Dict[DiscrepancyCategory, bool]:
        """Per-category toggles keyed by category."""
        return {
            DiscrepancyCategory.ML_VS_POST: self.ml_vs_post_only,
            DiscrepancyCategory.POST_VS_DB: self.post_vs_db_only,
            DiscrepancyCategory.MISSING_IN_DB: self.missing_in_db_only,
            DiscrepancyCategory.EXTRA_IN_DB: self.extra_in_db_only,
        }

    def matches(self, result: FrameResult) -> bool:
        """True if the result satisfies every active predicate."""
        if self.only_discrepancies and not result.has_discrepancy:
            return False

        flags = result.discrepancy_flags
        for category, required in self.required_categories.items():
            if required and not flags.is_set(category):
                return False

        return True
