"""
Discrepancy Models
==================

Categories, severities, flag sets and explanatory records for mismatches
between adjacent stages of the detection chain:

    inference  ->  post-processing  ->  database

Categories (fixed evaluation order):
    1. ML_VS_POST:    inference count/identities vs post-processed games
    2. POST_VS_DB:    post-processed count vs database session count
    3. MISSING_IN_DB: post-processed sessions absent from the database
    4. EXTRA_IN_DB:   database sessions absent from post-processing

Severity Rules:
    - MISSING_IN_DB is an error (lost write)
    - EXTRA_IN_DB is a warning (may be a session opened in an earlier frame)
    - POST_VS_DB is always an error
    - ML_VS_POST depends on the count direction (see classifier)
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field


class DiscrepancyCategory(str, Enum):
    """
    The four mismatch categories, in evaluation order.

    Values match the identifiers used by the exported analysis tooling.
    """

    ML_VS_POST = "ml-vs-post"
    POST_VS_DB = "post-vs-db"
    MISSING_IN_DB = "missing-in-db"
    EXTRA_IN_DB = "extra-in-db"

    @property
    def flag_name(self) -> str:
        """Name of the matching field on DiscrepancyFlags."""
        return _FLAG_NAMES[self]


_FLAG_NAMES = {
    DiscrepancyCategory.ML_VS_POST: "ml_vs_postprocessing",
    DiscrepancyCategory.POST_VS_DB: "postprocessing_vs_db",
    DiscrepancyCategory.MISSING_IN_DB: "missing_in_db",
    DiscrepancyCategory.EXTRA_IN_DB: "extra_in_db",
}


class Severity(str, Enum):
    """Severity of a discrepancy, ordered from least to most serious."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiscrepancyFlags(BaseModel):
    """
    One boolean per discrepancy category.

    Field names match the ``discrepancy_flags`` object of the analysis
    document.

    Attributes:
        ml_vs_postprocessing: Inference and post-processing disagree
        postprocessing_vs_db: Post-processed count differs from DB sessions
        missing_in_db: A post-processed session is missing from the DB
        extra_in_db: The DB holds a session post-processing did not emit
    """

    ml_vs_postprocessing: bool = Field(default=False)
    postprocessing_vs_db: bool = Field(default=False)
    missing_in_db: bool = Field(default=False)
    extra_in_db: bool = Field(default=False)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "DiscrepancyFlags":
        """Build flags from a wire mapping; absent or null entries are False."""
        raw = raw or {}
        return cls(**{
            name: bool(raw.get(name))
            for name in _FLAG_NAMES.values()
        })

    def is_set(self, category: DiscrepancyCategory) -> bool:
        return getattr(self, category.flag_name)

    @property
    def has_any(self) -> bool:
        """Logical OR of all four flags."""
        return (
            self.ml_vs_postprocessing
            or self.postprocessing_vs_db
            or self.missing_in_db
            or self.extra_in_db
        )

    @property
    def categories(self) -> List[DiscrepancyCategory]:
        """Categories whose flag is set, in evaluation order."""
        return [category for category in DiscrepancyCategory if self.is_set(category)]


class Discrepancy(BaseModel):
    """
    Explanation of one detected mismatch on one frame.

    Attributes:
        category: Which of the four categories this explains
        title: Short human-readable heading
        description: Sentence explaining the mismatch
        severity: info, warning or error
        evidence: Category-specific supporting data for operator debugging
    """

    category: DiscrepancyCategory = Field(..., description="Mismatch category")
    title: str = Field(..., description="Short heading")
    description: str = Field(..., description="Human-readable explanation")
    severity: Severity = Field(..., description="info, warning or error")
    evidence: Dict[str, Any] = Field(
        default_factory=dict,
        description="Supporting data (game lists, counts, sliding window)",
    )

    class Config:
        """Pydantic model configuration."""

        frozen = True
        json_schema_extra = {
            "example": {
                "category": "missing-in-db",
                "title": "Games Missing in Database",
                "description": "1 game(s) from post-processing are missing in the database.",
                "severity": "error",
                "evidence": {
                    "missing_games": [{"game_id": "fortnite", "game_session_id": "gs-42"}],
                    "expected_count": 2,
                    "actual_count": 1,
                },
            }
        }
