"""
Session Models
==============

A Session is the in-memory form of one loaded analysis document: metadata
plus the ordered sequence of FrameResults it exclusively owns.

Lifecycle:
    Created once per loaded document and never mutated afterwards. Loading
    another document replaces the whole Session; nothing is merged.
"""

from functools import cached_property
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from screenshot_debugger.models.result import FrameResult


class SessionMetadata(BaseModel):
    """
    Descriptive metadata of an analyzed streaming session.

    Attributes:
        session_id: Identifier of the analyzed session (required)
        platform: Streaming platform, "unknown" when absent
        channel: Channel name, "unknown" when absent
        date: Session date, "unknown" when absent
        start_time: Session start (ISO 8601)
        end_time: Session end (ISO 8601)
        analyzed_at: When the analysis document was produced
        total: Declared number of results (defaults to the results length)
    """

    session_id: str = Field(..., min_length=1)
    platform: str = Field(default="unknown")
    channel: str = Field(default="unknown")
    date: str = Field(default="unknown")
    start_time: Optional[str] = Field(default=None)
    end_time: Optional[str] = Field(default=None)
    analyzed_at: Optional[str] = Field(default=None)
    total: int = Field(default=0, ge=0)

    class Config:
        """Pydantic model configuration."""

        frozen = True


class Session(BaseModel):
    """
    Metadata plus the ordered FrameResults of one analysis document.

    Result indexes are unique; order is the document order.
    """

    metadata: SessionMetadata
    results: Tuple[FrameResult, ...] = Field(default=())

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @model_validator(mode="after")
    def _check_unique_indexes(self) -> "Session":
        seen = set()
        for result in self.results:
            if result.index in seen:
                raise ValueError(f"Duplicate result index: {result.index}")
            seen.add(result.index)
        return self

    def __len__(self) -> int:
        return len(self.results)

    @property
    def session_id(self) -> str:
        return self.metadata.session_id

    def by_index(self, index: int) -> Optional[FrameResult]:
        """Find a result by its external index, or None."""
        return self.index_map.get(index)

    @cached_property
    def index_map(self) -> Dict[int, FrameResult]:
        """External index to result lookup table."""
        return {result.index: result for result in self.results}
