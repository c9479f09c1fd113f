"""
Frame Result Models
===================

Canonical in-memory representation of one analyzed screenshot instant.

A FrameResult aggregates the outputs of three independently computed
stages for the same moment:

    inference        - candidate games detected by the ML model
    post_processed   - games confirmed by the sliding-window stage
    db_sessions      - game sessions persisted in the database

Absence Semantics:
    - ``inference is None``: no inference block at all (stage ABSENT)
    - ``inference.error`` set: the stage ran and failed (stage FAILED)
    - ``inference.game_count == 0``: the stage ran and saw nothing (EMPTY)
    The same holds for ``post_processed``. An empty ``db_sessions`` is
    EMPTY; the database stage has no failure state.

Derived Fields:
    ``comparison``, ``discrepancy_flags`` and ``has_discrepancy`` are pure
    functions of the other fields. Models are frozen, so they are computed
    once per instance and can never drift from the data they describe.
    Flags carried by the input document are kept in ``reported_flags`` for
    display; ``flag_drift`` lists the categories where they disagree.
"""

from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, computed_field

from screenshot_debugger.models.discrepancy import DiscrepancyCategory, DiscrepancyFlags
from screenshot_debugger.reconcile import Reconciliation, reconcile_lists


class StageStatus(str, Enum):
    """
    Availability of one stage's output on a frame.

    Attributes:
        ABSENT: No output block was recorded
        FAILED: The stage recorded an error instead of data
        EMPTY: The stage ran and produced zero games
        OK: The stage produced at least one game
    """

    ABSENT = "absent"
    FAILED = "failed"
    EMPTY = "empty"
    OK = "ok"


class Screenshot(BaseModel):
    """Screenshot captured for a frame and where to find it in storage."""

    filename: Optional[str] = Field(default=None, description="Original file name")
    storage_key: Optional[str] = Field(default=None, description="Object storage key")
    timestamp: Optional[str] = Field(default=None, description="Capture time (ISO 8601)")
    url: Optional[str] = Field(default=None, description="Pre-resolved URL, if any")
    cache_key: Optional[str] = Field(default=None, description="Upstream cache key")

    class Config:
        """Pydantic model configuration."""

        frozen = True


class DetectedGame(BaseModel):
    """One candidate game detected by the inference stage."""

    label: str = Field(..., description="Detected game identifier (model class)")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Detection confidence")
    bounding_box: Optional[Tuple[float, float, float, float]] = Field(
        default=None,
        description="x1, y1, x2, y2 in image pixels",
    )

    class Config:
        """Pydantic model configuration."""

        frozen = True


class InferenceOutput(BaseModel):
    """
    Output of the ML inference stage for one screenshot.

    Attributes:
        detected_games: Candidate games in detection order
        game_count: Number of games reported by the stage
        latency_ms: Inference latency in milliseconds
        is_uniform_frame: Frame was a uniform colour (e.g. a blank screen)
        error: Failure message; when set, the game data is meaningless
    """

    detected_games: Tuple[DetectedGame, ...] = Field(default=())
    game_count: int = Field(default=0, ge=0)
    latency_ms: float = Field(default=0.0, ge=0.0)
    is_uniform_frame: bool = Field(default=False)
    error: Optional[str] = Field(default=None)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def failed(self) -> bool:
        return self.error is not None


class PostProcessedGame(BaseModel):
    """A game confirmed by the post-processing stage."""

    game_id: str = Field(..., description="Game identifier")
    game_session_id: str = Field(..., description="Session the game was attributed to")

    class Config:
        """Pydantic model configuration."""

        frozen = True


class PostProcessedOutput(BaseModel):
    """
    Output of the sliding-window post-processing stage.

    Attributes:
        games: Confirmed games in emission order
        game_count: Number of games reported by the stage
        event_type: Event emitted for this frame (e.g. GAME_STARTED)
        threshold_applied: Confirmation threshold was applied on this frame
        sliding_window_state: Recently seen candidate identifiers, oldest first
        error: Failure message; when set, the game data is meaningless
    """

    games: Tuple[PostProcessedGame, ...] = Field(default=())
    game_count: int = Field(default=0, ge=0)
    event_type: str = Field(default="UNKNOWN")
    threshold_applied: bool = Field(default=False)
    sliding_window_state: Tuple[str, ...] = Field(default=())
    error: Optional[str] = Field(default=None)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def failed(self) -> bool:
        return self.error is not None


class DbSession(BaseModel):
    """A game session row read back from the database."""

    game_session_id: str = Field(..., description="Primary key of the session")
    game_identifier: str = Field(default="", description="Game identifier")
    game_name: str = Field(default="", description="Display name")
    start_time: Optional[str] = Field(default=None)
    end_time: Optional[str] = Field(default=None)
    true_airtime_seconds: float = Field(default=0.0, ge=0.0)
    matches_screenshot: bool = Field(default=False)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def display_name(self) -> str:
        return self.game_name or self.game_identifier or self.game_session_id


class DbGameCount(BaseModel):
    """Auxiliary game-count row; displayed, never classified."""

    timestamp: Optional[str] = Field(default=None)
    game_session_id: Optional[str] = Field(default=None)
    game_identifier: Optional[str] = Field(default=None)

    class Config:
        """Pydantic model configuration."""

        frozen = True


@dataclass(frozen=True, slots=True)
class StageComparison:
    """
    Count and identity comparison between adjacent stages of one frame.

    This is the single computation both the discrepancy flags and the
    classifier's evidence are read from.

    Attributes:
        inference_count: Inference game count (0 when absent or failed)
        post_count: Post-processed game count (0 when absent or failed)
        db_count: Number of database sessions
        inference_vs_post: Detected labels vs post-processed game ids
        post_vs_db: Post-processed games vs DB sessions by game_session_id
    """

    inference_count: int
    post_count: int
    db_count: int
    inference_vs_post: Reconciliation
    post_vs_db: Reconciliation

    @property
    def ml_vs_postprocessing(self) -> bool:
        return self.inference_count != self.post_count or not self.inference_vs_post.matched

    @property
    def postprocessing_vs_db(self) -> bool:
        return self.post_count != self.db_count

    @property
    def missing_in_db(self) -> bool:
        return bool(self.post_vs_db.only_in_first)

    @property
    def extra_in_db(self) -> bool:
        return bool(self.post_vs_db.only_in_second)


class FrameResult(BaseModel):
    """
    One analyzed frame: three stage outputs plus derived discrepancy flags.

    Attributes:
        index: Stable external identifier, unique within a session
        screenshot: Captured screenshot, None when nothing was captured
        inference: Inference stage output, None when absent
        post_processed: Post-processing output, None when absent
        db_sessions: Database sessions read for this frame
        db_game_counts: Auxiliary DB game-count rows (display only)
        reported_flags: Flags computed by the upstream pipeline, if supplied
    """

    index: int = Field(..., description="Stable external identifier")
    screenshot: Optional[Screenshot] = Field(default=None)
    inference: Optional[InferenceOutput] = Field(default=None)
    post_processed: Optional[PostProcessedOutput] = Field(default=None)
    db_sessions: Tuple[DbSession, ...] = Field(default=())
    db_game_counts: Tuple[DbGameCount, ...] = Field(default=())
    reported_flags: Optional[DiscrepancyFlags] = Field(default=None)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    # -------------------------------------------------------------------------
    # Stage status
    # -------------------------------------------------------------------------

    @property
    def inference_status(self) -> StageStatus:
        if self.inference is None:
            return StageStatus.ABSENT
        if self.inference.failed:
            return StageStatus.FAILED
        return StageStatus.OK if self.inference.game_count > 0 else StageStatus.EMPTY

    @property
    def post_processing_status(self) -> StageStatus:
        if self.post_processed is None:
            return StageStatus.ABSENT
        if self.post_processed.failed:
            return StageStatus.FAILED
        return StageStatus.OK if self.post_processed.game_count > 0 else StageStatus.EMPTY

    @property
    def database_status(self) -> StageStatus:
        return StageStatus.OK if self.db_sessions else StageStatus.EMPTY

    # -------------------------------------------------------------------------
    # Usable stage data (failed stages contribute nothing)
    # -------------------------------------------------------------------------

    @property
    def detected_games(self) -> Tuple[DetectedGame, ...]:
        if self.inference is None or self.inference.failed:
            return ()
        return self.inference.detected_games

    @property
    def post_processed_games(self) -> Tuple[PostProcessedGame, ...]:
        if self.post_processed is None or self.post_processed.failed:
            return ()
        return self.post_processed.games

    @property
    def sliding_window_state(self) -> Tuple[str, ...]:
        if self.post_processed is None:
            return ()
        return self.post_processed.sliding_window_state

    # -------------------------------------------------------------------------
    # Derived comparison and flags
    # -------------------------------------------------------------------------

    @cached_property
    def comparison(self) -> StageComparison:
        """Count and identity comparison between adjacent stages."""
        detected = self.detected_games
        post_games = self.post_processed_games
        return StageComparison(
            inference_count=self.inference.game_count if _usable(self.inference) else 0,
            post_count=self.post_processed.game_count if _usable(self.post_processed) else 0,
            db_count=len(self.db_sessions),
            inference_vs_post=reconcile_lists(
                detected,
                post_games,
                first_key=lambda game: game.label,
                second_key=lambda game: game.game_id,
            ),
            post_vs_db=reconcile_lists(
                post_games,
                self.db_sessions,
                first_key=lambda game: game.game_session_id,
                second_key=lambda session: session.game_session_id,
            ),
        )

    @computed_field  # type: ignore[misc]
    @property
    def discrepancy_flags(self) -> DiscrepancyFlags:
        comparison = self.comparison
        return DiscrepancyFlags(
            ml_vs_postprocessing=comparison.ml_vs_postprocessing,
            postprocessing_vs_db=comparison.postprocessing_vs_db,
            missing_in_db=comparison.missing_in_db,
            extra_in_db=comparison.extra_in_db,
        )

    @computed_field  # type: ignore[misc]
    @property
    def has_discrepancy(self) -> bool:
        return self.discrepancy_flags.has_any

    @property
    def flag_drift(self) -> List[DiscrepancyCategory]:
        """Categories where the upstream flags disagree with the derived ones."""
        if self.reported_flags is None:
            return []
        derived = self.discrepancy_flags
        return [
            category for category in DiscrepancyCategory
            if self.reported_flags.is_set(category) != derived.is_set(category)
        ]


def _usable(stage) -> bool:
    return stage is not None and not stage.failed
