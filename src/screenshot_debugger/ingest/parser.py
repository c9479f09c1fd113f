"""
Analysis Document Parser
========================

Maps a ``complete_analysis.json`` document onto the Session model.

Input Contract:
    {
        "session_id": "abc123",                 # required
        "platform": "twitch",                   # default "unknown"
        "channel": "somechannel",               # default "unknown"
        "date": "2024-05-01",                   # default "unknown"
        "start_time": "...", "end_time": "...", "analyzed_at": "...",
        "total": 120,                           # default len(results), also when 0
        "results": [                            # required
            {
                "index": 0,                     # required
                "screenshot": {"filename", "s3_key", "timestamp", "url", "cache_key"},
                "ml_inference": {
                    "games": [{"class", "confidence", "box"}],
                    "number_of_games", "latency_ms", "is_uniform_frame", "error"
                },
                "post_processed": {
                    "games": [{"game_id", "game_session_id"}],
                    "game_count", "event_type", "applied_threshold",
                    "sliding_window_state", "error"
                },
                "db_sessions": [{
                    "game_session_id", "game_identifier", "game_name",
                    "start_time", "end_time", "true_airtime", "matches_screenshot"
                }],
                "db_game_counts": [{"timestamp", "game_session_id", "game_identifier"}],
                "discrepancy_flags": {
                    "ml_vs_postprocessing", "postprocessing_vs_db",
                    "missing_in_db", "extra_in_db"
                }
            }
        ]
    }

Design Rules:
    - A missing key and an explicit null are both "absent"; defaults are
      resolved here, once, and never re-coerced downstream
    - A missing stage block stays None; an empty one becomes an empty model
    - Structural errors raise AnalysisParseError and nothing is installed
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from screenshot_debugger.models import (
    DbGameCount,
    DbSession,
    DetectedGame,
    DiscrepancyFlags,
    FrameResult,
    InferenceOutput,
    PostProcessedGame,
    PostProcessedOutput,
    Screenshot,
    Session,
    SessionMetadata,
)


logger = logging.getLogger(__name__)


class AnalysisParseError(ValueError):
    """Raised when an analysis document is structurally invalid."""
    pass


_MISSING = object()


def _get(raw: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Return raw[key], treating a missing key and an explicit null alike."""
    value = raw.get(key, _MISSING)
    if value is _MISSING or value is None:
        return default
    return value


def _list(raw: Mapping[str, Any], key: str) -> List[Any]:
    value = _get(raw, key, [])
    return value if isinstance(value, list) else []


def _block(raw: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
    """Return a nested object, None when absent."""
    value = _get(raw, key)
    if value is not None and not isinstance(value, Mapping):
        raise AnalysisParseError(f"Field {key!r} must be an object, got {type(value).__name__}")
    return value


def _records(raw: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    """Return a list of objects, empty when absent."""
    records = _list(raw, key)
    for record in records:
        if not isinstance(record, Mapping):
            raise AnalysisParseError(f"Entries of {key!r} must be objects, got {type(record).__name__}")
    return records


# =============================================================================
# Public API
# =============================================================================

def load_analysis_file(path: Union[str, Path]) -> Session:
    """
    Read and parse an analysis document from disk.

    Raises:
        AnalysisParseError: File is not JSON or violates the contract
        OSError: File cannot be read
    """
    text = Path(path).read_text(encoding="utf-8")
    session = parse_analysis_json(text)
    logger.info(f"Loaded analysis file {path}: session={session.session_id}, results={len(session)}")
    return session


def parse_analysis_json(text: Union[str, bytes]) -> Session:
    """Parse an analysis document from its JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisParseError(f"JSON parsing error: {e}") from e
    return parse_analysis(data)


def parse_analysis(data: Any) -> Session:
    """
    Build a Session from a decoded analysis document.

    Args:
        data: Decoded JSON document

    Returns:
        Fully constructed, immutable Session

    Raises:
        AnalysisParseError: Required fields missing or values invalid
    """
    if not isinstance(data, Mapping):
        raise AnalysisParseError("Analysis document must be a JSON object")
    if not _get(data, "session_id"):
        raise AnalysisParseError("Missing required field: session_id")
    results_raw = _get(data, "results")
    if not isinstance(results_raw, list):
        raise AnalysisParseError("Missing or invalid results array")

    try:
        results = [build_frame_result(raw, position) for position, raw in enumerate(results_raw)]
        metadata = SessionMetadata(
            session_id=str(data["session_id"]),
            platform=_get(data, "platform", "unknown"),
            channel=_get(data, "channel", "unknown"),
            date=_get(data, "date", "unknown"),
            start_time=_get(data, "start_time"),
            end_time=_get(data, "end_time"),
            analyzed_at=_get(data, "analyzed_at"),
            total=_get(data, "total") or len(results),
        )
        session = Session(metadata=metadata, results=tuple(results))
    except ValidationError as e:
        raise AnalysisParseError(f"Invalid analysis document: {e}") from e

    drifted = [result.index for result in session.results if result.flag_drift]
    if drifted:
        logger.warning(
            f"Reported discrepancy flags disagree with derived flags on "
            f"{len(drifted)} result(s), first indexes: {drifted[:10]}"
        )

    return session


# =============================================================================
# Per-result builders
# =============================================================================

def build_frame_result(raw: Any, position: int = 0) -> FrameResult:
    """
    Assemble one FrameResult from its wire mapping.

    Only ``index`` is required; every other block may be absent.
    """
    if not isinstance(raw, Mapping):
        raise AnalysisParseError(f"Result at position {position} is not an object")
    index = _get(raw, "index")
    if index is None:
        raise AnalysisParseError(f"Result at position {position} is missing required field: index")

    flags_raw = _get(raw, "discrepancy_flags")

    return FrameResult(
        index=index,
        screenshot=build_screenshot(_block(raw, "screenshot")),
        inference=build_inference(_block(raw, "ml_inference")),
        post_processed=build_post_processed(_block(raw, "post_processed")),
        db_sessions=tuple(build_db_session(s) for s in _records(raw, "db_sessions")),
        db_game_counts=tuple(build_db_game_count(c) for c in _records(raw, "db_game_counts")),
        reported_flags=DiscrepancyFlags.from_mapping(flags_raw) if isinstance(flags_raw, Mapping) else None,
    )


def build_screenshot(raw: Optional[Mapping[str, Any]]) -> Optional[Screenshot]:
    if raw is None:
        return None
    return Screenshot(
        filename=_get(raw, "filename"),
        storage_key=_get(raw, "s3_key"),
        timestamp=_get(raw, "timestamp"),
        url=_get(raw, "url"),
        cache_key=_get(raw, "cache_key"),
    )


def build_inference(raw: Optional[Mapping[str, Any]]) -> Optional[InferenceOutput]:
    if raw is None:
        return None
    return InferenceOutput(
        detected_games=tuple(_build_detected_game(g) for g in _records(raw, "games")),
        game_count=_get(raw, "number_of_games", 0),
        latency_ms=_get(raw, "latency_ms", 0.0),
        is_uniform_frame=_get(raw, "is_uniform_frame", False),
        error=_get(raw, "error") or None,
    )


def _build_detected_game(raw: Mapping[str, Any]) -> DetectedGame:
    box = _get(raw, "box")
    if box is not None and (not isinstance(box, list) or len(box) != 4):
        logger.warning(f"Ignoring malformed bounding box for {_get(raw, 'class')!r}: {box!r}")
        box = None
    confidence = _get(raw, "confidence", 0.0)
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        clamped = min(max(float(confidence), 0.0), 1.0)
        if clamped != confidence:
            logger.warning(f"Clamping confidence for {_get(raw, 'class')!r}: {confidence!r} -> {clamped}")
        confidence = clamped
    return DetectedGame(
        label=_get(raw, "class", ""),
        confidence=confidence,
        bounding_box=tuple(box) if box is not None else None,
    )


def build_post_processed(raw: Optional[Mapping[str, Any]]) -> Optional[PostProcessedOutput]:
    if raw is None:
        return None
    return PostProcessedOutput(
        games=tuple(
            PostProcessedGame(
                game_id=_get(g, "game_id", ""),
                game_session_id=_get(g, "game_session_id", ""),
            )
            for g in _records(raw, "games")
        ),
        game_count=_get(raw, "game_count", 0),
        event_type=_get(raw, "event_type", "UNKNOWN"),
        threshold_applied=_get(raw, "applied_threshold", False),
        sliding_window_state=tuple(str(item) for item in _list(raw, "sliding_window_state")),
        error=_get(raw, "error") or None,
    )


def build_db_session(raw: Mapping[str, Any]) -> DbSession:
    identifier = _get(raw, "game_identifier", "")
    return DbSession(
        game_session_id=_get(raw, "game_session_id", ""),
        game_identifier=identifier,
        game_name=_get(raw, "game_name", identifier),
        start_time=_get(raw, "start_time"),
        end_time=_get(raw, "end_time"),
        true_airtime_seconds=_get(raw, "true_airtime", 0.0),
        matches_screenshot=_get(raw, "matches_screenshot", False),
    )


def build_db_game_count(raw: Mapping[str, Any]) -> DbGameCount:
    return DbGameCount(
        timestamp=_get(raw, "timestamp"),
        game_session_id=_get(raw, "game_session_id"),
        game_identifier=_get(raw, "game_identifier"),
    )
