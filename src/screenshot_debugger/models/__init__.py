"""
Data Models
===========

Pydantic models for the screenshot debugger.

This module re-exports all data models for convenient access.

Models:
    Result:
        - FrameResult: One analyzed frame (three stage outputs + flags)
        - Screenshot, InferenceOutput, DetectedGame: Capture and ML stage
        - PostProcessedOutput, PostProcessedGame: Sliding-window stage
        - DbSession, DbGameCount: Database stage
        - StageStatus, StageComparison: Derived stage views

    Session:
        - SessionMetadata: Analysis document metadata
        - Session: Metadata + ordered FrameResults

    Discrepancy:
        - DiscrepancyCategory: The four mismatch categories
        - Severity: info, warning, error
        - DiscrepancyFlags: One boolean per category
        - Discrepancy: Explanatory record for one mismatch

    Filters:
        - FilterCriteria: AND-combined filter toggles
"""

from screenshot_debugger.models.discrepancy import (
    Discrepancy,
    DiscrepancyCategory,
    DiscrepancyFlags,
    Severity,
)
from screenshot_debugger.models.result import (
    DbGameCount,
    DbSession,
    DetectedGame,
    FrameResult,
    InferenceOutput,
    PostProcessedGame,
    PostProcessedOutput,
    Screenshot,
    StageComparison,
    StageStatus,
)
from screenshot_debugger.models.session import Session, SessionMetadata
from screenshot_debugger.models.filters import FilterCriteria

__all__ = [
    # Discrepancy
    "Discrepancy",
    "DiscrepancyCategory",
    "DiscrepancyFlags",
    "Severity",
    # Result
    "Screenshot",
    "DetectedGame",
    "InferenceOutput",
    "PostProcessedGame",
    "PostProcessedOutput",
    "DbSession",
    "DbGameCount",
    "StageStatus",
    "StageComparison",
    "FrameResult",
    # Session
    "SessionMetadata",
    "Session",
    # Filters
    "FilterCriteria",
]
