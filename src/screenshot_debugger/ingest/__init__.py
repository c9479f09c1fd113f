"""
Ingest Module
=============

Loading of pre-computed analysis documents.

Components:
    - parse_analysis: Decoded document -> Session
    - parse_analysis_json: JSON text -> Session
    - load_analysis_file: Path -> Session
    - AnalysisParseError: Structural input error (fatal for the load)
"""

from screenshot_debugger.ingest.parser import (
    AnalysisParseError,
    build_frame_result,
    load_analysis_file,
    parse_analysis,
    parse_analysis_json,
)


__all__ = [
    "AnalysisParseError",
    "build_frame_result",
    "load_analysis_file",
    "parse_analysis",
    "parse_analysis_json",
]
