"""
Session Module
==============

Filtered, navigable collection of the loaded session's results.
"""

from screenshot_debugger.session.collection import FilterOutcome, ResultCollection

__all__ = [
    "FilterOutcome",
    "ResultCollection",
]
