"""
Analysis Module
===============

Reconciliation and classification of per-frame stage mismatches.

Components:
    - reconcile_lists: Set-difference comparison by identity
    - DiscrepancyClassifier: Explains each flagged mismatch
    - stage_badges: Error/Mismatch/OK/Empty badge per stage column
"""

from screenshot_debugger.reconcile import Reconciliation, reconcile_lists
from screenshot_debugger.analysis.classifier import DiscrepancyClassifier, highest_severity
from screenshot_debugger.analysis.status import BadgeKind, StatusBadge, stage_badges, status_badge

__all__ = [
    "Reconciliation",
    "reconcile_lists",
    "DiscrepancyClassifier",
    "highest_severity",
    "BadgeKind",
    "StatusBadge",
    "stage_badges",
    "status_badge",
]
