"""
Screenshot Debugger
===================

Diagnostic viewer for screenshot-driven game detection sessions.

This package loads a pre-computed analysis document, fetches the matching
screenshots from object storage and reconciles, per frame, the output of
three independently computed stages:

    ML inference  ->  post-processing (sliding window)  ->  database

Components:
    - models: Frame results, sessions, discrepancy records, filter criteria
    - ingest: Analysis document parser
    - analysis: List reconciliation, discrepancy classifier, status badges
    - session: Filtered result collection with navigation
    - observability: Aggregate statistics, CSV export, display formatting
    - storage: S3 screenshot store and image rendering
    - service: Per-client composition of the above
    - main: FastAPI application

Example:
    from screenshot_debugger.ingest import load_analysis_file
    from screenshot_debugger.analysis import DiscrepancyClassifier

    session = load_analysis_file("complete_analysis.json")
    classifier = DiscrepancyClassifier()
    for result in session.results:
        for discrepancy in classifier.classify(result):
            print(result.index, discrepancy.title)
"""

__version__ = "0.1.0"
__author__ = "Screenshot Debugger Project"

__all__ = [
    "__version__",
]
