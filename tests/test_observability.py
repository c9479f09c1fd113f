"""
Observability Tests
===================

Statistics, CSV export and display formatters.
"""

import csv
import io

from screenshot_debugger.ingest import build_frame_result, parse_analysis
from screenshot_debugger.models import DiscrepancyCategory
from screenshot_debugger.observability import (
    CSV_HEADERS,
    compute_statistics,
    export_filename,
    export_rows,
    format_airtime,
    format_file_size,
    format_timestamp,
    to_csv,
)

from conftest import make_result


class TestStatistics:
    """Tests for compute_statistics."""

    def test_reference_session(self, session):
        stats = compute_statistics(session.results)

        assert stats.total == 3
        assert stats.with_discrepancies == 2
        assert stats.per_category[DiscrepancyCategory.ML_VS_POST] == 1
        assert stats.per_category[DiscrepancyCategory.POST_VS_DB] == 1
        assert stats.per_category[DiscrepancyCategory.MISSING_IN_DB] == 1
        assert stats.per_category[DiscrepancyCategory.EXTRA_IN_DB] == 0
        assert stats.flag_drift == 0

    def test_categories_can_exceed_total_with_discrepancies(self, session):
        """One result may set several flags."""
        stats = compute_statistics(session.results)
        assert sum(stats.per_category.values()) > stats.with_discrepancies

    def test_empty(self):
        stats = compute_statistics([])

        assert stats.total == 0
        assert stats.discrepancy_rate == 0.0
        assert all(count == 0 for count in stats.per_category.values())

    def test_failures_counted(self):
        raw = make_result(0, ml=("a",), post=(("a", "gs-1"),), db=(("gs-1", "a"),))
        raw["ml_inference"]["error"] = "timeout"
        raw["post_processed"]["error"] = "crashed"

        stats = compute_statistics([build_frame_result(raw)])

        assert stats.inference_failures == 1
        assert stats.post_processing_failures == 1

    def test_to_dict(self, session):
        data = compute_statistics(session.results).to_dict()

        assert data["total"] == 3
        assert data["per_category"] == {
            "ml-vs-post": 1,
            "post-vs-db": 1,
            "missing-in-db": 1,
            "extra-in-db": 0,
        }

    def test_recomputed_after_reload(self, document_factory):
        """Statistics follow the session they are computed from."""
        document = document_factory()
        document["results"] = document["results"][2:]

        stats = compute_statistics(parse_analysis(document).results)

        assert stats.total == 1
        assert stats.with_discrepancies == 0


class TestExport:
    """Tests for the CSV export."""

    def test_headers_and_rows(self, session):
        text = to_csv(export_rows(session.results))
        rows = list(csv.reader(io.StringIO(text)))

        assert tuple(rows[0]) == CSV_HEADERS
        assert rows[1] == ["1", "2024-05-01T12:00:00Z", "2", "1", "1", "YES", "NO", "NO", "NO"]
        assert rows[2] == ["2", "2024-05-01T12:00:00Z", "2", "2", "1", "NO", "YES", "YES", "NO"]
        assert rows[3][5:] == ["NO", "NO", "NO", "NO"]
        assert len(rows) == 4

    def test_missing_timestamp_is_blank(self):
        row = export_rows([build_frame_result({"index": 5})])[0]

        assert row.timestamp == ""
        assert row.ml_games == 0

    def test_failed_stage_exported_as_zero(self):
        raw = make_result(0, ml=("a", "b"))
        raw["ml_inference"]["error"] = "timeout"

        row = export_rows([build_frame_result(raw)])[0]

        assert row.ml_games == 0

    def test_filename(self):
        assert export_filename("abc123", now=1714564800.5) == "analysis_export_abc123_1714564800500.csv"


class TestFormatting:
    """Tests for display formatters."""

    def test_airtime(self):
        assert format_airtime(3723) == "1h 2m 3s"
        assert format_airtime(60) == "1m"
        assert format_airtime(3600) == "1h"
        assert format_airtime(59.9) == "59s"
        assert format_airtime(0) == "0s"
        assert format_airtime(None) == "0s"

    def test_timestamp(self):
        assert format_timestamp("2024-05-01T12:00:00Z") == "2024-05-01 12:00:00"
        assert format_timestamp(None) == "N/A"
        assert format_timestamp("yesterday") == "yesterday"

    def test_file_size(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(2048) == "2.00 KB"
        assert format_file_size(3 * 1024 * 1024) == "3.00 MB"
