"""
Classifier Tests
================

Discrepancy classification and stage status badges.
"""

import pytest

from screenshot_debugger.analysis import (
    BadgeKind,
    DiscrepancyClassifier,
    highest_severity,
    stage_badges,
)
from screenshot_debugger.ingest import build_frame_result
from screenshot_debugger.models import DiscrepancyCategory, Severity

from conftest import make_result


@pytest.fixture
def classifier():
    return DiscrepancyClassifier()


class TestEndToEnd:
    """The three-result reference session."""

    def test_result_1_ml_vs_post_info(self, session, classifier):
        discrepancies = classifier.classify(session.by_index(1))

        assert [d.category for d in discrepancies] == [DiscrepancyCategory.ML_VS_POST]
        assert discrepancies[0].severity is Severity.INFO
        assert "normal for sliding window" in discrepancies[0].description

    def test_result_2_missing_gs_42(self, session, classifier):
        discrepancies = classifier.classify(session.by_index(2))
        by_category = {d.category: d for d in discrepancies}

        missing = by_category[DiscrepancyCategory.MISSING_IN_DB]
        assert missing.severity is Severity.ERROR
        assert [g.game_session_id for g in missing.evidence["missing_games"]] == ["gs-42"]
        assert missing.evidence["missing_games"][0].game_id == "minecraft"
        assert missing.evidence["expected_count"] == 2
        assert missing.evidence["actual_count"] == 1

    def test_result_3_no_discrepancies(self, session, classifier):
        result = session.by_index(3)

        assert classifier.classify(result) == []
        assert result.has_discrepancy is False


class TestCategoryRules:
    """Severity and evidence per category."""

    def test_inference_below_post_is_error(self, classifier):
        result = build_frame_result(make_result(
            0, ml=("fortnite",), post=(("fortnite", "gs-1"), ("valorant", "gs-2")),
            db=(("gs-1", "fortnite"), ("gs-2", "valorant")),
        ))
        (discrepancy,) = classifier.classify(result)

        assert discrepancy.category is DiscrepancyCategory.ML_VS_POST
        assert discrepancy.severity is Severity.ERROR
        assert "should not happen" in discrepancy.description

    def test_equal_counts_different_ids_is_warning(self, classifier):
        result = build_frame_result(make_result(
            0, ml=("fortnite",), post=(("valorant", "gs-1"),), db=(("gs-1", "valorant"),),
        ))
        (discrepancy,) = classifier.classify(result)

        assert discrepancy.severity is Severity.WARNING
        assert discrepancy.evidence["only_in_ml"] == ["fortnite"]
        assert discrepancy.evidence["only_in_post"] == ["valorant"]

    def test_ml_vs_post_evidence(self, session, classifier):
        (discrepancy,) = classifier.classify(session.by_index(1))
        evidence = discrepancy.evidence

        assert [g.label for g in evidence["ml_games"]] == ["fortnite", "valorant"]
        assert [g.game_id for g in evidence["post_games"]] == ["fortnite"]
        assert evidence["sliding_window_state"] == ["fortnite", "valorant"]
        assert evidence["inference_status"] == "ok"

    def test_post_vs_db_always_error(self, session, classifier):
        discrepancies = classifier.classify(session.by_index(2))
        post_vs_db = discrepancies[0]

        assert post_vs_db.category is DiscrepancyCategory.POST_VS_DB
        assert post_vs_db.severity is Severity.ERROR
        assert "2 game(s)" in post_vs_db.description
        assert "1 session(s)" in post_vs_db.description

    def test_extra_in_db_is_warning(self, classifier):
        result = build_frame_result(make_result(
            0, ml=("fortnite",), post=(("fortnite", "gs-1"),),
            db=(("gs-1", "fortnite"), ("gs-0", "minecraft")),
        ))
        discrepancies = classifier.classify(result)
        extra = discrepancies[-1]

        assert extra.category is DiscrepancyCategory.EXTRA_IN_DB
        assert extra.severity is Severity.WARNING
        assert [s.game_session_id for s in extra.evidence["extra_sessions"]] == ["gs-0"]

    def test_fixed_category_order(self, classifier):
        """All four categories at once come out in evaluation order."""
        result = build_frame_result(make_result(
            0, ml=("a", "b", "c"), post=(("a", "gs-1"), ("b", "gs-2")),
            db=(("gs-9", "z"),),
        ))

        assert [d.category for d in classifier.classify(result)] == list(DiscrepancyCategory)

    def test_missing_count_matches_description(self, classifier):
        result = build_frame_result(make_result(
            0, ml=("a", "b"), post=(("a", "gs-1"), ("b", "gs-2")), db=(),
        ))
        missing = [d for d in classifier.classify(result) if d.category is DiscrepancyCategory.MISSING_IN_DB][0]

        assert len(missing.evidence["missing_games"]) == 2
        assert missing.description.startswith("2 game(s)")

    def test_failed_stage_does_not_crash(self, classifier):
        """A failed inference counts as zero and is called out."""
        raw = make_result(0, ml=("a",), post=(("a", "gs-1"),), db=(("gs-1", "a"),))
        raw["ml_inference"]["error"] = "model timeout"
        result = build_frame_result(raw)

        (discrepancy,) = classifier.classify(result)

        assert discrepancy.severity is Severity.ERROR
        assert discrepancy.evidence["inference_status"] == "failed"
        assert "model timeout" in discrepancy.description

    def test_discrepancy_serializes(self, session, classifier):
        dumped = classifier.classify(session.by_index(2))[1].model_dump(mode="json")

        assert dumped["category"] == "missing-in-db"
        assert dumped["evidence"]["missing_games"] == [{"game_id": "minecraft", "game_session_id": "gs-42"}]


class TestHighestSeverity:
    def test_empty(self):
        assert highest_severity([]) is None

    def test_picks_most_serious(self, session, classifier):
        assert highest_severity(classifier.classify(session.by_index(1))) is Severity.INFO
        assert highest_severity(classifier.classify(session.by_index(2))) is Severity.ERROR


class TestStageBadges:
    """Error > Mismatch > OK > Empty."""

    def test_consistent_frame_all_ok(self, session):
        badges = stage_badges(session.by_index(3))
        assert {k: b.kind for k, b in badges.items()} == {
            "inference": BadgeKind.OK,
            "post_processing": BadgeKind.OK,
            "database": BadgeKind.OK,
        }

    def test_mismatch_touches_adjacent_stages(self, session):
        badges = stage_badges(session.by_index(2))

        assert badges["inference"].kind is BadgeKind.OK
        assert badges["post_processing"].kind is BadgeKind.MISMATCH
        assert badges["database"].kind is BadgeKind.MISMATCH
        assert badges["database"].tone == "warning"

    def test_error_wins(self):
        raw = make_result(0, ml=("a",), post=(("a", "gs-1"),))
        raw["post_processed"]["error"] = "crashed"
        badges = stage_badges(build_frame_result(raw))

        assert badges["post_processing"].kind is BadgeKind.ERROR
        assert badges["post_processing"].text == "Error"

    def test_empty_stage(self):
        badges = stage_badges(build_frame_result({"index": 0}))

        assert all(b.kind is BadgeKind.EMPTY for b in badges.values())
