"""
List Reconciliation Tests
=========================

Set-difference comparison by identity.
"""

from screenshot_debugger.models import DbSession, PostProcessedGame
from screenshot_debugger.reconcile import reconcile_lists


def _post(*session_ids):
    return [PostProcessedGame(game_id=f"game-{sid}", game_session_id=sid) for sid in session_ids]


def _db(*session_ids):
    return [DbSession(game_session_id=sid) for sid in session_ids]


class TestReconcileLists:
    """Tests for reconcile_lists."""

    def test_identical_lists_match(self):
        """Same identities on both sides: nothing left over."""
        recon = reconcile_lists(["a", "b"], ["b", "a"], first_key=str)

        assert recon.matched
        assert recon.only_in_first == ()
        assert recon.only_in_second == ()
        assert recon.in_both == frozenset({"a", "b"})

    def test_differences_preserve_input_order(self):
        """Leftovers keep the order they had in their input."""
        recon = reconcile_lists(["c", "a", "x", "b"], ["b", "y", "z"], first_key=str)

        assert recon.only_in_first == ("c", "a", "x")
        assert recon.only_in_second == ("y", "z")
        assert recon.in_both == frozenset({"b"})
        assert not recon.matched

    def test_different_key_extractors(self):
        """Post-processed games vs DB sessions by game_session_id."""
        post = _post("gs-1", "gs-42")
        db = _db("gs-1", "gs-7")

        recon = reconcile_lists(
            post, db,
            first_key=lambda g: g.game_session_id,
            second_key=lambda s: s.game_session_id,
        )

        assert [g.game_session_id for g in recon.only_in_first] == ["gs-42"]
        assert [s.game_session_id for s in recon.only_in_second] == ["gs-7"]
        assert recon.in_both == frozenset({"gs-1"})

    def test_swapping_inputs_is_symmetric(self):
        """Swapping inputs swaps the differences, in_both and matched stay."""
        first, second = ["a", "b", "c"], ["c", "d"]

        forward = reconcile_lists(first, second, first_key=str)
        backward = reconcile_lists(second, first, first_key=str)

        assert forward.only_in_first == backward.only_in_second
        assert forward.only_in_second == backward.only_in_first
        assert forward.in_both == backward.in_both
        assert forward.matched == backward.matched

    def test_empty_inputs(self):
        """Two empty sequences reconcile as matched."""
        recon = reconcile_lists([], [], first_key=str)

        assert recon.matched
        assert recon.in_both == frozenset()

    def test_exact_match_only(self):
        """No fuzzy matching: case and whitespace matter."""
        recon = reconcile_lists(["GS-1"], ["gs-1 "], first_key=str)

        assert recon.only_in_first == ("GS-1",)
        assert recon.only_in_second == ("gs-1 ",)

    def test_inputs_not_mutated(self):
        first, second = ["a", "b"], ["b"]
        reconcile_lists(first, second, first_key=str)

        assert first == ["a", "b"]
        assert second == ["b"]
