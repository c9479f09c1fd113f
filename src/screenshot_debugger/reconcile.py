"""
List Reconciliation
===================

Set-difference comparison of two entity sequences by identity.

This is the single piece of set-theoretic logic behind the database
discrepancy categories: post-processed games are matched to database
sessions by ``game_session_id``, inference detections to post-processed
games by game identifier.

Design Rules:
    - Pure: no I/O, no logging, inputs are never mutated
    - Identity is exact equality of the extracted key (no fuzzy matching)
    - Input order is preserved in both difference lists
    - Swapping the inputs swaps only_in_first/only_in_second and leaves
      in_both/matched unchanged

Example:
    from screenshot_debugger.reconcile import reconcile_lists

    recon = reconcile_lists(
        post_games,
        db_sessions,
        first_key=lambda g: g.game_session_id,
        second_key=lambda s: s.game_session_id,
    )
    if not recon.matched:
        print(recon.only_in_first)
"""

from dataclasses import dataclass
from typing import Callable, FrozenSet, Generic, Hashable, Optional, Sequence, Tuple, TypeVar


A = TypeVar("A")
B = TypeVar("B")


@dataclass(frozen=True, slots=True)
class Reconciliation(Generic[A, B]):
    """
    Outcome of reconciling two entity sequences.

    Attributes:
        only_in_first: Entities of the first sequence whose identity is
            absent from the second, in input order
        only_in_second: Entities of the second sequence whose identity is
            absent from the first, in input order
        in_both: Identities present in both sequences
        matched: True iff both difference lists are empty
    """

    only_in_first: Tuple[A, ...]
    only_in_second: Tuple[B, ...]
    in_both: FrozenSet[Hashable]

    @property
    def matched(self) -> bool:
        return not self.only_in_first and not self.only_in_second


def reconcile_lists(
    first: Sequence[A],
    second: Sequence[B],
    first_key: Callable[[A], Hashable],
    second_key: Optional[Callable[[B], Hashable]] = None,
) -> Reconciliation[A, B]:
    """
    Reconcile two sequences of entities by identity.

    Args:
        first: First entity sequence
        second: Second entity sequence
        first_key: Identity extractor for entities of ``first``
        second_key: Identity extractor for ``second`` (defaults to first_key)

    Returns:
        Reconciliation with both difference lists and the shared identities
    """
    if second_key is None:
        second_key = first_key  # type: ignore[assignment]

    first_ids = {first_key(item) for item in first}
    second_ids = {second_key(item) for item in second}  # type: ignore[misc]

    return Reconciliation(
        only_in_first=tuple(item for item in first if first_key(item) not in second_ids),
        only_in_second=tuple(item for item in second if second_key(item) not in first_ids),  # type: ignore[misc]
        in_both=frozenset(first_ids & second_ids),
    )
