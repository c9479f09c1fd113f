"""
Result Collection
=================

Filtered, navigable view over the results of one Session.

The collection holds the loaded Session, the active FilterCriteria and a
cursor into the filtered view. The view is a tuple of positions into
``session.results``; filtering never copies or mutates a FrameResult.

Filter Rules:
    - Active criteria combine with logical AND (see FilterCriteria)
    - No criteria set: the full session, order preserved
    - Criteria matching nothing on a non-empty session: the full session,
      with ``fallback`` set so callers can say so

Navigation Rules:
    - next/previous are no-ops at the boundaries (no wrap-around)
    - first/last jump to position 0 / len(view) - 1
    - jump_to_index searches the filtered view by FrameResult.index and
      reports failure instead of raising; the cursor is unchanged on a miss
    - A filter change keeps the cursor when it is still in bounds, else
      resets it to 0

Notifications:
    Listeners registered with ``on_selection_changed`` receive the newly
    selected FrameResult (or None) and its position whenever the selection
    changes. Listeners registered with ``on_filter_changed`` receive the
    new FilterOutcome after every filter change or session load.

Example:
    collection = ResultCollection()
    collection.load(session)
    collection.on_selection_changed(lambda result, position: render(result))

    outcome = collection.set_filter(FilterCriteria(only_discrepancies=True))
    if outcome.fallback:
        print("No results match, showing all")
    collection.next()
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from screenshot_debugger.models import FilterCriteria, FrameResult, Session


logger = logging.getLogger(__name__)


SelectionListener = Callable[[Optional[FrameResult], int], None]
FilterListener = Callable[["FilterOutcome"], None]


@dataclass(frozen=True, slots=True)
class FilterOutcome:
    """
    Result of applying FilterCriteria to a session.

    Attributes:
        results: Results in the view, in session order
        fallback: True when the criteria matched nothing and the full
            session is shown instead
        matched: Number of results the criteria actually matched
    """

    results: Tuple[FrameResult, ...]
    fallback: bool
    matched: int

    def __len__(self) -> int:
        return len(self.results)


class ResultCollection:
    """
    Session holder with filter engine and navigation cursor.

    One instance per client. Nothing here is shared process-wide.

    Attributes:
        session: Loaded session, None before the first load
        criteria: Active filter criteria
        position: Cursor into the filtered view
    """

    def __init__(self, session: Optional[Session] = None) -> None:
        self._session: Optional[Session] = None
        self._criteria = FilterCriteria()
        self._positions: Tuple[int, ...] = ()
        self._fallback: bool = False
        self._matched: int = 0
        self._position: int = 0

        self._selection_listeners: List[SelectionListener] = []
        self._filter_listeners: List[FilterListener] = []

        if session is not None:
            self.load(session)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def position(self) -> int:
        return self._position

    @property
    def fallback(self) -> bool:
        """Whether the active view is the full-session fallback."""
        return self._fallback

    @property
    def view(self) -> Tuple[FrameResult, ...]:
        """Results of the active filtered view, in session order."""
        if self._session is None:
            return ()
        results = self._session.results
        return tuple(results[i] for i in self._positions)

    @property
    def outcome(self) -> FilterOutcome:
        return FilterOutcome(results=self.view, fallback=self._fallback, matched=self._matched)

    @property
    def current(self) -> Optional[FrameResult]:
        """Result at the cursor, None when the view is empty."""
        if not self._positions:
            return None
        return self._session.results[self._positions[self._position]]

    def __len__(self) -> int:
        return len(self._positions)

    # -------------------------------------------------------------------------
    # Loading and filtering
    # -------------------------------------------------------------------------

    def load(self, session: Session) -> FilterOutcome:
        """
        Replace the held session.

        Active criteria are kept and re-applied; the cursor returns to 0.
        """
        self._session = session
        self._position = 0
        outcome = self._refresh()
        logger.info(
            f"Session {session.session_id} loaded: {len(session)} results, "
            f"{len(outcome)} in view"
        )
        self._notify_filter(outcome)
        self._notify_selection()
        return outcome

    def apply_filter(self, criteria: FilterCriteria) -> FilterOutcome:
        """
        Evaluate criteria against the session without changing any state.

        Applying the same criteria twice yields the same outcome.
        """
        positions, fallback, matched = self._evaluate(criteria)
        if self._session is None:
            return FilterOutcome(results=(), fallback=False, matched=0)
        results = self._session.results
        return FilterOutcome(
            results=tuple(results[i] for i in positions),
            fallback=fallback,
            matched=matched,
        )

    def set_filter(self, criteria: FilterCriteria) -> FilterOutcome:
        """Install new criteria, re-evaluate the view and notify listeners."""
        previous = self.current
        self._criteria = criteria
        outcome = self._refresh()
        if self._position >= len(self._positions):
            self._position = 0

        self._notify_filter(outcome)
        if self.current is not previous:
            self._notify_selection()
        return outcome

    def clear_filters(self) -> FilterOutcome:
        return self.set_filter(FilterCriteria())

    def _refresh(self) -> FilterOutcome:
        self._positions, self._fallback, self._matched = self._evaluate(self._criteria)
        if self._fallback:
            logger.info(
                f"No results match {self._criteria.model_dump(exclude_defaults=True)}, "
                f"showing all {len(self._positions)}"
            )
        return self.outcome

    def _evaluate(self, criteria: FilterCriteria) -> Tuple[Tuple[int, ...], bool, int]:
        if self._session is None:
            return (), False, 0

        results = self._session.results
        if criteria.is_empty:
            return tuple(range(len(results))), False, len(results)

        positions = tuple(i for i, result in enumerate(results) if criteria.matches(result))
        if not positions and results:
            return tuple(range(len(results))), True, 0
        return positions, False, len(positions)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def next(self) -> bool:
        """Advance one result; False at the last position."""
        if self._position >= len(self._positions) - 1:
            return False
        return self._move_to(self._position + 1)

    def previous(self) -> bool:
        """Go back one result; False at position 0."""
        if self._position <= 0:
            return False
        return self._move_to(self._position - 1)

    def first(self) -> bool:
        if not self._positions:
            return False
        return self._move_to(0)

    def last(self) -> bool:
        if not self._positions:
            return False
        return self._move_to(len(self._positions) - 1)

    def go_to_position(self, position: int) -> bool:
        """Move the cursor to a view position; False when out of range."""
        if not 0 <= position < len(self._positions):
            return False
        return self._move_to(position)

    def jump_to_index(self, index: int) -> bool:
        """
        Select the result whose ``index`` field equals the argument.

        Only the filtered view is searched.

        Returns:
            True on success; False (cursor unchanged) when no result in the
            view carries that index
        """
        position = self.position_of(index)
        if position is None:
            logger.info(f"Index {index} not in current view ({len(self._positions)} results)")
            return False
        self._move_to(position)
        return True

    def position_of(self, index: int) -> Optional[int]:
        """View position of the result with the given index, or None."""
        if self._session is None:
            return None
        results = self._session.results
        for position, session_position in enumerate(self._positions):
            if results[session_position].index == index:
                return position
        return None

    def upcoming(self, count: int) -> List[FrameResult]:
        """Up to ``count`` results following the cursor in the view."""
        if self._session is None or count <= 0:
            return []
        results = self._session.results
        following = self._positions[self._position + 1:self._position + 1 + count]
        return [results[i] for i in following]

    def _move_to(self, position: int) -> bool:
        changed = position != self._position
        self._position = position
        if changed:
            self._notify_selection()
        return True

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def on_selection_changed(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a selection listener; returns a function that removes it."""
        self._selection_listeners.append(listener)
        return lambda: self._selection_listeners.remove(listener)

    def on_filter_changed(self, listener: FilterListener) -> Callable[[], None]:
        """Register a filter listener; returns a function that removes it."""
        self._filter_listeners.append(listener)
        return lambda: self._filter_listeners.remove(listener)

    def _notify_selection(self) -> None:
        current = self.current
        for listener in list(self._selection_listeners):
            listener(current, self._position)

    def _notify_filter(self, outcome: FilterOutcome) -> None:
        for listener in list(self._filter_listeners):
            listener(outcome)
