"""
Debugger Service
================

Per-client composition of parser, classifier, result collection,
statistics and screenshot storage.

Every consumer (HTTP app, Streamlit page, CLI) builds its own instance and
passes it where needed; nothing is held in module-level state, so two
sessions or two test cases never see each other's data.

Data Flow:
    analysis JSON -> parse_analysis -> Session
                  -> ResultCollection (filter + cursor)
                  -> DiscrepancyClassifier (per selected result)
                  -> ScreenshotStore -> imaging (per selected result)

Error Policy:
    - Parse errors propagate (AnalysisParseError); the previous session
      stays installed
    - Storage and decode failures for one screenshot produce a placeholder
      image; the frame stays displayable

Prefetch:
    Selection changes schedule a download of the next screenshots on a
    single background worker. Navigation and loading never wait on it;
    call close() to stop the worker.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from screenshot_debugger.analysis import DiscrepancyClassifier, StatusBadge, stage_badges
from screenshot_debugger.config import Settings
from screenshot_debugger.ingest import load_analysis_file, parse_analysis, parse_analysis_json
from screenshot_debugger.models import Discrepancy, FilterCriteria, FrameResult, Session
from screenshot_debugger.observability import (
    SessionStatistics,
    compute_statistics,
    export_filename,
    export_rows,
    to_csv,
)
from screenshot_debugger.session import FilterOutcome, ResultCollection
from screenshot_debugger.storage import (
    ImageDecodeError,
    ScreenshotFetchError,
    ScreenshotStore,
    StorageNotConfiguredError,
    decode_image,
    draw_bounding_boxes,
    encode_png,
    placeholder_image,
)


logger = logging.getLogger(__name__)


class NoSessionError(RuntimeError):
    """Raised when an operation needs a loaded session and none is."""
    pass


class ResultNotFoundError(LookupError):
    """Raised when no result carries the requested index."""
    pass


@dataclass(frozen=True, slots=True)
class CurrentView:
    """
    Everything the presentation layer needs for the selected result.

    Attributes:
        result: Selected result, None when the view is empty
        position: Cursor position in the filtered view
        view_size: Number of results in the filtered view
        fallback: The filter matched nothing and all results are shown
        discrepancies: Classified discrepancies of the selected result
        badges: Status badge per comparison column
    """

    result: Optional[FrameResult]
    position: int
    view_size: int
    fallback: bool
    discrepancies: List[Discrepancy] = field(default_factory=list)
    badges: Dict[str, StatusBadge] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result.model_dump(mode="json") if self.result else None,
            "position": self.position,
            "view_size": self.view_size,
            "fallback": self.fallback,
            "discrepancies": [d.model_dump(mode="json") for d in self.discrepancies],
            "badges": {
                column: {"text": badge.text, "tone": badge.tone}
                for column, badge in self.badges.items()
            },
        }


class DebuggerService:
    """
    One debugging session's worth of state and behaviour.

    Example:
        service = DebuggerService(settings)
        service.load_file("complete_analysis.json")
        service.set_filter(FilterCriteria(only_discrepancies=True))
        view = service.current_view()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ScreenshotStore] = None,
        classifier: Optional[DiscrepancyClassifier] = None,
        collection: Optional[ResultCollection] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store or ScreenshotStore(self.settings.storage)
        self.classifier = classifier or DiscrepancyClassifier()
        self.collection = collection or ResultCollection()
        self.prefetch_enabled = self.settings.storage.prefetch_ahead > 0

        # One worker: prefetches run in selection order
        self._prefetch_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="screenshot-prefetch")
        self._prefetch_future: Optional[Future] = None

        self.collection.on_selection_changed(self._on_selection_changed)

    def close(self) -> None:
        """Stop the prefetch worker, dropping prefetches not yet started."""
        self._prefetch_executor.shutdown(wait=False, cancel_futures=True)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load_document(self, data: Any) -> Session:
        """Parse a decoded analysis document and install it."""
        return self._install(parse_analysis(data))

    def load_json(self, text: Union[str, bytes]) -> Session:
        return self._install(parse_analysis_json(text))

    def load_file(self, path: Union[str, Path]) -> Session:
        return self._install(load_analysis_file(path))

    def _install(self, session: Session) -> Session:
        self.store.clear_cache()
        self.collection.load(session)
        return session

    @property
    def session(self) -> Optional[Session]:
        return self.collection.session

    def require_session(self) -> Session:
        session = self.collection.session
        if session is None:
            raise NoSessionError("No analysis document loaded")
        return session

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def statistics(self) -> SessionStatistics:
        """Statistics over the full session, recomputed on every call."""
        return compute_statistics(self.require_session().results)

    def result(self, index: int) -> FrameResult:
        """
        Look up a result by its external index in the full session.

        Raises:
            NoSessionError: Nothing loaded
            ResultNotFoundError: No result with that index
        """
        result = self.require_session().by_index(index)
        if result is None:
            raise ResultNotFoundError(f"No result with index {index}")
        return result

    def discrepancies(self, index: int) -> List[Discrepancy]:
        return self.classifier.classify(self.result(index))

    def current_view(self) -> CurrentView:
        self.require_session()
        result = self.collection.current
        return CurrentView(
            result=result,
            position=self.collection.position,
            view_size=len(self.collection),
            fallback=self.collection.fallback,
            discrepancies=self.classifier.classify(result) if result else [],
            badges=stage_badges(result) if result else {},
        )

    # -------------------------------------------------------------------------
    # Filtering and navigation
    # -------------------------------------------------------------------------

    def set_filter(self, criteria: FilterCriteria) -> FilterOutcome:
        self.require_session()
        return self.collection.set_filter(criteria)

    def clear_filters(self) -> FilterOutcome:
        self.require_session()
        return self.collection.clear_filters()

    def navigate(self, action: str) -> bool:
        """
        Apply a navigation action: next, previous, first or last.

        Returns:
            Whether the cursor moved (False at a boundary)

        Raises:
            ValueError: Unknown action
        """
        self.require_session()
        moves = {
            "next": self.collection.next,
            "previous": self.collection.previous,
            "first": self.collection.first,
            "last": self.collection.last,
        }
        if action not in moves:
            raise ValueError(f"Unknown navigation action: {action}")
        return moves[action]()

    def jump_to_index(self, index: int) -> bool:
        self.require_session()
        return self.collection.jump_to_index(index)

    # -------------------------------------------------------------------------
    # Screenshots
    # -------------------------------------------------------------------------

    def render_screenshot(self, result: FrameResult, show_boxes: Optional[bool] = None) -> np.ndarray:
        """
        Screenshot of a result as a BGR image, optionally with boxes.

        Never raises for storage or decode failures; a placeholder with the
        reason is returned instead.
        """
        if show_boxes is None:
            show_boxes = self.settings.viewer.show_bounding_boxes

        if result.screenshot is None:
            return placeholder_image("No screenshot captured", f"Result {result.index}")

        try:
            image = decode_image(self.store.fetch_screenshot(result.screenshot))
        except StorageNotConfiguredError as e:
            return placeholder_image("Storage not configured", str(e))
        except (ScreenshotFetchError, ImageDecodeError) as e:
            logger.warning(f"Screenshot unavailable for result {result.index}: {e}")
            return placeholder_image("Screenshot unavailable", str(e))

        if show_boxes:
            image = draw_bounding_boxes(image, result.detected_games)
        return image

    def screenshot_png(self, index: int, show_boxes: Optional[bool] = None) -> bytes:
        return encode_png(self.render_screenshot(self.result(index), show_boxes))

    def prefetch_upcoming(self) -> int:
        """Warm the screenshot cache for the results after the cursor, blocking."""
        if not self.store.configured:
            return 0
        return self.store.prefetch(self._upcoming_keys())

    def schedule_prefetch(self) -> Optional[Future]:
        """
        Warm the cache for the results after the cursor on the background worker.

        Returns immediately. The keys are taken from the view at call time,
        so a later navigation does not change what this prefetch downloads.

        Returns:
            Future resolving to the number of keys cached, None when there
            is nothing to fetch
        """
        if not self.store.configured:
            return None
        keys = [key for key in self._upcoming_keys() if not self.store.is_cached(key)]
        if not keys:
            return None
        try:
            future = self._prefetch_executor.submit(self.store.prefetch, keys)
        except RuntimeError:
            logger.debug("Prefetch worker closed, skipping prefetch")
            return None
        future.add_done_callback(_log_prefetch_error)
        self._prefetch_future = future
        return future

    def wait_for_prefetch(self, timeout: Optional[float] = None) -> None:
        """Block until the most recently scheduled prefetch has finished."""
        future = self._prefetch_future
        if future is not None and not future.cancelled():
            future.exception(timeout=timeout)

    def _upcoming_keys(self) -> List[str]:
        return [
            result.screenshot.storage_key
            for result in self.collection.upcoming(self.settings.storage.prefetch_ahead)
            if result.screenshot is not None and result.screenshot.storage_key
        ]

    def _on_selection_changed(self, result: Optional[FrameResult], position: int) -> None:
        if self.prefetch_enabled and result is not None:
            self.schedule_prefetch()

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_csv(self, now: Optional[float] = None) -> Tuple[str, str]:
        """
        CSV export of the full, unfiltered session.

        Returns:
            (filename, csv_text)
        """
        session = self.require_session()
        text = to_csv(export_rows(session.results))
        filename = export_filename(session.session_id, now)
        logger.info(f"Exported {len(session)} results to {filename}")
        return filename, text


def _log_prefetch_error(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Screenshot prefetch failed: {error}")
