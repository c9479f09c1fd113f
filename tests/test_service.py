"""
Service Tests
=============

DebuggerService composition: loading, queries, screenshots and export.
"""

import json
import time

import pytest

from screenshot_debugger.config import Settings, StorageConfig, ViewerConfig
from screenshot_debugger.ingest import AnalysisParseError
from screenshot_debugger.models import DiscrepancyCategory, FilterCriteria
from screenshot_debugger.service import DebuggerService, NoSessionError, ResultNotFoundError
from screenshot_debugger.storage import ScreenshotStore, decode_image

from conftest import DummyHttp, GatedHttp


@pytest.fixture
def service(analysis_document):
    service = DebuggerService(Settings())
    service.load_document(analysis_document)
    return service


@pytest.fixture
def storage_service(analysis_document, dummy_s3):
    settings = Settings(storage=StorageConfig(bucket="screens", prefetch_ahead=1))
    store = ScreenshotStore(settings.storage, http=DummyHttp(dummy_s3._client))
    service = DebuggerService(settings, store=store)
    service.load_document(analysis_document)
    yield service
    service.close()


class TestLoading:
    """Installing analysis documents."""

    def test_nothing_loaded(self):
        service = DebuggerService(Settings())

        assert service.session is None
        with pytest.raises(NoSessionError):
            service.statistics()
        with pytest.raises(NoSessionError):
            service.current_view()

    def test_load_json(self, analysis_document):
        service = DebuggerService(Settings())
        session = service.load_json(json.dumps(analysis_document))

        assert service.session is session
        assert len(session) == 3

    def test_load_file(self, tmp_path, analysis_document):
        path = tmp_path / "analysis.json"
        path.write_text(json.dumps(analysis_document))
        service = DebuggerService(Settings())

        assert service.load_file(path).session_id == "abc123"

    def test_failed_load_keeps_previous_session(self, service):
        previous = service.session

        with pytest.raises(AnalysisParseError):
            service.load_json('{"results": []}')

        assert service.session is previous

    def test_reload_replaces_session(self, service, document_factory):
        document = document_factory()
        document["session_id"] = "other"
        document["results"] = document["results"][:1]

        service.load_document(document)

        assert service.session.session_id == "other"
        assert service.statistics().total == 1


class TestQueries:
    def test_result_lookup(self, service):
        assert service.result(2).index == 2
        with pytest.raises(ResultNotFoundError):
            service.result(42)

    def test_discrepancies(self, service):
        categories = [d.category for d in service.discrepancies(2)]
        assert categories == [DiscrepancyCategory.POST_VS_DB, DiscrepancyCategory.MISSING_IN_DB]

    def test_current_view(self, service):
        view = service.current_view()

        assert view.result.index == 1
        assert view.view_size == 3
        assert view.fallback is False
        assert [d.category for d in view.discrepancies] == [DiscrepancyCategory.ML_VS_POST]
        assert view.badges["inference"].text == "Mismatch"

    def test_current_view_to_dict(self, service):
        data = service.current_view().to_dict()

        assert data["result"]["index"] == 1
        assert data["discrepancies"][0]["severity"] == "info"
        assert data["badges"]["database"] == {"text": "OK", "tone": "success"}

    def test_navigation(self, service):
        service.set_filter(FilterCriteria(only_discrepancies=True))

        assert service.navigate("last") is True
        assert service.current_view().result.index == 2
        assert service.navigate("next") is False
        assert service.jump_to_index(1) is True

    def test_unknown_navigation(self, service):
        with pytest.raises(ValueError):
            service.navigate("sideways")


class TestScreenshots:
    """Rendering never fails the frame."""

    def test_storage_not_configured_placeholder(self, service):
        image = service.render_screenshot(service.result(1))

        assert image.shape == (360, 640, 3)

    def test_no_screenshot_placeholder(self, service, document_factory):
        document = document_factory()
        del document["results"][0]["screenshot"]
        service.load_document(document)

        assert service.render_screenshot(service.result(1)).shape == (360, 640, 3)

    def test_fetch_and_decode(self, storage_service):
        image = storage_service.render_screenshot(storage_service.result(1), show_boxes=False)
        assert image.shape == (120, 200, 3)

    def test_boxes_default_from_settings(self, analysis_document, dummy_s3):
        settings = Settings(
            storage=StorageConfig(bucket="screens", prefetch_ahead=0),
            viewer=ViewerConfig(show_bounding_boxes=True),
        )
        service = DebuggerService(settings, store=ScreenshotStore(settings.storage, http=DummyHttp(dummy_s3._client)))
        service.load_document(analysis_document)

        plain = service.render_screenshot(service.result(1), show_boxes=False)
        boxed = service.render_screenshot(service.result(1))

        assert (plain != boxed).any()

    def test_fetch_failure_placeholder(self, storage_service, document_factory):
        document = document_factory()
        document["results"][0]["screenshot"]["s3_key"] = "sessions/abc123/gone.png"
        storage_service.load_document(document)

        assert storage_service.render_screenshot(storage_service.result(1)).shape == (360, 640, 3)

    def test_screenshot_png(self, storage_service):
        data = storage_service.screenshot_png(1, show_boxes=True)
        assert decode_image(data).shape == (120, 200, 3)

    def test_prefetch_on_selection(self, storage_service):
        """Loading selects #1 and warms #2; moving to #2 warms #3."""
        storage_service.wait_for_prefetch(timeout=5)
        assert storage_service.store.cached_keys == 1

        storage_service.navigate("next")
        storage_service.wait_for_prefetch(timeout=5)

        assert storage_service.store.cached_keys == 2

    def test_load_clears_cache(self, storage_service, analysis_document):
        storage_service.wait_for_prefetch(timeout=5)
        storage_service.prefetch_enabled = False
        storage_service.screenshot_png(1)
        storage_service.load_document(analysis_document)

        assert storage_service.store.cached_keys == 0


@pytest.fixture
def slow_storage_service(analysis_document, dummy_s3):
    """Service whose screenshot downloads block until ``http.gate`` is set."""
    settings = Settings(storage=StorageConfig(bucket="screens", prefetch_ahead=2))
    http = GatedHttp(dummy_s3._client)
    service = DebuggerService(settings, store=ScreenshotStore(settings.storage, http=http))
    yield service, http
    http.gate.set()
    service.close()


class TestBackgroundPrefetch:
    """Prefetch runs on a worker thread; selection never waits on downloads."""

    def test_load_and_navigation_do_not_wait(self, slow_storage_service, analysis_document):
        service, http = slow_storage_service

        started = time.monotonic()
        service.load_document(analysis_document)
        service.navigate("next")
        service.navigate("next")
        elapsed = time.monotonic() - started

        assert elapsed < 1.0
        assert service.current_view().result.index == 3
        assert http.started.wait(timeout=5)
        assert service.store.cached_keys == 0

        http.gate.set()
        service.wait_for_prefetch(timeout=5)

        assert service.store.is_cached("sessions/abc123/frame_0002.png")
        assert service.store.is_cached("sessions/abc123/frame_0003.png")

    def test_cached_keys_are_not_rescheduled(self, storage_service):
        storage_service.wait_for_prefetch(timeout=5)
        storage_service.navigate("next")
        storage_service.wait_for_prefetch(timeout=5)
        storage_service.navigate("first")

        assert storage_service.schedule_prefetch() is None

    def test_blocking_prefetch(self, storage_service):
        storage_service.wait_for_prefetch(timeout=5)
        storage_service.navigate("next")
        storage_service.wait_for_prefetch(timeout=5)

        assert storage_service.prefetch_upcoming() == 1

    def test_nothing_scheduled_after_close(self, storage_service):
        storage_service.wait_for_prefetch(timeout=5)
        storage_service.close()

        assert storage_service.navigate("next") is True
        assert storage_service.schedule_prefetch() is None
        assert storage_service.store.cached_keys == 1

    def test_without_storage(self, service):
        assert service.schedule_prefetch() is None
        service.wait_for_prefetch(timeout=1)


class TestExport:
    def test_export_covers_full_session(self, service):
        service.set_filter(FilterCriteria(missing_in_db_only=True))

        filename, text = service.export_csv(now=1.0)

        assert filename == "analysis_export_abc123_1000.csv"
        assert len(text.strip().splitlines()) == 4
