"""
Test Configuration
==================

Pytest fixtures and test configuration for the screenshot debugger.
"""

import copy
import threading

import cv2
import numpy as np
import pytest
from botocore.exceptions import ClientError


def make_result(
    index,
    ml=(),
    post=(),
    db=(),
    timestamp="2024-05-01T12:00:00Z",
    flags=None,
):
    """
    Build one wire-format result.

    Args:
        index: Result index
        ml: Detected game labels
        post: (game_id, game_session_id) pairs
        db: (game_session_id, game_identifier) pairs
        flags: Optional discrepancy_flags object
    """
    raw = {
        "index": index,
        "screenshot": {
            "filename": f"frame_{index:04d}.png",
            "s3_key": f"sessions/abc123/frame_{index:04d}.png",
            "timestamp": timestamp,
        },
        "ml_inference": {
            "games": [
                {"class": label, "confidence": 0.9, "box": [10.0, 10.0, 110.0, 60.0]}
                for label in ml
            ],
            "number_of_games": len(ml),
            "latency_ms": 42.5,
            "is_uniform_frame": False,
        },
        "post_processed": {
            "games": [{"game_id": gid, "game_session_id": sid} for gid, sid in post],
            "game_count": len(post),
            "event_type": "GAME_ACTIVE" if post else "NO_GAME",
            "applied_threshold": True,
            "sliding_window_state": list(ml),
        },
        "db_sessions": [
            {
                "game_session_id": sid,
                "game_identifier": gid,
                "game_name": gid.title(),
                "start_time": "2024-05-01T11:00:00Z",
                "true_airtime": 3723,
                "matches_screenshot": True,
            }
            for sid, gid in db
        ],
        "db_game_counts": [],
    }
    if flags is not None:
        raw["discrepancy_flags"] = flags
    return raw


@pytest.fixture
def analysis_document():
    """
    Three-result session.

    #1: inference 2 / post 1            -> ML vs post (info)
    #2: post 2 / db 1, gs-42 missing    -> post vs DB + missing in DB
    #3: consistent across all stages    -> no discrepancy
    """
    return {
        "session_id": "abc123",
        "platform": "twitch",
        "channel": "somechannel",
        "date": "2024-05-01",
        "start_time": "2024-05-01T11:00:00Z",
        "end_time": "2024-05-01T13:00:00Z",
        "analyzed_at": "2024-05-02T08:30:00Z",
        "total": 3,
        "results": [
            make_result(
                1,
                ml=("fortnite", "valorant"),
                post=(("fortnite", "gs-1"),),
                db=(("gs-1", "fortnite"),),
                flags={"ml_vs_postprocessing": True},
            ),
            make_result(
                2,
                ml=("fortnite", "minecraft"),
                post=(("fortnite", "gs-1"), ("minecraft", "gs-42")),
                db=(("gs-1", "fortnite"),),
                flags={"postprocessing_vs_db": True, "missing_in_db": True},
            ),
            make_result(
                3,
                ml=("fortnite",),
                post=(("fortnite", "gs-1"),),
                db=(("gs-1", "fortnite"),),
                flags={},
            ),
        ],
    }


@pytest.fixture
def document_factory(analysis_document):
    """Deep copy of the three-result document, safe to mutate."""
    return lambda: copy.deepcopy(analysis_document)


@pytest.fixture
def session(analysis_document):
    from screenshot_debugger.ingest import parse_analysis

    return parse_analysis(analysis_document)


@pytest.fixture
def png_bytes():
    """A small valid PNG screenshot."""
    image = np.full((120, 200, 3), 90, dtype=np.uint8)
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


# =============================================================================
# Storage doubles
# =============================================================================

class DummyS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, objects=None, head_bucket_error=None):
        self.objects = dict(objects or {})
        self.head_bucket_error = head_bucket_error
        self.presigned = []

    def head_bucket(self, Bucket):
        if self.head_bucket_error:
            raise ClientError({"Error": {"Code": self.head_bucket_error}}, "HeadBucket")
        return {}

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404"}}, "HeadObject")
        return {
            "ContentType": "image/png",
            "ContentLength": len(self.objects[Key]),
            "ETag": '"abc"',
        }

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.presigned.append((operation, Params, ExpiresIn))
        return f"https://signed.example/{Params['Bucket']}/{Params['Key']}?ttl={ExpiresIn}"


class DummyBoto3:
    def __init__(self, client):
        self._client = client
        self.client_kwargs = None

    def client(self, name, **kwargs):
        assert name == "s3"
        self.client_kwargs = kwargs
        return self._client


class DummyResponse:
    def __init__(self, status_code=200, content=b"", reason="OK"):
        self.status_code = status_code
        self.content = content
        self.reason = reason


class DummyHttp:
    """requests.Session stand-in serving objects of a DummyS3Client."""

    def __init__(self, s3_client):
        self.s3_client = s3_client
        self.requests = []

    def get(self, url, timeout=None):
        self.requests.append(url)
        key = url.split("?", 1)[0].split("/", 4)[-1]
        if key in self.s3_client.objects:
            return DummyResponse(200, self.s3_client.objects[key])
        return DummyResponse(403, b"", "Forbidden")


class GatedHttp(DummyHttp):
    """DummyHttp whose downloads block until ``gate`` is set."""

    def __init__(self, s3_client):
        super().__init__(s3_client)
        self.gate = threading.Event()
        self.started = threading.Event()

    def get(self, url, timeout=None):
        self.started.set()
        self.gate.wait(timeout=5)
        return super().get(url, timeout)


@pytest.fixture
def s3_objects(png_bytes):
    return {
        f"sessions/abc123/frame_{i:04d}.png": png_bytes
        for i in (1, 2, 3)
    }


@pytest.fixture
def dummy_s3(monkeypatch, s3_objects):
    """Patch boto3 in the store module with an in-memory client."""
    client = DummyS3Client(s3_objects)
    fake = DummyBoto3(client)
    monkeypatch.setattr("screenshot_debugger.storage.s3_client.boto3", fake)
    return fake


@pytest.fixture
def configured_store(dummy_s3):
    from screenshot_debugger.config import StorageConfig
    from screenshot_debugger.storage import ScreenshotStore

    store = ScreenshotStore(StorageConfig(bucket="screens"), http=DummyHttp(dummy_s3._client))
    return store
