"""
Screenshot Store
================

Fetches screenshots from S3 (or an S3-compatible endpoint) for the viewer.

Flow:
    configure(credentials, bucket, region)
        -> validate()            head_bucket, human-readable outcome
        -> fetch(key)            presigned GET + HTTP download, LRU cached
        -> prefetch(keys)        warm the cache, failures only logged

Design Rules:
    - One store per client; credentials are never shared process-wide
    - Without explicit credentials boto3's default chain is used
    - Fetch failures raise ScreenshotFetchError; callers decide how to
      render them (the viewer shows a placeholder)
    - Missing objects are detected by ClientError codes 404/NoSuchKey/NotFound
    - The cache is guarded by a lock; a download that completes after
      clear_cache() is returned to its caller but not cached

Example:
    store = ScreenshotStore(settings.storage)
    store.configure(parse_export_credentials(pasted_text), bucket="screens")
    check = store.validate()
    if check.valid:
        png_bytes = store.fetch("sessions/abc/0001.png")
"""

import logging
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from screenshot_debugger.config import StorageConfig
from screenshot_debugger.models import Screenshot


logger = logging.getLogger(__name__)


_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageNotConfiguredError(RuntimeError):
    """Raised when storage is used before a bucket and client are configured."""
    pass


class ScreenshotFetchError(RuntimeError):
    """Raised when a screenshot can not be retrieved."""
    pass


@dataclass(frozen=True, slots=True)
class AwsCredentials:
    """Static AWS credentials, e.g. pasted from an SSO export block."""

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)


@dataclass(frozen=True, slots=True)
class CredentialCheck:
    """Outcome of validating credentials against the bucket."""

    valid: bool
    message: str
    details: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """Subset of head_object fields shown in the viewer."""

    content_type: Optional[str]
    content_length: Optional[int]
    last_modified: Optional[datetime]
    etag: Optional[str]


_EXPORT_PATTERNS = {
    "access_key_id": re.compile(r"AWS_ACCESS_KEY_ID\s*=\s*[\"']([^\"']+)[\"']"),
    "secret_access_key": re.compile(r"AWS_SECRET_ACCESS_KEY\s*=\s*[\"']([^\"']+)[\"']"),
    "session_token": re.compile(r"AWS_SESSION_TOKEN\s*=\s*[\"']([^\"']*)[\"']"),
}


def parse_export_credentials(text: str) -> AwsCredentials:
    """
    Parse credentials from shell export statements.

    Example input:
        export AWS_ACCESS_KEY_ID="AKIA..."
        export AWS_SECRET_ACCESS_KEY="..."
        export AWS_SESSION_TOKEN="..."

    Values must be quoted. Missing entries come back empty; an empty
    session token becomes None.
    """
    values: Dict[str, str] = {}
    for name, pattern in _EXPORT_PATTERNS.items():
        match = pattern.search(text or "")
        values[name] = match.group(1).strip() if match else ""

    return AwsCredentials(
        access_key_id=values["access_key_id"],
        secret_access_key=values["secret_access_key"],
        session_token=values["session_token"] or None,
    )


def _error_code(exc: ClientError) -> Optional[str]:
    return exc.response.get("Error", {}).get("Code") if hasattr(exc, "response") else None


class ScreenshotStore:
    """
    S3-backed screenshot source with an in-memory LRU cache.

    Attributes:
        bucket: Configured bucket name
        region: Configured region
        configured: Whether a client and bucket are available
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize the store.

        A client is built immediately when the config names a bucket,
        using boto3's default credential chain.

        Args:
            config: Storage configuration (defaults when None)
            http: HTTP session used for downloads
        """
        self.config = config or StorageConfig()
        self._http = http or requests.Session()
        self._client: Any = None
        self.bucket: str = ""
        self.region: str = self.config.region
        self._cache: "OrderedDict[str, bytes]" = OrderedDict()
        # Prefetch fills the cache from a worker thread
        self._cache_lock = threading.Lock()
        self._cache_generation = 0

        if self.config.bucket:
            self.configure(bucket=self.config.bucket)

    @property
    def configured(self) -> bool:
        return self._client is not None and bool(self.bucket)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def configure(
        self,
        credentials: Optional[AwsCredentials] = None,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
    ) -> None:
        """
        (Re)build the S3 client.

        Args:
            credentials: Static credentials; None uses the default chain
            bucket: Bucket holding screenshots (defaults to config)
            region: Bucket region (defaults to config)
        """
        self.bucket = (bucket or self.config.bucket).strip()
        self.region = (region or self.config.region).strip()

        client_kwargs: Dict[str, Any] = {"region_name": self.region}
        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url
        if credentials is not None:
            client_kwargs["aws_access_key_id"] = credentials.access_key_id.strip()
            client_kwargs["aws_secret_access_key"] = credentials.secret_access_key.strip()
            if credentials.session_token and credentials.session_token.strip():
                client_kwargs["aws_session_token"] = credentials.session_token.strip()

        self._client = boto3.client("s3", **client_kwargs)
        self.clear_cache()
        logger.info(
            f"Screenshot store configured: bucket={self.bucket or '-'}, region={self.region}, "
            f"session_token={'yes' if 'aws_session_token' in client_kwargs else 'no'}"
        )

    def clear(self) -> None:
        """Forget the client, bucket and cached screenshots."""
        self._client = None
        self.bucket = ""
        self.clear_cache()

    def validate(self) -> CredentialCheck:
        """
        Check the credentials can reach the bucket (head_bucket).

        Never raises for AWS-side failures; the outcome says what went wrong.
        """
        if not self.configured:
            return CredentialCheck(valid=False, message="Storage not configured", details="Set a bucket and credentials")

        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = _error_code(exc)
            logger.warning(f"Credential validation failed for bucket {self.bucket}: {code}")
            return _describe_client_error(code, self.bucket, str(exc))
        except BotoCoreError as exc:
            logger.warning(f"Credential validation failed for bucket {self.bucket}: {exc}")
            return CredentialCheck(valid=False, message="Network or credential error", details=str(exc))

        logger.info(f"Credentials validated for bucket {self.bucket}")
        return CredentialCheck(valid=True, message="Credentials validated successfully")

    # -------------------------------------------------------------------------
    # Object access
    # -------------------------------------------------------------------------

    def resolve_key(self, key: str) -> str:
        """Apply the configured key prefix to keys that lack it."""
        prefix = self.config.key_prefix
        if prefix and not key.startswith(prefix):
            return f"{prefix.rstrip('/')}/{key.lstrip('/')}"
        return key

    def presign_get(self, key: str, expires_in: Optional[int] = None) -> str:
        """Presigned GET URL for a screenshot key."""
        self._require_client()
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": self.resolve_key(key)},
            ExpiresIn=expires_in or self.config.signed_url_expiry_seconds,
        )

    def fetch(self, key: str) -> bytes:
        """
        Download a screenshot, serving repeats from the cache.

        Raises:
            StorageNotConfiguredError: No client or bucket
            ScreenshotFetchError: Signing or download failed
        """
        cached = self._cache_get(key)
        if cached is not None:
            return cached
        generation = self._cache_generation

        try:
            url = self.presign_get(key)
        except (ClientError, BotoCoreError) as exc:
            raise ScreenshotFetchError(f"Could not sign {key}: {exc}") from exc

        data = self._download(url, label=key)
        self._cache_put(key, data, generation)
        return data

    def fetch_screenshot(self, screenshot: Screenshot) -> bytes:
        """Fetch by storage key, else by the pre-resolved URL."""
        if screenshot.storage_key:
            return self.fetch(screenshot.storage_key)
        if screenshot.url:
            cached = self._cache_get(screenshot.url)
            if cached is not None:
                return cached
            generation = self._cache_generation
            data = self._download(screenshot.url, label=screenshot.url)
            self._cache_put(screenshot.url, data, generation)
            return data
        raise ScreenshotFetchError(f"Screenshot {screenshot.filename or '?'} has no storage key or URL")

    def prefetch(self, keys: Iterable[str]) -> int:
        """
        Warm the cache for upcoming screenshots.

        Failures are logged and skipped.

        Returns:
            Number of keys now cached
        """
        loaded = 0
        for key in keys:
            try:
                self.fetch(key)
                loaded += 1
            except (ScreenshotFetchError, StorageNotConfiguredError) as exc:
                logger.warning(f"Failed to prefetch {key}: {exc}")
        return loaded

    def object_exists(self, key: str) -> bool:
        self._require_client()
        try:
            self._client.head_object(Bucket=self.bucket, Key=self.resolve_key(key))
            return True
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            raise

    def object_metadata(self, key: str) -> ObjectMetadata:
        """
        head_object metadata for a key.

        Raises:
            ScreenshotFetchError: Object missing or not readable
        """
        self._require_client()
        try:
            head = self._client.head_object(Bucket=self.bucket, Key=self.resolve_key(key))
        except ClientError as exc:
            raise ScreenshotFetchError(f"Could not read metadata for {key}: {_error_code(exc)}") from exc

        etag = head.get("ETag")
        return ObjectMetadata(
            content_type=head.get("ContentType"),
            content_length=head.get("ContentLength"),
            last_modified=head.get("LastModified"),
            etag=etag.strip('"') if isinstance(etag, str) else etag,
        )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        """Drop cached screenshots; downloads already in flight are not cached."""
        with self._cache_lock:
            self._cache.clear()
            self._cache_generation += 1

    @property
    def cached_keys(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def is_cached(self, key: str) -> bool:
        with self._cache_lock:
            return key in self._cache

    def _cache_get(self, key: str) -> Optional[bytes]:
        with self._cache_lock:
            data = self._cache.get(key)
            if data is not None:
                self._cache.move_to_end(key)
            return data

    def _cache_put(self, key: str, data: bytes, generation: int) -> None:
        if self.config.cache_size <= 0:
            return
        with self._cache_lock:
            if generation != self._cache_generation:
                logger.debug(f"Discarding {key}: cache cleared during download")
                return
            self._cache[key] = data
            self._cache.move_to_end(key)
            while len(self._cache) > self.config.cache_size:
                self._cache.popitem(last=False)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_client(self) -> None:
        if not self.configured:
            raise StorageNotConfiguredError("Screenshot storage is not configured (bucket and credentials required)")

    def _download(self, url: str, label: str) -> bytes:
        try:
            response = self._http.get(url, timeout=self.config.fetch_timeout_seconds)
        except requests.RequestException as exc:
            raise ScreenshotFetchError(f"Download failed for {label}: {exc}") from exc

        if response.status_code != 200:
            raise ScreenshotFetchError(f"HTTP {response.status_code}: {response.reason} ({label})")

        logger.debug(f"Fetched {label}: {len(response.content)} bytes")
        return response.content


def _describe_client_error(code: Optional[str], bucket: str, raw: str) -> CredentialCheck:
    if code in {"NoSuchBucket", "404", "NotFound"}:
        return CredentialCheck(False, f"Bucket '{bucket}' does not exist", "Verify the bucket name and region are correct")
    if code == "InvalidAccessKeyId":
        return CredentialCheck(False, "Invalid AWS Access Key ID", "Check that the access key ID is correct")
    if code == "SignatureDoesNotMatch":
        return CredentialCheck(False, "Invalid AWS Secret Access Key", "Check that the secret access key is correct")
    if code in {"AccessDenied", "Forbidden", "403"}:
        return CredentialCheck(False, "Access denied to bucket", "Your credentials lack s3:HeadBucket permission")
    if code in {"ExpiredToken", "ExpiredTokenException"}:
        return CredentialCheck(False, "Session token has expired", "Generate new SSO credentials")
    return CredentialCheck(False, "Invalid credentials or bucket access denied", raw)
