"""
Storage Module
==============

Screenshot retrieval from S3 and rendering with OpenCV.

Components:
    - ScreenshotStore: Presigned downloads with an LRU cache
    - parse_export_credentials: Parse pasted ``export AWS_...`` blocks
    - decode_image / draw_bounding_boxes / placeholder_image / encode_png
"""

from screenshot_debugger.storage.s3_client import (
    AwsCredentials,
    CredentialCheck,
    ObjectMetadata,
    ScreenshotFetchError,
    ScreenshotStore,
    StorageNotConfiguredError,
    parse_export_credentials,
)
from screenshot_debugger.storage.imaging import (
    BOX_PALETTE,
    ImageDecodeError,
    decode_image,
    draw_bounding_boxes,
    encode_png,
    placeholder_image,
    to_rgb,
)

__all__ = [
    "AwsCredentials",
    "CredentialCheck",
    "ObjectMetadata",
    "ScreenshotFetchError",
    "ScreenshotStore",
    "StorageNotConfiguredError",
    "parse_export_credentials",
    "BOX_PALETTE",
    "ImageDecodeError",
    "decode_image",
    "draw_bounding_boxes",
    "encode_png",
    "placeholder_image",
    "to_rgb",
]
