"""
Screenshot Rendering
====================

Decoding, annotation and encoding of screenshot images with OpenCV.

Design Rules:
    - This is the ONLY place in the codebase that decodes images
    - Images are BGR np.ndarray (H, W, 3), dtype=uint8
    - Fails fast on corrupt bytes with ImageDecodeError
    - Annotation never mutates its input; a copy is drawn on

Bounding boxes are drawn in detection order, cycling through a fixed
palette, with the game label and confidence above each box.
"""

import logging
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from screenshot_debugger.models import DetectedGame


logger = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """Raised when image decoding fails."""
    pass


# BGR; blue, violet, green, amber, red
BOX_PALETTE: Tuple[Tuple[int, int, int], ...] = (
    (255, 158, 74),
    (231, 92, 107),
    (94, 197, 34),
    (11, 158, 245),
    (68, 68, 239),
)

_FONT = cv2.FONT_HERSHEY_SIMPLEX


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (PNG, JPEG, ...) to a BGR array.

    Args:
        data: Encoded image bytes

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If the bytes are empty or not a decodable image
    """
    if not data:
        raise ImageDecodeError("Empty image payload")

    nparr = np.frombuffer(data, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ImageDecodeError(f"Failed to decode image ({len(data)} bytes): cv2.imdecode returned None")

    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    return bgr


def draw_bounding_boxes(image: np.ndarray, games: Iterable[DetectedGame]) -> np.ndarray:
    """
    Draw detection boxes with labels onto a copy of the image.

    Games without a bounding box are skipped but still advance the palette,
    so a game keeps its colour whether or not its neighbours have boxes.

    Args:
        image: BGR image
        games: Detected games, in detection order

    Returns:
        Annotated copy of the image
    """
    canvas = image.copy()
    height, width = canvas.shape[:2]

    for i, game in enumerate(games):
        if game.bounding_box is None:
            continue

        color = BOX_PALETTE[i % len(BOX_PALETTE)]
        x1, y1, x2, y2 = (int(round(v)) for v in game.bounding_box)
        x1, x2 = sorted((max(0, min(x1, width - 1)), max(0, min(x2, width - 1))))
        y1, y2 = sorted((max(0, min(y1, height - 1)), max(0, min(y2, height - 1))))

        cv2.rectangle(canvas, (x1, y1), (x2, y2), color, 3)

        label = f"{game.label} {game.confidence:.0%}"
        (text_w, text_h), baseline = cv2.getTextSize(label, _FONT, 0.5, 1)
        label_top = y1 - text_h - baseline - 6
        if label_top < 0:
            label_top = y1
        cv2.rectangle(
            canvas,
            (x1, label_top),
            (x1 + text_w + 10, label_top + text_h + baseline + 6),
            color,
            -1,
        )
        cv2.putText(
            canvas, label, (x1 + 5, label_top + text_h + 3),
            _FONT, 0.5, (255, 255, 255), 1, cv2.LINE_AA,
        )

    return canvas


def placeholder_image(
    message: str,
    detail: Optional[str] = None,
    size: Tuple[int, int] = (360, 640),
) -> np.ndarray:
    """
    Dark placeholder shown when a screenshot is unavailable.

    Args:
        message: Main line (e.g. "Screenshot unavailable")
        detail: Optional second line (e.g. the fetch error)
        size: (height, width) of the placeholder
    """
    height, width = size
    canvas = np.full((height, width, 3), 26, dtype=np.uint8)

    cv2.rectangle(canvas, (8, 8), (width - 9, height - 9), (70, 70, 70), 1)
    cv2.putText(
        canvas, message, (24, height // 2 - 10),
        _FONT, 0.8, (220, 220, 220), 2, cv2.LINE_AA,
    )
    if detail:
        max_chars = max(10, (width - 48) // 9)
        if len(detail) > max_chars:
            detail = detail[:max_chars - 3] + "..."
        cv2.putText(
            canvas, detail, (24, height // 2 + 24),
            _FONT, 0.5, (120, 120, 239), 1, cv2.LINE_AA,
        )
    return canvas


def encode_png(image: np.ndarray) -> bytes:
    """Encode a BGR image as PNG bytes."""
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise ImageDecodeError(f"Failed to encode image of shape {image.shape} as PNG")
    return buffer.tobytes()


def to_rgb(image: np.ndarray) -> np.ndarray:
    """BGR to RGB, for display libraries that expect RGB."""
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
