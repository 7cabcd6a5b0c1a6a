"""Substitute backgrounds for the segmentation pipeline.

A background source hands out one BGR image per foreground timestamp,
already scaled to the frame size so the compositor never resamples.
"""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from smashcut.core.models import Background
from smashcut.utils.console import console

_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tif", ".tiff")


def solid_black(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def fit_to_frame(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Stretch an image to exactly width x height (BGR, uint8)."""
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.shape[:2] != (height, width):
        image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    return image


class StaticBackground:
    """The same pre-scaled image for every frame."""

    def __init__(self, image: np.ndarray) -> None:
        self.image = image

    def frame_at(self, t: float) -> np.ndarray:
        return self.image

    def close(self) -> None:
        pass


class VideoBackground:
    """Background video sampled at the foreground's timestamps.

    Holds each background frame until the foreground passes the next one's
    timestamp, and loops back to the start when the background runs out.
    """

    def __init__(self, path: Path, width: int, height: int) -> None:
        self.path = Path(path)
        self.width = width
        self.height = height
        self._capture = cv2.VideoCapture(str(self.path))
        if not self._capture.isOpened():
            raise OSError(f"Cannot open background video: {self.path}")
        fps = self._capture.get(cv2.CAP_PROP_FPS)
        self._frame_rate = fps if fps and fps > 0 else 30.0
        self._loop_offset = 0.0
        self._index = 0
        self._current = self._read()
        if self._current is None:
            self.close()
            raise OSError(f"Background video has no frames: {self.path}")
        self._pending = self._read()
        self._pending_pts = self._index_pts(1)

    def _index_pts(self, index: int) -> float:
        return self._loop_offset + index / self._frame_rate

    def _read(self) -> np.ndarray | None:
        ok, image = self._capture.read()
        if not ok or image is None:
            return None
        return fit_to_frame(image, self.width, self.height)

    def _rewind(self) -> None:
        """Restart the background after its last frame."""
        self._loop_offset = self._pending_pts
        self._capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
        self._index = -1  # pending holds frame 0 of the next loop
        self._pending = self._read()

    def frame_at(self, t: float) -> np.ndarray:
        while True:
            if self._pending is None:
                self._rewind()
                if self._pending is None:
                    break
            if self._pending_pts > t:
                break
            self._current = self._pending
            self._index += 1
            self._pending = self._read()
            self._pending_pts = self._index_pts(self._index + 1)
        return self._current

    def close(self) -> None:
        self._capture.release()


def load_background(
    background: Background | None, width: int, height: int
) -> StaticBackground | VideoBackground:
    """Open the configured background, falling back to solid black.

    A missing or unreadable background is not fatal: the speaker is
    composited onto black and a warning is printed.
    """
    if background is None or background.path is None:
        return StaticBackground(solid_black(width, height))

    path = Path(background.path)
    is_video = background.is_video or path.suffix.lower() not in _IMAGE_EXTENSIONS
    try:
        if is_video:
            return VideoBackground(path, width, height)
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise OSError(f"Cannot read background image: {path}")
        return StaticBackground(fit_to_frame(image, width, height))
    except OSError as e:
        console.print(f"[yellow]Background unavailable, using black:[/yellow] {e}")
        return StaticBackground(solid_black(width, height))
