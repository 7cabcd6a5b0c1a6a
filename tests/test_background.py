"""Tests for substitute backgrounds."""

import cv2
import numpy as np
import pytest

from smashcut.core.models import Background
from smashcut.media.background import (
    StaticBackground,
    VideoBackground,
    fit_to_frame,
    load_background,
    solid_black,
)


@pytest.fixture
def background_video(tmp_path):
    """Three gray frames (0, 120, 240) at 10 fps."""
    path = tmp_path / "bg.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (32, 32))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG")
    for value in (0, 120, 240):
        writer.write(np.full((32, 32, 3), value, dtype=np.uint8))
    writer.release()
    return path


def test_solid_black():
    image = solid_black(8, 4)
    assert image.shape == (4, 8, 3)
    assert image.dtype == np.uint8
    assert not image.any()


class TestFitToFrame:
    def test_resizes(self):
        image = np.zeros((10, 20, 3), dtype=np.uint8)
        assert fit_to_frame(image, 8, 4).shape == (4, 8, 3)

    def test_converts_gray_and_alpha(self):
        assert fit_to_frame(np.zeros((4, 8), dtype=np.uint8), 8, 4).shape == (4, 8, 3)
        assert fit_to_frame(np.zeros((4, 8, 4), dtype=np.uint8), 8, 4).shape == (4, 8, 3)


class TestLoadBackground:
    def test_none_is_black(self):
        source = load_background(None, 8, 4)
        assert isinstance(source, StaticBackground)
        assert not source.frame_at(0.0).any()

    def test_image_scaled_to_frame(self, tmp_path):
        path = tmp_path / "bg.png"
        cv2.imwrite(str(path), np.full((50, 100, 3), 77, dtype=np.uint8))
        source = load_background(Background(path=path), 20, 10)
        image = source.frame_at(3.0)
        assert image.shape == (10, 20, 3)
        assert (image == 77).all()

    def test_missing_image_falls_back_to_black(self, tmp_path):
        source = load_background(Background(path=tmp_path / "missing.png"), 8, 4)
        assert isinstance(source, StaticBackground)
        assert not source.frame_at(0.0).any()

    def test_missing_video_falls_back_to_black(self, tmp_path):
        source = load_background(Background(path=tmp_path / "missing.mp4", is_video=True), 8, 4)
        assert isinstance(source, StaticBackground)

    def test_video_background(self, background_video):
        source = load_background(Background(path=background_video, is_video=True), 16, 12)
        assert isinstance(source, VideoBackground)
        assert source.frame_at(0.0).shape == (12, 16, 3)
        source.close()


class TestVideoBackground:
    def _level(self, image) -> float:
        return float(image.mean())

    def test_sample_and_hold(self, background_video):
        source = VideoBackground(background_video, 32, 24)
        assert self._level(source.frame_at(0.0)) == pytest.approx(0, abs=20)
        assert self._level(source.frame_at(0.05)) == pytest.approx(0, abs=20)
        assert self._level(source.frame_at(0.15)) == pytest.approx(120, abs=20)
        assert self._level(source.frame_at(0.25)) == pytest.approx(240, abs=20)
        source.close()

    def test_loops(self, background_video):
        source = VideoBackground(background_video, 32, 24)
        source.frame_at(0.25)
        assert self._level(source.frame_at(0.31)) == pytest.approx(0, abs=20)
        assert self._level(source.frame_at(0.45)) == pytest.approx(120, abs=20)
        source.close()

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.mp4"
        path.write_bytes(b"not a video")
        with pytest.raises(OSError):
            VideoBackground(path, 8, 4)
