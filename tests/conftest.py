"""Shared fixtures: in-memory stand-ins for the media reader and writer."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from smashcut.core.models import AudioFormat, AudioSample, Frame, VideoAsset
from smashcut.media.writer import FinalizeResult


def _solid_frames(count: int, width: int = 16, height: int = 12, fps: float = 10.0) -> list[Frame]:
    """Distinct solid-color frames at a constant rate."""
    return [
        Frame(image=np.full((height, width, 3), 10 + i, dtype=np.uint8), pts=i / fps)
        for i in range(count)
    ]


class FakeReader:
    def __init__(self, asset: VideoAsset, frames: list[Frame], audio=None):
        self.asset = asset
        self._frames = list(frames)
        self._audio = list(audio or [])
        self.closed = False

    def next_video_sample(self) -> Frame | None:
        return self._frames.pop(0) if self._frames else None

    def next_audio_sample(self) -> AudioSample | None:
        return self._audio.pop(0) if self._audio else None

    def close(self) -> None:
        self.closed = True


class FakeWriter:
    def __init__(self, output_path: Path, frame_rate: float, finalize_result=None):
        self.output_path = output_path
        self.frame_rate = frame_rate
        self.finalize_result = finalize_result or FinalizeResult(ok=True)
        self.frames: list[Frame] = []
        self.audio: list[AudioSample] = []
        self.started = False
        self.video_finished = False
        self.audio_finished = False
        self.finalized = False
        self.aborted = False

    def start(self) -> None:
        self.started = True

    def is_ready_for_video_write(self) -> bool:
        return not self.video_finished

    def is_ready_for_audio_write(self) -> bool:
        return not self.audio_finished

    def wait_for_video_ready(self, cancel=None) -> bool:
        return not (cancel is not None and cancel.cancelled)

    def wait_for_audio_ready(self, cancel=None) -> bool:
        return not (cancel is not None and cancel.cancelled)

    def append_video(self, frame: Frame) -> None:
        self.frames.append(Frame(image=frame.image.copy(), pts=frame.pts))

    def append_audio(self, sample: AudioSample) -> None:
        self.audio.append(sample)

    def mark_video_finished(self) -> None:
        self.video_finished = True

    def mark_audio_finished(self) -> None:
        self.audio_finished = True

    def finalize(self) -> FinalizeResult:
        self.finalized = True
        return self.finalize_result

    def abort(self) -> None:
        self.aborted = True


class FakeMedia:
    """Factories handing out one FakeReader / FakeWriter per run."""

    def __init__(self, asset: VideoAsset, frames: list[Frame], audio=None, finalize_result=None):
        self.reader = FakeReader(asset, frames, audio)
        self.finalize_result = finalize_result
        self.writer: FakeWriter | None = None

    def reader_factory(self, path, config=None) -> FakeReader:
        return self.reader

    def writer_factory(self, output_path, asset, frame_rate, config=None) -> FakeWriter:
        self.writer = FakeWriter(output_path, frame_rate, self.finalize_result)
        return self.writer


@pytest.fixture
def make_frames():
    """Factory for distinct solid-color frames: make_frames(count, width, height, fps)."""
    return _solid_frames


@pytest.fixture
def media_factory():
    """Factory for FakeMedia: media_factory(asset, frames, audio=None, finalize_result=None)."""
    return FakeMedia


@pytest.fixture
def asset() -> VideoAsset:
    """One second of 16x12 video at 10 fps with stereo audio."""
    return VideoAsset(
        path=Path("input.mp4"),
        duration=1.0,
        width=16,
        height=12,
        frame_rate=10.0,
        audio=AudioFormat(sample_rate=48000, channels=2),
    )


@pytest.fixture
def audio_samples() -> list[AudioSample]:
    return [AudioSample(data=bytes([i]) * 16, offset=i * 16) for i in range(3)]


@pytest.fixture
def media(asset, audio_samples) -> FakeMedia:
    return FakeMedia(asset, _solid_frames(10), audio_samples)
