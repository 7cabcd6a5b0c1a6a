"""Shared data models for the media transforms."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np


@dataclass(frozen=True)
class AudioFormat:
    """Source audio track as ffprobe reports it. Its packets are copied, never decoded."""

    sample_rate: int
    channels: int
    codec: str = "aac"


@dataclass(frozen=True)
class VideoAsset:
    """Read-only description of an input file, derived when a transform starts."""

    path: Path
    duration: float  # seconds
    width: int
    height: int
    frame_rate: float
    audio: AudioFormat | None = None

    @property
    def has_audio(self) -> bool:
        return self.audio is not None

    @property
    def total_frames(self) -> float:
        """Expected frame count, never below 1 so progress can divide by it."""
        return max(1.0, self.duration * self.frame_rate)


@dataclass
class Frame:
    """A decoded BGR image and its presentation timestamp in seconds."""

    image: np.ndarray
    pts: float

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]


@dataclass
class AudioSample:
    """A slice of the source audio stream, still compressed and framed in Matroska.

    Slices are handed to the writer in order and concatenated unmodified.
    """

    data: bytes
    offset: int  # byte position of ``data`` within the stream


@dataclass
class Background:
    """Substitute background: a still image, a video, or nothing (solid black)."""

    path: Path | None = None
    is_video: bool = False


@dataclass
class CaptionCue:
    """A single timed span of text, usually one word."""

    text: str
    start: float  # seconds
    end: float  # seconds


@dataclass
class SubtitleChunk:
    """Contiguous merge of one or more cues, shown as one subtitle block."""

    text: str
    start: float
    end: float


@dataclass(frozen=True)
class TransformResult:
    """Output of a finished transform. Only built after a successful finalize."""

    output_path: Path
    frames_written: int
    frames_passed_through: int = 0
