"""Ordered frame and audio sample reading from a local video file.

Video frames are decoded with OpenCV as upright BGR arrays. Audio is never
decoded: ffmpeg demuxes the source packets into a Matroska stream on a pipe,
which is read in fixed-size slices once the pipeline starts draining it.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import cv2

from smashcut.core.config import EncoderConfig
from smashcut.core.errors import ReaderSetupFailed
from smashcut.core.models import AudioSample, Frame, VideoAsset
from smashcut.media.probe import probe


class AssetReader:
    """Pulls timestamped frames and audio samples from one input file.

    Frame timestamps are non-decreasing in read order. Call close() (or use
    as a context manager) to release the decoder and the audio pipe.
    """

    def __init__(self, asset: VideoAsset, config: EncoderConfig | None = None) -> None:
        self.asset = asset
        self.config = config or EncoderConfig()
        self._capture: cv2.VideoCapture | None = None
        self._audio_proc: subprocess.Popen | None = None
        self._frame_index = 0
        self._last_pts = 0.0
        self._audio_bytes_read = 0
        self._audio_done = not asset.has_audio

    def start(self) -> None:
        """Open the video decoder.

        Raises:
            ReaderSetupFailed: If OpenCV cannot open the file.
        """
        capture = cv2.VideoCapture(str(self.asset.path))
        if not capture.isOpened():
            capture.release()
            raise ReaderSetupFailed(f"Failed to set up video reader for {self.asset.path}")
        # Frame size in the asset already accounts for display rotation
        capture.set(cv2.CAP_PROP_ORIENTATION_AUTO, 1)
        self._capture = capture

    def next_video_sample(self) -> Frame | None:
        """Return the next decoded frame, or None once the track is exhausted."""
        if self._capture is None:
            return None
        ok, image = self._capture.read()
        if not ok or image is None:
            return None

        reported = self._capture.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
        if self._frame_index > 0 and reported <= 0:
            # Some backends report 0 for every frame
            reported = self._frame_index / self.asset.frame_rate
        pts = max(reported, self._last_pts)

        self._frame_index += 1
        self._last_pts = pts
        return Frame(image=image, pts=pts)

    def _start_audio(self) -> subprocess.Popen:
        cmd = [
            self.config.ffmpeg_path,
            "-v",
            "error",
            "-i",
            str(self.asset.path),
            "-map",
            "0:a:0",
            "-c:a",
            "copy",
            "-f",
            "matroska",
            "pipe:1",
        ]
        try:
            return subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise ReaderSetupFailed(f"ffmpeg could not be started: {e}") from e

    def next_audio_sample(self) -> AudioSample | None:
        """Return the next slice of the audio stream, or None once it is exhausted."""
        if self._audio_done:
            return None
        if self._audio_proc is None:
            self._audio_proc = self._start_audio()

        assert self._audio_proc.stdout is not None
        data = self._audio_proc.stdout.read(self.config.audio_chunk_bytes)
        if not data:
            self._audio_done = True
            self._stop_audio()
            return None

        sample = AudioSample(data=data, offset=self._audio_bytes_read)
        self._audio_bytes_read += len(data)
        return sample

    def _stop_audio(self) -> None:
        if self._audio_proc is None:
            return
        if self._audio_proc.poll() is None:
            self._audio_proc.kill()
        self._audio_proc.wait()
        if self._audio_proc.stdout is not None:
            self._audio_proc.stdout.close()
        self._audio_proc = None

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        self._stop_audio()

    def __enter__(self) -> AssetReader:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def open_for_read(path: Path, config: EncoderConfig | None = None) -> AssetReader:
    """Read the input with ffprobe and open a started reader for it.

    Raises:
        InvalidAsset: If the file is missing or has no video track.
        ReaderSetupFailed: If the decoders cannot be started.
    """
    asset = probe(Path(path), config)
    reader = AssetReader(asset, config)
    reader.start()
    return reader
