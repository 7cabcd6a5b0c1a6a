"""Encoded output with per-track backpressure.

Each track (video, audio) has a small bounded queue drained by its own
writer thread. The pipeline asks whether a track is ready, waits on a
condition variable until a slot frees up, and only then appends. With the
default depth of 1 there is never more than one frame in flight.

Video frames are piped to an ffmpeg encoder as raw BGR; audio samples are
spooled unmodified to a Matroska side file. finalize() muxes both into the
destination, copying the audio packets as they are, so the destination only
appears once everything succeeded.
"""

from __future__ import annotations

import queue
import shutil
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import BinaryIO, Callable

import numpy as np

from smashcut.core.config import EncoderConfig
from smashcut.core.errors import WriterSetupFailed
from smashcut.core.models import AudioFormat, AudioSample, Frame
from smashcut.utils.console import console

_END = object()


@dataclass(frozen=True)
class FinalizeResult:
    ok: bool
    message: str | None = None


def _tail(text: str, lines: int = 8) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class TrackInput:
    """Bounded hand-off between the pipeline thread and one writer thread."""

    def __init__(self, name: str, sink: Callable[[object], None], depth: int = 1) -> None:
        self.name = name
        self.error: str | None = None
        self._sink = sink
        self._queue: queue.Queue = queue.Queue(maxsize=max(1, depth))
        self._ready = threading.Condition()
        self._finished = False
        self._aborted = False
        self._thread = threading.Thread(
            target=self._drain, name=f"smashcut-{name}-writer", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def is_ready(self) -> bool:
        return not self._finished and not self._queue.full()

    def wait_until_ready(self, cancel=None, poll: float = 0.05) -> bool:
        """Block until a slot is free. Returns False if cancelled or finished first."""
        with self._ready:
            while not self.is_ready():
                if self._finished or (cancel is not None and cancel.cancelled):
                    return False
                self._ready.wait(timeout=poll)
        return True

    def append(self, item: object) -> None:
        if self._finished:
            raise RuntimeError(f"{self.name} track is already marked finished")
        self._queue.put(item)

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._queue.put(_END)
        with self._ready:
            self._ready.notify_all()

    def abort(self) -> None:
        self._aborted = True
        self.finish()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout)

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            with self._ready:
                self._ready.notify_all()
            if item is _END:
                break
            # Keep consuming after an error so the producer never blocks forever
            if self.error is not None or self._aborted:
                continue
            try:
                self._sink(item)
            except (OSError, ValueError) as e:
                self.error = f"{self.name} track: {e}"


class AssetWriter:
    """Writes a re-encoded video track plus an optional passthrough audio track.

    The audio codec is only changed when the output container cannot hold the
    source codec, in which case it is re-encoded with the configured codec.
    """

    def __init__(
        self,
        output_path: Path,
        width: int,
        height: int,
        frame_rate: float,
        audio: AudioFormat | None = None,
        config: EncoderConfig | None = None,
    ) -> None:
        self.output_path = Path(output_path)
        self.width = width
        self.height = height
        self.frame_rate = frame_rate
        self.audio = audio
        self.config = config or EncoderConfig()
        self.frames_written = 0

        self._workdir: Path | None = None
        self._encoder: subprocess.Popen | None = None
        self._log: BinaryIO | None = None
        self._audio_file: BinaryIO | None = None
        self._last_pts: float | None = None
        self._video = TrackInput("video", self._write_video, self.config.queue_depth)
        self._audio = TrackInput("audio", self._write_audio, self.config.queue_depth)

    # -- setup -------------------------------------------------------------

    def _encoder_command(self, video_tmp: Path) -> list[str]:
        rate = Fraction(self.frame_rate).limit_denominator(100000)
        return [
            self.config.ffmpeg_path,
            "-y",
            "-v",
            "error",
            "-f",
            "rawvideo",
            "-pix_fmt",
            "bgr24",
            "-s",
            f"{self.width}x{self.height}",
            "-r",
            f"{rate.numerator}/{rate.denominator}",
            "-i",
            "pipe:0",
            "-an",
            # yuv420p needs even dimensions
            "-vf",
            "pad=ceil(iw/2)*2:ceil(ih/2)*2",
            "-c:v",
            self.config.video_codec,
            "-preset",
            self.config.preset,
            "-crf",
            str(self.config.crf),
            "-pix_fmt",
            self.config.pixel_format,
            str(video_tmp),
        ]

    def start(self) -> None:
        """Delete any existing output and start the encoder.

        Raises:
            WriterSetupFailed: If the output can't be prepared or ffmpeg can't start.
        """
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.unlink(missing_ok=True)
            self._workdir = Path(
                tempfile.mkdtemp(prefix=".smashcut-", dir=self.output_path.parent)
            )
            self._log = open(self._workdir / "ffmpeg.log", "wb")
            if self.audio is not None:
                self._audio_file = open(self._workdir / "audio.mka", "wb")
            self._encoder = subprocess.Popen(
                self._encoder_command(self._workdir / "video.mp4"),
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=self._log,
            )
        except OSError as e:
            self._cleanup()
            raise WriterSetupFailed(f"Failed to set up video writer: {e}") from e

        self._video.start()
        if self.audio is not None:
            self._audio.start()

    # -- sinks (writer threads) ---------------------------------------------

    def _write_video(self, image: object) -> None:
        assert self._encoder is not None and self._encoder.stdin is not None
        self._encoder.stdin.write(np.ascontiguousarray(image).tobytes())

    def _write_audio(self, sample: object) -> None:
        assert self._audio_file is not None
        self._audio_file.write(sample.data)  # type: ignore[attr-defined]

    # -- backpressure gate ---------------------------------------------------

    def is_ready_for_video_write(self) -> bool:
        return self._video.is_ready()

    def is_ready_for_audio_write(self) -> bool:
        return self.audio is not None and self._audio.is_ready()

    def wait_for_video_ready(self, cancel=None) -> bool:
        return self._video.wait_until_ready(cancel, self.config.ready_poll_seconds)

    def wait_for_audio_ready(self, cancel=None) -> bool:
        if self.audio is None:
            return False
        return self._audio.wait_until_ready(cancel, self.config.ready_poll_seconds)

    # -- appends -------------------------------------------------------------

    def append_video(self, frame: Frame) -> None:
        image = frame.image
        if image.dtype != np.uint8 or image.shape != (self.height, self.width, 3):
            height, width = image.shape[:2]
            raise ValueError(
                f"Frame {width}x{height} {image.dtype} with shape {image.shape} does not match "
                f"writer {self.width}x{self.height} BGR uint8"
            )
        if self._last_pts is not None and frame.pts < self._last_pts:
            raise ValueError(f"Frame pts {frame.pts} is before previous pts {self._last_pts}")
        self._last_pts = frame.pts
        self._video.append(image)
        self.frames_written += 1

    def append_audio(self, sample: AudioSample) -> None:
        if self.audio is None:
            raise ValueError("Writer has no audio track")
        self._audio.append(sample)

    def mark_video_finished(self) -> None:
        self._video.finish()

    def mark_audio_finished(self) -> None:
        if self.audio is not None:
            self._audio.finish()

    # -- finalize ------------------------------------------------------------

    def _close_encoder(self) -> int:
        assert self._encoder is not None
        try:
            if self._encoder.stdin is not None:
                self._encoder.stdin.close()
        except OSError:
            pass  # broken pipe is reported through the exit code
        return self._encoder.wait()

    def _read_log(self) -> str:
        if self._workdir is None:
            return ""
        log_path = self._workdir / "ffmpeg.log"
        if not log_path.is_file():
            return ""
        return log_path.read_text(encoding="utf-8", errors="replace")

    def _has_audio_file(self) -> bool:
        assert self._workdir is not None
        audio_tmp = self._workdir / "audio.mka"
        return self.audio is not None and audio_tmp.is_file() and audio_tmp.stat().st_size > 0

    def _mux_command(self, copy_audio: bool = True) -> list[str]:
        assert self._workdir is not None
        cmd = [self.config.ffmpeg_path, "-y", "-v", "error", "-i", str(self._workdir / "video.mp4")]
        if self._has_audio_file():
            cmd += [
                "-i",
                str(self._workdir / "audio.mka"),
                "-map",
                "0:v:0",
                "-map",
                "1:a:0",
                "-c:v",
                "copy",
            ]
            if copy_audio:
                cmd += ["-c:a", "copy"]
            else:
                cmd += ["-c:a", self.config.audio_codec, "-b:a", self.config.audio_bitrate]
        else:
            cmd += ["-map", "0:v:0", "-c:v", "copy"]
        if self.output_path.suffix.lower() in (".mp4", ".mov", ".m4v"):
            cmd += ["-movflags", "+faststart"]
        cmd.append(str(self.output_path))
        return cmd

    def _mux(self) -> subprocess.CompletedProcess:
        result = subprocess.run(self._mux_command(), capture_output=True)
        if result.returncode != 0 and self._has_audio_file():
            codec = self.audio.codec if self.audio else "unknown"
            console.print(
                f"[yellow]{codec} audio can't be copied into {self.output_path.suffix}, "
                f"re-encoding as {self.config.audio_codec}[/yellow]"
            )
            result = subprocess.run(self._mux_command(copy_audio=False), capture_output=True)
        return result

    def finalize(self) -> FinalizeResult:
        """Close both tracks, wait for the encoder, and mux the output.

        The output path is removed again if anything fails.
        """
        self.mark_video_finished()
        self.mark_audio_finished()
        self._video.join()
        self._audio.join()

        try:
            returncode = self._close_encoder()
            self._close_files()

            track_error = self._video.error or self._audio.error
            if returncode != 0:
                return self._fail(
                    f"Video encoder exited with code {returncode}: {_tail(self._read_log())}"
                )
            if track_error:
                return self._fail(track_error)

            result = self._mux()
            if result.returncode != 0:
                stderr_msg = result.stderr.decode(errors="replace")
                return self._fail(f"Muxing failed: {_tail(stderr_msg)}")
            return FinalizeResult(ok=True)
        except OSError as e:
            return self._fail(str(e))
        finally:
            self._cleanup()

    def _fail(self, message: str) -> FinalizeResult:
        self.output_path.unlink(missing_ok=True)
        return FinalizeResult(ok=False, message=message)

    def abort(self) -> None:
        """Stop encoding and discard everything written so far."""
        if self._encoder is not None and self._encoder.poll() is None:
            self._encoder.kill()
        self._video.abort()
        self._audio.abort()
        self._video.join(timeout=5)
        self._audio.join(timeout=5)
        if self._encoder is not None:
            self._encoder.wait()
        self._close_files()
        self._cleanup()
        self.output_path.unlink(missing_ok=True)

    def _close_files(self) -> None:
        for handle in (self._audio_file, self._log):
            if handle is not None and not handle.closed:
                handle.close()

    def _cleanup(self) -> None:
        self._close_files()
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None
