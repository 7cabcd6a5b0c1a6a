"""Caption burn-in: timed text overlays with fades, rendered at a fixed rate.

Every output frame is rendered at ``t = n / render_fps``. It shows the
latest source frame at or before ``t`` with each cue's overlay blended on
top at ``caption_opacity(t)``, stacked in cue order. Source audio is copied
into the export unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from smashcut.captions.overlay import CaptionLayer, blend_layer, render_caption_layer
from smashcut.core.config import SmashcutConfig
from smashcut.core.errors import (
    ExportFailed,
    InvalidAsset,
    SmashcutError,
    TransformCancelled,
    WriterSetupFailed,
)
from smashcut.core.events import EventCallback, PipelineEvent
from smashcut.core.models import CaptionCue, Frame, TransformResult, VideoAsset
from smashcut.core.worker import CancellationToken
from smashcut.media.reader import open_for_read
from smashcut.segmentation.pipeline import MAX_PROGRESS_BEFORE_FINALIZE, default_writer

FADE_SECONDS = 0.1
RENDER_FPS = 30


def _check_cancel(cancel: CancellationToken | None) -> None:
    if cancel is not None and cancel.cancelled:
        raise TransformCancelled("Caption export cancelled")


def caption_opacity(t: float, start: float, end: float, fade: float = FADE_SECONDS) -> float:
    """Opacity of a cue's overlay at render time ``t``.

    0 before ``start`` and from ``end`` on, a linear fade-in over the first
    ``fade`` seconds and a fade-out over the last ``fade`` seconds. On cues
    shorter than two fades the ramps overlap and the lower one wins.
    """
    if t < start or t >= end:
        return 0.0
    if fade <= 0:
        return 1.0
    fade_in = (t - start) / fade
    fade_out = (end - t) / fade
    return max(0.0, min(1.0, fade_in, fade_out))


class LiveCaptionLayers:
    """Rasterizes each cue's overlay when the cue starts and frees it when it ends.

    Render times must be non-decreasing. Only cues whose span contains the
    current time hold a layer, so memory follows the number of overlapping
    cues rather than the length of the script.
    """

    def __init__(self, cues: list[CaptionCue], render: Callable[[str], CaptionLayer]) -> None:
        self.cues = cues
        self._render = render
        self._order = sorted(range(len(cues)), key=lambda i: cues[i].start)
        self._next = 0
        self._live: dict[int, CaptionLayer] = {}
        self.peak = 0

    def __len__(self) -> int:
        return len(self._live)

    def at(self, t: float) -> list[tuple[CaptionCue, CaptionLayer]]:
        """Cues showing at ``t`` with their layers, in cue order."""
        while self._next < len(self._order) and self.cues[self._order[self._next]].start <= t:
            index = self._order[self._next]
            self._next += 1
            if self.cues[index].end > t:
                self._live[index] = self._render(self.cues[index].text)
        for index in [i for i in self._live if self.cues[i].end <= t]:
            del self._live[index]
        self.peak = max(self.peak, len(self._live))
        return [(self.cues[i], self._live[i]) for i in sorted(self._live)]


class CaptionRenderer:
    """Burns caption cues into a video and exports the result."""

    def __init__(
        self,
        config: SmashcutConfig | None = None,
        reader_factory: Callable = open_for_read,
        writer_factory: Callable = default_writer,
    ) -> None:
        self.config = config or SmashcutConfig()
        self.reader_factory = reader_factory
        self.writer_factory = writer_factory

    @property
    def render_fps(self) -> int:
        return self.config.captions.render_fps

    def opacity(self, t: float, cue: CaptionCue) -> float:
        return caption_opacity(t, cue.start, cue.end, self.config.captions.fade_seconds)

    def output_frame_count(self, asset: VideoAsset) -> int:
        return max(1, round(asset.duration * self.render_fps))

    def render(
        self,
        input_path: Path,
        cues: list[CaptionCue],
        output_path: Path,
        on_event: EventCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransformResult:
        """Render ``cues`` over ``input_path`` into ``output_path``.

        Raises:
            InvalidAsset: The source has no video track.
            ExportFailed: The export could not be set up or finalized.
            TransformCancelled: ``cancel`` was set before the export finished.
        """
        output_path = Path(output_path)
        progress = 0.0

        def emit(stage: str, value: float, message: str, data: dict | None = None) -> None:
            nonlocal progress
            progress = max(progress, value)
            if on_event:
                on_event(PipelineEvent(stage=stage, progress=progress, message=message, data=data))

        try:
            reader = self.reader_factory(Path(input_path), self.config.encoder)
        except InvalidAsset:
            raise
        except SmashcutError as e:
            raise ExportFailed(str(e)) from e

        try:
            asset: VideoAsset = reader.asset
            try:
                writer = self.writer_factory(
                    output_path, asset, float(self.render_fps), self.config.encoder
                )
                writer.start()
            except WriterSetupFailed as e:
                raise ExportFailed(f"Could not create export session: {e}") from e

            try:
                frames = self._render_frames(reader, writer, asset, cues, emit, cancel)
                self._copy_audio(reader, writer, asset, emit, cancel)
                emit("finalize", progress, "Finalizing export...")
                result = writer.finalize()
                if not result.ok:
                    raise ExportFailed(result.message or "Unknown export error")
            except BaseException:
                writer.abort()
                raise
        finally:
            reader.close()

        emit("done", 1.0, "Captions burned in", data={"output": str(output_path)})
        return TransformResult(output_path=output_path, frames_written=frames)

    def _layers(self, cues: list[CaptionCue], asset: VideoAsset) -> LiveCaptionLayers:
        style = self.config.captions
        return LiveCaptionLayers(
            cues, lambda text: render_caption_layer(text, asset.width, asset.height, style)
        )

    def _render_frames(self, reader, writer, asset, cues, emit, cancel) -> int:
        layers = self._layers(cues, asset)
        total = self.output_frame_count(asset)
        emit("captions", 0.0, "Burning captions...")

        current: Frame | None = reader.next_video_sample()
        if current is None:
            raise ExportFailed(f"No frames could be decoded from {asset.path}")
        pending = reader.next_video_sample()

        for n in range(total):
            _check_cancel(cancel)

            t = n / self.render_fps
            # Sample-and-hold: latest source frame with pts <= t
            while pending is not None and pending.pts <= t:
                current, pending = pending, reader.next_video_sample()

            image = current.image.copy()
            for cue, layer in layers.at(t):
                blend_layer(image, layer, self.opacity(t, cue))

            if not writer.is_ready_for_video_write() and not writer.wait_for_video_ready(cancel):
                _check_cancel(cancel)
            writer.append_video(Frame(image=image, pts=t))
            emit("captions", min(MAX_PROGRESS_BEFORE_FINALIZE, (n + 1) / total), f"Frame {n + 1}")
        return total

    def _copy_audio(self, reader, writer, asset, emit, cancel) -> None:
        writer.mark_video_finished()
        if asset.has_audio:
            emit("audio", 0.0, "Copying audio...")
            while True:
                _check_cancel(cancel)
                sample = reader.next_audio_sample()
                if sample is None:
                    break
                if not writer.is_ready_for_audio_write() and not writer.wait_for_audio_ready(
                    cancel
                ):
                    _check_cancel(cancel)
                writer.append_audio(sample)
        writer.mark_audio_finished()


def burn_captions(
    input_path: Path,
    cues: list[CaptionCue],
    output_path: Path,
    config: SmashcutConfig | None = None,
    on_event: EventCallback | None = None,
    cancel: CancellationToken | None = None,
) -> TransformResult:
    """Run a CaptionRenderer once with the default file-based reader and writer."""
    return CaptionRenderer(config).render(
        input_path, cues, output_path, on_event=on_event, cancel=cancel
    )
