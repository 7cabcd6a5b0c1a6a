"""Background replacement: reader -> segmentation -> compositor -> writer.

The frame loop is strictly sequential. One frame is read, segmented,
composited and handed to the writer before the next one is read, so output
order equals input order and only one frame is ever in flight. A frame
whose segmentation fails is written unmodified; that never fails the job.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np

from smashcut.core.config import EncoderConfig, SmashcutConfig
from smashcut.core.errors import TransformCancelled, WriterFinalizeFailed
from smashcut.core.events import EventCallback, PipelineEvent
from smashcut.core.models import Background, Frame, TransformResult, VideoAsset
from smashcut.core.worker import CancellationToken
from smashcut.media.background import load_background
from smashcut.media.reader import open_for_read
from smashcut.media.writer import AssetWriter
from smashcut.segmentation.compositor import compose, resample_mask
from smashcut.segmentation.engine import SegmentationEngine, create_engine

MAX_PROGRESS_BEFORE_FINALIZE = 0.95


class PipelineState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    INFERRING = "inferring"
    COMPOSITING = "compositing"
    WRITING = "writing"
    DRAINING_AUDIO = "draining_audio"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


def default_writer(
    output_path: Path, asset: VideoAsset, frame_rate: float, config: EncoderConfig
) -> AssetWriter:
    """Writer matching the input's frame size and audio layout."""
    return AssetWriter(
        output_path,
        width=asset.width,
        height=asset.height,
        frame_rate=frame_rate,
        audio=asset.audio,
        config=config,
    )


class SegmentationPipeline:
    """One background-replacement run. Owned by the worker thread running it.

    Reader, writer and background are created through factories so tests
    (or other media backends) can substitute them.
    """

    def __init__(
        self,
        config: SmashcutConfig | None = None,
        engine: SegmentationEngine | None = None,
        reader_factory: Callable = open_for_read,
        writer_factory: Callable = default_writer,
        background_loader: Callable = load_background,
    ) -> None:
        self.config = config or SmashcutConfig()
        self.engine = engine
        self.reader_factory = reader_factory
        self.writer_factory = writer_factory
        self.background_loader = background_loader
        self.state = PipelineState.IDLE
        self.progress = 0.0
        self.frames_written = 0
        self.frames_passed_through = 0

    def run(
        self,
        input_path: Path,
        output_path: Path,
        background: Background | None = None,
        on_event: EventCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransformResult:
        """Replace the background of ``input_path`` and write ``output_path``.

        Raises:
            InvalidAsset: The input has no video track.
            ReaderSetupFailed / WriterSetupFailed: Decoder or encoder failed to start.
            WriterFinalizeFailed: The output could not be finalized.
            TransformCancelled: ``cancel`` was set before the job finished.
        """
        output_path = Path(output_path)

        def emit(stage: str, progress: float, message: str, data: dict | None = None) -> None:
            self.progress = progress
            if on_event:
                on_event(PipelineEvent(stage=stage, progress=progress, message=message, data=data))

        self.state = PipelineState.READING
        try:
            reader = self.reader_factory(Path(input_path), self.config.encoder)
        except Exception:
            self.state = PipelineState.FAILED
            raise

        try:
            asset: VideoAsset = reader.asset
            engine = self.engine or create_engine(self.config.segmentation)
            writer = self.writer_factory(output_path, asset, asset.frame_rate, self.config.encoder)
            writer.start()
            try:
                source = self.background_loader(background, asset.width, asset.height)
                try:
                    self._process(reader, writer, engine, source, asset, emit, cancel)
                finally:
                    source.close()
            except BaseException:
                writer.abort()
                raise
        except TransformCancelled:
            self.state = PipelineState.CANCELLED
            raise
        except Exception:
            self.state = PipelineState.FAILED
            raise
        finally:
            reader.close()

        self.state = PipelineState.DONE
        emit(
            "done",
            1.0,
            "Background replaced",
            data={"output": str(output_path), "passed_through": self.frames_passed_through},
        )
        return TransformResult(
            output_path=output_path,
            frames_written=self.frames_written,
            frames_passed_through=self.frames_passed_through,
        )

    def _check_cancel(self, cancel: CancellationToken | None) -> None:
        if cancel is not None and cancel.cancelled:
            raise TransformCancelled("Background replacement cancelled")

    def _transform(self, engine: SegmentationEngine, frame: Frame, source) -> np.ndarray:
        """Composite one frame, or return it untouched if segmentation fails."""
        try:
            self.state = PipelineState.INFERRING
            mask = engine.segment(frame.image)
            self.state = PipelineState.COMPOSITING
            mask = resample_mask(mask, frame.width, frame.height)
            return compose(frame.image, mask, source.frame_at(frame.pts))
        except Exception:
            self.frames_passed_through += 1
            return frame.image

    def _process(self, reader, writer, engine, source, asset, emit, cancel) -> None:
        total_frames = asset.total_frames
        emit("segment", 0.0, "Replacing background...")

        frame_index = 0
        while True:
            self._check_cancel(cancel)
            self.state = PipelineState.READING
            frame = reader.next_video_sample()
            if frame is None:
                break

            if not writer.is_ready_for_video_write() and not writer.wait_for_video_ready(cancel):
                self._check_cancel(cancel)

            image = self._transform(engine, frame, source)
            self.state = PipelineState.WRITING
            writer.append_video(Frame(image=image, pts=frame.pts))

            frame_index += 1
            self.frames_written = frame_index
            progress = min(MAX_PROGRESS_BEFORE_FINALIZE, frame_index / total_frames)
            emit("segment", max(progress, self.progress), f"Frame {frame_index}")

        self.state = PipelineState.DRAINING_AUDIO
        if asset.has_audio:
            emit("audio", self.progress, "Copying audio...")
            while True:
                self._check_cancel(cancel)
                sample = reader.next_audio_sample()
                if sample is None:
                    break
                if not writer.is_ready_for_audio_write() and not writer.wait_for_audio_ready(
                    cancel
                ):
                    self._check_cancel(cancel)
                writer.append_audio(sample)
        writer.mark_audio_finished()
        writer.mark_video_finished()

        self.state = PipelineState.FINALIZING
        emit("finalize", self.progress, "Finalizing...")
        result = writer.finalize()
        if not result.ok:
            raise WriterFinalizeFailed(result.message or "Writer failed without a message")


def replace_background(
    input_path: Path,
    output_path: Path,
    background: Background | None = None,
    config: SmashcutConfig | None = None,
    engine: SegmentationEngine | None = None,
    on_event: EventCallback | None = None,
    cancel: CancellationToken | None = None,
) -> TransformResult:
    """Run a SegmentationPipeline once with the default file-based reader and writer."""
    pipeline = SegmentationPipeline(config=config, engine=engine)
    return pipeline.run(input_path, output_path, background, on_event=on_event, cancel=cancel)
