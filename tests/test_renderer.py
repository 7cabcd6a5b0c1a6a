"""Tests for caption fades and the caption burn-in export."""

from pathlib import Path

import numpy as np
import pytest

from smashcut.captions.renderer import CaptionRenderer, LiveCaptionLayers, caption_opacity
from smashcut.core.config import CaptionConfig, SmashcutConfig
from smashcut.core.errors import (
    ExportFailed,
    InvalidAsset,
    ReaderSetupFailed,
    TransformCancelled,
    WriterSetupFailed,
)
from smashcut.core.models import CaptionCue, VideoAsset
from smashcut.core.worker import CancellationToken
from smashcut.media.writer import FinalizeResult


class TestCaptionOpacity:
    def test_short_cue_fades_consume_lifetime(self):
        """A 0.1s cue is invisible at both ends and never exceeds 1."""
        assert caption_opacity(0.0, 0.0, 0.1) == 0.0
        assert caption_opacity(0.1, 0.0, 0.1) == 0.0
        for i in range(101):
            value = caption_opacity(i / 1000, 0.0, 0.1)
            assert 0.0 <= value <= 1.0
        assert caption_opacity(0.05, 0.0, 0.1) == pytest.approx(0.5)

    def test_outside_cue(self):
        assert caption_opacity(0.99, 1.0, 3.0) == 0.0
        assert caption_opacity(3.0, 1.0, 3.0) == 0.0
        assert caption_opacity(5.0, 1.0, 3.0) == 0.0

    def test_fade_in_hold_fade_out(self):
        assert caption_opacity(1.05, 1.0, 3.0) == pytest.approx(0.5)
        assert caption_opacity(1.1, 1.0, 3.0) == pytest.approx(1.0)
        assert caption_opacity(2.0, 1.0, 3.0) == 1.0
        assert caption_opacity(2.95, 1.0, 3.0) == pytest.approx(0.5)

    def test_no_fade(self):
        assert caption_opacity(1.0, 1.0, 3.0, fade=0.0) == 1.0

    def test_renderer_uses_configured_fade(self):
        config = SmashcutConfig(captions=CaptionConfig(fade_seconds=0.5))
        renderer = CaptionRenderer(config)
        assert renderer.opacity(0.25, CaptionCue("hi", 0.0, 2.0)) == pytest.approx(0.5)


class TestLiveCaptionLayers:
    def _layers(self, cues):
        rendered = []

        def render(text):
            rendered.append(text)
            return text

        return LiveCaptionLayers(cues, render), rendered

    def test_long_script_keeps_few_layers(self):
        cues = [CaptionCue(f"w{i}", i * 0.4, (i + 1) * 0.4) for i in range(750)]
        layers, rendered = self._layers(cues)

        for n in range(301 * 30):
            showing = layers.at(n / 30)
            assert len(showing) <= 2

        assert layers.peak <= 2
        assert len(layers) == 0
        assert rendered == [c.text for c in cues]

    def test_layers_created_at_start_and_dropped_at_end(self):
        layers, rendered = self._layers([CaptionCue("a", 1.0, 2.0)])
        assert layers.at(0.5) == []
        assert rendered == []
        assert [c.text for c, _ in layers.at(1.0)] == ["a"]
        assert len(layers) == 1
        assert layers.at(2.0) == []
        assert len(layers) == 0

    def test_overlapping_cues_in_cue_order(self):
        cues = [CaptionCue("late", 0.5, 3.0), CaptionCue("early", 0.0, 2.0)]
        layers, _ = self._layers(cues)
        assert [c.text for c, _ in layers.at(1.0)] == ["late", "early"]

    def test_cue_between_render_times_is_skipped(self):
        layers, rendered = self._layers([CaptionCue("blink", 0.01, 0.02)])
        layers.at(0.0)
        layers.at(1 / 30)
        assert rendered == []


def _small_caption_config() -> SmashcutConfig:
    """A caption band that fits inside the 16x12 test frames."""
    return SmashcutConfig(
        captions=CaptionConfig(
            band_height=12, bottom_margin=0, font_size=10, shadow_radius=0, render_fps=30
        )
    )


def _renderer(media, config: SmashcutConfig | None = None) -> CaptionRenderer:
    return CaptionRenderer(
        config or _small_caption_config(),
        reader_factory=media.reader_factory,
        writer_factory=media.writer_factory,
    )


class TestCaptionRenderer:
    def test_renders_at_fixed_rate(self, media):
        result = _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"))

        assert media.writer.frame_rate == 30.0
        assert result.frames_written == 30
        assert len(media.writer.frames) == 30
        assert [f.pts for f in media.writer.frames[:3]] == [0.0, 1 / 30, 2 / 30]

    def test_holds_latest_source_frame(self, media, make_frames):
        """Source at 10 fps: output frame n shows source frame floor(n / 3)."""
        source = make_frames(10)
        _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"))

        for n, written in enumerate(media.writer.frames):
            t = n / 30
            expected = max(i for i, f in enumerate(source) if f.pts <= t + 1e-9)
            assert np.array_equal(written.image, source[expected].image)

    def test_caption_only_visible_during_cue(self, media, make_frames):
        source = make_frames(10)
        cues = [CaptionCue("WWW", 0.5, 1.0)]
        _renderer(media).render(Path("in.mp4"), cues, Path("out.mp4"))
        frames = media.writer.frames

        # Before the cue every frame is the untouched source frame
        for n in range(15):
            assert np.array_equal(frames[n].image, source[n // 3].image)
        # Fully faded in from t = 0.6
        assert not np.array_equal(frames[20].image, source[6].image)

    def test_audio_copied(self, media, audio_samples):
        _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"))
        assert [s.data for s in media.writer.audio] == [s.data for s in audio_samples]

    def test_progress_ends_at_one(self, media):
        events = []
        _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"), on_event=events.append)
        values = [e.progress for e in events]
        assert values == sorted(values)
        assert all(v <= 0.95 for v in values[:-1])
        assert values[-1] == 1.0

    def test_minimum_one_frame(self, media_factory, make_frames):
        asset = VideoAsset(path=Path("x.mp4"), duration=0.0, width=16, height=12, frame_rate=10.0)
        media = media_factory(asset, make_frames(1))
        result = _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"))
        assert result.frames_written == 1


class TestCaptionRendererFailures:
    def test_invalid_asset_propagates(self):
        def reader_factory(path, config=None):
            raise InvalidAsset("No video track")

        renderer = CaptionRenderer(reader_factory=reader_factory)
        with pytest.raises(InvalidAsset):
            renderer.render(Path("in.mp4"), [], Path("out.mp4"))

    def test_reader_setup_failure_is_export_failure(self):
        def reader_factory(path, config=None):
            raise ReaderSetupFailed("cannot decode")

        renderer = CaptionRenderer(reader_factory=reader_factory)
        with pytest.raises(ExportFailed, match="cannot decode"):
            renderer.render(Path("in.mp4"), [], Path("out.mp4"))

    def test_writer_setup_failure_is_export_failure(self, media):
        def writer_factory(output_path, asset, frame_rate, config=None):
            raise WriterSetupFailed("no encoder")

        renderer = CaptionRenderer(
            _small_caption_config(),
            reader_factory=media.reader_factory,
            writer_factory=writer_factory,
        )
        with pytest.raises(ExportFailed, match="Could not create export session"):
            renderer.render(Path("in.mp4"), [], Path("out.mp4"))
        assert media.reader.closed

    def test_finalize_failure(self, asset, media_factory, make_frames):
        media = media_factory(
            asset, make_frames(10), finalize_result=FinalizeResult(ok=False, message="encode error")
        )
        with pytest.raises(ExportFailed) as excinfo:
            _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"))
        assert excinfo.value.message == "encode error"
        assert media.writer.aborted

    def test_cancelled(self, media):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(TransformCancelled):
            _renderer(media).render(Path("in.mp4"), [], Path("out.mp4"), cancel=token)
        assert media.writer.aborted
        assert not media.writer.finalized
