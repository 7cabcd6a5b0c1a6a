"""End-to-end transforms through a real ffmpeg encoder.

Run with: pytest -m integration
Skipped when ffmpeg/ffprobe are not installed.
"""

import json
import shutil
import subprocess

import numpy as np
import pytest

from smashcut.captions.renderer import burn_captions
from smashcut.core.config import SegmentationConfig, SmashcutConfig
from smashcut.core.errors import InvalidAsset
from smashcut.core.models import CaptionCue
from smashcut.media.probe import probe
from smashcut.media.reader import open_for_read
from smashcut.segmentation.pipeline import replace_background

pytestmark = pytest.mark.integration

skip_no_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg not installed",
)


@pytest.fixture(scope="module")
def source_video(tmp_path_factory):
    """Two seconds of a 160x120 test pattern at 15 fps with a sine tone."""
    path = tmp_path_factory.mktemp("media") / "source.mp4"
    subprocess.run(
        [
            "ffmpeg", "-y", "-v", "error",
            "-f", "lavfi", "-i", "testsrc=size=160x120:rate=15:duration=2",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=2",
            "-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "aac", "-shortest",
            str(path),
        ],
        check=True,
    )
    return path


def _motion_config() -> SmashcutConfig:
    """Background subtraction keeps these runs free of model downloads."""
    return SmashcutConfig(segmentation=SegmentationConfig(engine="mog2"))


def _audio_stream(path) -> dict:
    result = subprocess.run(
        [
            "ffprobe", "-v", "error", "-select_streams", "a:0",
            "-show_entries", "stream=codec_name,bit_rate", "-of", "json", str(path),
        ],
        capture_output=True,
        check=True,
    )
    return json.loads(result.stdout)["streams"][0]


@pytest.fixture(scope="module")
def rotated_video(source_video):
    """The test pattern tagged with a quarter-turn display rotation, like a phone take."""
    path = source_video.with_name("rotated.mp4")
    result = subprocess.run(
        [
            "ffmpeg", "-y", "-v", "error", "-display_rotation:v:0", "90",
            "-i", str(source_video), "-c", "copy", str(path),
        ],
        capture_output=True,
    )
    if result.returncode != 0:
        pytest.skip("this ffmpeg cannot set display rotation")
    return path


@skip_no_ffmpeg
def test_probe(source_video):
    asset = probe(source_video)
    assert (asset.width, asset.height) == (160, 120)
    assert asset.frame_rate == pytest.approx(15.0)
    assert asset.has_audio


@skip_no_ffmpeg
def test_reader_timestamps_non_decreasing(source_video):
    with open_for_read(source_video) as reader:
        pts = []
        while (frame := reader.next_video_sample()) is not None:
            pts.append(frame.pts)
        assert reader.next_audio_sample() is not None
    assert len(pts) == 30
    assert pts == sorted(pts)


@skip_no_ffmpeg
def test_replace_background_roundtrip(source_video, tmp_path):
    out = tmp_path / "masked.mp4"
    out.write_bytes(b"stale output")
    events = []
    result = replace_background(
        source_video, out, config=_motion_config(), on_event=events.append
    )

    assert result.output_path == out
    assert result.frames_written == 30
    asset = probe(out)
    assert (asset.width, asset.height) == (160, 120)
    assert asset.has_audio
    assert events[-1].progress == 1.0
    assert not list(tmp_path.glob(".smashcut-*"))


@skip_no_ffmpeg
def test_failing_engine_is_frame_equivalent(source_video, tmp_path):
    class Broken:
        def segment(self, image):
            raise RuntimeError("no model")

    result = replace_background(source_video, tmp_path / "out.mp4", engine=Broken())
    assert result.frames_passed_through == result.frames_written == 30


@skip_no_ffmpeg
def test_burn_captions(source_video, tmp_path):
    out = tmp_path / "exported.mp4"
    cues = [CaptionCue("Hello", 0.0, 0.5), CaptionCue("world", 0.5, 1.0)]
    config = SmashcutConfig()
    result = burn_captions(source_video, cues, out, config=config)

    # Container duration can run a few ms past 2s because of the audio track
    assert result.frames_written in (60, 61)
    asset = probe(out)
    assert asset.frame_rate == pytest.approx(30.0)
    assert asset.has_audio

    with open_for_read(out) as reader:
        first = reader.next_video_sample()
    assert first is not None
    assert first.image.dtype == np.uint8


@skip_no_ffmpeg
def test_audio_only_input_is_invalid(tmp_path):
    path = tmp_path / "tone.m4a"
    subprocess.run(
        ["ffmpeg", "-y", "-v", "error", "-f", "lavfi", "-i", "sine=duration=1", str(path)],
        check=True,
    )
    with pytest.raises(InvalidAsset):
        replace_background(path, tmp_path / "out.mp4")


@skip_no_ffmpeg
def test_audio_packets_pass_through(source_video, tmp_path):
    masked = tmp_path / "masked.mp4"
    replace_background(source_video, masked, config=_motion_config())
    exported = tmp_path / "exported.mp4"
    burn_captions(masked, [CaptionCue("Hi", 0.0, 1.0)], exported)

    source = _audio_stream(source_video)
    for path in (masked, exported):
        copied = _audio_stream(path)
        assert copied["codec_name"] == source["codec_name"]
        assert int(copied["bit_rate"]) == pytest.approx(int(source["bit_rate"]), rel=0.1)


@skip_no_ffmpeg
def test_rotated_take_keeps_upright_size(rotated_video, tmp_path):
    asset = probe(rotated_video)
    assert (asset.width, asset.height) == (120, 160)
    with open_for_read(rotated_video) as reader:
        first = reader.next_video_sample()
    assert first.image.shape == (160, 120, 3)

    out = tmp_path / "masked.mp4"
    result = replace_background(rotated_video, out, config=_motion_config())
    assert result.frames_written == 30
    assert result.frames_passed_through == 0
    written = probe(out)
    assert (written.width, written.height) == (120, 160)
