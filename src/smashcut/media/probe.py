"""Input probing with ffprobe."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

from smashcut.core.config import EncoderConfig
from smashcut.core.errors import InvalidAsset, ReaderSetupFailed
from smashcut.core.models import AudioFormat, VideoAsset

DEFAULT_FRAME_RATE = 30.0


def check_ffmpeg(config: EncoderConfig | None = None) -> bool:
    """Check if ffmpeg and ffprobe are available on the system."""
    config = config or EncoderConfig()
    return shutil.which(config.ffmpeg_path) is not None and (
        shutil.which(config.ffprobe_path) is not None
    )


def parse_frame_rate(value: str | None) -> float | None:
    """Parse an ffprobe rate like "30000/1001" or "25". Returns None if unusable."""
    if not value:
        return None
    try:
        if "/" in value:
            num, den = value.split("/", 1)
            if float(den) == 0:
                return None
            rate = float(num) / float(den)
        else:
            rate = float(value)
    except ValueError:
        return None
    return rate if rate > 0 else None


def _as_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def display_rotation(stream: dict) -> int:
    """Clockwise display rotation in degrees from a video stream's metadata.

    Newer ffprobe reports a display matrix in ``side_data_list``; older
    files and builds carry a ``rotate`` tag instead.
    """
    for side_data in stream.get("side_data_list", []):
        if "rotation" in side_data:
            return int(round(_as_float(side_data["rotation"])))
    return int(round(_as_float(stream.get("tags", {}).get("rotate"))))


def asset_from_probe(path: Path, data: dict) -> VideoAsset:
    """Build a VideoAsset from parsed ffprobe JSON output.

    Raises:
        InvalidAsset: If there is no video stream.
    """
    video_stream = None
    audio_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio" and audio_stream is None:
            audio_stream = stream

    if video_stream is None:
        raise InvalidAsset(f"No video track in {path}")

    frame_rate = (
        parse_frame_rate(video_stream.get("avg_frame_rate"))
        or parse_frame_rate(video_stream.get("r_frame_rate"))
        or DEFAULT_FRAME_RATE
    )

    duration = _as_float(data.get("format", {}).get("duration"))
    if duration <= 0:
        duration = _as_float(video_stream.get("duration"))

    audio = None
    if audio_stream is not None:
        audio = AudioFormat(
            codec=audio_stream.get("codec_name") or "unknown",
            sample_rate=int(audio_stream.get("sample_rate") or 48000),
            channels=int(audio_stream.get("channels") or 2),
        )

    width = int(video_stream.get("width", 0))
    height = int(video_stream.get("height", 0))
    # Decoded frames come out upright, so quarter turns swap the frame size
    if display_rotation(video_stream) % 180 == 90:
        width, height = height, width

    return VideoAsset(
        path=path,
        duration=max(0.0, duration),
        width=width,
        height=height,
        frame_rate=frame_rate,
        audio=audio,
    )


def probe(path: Path, config: EncoderConfig | None = None) -> VideoAsset:
    """Read duration, frame size, frame rate and tracks of a local video file.

    Raises:
        InvalidAsset: If the file doesn't exist, can't be parsed, or has no video.
        ReaderSetupFailed: If ffprobe is not installed.
    """
    config = config or EncoderConfig()
    path = Path(path)
    if not path.is_file():
        raise InvalidAsset(f"Video file not found: {path}")

    cmd = [
        config.ffprobe_path,
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True)
    except OSError as e:
        raise ReaderSetupFailed(f"ffprobe could not be started: {e}") from e

    if result.returncode != 0:
        raise InvalidAsset(f"ffprobe could not read {path}")

    try:
        data = json.loads(result.stdout.decode(errors="replace"))
    except json.JSONDecodeError as e:
        raise InvalidAsset(f"Failed to parse ffprobe output for {path}: {e}") from e

    asset = asset_from_probe(path, data)
    if asset.width <= 0 or asset.height <= 0:
        raise InvalidAsset(f"Video track in {path} has no frame size")
    return asset
