"""Configuration system for Smashcut.

Layered config loading (lowest to highest priority):
1. config/default.toml (shipped with package)
2. ~/.config/smashcut/config.toml (user-level)
3. ./smashcut.toml (project-level)
4. Environment variables (SMASHCUT_CAPTIONS__FONT_SIZE, etc.)
5. CLI flags
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_ROOT = Path(__file__).resolve().parent.parent.parent.parent
_DEFAULT_CONFIG = _PACKAGE_ROOT / "config" / "default.toml"
_USER_CONFIG = Path.home() / ".config" / "smashcut" / "config.toml"
_PROJECT_CONFIG = Path("smashcut.toml")


class EncoderConfig(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    video_codec: str = "libx264"
    preset: str = "medium"
    crf: int = 18
    pixel_format: str = "yuv420p"
    audio_codec: str = "aac"  # only used when the source audio cannot be copied
    audio_bitrate: str = "192k"
    queue_depth: int = 1  # frames in flight between pipeline and encoder
    audio_chunk_bytes: int = 65536
    ready_poll_seconds: float = 0.05  # cancellation check interval while blocked


class SegmentationConfig(BaseModel):
    engine: str = "person"  # "person", "mog2" or "knn"
    inference_width: int = 256  # masks come back at this width
    device: str = "auto"  # torch device for the person engine
    history: int = 500
    threshold: float = 16.0
    detect_shadows: bool = False
    mask_blur: int = 7
    morph_kernel: int = 5


class CaptionConfig(BaseModel):
    render_fps: int = 30
    fade_seconds: float = 0.1
    words_per_chunk: int = 6
    font_path: str | None = None  # None uses Pillow's built-in font
    font_size: int = 44
    text_color: tuple[int, int, int] = (255, 255, 255)
    shadow_color: tuple[int, int, int] = (0, 0, 0)
    shadow_offset: tuple[int, int] = (2, 2)
    shadow_radius: int = 4
    band_height: int = 100
    bottom_margin: int = 80
    words_per_minute: float = 130.0


class LLMConfig(BaseModel):
    model: str = "anthropic/claude-sonnet-4-5"
    api_base: str | None = None
    api_key: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048


class SmashcutConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SMASHCUT_",
        env_nested_delimiter="__",
    )

    encoder: EncoderConfig = EncoderConfig()
    segmentation: SegmentationConfig = SegmentationConfig()
    captions: CaptionConfig = CaptionConfig()
    llm: LLMConfig = LLMConfig()
    projects_dir: Path = Path("./smashcut_data")

    @property
    def store_path(self) -> Path:
        """Location of the persisted project list."""
        return self.projects_dir / "projects.json"


def _load_toml(path: Path) -> dict:
    """Load a TOML file if it exists, return empty dict otherwise."""
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(**cli_overrides: object) -> SmashcutConfig:
    """Load configuration from all layers and merge.

    Args:
        **cli_overrides: Direct overrides from CLI flags. Keys can be
            dot-separated (e.g. segmentation.engine="knn").
    """
    config_data: dict = {}
    for path in (_DEFAULT_CONFIG, _USER_CONFIG, _PROJECT_CONFIG):
        layer = _load_toml(path)
        config_data = _deep_merge(config_data, layer)

    # Flatten 'general' section into top-level
    if "general" in config_data:
        general = config_data.pop("general")
        config_data = _deep_merge(config_data, general)

    for key, value in cli_overrides.items():
        if value is None:
            continue
        parts = key.split(".")
        target = config_data
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

    # Env vars are handled by Pydantic BaseSettings
    return SmashcutConfig(**config_data)
