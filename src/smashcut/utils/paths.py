"""Deterministic on-disk locations for a project section's media."""

from __future__ import annotations

from pathlib import Path


def section_dir(base_dir: Path, project_id: str, section_id: str, create: bool = True) -> Path:
    """Directory holding every file of one script section.

    Structure: <base_dir>/projects/<project_id>/sections/<section_id>/
    """
    directory = Path(base_dir) / "projects" / str(project_id) / "sections" / str(section_id)
    if create:
        directory.mkdir(parents=True, exist_ok=True)
    return directory


def background_path(base_dir: Path, project_id: str, section_id: str, ext: str) -> Path:
    ext = ext.lstrip(".").lower() or "png"
    return section_dir(base_dir, project_id, section_id) / f"background.{ext}"


def section_paths(base_dir: Path, project_id: str, section_id: str, create: bool = True) -> dict:
    """Standard output paths for a section.

    Returns a dict with keys: raw, masked, composite, exported, captions_srt.
    """
    directory = section_dir(base_dir, project_id, section_id, create=create)
    return {
        "raw": directory / "raw.mp4",
        "masked": directory / "masked.mp4",
        "composite": directory / "composite.mp4",
        "exported": directory / "exported.mp4",
        "captions_srt": directory / "captions.srt",
    }
