"""Binding a transform to one stored script section.

A section's media lives at fixed paths under the projects directory, so a
transform that names a project and section needs no explicit output path.
After the transform succeeds the section's recording and status are
updated and the project is saved back to the store.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from smashcut.core.errors import SectionNotFound
from smashcut.core.models import Background, CaptionCue
from smashcut.project.store import (
    CaptionTimestamp,
    Project,
    ProjectStore,
    Recording,
    ScriptSection,
    SectionStatus,
)
from smashcut.utils.paths import background_path, section_paths


@dataclass
class SectionTarget:
    store: ProjectStore
    base_dir: Path
    project: Project
    section: ScriptSection

    @property
    def paths(self) -> dict[str, Path]:
        return section_paths(self.base_dir, self.project.id, self.section.id)

    def source_video(self, prefer_processed: bool = False) -> Path | None:
        """The section's recorded take, or its processed take when asked and available."""
        recording = self.section.recording
        if recording is None:
            return None
        if prefer_processed and recording.composite_video_path is not None:
            return recording.composite_video_path
        return recording.raw_video_path

    def cues(self) -> list[CaptionCue]:
        recording = self.section.recording
        return recording.cues() if recording is not None else []

    def _recording(self, raw_video: Path) -> Recording:
        if self.section.recording is None:
            self.section.recording = Recording(section_id=self.section.id, raw_video_path=raw_video)
        return self.section.recording

    def _save(self) -> None:
        self.project = self.store.upsert(self.project)

    def record_processed(
        self, raw_video: Path, output: Path, background: Background | None = None
    ) -> None:
        """Store a background-replaced take and keep a copy of its background."""
        recording = self._recording(raw_video)
        recording.processed_video_path = output
        recording.composite_video_path = output
        if background is not None and background.path is not None:
            source = Path(background.path)
            kept = background_path(self.base_dir, self.project.id, self.section.id, source.suffix)
            if source.resolve() != kept.resolve():
                shutil.copy2(source, kept)
            recording.background_media_path = kept
            recording.background_is_video = background.is_video
        else:
            recording.background_media_path = None
            recording.background_is_video = False
        self.section.status = SectionStatus.PROCESSED
        self._save()

    def record_exported(self, cues: list[CaptionCue], source_video: Path | None = None) -> None:
        """Mark the section exported and remember the cues it was captioned with."""
        recording = self.section.recording
        if recording is None and source_video is not None:
            recording = self._recording(source_video)
        if recording is not None:
            recording.caption_cues = [CaptionTimestamp.from_cue(cue) for cue in cues]
        self.section.status = SectionStatus.EXPORTED
        self._save()


def _find_section(project: Project, section_ref: str) -> ScriptSection | None:
    if project.script is None:
        return None
    for section in project.script.sections:
        if section.id == section_ref.upper():
            return section
    # Sections can also be picked by their 1-based position
    if section_ref.isdigit():
        position = int(section_ref) - 1
        for section in project.script.sections:
            if section.index == position:
                return section
    return None


def open_section(
    store: ProjectStore, base_dir: Path, project_id: str, section_ref: str
) -> SectionTarget:
    """Look up a stored section by project id and section id or number.

    Raises:
        SectionNotFound: If the project or section does not exist.
    """
    project = store.get(project_id.upper())
    if project is None:
        raise SectionNotFound(f"No project with id {project_id}")
    section = _find_section(project, section_ref)
    if section is None:
        raise SectionNotFound(f"Project {project.title!r} has no section {section_ref}")
    return SectionTarget(store=store, base_dir=Path(base_dir), project=project, section=section)
