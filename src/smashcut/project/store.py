"""Persisted projects: scripts, sections and their recordings.

All projects live in a single JSON file that is rewritten whole on every
save.
"""

from __future__ import annotations

import json
import os
import tempfile
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from smashcut.core.models import CaptionCue


def _new_id() -> str:
    return str(uuid.uuid4()).upper()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SectionStatus(str, Enum):
    UNRECORDED = "unrecorded"
    RECORDED = "recorded"
    PROCESSED = "processed"
    EXPORTED = "exported"


class CaptionTimestamp(BaseModel):
    id: str = Field(default_factory=_new_id)
    text: str
    start_seconds: float
    end_seconds: float

    def to_cue(self) -> CaptionCue:
        return CaptionCue(text=self.text, start=self.start_seconds, end=self.end_seconds)

    @classmethod
    def from_cue(cls, cue: CaptionCue) -> CaptionTimestamp:
        return cls(text=cue.text, start_seconds=cue.start, end_seconds=cue.end)


class Recording(BaseModel):
    id: str = Field(default_factory=_new_id)
    section_id: str
    raw_video_path: Path
    processed_video_path: Path | None = None
    composite_video_path: Path | None = None
    background_media_path: Path | None = None
    background_is_video: bool = False
    caption_cues: list[CaptionTimestamp] = Field(default_factory=list)
    duration_seconds: float = 0.0

    def cues(self) -> list[CaptionCue]:
        return [c.to_cue() for c in self.caption_cues]


class ScriptSection(BaseModel):
    id: str = Field(default_factory=_new_id)
    index: int
    text: str
    recording: Recording | None = None
    status: SectionStatus = SectionStatus.UNRECORDED


class Script(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    raw_idea: str
    refined_text: str | None = None
    sections: list[ScriptSection] = Field(default_factory=list)

    @classmethod
    def from_sections(
        cls, title: str, raw_idea: str, refined_text: str | None, texts: list[str]
    ) -> Script:
        """Build a script with one unrecorded section per text, in order."""
        sections = [ScriptSection(index=i, text=text) for i, text in enumerate(texts)]
        return cls(title=title, raw_idea=raw_idea, refined_text=refined_text, sections=sections)


class Project(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    raw_idea: str = ""
    script: Script | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ProjectStore:
    """Loads and saves the list of projects kept in one JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> list[Project]:
        """Read all projects. A missing or unreadable file yields an empty list."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [Project.model_validate(item) for item in data]
        except (OSError, ValueError, TypeError, ValidationError):
            return []

    def save(self, projects: list[Project]) -> None:
        """Replace the store file atomically with ``projects``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            [p.model_dump(mode="json") for p in projects], indent=2, ensure_ascii=False
        )
        fd, tmp = tempfile.mkstemp(prefix=".projects-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, project_id: str) -> Project | None:
        for project in self.load():
            if project.id == project_id:
                return project
        return None

    def upsert(self, project: Project) -> Project:
        """Insert or replace ``project`` by id and bump its ``updated_at``."""
        project = project.model_copy(update={"updated_at": _now()})
        projects = self.load()
        for i, existing in enumerate(projects):
            if existing.id == project.id:
                projects[i] = project
                break
        else:
            projects.append(project)
        self.save(projects)
        return project

    def delete(self, project_id: str) -> bool:
        projects = self.load()
        kept = [p for p in projects if p.id != project_id]
        if len(kept) == len(projects):
            return False
        self.save(kept)
        return True
