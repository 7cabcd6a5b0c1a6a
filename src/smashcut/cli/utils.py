"""Shared CLI utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn

from smashcut.core.config import SmashcutConfig
from smashcut.core.errors import SectionNotFound, SmashcutError, TransformCancelled
from smashcut.core.models import TransformResult
from smashcut.core.worker import TransformJob, TransformWorker
from smashcut.utils.console import console

ProjectOption = Annotated[
    Optional[str],
    typer.Option("--project", "-p", help="Stored project id. Derives input and output paths."),
]
SectionOption = Annotated[
    Optional[str],
    typer.Option("--section", "-s", help="Section id or number within --project."),
]

_STAGE_LABELS = {
    "segment": "Replacing background",
    "captions": "Burning captions",
    "audio": "Copying audio",
    "finalize": "Finalizing",
    "done": "Done",
}


def _make_progress() -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=console,
    )


def run_transform(output: Path, job: TransformJob, description: str) -> TransformResult:
    """Run ``job`` on a worker thread and mirror its events in a progress bar.

    Ctrl+C cancels the job and waits for it to clean up. Any typed error is
    printed and turned into exit code 1.
    """
    with TransformWorker() as worker:
        handle = worker.submit(output, job)
        try:
            with _make_progress() as progress:
                task = progress.add_task(description, total=1.0)
                try:
                    for event in handle.events():
                        label = _STAGE_LABELS.get(event.stage, description)
                        progress.update(task, completed=event.progress, description=label)
                except KeyboardInterrupt:
                    progress.update(task, description="Cancelling")
                    handle.cancel()
            return handle.result()
        except TransformCancelled:
            console.print("[yellow]Cancelled.[/yellow] No output was written.")
            raise typer.Exit(130)
        except SmashcutError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)


def require_file(path: Path, what: str = "File") -> Path:
    if not path.is_file():
        console.print(f"[red]{what} not found:[/red] {path}")
        raise typer.Exit(1)
    return path


def read_cues(path: Path) -> list:
    """Load a cue file, exiting with a message if it cannot be parsed."""
    import pysubs2

    from smashcut.captions.timing import load_cues

    require_file(path, "Cue file")
    try:
        return load_cues(path)
    except (ValueError, KeyError, TypeError, pysubs2.Pysubs2Error) as e:
        console.print(f"[red]Could not read cues from {path}:[/red] {e}")
        raise typer.Exit(1)


def open_target(config: SmashcutConfig, project_id: str | None, section_ref: str | None):
    """Resolve --project/--section into a stored section, or None when neither is given."""
    from smashcut.project.sections import open_section
    from smashcut.project.store import ProjectStore

    if project_id is None and section_ref is None:
        return None
    if project_id is None or section_ref is None:
        console.print("[red]--project and --section must be given together.[/red]")
        raise typer.Exit(1)
    try:
        return open_section(
            ProjectStore(config.store_path), config.projects_dir, project_id, section_ref
        )
    except SectionNotFound as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def pick_path(explicit: Path | None, derived: Path | None, what: str) -> Path:
    """Prefer an explicit path, fall back to one derived from the project section."""
    path = explicit or derived
    if path is None:
        console.print(f"[red]No {what} given.[/red] Pass it explicitly or use --project/--section.")
        raise typer.Exit(1)
    return path


def require_ffmpeg(config: SmashcutConfig) -> None:
    from smashcut.media.probe import check_ffmpeg

    if not check_ffmpeg(config.encoder):
        console.print(
            "[red]ffmpeg/ffprobe not found.[/red] Install them (e.g. brew install ffmpeg) "
            "or set encoder.ffmpeg_path / encoder.ffprobe_path."
        )
        raise typer.Exit(1)
