"""smashcut background / captions commands: the two video transforms."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from smashcut.cli.utils import (
    ProjectOption,
    SectionOption,
    open_target,
    pick_path,
    read_cues,
    require_ffmpeg,
    require_file,
    run_transform,
)
from smashcut.core.config import SmashcutConfig, load_config
from smashcut.core.models import Background
from smashcut.utils.console import console


def _build_engine(config: SmashcutConfig):
    from smashcut.segmentation.engine import create_engine

    try:
        return create_engine(config.segmentation)
    except (ImportError, OSError) as e:
        console.print(f"[red]Could not load segmentation engine:[/red] {e}")
        raise typer.Exit(1)


def background(
    video: Annotated[
        Optional[Path],
        typer.Argument(help="Recorded video. Default: the section's recording."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output video. Default: the section's masked take."),
    ] = None,
    background: Annotated[
        Optional[Path],
        typer.Option("--background", "-b", help="Background image or video. Default: black."),
    ] = None,
    engine: Annotated[
        Optional[str],
        typer.Option("--engine", "-e", help="Segmentation engine: person, mog2 or knn."),
    ] = None,
    video_background: Annotated[
        bool,
        typer.Option("--video-background", help="Treat --background as a video."),
    ] = False,
    project: ProjectOption = None,
    section: SectionOption = None,
) -> None:
    """Replace the background behind the speaker."""
    from smashcut.segmentation.engine import ENGINES
    from smashcut.segmentation.pipeline import SegmentationPipeline

    if engine is not None and engine not in ENGINES:
        console.print(f"[red]Unknown engine {engine!r}.[/red] Choose one of: {', '.join(ENGINES)}")
        raise typer.Exit(1)

    config = load_config(**{"segmentation.engine": engine})
    target = open_target(config, project, section)
    video = require_file(
        pick_path(video, target.source_video() if target else None, "input video"),
        "Input video",
    )
    output = pick_path(output, target.paths["masked"] if target else None, "output path")
    bg = None
    if background is not None:
        require_file(background, "Background")
        bg = Background(path=background, is_video=video_background)

    require_ffmpeg(config)
    seg_engine = _build_engine(config)

    def job(on_event, cancel):
        pipeline = SegmentationPipeline(config=config, engine=seg_engine)
        return pipeline.run(video, output, bg, on_event=on_event, cancel=cancel)

    result = run_transform(output, job, "Replacing background")
    console.print(f"[green]Saved:[/green] {result.output_path}")
    if result.frames_passed_through:
        console.print(
            f"[yellow]{result.frames_passed_through}/{result.frames_written} frames "
            "could not be segmented and were kept unchanged.[/yellow]"
        )
    if target is not None:
        target.record_processed(video, result.output_path, bg)
        console.print(f"[green]Section {target.section.index + 1} marked processed.[/green]")


def captions(
    video: Annotated[
        Optional[Path],
        typer.Argument(help="Video to caption. Default: the section's processed take."),
    ] = None,
    cues: Annotated[
        Optional[Path],
        typer.Argument(help="Cue file: JSON list or subtitle file. Default: the section's cues."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output video path. Default: the section's export."),
    ] = None,
    font: Annotated[
        Optional[Path],
        typer.Option("--font", help="TrueType font for caption text."),
    ] = None,
    font_size: Annotated[
        Optional[int],
        typer.Option("--font-size", help="Caption font size in pixels."),
    ] = None,
    project: ProjectOption = None,
    section: SectionOption = None,
) -> None:
    """Burn timed captions into a video."""
    from smashcut.captions.renderer import CaptionRenderer

    config = load_config(
        **{
            "captions.font_path": str(font) if font else None,
            "captions.font_size": font_size,
        }
    )
    target = open_target(config, project, section)
    derived_video = target.source_video(prefer_processed=True) if target else None
    video = require_file(pick_path(video, derived_video, "input video"), "Input video")
    output = pick_path(output, target.paths["exported"] if target else None, "output path")

    if cues is not None:
        cue_list = read_cues(cues)
        console.print(f"[bold]Loaded[/bold] {len(cue_list)} cues from {cues}")
    elif target is not None:
        cue_list = target.cues()
    else:
        cue_list = []
    if not cue_list:
        console.print("[red]No caption cues to burn in.[/red]")
        raise typer.Exit(1)

    require_ffmpeg(config)

    def job(on_event, cancel):
        renderer = CaptionRenderer(config)
        return renderer.render(video, cue_list, output, on_event=on_event, cancel=cancel)

    result = run_transform(output, job, "Burning captions")
    console.print(f"[green]Saved:[/green] {result.output_path}")
    if target is not None:
        target.record_exported(cue_list, source_video=video)
        console.print(f"[green]Section {target.section.index + 1} marked exported.[/green]")
