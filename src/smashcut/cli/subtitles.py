"""smashcut srt / cues commands: subtitle files and teleprompter timing."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from smashcut.captions.timing import WORDS_PER_CHUNK
from smashcut.cli.utils import (
    ProjectOption,
    SectionOption,
    open_target,
    pick_path,
    read_cues,
    require_file,
)
from smashcut.core.config import load_config
from smashcut.utils.console import console

_FORMATS = ("srt", "vtt", "ass")


def srt(
    cues: Annotated[
        Optional[Path],
        typer.Argument(help="Cue file: JSON list or subtitle file. Default: the section's cues."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Subtitle file to write. Default: in the section."),
    ] = None,
    fmt: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: srt, vtt, ass."),
    ] = "srt",
    words_per_chunk: Annotated[
        Optional[int],
        typer.Option(
            "--words-per-chunk", "-n", help=f"Words per block (default {WORDS_PER_CHUNK})."
        ),
    ] = None,
    project: ProjectOption = None,
    section: SectionOption = None,
) -> None:
    """Group word cues into subtitle blocks and write them out."""
    from smashcut.captions.timing import group_into_chunks, save_chunks, save_srt

    if fmt not in _FORMATS:
        choices = ", ".join(_FORMATS)
        console.print(f"[red]Unsupported format {fmt!r}.[/red] Choose one of: {choices}")
        raise typer.Exit(1)

    config = load_config(**{"captions.words_per_chunk": words_per_chunk})
    per_chunk = config.captions.words_per_chunk
    if per_chunk < 1:
        console.print("[red]--words-per-chunk must be at least 1.[/red]")
        raise typer.Exit(1)

    target = open_target(config, project, section)
    derived = target.paths["captions_srt"].with_suffix(f".{fmt}") if target else None
    output = pick_path(output, derived, "output path")
    if cues is not None:
        cue_list = read_cues(cues)
    elif target is not None:
        cue_list = target.cues()
    else:
        console.print("[red]No cue file given.[/red] Pass one or use --project/--section.")
        raise typer.Exit(1)

    if fmt == "srt":
        save_srt(cue_list, output, per_chunk)
    else:
        save_chunks(group_into_chunks(cue_list, per_chunk), output, fmt=fmt)
    console.print(f"[green]Saved:[/green] {output}")
    if target is not None:
        target.record_exported(cue_list)
        console.print(f"[green]Section {target.section.index + 1} marked exported.[/green]")


def cues(
    text_file: Annotated[Path, typer.Argument(help="Plain text script section.")],
    output: Annotated[Path, typer.Option("--output", "-o", help="JSON cue file to write.")],
    wpm: Annotated[
        Optional[float],
        typer.Option("--wpm", help="Reading pace in words per minute."),
    ] = None,
    offset: Annotated[
        float,
        typer.Option("--offset", help="Seconds before the first word."),
    ] = 0.0,
) -> None:
    """Estimate word cues for a script at teleprompter pace."""
    from smashcut.captions.teleprompter import estimate_cues
    from smashcut.captions.timing import save_cues

    require_file(text_file, "Text file")
    config = load_config(**{"captions.words_per_minute": wpm})
    try:
        cue_list = estimate_cues(
            text_file.read_text(encoding="utf-8"),
            words_per_minute=config.captions.words_per_minute,
            offset=offset,
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    save_cues(cue_list, output)
    duration = cue_list[-1].end if cue_list else 0.0
    console.print(f"[green]Saved:[/green] {len(cue_list)} cues ({duration:.1f}s) to {output}")
