"""smashcut refine command: turn a script idea into recordable sections."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.panel import Panel

from smashcut.cli.utils import require_file
from smashcut.core.config import load_config
from smashcut.core.errors import SmashcutError
from smashcut.utils.console import console


def refine(
    idea_file: Annotated[Path, typer.Argument(help="Text file with the raw script idea.")],
    title: Annotated[
        Optional[str],
        typer.Option("--title", "-t", help="Project title. Default: the file name."),
    ] = None,
    save: Annotated[
        bool,
        typer.Option("--save/--no-save", help="Store the result as a new project."),
    ] = False,
    llm_model: Annotated[
        Optional[str],
        typer.Option("--llm-model", help="LLM model (e.g. anthropic/claude-sonnet-4-5)."),
    ] = None,
) -> None:
    """Refine a raw idea into a narration script split into sections."""
    from smashcut.llm.refine import refine_script
    from smashcut.project.store import Project, ProjectStore, Script

    require_file(idea_file, "Idea file")
    raw_idea = idea_file.read_text(encoding="utf-8").strip()
    if not raw_idea:
        console.print("[red]Idea file is empty.[/red]")
        raise typer.Exit(1)

    config = load_config(**{"llm.model": llm_model})

    with console.status("[bold]Refining script...[/bold]"):
        try:
            result = refine_script(raw_idea, config)
        except SmashcutError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    console.print(Panel(result.refined_script, title="Refined script"))
    for i, section in enumerate(result.sections, 1):
        console.print(f"[bold cyan]{i}.[/bold cyan] {section}")

    if save:
        project_title = title or idea_file.stem
        script = Script.from_sections(
            project_title, raw_idea, result.refined_script, result.sections
        )
        project = Project(title=project_title, raw_idea=raw_idea, script=script)
        ProjectStore(config.store_path).upsert(project)
        console.print(f"\n[green]Saved project[/green] {project.id}")
