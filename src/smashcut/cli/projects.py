"""smashcut projects command: list stored projects."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.table import Table

from smashcut.core.config import load_config
from smashcut.utils.console import console


def projects(
    project_id: Annotated[
        Optional[str],
        typer.Argument(help="Show the sections of one project."),
    ] = None,
) -> None:
    """List stored projects, or the sections of one project."""
    from smashcut.project.store import ProjectStore

    config = load_config()
    store = ProjectStore(config.store_path)

    if project_id is not None:
        project = store.get(project_id)
        if project is None:
            console.print(f"[red]No project with id {project_id}[/red]")
            raise typer.Exit(1)
        sections = project.script.sections if project.script else []
        table = Table(title=project.title)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Status")
        table.add_column("Text", max_width=60)
        for section in sections:
            table.add_row(str(section.index + 1), section.status.value, section.text)
        console.print(table)
        return

    stored = store.load()
    if not stored:
        console.print(f"[dim]No projects in {config.store_path}[/dim]")
        return

    table = Table(title=f"Projects ({len(stored)})")
    table.add_column("ID", style="bold cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Sections", justify="right")
    table.add_column("Updated")
    for project in sorted(stored, key=lambda p: p.updated_at, reverse=True):
        count = len(project.script.sections) if project.script else 0
        table.add_row(
            project.id, project.title, str(count), project.updated_at.strftime("%Y-%m-%d %H:%M")
        )
    console.print(table)
