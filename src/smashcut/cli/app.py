"""Smashcut CLI entry point."""

from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

from smashcut import __version__
from smashcut.cli.projects import projects
from smashcut.cli.refine import refine
from smashcut.cli.subtitles import cues, srt
from smashcut.cli.transform import background, captions

app = typer.Typer(
    name="smashcut",
    help="Smashcut: background replacement and burned-in captions for narrated clips.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"smashcut {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Smashcut: background replacement and burned-in captions for narrated clips."""
    # Picks up ANTHROPIC_API_KEY; shell exports take precedence
    load_dotenv(override=False)


app.command("background")(background)
app.command("captions")(captions)
app.command("srt")(srt)
app.command("cues")(cues)
app.command("refine")(refine)
app.command("projects")(projects)
