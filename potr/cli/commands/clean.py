"""``potr clean`` — remove the project's images."""

from __future__ import annotations

import typer
from rich.console import Console

from potr.cli._support import open_project, reporting_errors

console = Console()


def clean_cmd(ctx: typer.Context) -> None:
    """Remove the build and deploy images of this project."""
    with reporting_errors():
        potr = open_project(ctx)
        removed = potr.clean()
    if not removed:
        console.print("[dim]Nothing to clean.[/dim]")
        return
    console.print(f"[bold green]Removed {len(removed)} image(s).[/bold green]")
