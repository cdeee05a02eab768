"""``potr deploy`` — build the deploy container."""

from __future__ import annotations

import typer
from rich.console import Console

from potr.cli._support import open_project, reporting_errors

console = Console()


def deploy_cmd(ctx: typer.Context) -> None:
    """Build the deploy container from the project root Dockerfile."""
    with reporting_errors():
        potr = open_project(ctx)
        image_id = potr.deploy()
    console.print(
        f"[bold green]Built deploy container[/bold green] "
        f"{potr.project.deploy_image} ({image_id})"
    )
