"""``potr push`` — push the deploy container to the configured registry.

AWS ECR registries (``<account>.dkr.ecr.<region>.amazonaws.com``) are logged
in to with the AWS CLI first.
"""

from __future__ import annotations

import typer
from rich.console import Console

from potr.cli._support import open_project, reporting_errors

console = Console()


def push_cmd(ctx: typer.Context) -> None:
    """Tag the deploy container for the registry and push it."""
    with reporting_errors():
        potr = open_project(ctx)
        remote = potr.push()
    console.print(f"[bold green]Pushed[/bold green] {remote}")
