"""``potr run [ARGS]...`` — run a command inside the build container.

The project root is mounted at the configured ``workdir``. The container's
exit code becomes potr's exit code. Options after ``--`` go to the command,
not to potr: ``potr run -- ls --help``.
"""

from __future__ import annotations

import typer

from potr.cli._support import open_project, reporting_errors


def run_cmd(
    ctx: typer.Context,
    command: list[str] = typer.Argument(
        None,
        help="Command and arguments to run in the build container.",
        show_default=False,
    ),
) -> None:
    """Verify the build container, then run a command inside it."""
    with reporting_errors():
        potr = open_project(ctx)
        exit_code = potr.run(command or [])
    if exit_code != 0:
        raise typer.Exit(code=exit_code)
