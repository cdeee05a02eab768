"""Main Typer application — imports and registers all CLI commands.

Entry point: ``potr`` (configured via pyproject.toml console_scripts).

Commands: build-container, update, run, deploy, push, clean, help.
"""

from __future__ import annotations

from pathlib import Path

import typer

from potr.cli._support import CliState, configure_logging
from potr.cli.commands.build_container import build_container_cmd
from potr.cli.commands.clean import clean_cmd
from potr.cli.commands.deploy import deploy_cmd
from potr.cli.commands.push import push_cmd
from potr.cli.commands.run import run_cmd
from potr.cli.commands.update import update_cmd
from potr.config import PotrSettings

app = typer.Typer(
    name="potr",
    help="potr: build, verify, run and ship a project's build container.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False, "--debug", "-d", help="Log every engine invocation."
    ),
    sudo: bool = typer.Option(
        False, "--sudo", "-s", help="Fall back to sudo if the engine denies access."
    ),
    project_dir: Path = typer.Option(
        Path("."), "--project-dir", "-C", help="Directory holding potr.conf."
    ),
) -> None:
    """Resolve global options once for every command."""
    settings = PotrSettings()
    overrides = {}
    if debug:
        overrides["debug"] = True
    if sudo:
        overrides["sudo_fallback"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.effective_log_level)
    ctx.obj = CliState(settings=settings, project_dir=project_dir)


# Register subcommands
app.command(
    name="build-container",
    help="Build the build container and verify it against potr.sum.",
)(build_container_cmd)
app.command(name="update", help="Re-lock potr.sum to a freshly built build container.")(
    update_cmd
)
app.command(
    name="run",
    help=(
        "Run a command inside the verified build container. "
        "Put -- before commands that take their own options: "
        "potr run -- ls --help"
    ),
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)(run_cmd)
app.command(name="deploy", help="Build the deploy container.")(deploy_cmd)
app.command(name="push", help="Push the deploy container to the registry.")(push_cmd)
app.command(name="clean", help="Remove the project's images.")(clean_cmd)


@app.command(name="help", help="Show this message and exit.")
def help_cmd(ctx: typer.Context) -> None:
    """Print the top-level help."""
    typer.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
