"""Shared CLI plumbing: logging setup, per-invocation state, error reporting."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from pydantic import BaseModel, ConfigDict
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from potr.config import PotrSettings
from potr.core.archive import ArchiveError
from potr.core.engine import (
    EngineCommandError,
    EngineTimeout,
    EngineUnavailable,
    ImageNotFound,
)
from potr.core.lock_file import LockFileError
from potr.core.pipeline import Potr
from potr.core.registry import RegistryLoginError
from potr.core.verifier import FingerprintMismatch
from potr.models.project import ProjectConfigError
from potr.models.verification import VerificationResult, VerificationStatus

console = Console()


class CliState(BaseModel):
    """What the global options resolve to; stored on ``ctx.obj``."""

    model_config = ConfigDict(frozen=True)

    settings: PotrSettings
    project_dir: Path


def configure_logging(level: str) -> None:
    """Send ``potr`` log records to stderr through Rich."""
    logger = logging.getLogger("potr")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(
        RichHandler(
            console=Console(stderr=True),
            show_path=False,
            show_time=False,
            markup=False,
        )
    )
    logger.setLevel(level)


def open_project(ctx: typer.Context) -> Potr:
    """Build the ``Potr`` context for the current invocation."""
    state: CliState = ctx.obj
    return Potr.open(state.project_dir, state.settings)


_ERROR_TITLES: dict[type[Exception], str] = {
    ProjectConfigError: "Configuration error",
    EngineUnavailable: "Container engine unavailable",
    EngineTimeout: "Container engine timed out",
    ImageNotFound: "Image not found",
    ArchiveError: "Filesystem export failed",
    LockFileError: "Lock record error",
    RegistryLoginError: "Registry login failed",
}


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Turn potr failures into a readable message and an exit code."""
    try:
        yield
    except FingerprintMismatch as exc:
        console.print("[bold red]Build container fingerprint mismatch![/bold red]")
        console.print(f"  [bold]locked:[/bold]   {exc.locked}")
        console.print(f"  [bold]computed:[/bold] {exc.computed}")
        console.print(
            "[dim]The build container changed. If this is intended, run "
            "`potr update` to lock the new fingerprint.[/dim]"
        )
        raise typer.Exit(code=1)
    except EngineCommandError as exc:
        console.print(f"[bold red]Engine command failed:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=exc.returncode or 1)
    except tuple(_ERROR_TITLES) as exc:
        title = next(t for cls, t in _ERROR_TITLES.items() if isinstance(exc, cls))
        console.print(f"[bold red]{title}:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)


def print_verification(result: VerificationResult) -> None:
    """Report a successful verification."""
    if result.status == VerificationStatus.INITIALIZED:
        console.print(
            f"[bold green]Locked build container[/bold green] {result.computed}"
        )
    else:
        console.print(
            f"[green]Build container matches lock record[/green] {result.computed}"
        )
