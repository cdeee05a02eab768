"""``potr update`` — accept a changed build container."""

from __future__ import annotations

import typer

from potr.cli._support import open_project, print_verification, reporting_errors


def update_cmd(ctx: typer.Context) -> None:
    """Drop the lock record, rebuild, and lock the new fingerprint."""
    with reporting_errors():
        potr = open_project(ctx)
        result = potr.update()
    print_verification(result)
