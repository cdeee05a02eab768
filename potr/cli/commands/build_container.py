"""``potr build-container`` — build and verify the build container.

Builds ``build-container/``, fingerprints the image and checks it against
``potr.sum``. The first run creates the lock record; a later mismatch stops
with exit code 1 and leaves the record untouched.
"""

from __future__ import annotations

import typer

from potr.cli._support import open_project, print_verification, reporting_errors


def build_container_cmd(ctx: typer.Context) -> None:
    """Build the build container and verify it against the lock record."""
    with reporting_errors():
        potr = open_project(ctx)
        result = potr.build_container()
    print_verification(result)
