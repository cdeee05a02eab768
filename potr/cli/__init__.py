"""potr CLI — Typer-based command-line interface.

Provides the ``potr`` command with subcommands for building and verifying
the build container, running commands in it, and building, pushing and
cleaning up the project's images.

All output uses Rich for formatted terminal display.
"""
