"""Tool configuration — env-driven.

Centralized settings using pydantic-settings. Reads from a .env file and
POTR_* environment variables. Per-project settings live in ``potr.conf``
(see ``potr.models.project``); these are the settings of the tool itself.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class PotrSettings(BaseSettings):
    """Tool settings with environment variable overrides.

    Examples
    --------
    Use podman and give every engine call five minutes::

        export POTR_ENGINE=podman
        export POTR_ENGINE_TIMEOUT=300

    Trace every engine invocation::

        export POTR_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="POTR_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Engine
    engine: str = "docker"
    engine_timeout: float | None = None  # seconds; None waits forever
    sudo_fallback: bool = False

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    # Project layout
    conf_file: Path = Path("potr.conf")
    lock_file: Path = Path("potr.sum")
    build_dir: Path = Path("build-container")

    # Content archive
    archive_mtime: int = 0

    @property
    def effective_log_level(self) -> str:
        """DEBUG when debug is on, the configured level otherwise."""
        return "DEBUG" if self.debug else self.log_level.upper()
