"""Project configuration model — the contents of ``potr.conf``.

``potr.conf`` is a shell-style ``KEY=value`` file::

    name=hello
    args_common="-e CCACHE_DIR=/work/.ccache"
    run_args="--network none"
    registry=123456789012.dkr.ecr.eu-west-1.amazonaws.com

It is read through pydantic-settings' dotenv source only; the process
environment is never consulted, so a stray ``NAME`` variable cannot
override the project name.
"""

from __future__ import annotations

import re
import shlex
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

_IMAGE_NAME_RE = re.compile(r"^[a-z0-9]+(?:[._/-][a-z0-9]+)*$")


class ProjectConfigError(RuntimeError):
    """Raised when ``potr.conf`` is missing or lacks required settings."""


class ProjectConfig(BaseSettings):
    """Per-project settings loaded from ``potr.conf``.

    The ``*_args`` fields are argument strings as a user would type them in a
    shell; they are split into argument vectors and never handed to a shell.
    """

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    name: str = Field(min_length=1)
    args_common: str = ""
    build_container_args: str = ""
    run_args: str = ""
    deploy_args: str = ""
    push_args: str = ""
    registry: str = ""
    tag: str = "latest"
    workdir: str = "/work"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, dotenv_settings)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _IMAGE_NAME_RE.match(value):
            raise ValueError(
                f"{value!r} is not a valid image name "
                "(lowercase letters, digits and . _ - / separators)"
            )
        return value

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def build_image(self) -> str:
        """Tag given to the verified build container."""
        return f"{self.name}-build"

    @property
    def deploy_image(self) -> str:
        """Tag given to the deploy container."""
        return f"{self.name}:{self.tag}"

    def args_for(self, command: str) -> list[str]:
        """Return the argument vector configured for *command*.

        ``command`` uses the CLI spelling (``build-container``, ``run``, ...).
        """
        field = f"{command.replace('-', '_')}_args"
        if field not in type(self).model_fields:
            raise KeyError(f"No argument setting for command {command!r}")
        return shlex.split(getattr(self, field))

    @property
    def common_args(self) -> list[str]:
        return shlex.split(self.args_common)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> "ProjectConfig":
        """Load and validate ``potr.conf`` at *path*.

        Raises
        ------
        ProjectConfigError
            If the file does not exist or a setting is missing or invalid.
        """
        path = Path(path)
        if not path.is_file():
            raise ProjectConfigError(f"Configuration file not found: {path}")
        try:
            return cls(_env_file=path)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ProjectConfigError(f"Invalid {path.name}: {problems}") from exc
