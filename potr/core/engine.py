"""Container engine collaborator — structured invocations of docker/podman.

Every engine call is an explicit argument vector handed to
``subprocess.run``; nothing is ever interpolated into a shell string. The
privilege mode (direct or through ``sudo``) is detected once, at startup,
by :func:`detect_privilege_mode` and then fixed for the engine's lifetime.

Error taxonomy
--------------
``EngineError``
    Base class. Carries the engine's ``returncode`` and ``stderr`` text.
``EngineUnavailable``
    The binary is missing, the daemon is unreachable, or access is denied.
``EngineTimeout``
    A call exceeded the configured timeout.
``ImageNotFound``
    The engine does not know the image reference.
``EngineCommandError``
    Any other non-zero exit.
"""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
import sys
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import IO, Any

from potr.models.engine import PrivilegeMode

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission denied",)
_DAEMON_MARKERS = (
    "cannot connect to the docker daemon",
    "is the docker daemon running",
    "cannot connect to podman",
)
_NOT_FOUND_MARKERS = (
    "no such image",
    "no such object",
    "image not known",
)


class EngineError(RuntimeError):
    """Base class for container engine failures."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class EngineUnavailable(EngineError):
    """Raised when the engine cannot be invoked at all."""

    @property
    def permission_denied(self) -> bool:
        """Whether a retry with elevated privileges could help."""
        text = f"{self} {self.stderr}".lower()
        return any(marker in text for marker in _PERMISSION_MARKERS)


class EngineTimeout(EngineError):
    """Raised when an engine call runs past the configured timeout."""


class ImageNotFound(EngineError):
    """Raised when an image reference is unknown to the engine."""


class EngineCommandError(EngineError):
    """Raised when an engine command exits non-zero for any other reason."""


def _classify(argv: Sequence[str], returncode: int, stderr: str) -> EngineError:
    """Map a failed engine invocation onto the error taxonomy."""
    lowered = stderr.lower()
    detail = stderr.strip() or "no error output"
    command = shlex.join(argv)
    if any(marker in lowered for marker in _PERMISSION_MARKERS + _DAEMON_MARKERS):
        return EngineUnavailable(
            f"Cannot talk to the container engine ({command}): {detail}",
            returncode=returncode,
            stderr=stderr,
        )
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return ImageNotFound(
            f"Image not found ({command}): {detail}",
            returncode=returncode,
            stderr=stderr,
        )
    return EngineCommandError(
        f"`{command}` exited with status {returncode}: {detail}",
        returncode=returncode,
        stderr=stderr,
    )


class ContainerEngine:
    """Thin, typed wrapper over a container engine CLI.

    Parameters
    ----------
    executable:
        Engine binary name or path (``docker``, ``podman``).
    mode:
        Privilege mode detected at startup.
    timeout:
        Seconds allowed per engine call; ``None`` waits forever. Attached
        calls (build, run, push) are never cut off.
    """

    def __init__(
        self,
        executable: str = "docker",
        *,
        mode: PrivilegeMode = PrivilegeMode.DIRECT,
        timeout: float | None = None,
    ) -> None:
        self.executable = executable
        self.mode = mode
        self.timeout = timeout

    @classmethod
    def connect(
        cls,
        executable: str = "docker",
        *,
        allow_sudo: bool = False,
        timeout: float | None = None,
    ) -> "ContainerEngine":
        """Probe the engine once and return an engine in the working mode."""
        mode = detect_privilege_mode(executable, allow_sudo=allow_sudo, timeout=timeout)
        return cls(executable, mode=mode, timeout=timeout)

    @property
    def prefix(self) -> list[str]:
        """The argv prefix every engine call starts with."""
        if self.mode == PrivilegeMode.SUDO:
            return ["sudo", self.executable]
        return [self.executable]

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def _invoke(
        self,
        args: Sequence[str],
        *,
        stdout: Any = subprocess.PIPE,
        stderr: Any = subprocess.PIPE,
        input: bytes | None = None,
        check: bool = True,
        bounded: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run one engine command.

        Attached calls (build, run, push) pass ``bounded=False`` and run
        without the engine timeout.
        """
        argv = [*self.prefix, *args]
        timeout = self.timeout if bounded else None
        logger.debug("+ %s", shlex.join(argv))
        try:
            result = subprocess.run(
                argv,
                stdout=stdout,
                stderr=stderr,
                input=input,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise EngineUnavailable(f"{argv[0]!r} not found on PATH") from exc
        except PermissionError as exc:
            raise EngineUnavailable(
                f"Permission denied executing {argv[0]!r}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise EngineTimeout(
                f"`{shlex.join(argv)}` timed out after {timeout}s"
            ) from exc

        if check and result.returncode != 0:
            raise _classify(argv, result.returncode, _decode(result.stderr))
        return result

    # ------------------------------------------------------------------
    # Engine operations
    # ------------------------------------------------------------------

    def version(self) -> str:
        """Return the engine's version report; doubles as a reachability probe."""
        return _decode(self._invoke(["version"]).stdout).strip()

    def build(
        self,
        path: Path,
        tag: str | None = None,
        args: Sequence[str] = (),
    ) -> str:
        """Build the context at *path* and return the resulting image ID.

        Build output goes straight to the terminal; the image ID is read
        back from an ``--iidfile``.
        """
        with tempfile.TemporaryDirectory(prefix="potr-") as tmp:
            iidfile = Path(tmp) / "iid"
            cmd = ["build", "--iidfile", str(iidfile)]
            if tag:
                cmd += ["--tag", tag]
            cmd += [*args, str(path)]
            self._invoke(cmd, stdout=None, stderr=None, bounded=False)
            image_id = (
                iidfile.read_text(encoding="utf-8").strip() if iidfile.exists() else ""
            )
        if not image_id:
            raise EngineCommandError(f"Build of {path} did not report an image ID")
        logger.info("Built %s -> %s", path, image_id)
        return image_id

    def inspect(self, image_ref: str, field: str) -> Any:
        """Return one field of the image configuration, JSON-decoded.

        *field* is a Go template path such as ``.Config.Env``.
        """
        result = self._invoke(
            ["image", "inspect", "--format", f"{{{{json {field}}}}}", image_ref]
        )
        raw = _decode(result.stdout).strip()
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EngineCommandError(
                f"Unexpected inspect output for {field} of {image_ref}: {raw!r}"
            ) from exc

    def run(
        self,
        image_ref: str,
        args: Sequence[str] = (),
        command: Sequence[str] = (),
    ) -> int:
        """Run a container attached to the terminal and return its exit code."""
        opts = ["--interactive"]
        if sys.stdin.isatty() and sys.stdout.isatty():
            opts.append("--tty")
        result = self._invoke(
            ["run", *opts, *args, image_ref, *command],
            stdout=None,
            stderr=None,
            check=False,
            bounded=False,
        )
        return result.returncode

    def create(self, image_ref: str) -> str:
        """Create (but do not start) a container and return its ID."""
        # A command is required for images without CMD/ENTRYPOINT; it never runs.
        result = self._invoke(["create", image_ref, "true"])
        return _decode(result.stdout).strip()

    def export(self, container_id: str, fileobj: IO[bytes]) -> None:
        """Write the container's flattened filesystem, as tar, to *fileobj*."""
        self._invoke(["export", container_id], stdout=fileobj)

    def remove_container(self, container_id: str) -> None:
        self._invoke(["rm", "--force", container_id])

    def tag(self, image_ref: str, new_tag: str) -> None:
        self._invoke(["tag", image_ref, new_tag])
        logger.info("Tagged %s as %s", image_ref, new_tag)

    def push(self, tag: str, args: Sequence[str] = ()) -> None:
        self._invoke(
            ["push", *args, tag], stdout=None, stderr=None, bounded=False
        )

    def images(self, reference: str) -> list[str]:
        """Return the IDs of images whose reference matches *reference*."""
        result = self._invoke(
            ["images", "--quiet", "--filter", f"reference={reference}"]
        )
        ids: list[str] = []
        for line in _decode(result.stdout).splitlines():
            image_id = line.strip()
            if image_id and image_id not in ids:
                ids.append(image_id)
        return ids

    def rmi(self, image_refs: Sequence[str], *, force: bool = False) -> None:
        if not image_refs:
            raise ValueError("rmi needs at least one image reference")
        cmd = ["rmi"]
        if force:
            cmd.append("--force")
        self._invoke([*cmd, *image_refs])

    def login(self, registry: str, username: str, password: str) -> None:
        """Log in to *registry*; the password travels on stdin only."""
        self._invoke(
            ["login", "--username", username, "--password-stdin", registry],
            input=password.encode("utf-8"),
        )
        logger.info("Logged in to %s as %s", registry, username)


def detect_privilege_mode(
    executable: str = "docker",
    *,
    allow_sudo: bool = False,
    timeout: float | None = None,
) -> PrivilegeMode:
    """Decide once how the engine must be invoked.

    Probes ``<engine> version`` directly; on a permission failure, and only
    when *allow_sudo* is set, probes again through ``sudo``.

    Raises
    ------
    EngineUnavailable
        If no mode works.
    """
    try:
        ContainerEngine(executable, timeout=timeout).version()
        return PrivilegeMode.DIRECT
    except EngineUnavailable as exc:
        if not (allow_sudo and exc.permission_denied):
            raise
        logger.info("Permission denied using %s; retrying through sudo", executable)
    except EngineCommandError as exc:
        raise EngineUnavailable(
            str(exc), returncode=exc.returncode, stderr=exc.stderr
        ) from exc

    try:
        ContainerEngine(executable, mode=PrivilegeMode.SUDO, timeout=timeout).version()
    except EngineCommandError as exc:
        raise EngineUnavailable(
            str(exc), returncode=exc.returncode, stderr=exc.stderr
        ) from exc
    return PrivilegeMode.SUDO


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
