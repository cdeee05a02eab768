"""Registry helpers for ``potr push`` — AWS ECR login."""

from __future__ import annotations

import logging
import re
import shlex
import subprocess

from potr.core.engine import ContainerEngine

logger = logging.getLogger(__name__)

_ECR_HOST_RE = re.compile(
    r"^(?P<account>\d{12})\.dkr\.ecr(?:-fips)?\.(?P<region>[a-z0-9-]+)\.amazonaws\.com(?:\.cn)?$"
)


class RegistryLoginError(RuntimeError):
    """Raised when registry credentials cannot be obtained."""


def ecr_region(registry: str) -> str | None:
    """Return the AWS region of an ECR registry host, ``None`` for other hosts."""
    host = registry.split("/", 1)[0]
    match = _ECR_HOST_RE.match(host)
    return match.group("region") if match else None


def ecr_password(region: str, *, timeout: float | None = None) -> str:
    """Fetch an ECR login password with the AWS CLI."""
    argv = ["aws", "ecr", "get-login-password", "--region", region]
    logger.debug("+ %s", shlex.join(argv))
    try:
        result = subprocess.run(
            argv, capture_output=True, text=True, timeout=timeout
        )
    except FileNotFoundError as exc:
        raise RegistryLoginError("'aws' not found on PATH; install the AWS CLI") from exc
    except subprocess.TimeoutExpired as exc:
        raise RegistryLoginError(f"`{shlex.join(argv)}` timed out") from exc
    if result.returncode != 0:
        raise RegistryLoginError(
            f"`{shlex.join(argv)}` exited with status {result.returncode}: "
            f"{result.stderr.strip() or 'no error output'}"
        )
    password = result.stdout.strip()
    if not password:
        raise RegistryLoginError("AWS CLI returned an empty ECR password")
    return password


def login_if_needed(engine: ContainerEngine, registry: str) -> bool:
    """Log *engine* in to *registry* when it is an ECR registry.

    Returns ``True`` if a login was performed. Other registries are assumed
    to be logged in already.
    """
    region = ecr_region(registry)
    if region is None:
        return False
    host = registry.split("/", 1)[0]
    engine.login(host, "AWS", ecr_password(region, timeout=engine.timeout))
    return True
