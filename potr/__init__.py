"""potr: build, verify, run and ship a project's build container.

A thin, structured wrapper around a container engine CLI (docker, podman)
for projects laid out as ``potr.conf`` + ``build-container/``:

  - Build container verification: a deterministic content fingerprint of the
    freshly built image is checked against the ``potr.sum`` lock record
  - Commands run inside the verified build container
  - Deploy container build, registry push (with AWS ECR login) and cleanup
"""

__version__ = "0.1.0"

from potr.core.pipeline import Potr
from potr.core.verifier import BuildContainerVerifier
from potr.cli.app import app as cli

__all__ = ["Potr", "BuildContainerVerifier", "cli", "__version__"]
