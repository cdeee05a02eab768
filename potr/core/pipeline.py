"""Command flows — the fixed build / verify / tag / run / push sequences.

``Potr`` is the explicit context every flow runs in: the project root, its
``potr.conf``, the engine (with its privilege mode already detected), the
lock record and the verifier. Nothing is kept in process-wide state.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from potr.config import PotrSettings
from potr.core.engine import ContainerEngine
from potr.core.lock_file import LockFile
from potr.core.registry import login_if_needed
from potr.core.verifier import BuildContainerVerifier, FingerprintMismatch
from potr.models.project import ProjectConfig, ProjectConfigError
from potr.models.verification import VerificationResult

logger = logging.getLogger(__name__)


class Potr:
    """One project, one engine, one lock record.

    Parameters
    ----------
    project_dir:
        Directory holding ``potr.conf``, ``build-container/`` and ``potr.sum``.
    engine:
        Container engine collaborator.
    settings:
        Tool settings. Uses defaults (and ``POTR_*`` variables) if not provided.
    project:
        Parsed ``potr.conf``. Loaded from *project_dir* if not provided.
    """

    def __init__(
        self,
        project_dir: Path,
        *,
        engine: ContainerEngine,
        settings: PotrSettings | None = None,
        project: ProjectConfig | None = None,
    ) -> None:
        self.settings = settings or PotrSettings()
        self.root = Path(project_dir).resolve()
        self.project = project or ProjectConfig.load(self.root / self.settings.conf_file)
        self.engine = engine
        self.lock_file = LockFile(self.root / self.settings.lock_file)
        self.verifier = BuildContainerVerifier(
            engine, self.lock_file, mtime=self.settings.archive_mtime
        )

    @classmethod
    def open(cls, project_dir: Path, settings: PotrSettings | None = None) -> "Potr":
        """Load the project, then probe the engine once."""
        settings = settings or PotrSettings()
        root = Path(project_dir).resolve()
        project = ProjectConfig.load(root / settings.conf_file)
        engine = ContainerEngine.connect(
            settings.engine,
            allow_sudo=settings.sudo_fallback,
            timeout=settings.engine_timeout,
        )
        logger.debug("Using %s in %s mode", settings.engine, engine.mode.value)
        return cls(root, engine=engine, settings=settings, project=project)

    # ------------------------------------------------------------------
    # Build container
    # ------------------------------------------------------------------

    def build_container(self) -> VerificationResult:
        """Build, fingerprint and verify the build container, then tag it.

        Raises
        ------
        FingerprintMismatch
            If the fresh build differs from the lock record. The image is
            left untagged and the record untouched.
        """
        build_dir = self.root / self.settings.build_dir
        if not build_dir.is_dir():
            raise ProjectConfigError(f"Build container directory not found: {build_dir}")

        image_id = self.engine.build(
            build_dir, args=self.project.args_for("build-container")
        )
        result = self.verifier.check(image_id)
        if not result.ok:
            raise FingerprintMismatch(result.locked or "", result.computed)

        self.engine.tag(image_id, self.project.build_image)
        return result

    def update(self) -> VerificationResult:
        """Forget the locked fingerprint and lock the freshly built one."""
        self.verifier.update()
        return self.build_container()

    # ------------------------------------------------------------------
    # Run / deploy / push / clean
    # ------------------------------------------------------------------

    def run_args(self) -> list[str]:
        """Engine ``run`` options for the build container."""
        workdir = self.project.workdir
        return [
            "--rm",
            "--volume",
            f"{self.root}:{workdir}",
            "--workdir",
            workdir,
            *self.project.common_args,
            *self.project.args_for("run"),
        ]

    def run(self, command: Sequence[str] = ()) -> int:
        """Run *command* in the verified build container; return its exit code."""
        self.build_container()
        return self.engine.run(self.project.build_image, self.run_args(), command)

    def deploy(self) -> str:
        """Build the deploy container from the project root ``Dockerfile``."""
        self.build_container()
        if not (self.root / "Dockerfile").is_file():
            raise ProjectConfigError(f"No Dockerfile in {self.root} to deploy")
        return self.engine.build(
            self.root,
            tag=self.project.deploy_image,
            args=self.project.args_for("deploy"),
        )

    def push(self) -> str:
        """Tag the deploy container for the registry and push it."""
        registry = self.project.registry.rstrip("/")
        if not registry:
            raise ProjectConfigError("Set 'registry' in potr.conf to push")

        login_if_needed(self.engine, registry)
        remote = f"{registry}/{self.project.deploy_image}"
        self.engine.tag(self.project.deploy_image, remote)
        self.engine.push(remote, self.project.args_for("push"))
        logger.info("Pushed %s", remote)
        return remote

    def clean(self) -> list[str]:
        """Remove every image of this project. Returns the removed IDs."""
        image_ids: list[str] = []
        for reference in (self.project.name, self.project.build_image):
            for image_id in self.engine.images(reference):
                if image_id not in image_ids:
                    image_ids.append(image_id)

        if not image_ids:
            logger.info("No images of %s to remove", self.project.name)
            return []

        self.engine.rmi(image_ids, force=True)
        logger.info("Removed %d image(s)", len(image_ids))
        return image_ids
