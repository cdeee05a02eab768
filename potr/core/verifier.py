"""Build Container Verifier — is the fresh build container the locked one?

A verification pass runs strictly in sequence:

1. ``inspect`` the image for Env, Cmd and Entrypoint (the metadata snapshot).
2. ``create`` a throwaway container and ``export`` its flattened filesystem
   into a disk-backed temporary file.
3. Rebuild that export as the deterministic content archive
   (``potr.core.archive``) and stream it into the fingerprint digest.
4. Compare the fingerprint with the lock record (``potr.core.lock_file``).

The throwaway container is always removed.
"""

from __future__ import annotations

import logging
import tempfile

from pydantic import ValidationError

from potr.core.archive import ArchiveError, build_content_archive
from potr.core.engine import ContainerEngine, EngineCommandError, EngineError
from potr.core.hasher import HashingWriter
from potr.core.lock_file import LockFile
from potr.models.verification import MetadataSnapshot, VerificationResult

logger = logging.getLogger(__name__)

_METADATA_FIELDS = {
    "env": ".Config.Env",
    "cmd": ".Config.Cmd",
    "entrypoint": ".Config.Entrypoint",
}


class FingerprintMismatch(RuntimeError):
    """Raised by callers that treat a lock mismatch as fatal.

    Carries both fingerprints so the operator can decide without re-running.
    """

    def __init__(self, locked: str, computed: str) -> None:
        super().__init__(
            f"Build container fingerprint mismatch: locked {locked}, "
            f"computed {computed}"
        )
        self.locked = locked
        self.computed = computed


class BuildContainerVerifier:
    """Fingerprints build-container images and checks them against the lock.

    Parameters
    ----------
    engine:
        The container engine collaborator.
    lock_file:
        The project's lock record.
    mtime:
        Modification time stamped on every content archive entry.
    """

    def __init__(
        self,
        engine: ContainerEngine,
        lock_file: LockFile,
        *,
        mtime: int = 0,
    ) -> None:
        self._engine = engine
        self._lock = lock_file
        self._mtime = mtime

    @property
    def lock_file(self) -> LockFile:
        return self._lock

    # ------------------------------------------------------------------
    # Fingerprinting
    # ------------------------------------------------------------------

    def snapshot(self, image_ref: str) -> MetadataSnapshot:
        """Extract Env, Cmd and Entrypoint from the image configuration."""
        values = {
            key: self._engine.inspect(image_ref, field) or []
            for key, field in _METADATA_FIELDS.items()
        }
        try:
            return MetadataSnapshot(**values)
        except ValidationError as exc:
            raise EngineCommandError(
                f"Unexpected image configuration for {image_ref}: {exc}"
            ) from exc

    def compute_fingerprint(self, image_ref: str) -> str:
        """Return the content fingerprint of *image_ref*.

        Raises
        ------
        EngineUnavailable
            If the engine cannot be invoked.
        ImageNotFound
            If the engine does not know *image_ref*.
        ArchiveError
            If the filesystem export fails or is incomplete.
        """
        snapshot = self.snapshot(image_ref)
        container_id = self._engine.create(image_ref)
        try:
            with tempfile.TemporaryFile(prefix="potr-export-") as rootfs:
                try:
                    self._engine.export(container_id, rootfs)
                except EngineCommandError as exc:
                    raise ArchiveError(
                        f"Exporting the filesystem of {image_ref} failed: {exc}"
                    ) from exc
                rootfs.seek(0)
                writer = HashingWriter()
                entries = build_content_archive(
                    snapshot, rootfs, writer, mtime=self._mtime
                )
        finally:
            self._discard(container_id)

        fingerprint = writer.hexdigest()
        logger.info(
            "Fingerprint of %s: %s (%d entries, %d bytes)",
            image_ref,
            fingerprint,
            entries,
            writer.bytes_written,
        )
        return fingerprint

    def _discard(self, container_id: str) -> None:
        try:
            self._engine.remove_container(container_id)
        except EngineError as exc:
            logger.warning("Could not remove container %s: %s", container_id, exc)

    # ------------------------------------------------------------------
    # Lock record
    # ------------------------------------------------------------------

    def verify(self, fingerprint: str) -> VerificationResult:
        """Check *fingerprint* against the lock record (see ``LockFile.verify``)."""
        return self._lock.verify(fingerprint)

    def update(self) -> None:
        """Drop the lock record so the next ``verify`` re-initializes it."""
        if not self._lock.delete():
            logger.debug("No lock record at %s to remove", self._lock.path)

    def check(self, image_ref: str) -> VerificationResult:
        """Fingerprint *image_ref* and verify it in one pass."""
        return self.verify(self.compute_fingerprint(image_ref))
