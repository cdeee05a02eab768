"""Lock record — the expected build-container fingerprint (``potr.sum``).

The record is one line holding a fingerprint. It moves through two states:

    Absent  --verify(f)-->  Present(f)          result: INITIALIZED
    Present(f) --verify(f)--> Present(f)        result: MATCH
    Present(f) --verify(g)--> Present(f)        result: MISMATCH
    any     --delete()-->   Absent

There is no automatic reconciliation: a mismatch leaves the record as it
was, and only an explicit delete (``potr update``) re-opens it.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from potr.core.hasher import is_fingerprint
from potr.models.verification import VerificationResult, VerificationStatus

logger = logging.getLogger(__name__)


class LockFileError(RuntimeError):
    """Raised when the lock record exists but cannot be used."""


class LockFile:
    """Single-value, whole-file-replace lock record.

    Parameters
    ----------
    path:
        Location of the record, normally ``<project>/potr.sum``.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> str | None:
        """Return the locked fingerprint, or ``None`` if there is no record."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LockFileError(f"Cannot read {self.path}: {exc}") from exc

        lines = text.splitlines()
        value = lines[0].strip() if lines else ""
        if not is_fingerprint(value):
            raise LockFileError(
                f"{self.path} does not hold a fingerprint (found {value!r}); "
                "run `potr update` to regenerate it"
            )
        return value

    def write(self, fingerprint: str) -> None:
        """Replace the record atomically with *fingerprint*.

        The value goes to a temporary file in the same directory which is
        then renamed over the record, so readers see the old or the new
        value, never a partial one.
        """
        if not is_fingerprint(fingerprint):
            raise ValueError(f"Not a fingerprint: {fingerprint!r}")

        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(f"{fingerprint}\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s", self.path)

    def delete(self) -> bool:
        """Remove the record. Returns ``False`` if there was none."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Removed lock record %s", self.path)
        return True

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def verify(self, fingerprint: str) -> VerificationResult:
        """Compare *fingerprint* with the record, initializing it if absent."""
        locked = self.read()
        if locked is None:
            self.write(fingerprint)
            logger.info("Initialized %s with %s", self.path.name, fingerprint)
            return VerificationResult(
                status=VerificationStatus.INITIALIZED, computed=fingerprint
            )

        if locked == fingerprint:
            return VerificationResult(
                status=VerificationStatus.MATCH, computed=fingerprint, locked=locked
            )

        logger.warning(
            "Fingerprint mismatch: locked=%s computed=%s", locked, fingerprint
        )
        return VerificationResult(
            status=VerificationStatus.MISMATCH, computed=fingerprint, locked=locked
        )
