"""Verification models — metadata snapshot and lock verification outcome."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class MetadataSnapshot(BaseModel):
    """The image configuration fields that take part in the fingerprint.

    ``env`` keeps the engine's ordering of ``NAME=value`` assignments;
    ``cmd`` and ``entrypoint`` are argument vectors (empty when unset).
    """

    model_config = ConfigDict(frozen=True)

    env: list[str] = []
    cmd: list[str] = []
    entrypoint: list[str] = []


class VerificationStatus(str, Enum):
    """Outcome of comparing a computed fingerprint with the lock record."""

    INITIALIZED = "initialized"  # no record existed; the fingerprint was written
    MATCH = "match"
    MISMATCH = "mismatch"  # record left untouched


class VerificationResult(BaseModel):
    """Result of a single lock verification."""

    model_config = ConfigDict(frozen=True)

    status: VerificationStatus
    computed: str
    locked: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the pipeline may continue."""
        return self.status != VerificationStatus.MISMATCH
