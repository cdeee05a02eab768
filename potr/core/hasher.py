"""Fingerprint hashing helpers for build-container content verification.

A fingerprint is the 128-bit MD5 digest of the deterministic content archive,
rendered as 32 lowercase hex characters. MD5 is used as a checksum here, not
as a security boundary: the lock record detects drift, it does not
authenticate anything.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{32}$")


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def is_fingerprint(value: str) -> bool:
    """Whether *value* looks like a fingerprint (32 lowercase hex chars)."""
    return bool(_FINGERPRINT_RE.match(value))


class HashingWriter:
    """Write-only file object that feeds everything written into a digest.

    Lets ``tarfile`` stream an archive straight into the hash so the archive
    never has to exist on disk or in memory.
    """

    def __init__(self) -> None:
        self._digest = hashlib.md5()
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        self._digest.update(data)
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        pass

    def hexdigest(self) -> str:
        """Return the fingerprint of everything written so far."""
        return self._digest.hexdigest()
