"""Deterministic content archive for build-container fingerprinting.

Layout of the archive (entries sorted lexicographically by path)::

    cmd           JSON argument vector + newline
    entrypoint    JSON argument vector + newline
    env           one NAME=value per line, engine order
    rootfs/...    the image's flattened filesystem

Every entry's mtime is forced to one constant and pax headers are dropped,
so the archive depends only on file contents, names, modes and ownership.
"""

from __future__ import annotations

import copy
import io
import logging
import tarfile
from typing import IO

from potr.core.hasher import canonical_json_bytes
from potr.models.verification import MetadataSnapshot

logger = logging.getLogger(__name__)

ROOTFS_PREFIX = "rootfs"


class ArchiveError(RuntimeError):
    """Raised when the exported filesystem cannot be read completely."""


def metadata_files(snapshot: MetadataSnapshot) -> dict[str, bytes]:
    """Render the metadata snapshot as the three metadata file bodies."""
    return {
        "cmd": canonical_json_bytes(snapshot.cmd) + b"\n",
        "entrypoint": canonical_json_bytes(snapshot.entrypoint) + b"\n",
        "env": "".join(f"{assignment}\n" for assignment in snapshot.env).encode(
            "utf-8"
        ),
    }


def normalize_member_name(name: str) -> str:
    """Strip leading ``/`` and ``./`` and any trailing ``/`` from a tar path."""
    name = name.lstrip("/")
    while name.startswith("./"):
        name = name[2:].lstrip("/")
    if name == ".":
        return ""
    return name.rstrip("/")


def _metadata_info(name: str, size: int, mtime: int) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.size = size
    info.mode = 0o644
    info.mtime = mtime
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def _rootfs_info(member: tarfile.TarInfo, name: str, mtime: int) -> tarfile.TarInfo:
    info = copy.copy(member)
    info.name = f"{ROOTFS_PREFIX}/{name}"
    info.mtime = mtime
    info.pax_headers = {}
    if member.isreg():
        # sparse members are written back out as plain files
        info.type = tarfile.REGTYPE
    else:
        info.size = 0
    if member.islnk():
        info.linkname = f"{ROOTFS_PREFIX}/{normalize_member_name(member.linkname)}"
    return info


def build_content_archive(
    snapshot: MetadataSnapshot,
    rootfs_tar: IO[bytes],
    out: IO[bytes],
    *,
    mtime: int = 0,
) -> int:
    """Write the deterministic content archive to *out*.

    Parameters
    ----------
    snapshot:
        Env/Cmd/Entrypoint of the image.
    rootfs_tar:
        Seekable file holding the engine's filesystem export (a tar).
    out:
        Writable binary stream; the archive is streamed, never seeked.
    mtime:
        The modification time given to every entry.

    Returns
    -------
    int
        Number of entries written.

    Raises
    ------
    ArchiveError
        If the export is empty, corrupt or truncated.
    """
    try:
        source = tarfile.open(fileobj=rootfs_tar, mode="r:")
    except tarfile.TarError as exc:
        raise ArchiveError(f"Filesystem export is not a readable tar: {exc}") from exc

    with source:
        # Later entries overwrite earlier ones, as on extraction.
        members: dict[str, tarfile.TarInfo] = {}
        try:
            for member in source:
                name = normalize_member_name(member.name)
                if name:
                    members[name] = member
        except (tarfile.TarError, OSError) as exc:
            raise ArchiveError(f"Filesystem export is incomplete: {exc}") from exc

        # (output header, source member, literal body)
        entries: list[tuple[tarfile.TarInfo, tarfile.TarInfo | None, bytes | None]] = [
            (_metadata_info(name, len(body), mtime), None, body)
            for name, body in metadata_files(snapshot).items()
        ]
        entries += [
            (_rootfs_info(member, name, mtime), member, None)
            for name, member in members.items()
        ]
        entries.sort(key=lambda entry: entry[0].name)

        with tarfile.open(fileobj=out, mode="w|", format=tarfile.GNU_FORMAT) as archive:
            for info, member, body in entries:
                try:
                    if body is not None:
                        payload: IO[bytes] | None = io.BytesIO(body)
                    elif member is not None and info.isreg():
                        payload = source.extractfile(member)
                    else:
                        payload = None
                    archive.addfile(info, payload)
                except (tarfile.TarError, OSError) as exc:
                    raise ArchiveError(
                        f"Could not read {info.name} from the filesystem export: {exc}"
                    ) from exc

    logger.debug("Content archive: %d entries", len(entries))
    return len(entries)
