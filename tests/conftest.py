"""Shared test fixtures for potr.

The container engine is replaced by ``FakeEngine``, which keeps synthetic
images in memory and serves their filesystems as tar exports, so the suite
runs without docker or podman.
"""

from __future__ import annotations

import io
import tarfile
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import IO, Any

import pytest

from potr.config import PotrSettings
from potr.core.engine import ContainerEngine, EngineCommandError, ImageNotFound
from potr.core.lock_file import LockFile
from potr.core.pipeline import Potr
from potr.core.verifier import BuildContainerVerifier


def make_rootfs_tar(
    files: dict[str, bytes],
    *,
    mtime: int = 1_700_000_000,
    order: Iterable[str] | None = None,
    prefix: str = "",
) -> bytes:
    """Build a filesystem export: parent directories first, then *files*."""
    buf = io.BytesIO()
    names = list(order) if order is not None else list(files)
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
        seen_dirs: set[str] = set()
        for name in names:
            parts = name.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                directory = "/".join(parts[:i])
                if directory in seen_dirs:
                    continue
                seen_dirs.add(directory)
                info = tarfile.TarInfo(f"{prefix}{directory}")
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                info.mtime = mtime
                tar.addfile(info)
            data = files[name]
            info = tarfile.TarInfo(f"{prefix}{name}")
            info.size = len(data)
            info.mode = 0o644
            info.mtime = mtime
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class FakeImage:
    """A synthetic image: filesystem plus the three metadata fields."""

    def __init__(
        self,
        files: dict[str, bytes] | None = None,
        *,
        env: list[str] | None = None,
        cmd: list[str] | None = None,
        entrypoint: list[str] | None = None,
        mtime: int = 1_700_000_000,
        order: list[str] | None = None,
    ) -> None:
        self.files = files if files is not None else {"a.txt": b"1"}
        self.env = env if env is not None else []
        self.cmd = cmd
        self.entrypoint = entrypoint
        self.mtime = mtime
        self.order = order

    def export(self) -> bytes:
        return make_rootfs_tar(self.files, mtime=self.mtime, order=self.order)


class FakeEngine(ContainerEngine):
    """In-memory stand-in for the container engine CLI."""

    def __init__(self) -> None:
        super().__init__("fake-engine")
        self.images_by_id: dict[str, FakeImage] = {}
        self.tags: dict[str, str] = {}
        self.containers: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.next_build: FakeImage = FakeImage()
        self.run_exit_code = 0
        self.fail_export = False
        self._counter = 0
        self._created = 0

    # helpers ----------------------------------------------------------

    def add_image(self, image: FakeImage) -> str:
        self._counter += 1
        image_id = f"sha256:{self._counter:064x}"
        self.images_by_id[image_id] = image
        return image_id

    def resolve(self, ref: str) -> str:
        if ref in self.images_by_id:
            return ref
        if ref in self.tags:
            return self.tags[ref]
        if f"{ref}:latest" in self.tags:
            return self.tags[f"{ref}:latest"]
        raise ImageNotFound(f"Image not found: No such image: {ref}", returncode=1)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    # engine operations -------------------------------------------------

    def version(self) -> str:
        return "fake-engine 1.0"

    def build(
        self,
        path: Path,
        tag: str | None = None,
        args: Sequence[str] = (),
    ) -> str:
        self.calls.append(("build", Path(path), tag, list(args)))
        # every build happens "later" than the previous one
        image = self.next_build
        built = FakeImage(
            dict(image.files),
            env=list(image.env),
            cmd=image.cmd,
            entrypoint=image.entrypoint,
            mtime=image.mtime + self._counter * 60,
            order=image.order,
        )
        image_id = self.add_image(built)
        if tag:
            self.tags[tag] = image_id
        return image_id

    def inspect(self, image_ref: str, field: str) -> Any:
        image = self.images_by_id[self.resolve(image_ref)]
        return {
            ".Config.Env": image.env,
            ".Config.Cmd": image.cmd,
            ".Config.Entrypoint": image.entrypoint,
        }[field]

    def create(self, image_ref: str) -> str:
        image_id = self.resolve(image_ref)
        self._created += 1
        container_id = f"container-{self._created}"
        self.containers[container_id] = image_id
        self.calls.append(("create", image_ref))
        return container_id

    def export(self, container_id: str, fileobj: IO[bytes]) -> None:
        self.calls.append(("export", container_id))
        if self.fail_export:
            raise EngineCommandError("export failed: permission denied reading /secret", returncode=1)
        fileobj.write(self.images_by_id[self.containers[container_id]].export())

    def remove_container(self, container_id: str) -> None:
        self.calls.append(("rm", container_id))
        self.containers.pop(container_id, None)

    def tag(self, image_ref: str, new_tag: str) -> None:
        self.calls.append(("tag", image_ref, new_tag))
        self.tags[new_tag] = self.resolve(image_ref)

    def run(
        self,
        image_ref: str,
        args: Sequence[str] = (),
        command: Sequence[str] = (),
    ) -> int:
        self.resolve(image_ref)
        self.calls.append(("run", image_ref, list(args), list(command)))
        return self.run_exit_code

    def push(self, tag: str, args: Sequence[str] = ()) -> None:
        self.calls.append(("push", tag, list(args)))

    def images(self, reference: str) -> list[str]:
        ids: list[str] = []
        for tag, image_id in self.tags.items():
            repository = tag.rsplit(":", 1)[0] if ":" in tag else tag
            if repository == reference and image_id not in ids:
                ids.append(image_id)
        return ids

    def rmi(self, image_refs: Sequence[str], *, force: bool = False) -> None:
        self.calls.append(("rmi", list(image_refs), force))
        for ref in image_refs:
            self.tags = {t: i for t, i in self.tags.items() if i != ref}
            self.images_by_id.pop(ref, None)

    def login(self, registry: str, username: str, password: str) -> None:
        self.calls.append(("login", registry, username, password))


@pytest.fixture
def engine() -> FakeEngine:
    """Provide a fresh in-memory engine."""
    return FakeEngine()


@pytest.fixture
def lock_file(tmp_path: Path) -> LockFile:
    """Provide a lock record in a temp directory (initially absent)."""
    return LockFile(tmp_path / "potr.sum")


@pytest.fixture
def verifier(engine: FakeEngine, lock_file: LockFile) -> BuildContainerVerifier:
    """Provide a verifier wired to the fake engine and temp lock record."""
    return BuildContainerVerifier(engine, lock_file)


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: lay out a potr project and return its root."""

    def _factory(
        conf: str = "name=hello\n",
        *,
        build_dir: bool = True,
        dockerfile: bool = False,
    ) -> Path:
        root = tmp_path / "project"
        root.mkdir(exist_ok=True)
        (root / "potr.conf").write_text(conf, encoding="utf-8")
        if build_dir:
            (root / "build-container").mkdir(exist_ok=True)
            (root / "build-container" / "Dockerfile").write_text(
                "FROM debian:bookworm-slim\n", encoding="utf-8"
            )
        if dockerfile:
            (root / "Dockerfile").write_text("FROM hello-build\n", encoding="utf-8")
        return root

    return _factory


@pytest.fixture
def potr_ctx(make_project: Callable[..., Path], engine: FakeEngine) -> Potr:
    """Provide a Potr context for a default project on the fake engine."""
    return Potr(make_project(), engine=engine, settings=PotrSettings())


@pytest.fixture
def make_image() -> Callable[..., FakeImage]:
    """Factory fixture: build a synthetic image."""
    return FakeImage


@pytest.fixture
def rootfs_tar() -> Callable[..., bytes]:
    """Factory fixture: build a filesystem export tar as bytes."""
    return make_rootfs_tar
