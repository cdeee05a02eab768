"""Tests for BuildContainerVerifier against the in-memory engine."""

from __future__ import annotations

import pytest

from potr.core.archive import ArchiveError
from potr.core.engine import ImageNotFound
from potr.core.hasher import is_fingerprint
from potr.core.verifier import BuildContainerVerifier, FingerprintMismatch
from potr.models.verification import VerificationStatus


class TestComputeFingerprint:
    def test_returns_fingerprint(self, engine, verifier: BuildContainerVerifier):
        image = engine.build("build-container")
        assert is_fingerprint(verifier.compute_fingerprint(image))

    def test_stable_across_rebuilds(self, engine, verifier, make_image):
        engine.next_build = make_image({"a.txt": b"1"}, env=[])
        first = engine.build("build-container")
        second = engine.build("build-container")
        assert first != second
        assert verifier.compute_fingerprint(first) == verifier.compute_fingerprint(second)

    def test_content_change_changes_fingerprint(self, engine, verifier, make_image):
        engine.next_build = make_image({"a.txt": b"1"})
        h1 = verifier.compute_fingerprint(engine.build("build-container"))
        engine.next_build = make_image({"a.txt": b"2"})
        h2 = verifier.compute_fingerprint(engine.build("build-container"))
        assert h1 != h2

    @pytest.mark.parametrize(
        "change",
        [
            {"env": ["LANG=C.UTF-8"]},
            {"cmd": ["bash"]},
            {"entrypoint": ["/entry.sh"]},
        ],
    )
    def test_metadata_change_changes_fingerprint(self, engine, verifier, make_image, change):
        engine.next_build = make_image({"a.txt": b"1"})
        h1 = verifier.compute_fingerprint(engine.build("build-container"))
        engine.next_build = make_image({"a.txt": b"1"}, **change)
        h2 = verifier.compute_fingerprint(engine.build("build-container"))
        assert h1 != h2

    def test_null_cmd_equals_empty_cmd(self, engine, verifier, make_image):
        engine.next_build = make_image(cmd=None)
        h1 = verifier.compute_fingerprint(engine.build("build-container"))
        engine.next_build = make_image(cmd=[])
        h2 = verifier.compute_fingerprint(engine.build("build-container"))
        assert h1 == h2

    def test_snapshot(self, engine, verifier, make_image):
        engine.next_build = make_image(env=["B=2", "A=1"], cmd=["make"])
        snapshot = verifier.snapshot(engine.build("build-container"))
        assert snapshot.env == ["B=2", "A=1"]
        assert snapshot.cmd == ["make"]
        assert snapshot.entrypoint == []

    def test_throwaway_container_removed(self, engine, verifier):
        verifier.compute_fingerprint(engine.build("build-container"))
        assert engine.containers == {}
        assert len(engine.calls_named("rm")) == 1

    def test_unknown_image(self, verifier):
        with pytest.raises(ImageNotFound):
            verifier.compute_fingerprint("does-not-exist")

    def test_export_failure_is_archive_error(self, engine, verifier):
        engine.fail_export = True
        with pytest.raises(ArchiveError, match="permission denied"):
            verifier.compute_fingerprint(engine.build("build-container"))
        assert engine.containers == {}


class TestVerifyAndUpdate:
    def test_lifecycle(self, engine, verifier, make_image):
        engine.next_build = make_image({"a.txt": b"1"})
        f = verifier.compute_fingerprint(engine.build("build-container"))
        engine.next_build = make_image({"a.txt": b"2"})
        g = verifier.compute_fingerprint(engine.build("build-container"))

        assert verifier.verify(f).status == VerificationStatus.INITIALIZED
        assert verifier.verify(f).status == VerificationStatus.MATCH
        result = verifier.verify(g)
        assert result.status == VerificationStatus.MISMATCH
        assert (result.locked, result.computed) == (f, g)
        assert verifier.lock_file.read() == f

    def test_update_then_verify_initializes(self, engine, verifier):
        f = "0" * 32
        g = "1" * 32
        verifier.verify(f)
        verifier.update()
        result = verifier.verify(g)
        assert result.status == VerificationStatus.INITIALIZED
        assert verifier.lock_file.read() == g

    def test_update_without_record(self, verifier):
        verifier.update()
        assert verifier.lock_file.exists() is False

    def test_check_combines_both(self, engine, verifier):
        image = engine.build("build-container")
        assert verifier.check(image).status == VerificationStatus.INITIALIZED
        assert verifier.check(image).status == VerificationStatus.MATCH


class TestFingerprintMismatch:
    def test_message_carries_both(self):
        exc = FingerprintMismatch("a" * 32, "b" * 32)
        assert "a" * 32 in str(exc)
        assert "b" * 32 in str(exc)
        assert exc.locked == "a" * 32
