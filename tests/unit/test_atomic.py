"""
Tests for atomic snapshot writes.
"""

import os

import pytest
from tocminer.utils import atomic_write_bytes


@pytest.mark.unit
class TestAtomicWrites:
    def test_write_and_replace(self, tmp_path):
        target = tmp_path / "deep" / "stats.json"
        atomic_write_bytes(target, b"first")
        atomic_write_bytes(target, b"second")
        assert target.read_bytes() == b"second"
        assert [p.name for p in target.parent.iterdir()] == ["stats.json"]

    def test_accepts_str_path(self, tmp_path):
        target = tmp_path / "stats.json"
        atomic_write_bytes(str(target), "목차".encode("utf-8"))
        assert target.read_text(encoding="utf-8") == "목차"

    def test_falls_back_to_move_when_rename_fails(self, tmp_path, monkeypatch):
        def refuse(src, dst):
            raise OSError("cross-device link")

        monkeypatch.setattr(os, "replace", refuse)
        target = tmp_path / "stats.json"
        atomic_write_bytes(target, b"moved")
        assert target.read_bytes() == b"moved"
        assert [p.name for p in tmp_path.iterdir()] == ["stats.json"]

    def test_unwritable_target(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        with pytest.raises(OSError, match="Could not write"):
            atomic_write_bytes(blocker / "stats.json", b"x")
