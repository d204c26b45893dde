"""Tests for the workspace path policy."""

from __future__ import annotations

from pathlib import Path

import pytest

from pbmemory import paths
from pbmemory.errors import InvalidDayError, PathTraversalError


class TestNormalize:
    def test_blocks_parent_traversal(self, root: Path):
        with pytest.raises(PathTraversalError):
            paths.normalize(root, "../../etc/passwd")

    def test_blocks_absolute_path(self, root: Path):
        with pytest.raises(PathTraversalError):
            paths.normalize(root, "/etc/passwd")

    def test_blocks_sneaky_traversal(self, root: Path):
        with pytest.raises(PathTraversalError):
            paths.normalize(root, ".pb/memory/../../../outside.md")

    def test_resolves_inside_root(self, root: Path):
        ok = paths.normalize(root, ".pb/memory/daily/2026-02-12.scratch.md")
        assert root.resolve() in ok.parents

    def test_empty_is_root(self, root: Path):
        assert paths.normalize(root, "") == root.resolve()

    def test_sibling_with_common_prefix_blocked(self, root: Path):
        sibling = root.parent / (root.name + "-other")
        sibling.mkdir()
        with pytest.raises(PathTraversalError):
            paths.normalize(root, f"../{sibling.name}/MEMORY.md")


class TestReadAllowlist:
    @pytest.mark.parametrize(
        "rel",
        [
            "MEMORY.md",
            "MEMORY_ARCHIVE/2026-02.md",
            ".pb/memory/daily/2026-02-12.scratch.md",
            ".pb/memory/daily/2026-02-12.summary.md",
        ],
    )
    def test_allowed(self, root: Path, rel: str):
        assert paths.is_allowlisted_read(root, paths.normalize(root, rel))

    @pytest.mark.parametrize("rel", ["notes.txt", "MEMORY.md.bak", ".pb/config.json", "MEMORY_ARCHIVE"])
    def test_denied(self, root: Path, rel: str):
        assert not paths.is_allowlisted_read(root, paths.normalize(root, rel))

    def test_outside_root_denied(self, root: Path, tmp_path: Path):
        assert not paths.is_allowlisted_read(root, tmp_path / "MEMORY.md")


class TestWriteTargets:
    def test_durable_write_paths(self):
        assert paths.is_durable_write_path("MEMORY.md")
        assert paths.is_durable_write_path("MEMORY_ARCHIVE/2026-02.md")
        assert not paths.is_durable_write_path("MEMORY_ARCHIVE/")
        assert not paths.is_durable_write_path("MEMORY_ARCHIVE/sub")
        assert not paths.is_durable_write_path("MEMORY_ARCHIVE/notes.md")
        assert not paths.is_durable_write_path("MEMORY_ARCHIVE/2026-02.md/x")
        assert not paths.is_durable_write_path("MEMORY_ARCHIVE/../secrets.md")
        assert not paths.is_durable_write_path(".pb/memory/daily/2026-02-12.scratch.md")

    def test_daily_aux_pattern(self):
        assert paths.is_allowed_daily_aux(".pb/memory/daily/2026-02-12.redacted.md")
        assert paths.is_allowed_daily_aux(".pb/memory/daily/2026-02-12.finalized.json", "2026-02-12")
        assert not paths.is_allowed_daily_aux(".pb/memory/daily/2026-02-12.finalized.json", "2026-02-13")
        assert not paths.is_allowed_daily_aux(".pb/memory/daily/2026-02-12.scratch.md")
        assert not paths.is_allowed_daily_aux("MEMORY.md")

    def test_per_day_paths(self, root: Path):
        assert paths.scratch_path(root, "2026-02-12").name == "2026-02-12.scratch.md"
        assert paths.monthly_archive_path(root, "2026-02") == root / "MEMORY_ARCHIVE" / "2026-02.md"

    def test_invalid_day_rejected(self, root: Path):
        with pytest.raises(InvalidDayError):
            paths.scratch_path(root, "../../etc")

    def test_ensure_dirs_idempotent(self, root: Path):
        paths.ensure_memory_dirs(root)
        paths.ensure_memory_dirs(root)
        assert paths.daily_dir(root).is_dir()
        assert paths.archive_dir(root).is_dir()
