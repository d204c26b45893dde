"""Durable-memory patches and the applier.

A patch is prepared by ``pbmemory.finalize`` and applied here, possibly much
later and after an approval step owned by the caller. Every target file's
content hash is re-checked before anything is written; a mismatch aborts the
whole patch with zero side effects.

Limitation: the hash check is optimistic. If the disk fails halfway through
the write sequence, a patch can be left partially applied.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import frontmatter

from pbmemory import paths
from pbmemory.errors import (
    PatchAuxPathBlockedError,
    PatchConflictError,
    PatchEmptyError,
    PatchPathBlockedError,
)
from pbmemory.scanner import Finding
from pbmemory.store import verify_unchanged

logger = logging.getLogger(__name__)


@dataclass
class PatchFile:
    """One proposed file rewrite with before/after hashes."""

    path: str
    old_text: str
    new_text: str
    old_hash: str
    new_hash: str
    diff: str


@dataclass
class ArchiveWrite:
    path: str
    added_days_count: int


@dataclass
class Patch:
    """An unapplied set of durable/archive rewrites for one finalized day."""

    day: str
    already_finalized: bool = False
    created_at: str = ""
    findings: list[Finding] = field(default_factory=list)
    redacted_text: str = ""
    redacted_path: str = ""
    marker_path: str = ""
    rotated_days: list[str] = field(default_factory=list)
    archive_writes: list[ArchiveWrite] = field(default_factory=list)
    files: list[PatchFile] = field(default_factory=list)

    @property
    def rotated_count(self) -> int:
        return len(self.rotated_days)

    @property
    def is_empty(self) -> bool:
        return not self.files

    def to_dict(self) -> dict:
        data = asdict(self)
        data["rotated_count"] = self.rotated_count
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Patch:
        """Rebuild a patch persisted with ``to_dict`` (e.g. while awaiting approval)."""
        return cls(
            day=str(data.get("day") or ""),
            already_finalized=bool(data.get("already_finalized", False)),
            created_at=str(data.get("created_at") or ""),
            findings=[Finding.from_dict(f) for f in data.get("findings", [])],
            redacted_text=str(data.get("redacted_text") or ""),
            redacted_path=str(data.get("redacted_path") or ""),
            marker_path=str(data.get("marker_path") or ""),
            rotated_days=[str(d) for d in data.get("rotated_days", [])],
            archive_writes=[
                ArchiveWrite(path=str(w.get("path", "")), added_days_count=int(w.get("added_days_count", 0)))
                for w in data.get("archive_writes", [])
            ],
            files=[
                PatchFile(
                    path=str(f.get("path", "")),
                    old_text=str(f.get("old_text", "")),
                    new_text=str(f.get("new_text", "")),
                    old_hash=str(f.get("old_hash", "")),
                    new_hash=str(f.get("new_hash", "")),
                    diff=str(f.get("diff", "")),
                )
                for f in data.get("files", [])
            ],
        )


@dataclass
class ApplyResult:
    applied_files: int
    day: str
    rotated_days: list[str] = field(default_factory=list)
    archive_writes: list[ArchiveWrite] = field(default_factory=list)

    @property
    def rotated_count(self) -> int:
        return len(self.rotated_days)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["rotated_count"] = self.rotated_count
        return data


def render_snapshot(patch: Patch) -> str:
    """Redacted day text with its finalize metadata as YAML front matter."""
    post = frontmatter.Post(
        patch.redacted_text.rstrip() + "\n",
        day=patch.day,
        findings=len(patch.findings),
        created_at=patch.created_at,
    )
    return frontmatter.dumps(post) + "\n"


def _check_files(root: Path, patch: Patch) -> list[tuple[Path, PatchFile]]:
    checked: list[tuple[Path, PatchFile]] = []
    for f in patch.files:
        if not paths.is_durable_write_path(f.path):
            raise PatchPathBlockedError(f"Blocked durable write path: {f.path}")
        target = paths.normalize(root, f.path)
        if target.is_dir():
            raise PatchPathBlockedError(f"Durable write path is a directory: {f.path}")
        if not verify_unchanged(target, f.old_hash):
            logger.warning("Patch conflict on %s for %s", f.path, patch.day or "(no day)")
            raise PatchConflictError(f"Patch conflict on {f.path}; file changed since proposal.")
        checked.append((target, f))
    return checked


def _check_aux(root: Path, patch: Patch) -> tuple[Path, Path]:
    # Each slot must name exactly its own per-day file.
    expected = (
        f"{paths.DAILY_DIR_REL}/{patch.day}.redacted.md",
        f"{paths.DAILY_DIR_REL}/{patch.day}.finalized.json",
    )
    for rel, want in zip((patch.redacted_path, patch.marker_path), expected):
        if not paths.is_allowed_daily_aux(rel, patch.day) or rel != want:
            raise PatchAuxPathBlockedError(f"Patch daily memory path is invalid: {rel!r}")
    return paths.normalize(root, patch.redacted_path), paths.normalize(root, patch.marker_path)


def apply_patch(root: Path, patch: Patch) -> ApplyResult:
    """Apply a prepared patch after re-validating every target's prior hash."""
    if not patch.files and not patch.day:
        raise PatchEmptyError("Patch is empty.")

    checked = _check_files(root, patch)
    aux = _check_aux(root, patch) if patch.day else None

    result = ApplyResult(
        applied_files=len(checked),
        day=patch.day,
        rotated_days=list(patch.rotated_days),
        archive_writes=list(patch.archive_writes),
    )
    if not checked and patch.already_finalized:
        logger.info("Day %s already finalized, nothing to apply", patch.day)
        return result

    for target, f in checked:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.new_text, encoding="utf-8")
        logger.info("Applied %s (%s -> %s)", f.path, f.old_hash[:12], f.new_hash[:12])

    if aux:
        snapshot, marker = aux
        marker.parent.mkdir(parents=True, exist_ok=True)
        if patch.redacted_text:
            snapshot.write_text(render_snapshot(patch), encoding="utf-8")
        marker.write_text(
            json.dumps(
                {
                    "day": patch.day,
                    "applied_at": datetime.now(timezone.utc).isoformat(),
                    "files": [f.path for f in patch.files],
                },
                indent=2,
            ),
            encoding="utf-8",
        )

    if patch.rotated_days:
        logger.info("Rotated %d day(s) into archives: %s", result.rotated_count, ", ".join(patch.rotated_days))
    return result
