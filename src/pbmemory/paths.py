"""Workspace layout and path policy.

Layout (relative to the workspace root):
    MEMORY.md                                  # durable document
    MEMORY_ARCHIVE/<YYYY-MM>.md                # monthly archives
    .pb/memory/daily/<day>.scratch.md          # append-only scratch log
    .pb/memory/daily/<day>.summary.md          # rewritten summary
    .pb/memory/daily/<day>.redacted.md         # redacted snapshot (written on apply)
    .pb/memory/daily/<day>.meta.json           # scratch size / rate metadata
    .pb/memory/daily/<day>.finalized.json      # finalize marker (written on apply)
"""

from __future__ import annotations

import re
from pathlib import Path

from pbmemory.dates import require_day
from pbmemory.errors import PathTraversalError

DURABLE_FILENAME = "MEMORY.md"
ARCHIVE_DIRNAME = "MEMORY_ARCHIVE"
MEMORY_BASE_REL = ".pb/memory"
DAILY_DIR_REL = ".pb/memory/daily"

_DAILY_AUX_RE = re.compile(
    r"^\.pb/memory/daily/(\d{4}-\d{2}-\d{2})\.(redacted\.md|finalized\.json)$"
)
_ARCHIVE_REL_RE = re.compile(r"^MEMORY_ARCHIVE/\d{4}-\d{2}\.md$")
_SCRATCH_NAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\.scratch\.md$")


# ── Fixed paths ──────────────────────────────────────────────


def daily_dir(root: Path) -> Path:
    return Path(root) / DAILY_DIR_REL


def scratch_path(root: Path, day: str) -> Path:
    return daily_dir(root) / f"{require_day(day)}.scratch.md"


def summary_path(root: Path, day: str) -> Path:
    return daily_dir(root) / f"{require_day(day)}.summary.md"


def redacted_path(root: Path, day: str) -> Path:
    return daily_dir(root) / f"{require_day(day)}.redacted.md"


def meta_path(root: Path, day: str) -> Path:
    return daily_dir(root) / f"{require_day(day)}.meta.json"


def marker_path(root: Path, day: str) -> Path:
    return daily_dir(root) / f"{require_day(day)}.finalized.json"


def durable_path(root: Path) -> Path:
    return Path(root) / DURABLE_FILENAME


def archive_dir(root: Path) -> Path:
    return Path(root) / ARCHIVE_DIRNAME


def monthly_archive_path(root: Path, month: str) -> Path:
    return archive_dir(root) / f"{month}.md"


def scratch_day_of(path: Path) -> str | None:
    """Day key of a scratch file name, or None for any other file."""
    m = _SCRATCH_NAME_RE.match(path.name)
    return m.group(1) if m else None


def ensure_memory_dirs(root: Path) -> None:
    """Ensure the daily and archive directories exist. Idempotent."""
    daily_dir(root).mkdir(parents=True, exist_ok=True)
    archive_dir(root).mkdir(parents=True, exist_ok=True)


# ── Policy ───────────────────────────────────────────────────


def _workspace(root: Path) -> Path:
    return Path(root).resolve()


def normalize(root: Path, rel_path: str | Path) -> Path:
    """Resolve ``rel_path`` against ``root``; refuse anything outside it."""
    ws = _workspace(root)
    resolved = (ws / str(rel_path or "").strip()).resolve()
    if resolved != ws and ws not in resolved.parents:
        raise PathTraversalError(f"Path escapes workspace: {rel_path}")
    return resolved


def to_workspace_rel(root: Path, abs_path: Path) -> str:
    """Posix-style path of ``abs_path`` relative to the workspace root."""
    return Path(abs_path).resolve().relative_to(_workspace(root)).as_posix()


def _rel_or_none(root: Path, abs_path: Path) -> str | None:
    try:
        return to_workspace_rel(root, abs_path)
    except ValueError:
        return None


def is_allowlisted_read(root: Path, abs_path: Path) -> bool:
    """Durable document, archives and the daily memory tree are readable."""
    rel = _rel_or_none(root, abs_path)
    if rel is None:
        return False
    if rel == DURABLE_FILENAME:
        return True
    return rel.startswith(f"{ARCHIVE_DIRNAME}/") or rel.startswith(f"{MEMORY_BASE_REL}/")


def is_durable_write_path(rel_path: str) -> bool:
    """Only the durable document and ``MEMORY_ARCHIVE/<YYYY-MM>.md`` are patchable."""
    rel = str(rel_path or "")
    return rel == DURABLE_FILENAME or bool(_ARCHIVE_REL_RE.match(rel))


def is_allowed_daily_aux(rel_path: str, day: str | None = None) -> bool:
    """Strict per-day pattern for the redacted snapshot and finalize marker."""
    m = _DAILY_AUX_RE.match(str(rel_path or ""))
    if not m:
        return False
    return day is None or m.group(1) == day
