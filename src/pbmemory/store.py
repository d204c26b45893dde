"""Bounded file store — scratch appends, summary rewrites, bounded reads.

Every write target is derived from a validated day key, so callers can only
touch that day's scratch, summary and meta files. The durable document and
archives are never written here (see ``pbmemory.patch``).
"""

from __future__ import annotations

import difflib
import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from pbmemory import paths
from pbmemory.config import DEFAULT_POLICY, MemoryPolicy
from pbmemory.errors import (
    ReadBlockedError,
    ScratchAppendTooLargeError,
    ScratchDayLimitExceededError,
    ScratchEmptyError,
    ScratchRateLimitedError,
    SummaryTooLargeError,
)
from pbmemory.redactor import redact_for_context

logger = logging.getLogger(__name__)

ReadMode = Literal["head", "tail"]

RATE_WINDOW_SECONDS = 60.0
READ_MIN_BYTES = 256
READ_MAX_BYTES = 1024 * 1024

_DAY_LOCKS: dict[tuple[str, str], threading.Lock] = {}
_DAY_LOCKS_GUARD = threading.Lock()


@dataclass
class AppendResult:
    path: str
    day: str
    bytes_appended: int
    bytes_total: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SummaryResult:
    path: str
    day: str
    bytes: int

    def to_dict(self) -> dict:
        return asdict(self)


# ── Text helpers ─────────────────────────────────────────────


def byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def cap_bytes(text: str, max_bytes: int, from_tail: bool = False) -> str:
    """Cut ``text`` to at most ``max_bytes`` UTF-8 bytes without splitting a character."""
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    cut = raw[-max_bytes:] if from_tail else raw[:max_bytes]
    return cut.decode("utf-8", errors="ignore")


def content_hash(text: str) -> str:
    return hashlib.sha256(str(text or "").encode("utf-8")).hexdigest()


def unified_diff(old_text: str, new_text: str, rel_path: str = "MEMORY.md") -> str:
    if old_text == new_text:
        return ""
    lines = difflib.unified_diff(
        old_text.splitlines(keepends=True),
        new_text.splitlines(keepends=True),
        fromfile=rel_path,
        tofile=rel_path,
    )
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)


def read_text_or_empty(path: Path) -> str:
    """Read a UTF-8 file; a missing file reads as empty."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def verify_unchanged(path: Path, expected_hash: str) -> bool:
    """Compare half of the compare-and-swap used when applying patches."""
    return content_hash(read_text_or_empty(path)) == str(expected_hash or "")


def _day_lock(root: Path, day: str) -> threading.Lock:
    key = (str(Path(root).resolve()), day)
    with _DAY_LOCKS_GUARD:
        if key not in _DAY_LOCKS:
            _DAY_LOCKS[key] = threading.Lock()
        return _DAY_LOCKS[key]


# ── Store ────────────────────────────────────────────────────


class BoundedStore:
    """Size- and rate-bounded writes under the daily memory directory."""

    def __init__(
        self,
        root: Path,
        policy: MemoryPolicy = DEFAULT_POLICY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root)
        self.policy = policy
        self.clock = clock

    def _rel(self, path: Path) -> str:
        return paths.to_workspace_rel(self.root, path)

    def _read_meta(self, meta: Path) -> dict:
        try:
            data = json.loads(meta.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_meta(self, meta: Path, data: dict) -> None:
        meta.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def append_scratch(self, day: str, text: str) -> AppendResult:
        """Append ``text`` verbatim to the day's scratch log."""
        payload = str(text or "")
        size = byte_len(payload)
        if size <= 0:
            raise ScratchEmptyError("scratch append requires text")
        limit = self.policy.scratch_append_max_bytes
        if size > limit:
            raise ScratchAppendTooLargeError(f"scratch append too large ({size} > {limit})")

        scratch = paths.scratch_path(self.root, day)
        meta_file = paths.meta_path(self.root, day)
        paths.ensure_memory_dirs(self.root)

        with _day_lock(self.root, day):
            meta = self._read_meta(meta_file)
            now = self.clock()
            window_start = now - RATE_WINDOW_SECONDS
            writes = [
                float(t)
                for t in meta.get("writes", [])
                if isinstance(t, (int, float)) and float(t) >= window_start
            ]
            if len(writes) >= self.policy.scratch_writes_per_minute:
                logger.warning("Scratch rate limit hit for %s (%d writes/min)", day, len(writes))
                raise ScratchRateLimitedError("scratch write rate limit exceeded")

            current = scratch.stat().st_size if scratch.exists() else 0
            if current + size > self.policy.scratch_max_day_bytes:
                logger.warning("Scratch day limit hit for %s (%d bytes)", day, current)
                raise ScratchDayLimitExceededError("scratch daily size limit exceeded")

            with scratch.open("a", encoding="utf-8", newline="") as f:
                f.write(payload)
            writes.append(now)
            meta.update(
                bytes=current + size,
                writes=writes,
                updated_at=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
            )
            self._write_meta(meta_file, meta)

        logger.info("Appended %d bytes to %s scratch (%d total)", size, day, current + size)
        return AppendResult(
            path=self._rel(scratch),
            day=day,
            bytes_appended=size,
            bytes_total=current + size,
        )

    def write_summary(self, day: str, text: str) -> SummaryResult:
        """Overwrite the day's summary file."""
        payload = str(text or "")
        size = byte_len(payload)
        limit = self.policy.summary_max_bytes
        if size > limit:
            raise SummaryTooLargeError(f"summary too large ({size} > {limit})")
        target = paths.summary_path(self.root, day)
        paths.ensure_memory_dirs(self.root)
        target.write_text(payload, encoding="utf-8")
        logger.info("Rewrote %s summary (%d bytes)", day, size)
        return SummaryResult(path=self._rel(target), day=day, bytes=size)

    def read_bounded(
        self,
        rel_path: str,
        mode: ReadMode = "tail",
        max_bytes: int | None = None,
        redact: bool = True,
    ) -> str:
        """Read an allowlisted memory file, capped to ``max_bytes`` from head or tail."""
        target = paths.normalize(self.root, rel_path)
        if not paths.is_allowlisted_read(self.root, target):
            raise ReadBlockedError(f"Memory read blocked by allowlist: {rel_path}")
        limit = int(max_bytes or self.policy.read_max_bytes_per_op)
        limit = max(READ_MIN_BYTES, min(limit, READ_MAX_BYTES))
        text = cap_bytes(read_text_or_empty(target), limit, from_tail=(mode != "head"))
        return redact_for_context(text) if redact else text
