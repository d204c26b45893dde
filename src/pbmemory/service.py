"""Memory service — the entry point used by the surrounding application.

Responsibilities:
1. Supply the local calendar day when a caller omits it
2. Validate day keys before any per-day path is built
3. Delegate to a ``MemoryBackend`` (filesystem by default)

The backend functions all take the day explicitly; only this layer reads the
clock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from pbmemory.backend import FileMemoryBackend, MemoryBackend
from pbmemory.config import MemoryConfig, clamp_keep_days
from pbmemory.context import MemoryContext, SearchResult, format_turn
from pbmemory.dates import local_day_key, require_day
from pbmemory.patch import ApplyResult, Patch
from pbmemory.store import AppendResult, ReadMode, SummaryResult

logger = logging.getLogger(__name__)


class MemoryService:
    """Workspace memory operations with clock-derived day defaults."""

    def __init__(
        self,
        config: MemoryConfig,
        backend: MemoryBackend | None = None,
        today: Callable[[], str] = local_day_key,
    ) -> None:
        self.config = config
        self.backend = backend or FileMemoryBackend(config.workspace_root, config.policy)
        self._today = today

    def _day(self, day: str | None) -> str:
        return require_day(day or self._today())

    # ── Writes ───────────────────────────────────────────────

    def append_scratch(self, text: str, day: str | None = None) -> AppendResult:
        return self.backend.append(self._day(day), text)

    def append_turn(
        self,
        user_text: str,
        assistant_text: str,
        session_id: str | None = None,
        day: str | None = None,
        now: datetime | None = None,
    ) -> AppendResult:
        """Log a chat exchange to the scratch log."""
        return self.backend.append(
            self._day(day), format_turn(user_text, assistant_text, session_id, now)
        )

    def rewrite_summary(self, day: str | None = None, text: str | None = None) -> SummaryResult:
        """Rewrite the day's summary from explicit text, or compact it from scratch."""
        return self.backend.compact(self._day(day), text)

    # ── Reads ────────────────────────────────────────────────

    def read_bounded(
        self,
        path: str,
        mode: ReadMode = "tail",
        max_bytes: int | None = None,
        redact: bool = True,
    ) -> str:
        return self.backend.read(path, mode=mode, max_bytes=max_bytes, redact=redact)

    def build_context(self, day: str | None = None) -> MemoryContext:
        return self.backend.context(self._day(day))

    def search(
        self,
        query: str,
        scope: str = "daily+durable",
        limit: int = 50,
        day: str | None = None,
    ) -> SearchResult:
        return self.backend.search(query, self._day(day), scope=scope, limit=limit)

    # ── Finalize ─────────────────────────────────────────────

    def prepare_finalize(self, day: str | None = None, keep_days: int | None = None) -> Patch:
        keep = clamp_keep_days(keep_days if keep_days is not None else self.config.keep_days)
        return self.backend.rotate(self._day(day), keep)

    def apply_patch(self, patch: Patch) -> ApplyResult:
        result = self.backend.apply(patch)
        logger.info("Applied memory patch for %s (%d files)", result.day or "-", result.applied_files)
        return result
