"""Backend protocol and the filesystem implementation.

The tiered log (scratch → summary → durable → archive) is exposed through a
small interface so another store (embedded KV, object storage) can replace
the filesystem without touching call sites.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from pbmemory.config import DEFAULT_POLICY, KEEP_DAYS_IN_MEMORY_MD, MemoryPolicy
from pbmemory.context import MemoryContext, SearchResult, build_context, search, update_summary_from_scratch
from pbmemory.finalize import prepare_finalize
from pbmemory.patch import ApplyResult, Patch, apply_patch
from pbmemory.store import AppendResult, BoundedStore, ReadMode, SummaryResult


@runtime_checkable
class MemoryBackend(Protocol):
    """Operations every memory backend must implement."""

    def append(self, day: str, text: str) -> AppendResult:
        """Append raw text to the day's scratch log."""
        ...

    def read(
        self,
        rel_path: str,
        mode: ReadMode = "tail",
        max_bytes: int | None = None,
        redact: bool = True,
    ) -> str:
        """Bounded, optionally redacted read of an allowlisted memory file."""
        ...

    def compact(self, day: str, text: str | None = None) -> SummaryResult:
        """Rewrite the day's summary, from ``text`` or from the scratch log."""
        ...

    def rotate(self, day: str, keep_days: int = KEEP_DAYS_IN_MEMORY_MD) -> Patch:
        """Prepare the finalize/rotation patch for ``day`` without applying it."""
        ...

    def apply(self, patch: Patch) -> ApplyResult: ...

    def context(self, day: str) -> MemoryContext: ...

    def search(self, query: str, day: str, scope: str = "daily+durable", limit: int = 50) -> SearchResult: ...


class FileMemoryBackend:
    """Markdown files under a workspace root."""

    def __init__(
        self,
        root: Path,
        policy: MemoryPolicy = DEFAULT_POLICY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root)
        self.policy = policy
        self.store = BoundedStore(self.root, policy, clock)

    def append(self, day: str, text: str) -> AppendResult:
        return self.store.append_scratch(day, text)

    def read(
        self,
        rel_path: str,
        mode: ReadMode = "tail",
        max_bytes: int | None = None,
        redact: bool = True,
    ) -> str:
        return self.store.read_bounded(rel_path, mode=mode, max_bytes=max_bytes, redact=redact)

    def compact(self, day: str, text: str | None = None) -> SummaryResult:
        if text is not None:
            return self.store.write_summary(day, text)
        return update_summary_from_scratch(self.store, day)

    def rotate(self, day: str, keep_days: int = KEEP_DAYS_IN_MEMORY_MD) -> Patch:
        return prepare_finalize(self.root, day, keep_days=keep_days, policy=self.policy)

    def apply(self, patch: Patch) -> ApplyResult:
        return apply_patch(self.root, patch)

    def context(self, day: str) -> MemoryContext:
        return build_context(self.root, day, self.policy)

    def search(self, query: str, day: str, scope: str = "daily+durable", limit: int = 50) -> SearchResult:
        return search(self.store, query, day, scope=scope, limit=limit)
