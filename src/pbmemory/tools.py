"""Tool adapters for agent memory access.

These functions are designed to be exposed as tools to an AI agent (or an
HTTP handler). Each returns a plain dict: ``{"ok": True, ...}`` on success,
``{"ok": False, "error": <code>, "message": ...}`` on a memory failure.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pbmemory.errors import MemoryStoreError
from pbmemory.patch import Patch

if TYPE_CHECKING:
    from pbmemory.service import MemoryService

ToolResult = dict[str, Any]


def _structured(fn: Callable[..., ToolResult]) -> Callable[..., ToolResult]:
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> ToolResult:
        try:
            return {"ok": True, **fn(*args, **kwargs)}
        except MemoryStoreError as e:
            return e.to_dict()

    return wrapper


def get_memory_tools(service: MemoryService) -> dict[str, Callable[..., ToolResult]]:
    """Return a dict of tool_name -> callable for memory operations."""

    @_structured
    def memory_get(path: str, mode: str = "tail", max_bytes: int | None = None) -> ToolResult:
        """Read an allowlisted memory file (always redacted)."""
        content = service.read_bounded(path, mode=mode, max_bytes=max_bytes, redact=True)
        return {"path": path, "mode": mode, "content": content}

    @_structured
    def memory_search(query: str, scope: str = "daily+durable", limit: int = 50) -> ToolResult:
        """Search today's notes, MEMORY.md and (with scope=all) the archives."""
        return service.search(query, scope=scope, limit=limit).to_dict()

    @_structured
    def memory_write_scratch(text: str, day: str | None = None) -> ToolResult:
        """Append a note to the day's scratch log."""
        return service.append_scratch(text, day=day).to_dict()

    @_structured
    def memory_update_summary(day: str | None = None, text: str | None = None) -> ToolResult:
        """Rewrite the day's summary (compacted from scratch when text is omitted)."""
        return service.rewrite_summary(day=day, text=text).to_dict()

    @_structured
    def memory_context(day: str | None = None) -> ToolResult:
        """Build the memory block injected into prompts."""
        return service.build_context(day).to_dict()

    @_structured
    def memory_finalize_day(day: str | None = None, keep_days: int | None = None) -> ToolResult:
        """Prepare (but do not apply) the durable-memory patch for a day."""
        patch = service.prepare_finalize(day=day, keep_days=keep_days)
        return {"no_changes": patch.is_empty, "patch": patch.to_dict()}

    @_structured
    def memory_apply_patch(patch: dict) -> ToolResult:
        """Apply a patch previously returned by memory_finalize_day."""
        return service.apply_patch(Patch.from_dict(patch)).to_dict()

    return {
        "memory_get": memory_get,
        "memory_search": memory_search,
        "memory_write_scratch": memory_write_scratch,
        "memory_update_summary": memory_update_summary,
        "memory_context": memory_context,
        "memory_finalize_day": memory_finalize_day,
        "memory_apply_patch": memory_apply_patch,
    }
