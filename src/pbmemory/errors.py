"""Typed failures raised by memory operations.

Every error carries a stable ``code`` so callers (HTTP handlers, tool
adapters, the CLI) can surface a short actionable message instead of a
stack trace.
"""

from __future__ import annotations


class MemoryStoreError(Exception):
    """Base class for all recoverable memory failures."""

    code = "MEMORY_ERROR"

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": str(self)}


# ── Path policy ──────────────────────────────────────────────


class PathTraversalError(MemoryStoreError):
    code = "MEMORY_PATH_TRAVERSAL"


class ReadBlockedError(MemoryStoreError):
    code = "MEMORY_READ_BLOCKED"


class InvalidDayError(MemoryStoreError):
    code = "MEMORY_INVALID_DAY"


# ── Bounded store ────────────────────────────────────────────


class ScratchEmptyError(MemoryStoreError):
    code = "MEMORY_SCRATCH_EMPTY"


class ScratchAppendTooLargeError(MemoryStoreError):
    code = "MEMORY_SCRATCH_APPEND_TOO_LARGE"


class ScratchRateLimitedError(MemoryStoreError):
    code = "MEMORY_SCRATCH_RATE_LIMIT"


class ScratchDayLimitExceededError(MemoryStoreError):
    code = "MEMORY_SCRATCH_DAY_LIMIT"


class SummaryTooLargeError(MemoryStoreError):
    code = "MEMORY_SUMMARY_TOO_LARGE"


# ── Finalize / apply ─────────────────────────────────────────


class FinalizeEmptyError(MemoryStoreError):
    code = "MEMORY_FINALIZE_EMPTY"


class FinalizeTooLargeError(MemoryStoreError):
    code = "MEMORY_FINALIZE_TOO_LARGE"


class PatchEmptyError(MemoryStoreError):
    code = "MEMORY_PATCH_EMPTY"


class PatchPathBlockedError(MemoryStoreError):
    code = "MEMORY_PATCH_PATH_BLOCKED"


class PatchConflictError(MemoryStoreError):
    code = "MEMORY_PATCH_CONFLICT"


class PatchAuxPathBlockedError(MemoryStoreError):
    code = "MEMORY_PATCH_AUX_PATH_BLOCKED"
