"""Workspace memory — bounded scratch log, redaction, durable MEMORY.md with archives.

Layout (relative to the workspace root):
    <workspace>/
    ├── MEMORY.md                          # Stable facts + the newest N day logs
    ├── MEMORY_ARCHIVE/
    │   └── 2026-02.md                     # Day logs rotated out of MEMORY.md
    └── .pb/memory/daily/
        ├── 2026-02-18.scratch.md          # Append-only, size/rate bounded
        ├── 2026-02-18.summary.md          # Rewritten from scratch
        ├── 2026-02-18.meta.json           # Scratch size + write timestamps
        ├── 2026-02-18.redacted.md         # Snapshot written when finalized
        └── 2026-02-18.finalized.json      # Finalize marker

MEMORY.md and archives only change through ``apply_patch``.
"""
