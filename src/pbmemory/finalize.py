"""Finalize a day: redact its scratch log into a day section, merge it into
MEMORY.md, and rotate aged sections into monthly archives.

Nothing is written here. The result is a ``Patch`` that
``pbmemory.patch.apply_patch`` applies after hash re-validation.

Day sections are located structurally: a section runs from its
``## Day Log — <day>`` header to the next top-level header or end of file.
Both the durable document and archives are checked this way, so a day key
that merely appears inside some body text is never mistaken for a section.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pbmemory import paths
from pbmemory.config import DEFAULT_POLICY, KEEP_DAYS_IN_MEMORY_MD, MemoryPolicy, clamp_keep_days
from pbmemory.dates import month_of, require_day
from pbmemory.errors import FinalizeEmptyError, FinalizeTooLargeError
from pbmemory.patch import ArchiveWrite, Patch, PatchFile
from pbmemory.redactor import redact
from pbmemory.scanner import scan
from pbmemory.store import byte_len, content_hash, read_text_or_empty, unified_diff

logger = logging.getLogger(__name__)

DAY_LOG_HEADER = "## Day Log — {day}"
STABLE_FACTS_SEED = "## Stable facts\n- (add stable facts here)\n\n"

_SECTION_RE = re.compile(
    r"^## Day Log — (\d{4}-\d{2}-\d{2})[ \t]*$.*?(?=^#{1,2} |\Z)",
    re.M | re.S,
)
_STABLE_FACTS_HEADER_RE = re.compile(r"^## Stable facts", re.M | re.I)
# Body lines that would read as a section header are escaped.
_BODY_HEADER_RE = re.compile(r"^(#{1,2} )", re.M)


@dataclass
class DaySection:
    day: str
    start: int
    end: int
    text: str


def parse_day_sections(text: str) -> list[DaySection]:
    return [
        DaySection(day=m.group(1), start=m.start(), end=m.end(), text=m.group(0))
        for m in _SECTION_RE.finditer(text or "")
    ]


def has_day_section(text: str, day: str) -> bool:
    return any(s.day == day for s in parse_day_sections(text))


def ensure_stable_facts_header(memory_text: str) -> str:
    if _STABLE_FACTS_HEADER_RE.search(memory_text or ""):
        return memory_text
    if not (memory_text or "").strip():
        return STABLE_FACTS_SEED
    return STABLE_FACTS_SEED + memory_text


def build_day_section(day: str, redacted_text: str) -> str:
    body = _BODY_HEADER_RE.sub(r"\\\1", (redacted_text or "").strip())
    return (
        f"{DAY_LOG_HEADER.format(day=day)}\n"
        f"Source: {paths.DAILY_DIR_REL}/{day}.scratch.md\n"
        f"Redaction: enabled (PB scanner)\n"
        f"---\n"
        f"{body}\n"
        f"---\n\n"
    )


def _drop_sections(text: str, sections: list[DaySection]) -> str:
    out: list[str] = []
    cursor = 0
    for s in sorted(sections, key=lambda s: s.start):
        out.append(text[cursor : s.start])
        cursor = s.end
    out.append(text[cursor:])
    return "".join(out)


def _append_section(doc: str, section_text: str) -> str:
    head = f"{doc.rstrip()}\n\n" if doc.strip() else ""
    return f"{head}{section_text.rstrip()}\n"


def _patch_file(root: Path, target: Path, old_text: str, new_text: str) -> PatchFile:
    rel = paths.to_workspace_rel(root, target)
    return PatchFile(
        path=rel,
        old_text=old_text,
        new_text=new_text,
        old_hash=content_hash(old_text),
        new_hash=content_hash(new_text),
        diff=unified_diff(old_text, new_text, rel),
    )


def prepare_finalize(
    root: Path,
    day: str,
    keep_days: int = KEEP_DAYS_IN_MEMORY_MD,
    policy: MemoryPolicy = DEFAULT_POLICY,
) -> Patch:
    """Build the (unapplied) patch that finalizes ``day``."""
    require_day(day)
    keep = clamp_keep_days(keep_days)

    scratch_raw = read_text_or_empty(paths.scratch_path(root, day))
    if not scratch_raw.strip():
        raise FinalizeEmptyError("No daily scratch content to finalize.")
    if byte_len(scratch_raw) > policy.day_log_max_bytes:
        raise FinalizeTooLargeError(f"Daily scratch exceeds max bytes ({policy.day_log_max_bytes}).")

    findings = scan(scratch_raw)
    redacted, _ = redact(scratch_raw, findings, "mask")

    patch = Patch(
        day=day,
        created_at=datetime.now(timezone.utc).isoformat(),
        findings=findings,
        redacted_text=redacted,
        redacted_path=paths.to_workspace_rel(root, paths.redacted_path(root, day)),
        marker_path=paths.to_workspace_rel(root, paths.marker_path(root, day)),
    )

    memory_file = paths.durable_path(root)
    raw_memory = read_text_or_empty(memory_file)
    seeded = ensure_stable_facts_header(raw_memory)

    archives: dict[str, str] = {}

    def archive_text(month: str) -> str:
        if month not in archives:
            archives[month] = read_text_or_empty(paths.monthly_archive_path(root, month))
        return archives[month]

    if has_day_section(seeded, day) or has_day_section(archive_text(month_of(day)), day):
        logger.info("Day %s already finalized; returning empty patch", day)
        patch.already_finalized = True
        return patch

    working = _append_section(seeded, build_day_section(day, redacted))

    sections = parse_day_sections(working)
    newest_first = sorted({s.day for s in sections}, reverse=True)
    kept = set(newest_first[:keep])
    to_rotate = [s for s in sections if s.day not in kept]
    working = _drop_sections(working, to_rotate).rstrip() + "\n"

    originals = {month: archive_text(month) for month in {month_of(s.day) for s in to_rotate}}
    added: dict[str, int] = {}
    for sec in sorted(to_rotate, key=lambda s: (s.day, s.start)):
        month = month_of(sec.day)
        if has_day_section(archives[month], sec.day):
            continue
        archives[month] = _append_section(archives[month], sec.text)
        added[month] = added.get(month, 0) + 1

    if raw_memory != working:
        patch.files.append(_patch_file(root, memory_file, raw_memory, working))
    for month in sorted(added):
        target = paths.monthly_archive_path(root, month)
        pf = _patch_file(root, target, originals[month], archives[month])
        patch.files.append(pf)
        patch.archive_writes.append(ArchiveWrite(path=pf.path, added_days_count=added[month]))

    patch.rotated_days = sorted({s.day for s in to_rotate})
    logger.info(
        "Prepared finalize for %s: %d finding(s), %d file(s), %d rotated",
        day,
        len(findings),
        len(patch.files),
        patch.rotated_count,
    )
    return patch
