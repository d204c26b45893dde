"""Mask or drop scanner findings."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Literal

from pbmemory.scanner import Finding, placeholder_for, scan

RedactMode = Literal["mask", "drop"]


@dataclass(frozen=True)
class RedactionEntry:
    """What was replaced, without the original value."""

    type: str
    severity: str
    line: int
    original_length: int
    replacement: str

    def to_dict(self) -> dict:
        return asdict(self)


def mask_for(finding_type: str, original_length: int) -> str:
    placeholder = placeholder_for(finding_type)
    if placeholder:
        return placeholder
    return f"[REDACTED_{finding_type.upper()}_{original_length}]"


def redact(
    text: str,
    findings: list[Finding],
    mode: RedactMode = "mask",
) -> tuple[str, list[RedactionEntry]]:
    """Replace every finding span in ``text``. Returns (redacted_text, mapping)."""
    src = str(text or "")
    if not findings:
        return src, []

    out: list[str] = []
    mapping: list[RedactionEntry] = []
    cursor = 0
    for f in sorted(findings, key=lambda f: (f.start, f.end)):
        start = max(cursor, f.start)
        end = max(start, f.end)
        if start > len(src):
            break
        out.append(src[cursor:start])
        original_length = min(end, len(src)) - start
        replacement = "" if mode == "drop" else mask_for(f.type or "secret", original_length)
        out.append(replacement)
        mapping.append(
            RedactionEntry(
                type=f.type,
                severity=f.severity,
                line=f.line,
                original_length=original_length,
                replacement=replacement,
            )
        )
        cursor = min(end, len(src))
    out.append(src[cursor:])
    return "".join(out), mapping


def redact_for_context(text: str) -> str:
    """Scan and mask; the only form in which memory text reaches a model."""
    redacted, _ = redact(text, scan(text), "mask")
    return redacted
