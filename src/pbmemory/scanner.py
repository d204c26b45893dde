"""Sensitive-content scanner.

Detectors form a registry of tagged variants: each one names its finding
type, severity, pattern and mask placeholder. The redactor only looks at the
placeholder, so adding a detector never touches masking logic.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Literal

Severity = Literal["high", "medium", "low"]

MAX_FINDINGS = 2000
ENTROPY_MIN_LENGTH = 48
ENTROPY_MIN_UNIQUE = 18


@dataclass(frozen=True)
class Detector:
    """A single secret-shaped pattern."""

    type: str
    severity: Severity
    pattern: re.Pattern[str]
    # None means "generic": the redactor emits a length-revealing placeholder.
    placeholder: str | None = None


@dataclass(frozen=True)
class Finding:
    """A located span of sensitive content. Offsets index the scanned str."""

    id: str
    type: str
    severity: str
    start: int
    end: int
    line: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Finding:
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", "secret")),
            severity=str(data.get("severity", "medium")),
            start=int(data.get("start", 0)),
            end=int(data.get("end", 0)),
            line=int(data.get("line", 1)),
        )


HIGH_ENTROPY_TYPE = "high_entropy_token"
_SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2}

_DETECTORS: list[Detector] = [
    Detector(
        "pem",
        "high",
        re.compile(r"-----BEGIN [A-Z0-9 _-]+-----.*?-----END [A-Z0-9 _-]+-----", re.S),
        "[REDACTED_PEM_BLOCK]",
    ),
    Detector(
        "jwt",
        "high",
        re.compile(r"\beyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9._-]{10,}\.[A-Za-z0-9._-]{10,}\b"),
        "[REDACTED_JWT]",
    ),
    Detector("aws_access_key", "high", re.compile(r"\bAKIA[0-9A-Z]{16}\b"), "[REDACTED_AWS_KEY]"),
    Detector(
        "gh_token", "high", re.compile(r"\bgh[pousr]_[A-Za-z0-9_]{20,}\b"), "[REDACTED_GITHUB_TOKEN]"
    ),
    Detector(
        "slack_token", "high", re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b"), "[REDACTED_SLACK_TOKEN]"
    ),
    Detector(
        "credential_url",
        "high",
        re.compile(r"\b[a-z][a-z0-9+.-]*://[^/\s:@]+:[^/\s@]+@[^/\s]+", re.I),
        "[REDACTED_CREDENTIAL_URL]",
    ),
    Detector(
        "secret_assignment",
        "medium",
        re.compile(r"\b(?:api[_-]?key|token|secret|password)\b\s*[:=]\s*[^\s\"'`]{6,}", re.I),
        "[REDACTED_SECRET]",
    ),
    Detector(
        "dotenv_secret",
        "medium",
        re.compile(
            r"^[ \t]*[A-Z0-9_]*(?:TOKEN|SECRET|PASSWORD|API_KEY)[A-Z0-9_]*[ \t]*=[ \t]*\S.*$",
            re.M | re.I,
        ),
        "[REDACTED_SECRET]",
    ),
    Detector("hex_64", "medium", re.compile(r"\b[a-f0-9]{64}\b", re.I)),
]

_WORDISH_RE = re.compile(r"\b[A-Za-z0-9+/_=-]{%d,}\b" % ENTROPY_MIN_LENGTH)
_NON_TOKEN_RE = re.compile(r"[^A-Za-z0-9+/=_-]")


def register_detector(detector: Detector) -> None:
    """Add (or replace, by type) a detector in the registry."""
    _DETECTORS[:] = [d for d in _DETECTORS if d.type != detector.type]
    _DETECTORS.append(detector)


def placeholder_for(finding_type: str) -> str | None:
    for d in _DETECTORS:
        if d.type == finding_type:
            return d.placeholder
    return None


def _line_of(text: str, index: int) -> int:
    return text.count("\n", 0, max(0, index)) + 1


def _suspicious_high_entropy(value: str) -> bool:
    s = _NON_TOKEN_RE.sub("", value)
    if len(s) < ENTROPY_MIN_LENGTH:
        return False
    return len(set(s)) >= ENTROPY_MIN_UNIQUE


def _merge_overlaps(spans: list[tuple[int, int, str, str]]) -> list[tuple[int, int, str, str]]:
    # Overlapping spans collapse into one covering span, named by its most
    # severe detector (longest match on ties).
    ordered = sorted(spans, key=lambda s: (s[0], -(s[1] - s[0])))
    merged: list[list] = []
    for start, end, type_, severity in ordered:
        rank = (_SEVERITY_RANK.get(severity, 0), end - start)
        if merged and start < merged[-1][1]:
            last = merged[-1]
            last[1] = max(last[1], end)
            if rank > last[4]:
                last[2], last[3], last[4] = type_, severity, rank
            continue
        merged.append([start, end, type_, severity, rank])
    return [(s, e, t, sev) for s, e, t, sev, _ in merged]


def _overlaps(start: int, end: int, spans: list[tuple[int, int, str, str]]) -> bool:
    return any(start < e and end > s for s, e, _, _ in spans)


def scan(text: str) -> list[Finding]:
    """Return ordered, non-overlapping findings for ``text``."""
    src = str(text or "")
    spans: list[tuple[int, int, str, str]] = []
    for detector in _DETECTORS:
        for m in detector.pattern.finditer(src):
            if not m.group(0):
                continue
            spans.append((m.start(), m.end(), detector.type, detector.severity))
            if len(spans) >= MAX_FINDINGS:
                break

    kept = _merge_overlaps(spans)
    for m in _WORDISH_RE.finditer(src):
        if not _suspicious_high_entropy(m.group(0)):
            continue
        if _overlaps(m.start(), m.end(), kept):
            continue
        kept.append((m.start(), m.end(), HIGH_ENTROPY_TYPE, "medium"))

    findings = [
        Finding(
            id=f"{type_}:{start}",
            type=type_,
            severity=severity,
            start=start,
            end=end,
            line=_line_of(src, start),
        )
        for start, end, type_, severity in sorted(kept)[:MAX_FINDINGS]
    ]
    return findings
