"""Configuration loading from environment variables and pbmemory.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, fields, replace

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_CONFIG_FILENAME = "pbmemory.toml"

KEEP_DAYS_IN_MEMORY_MD = 14
KEEP_DAYS_MIN = 1
KEEP_DAYS_MAX = 180


@dataclass(frozen=True)
class MemoryPolicy:
    """Byte and rate limits applied to every memory operation."""

    read_max_bytes_per_op: int = 16 * 1024
    inject_scratch_tail_max_bytes: int = 6 * 1024
    inject_summary_max_bytes: int = 6 * 1024
    inject_durable_max_bytes: int = 8 * 1024
    inject_total_max_bytes: int = 24 * 1024
    scratch_append_max_bytes: int = 2 * 1024
    scratch_writes_per_minute: int = 6
    scratch_max_day_bytes: int = 300 * 1024
    summary_max_bytes: int = 6 * 1024
    summary_max_bullets: int = 20
    day_log_max_bytes: int = 300 * 1024


DEFAULT_POLICY = MemoryPolicy()


@dataclass
class MemoryConfig:
    """Top-level memory configuration."""

    workspace_root: Path = field(default_factory=Path.cwd)
    keep_days: int = KEEP_DAYS_IN_MEMORY_MD
    log_level: str = "INFO"
    policy: MemoryPolicy = DEFAULT_POLICY


def clamp_keep_days(value: object) -> int:
    """Coerce a keep-days setting into [KEEP_DAYS_MIN, KEEP_DAYS_MAX]."""
    try:
        n = int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        n = KEEP_DAYS_IN_MEMORY_MD
    return max(KEEP_DAYS_MIN, min(KEEP_DAYS_MAX, n))


def _policy_from(data: dict) -> MemoryPolicy:
    known = {f.name for f in fields(MemoryPolicy)}
    overrides = {k: int(v) for k, v in data.items() if k in known}
    return replace(DEFAULT_POLICY, **overrides)


def load_config(config_path: Path | None = None) -> MemoryConfig:
    """Load configuration from environment variables and optional pbmemory.toml.

    Priority: environment variables > pbmemory.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.pb/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".pb" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    memory_data = file_data.get("memory", {})
    policy_data = file_data.get("policy", {})

    root = os.getenv("PB_WORKSPACE_ROOT", memory_data.get("workspace_root"))
    config = MemoryConfig(
        workspace_root=Path(root).expanduser().resolve() if root else Path.cwd(),
        keep_days=clamp_keep_days(
            os.getenv(
                "PB_MEMORY_KEEP_DAYS_IN_MEMORY_MD",
                memory_data.get("keep_days", KEEP_DAYS_IN_MEMORY_MD),
            )
        ),
        log_level=os.getenv("PB_MEMORY_LOG_LEVEL", memory_data.get("log_level", "INFO")),
        policy=_policy_from(policy_data),
    )
    return config
