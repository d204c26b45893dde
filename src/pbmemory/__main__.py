"""Entry point: python -m pbmemory <command> [args]

- context [DAY]              Print the memory block injected into prompts
- append TEXT|- [DAY]        Append to the day's scratch log ("-" reads stdin)
- summarize [DAY]            Rewrite the day's summary from its scratch log
- get PATH [head|tail]       Bounded, redacted read of a memory file
- search QUERY [SCOPE]       Search memory (scope: daily, durable, archive, all)
- finalize [DAY] [OUT.json]  Prepare a finalize patch (printed or saved)
- apply PATCH.json           Apply a saved finalize patch
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from pbmemory.config import load_config
from pbmemory.errors import MemoryStoreError
from pbmemory.patch import Patch
from pbmemory.service import MemoryService

USAGE = __doc__.split("\n\n", 1)[1]


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _arg(args: list[str], i: int) -> str | None:
    return args[i] if len(args) > i else None


def _print_json(data: dict) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def run(service: MemoryService, cmd: str, args: list[str]) -> int:
    """Run one CLI command. Returns the process exit code."""
    if cmd == "context":
        print(service.build_context(_arg(args, 0)).text)
    elif cmd == "append":
        text = _arg(args, 0)
        if text is None:
            print("Usage: python -m pbmemory append TEXT|- [DAY]", file=sys.stderr)
            return 2
        if text == "-":
            text = sys.stdin.read()
        _print_json(service.append_scratch(text, day=_arg(args, 1)).to_dict())
    elif cmd == "summarize":
        _print_json(service.rewrite_summary(day=_arg(args, 0)).to_dict())
    elif cmd == "get":
        path = _arg(args, 0)
        if not path:
            print("Usage: python -m pbmemory get PATH [head|tail]", file=sys.stderr)
            return 2
        mode = "head" if _arg(args, 1) == "head" else "tail"
        print(service.read_bounded(path, mode=mode))
    elif cmd == "search":
        query = _arg(args, 0)
        if not query:
            print("Usage: python -m pbmemory search QUERY [SCOPE]", file=sys.stderr)
            return 2
        _print_json(service.search(query, scope=_arg(args, 1) or "daily+durable").to_dict())
    elif cmd == "finalize":
        patch = service.prepare_finalize(day=_arg(args, 0))
        out = _arg(args, 1)
        if out:
            Path(out).write_text(json.dumps(patch.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
            print(f"Patch for {patch.day}: {len(patch.files)} file(s), saved to {out}")
        else:
            for f in patch.files:
                print(f.diff)
            if patch.already_finalized:
                print(f"{patch.day} already finalized; nothing to do.")
    elif cmd == "apply":
        src = _arg(args, 0)
        if not src:
            print("Usage: python -m pbmemory apply PATCH.json", file=sys.stderr)
            return 2
        patch = Patch.from_dict(json.loads(Path(src).read_text(encoding="utf-8")))
        _print_json(service.apply_patch(patch).to_dict())
    else:
        print(f"Usage: python -m pbmemory <command> [args]\n\n{USAGE}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    cmd = argv[0] if argv else "context"

    config = load_config()
    _setup_logging(config.log_level)
    service = MemoryService(config)

    try:
        code = run(service, cmd, argv[1:])
    except MemoryStoreError as e:
        print(f"error: {e.code}: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
