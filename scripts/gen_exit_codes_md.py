#!/usr/bin/env python3
"""Write (or, with --check, verify) docs/exit_codes.md.

The table is rendered from strongex.errors.EXIT_CODES; run this after adding
or renaming an exit code. CI runs it with --check, which exits 1 when the
committed doc no longer matches.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO = Path(__file__).resolve().parents[1]
DOC = REPO / "docs" / "exit_codes.md"


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="gen_exit_codes_md")
    p.add_argument("--check", action="store_true", help="Fail if the doc is stale; write nothing")
    ns = p.parse_args(argv)

    sys.path.insert(0, str(REPO / "src"))
    from strongex.errors import render_exit_codes_markdown  # noqa: E402

    text = render_exit_codes_markdown()
    current = DOC.read_text(encoding="utf-8") if DOC.is_file() else None

    if ns.check:
        if current != text:
            print(f"[strongex] {DOC.relative_to(REPO)} is stale; rerun without --check", file=sys.stderr)
            return 1
        print(f"[strongex] {DOC.relative_to(REPO)} is up to date")
        return 0

    if current == text:
        print(f"[strongex] {DOC.relative_to(REPO)} unchanged")
        return 0
    DOC.parent.mkdir(parents=True, exist_ok=True)
    DOC.write_text(text, encoding="utf-8")
    print(f"[strongex] wrote {DOC.relative_to(REPO)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
