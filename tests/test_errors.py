from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from strongex import errors


def test_exit_codes_doc_is_up_to_date() -> None:
    doc = Path(__file__).resolve().parents[1] / "docs" / "exit_codes.md"
    assert doc.read_text(encoding="utf-8") == errors.render_exit_codes_markdown(), (
        "docs/exit_codes.md is stale: run scripts/gen_exit_codes_md.py"
    )


def test_exit_codes_are_unique() -> None:
    codes = [e.code for e in errors.EXIT_CODES]
    assert len(codes) == len(set(codes))
    assert errors.exit_code_info(errors.EXIT_TREE).name == "TREE"
    assert errors.exit_code_info(99) is None


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (errors.BadFileMagic, errors.EXIT_FORMAT),
        (errors.DirectoryLoop, errors.EXIT_FORMAT),
        (errors.OffsetRange, errors.EXIT_BOUNDS),
        (errors.DuplicateObject, errors.EXIT_TREE),
        (errors.BadFiletype, errors.EXIT_TREE),
        (errors.WriteFailed, errors.EXIT_RESOURCE),
        (errors.UsageError, errors.EXIT_USAGE),
        (errors.StrongexError, errors.EXIT_GENERIC),
    ],
)
def test_error_families_carry_exit_codes(exc: type[errors.StrongexError], code: int) -> None:
    assert exc("x").exit_code == code
    assert issubclass(exc, errors.StrongexError)


def test_gen_script_check_mode() -> None:
    repo = Path(__file__).resolve().parents[1]
    r = subprocess.run(
        [sys.executable, str(repo / "scripts" / "gen_exit_codes_md.py"), "--check"],
        text=True,
        capture_output=True,
    )
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert "up to date" in r.stdout
