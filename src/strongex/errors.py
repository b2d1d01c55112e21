"""Typed errors for strongex.

Single source of truth for exit codes lives here.

Policy:
- Errors are small and boring.
- The CLI maps errors to stable exit codes (see EXIT_* constants).
- docs/exit_codes.md is generated from this module (scripts/gen_exit_codes_md.py).
"""

from __future__ import annotations

from dataclasses import dataclass

# -------------------------
# Exit codes (single source)
# -------------------------

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_GENERIC = 10
EXIT_FORMAT = 11
EXIT_BOUNDS = 12
EXIT_TREE = 13
EXIT_RESOURCE = 14
EXIT_REPORTED_ERRORS = 15


@dataclass(frozen=True, slots=True)
class ExitCodeInfo:
    code: int
    name: str
    description: str


EXIT_CODES: tuple[ExitCodeInfo, ...] = (
    ExitCodeInfo(EXIT_OK, "OK", "Success"),
    ExitCodeInfo(EXIT_USAGE, "USAGE", "Usage/config error (invalid args, invalid options spec)"),
    ExitCodeInfo(EXIT_GENERIC, "GENERIC", "Generic failure (unexpected error)"),
    ExitCodeInfo(EXIT_FORMAT, "FORMAT", "Bad magic word, truncated or garbled StrongHelp manual"),
    ExitCodeInfo(EXIT_BOUNDS, "BOUNDS", "Offset or size outside the loaded manual"),
    ExitCodeInfo(EXIT_TREE, "TREE", "Object tree inconsistency (roots, parents, names, status)"),
    ExitCodeInfo(EXIT_RESOURCE, "RESOURCE", "File open/read/write/delete failure"),
    ExitCodeInfo(
        EXIT_REPORTED_ERRORS,
        "REPORTED_ERRORS",
        "Run completed but errors were reported (e.g. broken free-space chain)",
    ),
)

_EXIT_CODE_BY_CODE: dict[int, ExitCodeInfo] = {e.code: e for e in EXIT_CODES}


def exit_code_info(code: int) -> ExitCodeInfo | None:
    return _EXIT_CODE_BY_CODE.get(int(code))


def render_exit_codes_markdown() -> str:
    """Render docs/exit_codes.md content."""
    lines: list[str] = []
    lines.append("# Exit codes\n")
    lines.append("> GENERATED FILE - do not edit manually.\n")
    lines.append("> Source of truth: `src/strongex/errors.py` (EXIT_CODES).\n")
    lines.append("> Regenerate: `python scripts/gen_exit_codes_md.py`.\n\n")
    lines.append("These are the CLI exit codes you can rely on.\n\n")
    lines.append("| Code | Name | Meaning |\n")
    lines.append("|---:|---|---|\n")
    for e in sorted(EXIT_CODES, key=lambda x: x.code):
        lines.append(f"| {e.code} | `{e.name}` | {e.description} |\n")
    lines.append("\n## Notes\n")
    lines.append("- Most internal errors extend `StrongexError` and carry an `exit_code`.\n")
    lines.append("- `--debug` (or `STRONGEX_DEBUG=1`) re-raises errors to show full stack traces.\n")
    lines.append(
        "- A failing `-update` leaves the output folder as far as the sync got; nothing is rolled back.\n"
    )
    return "".join(lines)


# ---------------
# Typed exceptions
# ---------------


class StrongexError(Exception):
    """Base error for strongex."""

    exit_code: int = EXIT_GENERIC


class UsageError(StrongexError):
    exit_code = EXIT_USAGE


# Format: the manual itself is wrong.


class FormatError(StrongexError):
    exit_code = EXIT_FORMAT


class BadFileMagic(FormatError):
    pass


class BadFreeMagic(FormatError):
    pass


class BadObjectMagic(FormatError):
    pass


class BadDirEntry(FormatError):
    pass


class MissingRoot(FormatError):
    pass


class DirectoryLoop(FormatError):
    pass


# Bounds: an offset/size taken from the manual does not fit the buffer.


class BoundsError(StrongexError):
    exit_code = EXIT_BOUNDS


class NoBuffer(BoundsError):
    pass


class OffsetRange(BoundsError):
    pass


class BadOffset(BoundsError):
    pass


class BadSize(BoundsError):
    pass


# Tree: the object database was asked to do something inconsistent.


class TreeError(StrongexError):
    exit_code = EXIT_TREE


class TooManyRoots(TreeError):
    pass


class NoRoot(TreeError):
    pass


class NoParent(TreeError):
    pass


class DuplicateObject(TreeError):
    pass


class MissingName(TreeError):
    pass


class BadStatus(TreeError):
    pass


class BadFiletype(TreeError):
    pass


class BadName(TreeError):
    pass


# Resource: the host filesystem said no.


class ResourceError(StrongexError):
    exit_code = EXIT_RESOURCE


class OpenFailed(ResourceError):
    pass


class LoadFailed(ResourceError):
    pass


class DirReadFailed(ResourceError):
    pass


class NotADirectory(ResourceError):
    pass


class WriteFailed(ResourceError):
    pass


class DeleteFailed(ResourceError):
    pass


class MakeDirFailed(ResourceError):
    pass
