"""Disc primitives and the RISC OS filename convention.

Canonical object names are RISC OS names (as stored in the manual). On a host
without typed files, a disc name is derived from them:

  - '/' (the RISC OS extension separator) becomes '.';
  - files carry the filetype as a ``,xxx`` suffix (3 lowercase hex digits);
  - directories never carry a suffix.

A disc name is always a single path component. Manual names that could not
map to one ('.' is the RISC OS path separator, so it never appears in a leaf
name) are rejected with BadName before anything touches the disc.

Reading back, '.' becomes '/' again, and a trailing ``,xxx`` that parses as
0x000..0xfff is stripped and becomes the filetype; anything else gets
TYPE_DEFAULT.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from strongex.errors import (
    BadName,
    DeleteFailed,
    DirReadFailed,
    MakeDirFailed,
    NotADirectory,
    OpenFailed,
    WriteFailed,
)

TYPE_DIRECTORY: Final[int] = 0x1000
TYPE_UNKNOWN: Final[int] = 0xFFFF
TYPE_DEFAULT: Final[int] = 0xFFD
TYPE_MAX: Final[int] = 0xFFF

PATH_SEPARATOR: Final[str] = os.sep

_TYPE_SUFFIX = re.compile(r",([0-9A-Fa-f]{3})$")


@dataclass(frozen=True)
class DiscEntry:
    """One object found on disc.

    name      canonical (RISC OS) name, used to join with the manual
    disc_name the name actually used on disc
    """

    name: str
    disc_name: str
    size: int
    filetype: int

    @property
    def is_directory(self) -> bool:
        return self.filetype == TYPE_DIRECTORY


def is_valid_filetype(filetype: int) -> bool:
    return 0 <= int(filetype) <= TYPE_MAX


def _to_disc(name: str) -> str:
    return name.replace("/", ".")


def _from_disc(disc_name: str) -> str:
    return disc_name.replace(".", "/")


def check_name(name: str) -> str:
    """Reject a manual name that would not be one plain path component on disc."""
    disc = _to_disc(name)
    seps = {s for s in (os.sep, os.altsep) if s}
    if (
        not name
        or "." in name
        or "\x00" in name
        or disc in (".", "..")
        or any(s in disc for s in seps)
    ):
        raise BadName(f"nome non utilizzabile su disco: {name!r}")
    return name


def split_filetype(disc_name: str, *, default: int = TYPE_DEFAULT) -> tuple[str, int]:
    """Split ``name,xxx`` into (name, 0xxxx); untyped names get `default`."""
    m = _TYPE_SUFFIX.search(disc_name)
    if m is None:
        return disc_name, default
    return disc_name[: m.start()], int(m.group(1), 16)


def canonical_name(disc_name: str, *, is_directory: bool, default: int = TYPE_DEFAULT) -> tuple[str, int]:
    """Map a disc name to (canonical name, filetype)."""
    if is_directory:
        return _from_disc(disc_name), TYPE_DIRECTORY
    stem, filetype = split_filetype(disc_name, default=default)
    return _from_disc(stem), filetype


def make_filename(name: str, filetype: int) -> str:
    """Synthesize the disc name for a canonical name + filetype."""
    disc = _to_disc(check_name(name))
    if filetype == TYPE_DIRECTORY or not is_valid_filetype(filetype):
        return disc
    return f"{disc},{filetype:03x}"


def read_directory_info(path: str | Path) -> DiscEntry | None:
    """Describe the output folder itself.

    Returns None if the folder does not exist yet; raises if the path is taken
    by something that is not a directory.
    """
    p = Path(path)
    if not p.exists():
        return None
    if not p.is_dir():
        raise NotADirectory(f"non è una directory: {p}")
    return DiscEntry(name=str(p), disc_name=str(p), size=0, filetype=TYPE_DIRECTORY)


def read_directory_contents(path: str | Path, *, default_filetype: int = TYPE_DEFAULT) -> list[DiscEntry]:
    """List a directory, sorted by canonical name."""
    out: list[DiscEntry] = []
    try:
        with os.scandir(path) as it:
            for de in it:
                # Links are listed as themselves, never followed.
                st = de.stat(follow_symlinks=False)
                is_dir = de.is_dir(follow_symlinks=False)
                name, filetype = canonical_name(de.name, is_directory=is_dir, default=default_filetype)
                out.append(
                    DiscEntry(
                        name=name,
                        disc_name=de.name,
                        size=0 if is_dir else int(st.st_size),
                        filetype=filetype,
                    )
                )
    except OSError as e:
        raise DirReadFailed(f"lettura directory fallita: {path}: {e}") from e
    out.sort(key=lambda e: e.name)
    return out


def compare_file(path: str | Path, data: bytes | memoryview) -> bool:
    """True if the file at `path` starts with exactly `data`.

    Reads len(data) bytes; a file that cannot be opened, or that is shorter
    than `data`, is an error rather than a difference. A symbolic link never
    matches, so update replaces the link instead of writing through it.
    """
    expected = memoryview(data)
    p = Path(path)
    if p.is_symlink():
        return False
    try:
        with p.open("rb") as fp:
            got = fp.read(len(expected))
    except OSError as e:
        raise OpenFailed(f"apertura fallita: {path}: {e}") from e
    if len(got) != len(expected):
        raise OpenFailed(f"lettura incompleta: {path} ({len(got)}/{len(expected)} byte)")
    return got == expected


def make_directory(path: str | Path) -> None:
    try:
        os.mkdir(path, 0o775)
    except OSError as e:
        raise MakeDirFailed(f"creazione directory fallita: {path}: {e}") from e


def ensure_directory(path: str | Path) -> None:
    try:
        Path(path).mkdir(mode=0o775, parents=True, exist_ok=True)
    except OSError as e:
        raise MakeDirFailed(f"creazione directory fallita: {path}: {e}") from e


def delete_directory(path: str | Path) -> None:
    try:
        os.rmdir(path)
    except OSError as e:
        raise DeleteFailed(f"cancellazione directory fallita: {path}: {e}") from e


def write_file(path: str | Path, data: bytes | memoryview) -> None:
    try:
        with Path(path).open("wb") as fp:
            fp.write(data)
    except OSError as e:
        raise WriteFailed(f"scrittura fallita: {path}: {e}") from e


def delete_file(path: str | Path) -> None:
    try:
        os.unlink(path)
    except OSError as e:
        raise DeleteFailed(f"cancellazione file fallita: {path}: {e}") from e


def set_filetype(path: str | Path, filetype: int) -> None:
    """Stamp the filetype on a written file.

    On this host the type is already carried by the ``,xxx`` name suffix, so
    there is nothing left to set; only the value is checked.
    """
    if not is_valid_filetype(filetype):
        raise WriteFailed(f"filetype non valido per {path}: {filetype:#x}")
