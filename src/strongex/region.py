"""Bounds-checked view over a loaded StrongHelp manual.

Every offset read from the manual is untrusted; nothing in the parser touches
the buffer except through `ByteRegion`.
"""

from __future__ import annotations

import struct
from typing import Final

from strongex.errors import BadOffset, BadSize, NoBuffer, OffsetRange

WORD: Final[int] = 4


class ByteRegion:
    def __init__(self, buffer: bytes | None = None):
        self._raw: bytes | None = None
        self._view: memoryview | None = None
        if buffer is not None:
            self.load(buffer)

    def load(self, buffer: bytes) -> None:
        self._raw = bytes(buffer)
        self._view = memoryview(self._raw)

    def release(self) -> None:
        # Node payloads keep their own slices alive.
        self._raw = None
        self._view = None

    @property
    def loaded(self) -> bool:
        return self._raw is not None

    def __len__(self) -> int:
        return len(self._raw) if self._raw is not None else 0

    def _checked(self, offset: int, size: int) -> memoryview:
        if self._view is None:
            raise NoBuffer("nessun manuale caricato")
        if offset < 0:
            raise BadOffset(f"offset negativo: {offset}")
        if size < 0:
            raise BadSize(f"dimensione negativa: {size}")
        return self._view

    def resolve(self, offset: int, min_size: int) -> memoryview:
        """Return the `min_size` bytes at `offset`.

        The block must end strictly before the end of the buffer: a block that
        ends exactly at EOF is rejected, as the StrongHelp reader always did.
        """
        view = self._checked(offset, min_size)
        if offset + min_size >= len(view):
            raise OffsetRange(
                f"blocco fuori range: offset={offset} size={min_size} length={len(view)}"
            )
        return view[offset : offset + min_size]

    def words(self, offset: int, count: int) -> tuple[int, ...]:
        """Read `count` little-endian signed 32-bit words at `offset`."""
        return struct.unpack_from(f"<{count}i", self.resolve(offset, count * WORD))

    def word(self, offset: int) -> int:
        return self.words(offset, 1)[0]

    def payload(self, offset: int, length: int) -> memoryview:
        """Return file data; unlike `resolve`, the data may run up to EOF."""
        view = self._checked(offset, length)
        if offset + length > len(view):
            raise OffsetRange(
                f"dati fuori range: offset={offset} size={length} length={len(view)}"
            )
        return view[offset : offset + length]

    def cstring(self, offset: int) -> bytes:
        """Read a NUL-terminated string starting at `offset` (NUL excluded)."""
        self._checked(offset, 0)
        assert self._raw is not None
        end = self._raw.find(b"\x00", offset)
        if end < 0:
            raise OffsetRange(f"stringa non terminata a offset {offset}")
        return self._raw[offset:end]
