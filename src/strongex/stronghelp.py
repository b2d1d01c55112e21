"""StrongHelp manual parser (read-only).

Layout (all words little-endian signed 32-bit):

  root header  @0    "HELP" | size | version | free_offset
  root entry   @16   directory entry for the manual's root directory

  directory entry    object_offset | load_address | exec_address | size |
                     flags | reserved | filename (NUL-terminated, word-padded)
  directory block    "DIR$" | size | used        then entries for used-12 bytes
  data block         "DATA" | size               then entry.size-8 bytes of file
  free block         "FREE" | size | next_offset (negative ends the chain)

The filetype of an object is bits 8..19 of its entry's load address.

Only the header and directory tree are structural. The free-space chain is
walked for diagnostics; a broken chain is reported but does not stop parsing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from strongex.errors import (
    BadDirEntry,
    BadFileMagic,
    BadFreeMagic,
    BadObjectMagic,
    BadOffset,
    BadSize,
    BoundsError,
    DirectoryLoop,
    MissingRoot,
    OffsetRange,
)
from strongex.files import check_name
from strongex.messages import Msg
from strongex.objectdb import ObjectDatabase, ObjectNode
from strongex.region import ByteRegion

log = logging.getLogger(__name__)

# Magic words, as read little-endian from the file.
FILE_WORD: Final[int] = 0x504C4548  # "HELP"
DIR_WORD: Final[int] = 0x24524944  # "DIR$"
DATA_WORD: Final[int] = 0x41544144  # "DATA"
FREE_WORD: Final[int] = 0x45455246  # "FREE"

ROOT_HEADER_SIZE: Final[int] = 16
ROOT_ENTRY_OFFSET: Final[int] = 16
DIR_ENTRY_HEADER_SIZE: Final[int] = 24
# Header plus the first word of the filename, the least an entry can occupy.
DIR_ENTRY_MIN_SIZE: Final[int] = DIR_ENTRY_HEADER_SIZE + 4
DIR_BLOCK_SIZE: Final[int] = 12
DATA_BLOCK_SIZE: Final[int] = 8
FREE_BLOCK_SIZE: Final[int] = 12

NAME_ENCODING: Final[str] = "latin-1"


def filetype_from_load_address(load_address: int) -> int:
    return (load_address >> 8) & 0xFFF


def entry_stride(name_length: int) -> int:
    """Bytes from one directory entry to the next (word aligned)."""
    return (DIR_ENTRY_HEADER_SIZE + name_length + 1 + 3) & ~3


@dataclass(frozen=True)
class RootHeader:
    magic: int
    size: int
    version: int
    free_offset: int


@dataclass(frozen=True)
class DirEntry:
    offset: int
    object_offset: int
    load_address: int
    exec_address: int
    size: int
    flags: int
    reserved: int
    name: str
    name_length: int

    @property
    def filetype(self) -> int:
        return filetype_from_load_address(self.load_address)

    @property
    def stride(self) -> int:
        return entry_stride(self.name_length)


@dataclass(frozen=True)
class FreeSpace:
    total: int
    blocks: int


class StrongHelpParser:
    """Walk a loaded manual and add its objects to an ObjectDatabase."""

    def __init__(self, region: ByteRegion, db: ObjectDatabase):
        self.region = region
        self.db = db
        self.sink = db.sink
        self._open_dirs: set[int] = set()

    # --- Header / free space ---

    def read_header(self) -> RootHeader:
        magic, size, version, free_offset = self.region.words(0, ROOT_HEADER_SIZE // 4)
        header = RootHeader(magic=magic, size=size, version=version, free_offset=free_offset)

        self.sink.report(Msg.HEADER_MAGIC_WORD, magic & 0xFFFFFFFF)
        self.sink.report(Msg.VERSION, version)
        self.sink.report(Msg.HEADER_SIZE, size)
        self.sink.report(Msg.FREE_SPACE_OFFSET, free_offset)

        if magic != FILE_WORD:
            raise BadFileMagic(f"magic del manuale non valido: 0x{magic & 0xFFFFFFFF:08x}")
        return header

    def walk_free_space(self, offset: int) -> FreeSpace:
        """Follow the free block chain from `offset` and add up its size.

        Raises BadFreeMagic on a bad block or a chain that loops back on
        itself, and a BoundsError if a link points outside the manual.
        """
        seen: set[int] = set()
        total = 0
        while offset >= 0:
            if offset in seen:
                raise BadFreeMagic(f"catena free ciclica a offset {offset}")
            seen.add(offset)

            magic, size, next_offset = self.region.words(offset, FREE_BLOCK_SIZE // 4)
            self.sink.report(Msg.FREE_MAGIC_WORD, magic & 0xFFFFFFFF)
            self.sink.report(Msg.FREE_SIZE, size)
            self.sink.report(Msg.FREE_NEXT_OFFSET, next_offset)

            if magic != FREE_WORD:
                raise BadFreeMagic(f"magic free non valido a offset {offset}: 0x{magic & 0xFFFFFFFF:08x}")
            total += size
            offset = next_offset
        return FreeSpace(total=total, blocks=len(seen))

    # --- Objects ---

    def read_entry(self, offset: int) -> DirEntry:
        try:
            words = self.region.words(offset, DIR_ENTRY_HEADER_SIZE // 4)
            # Make sure at least the first filename word is inside the block too.
            self.region.resolve(offset, DIR_ENTRY_MIN_SIZE)
            raw_name = self.region.cstring(offset + DIR_ENTRY_HEADER_SIZE)
        except BoundsError as e:
            raise BadDirEntry(f"entry di directory illeggibile a offset {offset}: {e}") from e

        object_offset, load_address, exec_address, size, flags, reserved = words
        return DirEntry(
            offset=offset,
            object_offset=object_offset,
            load_address=load_address,
            exec_address=exec_address,
            size=size,
            flags=flags,
            reserved=reserved,
            name=raw_name.decode(NAME_ENCODING),
            name_length=len(raw_name),
        )

    def process_object(self, entry: DirEntry, parent: ObjectNode | None) -> ObjectNode:
        if parent is not None:
            # The root is stored under the output folder's name, never its own.
            check_name(entry.name)

        # Read the smaller (data) header first.
        word = self.region.words(entry.object_offset, DATA_BLOCK_SIZE // 4)[0]

        if entry.object_offset == 0 and word == FILE_WORD:
            # Empty files may have no data block and point at the header.
            return self.db.add_stronghelp_file(parent, entry.name, 0, entry.filetype, memoryview(b""))

        if word == DATA_WORD:
            size = entry.size - DATA_BLOCK_SIZE
            if size < 0:
                raise BadSize(f"dimensione file negativa per {entry.name!r}: {size}")
            data = self.region.payload(entry.object_offset + DATA_BLOCK_SIZE, size)
            return self.db.add_stronghelp_file(parent, entry.name, size, entry.filetype, data)

        if word == DIR_WORD:
            if entry.object_offset in self._open_dirs:
                raise DirectoryLoop(
                    f"la directory {entry.name!r} punta a un suo antenato (offset {entry.object_offset})"
                )
            _magic, _size, used = self.region.words(entry.object_offset, DIR_BLOCK_SIZE // 4)
            node = self.db.add_stronghelp_directory(parent, entry.name)
            self._open_dirs.add(entry.object_offset)
            try:
                self.process_directory_entries(
                    entry.object_offset + DIR_BLOCK_SIZE, used - DIR_BLOCK_SIZE, node
                )
            finally:
                self._open_dirs.discard(entry.object_offset)
            return node

        raise BadObjectMagic(
            f"magic oggetto non valido per {entry.name!r} a offset {entry.object_offset}: "
            f"0x{word & 0xFFFFFFFF:08x}"
        )

    def process_directory_entries(self, offset: int, length: int, node: ObjectNode) -> None:
        if offset < 0:
            raise BadOffset(f"offset directory negativo: {offset}")
        if length < 0:
            raise BadSize(f"lunghezza directory negativa: {length}")

        end = offset + length
        if end >= len(self.region):
            raise OffsetRange(
                f"directory fuori range: offset={offset} length={length} file={len(self.region)}"
            )

        while offset < end:
            entry = self.read_entry(offset)
            self.process_object(entry, node)
            offset += entry.stride

    # --- Entry point ---

    def parse(self) -> ObjectNode:
        header = self.read_header()

        try:
            free = self.walk_free_space(header.free_offset)
        except (BadFreeMagic, BoundsError) as e:
            self.sink.report(Msg.BAD_FREE_CHAIN, str(e))
        else:
            self.sink.report(Msg.FREE_TOTAL_SIZE, free.total)

        try:
            root_entry = self.read_entry(ROOT_ENTRY_OFFSET)
        except BadDirEntry as e:
            raise MissingRoot(f"entry radice mancante: {e}") from e

        log.debug("root entry %r -> offset %d", root_entry.name, root_entry.object_offset)
        return self.process_object(root_entry, None)


def parse_manual(buffer: bytes, db: ObjectDatabase) -> ObjectNode:
    """Parse a whole manual held in `buffer` into `db`; return the root node."""
    region = ByteRegion(buffer)
    return StrongHelpParser(region, db).parse()
