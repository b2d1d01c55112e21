from __future__ import annotations

import struct
from dataclasses import dataclass, field

import pytest


@dataclass
class File:
    data: bytes = b""
    filetype: int = 0xFFF
    # Point the entry at the manual header instead of a DATA block.
    header_ref: bool = False


Tree = dict  # name -> File | bytes | Tree


@dataclass
class ManualImage:
    """A synthesised manual plus where things ended up, for patching."""

    data: bytearray
    objects: dict[str, int] = field(default_factory=dict)  # path -> object offset
    entries: dict[str, int] = field(default_factory=dict)  # path -> entry offset
    free_blocks: list[int] = field(default_factory=list)

    def patch_word(self, offset: int, value: int) -> None:
        struct.pack_into("<i", self.data, offset, value)

    def to_bytes(self) -> bytes:
        return bytes(self.data)


def _stride(name: bytes) -> int:
    return (24 + len(name) + 1 + 3) & ~3


def _entry(name: str, object_offset: int, filetype: int, size: int) -> bytes:
    raw = name.encode("latin-1")
    load = 0xFFF00000 | ((filetype & 0xFFF) << 8)
    head = struct.pack("<iIIiii", object_offset, load, 0, size, 0, 0)
    body = raw + b"\x00"
    return head + body + b"\x00" * (_stride(raw) - 24 - len(body))


class ManualBuilder:
    """Lay out a StrongHelp manual from a nested dict.

    Objects are written children-first, so every block offset is known by the
    time its parent's directory block is written. The image always ends with a
    padding word, as real manuals never end on a block boundary the reader
    would reject.
    """

    def __init__(self, root_name: str = "Manual", *, version: int = 281):
        self.root_name = root_name
        self.version = version

    def build(self, tree: Tree, *, free_sizes: tuple[int, ...] = ()) -> ManualImage:
        img = ManualImage(data=bytearray())
        buf = img.data
        buf += b"HELP" + struct.pack("<iii", 0, self.version, -1)

        root_entry_at = len(buf)
        buf += _entry(self.root_name, 0, 0, 0)
        img.entries[self.root_name] = root_entry_at

        root_offset, root_size = self._emit_dir(img, tree, self.root_name)
        struct.pack_into("<i", buf, root_entry_at, root_offset)
        struct.pack_into("<i", buf, root_entry_at + 12, root_size)

        # Free chain: each block links to the next, the last one ends it.
        free_at: list[int] = []
        for size in free_sizes:
            free_at.append(len(buf))
            buf += b"FREE" + struct.pack("<ii", size, -1) + b"\x00" * max(0, size - 12)
        for here, nxt in zip(free_at, free_at[1:]):
            struct.pack_into("<i", buf, here + 8, nxt)
        img.free_blocks = free_at
        struct.pack_into("<i", buf, 12, free_at[0] if free_at else -1)

        buf += b"\x00" * 4
        struct.pack_into("<i", buf, 4, len(buf))
        return img

    def _emit_dir(self, img: ManualImage, tree: Tree, path: str) -> tuple[int, int]:
        buf = img.data
        entries: list[tuple[str, int, int, int, str]] = []
        for name, obj in tree.items():
            child = f"{path}.{name}"
            if isinstance(obj, dict):
                off, size = self._emit_dir(img, obj, child)
                entries.append((name, off, 0, size, child))
                continue
            f = obj if isinstance(obj, File) else File(data=bytes(obj))
            if f.header_ref:
                off, size = 0, 0
            else:
                off = len(buf)
                size = 8 + len(f.data)
                buf += b"DATA" + struct.pack("<i", size) + f.data
                buf += b"\x00" * (-len(buf) % 4)
            entries.append((name, off, f.filetype, size, child))

        block = bytearray()
        entry_rel: list[tuple[str, int]] = []
        for name, off, ft, size, child in entries:
            entry_rel.append((child, len(block)))
            block += _entry(name, off, ft, size)
            img.objects[child] = off

        here = len(buf)
        used = 12 + len(block)
        buf += b"DIR$" + struct.pack("<ii", used, used) + block
        for child, rel in entry_rel:
            img.entries[child] = here + 12 + rel
        img.objects[path] = here
        return here, used


@pytest.fixture
def manual_builder() -> ManualBuilder:
    return ManualBuilder()


@pytest.fixture
def sample_tree() -> Tree:
    """README (120 bytes) at the root, Docs/Intro (40 bytes) below it."""
    return {
        "README": File(data=bytes(range(120)), filetype=0xFFF),
        "Docs": {
            "Intro": File(data=b"I" * 40, filetype=0xFFF),
        },
    }


@pytest.fixture
def sample_manual(tmp_path, manual_builder, sample_tree):
    p = tmp_path / "Manual,3d6"
    p.write_bytes(manual_builder.build(sample_tree).to_bytes())
    return p
