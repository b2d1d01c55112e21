"""Merge the output folder into an ObjectDatabase.

The folder itself becomes the disc side of the manual's root; everything below
it is matched to manual objects by canonical name, or added as disc-only.
"""

from __future__ import annotations

from pathlib import Path

from strongex import files
from strongex.errors import BadFiletype
from strongex.objectdb import ObjectDatabase, ObjectNode, PathView


class DiscReader:
    def __init__(self, db: ObjectDatabase, *, default_filetype: int = files.TYPE_DEFAULT):
        self.db = db
        self.default_filetype = default_filetype

    def read_folder(self, folder: str | Path) -> ObjectNode:
        path = str(folder)
        # "out/" and "out" are the same folder; keep a bare "/" intact.
        trimmed = path.rstrip(self.db.separator) or path
        info = files.read_directory_info(trimmed)

        root = self.db.add_disc_directory(None, trimmed, trimmed)
        if info is not None:
            self._read_entries(root)
        return root

    def _process_object(self, entry: files.DiscEntry, parent: ObjectNode) -> None:
        if entry.is_directory:
            node = self.db.add_disc_directory(parent, entry.name, entry.disc_name)
            self._read_entries(node)
        elif files.is_valid_filetype(entry.filetype):
            self.db.add_disc_file(parent, entry.name, entry.disc_name, entry.size, entry.filetype)
        else:
            raise BadFiletype(f"filetype non valido per {entry.disc_name!r}: {entry.filetype:#x}")

    def _read_entries(self, node: ObjectNode) -> None:
        path = self.db.get_path(node, PathView.DISC)
        for entry in files.read_directory_contents(path, default_filetype=self.default_filetype):
            self._process_object(entry, node)


def read_disc_folder(
    db: ObjectDatabase, folder: str | Path, *, default_filetype: int = files.TYPE_DEFAULT
) -> ObjectNode:
    return DiscReader(db, default_filetype=default_filetype).read_folder(folder)
