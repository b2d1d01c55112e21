"""Object database: the merged manual/disc tree.

Every node is a file or a directory addressed by its canonical name. A node can
carry a StrongHelp side (it exists in the manual), a disc side (it exists in the
output folder), or both; the two are joined by canonical name among siblings.

Phases run strictly in order on one database:

  build (manual) -> build (disc) -> check_status -> output_report -> update

Sibling lists are kept sorted by name (case-sensitive), so lookups are linear
scans that stop at the first name >= the target, and every walk is
deterministic.
"""

from __future__ import annotations

import bisect
import enum
from collections.abc import Iterator
from dataclasses import dataclass, field

from strongex import files
from strongex.errors import (
    BadStatus,
    DuplicateObject,
    MissingName,
    NoParent,
    NoRoot,
    TooManyRoots,
)
from strongex.messages import MessageSink, Msg


class Status(enum.Enum):
    UNKNOWN = "unknown"
    IDENTICAL = "identical"
    ADDED = "added"
    DELETED = "deleted"
    TYPE_CHANGED = "type_changed"
    SIZE_CHANGED = "size_changed"
    CONTENT_CHANGED = "content_changed"


CHANGED: frozenset[Status] = frozenset(
    {Status.TYPE_CHANGED, Status.SIZE_CHANGED, Status.CONTENT_CHANGED}
)


class PathView(enum.Enum):
    AGNOSTIC = "agnostic"
    STRONGHELP = "stronghelp"
    DISC = "disc"


@dataclass
class StrongHelpSide:
    name: str
    size: int
    filetype: int
    # Slice of the loaded manual; only valid while that buffer is in use.
    data: memoryview | None = None


@dataclass
class DiscSide:
    name: str
    size: int
    filetype: int


@dataclass(eq=False)
class ObjectNode:
    name: str
    is_directory: bool
    stronghelp: StrongHelpSide | None = None
    disc: DiscSide | None = None
    status: Status = Status.UNKNOWN
    directories: list[ObjectNode] = field(default_factory=list, repr=False)
    files: list[ObjectNode] = field(default_factory=list, repr=False)
    parent: ObjectNode | None = field(default=None, repr=False)

    def view_name(self, view: PathView) -> str | None:
        if view is PathView.AGNOSTIC:
            return self.name
        if view is PathView.STRONGHELP:
            return self.stronghelp.name if self.stronghelp is not None else None
        return self.disc.name if self.disc is not None else None


@dataclass
class ReportSummary:
    directories_added: int = 0
    directories_deleted: int = 0
    files_added: int = 0
    files_changed: int = 0
    files_deleted: int = 0

    def is_identical(self) -> bool:
        return not any(
            (
                self.directories_added,
                self.directories_deleted,
                self.files_added,
                self.files_changed,
                self.files_deleted,
            )
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "directories_added": self.directories_added,
            "directories_deleted": self.directories_deleted,
            "files_added": self.files_added,
            "files_changed": self.files_changed,
            "files_deleted": self.files_deleted,
        }


# -------------------
# Sibling lists
# -------------------


def _find_object(siblings: list[ObjectNode], name: str) -> ObjectNode | None:
    for node in siblings:
        if node.name >= name:
            return node if node.name == name else None
    return None


def _link_object(siblings: list[ObjectNode], node: ObjectNode) -> None:
    bisect.insort(siblings, node, key=lambda n: n.name)


def _unlink_object(node: ObjectNode) -> None:
    parent = node.parent
    if parent is None:
        return
    siblings = parent.directories if node.is_directory else parent.files
    siblings.remove(node)
    node.parent = None


# -------------------
# Paths
# -------------------


def get_path(node: ObjectNode, view: PathView, separator: str) -> str:
    """Join the `view` names from the root down to `node`.

    Raises MissingName if any node on the way has no name in that view (e.g.
    the disc path of a manual-only object before update has named it).
    """
    parts: list[str] = []
    cur: ObjectNode | None = node
    while cur is not None:
        part = cur.view_name(view)
        if part is None:
            raise MissingName(f"nessun nome {view.value} per l'oggetto {cur.name!r}")
        parts.append(part)
        cur = cur.parent
    parts.reverse()
    return separator.join(parts)


# -------------------
# Database
# -------------------


class ObjectDatabase:
    def __init__(self, sink: MessageSink | None = None, *, separator: str = files.PATH_SEPARATOR):
        self.root: ObjectNode | None = None
        self.sink = sink if sink is not None else MessageSink()
        self.separator = separator

    # --- Manual side ---

    def add_stronghelp_directory(self, parent: ObjectNode | None, name: str) -> ObjectNode:
        if parent is None and self.root is not None:
            raise TooManyRoots(f"seconda directory radice: {name!r}")

        node = ObjectNode(
            name=name,
            is_directory=True,
            stronghelp=StrongHelpSide(name=name, size=0, filetype=files.TYPE_DIRECTORY),
            parent=parent,
        )
        if parent is None:
            self.root = node
        else:
            if _find_object(parent.directories, name) is not None:
                raise DuplicateObject(f"directory duplicata nel manuale: {name!r}")
            _link_object(parent.directories, node)
        return node

    def add_stronghelp_file(
        self,
        parent: ObjectNode | None,
        name: str,
        size: int,
        filetype: int,
        data: memoryview | bytes | None,
    ) -> ObjectNode:
        if parent is None:
            raise NoParent(f"file senza directory padre: {name!r}")
        if _find_object(parent.files, name) is not None:
            raise DuplicateObject(f"file duplicato nel manuale: {name!r}")

        node = ObjectNode(
            name=name,
            is_directory=False,
            stronghelp=StrongHelpSide(
                name=name,
                size=int(size),
                filetype=int(filetype),
                data=memoryview(data) if data is not None else None,
            ),
            parent=parent,
        )
        _link_object(parent.files, node)
        return node

    # --- Disc side ---

    def add_disc_directory(self, parent: ObjectNode | None, name: str, disc_name: str) -> ObjectNode:
        if parent is None:
            # The output folder is the manual root, whatever either is called.
            if self.root is None:
                raise NoRoot("nessuna radice StrongHelp a cui agganciare la cartella")
            node: ObjectNode | None = self.root
        else:
            node = _find_object(parent.directories, name)

        if node is None:
            self.sink.report(Msg.NEW_DISC_OBJECT, "directory", name)
            node = ObjectNode(name=name, is_directory=True, parent=parent)
            assert parent is not None
            _link_object(parent.directories, node)
        else:
            if node.disc is not None:
                raise DuplicateObject(f"directory duplicata su disco: {disc_name!r}")
            self.sink.report(Msg.MATCHED_DISC_OBJECT, "directory", name)

        node.disc = DiscSide(name=disc_name, size=0, filetype=files.TYPE_DIRECTORY)
        return node

    def add_disc_file(
        self,
        parent: ObjectNode | None,
        name: str,
        disc_name: str,
        size: int,
        filetype: int,
    ) -> ObjectNode:
        if parent is None:
            raise NoParent(f"file su disco senza directory padre: {disc_name!r}")

        node = _find_object(parent.files, name)
        if node is None:
            self.sink.report(Msg.NEW_DISC_OBJECT, "file", name)
            node = ObjectNode(name=name, is_directory=False, parent=parent)
            _link_object(parent.files, node)
        else:
            if node.disc is not None:
                raise DuplicateObject(
                    f"file duplicato su disco: {disc_name!r} e {node.disc.name!r}"
                )
            self.sink.report(Msg.MATCHED_DISC_OBJECT, "file", name)

        node.disc = DiscSide(name=disc_name, size=int(size), filetype=int(filetype))
        return node

    # --- Walking ---

    def get_path(self, node: ObjectNode, view: PathView, separator: str | None = None) -> str:
        return get_path(node, view, self.separator if separator is None else separator)

    def iter_nodes(self) -> Iterator[ObjectNode]:
        """Pre-order walk: a directory, then its files, then its subdirectories."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            d = stack.pop()
            yield d
            yield from d.files
            stack.extend(reversed(d.directories))

    def _require_root(self) -> ObjectNode:
        if self.root is None:
            raise NoRoot("database vuoto: nessuna radice")
        return self.root

    # --- Status ---

    def check_status(self) -> None:
        self._check_directory_status(self._require_root())

    def _check_directory_status(self, d: ObjectNode) -> None:
        d.status = _presence_status(d)

        for f in d.files:
            st = _presence_status(f)
            if st is Status.IDENTICAL:
                st = self._compare_sides(f)
            f.status = st

        for sub in d.directories:
            self._check_directory_status(sub)

    def _compare_sides(self, f: ObjectNode) -> Status:
        sh, disc = f.stronghelp, f.disc
        assert sh is not None and disc is not None
        if sh.filetype != disc.filetype:
            return Status.TYPE_CHANGED
        if sh.size != disc.size:
            return Status.SIZE_CHANGED
        path = self.get_path(f, PathView.DISC)
        data = sh.data if sh.data is not None else memoryview(b"")
        if not files.compare_file(path, data[: sh.size]):
            return Status.CONTENT_CHANGED
        return Status.IDENTICAL

    # --- Report ---

    def output_report(self, include_all: bool = False) -> ReportSummary:
        summary = ReportSummary()
        root = self._require_root()
        self._report_directory(root, include_all, summary)

        if summary.is_identical():
            self.sink.report(Msg.SUMMARY_IDENTICAL)
        else:
            for code, value in (
                (Msg.SUMMARY_DIRECTORIES_ADDED, summary.directories_added),
                (Msg.SUMMARY_DIRECTORIES_DELETED, summary.directories_deleted),
                (Msg.SUMMARY_FILES_ADDED, summary.files_added),
                (Msg.SUMMARY_FILES_CHANGED, summary.files_changed),
                (Msg.SUMMARY_FILES_DELETED, summary.files_deleted),
            ):
                if value:
                    self.sink.report(code, value)
        return summary

    def _report_directory(self, d: ObjectNode, include_all: bool, summary: ReportSummary) -> None:
        name = self.get_path(d, PathView.AGNOSTIC, ".")
        # The root is the output folder itself and is never counted.
        counted = d is not self.root

        if d.status is Status.ADDED:
            self.sink.report(Msg.DIRECTORY_ADDED, name)
            summary.directories_added += int(counted)
        elif d.status is Status.DELETED:
            self.sink.report(Msg.DIRECTORY_DELETED, name)
            summary.directories_deleted += int(counted)
        elif d.status is Status.IDENTICAL:
            if include_all:
                self.sink.report(Msg.DIRECTORY_UNCHANGED, name)
        else:
            raise BadStatus(f"stato non calcolato per la directory {name}")

        for f in d.files:
            fname = self.get_path(f, PathView.AGNOSTIC, ".")
            if f.status is Status.ADDED:
                self.sink.report(Msg.FILE_ADDED, fname)
                summary.files_added += 1
            elif f.status is Status.DELETED:
                self.sink.report(Msg.FILE_DELETED, fname)
                summary.files_deleted += 1
            elif f.status is Status.TYPE_CHANGED:
                self.sink.report(Msg.FILE_TYPE_CHANGED, fname)
                summary.files_changed += 1
            elif f.status in (Status.SIZE_CHANGED, Status.CONTENT_CHANGED):
                self.sink.report(Msg.FILE_CONTENT_CHANGED, fname)
                summary.files_changed += 1
            elif f.status is Status.IDENTICAL:
                if include_all:
                    self.sink.report(Msg.FILE_UNCHANGED, fname)
            else:
                raise BadStatus(f"stato non calcolato per il file {fname}")

        for sub in d.directories:
            self._report_directory(sub, include_all, summary)

    # --- Update ---

    def update(self) -> None:
        """Make the disc match the manual.

        The first failing filesystem operation aborts the run; whatever was
        already done stays done.
        """
        root = self._require_root()
        if root.disc is None:
            raise NoRoot("cartella di output non registrata")
        files.ensure_directory(self.get_path(root, PathView.DISC))
        self._update_directory(root)

    def _update_directory(self, d: ObjectNode) -> None:
        if d.status is Status.ADDED and d is not self.root:
            assert d.stronghelp is not None
            d.disc = DiscSide(
                name=files.make_filename(d.name, files.TYPE_DIRECTORY),
                size=0,
                filetype=files.TYPE_DIRECTORY,
            )
            path = self.get_path(d, PathView.DISC)
            self.sink.report(Msg.MAKE_DIRECTORY, path)
            files.make_directory(path)
            d.status = Status.IDENTICAL

        for f in list(d.files):
            self._update_file(f)

        for sub in list(d.directories):
            self._update_directory(sub)

        # Children are gone by now, so the directory is empty.
        if d.status is Status.DELETED:
            path = self.get_path(d, PathView.DISC)
            self.sink.report(Msg.DELETE_DIRECTORY, path)
            files.delete_directory(path)
            _unlink_object(d)

    def _update_file(self, f: ObjectNode) -> None:
        if f.status is Status.ADDED:
            self._write_file(f)
        elif f.status is Status.DELETED:
            path = self.get_path(f, PathView.DISC)
            self.sink.report(Msg.DELETE_FILE, path)
            files.delete_file(path)
            _unlink_object(f)
        elif f.status in CHANGED:
            path = self.get_path(f, PathView.DISC)
            self.sink.report(Msg.DELETE_FILE, path)
            files.delete_file(path)
            f.disc = None
            self._write_file(f)

    def _write_file(self, f: ObjectNode) -> None:
        sh = f.stronghelp
        assert sh is not None
        f.disc = DiscSide(
            name=files.make_filename(sh.name, sh.filetype),
            size=sh.size,
            filetype=sh.filetype,
        )
        path = self.get_path(f, PathView.DISC)
        data = sh.data if sh.data is not None else memoryview(b"")
        self.sink.report(Msg.WRITE_FILE, path, sh.size, sh.filetype)
        files.write_file(path, data[: sh.size])
        files.set_filetype(path, sh.filetype)
        f.status = Status.IDENTICAL


def _presence_status(node: ObjectNode) -> Status:
    if node.stronghelp is None and node.disc is not None:
        return Status.DELETED
    if node.stronghelp is not None and node.disc is None:
        return Status.ADDED
    return Status.IDENTICAL
