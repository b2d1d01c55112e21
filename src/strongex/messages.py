"""Structured message events.

The core never formats user-facing text itself: it reports an event code plus
arguments to a `MessageSink`, and the sink decides what reaches the user.

Levels:
  - INFO     progress/diagnostics, only shown when verbose
  - WARNING  always shown
  - ERROR    always shown, and remembered so the run can exit non-zero
  - REPORT   the comparison report itself (stdout)
"""

from __future__ import annotations

import enum
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, TextIO

logger = logging.getLogger("strongex")


class Level(enum.IntEnum):
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    REPORT = 100


class Msg(enum.Enum):
    # Pipeline progress
    EXTRACTING = (Level.INFO, "Extracting manual '%s' into '%s'")
    FILE_SIZE = (Level.INFO, "Manual is %d bytes long")
    READ_STRONGHELP = (Level.INFO, "Reading StrongHelp manual...")
    READ_DISC = (Level.INFO, "Reading disc folder...")
    COMPARING_DATA = (Level.INFO, "Comparing manual and disc...")
    UPDATING_DISC = (Level.INFO, "Updating disc folder...")
    COMPLETE = (Level.INFO, "Complete")

    # Container diagnostics
    HEADER_MAGIC_WORD = (Level.INFO, "Header magic word: 0x%08x")
    VERSION = (Level.INFO, "StrongHelp version: %d")
    HEADER_SIZE = (Level.INFO, "Header size: %d")
    FREE_SPACE_OFFSET = (Level.INFO, "Free space offset: %d")
    FREE_MAGIC_WORD = (Level.INFO, "Free block magic word: 0x%08x")
    FREE_SIZE = (Level.INFO, "Free block size: %d")
    FREE_NEXT_OFFSET = (Level.INFO, "Free block next offset: %d")
    FREE_TOTAL_SIZE = (Level.INFO, "Total free space: %d")
    BAD_FREE_CHAIN = (Level.ERROR, "Free space chain is broken: %s")

    # Merge diagnostics
    NEW_DISC_OBJECT = (Level.INFO, "No match for %s %s, creating new")
    MATCHED_DISC_OBJECT = (Level.INFO, "Found match for %s %s")

    # Sync actions
    MAKE_DIRECTORY = (Level.INFO, "Creating directory %s")
    DELETE_DIRECTORY = (Level.INFO, "Deleting directory %s")
    WRITE_FILE = (Level.INFO, "Writing file %s (%d bytes, type %03x)")
    DELETE_FILE = (Level.INFO, "Deleting file %s")

    # Report lines
    DIRECTORY_ADDED = (Level.REPORT, "Directory %s Added")
    DIRECTORY_DELETED = (Level.REPORT, "Directory %s Deleted")
    DIRECTORY_UNCHANGED = (Level.REPORT, "Directory %s Unchanged")
    FILE_ADDED = (Level.REPORT, "File %s Added")
    FILE_DELETED = (Level.REPORT, "File %s Deleted")
    FILE_TYPE_CHANGED = (Level.REPORT, "File %s Changed Type")
    FILE_CONTENT_CHANGED = (Level.REPORT, "File %s Changed Content")
    FILE_UNCHANGED = (Level.REPORT, "File %s Unchanged")
    SUMMARY_IDENTICAL = (Level.REPORT, "Manual and disc are identical")
    SUMMARY_DIRECTORIES_ADDED = (Level.REPORT, "%d directories added")
    SUMMARY_DIRECTORIES_DELETED = (Level.REPORT, "%d directories deleted")
    SUMMARY_FILES_ADDED = (Level.REPORT, "%d files added")
    SUMMARY_FILES_CHANGED = (Level.REPORT, "%d files changed")
    SUMMARY_FILES_DELETED = (Level.REPORT, "%d files deleted")

    @property
    def level(self) -> Level:
        return self.value[0]

    @property
    def text(self) -> str:
        return self.value[1]

    def format(self, *args: Any) -> str:
        return self.text % args if args else self.text


@dataclass(frozen=True)
class Event:
    code: Msg
    args: tuple[Any, ...]

    @property
    def text(self) -> str:
        return self.code.format(*self.args)


@dataclass
class MessageSink:
    """Collect events and route them to logging/stdout.

    `quiet_report` keeps REPORT events out of stdout (they are still recorded),
    which the CLI uses when it prints the JSON report instead.
    """

    verbose: bool = False
    quiet_report: bool = False
    stream: TextIO | None = None
    events: list[Event] = field(default_factory=list)
    errors: int = 0
    on_event: Callable[[Event], None] | None = None

    def report(self, code: Msg, *args: Any) -> None:
        ev = Event(code=code, args=tuple(args))
        self.events.append(ev)
        if code.level is Level.ERROR:
            self.errors += 1

        if self.on_event is not None:
            self.on_event(ev)

        if code.level is Level.REPORT:
            if not self.quiet_report:
                print(ev.text, file=self.stream or sys.stdout)
            return
        if code.level is Level.INFO and not self.verbose:
            return
        logger.log(int(code.level), ev.text)

    def has_errors(self) -> bool:
        return self.errors > 0

    def codes(self) -> list[Msg]:
        return [e.code for e in self.events]

    def texts(self, level: Level | None = None) -> list[str]:
        return [e.text for e in self.events if level is None or e.code.level is level]
