"""Reporting/sync driver.

One call runs the whole pipeline on one manual:

  load -> parse manual -> read disc folder -> check status -> report -> [update]

The report is always produced before any change is made to disc, so it stays
visible even if the update later fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from strongex.disc import read_disc_folder
from strongex.errors import LoadFailed, OpenFailed
from strongex.files import TYPE_DEFAULT
from strongex.messages import MessageSink, Msg
from strongex.objectdb import ObjectDatabase, ReportSummary
from strongex.report import build_report
from strongex.stronghelp import parse_manual

log = logging.getLogger(__name__)


def load_manual(source: str | Path) -> bytes:
    p = Path(source)
    try:
        fp = p.open("rb")
    except OSError as e:
        raise OpenFailed(f"apertura manuale fallita: {p}: {e}") from e
    with fp:
        try:
            return fp.read()
        except OSError as e:
            raise LoadFailed(f"lettura manuale fallita: {p}: {e}") from e


@dataclass
class Session:
    """State of one extraction run."""

    source: Path
    out: Path
    sink: MessageSink = field(default_factory=MessageSink)
    default_filetype: int = TYPE_DEFAULT
    db: ObjectDatabase = field(init=False)
    summary: ReportSummary | None = None
    report: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.db = ObjectDatabase(self.sink)

    def run(self, *, include_all: bool = False, update: bool = False) -> ReportSummary:
        self.sink.report(Msg.EXTRACTING, str(self.source), str(self.out))
        buffer = load_manual(self.source)
        self.sink.report(Msg.FILE_SIZE, len(buffer))

        self.sink.report(Msg.READ_STRONGHELP)
        parse_manual(buffer, self.db)

        self.sink.report(Msg.READ_DISC)
        read_disc_folder(self.db, self.out, default_filetype=self.default_filetype)

        self.sink.report(Msg.COMPARING_DATA)
        self.db.check_status()
        self.summary = self.db.output_report(include_all)
        self.report = build_report(self.db, self.summary, include_all=include_all)

        if update:
            self.sink.report(Msg.UPDATING_DISC)
            self.db.update()

        self.sink.report(Msg.COMPLETE)
        log.debug("session done: %s", self.summary.to_dict())
        return self.summary


def process_manual(
    source: str | Path,
    out: str | Path,
    *,
    include_all: bool = False,
    update: bool = False,
    sink: MessageSink | None = None,
    default_filetype: int = TYPE_DEFAULT,
) -> Session:
    """Run the pipeline and return the finished session (database, summary, report)."""
    session = Session(
        source=Path(source),
        out=Path(out),
        sink=sink if sink is not None else MessageSink(),
        default_filetype=default_filetype,
    )
    session.run(include_all=include_all, update=update)
    return session
