from __future__ import annotations

from pathlib import Path

import pytest

from conftest import File, ManualBuilder
from strongex import files
from strongex.errors import BadName, NotADirectory, WriteFailed
from strongex.extract import process_manual
from strongex.messages import Level, MessageSink, Msg
from strongex.objectdb import Status


def _sink() -> MessageSink:
    return MessageSink(quiet_report=True)


def _tree(root: Path) -> dict[str, bytes | None]:
    out: dict[str, bytes | None] = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        out[rel] = None if p.is_dir() else p.read_bytes()
    return out


def test_extract_into_empty_folder(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    sink = _sink()
    session = process_manual(sample_manual, out, update=True, sink=sink)

    assert session.summary is not None
    assert session.summary.to_dict() == {
        "directories_added": 1,
        "directories_deleted": 0,
        "files_added": 2,
        "files_changed": 0,
        "files_deleted": 0,
    }
    assert _tree(out) == {
        "Docs": None,
        "Docs/Intro,fff": b"I" * 40,
        "README,fff": bytes(range(120)),
    }

    actions = [e for e in sink.events if e.code in (Msg.MAKE_DIRECTORY, Msg.WRITE_FILE)]
    assert [e.code for e in actions] == [Msg.WRITE_FILE, Msg.MAKE_DIRECTORY, Msg.WRITE_FILE]
    assert [e.args[1:] for e in actions if e.code is Msg.WRITE_FILE] == [(120, 0xFFF), (40, 0xFFF)]
    assert not sink.has_errors()


def test_status_after_update_is_identical(tmp_path: Path, sample_manual: Path) -> None:
    session = process_manual(sample_manual, tmp_path / "out", update=True, sink=_sink())
    session.db.check_status()
    assert {n.status for n in session.db.iter_nodes()} == {Status.IDENTICAL}
    assert session.db.output_report().is_identical()


def test_second_run_is_a_no_op(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    process_manual(sample_manual, out, update=True, sink=_sink())
    before = _tree(out)

    sink = _sink()
    session = process_manual(sample_manual, out, update=True, sink=sink)
    assert session.summary is not None and session.summary.is_identical()
    assert sink.texts(Level.REPORT) == ["Manual and disc are identical"]
    assert Msg.WRITE_FILE not in sink.codes()
    assert _tree(out) == before


def test_compare_only_leaves_disc_alone(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "stale,fff").write_bytes(b"old")

    sink = _sink()
    session = process_manual(sample_manual, out, sink=sink)
    assert session.summary.files_deleted == 1
    assert session.summary.files_added == 2
    assert "File Manual.stale Deleted" in sink.texts(Level.REPORT)
    assert _tree(out) == {"stale,fff": b"old"}


def test_disc_only_directory_is_emptied_then_removed(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    (out / "Old" / "Deeper").mkdir(parents=True)
    (out / "Old" / "a,fff").write_bytes(b"a")
    (out / "Old" / "Deeper" / "b").write_bytes(b"b")

    sink = _sink()
    session = process_manual(sample_manual, out, update=True, sink=sink)
    assert session.summary.directories_deleted == 2
    assert session.summary.files_deleted == 2
    assert not (out / "Old").exists()

    order = [
        (e.code, Path(e.args[0]).relative_to(out).as_posix())
        for e in sink.events
        if e.code in (Msg.DELETE_FILE, Msg.DELETE_DIRECTORY)
    ]
    assert order == [
        (Msg.DELETE_FILE, "Old/a,fff"),
        (Msg.DELETE_FILE, "Old/Deeper/b"),
        (Msg.DELETE_DIRECTORY, "Old/Deeper"),
        (Msg.DELETE_DIRECTORY, "Old"),
    ]
    # Deleted nodes are gone from the tree.
    assert [d.name for d in session.db.root.directories] == ["Docs"]


def test_changed_files_are_replaced(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    (out / "Docs").mkdir(parents=True)
    (out / "README,ffd").write_bytes(bytes(range(120)))  # type changed
    (out / "Docs" / "Intro,fff").write_bytes(b"i" * 40)  # content changed

    sink = _sink()
    session = process_manual(sample_manual, out, update=True, sink=sink)
    assert session.summary.files_changed == 2
    assert sink.texts(Level.REPORT)[:2] == [
        "File Manual.README Changed Type",
        "File Manual.Docs.Intro Changed Content",
    ]
    assert _tree(out) == {
        "Docs": None,
        "Docs/Intro,fff": b"I" * 40,
        "README,fff": bytes(range(120)),
    }


def test_file_in_the_way_of_a_directory(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "Docs").write_bytes(b"not a dir")

    session = process_manual(sample_manual, out, update=True, sink=_sink())
    assert session.summary.files_deleted == 1
    assert session.summary.directories_added == 1
    assert (out / "Docs" / "Intro,fff").read_bytes() == b"I" * 40


def test_default_filetype_for_untyped_disc_files(tmp_path: Path, manual_builder: ManualBuilder) -> None:
    manual = tmp_path / "m"
    manual.write_bytes(manual_builder.build({"Text": File(b"abc", filetype=0xFFF)}).to_bytes())
    out = tmp_path / "out"
    out.mkdir()
    (out / "Text").write_bytes(b"abc")

    assert process_manual(manual, out, sink=_sink()).summary.files_changed == 1
    session = process_manual(manual, out, sink=_sink(), default_filetype=0xFFF)
    assert session.summary.is_identical()


def test_output_path_is_a_file(tmp_path: Path, sample_manual: Path) -> None:
    out = tmp_path / "out"
    out.write_bytes(b"")
    with pytest.raises(NotADirectory):
        process_manual(sample_manual, out, sink=_sink())


def test_failed_write_aborts_after_the_report(
    tmp_path: Path, sample_manual: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_write = files.write_file

    def write_file(path, data):
        if str(path).endswith("Intro,fff"):
            raise WriteFailed(f"disco pieno: {path}")
        real_write(path, data)

    monkeypatch.setattr(files, "write_file", write_file)

    out = tmp_path / "out"
    sink = _sink()
    with pytest.raises(WriteFailed):
        process_manual(sample_manual, out, update=True, sink=sink)

    # Report was complete before the update started; nothing is rolled back.
    assert "2 files added" in sink.texts(Level.REPORT)
    assert (out / "README,fff").is_file()
    assert (out / "Docs").is_dir()
    assert not (out / "Docs" / "Intro,fff").exists()


def test_hostile_names_never_reach_the_disc(tmp_path: Path, manual_builder: ManualBuilder) -> None:
    base = tmp_path / "a" / "b"
    base.mkdir(parents=True)
    manual = tmp_path / "hostile"
    manual.write_bytes(manual_builder.build({"//.//.pwned": File(b"x")}).to_bytes())

    with pytest.raises(BadName):
        process_manual(manual, base / "out", update=True, sink=_sink())
    assert sorted(p.name for p in tmp_path.rglob("*")) == ["a", "b", "hostile"]


def test_symlinked_directory_is_unlinked_not_emptied(tmp_path: Path, sample_manual: Path) -> None:
    precious = tmp_path / "precious"
    precious.mkdir()
    (precious / "thesis,fff").write_bytes(b"years of work")
    out = tmp_path / "out"
    out.mkdir()
    (out / "link").symlink_to(precious, target_is_directory=True)

    session = process_manual(sample_manual, out, update=True, sink=_sink())
    assert session.summary.files_deleted == 1
    assert session.summary.directories_deleted == 0
    assert not (out / "link").exists() and not (out / "link").is_symlink()
    assert (precious / "thesis,fff").read_bytes() == b"years of work"


def test_symlinked_file_is_replaced_not_written_through(tmp_path: Path, sample_manual: Path) -> None:
    outside = tmp_path / "outside,fff"
    outside.write_bytes(bytes(range(120)))
    out = tmp_path / "out"
    out.mkdir()
    (out / "README,fff").symlink_to(outside)

    session = process_manual(sample_manual, out, update=True, sink=_sink())
    assert session.summary.files_changed == 1
    assert not (out / "README,fff").is_symlink()
    assert (out / "README,fff").read_bytes() == bytes(range(120))
    assert outside.read_bytes() == bytes(range(120))
