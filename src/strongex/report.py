"""Machine-readable comparison report (`-json`).

Determinism note:
the report must be byte-identical across runs given the same manual and the
same folder contents, so it can be diffed and checked in CI.

Concretely, we DO NOT embed:
- timestamps
- absolute paths (source file, output folder)
Objects are addressed by their agnostic path, relative to the manual root.
"""

from __future__ import annotations

import json
from typing import Any

from strongex.errors import BadStatus
from strongex.objectdb import ObjectDatabase, ObjectNode, ReportSummary, Status

SCHEMA_ID = "strongex.report.v1"


def _side(node: ObjectNode, which: str) -> dict[str, Any] | None:
    side = node.stronghelp if which == "stronghelp" else node.disc
    if side is None:
        return None
    out: dict[str, Any] = {"name": side.name}
    if not node.is_directory:
        out["size"] = int(side.size)
        out["filetype"] = f"{side.filetype:03x}"
    return out


def _relative_path(db: ObjectDatabase, node: ObjectNode) -> str:
    """Agnostic path below the root; the root's own name is left out."""
    parts: list[str] = []
    cur: ObjectNode | None = node
    while cur is not None and cur is not db.root:
        parts.append(cur.name)
        cur = cur.parent
    return ".".join(reversed(parts))


def _node_row(db: ObjectDatabase, node: ObjectNode) -> dict[str, Any]:
    if node.status is Status.UNKNOWN:
        raise BadStatus(f"stato non calcolato per {node.name!r}")

    row: dict[str, Any] = {
        "path": _relative_path(db, node),
        "kind": "dir" if node.is_directory else "file",
        "status": node.status.value,
    }
    sh = _side(node, "stronghelp")
    if sh is not None:
        row["stronghelp"] = sh
    disc = _side(node, "disc")
    if disc is not None and node is not db.root:
        row["disc"] = disc
    return row


def build_report(
    db: ObjectDatabase,
    summary: ReportSummary,
    *,
    include_all: bool = False,
) -> dict[str, Any]:
    """Build the report document for a database whose status is computed.

    Without `include_all` only non-identical nodes are listed, mirroring the
    text report.
    """
    nodes: list[dict[str, Any]] = []
    for node in db.iter_nodes():
        row = _node_row(db, node)
        if include_all or node.status is not Status.IDENTICAL:
            nodes.append(row)

    return {
        "schema": SCHEMA_ID,
        "identical": summary.is_identical(),
        "summary": summary.to_dict(),
        "nodes": nodes,
    }


def dumps_report(report: dict[str, Any]) -> str:
    return json.dumps(report, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
