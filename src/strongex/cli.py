"""strongex CLI.

This is the stable CLI entrypoint (console-script: ``strongex``).

  strongex -source Manual,3d6 -out folder [-update] [-all] [-verbose] [-json]
           [-options @opts.json] [--debug]

Without ``-update`` the folder is only compared against the manual.
"""

from __future__ import annotations

import argparse
import logging
import sys

from strongex.errors import EXIT_REPORTED_ERRORS, EXIT_USAGE, StrongexError, UsageError
from strongex.extract import process_manual
from strongex.messages import MessageSink
from strongex.options import DEBUG_ENV, env_bool, load_options_spec, resolve_options
from strongex.report import dumps_report


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="strongex",
        description="Extract a StrongHelp manual into a folder and report the differences.",
        add_help=False,
    )
    p.add_argument("-source", "--source", metavar="FILE", help="StrongHelp manual to read (required)")
    p.add_argument("-out", "--out", metavar="FOLDER", help="Folder to compare/extract into (required)")
    p.add_argument("-update", "--update", action="store_true", help="Make the folder match the manual")
    p.add_argument("-all", "--all", action="store_true", help="Also report unchanged objects")
    p.add_argument("-verbose", "--verbose", action="store_true", help="Show progress and diagnostics")
    p.add_argument("-json", "--json", action="store_true", help="Print the report as JSON (strongex.report.v1)")
    p.add_argument(
        "-options",
        "--options",
        metavar="SPEC",
        help="Options spec: @file.json or inline JSON (strongex.options.v1)",
    )
    p.add_argument("-help", "-h", "--help", action="store_true", help="Show this help and exit")
    p.add_argument("--debug", action="store_true", help="Show stack traces on errors")
    return p


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        format="%(levelname)s: %(message)s",
        level=logging.INFO if verbose else logging.WARNING,
        force=True,
    )


def _run(ns: argparse.Namespace) -> int:
    if not ns.source:
        raise UsageError("manca -source <file>")
    if not ns.out:
        raise UsageError("manca -out <folder>")

    spec = load_options_spec(ns.options) if ns.options is not None else None
    opts = resolve_options(
        ns.source,
        ns.out,
        include_all=ns.all,
        update=ns.update,
        verbose=ns.verbose,
        spec=spec,
    )

    _setup_logging(opts.verbose)
    sink = MessageSink(verbose=opts.verbose, quiet_report=bool(ns.json))

    session = process_manual(
        opts.source,
        opts.out,
        include_all=opts.include_all,
        update=opts.update,
        sink=sink,
        default_filetype=opts.default_filetype,
    )

    if ns.json:
        assert session.report is not None
        sys.stdout.write(dumps_report(session.report))

    if sink.has_errors():
        return EXIT_REPORTED_ERRORS
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    p = build_parser()
    ns = p.parse_args(argv)

    if ns.help:
        p.print_help()
        return 0

    debug = bool(ns.debug) or env_bool(DEBUG_ENV)
    try:
        return _run(ns)
    except SystemExit:
        raise
    except UsageError as e:
        if debug:
            raise
        print(f"[strongex] {e}", file=sys.stderr)
        p.print_usage(sys.stderr)
        return EXIT_USAGE
    except StrongexError as e:
        if debug:
            raise
        print(f"[strongex] {e}", file=sys.stderr)
        return int(getattr(e, "exit_code", 10) or 10)
    except Exception as e:
        if debug:
            raise
        print(f"[strongex] error: {e}", file=sys.stderr)
        return 10


if __name__ == "__main__":
    raise SystemExit(main())
