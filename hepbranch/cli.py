"""
Command-line interface for hepbranch.

Usage:
    hepbranch write events.jsonl tree.parquet --card delphes_card.tcl
    hepbranch write events.jsonl tree.jsonl --branch Delphes/allParticles:Particle:GenParticle
    hepbranch info tree.parquet
    hepbranch check tree.parquet
"""

from __future__ import annotations

import argparse
import json
import sys

import hepbranch
from .errors import HepBranchError

_ERRORS = (HepBranchError, ValueError, FileNotFoundError, ImportError)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hepbranch",
        description="Flatten simulation candidate graphs into analysis-tree records.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {hepbranch.__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- write ---
    write_parser = subparsers.add_parser(
        "write",
        help="Project an event-graph file into branch records",
        description="Read event graphs (JSON lines) and write one record list per configured branch.",
    )
    write_parser.add_argument("input", help="Event-graph JSON lines file (.jsonl, .jsonl.gz)")
    write_parser.add_argument("output", help="Output record file (.parquet or .jsonl)")
    write_parser.add_argument(
        "--card", default=None,
        help="Branch configuration: Delphes card with 'add Branch' lines, or a .json file",
    )
    write_parser.add_argument(
        "--branch", dest="branches", action="append", default=[],
        help="Branch as input:name:class (repeatable)",
    )
    write_parser.add_argument(
        "--to", dest="output_format", default=None,
        help="Output format (auto-detected from extension if omitted)",
    )
    write_parser.add_argument(
        "--max-events", type=int, default=-1,
        help="Maximum number of events to process (-1 for all)",
    )
    write_parser.add_argument(
        "--workers", type=int, default=None,
        help="Project the branches of an event on this many threads",
    )
    write_parser.add_argument(
        "--check", action="store_true",
        help="Check reference integrity of the written records",
    )
    write_parser.add_argument(
        "--check-track-parameters", action="store_true",
        help="Fail if a track's impact parameters disagree with its d0/z0 track parameters",
    )
    write_parser.add_argument(
        "--no-provenance", dest="provenance", action="store_false",
        help="Do not embed provenance metadata",
    )
    write_parser.add_argument(
        "--quiet", "-q", action="store_true",
        help="Suppress progress output",
    )

    # --- info ---
    info_parser = subparsers.add_parser("info", help="Show information about a record file")
    info_parser.add_argument("input", help="Record file path")
    info_parser.add_argument(
        "--format", dest="input_format", default=None,
        help="Input format (auto-detected if omitted)",
    )
    info_parser.add_argument("--json", dest="as_json", action="store_true", help="Output as JSON")

    # --- check ---
    check_parser = subparsers.add_parser("check", help="Check reference integrity of a record file")
    check_parser.add_argument("input", help="Record file path")
    check_parser.add_argument(
        "--format", dest="input_format", default=None,
        help="Input format (auto-detected if omitted)",
    )
    check_parser.add_argument(
        "--max-events", type=int, default=-1,
        help="Maximum number of events to check (-1 for all)",
    )
    check_parser.add_argument("--json", dest="as_json", action="store_true", help="Output as JSON")

    # --- classes ---
    subparsers.add_parser("classes", help="List the known output record classes")

    # --- doctor ---
    doctor_parser = subparsers.add_parser("doctor", help="Environment & capability check")
    doctor_parser.add_argument("--json", dest="as_json", action="store_true")

    return parser


def _cmd_write(args: argparse.Namespace) -> int:
    from .config import DEFAULT_BRANCHES, load_branches, parse_branch_args
    from .convert import write_tree
    from .projectors import ProjectionOptions

    try:
        branches = []
        if args.card:
            branches.extend(load_branches(args.card))
        branches.extend(parse_branch_args(args.branches))
        if not branches:
            branches = list(DEFAULT_BRANCHES)

        result = write_tree(
            args.input,
            args.output,
            branches,
            output_format=args.output_format,
            max_events=args.max_events,
            max_workers=args.workers,
            options=ProjectionOptions(check_track_parameters=args.check_track_parameters),
            check=args.check,
            quiet=args.quiet,
            provenance=args.provenance,
            argv=args.argv,
        )
    except _ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = result.get("validation")
    if report is not None and not report.is_valid:
        print(str(report), file=sys.stderr)
        return 2  # Validation errors (but records were written)

    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    from .convert import info

    try:
        result = info(args.input, format=args.input_format)
    except _ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.as_json:
        print(json.dumps(result, indent=2))
        return 0

    print(f"Format:   {result['format']}")
    print(f"Events:   {result['n_events']}")
    print("Branches:")
    for b in result["branches"]:
        print(f"  {b['name']:>20s} ({b['class']}): {b['n_records']} records, {b['avg_per_event']:.1f}/event")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    from .convert import check

    try:
        report = check(args.input, format=args.input_format, max_events=args.max_events)
    except _ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.as_json:
        print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        print(str(report))
    return 0 if report.is_valid else 2


def _cmd_classes(args: argparse.Namespace) -> int:
    from .projectors import SORTED_CLASSES, BranchClass

    for bc in BranchClass:
        note = " (sorted)" if bc in SORTED_CLASSES else ""
        print(f"{bc.value}{note}")
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    from .doctor import doctor_report

    rep = doctor_report()
    if args.as_json:
        print(json.dumps(rep, indent=2, sort_keys=True))
    else:
        print(rep["summary"])
        for item in rep["checks"]:
            status = "OK" if item["ok"] else "FAIL"
            print(f"- {status}: {item['name']}: {item['detail']}")
    return 0 if all(c["ok"] for c in rep["checks"]) else 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    args.argv = ["hepbranch", *(sys.argv[1:] if argv is None else argv)]

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "write": _cmd_write,
        "info": _cmd_info,
        "check": _cmd_check,
        "classes": _cmd_classes,
        "doctor": _cmd_doctor,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
