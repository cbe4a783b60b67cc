"""Maintenance CLI for the failed-tests baseline.

Provides show, check, normalize, diff and prune-ignored subcommands for
inspecting and maintaining the baseline outside of a test run.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from compat_harness.baseline.failure_set import (
    DEFAULT_BASELINE_PATH,
    PersistedFailureSet,
    diff_baselines,
)
from compat_harness.baseline.identity import ID_SEPARATOR
from compat_harness.baseline.ignore_list import IgnoreList
from compat_harness.errors import HarnessError


def _add_baseline_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--baseline",
        type=Path,
        default=DEFAULT_BASELINE_PATH,
        help=f"Path to the baseline file (default: {DEFAULT_BASELINE_PATH})",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Inspect and maintain the known-failing tests baseline"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    show_parser = subparsers.add_parser(
        "show",
        help="List baseline entries with per-suite counts",
    )
    _add_baseline_option(show_parser)
    show_parser.add_argument(
        "--filter",
        type=str,
        default=None,
        help="Only show ids containing this substring",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Fail if the baseline is corrupt or not in canonical form",
    )
    _add_baseline_option(check_parser)

    normalize_parser = subparsers.add_parser(
        "normalize",
        help="Rewrite the baseline sorted, deduplicated and pretty-printed",
    )
    _add_baseline_option(normalize_parser)

    diff_parser = subparsers.add_parser(
        "diff",
        help="Show ids added and removed between two baselines",
    )
    diff_parser.add_argument("old", type=Path, help="Previous baseline file")
    diff_parser.add_argument("new", type=Path, help="New baseline file")

    prune_parser = subparsers.add_parser(
        "prune-ignored",
        help="Remove ignored test ids from the baseline",
    )
    _add_baseline_option(prune_parser)

    return parser.parse_args(argv)


def cmd_show(args: argparse.Namespace) -> int:
    """Handle show subcommand.

    Returns:
        Exit code (0 for success).
    """
    ids = sorted(PersistedFailureSet(args.baseline).load())
    if args.filter:
        ids = [test_id for test_id in ids if args.filter in test_id]

    if not ids:
        print("No known failures")
        return 0

    for test_id in ids:
        print(test_id)

    suite_counts: dict[str, int] = {}
    for test_id in ids:
        suite = ID_SEPARATOR.join(test_id.split(ID_SEPARATOR)[:2])
        suite_counts[suite] = suite_counts.get(suite, 0) + 1

    print()
    width = max(len(suite) for suite in suite_counts)
    for suite, count in sorted(suite_counts.items()):
        print(f"{suite:<{width}}  {count:>6}")
    print(f"Total: {len(ids)} known failures")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Handle check subcommand.

    Returns:
        0 if the baseline is canonical, 1 otherwise.
    """
    store = PersistedFailureSet(args.baseline)
    if not store.exists():
        print(f"No baseline at {args.baseline} (treated as empty)")
        return 0

    ids = store.load()
    ignore_list = IgnoreList()
    ignored = sorted(test_id for test_id in ids if test_id in ignore_list)
    if ignored:
        print(
            f"Warning: {len(ignored)} ignored test(s) listed in the baseline:",
            file=sys.stderr,
        )
        for test_id in ignored:
            print(f"  {test_id}", file=sys.stderr)

    if not store.is_canonical():
        print(
            f"Error: {args.baseline} is not in canonical form. "
            "Run 'compat-harness normalize' to fix it.",
            file=sys.stderr,
        )
        return 1

    print(f"{args.baseline}: {len(ids)} known failures, canonical")
    return 0


def cmd_normalize(args: argparse.Namespace) -> int:
    """Handle normalize subcommand."""
    store = PersistedFailureSet(args.baseline)
    if not store.exists():
        print(f"No baseline at {args.baseline}")
        return 0
    was_canonical = store.is_canonical()
    ids = store.load()
    store.save(ids)
    if was_canonical:
        print(f"{args.baseline} already canonical ({len(ids)} entries)")
    else:
        print(f"Normalized {args.baseline} ({len(ids)} entries)")
    return 0


def cmd_diff(args: argparse.Namespace) -> int:
    """Handle diff subcommand."""
    old_ids = PersistedFailureSet(args.old).load()
    new_ids = PersistedFailureSet(args.new).load()
    added, removed = diff_baselines(old_ids, new_ids)

    for test_id in removed:
        print(f"- {test_id}")
    for test_id in added:
        print(f"+ {test_id}")
    print(f"{len(added)} added, {len(removed)} removed")
    return 0


def cmd_prune_ignored(args: argparse.Namespace) -> int:
    """Handle prune-ignored subcommand."""
    store = PersistedFailureSet(args.baseline)
    ids = store.load()
    ignore_list = IgnoreList()
    pruned = sorted(test_id for test_id in ids if test_id in ignore_list)
    if not pruned:
        print("No ignored tests in the baseline")
        return 0

    store.save(ids - set(pruned))
    print(f"Removed {len(pruned)} ignored test(s):")
    for test_id in pruned:
        print(f"  {test_id}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return 1

    commands = {
        "show": cmd_show,
        "check": cmd_check,
        "normalize": cmd_normalize,
        "diff": cmd_diff,
        "prune-ignored": cmd_prune_ignored,
    }
    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except HarnessError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
