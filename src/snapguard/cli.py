"""
Command-line interface for snapguard.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from snapguard import __version__
from snapguard.core.config_loader import load_config
from snapguard.core.derivation import derive
from snapguard.core.errors import ConfigError
from snapguard.core.exceptions import DerivationError
from snapguard.reporting import entries_frame, monthly_operating_result, replay

EXAMPLE_OLD = {
    "world": {"date": "2002-07-15 周一 08:00", "location": "Seoul"},
    "profile": {"name": "Min", "birthday": "1980-09-01", "age": 0},
    "company": {
        "entries": {
            "Label": {
                "monthlySales": 2000,
                "unitPrice": 15,
                "costRatio": 0.4,
                "monthlyMargin": 18000,
            }
        },
        "fixedCosts": {"labor": 9000, "rent": 3000},
        "oneTimeLedgerChange": 0,
        "cash": 50000,
    },
}

EXAMPLE_NEW = {
    "world": {"date": "2002-09-03 周二 10:30", "location": "Seoul"},
    "profile": {"name": "Min", "birthday": "1980-09-01", "age": 99},
    "company": {
        "entries": {
            "Label": {
                "monthlySales": 2500,
                "unitPrice": 15,
                "costRatio": 1.4,
                "monthlyMargin": 123456,
            },
            "Fan meeting": {"monthlySales": 300, "unitPrice": "40", "costRatio": 0.25},
        },
        "fixedCosts": {"labor": 9500, "rent": 3000},
        "oneTimeLedgerChange": -2000,
        "cash": 999999,
    },
}


def _load_json(path: str):
    """Load JSON from file path."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _save_json(path: str, data) -> None:
    """Save data as JSON to file path."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _print_patch_summary(result) -> None:
    """Print the fields a derivation pass changed."""
    changed = [patch for patch in result.patches if patch.changed]
    print(f"Derived {len(result.patches)} field(s), {len(changed)} changed")
    for patch in changed:
        info = patch.to_dict()
        print(f"  {info['path']}: {info['before']!r} -> {info['after']!r}")


def cmd_derive(args) -> int:
    """Derive the read-only fields of NEW against OLD."""
    try:
        config = load_config(args.config)
        old = _load_json(args.old)
        new = _load_json(args.new)
        result = derive(old, new, config)
    except (OSError, ValueError, ConfigError, DerivationError) as e:
        print(f"Error deriving snapshot: {e}", file=sys.stderr)
        return 1

    if args.json:
        payload = {
            "snapshot": result.snapshot,
            "patches": [patch.to_dict() for patch in result.patches],
            "months_crossed": result.months_crossed,
            "cash_outcome": result.cash_outcome.value,
        }
        json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
    else:
        _print_patch_summary(result)

    if args.output:
        _save_json(args.output, result.snapshot)
        if not args.json:
            print(f"Corrected snapshot saved to {args.output}")
    return 0


def cmd_replay(args) -> int:
    """Replay the derivation pass over a JSON list of snapshots."""
    try:
        config = load_config(args.config)
        history = _load_json(args.input)
        if not isinstance(history, list):
            raise ValueError("history file must contain a JSON list of snapshots")
        table = replay(history, config)
    except (OSError, ValueError, ConfigError, DerivationError) as e:
        print(f"Error replaying history: {e}", file=sys.stderr)
        return 1

    if args.csv:
        table.to_csv(args.csv, index=False)
        print(f"Replay table saved to {args.csv}")
    else:
        print(table.to_string(index=False))
    return 0


def cmd_entries(args) -> int:
    """Show the per-entry margin table of one snapshot."""
    try:
        config = load_config(args.config)
        snapshot = _load_json(args.input)
        table = entries_frame(snapshot, config)
        result = monthly_operating_result(snapshot, config)
    except (OSError, ValueError, ConfigError) as e:
        print(f"Error reading entries: {e}", file=sys.stderr)
        return 1

    if table.empty:
        print("No entries")
    else:
        print(table.to_string())
    print(f"Monthly operating result: {result:,.2f}")
    return 0


def cmd_example(_) -> int:
    """Derive a built-in pair of snapshots and print the result."""
    result = derive(EXAMPLE_OLD, EXAMPLE_NEW)
    _print_patch_summary(result)
    json.dump(result.snapshot, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="snapguard",
        description="snapguard - derived field engine for snapshot state trees",
    )

    # Version argument
    parser.add_argument(
        "--version", action="version", version=f"snapguard {__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )

    subparsers = parser.add_subparsers(
        dest="cmd", required=True, help="Available commands"
    )

    # Example command
    example_parser = subparsers.add_parser(
        "example", help="Derive a built-in pair of snapshots"
    )
    example_parser.set_defaults(func=cmd_example)

    # Derive command
    derive_parser = subparsers.add_parser(
        "derive", help="Recompute derived fields of NEW against OLD"
    )
    derive_parser.add_argument("old", help="Previous accepted snapshot JSON")
    derive_parser.add_argument("new", help="Candidate snapshot JSON")
    derive_parser.add_argument(
        "-o", "--output", help="Write the corrected snapshot to this JSON file"
    )
    derive_parser.add_argument("--config", help="Engine config (YAML or JSON)")
    derive_parser.add_argument(
        "--json", action="store_true", help="Output in JSON format"
    )
    derive_parser.set_defaults(func=cmd_derive)

    # Replay command
    replay_parser = subparsers.add_parser(
        "replay", help="Replay derivation over a JSON list of snapshots"
    )
    replay_parser.add_argument("input", help="JSON file holding a list of snapshots")
    replay_parser.add_argument("--config", help="Engine config (YAML or JSON)")
    replay_parser.add_argument("--csv", help="Write the replay table to CSV")
    replay_parser.set_defaults(func=cmd_replay)

    # Entries command
    entries_parser = subparsers.add_parser(
        "entries", help="Show per-entry margins of a snapshot"
    )
    entries_parser.add_argument("input", help="Snapshot JSON file")
    entries_parser.add_argument("--config", help="Engine config (YAML or JSON)")
    entries_parser.set_defaults(func=cmd_entries)

    # Parse arguments and execute
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
