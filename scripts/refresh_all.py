#!/usr/bin/env python3
"""Full data refresh for the Plan for Change tracker.

Runs every KPI connector, then the entity connectors for each milestone,
then Guardian coverage of key outputs, against one database. Steps are
isolated: a failing or unconfigured source is reported and the run
continues.

Features:
- Idempotent: KPI snapshots replace on (milestone, date), outputs and
  parliamentary rows on id, media articles are insert-or-ignore.
- CLI via argparse with ``--only``, ``--skip-kpis``, ``--skip-entities``,
  ``--dry-run`` and ``--database-url``; no flag is required.
- Formatted summary table printed at the end.
- Exit code 1 only when every executed step failed.

Usage::

    python scripts/refresh_all.py
    python scripts/refresh_all.py --only ons,housing
    python scripts/refresh_all.py --skip-entities --database-url sqlite+aiosqlite:///tmp/t.db
    python scripts/refresh_all.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path so ``pfc_ingest.*`` imports work when
# this script is executed directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pfc_ingest.core.config import Settings
from pfc_ingest.core.utils.logging_config import configure_logging
from pfc_ingest.pipeline import STEP_KEYS, RefreshPipeline, RefreshResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _format_number(n: int) -> str:
    """Return an integer formatted with comma thousands separator."""
    return f"{n:,}"


def _format_seconds(s: float) -> str:
    """Return seconds as a human-friendly string."""
    if s < 60:
        return f"{s:.1f}s"
    minutes = int(s // 60)
    secs = s % 60
    return f"{minutes}m{secs:.0f}s"


def format_summary(result: RefreshResult) -> str:
    """Render the per-step summary table."""
    names = list(result.step_timings) or ["-"]
    name_width = max(len(name) for name in names) + 2
    rec_width = max([len(_format_number(n)) for n in result.record_counts.values()] + [7])

    lines = ["", "=" * 64, " SUMMARY", "=" * 64]
    header = f" {'Step':<{name_width}} | {'Records':>{rec_width}} | {'Time':>7} | Status"
    lines.append(header)
    lines.append(" " + "-" * (len(header) - 1))
    for name, elapsed in result.step_timings.items():
        records = result.record_counts.get(name, 0)
        lines.append(
            f" {name:<{name_width}} | "
            f"{_format_number(records):>{rec_width}} | "
            f"{_format_seconds(elapsed):>7} | "
            f"{result.step_status(name)}"
        )
    lines.append(" " + "-" * (len(header) - 1))
    lines.append(
        f" {'TOTAL':<{name_width}} | "
        f"{_format_number(result.total_records):>{rec_width}} | "
        f"{_format_seconds(result.duration_seconds):>7} | "
        f"{result.status}"
    )
    lines.append("=" * 64)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Plan for Change tracker -- full data refresh",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python scripts/refresh_all.py\n"
            "  python scripts/refresh_all.py --only ons,housing\n"
            "  python scripts/refresh_all.py --skip-entities\n"
            "  python scripts/refresh_all.py --dry-run\n"
        ),
    )
    parser.add_argument(
        "--only",
        type=str,
        default=None,
        help=f"Comma-separated step keys to run. Available: {', '.join(STEP_KEYS)}",
    )
    parser.add_argument(
        "--skip-kpis",
        action="store_true",
        default=False,
        help="Do not run the KPI connectors",
    )
    parser.add_argument(
        "--skip-entities",
        action="store_true",
        default=False,
        help="Do not run the entity connectors or Guardian output coverage",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="List the steps that would run without fetching anything",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy async URL (default: DATABASE_URL or data/tracker.db)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Emit debug-level log events",
    )
    return parser.parse_args(argv)


def _resolve_only(raw: str | None) -> set[str] | None:
    """Resolve ``--only`` into a validated set of step keys.

    Raises:
        SystemExit: If any key is unrecognised.
    """
    if raw is None:
        return None
    keys = {k.strip().lower() for k in raw.split(",") if k.strip()}
    invalid = sorted(keys - set(STEP_KEYS))
    if invalid:
        print(f"Error: unknown step(s): {', '.join(invalid)}")
        print(f"Available steps: {', '.join(STEP_KEYS)}")
        sys.exit(2)
    return keys


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse arguments and execute the async refresh.

    Returns:
        Exit code: 1 if every executed step failed or the database could
        not be prepared, otherwise 0.
    """
    args = parse_args(argv)
    configure_logging(verbose=args.verbose)

    overrides = {"database_url": args.database_url} if args.database_url else {}
    config = Settings(**overrides)
    pipeline = RefreshPipeline.from_settings(
        config,
        only=_resolve_only(args.only),
        include_kpis=not args.skip_kpis,
        include_entities=not args.skip_entities,
    )

    print()
    print("=" * 64)
    print(" PLAN FOR CHANGE -- DATA REFRESH")
    print(f" Database: {config.database_url}")
    print("=" * 64)

    steps = pipeline.steps()
    if args.dry_run:
        print("\n  *** DRY RUN -- no data will be fetched or stored ***\n")
        for i, step in enumerate(steps, 1):
            print(f"  [{i}/{len(steps)}] {step.name}")
        print(f"\n  Would execute {len(steps)} step(s).")
        print("=" * 64)
        asyncio.run(pipeline.storage.close())
        return 0

    try:
        result = asyncio.run(pipeline.run())
    except Exception as exc:
        print(f"\nRefresh aborted: {exc}", file=sys.stderr)
        return 1
    print(format_summary(result))
    return 1 if result.status == "FAILED" else 0


if __name__ == "__main__":
    sys.exit(main())
