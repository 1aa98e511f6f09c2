"""Run one GitHub <-> Jira sync batch from the command line.

Configuration comes from the environment / .env exactly as for the service.

Usage:
  python scripts/run_sync.py --since 2024-05-01 --direction both
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile GitHub issues with Jira once")
    parser.add_argument("--since", default=None, help="ISO date/datetime (default: lookback window)")
    parser.add_argument(
        "--direction",
        default="both",
        help="source-to-target, target-to-source or both (default)",
    )
    parser.add_argument("--json", action="store_true", help="print the run report as JSON")
    args = parser.parse_args(argv)

    from jirabridge.config import settings  # noqa: WPS433
    from jirabridge.services.sync_service import SyncService  # noqa: WPS433
    from jirabridge.trigger import parse_direction, parse_since  # noqa: WPS433

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("run_sync")

    since = parse_since(args.since, settings.default_lookback_days)
    direction = parse_direction(args.direction)
    try:
        report = SyncService(settings).run(since=since, direction=direction)
    except ValueError as e:
        # Bad configuration; no unit has started.
        logger.error(f"Configuration error: {e}")
        return 2

    if args.json:
        print(json.dumps(report, indent=2, default=str))
    else:
        for unit in report["units"]:
            print(f"{unit['unit']} <-> {unit['component']}: {unit['status']} {unit['stats']}")
        print(f"{len(report['errors'])} error(s), status={report['status']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
