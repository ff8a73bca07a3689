#!/usr/bin/env python3
"""LeaveDesk operator CLI: annual balance reset and entitlement rebalance.

Commands:
  reset-year   Create missing balance rows for every active employee and
               active leave type, seeded from the type's default days.
  rebalance    Recompute tenure (vacation) and flat (flex) entitlements for
               every active employee and log each delta.

Usage:
    python scripts/leave_admin.py reset-year --year 2027
    python scripts/leave_admin.py rebalance --year 2026
    python scripts/leave_admin.py rebalance --year 2026 --admin-id <uuid> --json

Requires DATABASE_URL and JWT_SECRET in the environment or .env.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from datetime import date
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

from leavedesk.database import async_session_factory, engine
from leavedesk.leave.policy import EntitlementService

# Register mapped classes
import leavedesk.employees.models  # noqa: F401
import leavedesk.leave.models  # noqa: F401

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("leave_admin")


# ═════════════════════════════════════════════════════════════════════
# Commands
# ═════════════════════════════════════════════════════════════════════

async def reset_year(year: int) -> dict:
    async with async_session_factory() as db:
        result = await EntitlementService.reset_year_balances(db, year)
    return result.model_dump(mode="json")


async def rebalance(year: int, admin_id: uuid.UUID | None) -> dict:
    async with async_session_factory() as db:
        result = await EntitlementService.rebalance_all(db, admin_id, year)
    return result.model_dump(mode="json")


async def _run(args: argparse.Namespace) -> dict:
    try:
        if args.command == "reset-year":
            return await reset_year(args.year)
        return await rebalance(args.year, args.admin_id)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="LeaveDesk balance maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", dest="output_json", action="store_true",
                        help="Print the result as JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    reset = sub.add_parser("reset-year", parents=[common],
                           help="Seed balances for a new year")
    reset.add_argument("--year", type=int, default=date.today().year,
                       help="Target year (default: current year)")

    rebal = sub.add_parser("rebalance", parents=[common],
                           help="Recompute policy entitlements")
    rebal.add_argument("--year", type=int, default=date.today().year,
                       help="Target year (default: current year)")
    rebal.add_argument("--admin-id", type=uuid.UUID, default=None,
                       help="Employee id recorded as creator of log rows")

    args = parser.parse_args()

    try:
        result = asyncio.run(_run(args))
    except Exception:
        logger.exception("%s failed", args.command)
        sys.exit(1)

    if args.output_json:
        print(json.dumps(result, indent=2))
        return

    if args.command == "reset-year":
        print(f"\n  Year {result['year']}: {result['employees_processed']} employee(s), "
              f"{result['created']} balance(s) created, {result['skipped']} skipped\n")
    else:
        print(f"\n  Rebalance {result['year']}: {result['processed']} employee(s) processed, "
              f"{len(result['changes'])} change(s)")
        for change in result["changes"]:
            print(f"    {change['employee_name']:<30} {change['leave_type_name']:<15} "
                  f"{change['from_days']} -> {change['to_days']} ({change['diff']})")
        print()


if __name__ == "__main__":
    main()
