#!/usr/bin/env python3
"""Seed the database with a synthetic cost scenario for development/testing."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from costpilot.api.services.scenario_seeder import seed_scenario
from costpilot.core.database import init_db
from costpilot.core.exceptions import ScenarioValidationError
from costpilot.engine.scenarios import SCENARIOS
from costpilot.schemas.cost import ScenarioSeedRequest


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Seed a synthetic cost scenario")
    parser.add_argument("scenario", nargs="?", default="normal",
                        help=f"One of: {', '.join(SCENARIOS)}")
    parser.add_argument("--days", type=int, default=30, help="Window length (7-60)")
    parser.add_argument("--keep-existing", action="store_true",
                        help="Only replace data inside the generated window")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--user-id", default="demo-user", help="Owner of the seeded data")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    print("Initializing database...")
    init_db()

    request = ScenarioSeedRequest(
        scenario=args.scenario,
        days=args.days,
        clear_existing_data=not args.keep_existing,
        seed=args.seed,
    )

    try:
        result = asyncio.run(seed_scenario(args.user_id, request))
    except ScenarioValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Seeded scenario '{result.scenario}' for {args.user_id}")
    print(f"  Window:        {result.from_date} .. {result.to_date} ({result.days} days)")
    print(f"  Cost rows:     {result.daily_cost_rows_inserted}")
    print(f"  Findings:      {result.waste_findings_inserted}")
    print(f"  Cost events:   {result.events_generated}")
    print(f"  Note:          {result.note}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
