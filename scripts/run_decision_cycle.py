#!/usr/bin/env python3
"""
Decision Cycle Script

Runs the weekly decision cycle:
1. Fetches roster and expert rankings for every configured league
2. Produces a lineup recommendation per league (advisor or rule-based)
3. Routes optional live events through the real-time decision engine
4. Tracks everything in the recommendation ledger

Exit code 1 on configuration errors or when no league produced data.
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from autopilot.config import config, validate_config
from autopilot.errors import AutopilotError
from autopilot.logging_config import setup_logging, get_logger
from autopilot.pipeline import build_services, load_events, run_decision_cycle

setup_logging()
logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the fantasy decision cycle for the configured leagues"
    )
    parser.add_argument("--week", type=int, required=True, help="Scoring period (week) number")
    parser.add_argument(
        "--league",
        action="append",
        default=[],
        help="Only run these league ids (repeatable)",
    )
    parser.add_argument("--events", type=Path, help="YAML/JSON file of live events to process")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    services = build_services(config)
    try:
        leagues = config.leagues
        if args.league:
            leagues = [l for l in leagues if l.league_id in set(args.league)]
            if not leagues:
                logger.error(f"None of the requested leagues are configured: {args.league}")
                return 1

        events = load_events(args.events) if args.events else []
        ctx = await run_decision_cycle(services, leagues, week=args.week, events=events)
    finally:
        await services.close()

    logger.info("=" * 50)
    logger.info(f"Decision cycle {ctx.id}: {ctx.status.value}")
    logger.info(f"Leagues ok: {len(ctx.metadata.get('recommendations', {}))}/{len(leagues)}")
    for league_id, rec_id in ctx.metadata.get("recommendations", {}).items():
        logger.info(f"  {league_id}: {rec_id}")
    logger.info(f"Decisions: {len(ctx.metadata.get('decisions', []))}")
    for warning in ctx.warnings:
        logger.warning(f"  {warning}")
    logger.info("=" * 50)

    print(json.dumps(ctx.to_dict(), ensure_ascii=False, indent=2, default=str))

    if ctx.metadata.get("no_league_data"):
        logger.error("No league produced data - check data source credentials")
        return 1
    return 0


def main():
    """Run one decision cycle."""
    args = parse_args()

    logger.info("=" * 50)
    logger.info(f"Starting decision cycle for week {args.week}")
    logger.info(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 50)

    errors, warnings = validate_config(config)
    for warning in warnings:
        logger.warning(f"Config: {warning}")
    if errors:
        for error in errors:
            logger.error(f"Config: {error}")
        sys.exit(1)

    try:
        exit_code = asyncio.run(run(args))
    except AutopilotError as e:
        logger.error(f"Decision cycle failed: {type(e).__name__}: {e}")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
