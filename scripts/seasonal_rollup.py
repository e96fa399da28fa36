#!/usr/bin/env python3
"""
Seasonal Rollup Script

Folds a completed season into the long-horizon record, re-derives
cross-season patterns and refreshes the phase presets. Safe to re-run:
the season's record is replaced, not duplicated.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from autopilot.config import config
from autopilot.errors import AutopilotError
from autopilot.logging_config import setup_logging, get_logger
from autopilot.pipeline import build_services, run_seasonal_rollup

setup_logging()
logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Roll up a completed season")
    parser.add_argument("--season", type=int, default=config.data.season, help="Season year (YYYY)")
    return parser.parse_args()


async def run(season: int):
    services = build_services(config)
    try:
        return await run_seasonal_rollup(services, season)
    finally:
        await services.close()


def main():
    """Run the rollup for one season."""
    args = parse_args()

    logger.info("=" * 50)
    logger.info(f"Starting seasonal rollup for {args.season}")
    logger.info("=" * 50)

    try:
        ctx = asyncio.run(run(args.season))
    except AutopilotError as e:
        logger.error(f"Seasonal rollup failed: {type(e).__name__}: {e}")
        sys.exit(1)

    rollup = ctx.metadata.get("rollup", {})
    period = rollup.get("period", {})
    logger.info("=" * 50)
    logger.info(
        f"Season {args.season}: {period.get('total_decisions', 0)} decisions, "
        f"{period.get('success_rate', 0.0):.1f}% success"
    )
    logger.info(f"Cross-season patterns: {rollup.get('patterns', [])}")
    logger.info(f"Presets refreshed: {rollup.get('presets_refreshed', False)}")
    for warning in ctx.warnings:
        logger.warning(f"  {warning}")
    logger.info("=" * 50)

    print(json.dumps(ctx.to_dict(), ensure_ascii=False, indent=2, default=str))


if __name__ == "__main__":
    main()
