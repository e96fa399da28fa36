#!/usr/bin/env python3
"""
Learning Cycle Script

Runs the learning loop over recent resolved recommendations:
1. Re-corroborates known patterns and retires weak ones
2. Mines new patterns and anti-patterns
3. Evolves the strategy profile when performance calls for it
4. Analyzes every active experiment

Recommended to run after outcomes for a week have been recorded.
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from autopilot.config import config
from autopilot.errors import AutopilotError
from autopilot.logging_config import setup_logging, get_logger
from autopilot.pipeline import build_services, run_learning_cycle

setup_logging()
logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Run the pattern learning cycle")
    parser.add_argument(
        "--week",
        type=int,
        help="Current week; selects the phase preset's risk tolerance for strategy evolution",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace):
    services = build_services(config)
    try:
        return await run_learning_cycle(services, week=args.week)
    finally:
        await services.close()


def main():
    """Run one learning cycle."""
    args = parse_args()

    logger.info("=" * 50)
    logger.info("Starting learning cycle")
    logger.info(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 50)

    try:
        ctx = asyncio.run(run(args))
    except AutopilotError as e:
        logger.error(f"Learning cycle failed: {type(e).__name__}: {e}")
        sys.exit(1)

    learning = ctx.metadata.get("learning", {})
    logger.info("=" * 50)
    logger.info(f"Learning cycle {ctx.id}: {ctx.status.value}")
    logger.info(f"New patterns: {learning.get('patterns_found', [])}")
    logger.info(f"New anti-patterns: {learning.get('anti_patterns_found', [])}")
    logger.info(f"Retired: {learning.get('patterns_retired', [])}")
    if learning.get("strategy_version") is not None:
        logger.info(f"Strategy evolved to v{learning['strategy_version']}")
    for warning in ctx.warnings:
        logger.warning(f"  {warning}")
    logger.info("=" * 50)

    print(json.dumps(ctx.to_dict(), ensure_ascii=False, indent=2, default=str))


if __name__ == "__main__":
    main()
