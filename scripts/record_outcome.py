#!/usr/bin/env python3
"""
Record Outcome Script

Links the real-world result of a tracked recommendation to it. Recording
again for the same recommendation replaces the stored outcome.
"""
import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from autopilot.config import config
from autopilot.errors import NotFound, PersistenceFailure
from autopilot.logging_config import setup_logging, get_logger
from autopilot.pipeline import build_services, record_outcome_entry

setup_logging()
logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Record the outcome of a recommendation")
    parser.add_argument("recommendation_id", help="Recommendation id (rec_...)")
    parser.add_argument("--actual", type=float, required=True, help="Points actually scored")
    parser.add_argument(
        "--projected",
        type=float,
        help="Projected points (default: projection stored with the recommendation)",
    )
    result = parser.add_mutually_exclusive_group()
    result.add_argument("--success", dest="success", action="store_true", default=None)
    result.add_argument("--failure", dest="success", action="store_false")
    parser.add_argument("--notes", default="", help="Free-form notes")
    return parser.parse_args()


def main():
    """Record one outcome."""
    args = parse_args()

    try:
        services = build_services(config)
        outcome = record_outcome_entry(
            services,
            args.recommendation_id,
            actual_value=args.actual,
            projected_value=args.projected,
            success=args.success,
            notes=args.notes,
        )
    except NotFound as e:
        logger.error(f"Unknown recommendation: {e}")
        sys.exit(1)
    except PersistenceFailure as e:
        logger.error(f"Failed to store outcome: {e}")
        sys.exit(1)

    accuracy = f"{outcome.accuracy:.1f}%" if outcome.accuracy is not None else "n/a"
    logger.info(f"Recorded outcome for {outcome.recommendation_id}: accuracy {accuracy}")
    print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
