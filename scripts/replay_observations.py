#!/usr/bin/env python3
"""
Observation Replay Script
=========================

Standalone script to replay a face-count sequence through the pipeline
on a manual clock.

This script:
    1. Builds a MonitoringService on a ManualScheduler
    2. Feeds each count, advancing the clock by --interval between samples
    3. Logs the security state after every sample
    4. Reports transitions, notifications and final metrics

Usage:
    python scripts/replay_observations.py --counts 1,1,2,2,2,0,0,0
    python scripts/replay_observations.py --file samples.txt --interval 0.05 --throttle
"""

import argparse
import logging
import os
import sys
from typing import List

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from screenguard_agent.agent.scheduler import ManualScheduler
from screenguard_agent.config import load_config
from screenguard_agent.service import MonitoringService


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_counts(raw: str) -> List[str]:
    return [token.strip() for token in raw.replace("\n", ",").split(",") if token.strip()]


def run_replay(counts: List[str], interval: float, throttle: bool, tail: float) -> dict:
    """
    Replay the samples.

    Args:
        counts: Raw face counts (untrusted strings, invalid ones become 0)
        interval: Seconds between consecutive samples
        throttle: Route samples through the observation throttle
        tail: Extra seconds to run after the last sample

    Returns:
        Final metrics dict
    """
    settings = load_config()
    scheduler = ManualScheduler()
    service = MonitoringService(settings, scheduler=scheduler)
    service.start()

    logger.info("=" * 60)
    logger.info("Observation Replay")
    logger.info("=" * 60)
    logger.info(f"Samples: {len(counts)}")
    logger.info(f"Interval: {interval}s")
    logger.info(f"Throttle: {throttle}")
    logger.info("=" * 60)

    for index, raw in enumerate(counts):
        if index > 0:
            scheduler.advance(interval)
        if throttle:
            service.submit(raw)
        else:
            service.state_machine.update(raw)
        logger.info(
            f"t={scheduler.now():7.3f}s count={raw:>3} -> {service.current_state.value}"
        )

    if tail > 0:
        scheduler.advance(tail)
        logger.info(f"t={scheduler.now():7.3f}s (tail) -> {service.current_state.value}")

    service.flush_notifications()
    metrics = service.get_metrics()
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    for event in service.recent_events():
        logger.info(
            f"  {event['timestamp']:7.3f}s {event['previous_state']} -> "
            f"{event['new_state']} ({event['reason']})"
        )
    logger.info(f"Notifications sent: {metrics['notifications_sent']}")
    logger.info(f"Throttle: {metrics['throttle']}")
    logger.info("=" * 60)

    service.close()
    return metrics


def main():
    parser = argparse.ArgumentParser(
        description="Replay a face-count sequence through the screen guard pipeline"
    )
    parser.add_argument(
        "--counts",
        type=str,
        default="",
        help="Comma separated face counts, e.g. 1,1,2,2,0",
    )
    parser.add_argument(
        "--file",
        type=str,
        default=None,
        help="File with one face count per line (or comma separated)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0.1,
        help="Seconds between samples (default: 0.1)",
    )
    parser.add_argument(
        "--throttle",
        action="store_true",
        help="Send samples through the observation throttle",
    )
    parser.add_argument(
        "--tail",
        type=float,
        default=0.0,
        help="Seconds to keep the clock running after the last sample",
    )

    args = parser.parse_args()

    raw = args.counts
    if args.file:
        with open(args.file, "r") as f:
            raw = f.read()
    counts = parse_counts(raw)
    if not counts:
        parser.error("no samples given (use --counts or --file)")

    run_replay(counts, args.interval, args.throttle, args.tail)
    sys.exit(0)


if __name__ == "__main__":
    main()
