"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the node monitor.

- Provides argparse-based CLI
- Loads settings from the environment, overridden by flags
- Runs the periodic jobs, a single pass, or maintenance commands

============================================================
USAGE
============================================================
python app.py                      # run forever, checks every minute
python app.py --once               # one pass over every node, then exit
python app.py --cleanup            # incident retention pass, then exit
python app.py --delete-all         # remove every heartbeat and incident

============================================================
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from chain_adapters.exceptions import ConfigurationError
from orchestrator.config import MonitorSettings
from orchestrator.monitor import NodeMonitor, create_monitor
from orchestrator.scheduler import PeriodicJob


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="node-monitor",
        description="Health monitor and alerting for a fleet of blockchain full nodes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run forever
  %(prog)s --once --log-level DEBUG     # Single verbose pass
  %(prog)s --nodes-file nodes.yaml      # Custom node catalog
        """
    )

    # --------------------------------------------------------
    # Run Options
    # --------------------------------------------------------
    run_group = parser.add_argument_group("Run Options")
    run_group.add_argument(
        "--once",
        action="store_true",
        help="Run every check once and exit",
    )
    run_group.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between health checks (default: CHECK_INTERVAL_SECONDS or 60)",
    )
    run_group.add_argument(
        "--nodes-file",
        type=Path,
        default=None,
        help="YAML node catalog (default: NODES_FILE or the built-in catalog)",
    )

    # --------------------------------------------------------
    # Maintenance
    # --------------------------------------------------------
    maintenance_group = parser.add_argument_group("Maintenance")
    maintenance_group.add_argument(
        "--cleanup",
        action="store_true",
        help="Run incident retention cleanup and exit",
    )
    maintenance_group.add_argument(
        "--delete-all",
        action="store_true",
        help="Delete every heartbeat, heartbeat group and incident, then exit",
    )

    # --------------------------------------------------------
    # Logging
    # --------------------------------------------------------
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate argument combinations. Returns error messages."""
    errors = []
    if args.interval is not None and args.interval <= 0:
        errors.append("--interval must be positive")
    if args.cleanup and args.delete_all:
        errors.append("--cleanup and --delete-all are mutually exclusive")
    if args.nodes_file is not None and not args.nodes_file.exists():
        errors.append(f"nodes file not found: {args.nodes_file}")
    return errors


def build_settings(args: argparse.Namespace) -> MonitorSettings:
    """Environment settings with command line overrides applied."""
    settings = MonitorSettings.from_env()
    if args.interval is not None:
        settings.check_interval_seconds = args.interval
    if args.nodes_file is not None:
        settings.nodes_file = args.nodes_file
    if args.log_level is not None:
        settings.log_level = args.log_level
    return settings


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


# ============================================================
# RUN MODES
# ============================================================

async def run_once(monitor: NodeMonitor) -> int:
    outcomes, _ = await asyncio.gather(
        monitor.run_all_checks(),
        monitor.run_thornode_checks(),
    )
    failed = [
        f"{subject} {metric.value}"
        for subject, results in outcomes.items()
        for metric, outcome in results.items()
        if not outcome.passed
    ]
    for name in failed:
        logger.warning(f"Not passing: {name}")
    return 0 if not failed else 1


async def delete_all(monitor: NodeMonitor) -> int:
    deleted = await monitor.heartbeats.delete_all()
    if monitor.incidents is not None:
        deleted += await monitor.incidents.delete_all()
    logger.info(f"Deleted {deleted} resources")
    return 0


async def run_forever(monitor: NodeMonitor, settings: MonitorSettings) -> int:
    jobs = [
        PeriodicJob("health", settings.check_interval_seconds, monitor.run_all_checks),
        PeriodicJob("thornode", settings.check_interval_seconds, monitor.run_thornode_checks),
    ]
    if settings.alerting_live:
        jobs.append(PeriodicJob("cleanup", settings.cleanup_interval_seconds, monitor.run_cleanup))

    await monitor.initialize()

    for job in jobs:
        await job.start()
    try:
        await asyncio.gather(*(job.wait() for job in jobs))
    finally:
        for job in jobs:
            await job.stop()
    return 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, settings: MonitorSettings) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments
        settings: Effective settings

    Returns:
        Exit code
    """
    monitor = await create_monitor(settings)

    try:
        if args.delete_all:
            return await delete_all(monitor)
        if args.cleanup:
            await monitor.run_cleanup()
            return 0
        if args.once:
            await monitor.initialize()
            return await run_once(monitor)

        logger.info("Starting monitor (press Ctrl+C to stop)...")
        return await run_forever(monitor, settings)

    except asyncio.CancelledError:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await monitor.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level)
    logger.info(f"Settings: {settings.to_dict()}")

    try:
        return asyncio.run(async_main(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
