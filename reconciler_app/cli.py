"""
Command line entry point.

Usage:
    fixr -t fixResources            # records updated in the last day
    fixr -b 7 -t fixResources       # last 7 days

Exit codes: 0 on success or when no tasks are given, 1 on invalid
flags/configuration or any error during a task.
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import Callable, List, Optional

from reconciler_app.clock import utcnow
from reconciler_app.config import ReconcilerConfig, Settings, load_settings
from reconciler_app.errors import ConfigurationError, ReconcilerError
from reconciler_app.services.runner import VALID_TASKS, ReconciliationRunner, parse_tasks
from reconciler_app.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


class _ArgumentParser(argparse.ArgumentParser):
    """Reports bad flags as ConfigurationError instead of exiting with 2"""

    def error(self, message):
        raise ConfigurationError(message)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = _ArgumentParser(prog="fixr", description="Reconcile short links and active flags")
    parser.add_argument(
        "-b",
        dest="backdays",
        type=int,
        default=None,
        help="Specify backdays as an integer > 0 (default: 1)",
    )
    parser.add_argument(
        "-t",
        dest="tasks",
        default="",
        help=f"Comma-separated list of tasks to run, one of: {', '.join(VALID_TASKS)}",
    )
    return parser.parse_args(argv)


_console: Optional[logging.Handler] = None


def setup_logging(level: str = "INFO") -> None:
    """Configure logging: one stdout StreamHandler on the root logger"""
    global _console
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _console is not None:
        return

    _console = logging.StreamHandler(sys.stdout)
    _console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_console)


def main(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    gateway: Optional[StorageGateway] = None,
    clock: Callable[[], datetime] = utcnow
) -> int:
    setup_logging()
    try:
        args = parse_args(argv)
        settings = settings or load_settings()
        setup_logging(settings.log_level)

        if args.backdays is None:
            logger.warning("Backdays not specified with -b flag, defaulting to 1")
            backdays = 1
        else:
            backdays = args.backdays
            logger.info("Checking records updated within the last %d days", backdays)
        if backdays <= 0:
            raise ConfigurationError(f"Backdays must be an integer > 0, got {backdays}")

        tasks = parse_tasks(args.tasks)
        if not tasks:
            logger.info("No tasks specified")
            return 0

        config = ReconcilerConfig.build(settings, lookback_days=backdays, tasks=tasks)

        if gateway is None:
            from reconciler_app.dependencies import build_gateway
            gateway = build_gateway(settings)

        report = ReconciliationRunner(gateway, config, clock=clock).run()
    except ReconcilerError as exc:
        logger.error("%s", exc)
        return 1

    logger.info("Run complete: %s", report.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
