"""
Reconciliation runner.

Runs the requested tasks one after the other. The only task today is
fixResources: the per-record short link pass over the lookback window,
then the active flag pass over every id.

There is no local recovery: the first error aborts the run and already
applied writes stay committed. Both passes are idempotent, so the next
scheduled run simply starts over.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from reconciler_app.clock import utcnow
from reconciler_app.config import ReconcilerConfig
from reconciler_app.errors import ConfigurationError
from reconciler_app.services.active_flag import ActiveFlagReconciler, ActiveFlagReport
from reconciler_app.services.change_scanner import ChangeScanner
from reconciler_app.services.diff_syncer import DiffSyncer
from reconciler_app.services.link_deriver import LinkDeriver
from reconciler_app.services.primary_corrector import PrimaryCorrector
from reconciler_app.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)

FIX_RESOURCES = "fixResources"
VALID_TASKS = (FIX_RESOURCES,)


def parse_tasks(raw: Optional[str]) -> Tuple[str, ...]:
    """
    Parse a comma-separated task list, eg "fixResources, fixResources".

    Spaces are removed. Only an empty or absent value means no tasks; an
    empty entry such as the one after a trailing comma is an invalid task.

    Raises:
        ConfigurationError: for a name outside VALID_TASKS
    """
    if not raw:
        return ()
    names = raw.replace(" ", "").split(",")
    for name in names:
        if name not in VALID_TASKS:
            raise ConfigurationError(f"Invalid task: '{name}'")
    return tuple(names)


@dataclass
class ShortLinkPassReport:
    scanned: int = 0
    corrected: int = 0
    synced: int = 0
    unchanged: int = 0


@dataclass
class RunReport:
    tasks: List[str] = field(default_factory=list)
    short_links: List[ShortLinkPassReport] = field(default_factory=list)
    active_flags: List[ActiveFlagReport] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "tasks": len(self.tasks),
            "scanned": sum(r.scanned for r in self.short_links),
            "corrected": sum(r.corrected for r in self.short_links),
            "synced": sum(r.synced for r in self.short_links),
            "flags_touched": sum(r.documents_touched for r in self.active_flags),
        }


class ReconciliationRunner:
    """
    Orchestrates the reconciliation passes for one run.

    Not safe to run concurrently against the same stores: run() holds the
    derived store's run lock for its whole duration.
    """

    def __init__(
        self,
        gateway: StorageGateway,
        config: ReconcilerConfig,
        clock: Callable[[], datetime] = utcnow
    ):
        self.gateway = gateway
        self.config = config
        self.deriver = LinkDeriver.from_config(config)
        self.scanner = ChangeScanner(gateway)
        self.corrector = PrimaryCorrector(gateway, self.deriver)
        self.syncer = DiffSyncer(gateway, self.deriver, clock=clock)
        self.active_flags = ActiveFlagReconciler(gateway, self.deriver)
        self._tasks: Dict[str, Callable[[RunReport], None]] = {
            FIX_RESOURCES: self.fix_resources,
        }

    def run(self) -> RunReport:
        """
        Run every configured task in order.

        Raises:
            ReconcilerError: on the first failure, the run stops there
        """
        report = RunReport()
        if not self.config.tasks:
            logger.info("No tasks specified")
            return report

        for task in self.config.tasks:
            if task not in self._tasks:
                raise ConfigurationError(f"Invalid task: '{task}'")

        self.gateway.check_connectivity()
        with self.gateway.run_lock():
            for task in self.config.tasks:
                logger.info("Running task: '%s'", task)
                self._tasks[task](report)
                report.tasks.append(task)
                logger.info("--- done")
        return report

    def fix_resources(self, report: RunReport) -> None:
        report.short_links.append(self.run_short_link_pass())
        report.active_flags.append(self.run_active_flag_pass())

    def run_short_link_pass(self) -> ShortLinkPassReport:
        """Scan, correct the primary record, then sync its link document, one record at a time"""
        report = ShortLinkPassReport()
        for record in self.scanner.scan_candidates(self.config.lookback_days):
            report.scanned += 1
            correction = self.corrector.correct(record)
            if correction.corrected:
                report.corrected += 1
            if self.syncer.sync(correction.record):
                report.synced += 1
            else:
                report.unchanged += 1
        logger.info(
            "Short links: %d scanned, %d corrected, %d synced, %d unchanged",
            report.scanned, report.corrected, report.synced, report.unchanged
        )
        return report

    def run_active_flag_pass(self) -> ActiveFlagReport:
        # TODO: decide whether the short link pass should also scan the full id space
        return self.active_flags.reconcile()
