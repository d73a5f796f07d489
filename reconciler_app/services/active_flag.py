"""
Active flag reconciliation.

The primary store is authoritative for the active (soft-delete) flag.
This pass does not use the lookback window: it enumerates every id in
the primary store and overwrites the flag on the matching resource and
link documents, so a flag change missed by the incremental scans cannot
drift forever. Overwrites are unconditional (last writer wins), which
makes re-running the pass harmless.
"""

import logging
from dataclasses import dataclass
from typing import List

from reconciler_app.services.link_deriver import LinkDeriver
from reconciler_app.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


@dataclass
class PartitionReport:
    active: bool
    ids: int = 0
    resources_touched: int = 0
    links_touched: int = 0


@dataclass
class ActiveFlagReport:
    inactive: PartitionReport
    active: PartitionReport

    @property
    def documents_touched(self) -> int:
        return sum(
            part.resources_touched + part.links_touched
            for part in (self.inactive, self.active)
        )


class ActiveFlagReconciler:
    """Bulk overwrite of the active flag from primary into both derived collections"""

    def __init__(self, gateway: StorageGateway, deriver: LinkDeriver):
        self.gateway = gateway
        self.deriver = deriver

    def reconcile(self) -> ActiveFlagReport:
        """Inactive partition first, then active"""
        inactive = self.reconcile_partition(False)
        active = self.reconcile_partition(True)
        return ActiveFlagReport(inactive=inactive, active=active)

    def reconcile_partition(self, active: bool) -> PartitionReport:
        ids = self.gateway.list_resource_ids(active)
        logger.info("Found %d %s resources", len(ids), "active" if active else "inactive")
        return self.apply(ids, active)

    def apply(self, ids: List[int], active: bool) -> PartitionReport:
        """
        Set active on the resource and link documents of ids.

        An empty id set is a no-op: no bulk call is made.
        """
        report = PartitionReport(active=active, ids=len(ids))
        if not ids:
            logger.info("No %s ids - nothing to do", "active" if active else "inactive")
            return report

        report.resources_touched = self.gateway.set_resources_active(ids, active)
        logger.info(
            "Setting %d Resources to active: %s ... %d records were updated",
            len(ids), active, report.resources_touched
        )

        short_paths = [self.deriver.short_path(resource_id) for resource_id in ids]
        report.links_touched = self.gateway.set_links_active(short_paths, active)
        logger.info(
            "Setting %d Links to active: %s ... %d records were updated",
            len(ids), active, report.links_touched
        )
        return report
