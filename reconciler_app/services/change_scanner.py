import logging
from typing import List

from reconciler_app.errors import ConfigurationError
from reconciler_app.schemas.documents import PrimaryResourceRecord
from reconciler_app.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


class ChangeScanner:
    """
    Selects the candidate records for the short link pass.

    Candidates are active, primary (not an alias of another resource),
    have an absolute resource URL (relative URLs would break) and were
    updated within the lookback window. The window is measured on the
    primary store's clock. Store errors propagate and abort the pass.
    """

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    def scan_candidates(self, lookback_days: int) -> List[PrimaryResourceRecord]:
        if isinstance(lookback_days, bool) or not isinstance(lookback_days, int) or lookback_days <= 0:
            raise ConfigurationError(f"Lookback days must be an integer > 0, got {lookback_days!r}")

        records = self.gateway.scan_candidates(lookback_days)
        logger.info("Found %d resources updated within the last %d day(s)", len(records), lookback_days)
        return records
