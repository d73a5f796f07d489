import logging
from dataclasses import dataclass

from reconciler_app.schemas.documents import PrimaryResourceRecord
from reconciler_app.services.link_deriver import LinkDeriver
from reconciler_app.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Correction:
    record: PrimaryResourceRecord
    corrected: bool


class PrimaryCorrector:
    """
    Keeps the denormalized short_url of primary records correct.

    When short_url is missing or differs from the derived value, the
    expected value is written back and updated_at is bumped to the
    primary store's current time in the same update. The bump makes the
    record show up in the next scan again, so a failed derived store sync
    later in the pass gets retried by the next run without any
    cross-store transaction.
    """

    def __init__(self, gateway: StorageGateway, deriver: LinkDeriver):
        self.gateway = gateway
        self.deriver = deriver

    def correct(self, record: PrimaryResourceRecord) -> Correction:
        """
        Args:
            record: Candidate record as scanned

        Returns:
            Correction with the record as it now stands in the primary store
        """
        expected = self.deriver.short_url(record.id)
        if record.short_url == expected:
            return Correction(record=record, corrected=False)

        logger.info(
            "/%s -> %s ...no short url - will create one and then sync",
            self.deriver.short_path(record.id), expected
        )
        written_at = self.gateway.set_short_url(record.id, expected)
        if written_at is None:
            # Row deleted since the scan; the link document is still synced from the scanned values
            return Correction(record=record.model_copy(update={"short_url": expected}), corrected=False)

        corrected = record.model_copy(update={"short_url": expected, "updated_at": written_at})
        return Correction(record=corrected, corrected=True)
