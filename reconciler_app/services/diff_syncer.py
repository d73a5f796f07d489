"""
Per-record sync of link documents.

The full short URL lives only in the primary record. The link document
stores the short path (its key) and everything the redirector needs,
relative to whatever base URL the redirector serves.

The decision to write is driven strictly by field comparison: a document
that already matches its record is never rewritten, so repeated runs do
not keep advancing updatedAt.
"""

import logging
from datetime import datetime
from typing import Callable

from reconciler_app.clock import utcnow
from reconciler_app.schemas.documents import LinkUpdate, PrimaryResourceRecord
from reconciler_app.services.link_deriver import LinkDeriver
from reconciler_app.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


class DiffSyncer:
    """Compares a link document with its record and upserts on difference"""

    def __init__(
        self,
        gateway: StorageGateway,
        deriver: LinkDeriver,
        clock: Callable[[], datetime] = utcnow
    ):
        self.gateway = gateway
        self.deriver = deriver
        self.clock = clock

    def build_update(self, record: PrimaryResourceRecord) -> LinkUpdate:
        """
        Work out what the link document for record needs.

        Checks, in order: createdAt unset, updatedAt unset, title mismatch,
        longUrl mismatch. Returns an empty LinkUpdate if nothing trips.
        """
        short_path = self.deriver.short_path(record.id)
        lookup = self.gateway.find_link(short_path)
        if not lookup.found:
            logger.info("No link doc found for /%s - will create one", short_path)
        document = lookup.document

        # One timestamp per record so a created document has createdAt == updatedAt
        now = self.clock()
        changes = {}

        if document.created_at is None:
            logger.debug("/%s createdAt is not set - will set to now", short_path)
            changes["created_at"] = now
        if document.updated_at is None:
            logger.debug("/%s updatedAt is not set - will set to now", short_path)
            changes["updated_at"] = now
        if document.title != record.title:
            changes["title"] = record.title
        if document.long_url != record.resource_url:
            changes["long_url"] = record.resource_url

        if not changes:
            return LinkUpdate()

        # Content changed on an existing document: advance updatedAt
        changes.setdefault("updated_at", now)

        # Project the full document, unchanged fields included
        return LinkUpdate(
            title=record.title,
            long_url=record.resource_url,
            active=record.active,
            created_at=changes.get("created_at", document.created_at),
            updated_at=changes["updated_at"],
        )

    def sync(self, record: PrimaryResourceRecord) -> bool:
        """
        Upsert the link document for record if it differs.

        Returns:
            True if a write was issued, False for a no-op
        """
        update = self.build_update(record)
        if update.is_empty():
            return False

        short_path = self.deriver.short_path(record.id)
        logger.info("Syncing link doc /%s", short_path)
        self.gateway.upsert_link(short_path, update)
        return True
