from datetime import datetime
from typing import List, Optional, Sequence

from reconciler_app.schemas.documents import LinkLookup, LinkUpdate, PrimaryResourceRecord
from .primary import PrimaryStoreStrategy
from .strategies import DerivedStoreStrategy


class StorageGateway:
    """
    Single entry point to both stores.

    Exposes only the typed operations the reconciliation engine needs.
    The two stores are never written transactionally together: each call
    is one independent round trip to one store.
    """

    def __init__(self, primary: PrimaryStoreStrategy, derived: DerivedStoreStrategy):
        self.primary = primary
        self.derived = derived

    def check_connectivity(self) -> None:
        """Fail fast (ConnectivityError) before any task touches a store"""
        self.primary.ping()
        self.derived.ping()

    def run_lock(self):
        return self.derived.run_lock()

    # Primary store

    def scan_candidates(self, lookback_days: int) -> List[PrimaryResourceRecord]:
        return self.primary.scan_candidates(lookback_days)

    def set_short_url(self, resource_id: int, short_url: str) -> Optional[datetime]:
        return self.primary.set_short_url(resource_id, short_url)

    def list_resource_ids(self, active: bool) -> List[int]:
        return self.primary.list_resource_ids(active)

    # Derived store

    def find_link(self, short_path: str) -> LinkLookup:
        return self.derived.find_link(short_path)

    def upsert_link(self, short_path: str, update: LinkUpdate) -> None:
        self.derived.upsert_link(short_path, update)

    def set_links_active(self, short_paths: Sequence[str], active: bool) -> int:
        return self.derived.set_links_active(short_paths, active)

    def set_resources_active(self, ids: Sequence[int], active: bool) -> int:
        return self.derived.set_resources_active(ids, active)
