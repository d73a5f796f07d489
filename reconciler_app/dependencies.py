"""
Wiring for the reconciler's collaborators.

Provides singleton store instances and a gateway over them, built from
settings. Tests skip this module and build a StorageGateway over
in-memory stores directly.
"""

from reconciler_app.config import Settings
from reconciler_app.storage.factory import (
    DerivedStoreBackend,
    DerivedStoreFactory,
    PrimaryStoreFactory,
)
from reconciler_app.storage.gateway import StorageGateway
from reconciler_app.storage.primary import PrimaryStoreStrategy
from reconciler_app.storage.strategies import DerivedStoreStrategy


def get_primary_store(settings: Settings) -> PrimaryStoreStrategy:
    """Primary store instance (singleton, cached by the factory)"""
    return PrimaryStoreFactory.create(settings)


def get_derived_store(settings: Settings) -> DerivedStoreStrategy:
    """
    Derived store instance (singleton, cached by the factory).

    The backend comes from DERIVED_STORE_BACKEND.
    """
    backend = DerivedStoreBackend(settings.derived_store_backend)
    return DerivedStoreFactory.create(backend, settings)


def build_gateway(settings: Settings) -> StorageGateway:
    """
    Get the storage gateway over both stores.

    Pattern: the services depend on the gateway, the gateway on the
    store strategies, and only this module knows which concrete
    strategies are configured.
    """
    return StorageGateway(
        primary=get_primary_store(settings),
        derived=get_derived_store(settings),
    )
