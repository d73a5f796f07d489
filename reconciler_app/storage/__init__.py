"""
Storage module for the primary and derived stores.

This module implements the Strategy Pattern for pluggable store backends,
fronted by a single StorageGateway used by the reconciliation services.
"""

from .primary import PrimaryStoreStrategy, SQLAlchemyPrimaryStore
from .strategies import DerivedStoreStrategy, RedisDerivedStore, InMemoryDerivedStore
from .factory import DerivedStoreFactory, DerivedStoreBackend, PrimaryStoreFactory
from .gateway import StorageGateway

__all__ = [
    "PrimaryStoreStrategy",
    "SQLAlchemyPrimaryStore",
    "DerivedStoreStrategy",
    "RedisDerivedStore",
    "InMemoryDerivedStore",
    "DerivedStoreFactory",
    "DerivedStoreBackend",
    "PrimaryStoreFactory",
    "StorageGateway",
]
