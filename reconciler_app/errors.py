"""
Error taxonomy for the reconciler.

Every fatal condition is a ReconcilerError subclass. Storage strategies
translate driver exceptions into ConnectivityError or QueryError at their
boundary; nothing inside the engine catches them, they bubble up to the
task loop which exits non-zero.

An absent derived document is not an error (see LinkLookup).
"""

from typing import Optional


class ReconcilerError(Exception):
    """Base class for all fatal reconciler errors"""


class ConfigurationError(ReconcilerError):
    """Missing or invalid environment configuration or command-line flags"""


class StoreError(ReconcilerError):
    """
    A failing operation against the primary or derived store.

    Keeps the originating driver exception on .cause and names the store.
    """

    def __init__(self, message: str, store: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.store = store
        self.cause = cause

    def __str__(self) -> str:
        base = f"[{self.store}] {super().__str__()}"
        if self.cause is not None:
            return f"{base}: {self.cause}"
        return base


class ConnectivityError(StoreError):
    """Store unreachable"""


class QueryError(StoreError):
    """Malformed or failing read/write against a store"""


class ConcurrentRunError(ReconcilerError):
    """Another reconciler run holds the run lock"""
