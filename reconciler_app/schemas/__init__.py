from .documents import (
    LinkDocument,
    LinkLookup,
    LinkUpdate,
    PrimaryResourceRecord,
    ResourceDocument,
)

__all__ = [
    "LinkDocument",
    "LinkLookup",
    "LinkUpdate",
    "PrimaryResourceRecord",
    "ResourceDocument",
]
