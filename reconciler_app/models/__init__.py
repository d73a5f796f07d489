"""
Database models for the primary store.

Note: Derived documents (links, resources) live in the document store and
are described by the pydantic schemas, not by SQLAlchemy models.
"""

from .resource import Resource

__all__ = ["Resource"]
