"""
Derived store strategies using Strategy Pattern.

The derived store holds the materialized projections the redirector and
the public API read: link documents (keyed by short path) and resource
documents (keyed by id). Backends:

- Redis: production, one hash per document
- In-Memory: development and tests
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

import redis
from pydantic import ValidationError

from reconciler_app.errors import ConcurrentRunError, ConnectivityError, QueryError
from reconciler_app.schemas.documents import (
    LinkDocument,
    LinkLookup,
    LinkUpdate,
    ResourceDocument,
)

logger = logging.getLogger(__name__)

STORE_NAME = "derived"


class DerivedStoreStrategy(ABC):
    """
    Abstract base class for derived store strategies.

    This is the Strategy Pattern interface - the reconciliation services
    only ever talk to this, never to a driver.

    Lookups of absent documents are not errors: find_link returns a
    LinkLookup with found=False. Driver failures raise ConnectivityError
    or QueryError.
    """

    @abstractmethod
    def ping(self) -> None:
        """Raise ConnectivityError if the store cannot be reached"""
        pass

    @abstractmethod
    def find_link(self, short_path: str) -> LinkLookup:
        """
        Find a link document by its short path.

        Args:
            short_path: Natural key of the link, eg "r42"

        Returns:
            LinkLookup, found=False when no document exists
        """
        pass

    @abstractmethod
    def upsert_link(self, short_path: str, update: LinkUpdate) -> None:
        """
        Create or update the link document keyed by short_path.

        Only the fields set on the update are written; applying the
        same update twice leaves the same stored state.
        """
        pass

    @abstractmethod
    def set_links_active(self, short_paths: Sequence[str], active: bool) -> int:
        """
        Overwrite the active flag on every existing link document whose
        short path is in short_paths. Missing documents are not created.

        Returns:
            Number of documents touched
        """
        pass

    @abstractmethod
    def set_resources_active(self, ids: Sequence[int], active: bool) -> int:
        """
        Overwrite the active flag on every existing resource document
        whose id is in ids. Missing documents are not created.

        Returns:
            Number of documents touched
        """
        pass

    @abstractmethod
    def run_lock(self):
        """
        Context manager that holds the single-run lock.

        Raises:
            ConcurrentRunError: if another run holds the lock
        """
        pass


@contextmanager
def _redis_errors(action: str) -> Iterator[None]:
    """Translate redis-py exceptions into the reconciler taxonomy"""
    try:
        yield
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as exc:
        raise ConnectivityError(f"{action} failed, store unreachable", store=STORE_NAME, cause=exc) from exc
    except redis.exceptions.RedisError as exc:
        raise QueryError(f"{action} failed", store=STORE_NAME, cause=exc) from exc


def _encode(fields: Dict[str, Any]) -> Dict[str, str]:
    """Flatten document fields into redis hash values"""
    encoded = {}
    for name, value in fields.items():
        if isinstance(value, bool):
            encoded[name] = "true" if value else "false"
        elif isinstance(value, datetime):
            encoded[name] = value.isoformat()
        else:
            encoded[name] = str(value)
    return encoded


class RedisDerivedStore(DerivedStoreStrategy):
    """
    Redis implementation of the derived store.

    Layout (with the default key prefix "fixr"):
    - fixr:link:<shortPath>  hash with shortUrl, longUrl, title, active,
      createdAt, updatedAt
    - fixr:resource:<id>     hash with id, active (and whatever else the
      publishing side stores there)

    Bulk flag updates only touch hashes that already exist, in
    pipelined batches.
    """

    LOCK_NAME = "run-lock"

    def __init__(
        self,
        redis_client,
        key_prefix: str = "fixr",
        lock_timeout: int = 3600,
        batch_size: int = 500
    ):
        """
        Initialize Redis derived store.

        Args:
            redis_client: Redis client instance (redis.Redis, decode_responses=True)
            key_prefix: Namespace for every key written
            lock_timeout: Seconds before a held run lock expires
            batch_size: Keys per pipeline round trip in bulk updates
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.lock_timeout = lock_timeout
        self.batch_size = batch_size

    def _link_key(self, short_path: str) -> str:
        return f"{self.key_prefix}:link:{short_path}"

    def _resource_key(self, resource_id: int) -> str:
        return f"{self.key_prefix}:resource:{resource_id}"

    def ping(self) -> None:
        with _redis_errors("ping"):
            self.redis.ping()

    def find_link(self, short_path: str) -> LinkLookup:
        with _redis_errors("find link"):
            data = self.redis.hgetall(self._link_key(short_path))
        if not data:
            return LinkLookup.miss(short_path)
        data["shortUrl"] = short_path
        try:
            return LinkLookup.hit(LinkDocument.model_validate(data))
        except ValidationError as exc:
            raise QueryError(f"link document {short_path} is malformed", store=STORE_NAME, cause=exc) from exc

    def upsert_link(self, short_path: str, update: LinkUpdate) -> None:
        mapping = _encode(update.fields())
        mapping["shortUrl"] = short_path
        with _redis_errors("upsert link"):
            self.redis.hset(self._link_key(short_path), mapping=mapping)

    def set_links_active(self, short_paths: Sequence[str], active: bool) -> int:
        keys = [self._link_key(path) for path in short_paths]
        return self._set_active(keys, active, "set links active")

    def set_resources_active(self, ids: Sequence[int], active: bool) -> int:
        keys = [self._resource_key(resource_id) for resource_id in ids]
        return self._set_active(keys, active, "set resources active")

    def _set_active(self, keys: List[str], active: bool, action: str) -> int:
        value = "true" if active else "false"
        touched = 0
        with _redis_errors(action):
            for start in range(0, len(keys), self.batch_size):
                batch = keys[start:start + self.batch_size]

                # Round trip 1: which documents exist
                pipe = self.redis.pipeline(transaction=False)
                for key in batch:
                    pipe.exists(key)
                existing = [key for key, found in zip(batch, pipe.execute()) if found]

                # Round trip 2: overwrite the flag on those
                if existing:
                    pipe = self.redis.pipeline(transaction=False)
                    for key in existing:
                        pipe.hset(key, "active", value)
                    pipe.execute()
                touched += len(existing)
        return touched

    @contextmanager
    def run_lock(self):
        lock = self.redis.lock(
            f"{self.key_prefix}:{self.LOCK_NAME}",
            timeout=self.lock_timeout,
            blocking=False
        )
        with _redis_errors("acquire run lock"):
            acquired = lock.acquire()
        if not acquired:
            raise ConcurrentRunError(
                "Another reconciler run holds the lock - refusing to run concurrently"
            )
        logger.debug("Acquired run lock %s", lock.name)
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError as exc:
                # Expired while we worked; the run itself is already finished
                logger.warning("Run lock was lost before release: %s", exc)


class InMemoryDerivedStore(DerivedStoreStrategy):
    """
    In-memory derived store using Python dicts.

    Pros:
    - No external services
    - Inspectable state, perfect for tests

    Cons:
    - Lost on exit, so only useful for dry runs and testing

    Documents are kept with their stored field names, same as Redis.
    """

    def __init__(self):
        """Initialize empty link and resource collections"""
        self.links: Dict[str, Dict[str, Any]] = {}
        self.resources: Dict[int, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def ping(self) -> None:
        return None

    def find_link(self, short_path: str) -> LinkLookup:
        data = self.links.get(short_path)
        if data is None:
            return LinkLookup.miss(short_path)
        return LinkLookup.hit(LinkDocument.model_validate(data))

    def upsert_link(self, short_path: str, update: LinkUpdate) -> None:
        document = self.links.setdefault(short_path, {"shortUrl": short_path})
        document.update(update.fields())

    def set_links_active(self, short_paths: Sequence[str], active: bool) -> int:
        touched = 0
        for short_path in short_paths:
            if short_path in self.links:
                self.links[short_path]["active"] = active
                touched += 1
        return touched

    def set_resources_active(self, ids: Sequence[int], active: bool) -> int:
        touched = 0
        for resource_id in ids:
            if resource_id in self.resources:
                self.resources[resource_id]["active"] = active
                touched += 1
        return touched

    @contextmanager
    def run_lock(self):
        if not self._lock.acquire(blocking=False):
            raise ConcurrentRunError(
                "Another reconciler run holds the lock - refusing to run concurrently"
            )
        try:
            yield
        finally:
            self._lock.release()

    # Seeding and inspection helpers

    def put_link(self, document: LinkDocument) -> None:
        self.links[document.short_path] = document.model_dump(by_alias=True)

    def get_link(self, short_path: str) -> Optional[LinkDocument]:
        data = self.links.get(short_path)
        return LinkDocument.model_validate(data) if data is not None else None

    def put_resource(self, document: ResourceDocument) -> None:
        self.resources[document.id] = document.model_dump()

    def get_resource(self, resource_id: int) -> Optional[ResourceDocument]:
        data = self.resources.get(resource_id)
        return ResourceDocument.model_validate(data) if data is not None else None
