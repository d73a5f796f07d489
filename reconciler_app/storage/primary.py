"""
Primary store strategies.

The primary store is the authoritative relational table of resources.
The reconciler needs exactly three operations from it:

- a filtered read of recently changed candidate records
- an update-by-id of short_url that also refreshes updated_at
- a read of every id with a given active flag

Timestamps come from the database clock (NOW()), the same clock the
systems editing the table write updated_at with.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from reconciler_app.errors import ConnectivityError, QueryError
from reconciler_app.models.resource import Resource
from reconciler_app.schemas.documents import PrimaryResourceRecord

logger = logging.getLogger(__name__)

STORE_NAME = "primary"

# Relative resource URLs never get short links
ABSOLUTE_URL_PATTERN = "http%"

# MySQL client errors for a refused, lost or timed out connection
CONNECTION_ERROR_CODES = (2002, 2003, 2006, 2013)


class PrimaryStoreStrategy(ABC):
    """
    Abstract base class for primary store access.

    All operations are synchronous; the reconciler does one round trip
    at a time. Implementations raise ConnectivityError / QueryError and
    never return partial results.
    """

    @abstractmethod
    def ping(self) -> None:
        """Raise ConnectivityError if the store cannot be reached"""
        pass

    @abstractmethod
    def scan_candidates(self, lookback_days: int) -> List[PrimaryResourceRecord]:
        """
        Read active, primary records with an absolute resource URL that
        were updated within lookback_days of the store's current time.

        Args:
            lookback_days: Size of the window in days (> 0)

        Returns:
            Records ordered by id
        """
        pass

    @abstractmethod
    def set_short_url(self, resource_id: int, short_url: str) -> Optional[datetime]:
        """
        Set short_url and bump updated_at to the store's current time, in
        a single write.

        Returns:
            The updated_at value written, or None when no row has that id
        """
        pass

    @abstractmethod
    def list_resource_ids(self, active: bool) -> List[int]:
        """All ids with an absolute resource URL and the given active flag"""
        pass


class SQLAlchemyPrimaryStore(PrimaryStoreStrategy):
    """
    SQLAlchemy implementation over the ol_resource table.

    Works against MySQL in production and SQLite in development/tests.
    Every operation runs in its own short session that is committed on
    success and rolled back on failure.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            session_factory: sessionmaker bound to the primary store engine
            clock: Replaces the database clock, for tests only
        """
        self.session_factory = session_factory
        self.clock = clock

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise _translate(exc, action) from exc
        finally:
            session.close()

    def ping(self) -> None:
        session = self.session_factory()
        try:
            session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise ConnectivityError(
                "could not connect to primary store", store=STORE_NAME, cause=exc
            ) from exc
        finally:
            session.close()

    def _now(self, session: Session) -> datetime:
        if self.clock is not None:
            return self.clock()
        now = session.scalar(select(func.now()))
        # Drivers returning an aware value (PostgreSQL) give it in the session time zone
        if now.tzinfo is not None:
            now = now.replace(tzinfo=None)
        return now

    def scan_candidates(self, lookback_days: int) -> List[PrimaryResourceRecord]:
        with self._session("scan candidates") as session:
            cutoff = self._now(session) - timedelta(days=lookback_days)
            stmt = (
                select(Resource)
                .where(
                    Resource.active == True,
                    Resource.primary == True,
                    Resource.resource_url.like(ABSOLUTE_URL_PATTERN),
                    Resource.updated_at >= cutoff,
                )
                .order_by(Resource.id)
            )
            rows = session.scalars(stmt).all()
            return [_to_record(row) for row in rows]

    def set_short_url(self, resource_id: int, short_url: str) -> Optional[datetime]:
        with self._session("update short_url") as session:
            now = self._now(session)
            stmt = (
                update(Resource)
                .where(Resource.id == resource_id)
                .values(short_url=short_url, updated_at=now)
            )
            updated = session.execute(stmt).rowcount
        if updated == 0:
            logger.warning("Resource %s vanished before its short_url could be set", resource_id)
            return None
        return now

    def list_resource_ids(self, active: bool) -> List[int]:
        stmt = (
            select(Resource.id)
            .where(
                Resource.resource_url.like(ABSOLUTE_URL_PATTERN),
                Resource.active == active,
            )
            .order_by(Resource.id)
        )
        with self._session("list resource ids") as session:
            return list(session.scalars(stmt).all())


def _to_record(row: Resource) -> PrimaryResourceRecord:
    return PrimaryResourceRecord(
        id=row.id,
        title=row.name or "",
        resource_url=row.resource_url,
        short_url=row.short_url,
        active=row.active,
        primary=row.primary,
        updated_at=row.updated_at,
    )


def _translate(exc: SQLAlchemyError, action: str) -> Exception:
    """Map a driver error onto the reconciler error taxonomy"""
    if _is_connection_failure(exc):
        return ConnectivityError(f"{action} failed, connection lost", store=STORE_NAME, cause=exc)
    return QueryError(f"{action} failed", store=STORE_NAME, cause=exc)


def _is_connection_failure(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, (DisconnectionError, InterfaceError)):
        return True
    if getattr(exc, "connection_invalidated", False):
        return True
    # A failed connect or reconnect surfaces as OperationalError with a client error code
    if isinstance(exc, OperationalError):
        args = getattr(exc.orig, "args", ())
        return bool(args) and args[0] in CONNECTION_ERROR_CODES
    return False
