"""
Factories for the primary and derived store strategies.
"""

import logging
from enum import Enum

from reconciler_app.config import Settings
from reconciler_app.database.connection import create_db_engine, create_session_factory
from .primary import PrimaryStoreStrategy, SQLAlchemyPrimaryStore
from .strategies import DerivedStoreStrategy, InMemoryDerivedStore, RedisDerivedStore

logger = logging.getLogger(__name__)


class DerivedStoreBackend(Enum):
    """Available derived store backends"""
    REDIS = "redis"
    MEMORY = "memory"


class DerivedStoreFactory:
    """
    Simple factory for creating derived store instances.

    Uses Singleton Pattern - creates instance once, reuses it.
    Unlike a cache, the derived store has no fallback: if Redis is
    configured it is used or the run fails.
    """

    _instance: DerivedStoreStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: DerivedStoreBackend, settings: Settings) -> DerivedStoreStrategy:
        """
        Create or return cached derived store instance.

        Args:
            backend: Type of derived store backend (from enum)
            settings: Application settings

        Returns:
            Singleton derived store instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == DerivedStoreBackend.REDIS:
            import redis

            redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=30,
            )
            cls._instance = RedisDerivedStore(
                redis_client,
                key_prefix=settings.redis_key_prefix,
                lock_timeout=settings.run_lock_timeout,
            )
            logger.info("Redis derived store configured (%s)", settings.redis_url)

        elif backend == DerivedStoreBackend.MEMORY:
            cls._instance = InMemoryDerivedStore()
            logger.warning("In-memory derived store configured - writes are discarded on exit")

        else:
            raise ValueError(f"Unknown derived store backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None


class PrimaryStoreFactory:
    """Factory for the primary store, cached like the derived store"""

    _instance: PrimaryStoreStrategy = None

    @classmethod
    def create(cls, settings: Settings) -> PrimaryStoreStrategy:
        if cls._instance is not None:
            return cls._instance

        engine = create_db_engine(settings.database_url)
        cls._instance = SQLAlchemyPrimaryStore(create_session_factory(engine))
        logger.info("Primary store configured (%s)", engine.url.render_as_string(hide_password=True))
        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
