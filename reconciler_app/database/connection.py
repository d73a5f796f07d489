"""
SQLAlchemy engine and session factory for the primary store.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


Base = declarative_base()


def create_db_engine(database_url: str, **kwargs):
    """
    Create an engine for the primary store.

    SQLite needs check_same_thread disabled; every other backend
    uses the driver defaults plus pool_pre_ping so a dead connection
    fails at checkout instead of mid-query.
    """
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(database_url, **kwargs)


def create_session_factory(engine) -> sessionmaker:
    """Session factory bound to the given engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
