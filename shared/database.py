"""Database configuration and utilities."""
import logging

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

Base = declarative_base()


def _serialize_sqlite_transactions(engine: AsyncEngine):
    """
    Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so two sessions can both
    read a row and then both write it. Taking the write lock up front runs
    SQLite transactions one at a time. SQLite ignores FOR UPDATE, so this
    stands in for the row locks the ledger takes on Postgres.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize database connection.

        Args:
            database_url: Async SQLAlchemy URL (asyncpg in production,
                aiosqlite for local runs and tests)
            echo: Whether to echo SQL queries
        """
        url = make_url(database_url)
        is_sqlite = url.get_backend_name() == "sqlite"

        if is_sqlite and url.database in (None, "", ":memory:"):
            # An in-memory database lives and dies with its one connection
            engine_options = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        elif is_sqlite:
            # Writers wait on the file lock instead of failing at once
            engine_options = {"connect_args": {"timeout": 30}}
        else:
            engine_options = {
                "pool_size": 10,
                "max_overflow": 20,
                "pool_pre_ping": True,
            }

        self.engine = create_async_engine(database_url, echo=echo, **engine_options)

        if is_sqlite:
            _serialize_sqlite_transactions(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def create_tables(self):
        """Create all database tables, waiting for the database to come up."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_tables(self):
        """Drop all database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped")

    async def close(self):
        """Close database connections."""
        await self.engine.dispose()
        logger.info("Database connections closed")
