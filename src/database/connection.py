"""
Database connection and pooling for PostgreSQL.

Provides async connection pooling, transactions and connection management for
the agency builder. Query errors are surfaced as ``PersistenceError`` and are
never retried here.
"""

import asyncpg
from typing import Optional, List
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """Database connection configuration."""
    dsn: str
    min_size: int = 1
    max_size: int = 10
    max_queries: int = 50000
    max_inactive_connection_lifetime: float = 300.0
    command_timeout: float = 60.0


class PersistenceError(Exception):
    """Raised when a store query or command fails."""
    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection fails."""
    pass


class DatabasePool:
    """
    Async PostgreSQL connection pool manager.

    Wraps an asyncpg pool with query helpers, a transaction context manager
    and proper resource cleanup.
    """

    def __init__(self, config: PoolConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_closed = False

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        if self._pool is not None:
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.dsn,
                min_size=self.config.min_size,
                max_size=self.config.max_size,
                max_queries=self.config.max_queries,
                max_inactive_connection_lifetime=self.config.max_inactive_connection_lifetime,
                command_timeout=self.config.command_timeout,
            )
            logger.info(f"Database pool initialized with {self.config.min_size}-{self.config.max_size} connections")
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    async def close(self) -> None:
        """Close the connection pool and cleanup resources."""
        if self._pool and not self._is_closed:
            await self._pool.close()
            self._is_closed = True
            logger.info("Database pool closed")

    @asynccontextmanager
    async def acquire_connection(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire_connection() as conn:
                result = await conn.fetch("SELECT * FROM agencies")
        """
        if self._pool is None:
            raise DatabaseConnectionError("Database pool not initialized")

        if self._is_closed:
            raise DatabaseConnectionError("Database pool is closed")

        async with self._pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self):
        """
        Run several statements atomically.

        Usage:
            async with pool.transaction() as conn:
                await conn.execute("UPDATE ...", ...)
        """
        async with self.acquire_connection() as conn:
            try:
                async with conn.transaction():
                    yield conn
            except asyncpg.PostgresError as e:
                logger.error(f"Transaction failed: {e}")
                raise PersistenceError(str(e)) from e

    async def execute_query(self, query: str, *args) -> List[asyncpg.Record]:
        """Execute a query and return all results."""
        async with self.acquire_connection() as conn:
            try:
                return await conn.fetch(query, *args)
            except asyncpg.PostgresError as e:
                logger.error(f"Query execution failed: {e}")
                logger.error(f"Query: {query}")
                logger.error(f"Args: {args}")
                raise PersistenceError(str(e)) from e

    async def execute_query_one(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Execute a query and return one result or None."""
        async with self.acquire_connection() as conn:
            try:
                return await conn.fetchrow(query, *args)
            except asyncpg.PostgresError as e:
                logger.error(f"Query execution failed: {e}")
                logger.error(f"Query: {query}")
                logger.error(f"Args: {args}")
                raise PersistenceError(str(e)) from e

    async def execute_command(self, command: str, *args) -> str:
        """Execute a command (INSERT, UPDATE, DELETE) and return status."""
        async with self.acquire_connection() as conn:
            try:
                return await conn.execute(command, *args)
            except asyncpg.PostgresError as e:
                logger.error(f"Command execution failed: {e}")
                logger.error(f"Command: {command}")
                logger.error(f"Args: {args}")
                raise PersistenceError(str(e)) from e

    @property
    def is_initialized(self) -> bool:
        """Check if the pool is initialized."""
        return self._pool is not None and not self._is_closed

    async def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            result = await self.execute_query_one("SELECT 1 as health_check")
            return result is not None and result['health_check'] == 1
        except PersistenceError as e:
            logger.error(f"Health check failed: {e}")
            return False


# Global pool instance - initialized once per application
_global_pool: Optional[DatabasePool] = None


async def get_database_pool(config: PoolConfig) -> DatabasePool:
    """
    Get the global database pool instance, initializing it if needed.

    This should be called during application startup to ensure the pool
    is properly initialized before any database operations.
    """
    global _global_pool

    if _global_pool is None:
        _global_pool = DatabasePool(config)
        await _global_pool.initialize()
    elif not _global_pool.is_initialized:
        await _global_pool.initialize()

    return _global_pool


async def close_database_pool() -> None:
    """Close the global database pool. Call during application shutdown."""
    global _global_pool

    if _global_pool:
        await _global_pool.close()
        _global_pool = None
