"""
Database integration layer for the agency builder.

Provides async PostgreSQL connectivity, the schema, and the agency store
(agencies, hierarchy edges, organization config, leader codes, agent mappings).
"""

from .connection import (
    PoolConfig,
    DatabasePool,
    PersistenceError,
    DatabaseConnectionError,
    get_database_pool,
    close_database_pool,
)

from .schema import SCHEMA_STATEMENTS, apply_schema

from .store import AgencyStore, InMemoryAgencyStore

from .queries import PostgresAgencyStore

__all__ = [
    # Connection
    'PoolConfig',
    'DatabasePool',
    'PersistenceError',
    'DatabaseConnectionError',
    'get_database_pool',
    'close_database_pool',

    # Schema
    'SCHEMA_STATEMENTS',
    'apply_schema',

    # Stores
    'AgencyStore',
    'InMemoryAgencyStore',
    'PostgresAgencyStore',
]
