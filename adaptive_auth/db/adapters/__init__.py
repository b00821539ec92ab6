# =============================================================================
# DATABASE ADAPTERS INITIALIZATION
# =============================================================================
# File: db/adapters/__init__.py
# Description: Adapters module exports
# =============================================================================

from adaptive_auth.db.adapters.sqlite_adapter import SQLiteAdapter, create_memory_adapter
from adaptive_auth.db.adapters.mysql_adapter import MySQLAdapter
from adaptive_auth.db.adapters.postgres_adapter import PostgresAdapter
from adaptive_auth.db.adapters.redis_adapter import RedisAdapter

__all__ = [
    "SQLiteAdapter",
    "create_memory_adapter",
    "MySQLAdapter",
    "PostgresAdapter",
    "RedisAdapter",
]
