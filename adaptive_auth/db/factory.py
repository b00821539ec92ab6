# =============================================================================
# ADAPTIVE AUTH - DATABASE FACTORY
# =============================================================================
# File: db/factory.py
# Description: Factory pattern for database adapter instantiation
#              Maps each supported engine onto its adapter class
# =============================================================================

from typing import Any, Dict, Mapping, Type, Union

from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.db.models import ConnectionDescriptor, DatabaseEngine
from adaptive_auth.db.adapters.sqlite_adapter import SQLiteAdapter
from adaptive_auth.db.adapters.mysql_adapter import MySQLAdapter
from adaptive_auth.db.adapters.postgres_adapter import PostgresAdapter
from adaptive_auth.db.adapters.redis_adapter import RedisAdapter


class DBFactory:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    DATABASE FACTORY                                      │
    │  Factory pattern implementation for creating database adapters          │
    │  One adapter class per engine, selected from the connection descriptor  │
    └─────────────────────────────────────────────────────────────────────────┘

    Usage:
        descriptor = ConnectionDescriptor.from_mapping({
            "engine": "pgsql", "host": "db", "database": "app",
            "username": "app", "password": "secret",
        })
        db = DBFactory.create_db_adapter(descriptor)
        await db.connect()
    """

    _registry: Dict[DatabaseEngine, Type[BaseDBAdapter]] = {
        DatabaseEngine.MYSQL: MySQLAdapter,
        DatabaseEngine.SQLITE: SQLiteAdapter,
        DatabaseEngine.POSTGRES: PostgresAdapter,
    }

    @classmethod
    def create_db_adapter(
        cls,
        descriptor: Union[ConnectionDescriptor, Mapping[str, Any]],
        **kwargs: Any
    ) -> BaseDBAdapter:
        """
        Create the adapter matching the descriptor's engine.

        Args:
            descriptor: Connection descriptor, or a mapping accepted by
                ``ConnectionDescriptor.from_mapping``
            **kwargs: Engine options passed to the adapter

        Returns:
            BaseDBAdapter: Unconnected adapter

        Raises:
            ConfigurationError: If the parameters are invalid
        """
        if not isinstance(descriptor, ConnectionDescriptor):
            descriptor = ConnectionDescriptor.from_mapping(descriptor)
        adapter_class = cls._registry[descriptor.engine]
        return adapter_class(descriptor, **kwargs)

    @classmethod
    def create_redis_adapter(cls, **kwargs: Any) -> RedisAdapter:
        """Create a Redis adapter (used by the Redis session store)."""
        return RedisAdapter(**kwargs)

    @classmethod
    def supported_engines(cls) -> list[str]:
        return [engine.value for engine in cls._registry]


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_db_adapter(descriptor, **kwargs) -> BaseDBAdapter:
    """Get database adapter via factory."""
    return DBFactory.create_db_adapter(descriptor, **kwargs)
