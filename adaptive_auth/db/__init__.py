# =============================================================================
# DATABASE MODULE INITIALIZATION
# =============================================================================
# File: db/__init__.py
# Description: Database module exports
# =============================================================================

from adaptive_auth.db.models import (
    DatabaseEngine,
    OnUpdateStrategy,
    ConnectionDescriptor,
    ColumnDescriptor,
    SchemaCatalogue,
    derive_mandatory_fields,
)
from adaptive_auth.db.base import IDBAdapter, BaseDBAdapter, is_connectivity_error
from adaptive_auth.db.adapters import (
    SQLiteAdapter,
    MySQLAdapter,
    PostgresAdapter,
    RedisAdapter,
)
from adaptive_auth.db.factory import DBFactory, get_db_adapter
from adaptive_auth.db.introspector import SchemaIntrospector
from adaptive_auth.db.table_manager import SchemaAdaptiveTableManager
from adaptive_auth.db.gateway import TableGateway

__all__ = [
    # Models
    "DatabaseEngine",
    "OnUpdateStrategy",
    "ConnectionDescriptor",
    "ColumnDescriptor",
    "SchemaCatalogue",
    "derive_mandatory_fields",

    # Base
    "IDBAdapter",
    "BaseDBAdapter",
    "is_connectivity_error",

    # Adapters
    "SQLiteAdapter",
    "MySQLAdapter",
    "PostgresAdapter",
    "RedisAdapter",

    # Factory
    "DBFactory",
    "get_db_adapter",

    # Schema
    "SchemaIntrospector",
    "SchemaAdaptiveTableManager",
    "TableGateway",
]
