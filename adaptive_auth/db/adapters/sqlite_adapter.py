# =============================================================================
# ADAPTIVE AUTH - SQLITE ADAPTER
# =============================================================================
# File: db/adapters/sqlite_adapter.py
# Description: SQLite database adapter for development, tests and small sites
#              Uses aiosqlite for async operations with SQLAlchemy
# =============================================================================

from typing import Any, Dict, List, Mapping, Optional, Sequence
from datetime import datetime
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.pool import StaticPool

from adaptive_auth.core.config import settings
from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.utils.helpers import db_timestamp
from adaptive_auth.db.models import (
    ColumnDescriptor,
    ConnectionDescriptor,
    DatabaseEngine,
    OnUpdateStrategy,
)


class SQLiteAdapter(BaseDBAdapter):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SQLITE DATABASE ADAPTER                               │
    │  Async SQLite implementation for development and testing environments   │
    │  Uses aiosqlite driver with SQLAlchemy async engine                     │
    └─────────────────────────────────────────────────────────────────────────┘

    Dialect notes:
        - Tables are listed in ``sqlite_master``
        - Columns come from ``PRAGMA table_info``; an INTEGER primary key is
          the rowid alias and counts as auto-increment
        - SQLite has no ON UPDATE clause and ``ALTER TABLE ADD COLUMN`` only
          accepts constant defaults, so timestamps are written by the engine

    Usage:
        adapter = SQLiteAdapter(ConnectionDescriptor(engine="sqlite",
                                                     database="./auth.db"))
        await adapter.connect()
    """

    engine_type = DatabaseEngine.SQLITE
    driver = "sqlite+aiosqlite"
    identifier_quote = '"'
    on_update_strategy = OnUpdateStrategy.APPLICATION

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        **kwargs: Any
    ):
        """
        Initialize SQLite adapter.

        Args:
            descriptor: Connection parameters; ``database`` is the file path
            **kwargs: Additional engine options

        Engine Options:
            - echo: bool - Log SQL queries (default: settings.db_echo)
        """
        if not descriptor.is_memory:
            Path(descriptor.database).parent.mkdir(parents=True, exist_ok=True)

        default_options: Dict[str, Any] = {
            "echo": settings.db_echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": 30,
            },
        }
        # A private in-memory database only lives as long as its connection.
        if descriptor.is_memory:
            default_options["poolclass"] = StaticPool

        default_options.update(kwargs)

        super().__init__(descriptor, **default_options)

    def build_url(self) -> URL:
        return URL.create(self.driver, database=self.descriptor.database)

    async def connect(self) -> None:
        """
        Connect to SQLite database with optimizations.

        Applies SQLite-specific PRAGMA settings:
            - WAL mode for better concurrency (file databases)
            - Busy timeout so concurrent writers wait instead of failing
        """
        was_connected = self.is_connected
        await super().connect()
        if was_connected or self.descriptor.is_memory:
            return

        async with self.get_session() as session:
            await session.execute(text("PRAGMA journal_mode=WAL"))
            await session.execute(text("PRAGMA busy_timeout=30000"))

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    def table_exists_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        return (
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = :table",
            {"table": table},
        )

    def describe_columns_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        # PRAGMA arguments cannot be bound; the name is validated and quoted.
        return f"PRAGMA table_info({self.quote_identifier(table)})", {}

    def normalize_columns(self, rows: Sequence[Mapping[str, Any]]) -> List[ColumnDescriptor]:
        pk_rows = [row for row in rows if row["pk"]]
        columns = []
        for row in rows:
            declared_type = (row["type"] or "").upper()
            is_pk = bool(row["pk"])
            is_rowid_alias = is_pk and len(pk_rows) == 1 and declared_type == "INTEGER"
            columns.append(ColumnDescriptor(
                name=row["name"],
                declared_type=declared_type,
                nullable=not row["notnull"] and not is_rowid_alias,
                default_value=_as_default(row["dflt_value"]),
                is_auto_increment=is_rowid_alias,
                is_primary_key=is_pk,
            ))
        return columns

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_table_ddl(self, table: str, login_column: str, password_column: str) -> str:
        q = self.quote_identifier
        return (
            f"CREATE TABLE IF NOT EXISTS {q(table)} (\n"
            f"    {q('id')} INTEGER PRIMARY KEY AUTOINCREMENT,\n"
            f"    {q(login_column)} VARCHAR(255) NOT NULL UNIQUE,\n"
            f"    {q(password_column)} VARCHAR(255) NOT NULL,\n"
            f"    {q('created_at')} DATETIME DEFAULT CURRENT_TIMESTAMP,\n"
            f"    {q('updated_at')} DATETIME DEFAULT CURRENT_TIMESTAMP\n"
            f")"
        )

    def add_timestamp_column_ddl(self, table: str, column: str) -> str:
        q = self.quote_identifier
        return f"ALTER TABLE {q(table)} ADD COLUMN {q(column)} DATETIME"

    def timestamp_value(self, moment: Optional[datetime] = None) -> str:
        # Same text form as CURRENT_TIMESTAMP so values compare as strings.
        return db_timestamp(moment)


def _as_default(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def create_memory_adapter(**kwargs: Any) -> SQLiteAdapter:
    """
    Create an in-memory SQLite adapter for testing.

    In-memory databases are ephemeral; data is lost when the adapter
    disconnects.
    """
    return SQLiteAdapter(
        ConnectionDescriptor(engine=DatabaseEngine.SQLITE, database=":memory:"),
        echo=False,
        **kwargs
    )
