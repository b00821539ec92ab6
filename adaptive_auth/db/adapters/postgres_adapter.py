# =============================================================================
# ADAPTIVE AUTH - POSTGRESQL ADAPTER
# =============================================================================
# File: db/adapters/postgres_adapter.py
# Description: PostgreSQL database adapter
#              Uses asyncpg for high-performance async operations
# =============================================================================

from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.engine import URL

from adaptive_auth.core.config import settings
from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.db.models import (
    ColumnDescriptor,
    ConnectionDescriptor,
    DatabaseEngine,
    OnUpdateStrategy,
)


class PostgresAdapter(BaseDBAdapter):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    POSTGRESQL DATABASE ADAPTER                           │
    │  Async PostgreSQL implementation using the asyncpg driver               │
    └─────────────────────────────────────────────────────────────────────────┘

    Dialect notes:
        - Metadata comes from ``information_schema`` scoped to
          ``current_schema()``
        - SERIAL columns are detected by their ``nextval(...)`` default,
          identity columns by ``is_identity``
        - ``updated_at`` is refreshed by a BEFORE UPDATE trigger calling a
          plpgsql function, created once per table

    Connection Pool Configuration:
        - pool_size:     Initial connections (default: 5)
        - max_overflow:  Extra connections allowed (default: 10)
        - pool_recycle:  Recycle connections after (default: 1800s)
    """

    engine_type = DatabaseEngine.POSTGRES
    driver = "postgresql+asyncpg"
    identifier_quote = '"'
    on_update_strategy = OnUpdateStrategy.TRIGGER

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        **kwargs: Any
    ):
        """
        Initialize PostgreSQL adapter with connection pool.

        Args:
            descriptor: Connection parameters
            **kwargs: Additional engine options overriding defaults
        """
        default_options = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
            "echo": settings.db_echo,
            "connect_args": {
                "command_timeout": 60,
                # Cached plans go stale when convention columns are added.
                "prepared_statement_cache_size": 0,
            },
        }
        default_options.update(kwargs)
        super().__init__(descriptor, **default_options)

    def build_url(self) -> URL:
        d = self.descriptor
        return URL.create(
            self.driver,
            username=d.username,
            password=d.password or None,
            host=d.host,
            port=d.effective_port,
            database=d.database,
        )

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    def table_exists_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        return (
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = :table",
            {"table": table},
        )

    def describe_columns_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        return (
            "SELECT column_name AS name, data_type AS data_type, "
            "character_maximum_length AS max_length, is_nullable AS is_nullable, "
            "column_default AS default_value, is_identity AS is_identity "
            "FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = :table "
            "ORDER BY ordinal_position",
            {"table": table},
        )

    def normalize_columns(self, rows: Sequence[Mapping[str, Any]]) -> List[ColumnDescriptor]:
        columns = []
        for row in rows:
            declared_type = str(row["data_type"] or "").upper()
            if row["max_length"]:
                declared_type = f"{declared_type}({row['max_length']})"
            default = row["default_value"]
            is_serial = default is not None and str(default).startswith("nextval(")
            is_identity = str(row["is_identity"] or "").upper() == "YES"
            columns.append(ColumnDescriptor(
                name=row["name"],
                declared_type=declared_type,
                nullable=str(row["is_nullable"]).upper() == "YES",
                default_value=None if default is None else str(default),
                is_auto_increment=is_serial or is_identity,
            ))
        return columns

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_table_ddl(self, table: str, login_column: str, password_column: str) -> str:
        q = self.quote_identifier
        return (
            f"CREATE TABLE IF NOT EXISTS {q(table)} (\n"
            f"    {q('id')} SERIAL PRIMARY KEY,\n"
            f"    {q(login_column)} VARCHAR(255) NOT NULL UNIQUE,\n"
            f"    {q(password_column)} VARCHAR(255) NOT NULL,\n"
            f"    {q('created_at')} TIMESTAMP DEFAULT CURRENT_TIMESTAMP,\n"
            f"    {q('updated_at')} TIMESTAMP DEFAULT CURRENT_TIMESTAMP\n"
            f")"
        )

    def add_timestamp_column_ddl(self, table: str, column: str) -> str:
        q = self.quote_identifier
        return (
            f"ALTER TABLE {q(table)} ADD COLUMN IF NOT EXISTS {q(column)} "
            f"TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
        )

    # -------------------------------------------------------------------------
    # UPDATED_AT TRIGGER
    # -------------------------------------------------------------------------

    @staticmethod
    def touch_function_name(table: str) -> str:
        return f"{table}_touch_updated_at"

    @staticmethod
    def touch_trigger_name(table: str) -> str:
        return f"trg_{table}_updated_at"

    def touch_trigger_exists_query(self, table: str) -> Optional[tuple[str, Dict[str, Any]]]:
        return (
            "SELECT COUNT(*) FROM pg_trigger t "
            "JOIN pg_class c ON c.oid = t.tgrelid "
            "WHERE t.tgname = :trigger AND c.relname = :table AND NOT t.tgisinternal",
            {"trigger": self.touch_trigger_name(table), "table": table},
        )

    def touch_trigger_ddl(self, table: str) -> List[str]:
        q = self.quote_identifier
        function = q(self.touch_function_name(table))
        trigger = q(self.touch_trigger_name(table))
        return [
            f"CREATE OR REPLACE FUNCTION {function}() RETURNS TRIGGER AS $$\n"
            f"BEGIN\n"
            f"    NEW.updated_at = CURRENT_TIMESTAMP;\n"
            f"    RETURN NEW;\n"
            f"END;\n"
            f"$$ LANGUAGE plpgsql",
            f"DROP TRIGGER IF EXISTS {trigger} ON {q(table)}",
            f"CREATE TRIGGER {trigger} BEFORE UPDATE ON {q(table)} "
            f"FOR EACH ROW EXECUTE PROCEDURE {function}()",
        ]
