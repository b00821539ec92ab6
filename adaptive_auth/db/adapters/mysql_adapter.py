# =============================================================================
# ADAPTIVE AUTH - MYSQL ADAPTER
# =============================================================================
# File: db/adapters/mysql_adapter.py
# Description: MySQL / MariaDB database adapter
#              Uses aiomysql for async operations with SQLAlchemy
# =============================================================================

from typing import Any, Dict, List, Mapping, Sequence

from sqlalchemy.engine import URL

from adaptive_auth.core.config import settings
from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.db.models import (
    ColumnDescriptor,
    ConnectionDescriptor,
    DatabaseEngine,
    OnUpdateStrategy,
)
from adaptive_auth.utils.helpers import validate_identifier


class MySQLAdapter(BaseDBAdapter):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    MYSQL DATABASE ADAPTER                                │
    │  Async MySQL/MariaDB implementation using the aiomysql driver           │
    └─────────────────────────────────────────────────────────────────────────┘

    Dialect notes:
        - Metadata comes from ``information_schema`` scoped to ``DATABASE()``
        - Auto-increment is read from the ``extra`` column
        - ``updated_at`` is refreshed natively with ON UPDATE CURRENT_TIMESTAMP
        - Identifiers are quoted with backticks
    """

    engine_type = DatabaseEngine.MYSQL
    driver = "mysql+aiomysql"
    identifier_quote = "`"
    on_update_strategy = OnUpdateStrategy.NATIVE

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        **kwargs: Any
    ):
        """
        Initialize MySQL adapter with connection pool.

        Engine Options:
            - pool_recycle: int - MySQL drops idle connections after
              wait_timeout, so connections are recycled hourly
            - pool_pre_ping: bool - Test connections before use
            - echo: bool - Log SQL queries
        """
        default_options = {
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "echo": settings.db_echo,
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
            query={"charset": d.charset},
        )

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    def table_exists_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        return (
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_name = :table",
            {"table": table},
        )

    def describe_columns_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        return (
            "SELECT column_name AS name, column_type AS declared_type, "
            "is_nullable AS is_nullable, column_default AS default_value, "
            "extra AS extra, column_key AS column_key "
            "FROM information_schema.columns "
            "WHERE table_schema = DATABASE() AND table_name = :table "
            "ORDER BY ordinal_position",
            {"table": table},
        )

    def normalize_columns(self, rows: Sequence[Mapping[str, Any]]) -> List[ColumnDescriptor]:
        columns = []
        for row in rows:
            default = row["default_value"]
            # MariaDB reports "no default" on nullable columns as the string NULL
            if default is not None and str(default).upper() == "NULL":
                default = None
            columns.append(ColumnDescriptor(
                name=row["name"],
                declared_type=str(row["declared_type"] or "").upper(),
                nullable=str(row["is_nullable"]).upper() == "YES",
                default_value=None if default is None else str(default),
                is_auto_increment="auto_increment" in str(row["extra"] or "").lower(),
                is_primary_key=str(row["column_key"] or "").upper() == "PRI",
            ))
        return columns

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_table_ddl(self, table: str, login_column: str, password_column: str) -> str:
        q = self.quote_identifier
        return (
            f"CREATE TABLE IF NOT EXISTS {q(table)} (\n"
            f"    {q('id')} INT AUTO_INCREMENT PRIMARY KEY,\n"
            f"    {q(login_column)} VARCHAR(255) NOT NULL UNIQUE,\n"
            f"    {q(password_column)} VARCHAR(255) NOT NULL,\n"
            f"    {q('created_at')} TIMESTAMP DEFAULT CURRENT_TIMESTAMP,\n"
            f"    {q('updated_at')} TIMESTAMP DEFAULT CURRENT_TIMESTAMP "
            f"ON UPDATE CURRENT_TIMESTAMP\n"
            f") ENGINE=InnoDB DEFAULT CHARSET={validate_identifier(self.descriptor.charset, 'charset')}"
        )

    def add_timestamp_column_ddl(self, table: str, column: str) -> str:
        q = self.quote_identifier
        clause = "TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
        if column == "updated_at":
            clause += " ON UPDATE CURRENT_TIMESTAMP"
        return f"ALTER TABLE {q(table)} ADD COLUMN {q(column)} {clause}"
