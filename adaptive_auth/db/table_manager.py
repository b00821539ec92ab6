# =============================================================================
# ADAPTIVE AUTH - TABLE MANAGER
# =============================================================================
# File: db/table_manager.py
# Description: Idempotent creation and upgrade of the user table
#              Dialect-specific DDL comes from the adapter
# =============================================================================

from typing import Any, Protocol
import logging

from adaptive_auth.core.exceptions import (
    ConnectivityError,
    DatabaseQueryError,
    SchemaError,
)
from adaptive_auth.db.introspector import SchemaIntrospector
from adaptive_auth.db.models import (
    CONVENTION_COLUMNS,
    OnUpdateStrategy,
    SchemaCatalogue,
)
from adaptive_auth.utils.helpers import validate_identifier

logger = logging.getLogger(__name__)


class TableMapping(Protocol):
    table_name: str
    login_column: str
    password_column: str
    auto_create_table: bool


class SchemaAdaptiveTableManager:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SCHEMA-ADAPTIVE TABLE MANAGER                         │
    │  Creates the user table when missing and adds timestamp columns         │
    └─────────────────────────────────────────────────────────────────────────┘

    Every operation checks before it writes, so running setup twice is a
    no-op: the table is created only when absent, a timestamp column is
    added only when missing and the PostgreSQL trigger is only installed
    when it cannot be found.
    """

    def __init__(self, introspector: SchemaIntrospector):
        self._introspector = introspector
        self._adapter = introspector.adapter

    async def ensure_table_exists(self, mapping: TableMapping) -> bool:
        """
        Create the user table if it does not exist.

        Args:
            mapping: Table and column names plus the auto-create flag

        Returns:
            bool: True if the table was created by this call

        Raises:
            ConfigurationError: If a name is not a plain identifier
            SchemaError: If the table is absent and auto-create is disabled,
                or if CREATE TABLE fails
        """
        table = validate_identifier(mapping.table_name, "table")
        login_column = validate_identifier(mapping.login_column, "column")
        password_column = validate_identifier(mapping.password_column, "column")

        if await self._introspector.table_exists(table):
            return False

        if not mapping.auto_create_table:
            raise SchemaError(
                message=f"Table '{table}' does not exist and automatic creation is disabled",
                details={"table": table},
            )

        ddl = self._adapter.create_table_ddl(table, login_column, password_column)
        try:
            await self._adapter.execute(ddl)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            raise SchemaError(
                message=f"Could not create table '{table}'",
                details=e.details,
            ) from e

        self._introspector.invalidate(table)
        logger.info(f"Created table '{table}' ({self._adapter.engine_type.value})")
        return True

    async def ensure_convention_columns(self, catalogue: SchemaCatalogue) -> SchemaCatalogue:
        """
        Add missing ``created_at``/``updated_at`` columns and, on engines that
        need one, the trigger keeping ``updated_at`` current.

        Failures are logged as warnings and do not abort setup.

        Returns:
            SchemaCatalogue: Catalogue reloaded if anything changed
        """
        table = catalogue.table_name
        changed = False

        for column in CONVENTION_COLUMNS:
            if catalogue.has_column(column):
                continue
            try:
                await self._adapter.execute(
                    self._adapter.add_timestamp_column_ddl(table, column)
                )
                changed = True
                logger.info(f"Added column '{column}' to '{table}'")
            except ConnectivityError:
                raise
            except DatabaseQueryError as e:
                logger.warning(f"Could not add column '{column}' to '{table}': {e.details}")

        if self._adapter.on_update_strategy is OnUpdateStrategy.TRIGGER:
            has_updated_at = catalogue.has_column("updated_at") or changed
            if has_updated_at:
                changed = await self._ensure_touch_trigger(table) or changed

        if not changed:
            return catalogue

        self._introspector.invalidate(table)
        return await self._introspector.load_catalogue(
            table, catalogue.login_column, catalogue.password_column, refresh=True
        )

    async def _ensure_touch_trigger(self, table: str) -> bool:
        existence_check = self._adapter.touch_trigger_exists_query(table)
        statements = self._adapter.touch_trigger_ddl(table)
        if existence_check is None or not statements:
            return False
        try:
            query, params = existence_check
            if await self._adapter.fetch_scalar(query, params):
                return False
            await self._adapter.execute_many(statements)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            logger.warning(f"Could not install updated_at trigger on '{table}': {e.details}")
            return False
        logger.info(f"Installed updated_at trigger on '{table}'")
        return True

    async def ensure(self, mapping: Any) -> SchemaCatalogue:
        """
        Full setup: table, catalogue, convention columns.

        Raises:
            SchemaError: If the table is still missing afterwards
        """
        await self.ensure_table_exists(mapping)
        catalogue = await self._introspector.load_catalogue(
            mapping.table_name, mapping.login_column, mapping.password_column
        )
        if not catalogue.exists:
            raise SchemaError(
                message=f"Table '{mapping.table_name}' could not be found",
                details={"table": mapping.table_name},
            )
        return await self.ensure_convention_columns(catalogue)
