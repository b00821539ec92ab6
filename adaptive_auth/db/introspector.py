# =============================================================================
# ADAPTIVE AUTH - SCHEMA INTROSPECTOR
# =============================================================================
# File: db/introspector.py
# Description: Runtime discovery of table structure across engines
#              Produces engine-neutral column descriptors and catalogues
# =============================================================================

from typing import Dict, List, Optional, Sequence, Tuple
import logging

from adaptive_auth.core.exceptions import (
    ConnectivityError,
    DatabaseQueryError,
    SchemaError,
)
from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.db.models import (
    ColumnDescriptor,
    SchemaCatalogue,
    derive_mandatory_fields,
)
from adaptive_auth.utils.helpers import validate_identifier

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SCHEMA INTROSPECTOR                                   │
    │  Asks the database what a table looks like and normalizes the answer    │
    └─────────────────────────────────────────────────────────────────────────┘

    Each adapter supplies its own metadata query and row normalizer; the
    introspector only sequences them and caches the resulting catalogues.
    The cache belongs to this instance and is dropped with ``invalidate()``
    after any DDL.

    Example:
        introspector = SchemaIntrospector(adapter)
        if await introspector.table_exists("utilisateur"):
            catalogue = await introspector.load_catalogue(
                "utilisateur", "login", "mot_de_passe"
            )
            print(catalogue.mandatory_fields)
    """

    def __init__(self, adapter: BaseDBAdapter):
        self._adapter = adapter
        self._cache: Dict[Tuple[str, str, str], SchemaCatalogue] = {}

    @property
    def adapter(self) -> BaseDBAdapter:
        return self._adapter

    async def table_exists(self, table: str) -> bool:
        """
        Check whether ``table`` exists in the connected database.

        Raises:
            ConnectivityError: If the server is unreachable
            SchemaError: If the metadata query itself fails
        """
        validate_identifier(table, "table")
        query, params = self._adapter.table_exists_query(table)
        try:
            count = await self._adapter.fetch_scalar(query, params)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            raise SchemaError(
                message=f"Could not check whether table '{table}' exists",
                details=e.details,
            ) from e
        return bool(count)

    async def describe_columns(self, table: str) -> List[ColumnDescriptor]:
        """
        Describe the columns of ``table`` in table order.

        Returns:
            List[ColumnDescriptor]: Empty when the table does not exist

        Raises:
            ConnectivityError: If the server is unreachable
            SchemaError: If the metadata query fails for another reason
        """
        if not await self.table_exists(table):
            return []

        query, params = self._adapter.describe_columns_query(table)
        try:
            rows = await self._adapter.fetch_all(query, params)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            raise SchemaError(
                message=f"Could not describe table '{table}'",
                details=e.details,
            ) from e
        return self._adapter.normalize_columns(rows)

    @staticmethod
    def derive_mandatory_fields(
        columns: Sequence[ColumnDescriptor],
        login_column: str,
        password_column: str,
    ) -> List[str]:
        """Pure mandatory-field derivation; see ``db.models``."""
        return derive_mandatory_fields(columns, login_column, password_column)

    async def load_catalogue(
        self,
        table: str,
        login_column: str,
        password_column: str,
        refresh: bool = False,
    ) -> SchemaCatalogue:
        """
        Build (or return the cached) catalogue for ``table``.

        Args:
            table: Table name
            login_column: Column holding the login
            password_column: Column holding the password hash
            refresh: Bypass the cache

        Returns:
            SchemaCatalogue: Columns plus derived mandatory fields
        """
        key = (table, login_column, password_column)
        if not refresh and key in self._cache:
            return self._cache[key]

        columns = await self.describe_columns(table)
        catalogue = SchemaCatalogue(
            table_name=table,
            login_column=login_column,
            password_column=password_column,
            columns=columns,
        )
        if columns:
            self._cache[key] = catalogue
        logger.debug(
            f"Loaded schema for '{table}': {len(columns)} columns, "
            f"mandatory={catalogue.mandatory_fields}"
        )
        return catalogue

    def invalidate(self, table: Optional[str] = None) -> None:
        """Forget cached catalogues (all of them, or those of one table)."""
        if table is None:
            self._cache.clear()
            return
        for key in [k for k in self._cache if k[0] == table]:
            del self._cache[key]
