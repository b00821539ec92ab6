# =============================================================================
# ADAPTIVE AUTH - USER REPOSITORY
# =============================================================================
# File: auth/repository.py
# Description: Data access layer for rows of the configured user table
#              Parameterized SQL built from validated identifiers
# =============================================================================

from typing import Any, Dict, Mapping, Optional

from adaptive_auth.db.base import BaseDBAdapter


class UserRepository:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    USER REPOSITORY                                       │
    │  Reads and writes account rows whatever the table looks like            │
    └─────────────────────────────────────────────────────────────────────────┘

    Table and column names are quoted by the adapter (which also validates
    them); every value is a bound parameter.

    Args:
        adapter: Connected database adapter
        table: User table name
        login_column: Column holding the login
    """

    def __init__(self, adapter: BaseDBAdapter, table: str, login_column: str):
        self._adapter = adapter
        self._q = adapter.quote_identifier
        self._table = self._q(table)
        self._login_column = login_column

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_login(self, login: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the row whose login equals ``login`` exactly.

        Case-insensitive collations (MySQL's default) may return a row
        differing in case; such rows are not considered a match.
        """
        row = await self._adapter.fetch_one(
            f"SELECT * FROM {self._table} WHERE {self._q(self._login_column)} = :login",
            {"login": login},
        )
        if row is None or row.get(self._login_column) != login:
            return None
        return row

    async def get_by_column(self, column: str, value: Any) -> Optional[Dict[str, Any]]:
        return await self._adapter.fetch_one(
            f"SELECT * FROM {self._table} WHERE {self._q(column)} = :value",
            {"value": value},
        )

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def insert(self, values: Mapping[str, Any]) -> int:
        """
        Insert one row.

        Raises:
            DatabaseIntegrityError: On a uniqueness or NOT NULL violation
        """
        columns = ", ".join(self._q(name) for name in values)
        placeholders = ", ".join(f":p{i}" for i in range(len(values)))
        params = {f"p{i}": value for i, value in enumerate(values.values())}
        return await self._adapter.execute(
            f"INSERT INTO {self._table} ({columns}) VALUES ({placeholders})",
            params,
        )

    async def update_by_login(self, login: str, values: Mapping[str, Any]) -> int:
        """
        Update the row of ``login``.

        Returns:
            int: Affected rows (0 if the login does not exist)
        """
        assignments = ", ".join(
            f"{self._q(name)} = :p{i}" for i, name in enumerate(values)
        )
        params = {f"p{i}": value for i, value in enumerate(values.values())}
        params["login"] = login
        return await self._adapter.execute(
            f"UPDATE {self._table} SET {assignments} "
            f"WHERE {self._q(self._login_column)} = :login",
            params,
        )

    async def delete_by_login(self, login: str) -> int:
        return await self._adapter.execute(
            f"DELETE FROM {self._table} WHERE {self._q(self._login_column)} = :login",
            {"login": login},
        )
