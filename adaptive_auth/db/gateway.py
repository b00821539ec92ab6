# =============================================================================
# ADAPTIVE AUTH - TABLE GATEWAY
# =============================================================================
# File: db/gateway.py
# Description: Generic CRUD helper bound to one table
#              Validates payloads against the introspected column metadata
# =============================================================================

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from pathlib import Path
import csv
import json
import logging
import re

from adaptive_auth.core.exceptions import (
    ConnectivityError,
    DatabaseQueryError,
    ValidationError,
)
from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.db.introspector import SchemaIntrospector
from adaptive_auth.db.models import ColumnDescriptor, SchemaCatalogue
from adaptive_auth.utils.helpers import row_to_dict, utc_now, validate_identifier

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# TYPE CATEGORIES
# -----------------------------------------------------------------------------

_INTEGER_TYPES = {"INT", "INTEGER", "SMALLINT", "BIGINT", "TINYINT", "MEDIUMINT",
                  "SERIAL", "BIGSERIAL", "SMALLSERIAL"}
_FLOAT_TYPES = {"DECIMAL", "NUMERIC", "FLOAT", "DOUBLE", "DOUBLE PRECISION", "REAL"}
_BOOLEAN_TYPES = {"BOOLEAN", "BOOL", "BIT"}
_STRING_TYPES = {"VARCHAR", "CHAR", "CHARACTER VARYING", "CHARACTER", "NVARCHAR", "NCHAR"}

SQL_KEYWORDS = ("SELECT", "INSERT", "UPDATE", "DELETE", "FROM", "WHERE", "JOIN")

# ":name" but not the "::type" cast syntax
_NAMED_PARAM = re.compile(r"(?<![:\w]):([A-Za-z_][A-Za-z0-9_]*)")
_POSITIONAL_PARAM = re.compile(r"\?")
_KEYWORD_PATTERN = re.compile(r"\b(" + "|".join(SQL_KEYWORDS) + r")\b", re.IGNORECASE)


def type_category(column: ColumnDescriptor) -> str:
    """Map a declared SQL type onto integer / float / boolean / string."""
    base = column.base_type
    if base.startswith("UNSIGNED"):
        base = base.split()[-1]
    first_word = base.split()[0] if base else ""
    if base in _INTEGER_TYPES or first_word in _INTEGER_TYPES:
        return "integer"
    if base in _FLOAT_TYPES or first_word in _FLOAT_TYPES:
        return "float"
    if base in _BOOLEAN_TYPES:
        return "boolean"
    return "string"


def _matches_category(value: Any, category: str) -> bool:
    if category == "integer":
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        try:
            return float(str(value)).is_integer()
        except ValueError:
            return False
    if category == "float":
        if isinstance(value, bool):
            return False
        try:
            float(str(value))
            return True
        except ValueError:
            return False
    if category == "boolean":
        return isinstance(value, bool) or value in (0, 1, "0", "1")
    return isinstance(value, (str, int, float))


class TableGateway:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    TABLE GATEWAY                                         │
    │  CRUD, counting, sorting, paging and CSV/JSON import-export for one     │
    │  table, with payload validation driven by the live schema               │
    └─────────────────────────────────────────────────────────────────────────┘

    Conditions are column → value mappings combined with AND; every column
    name is checked against the table and every value is bound.

    Recoverable failures (validation, bad query) are recorded in
    ``errors()`` and reported through the return value (False, None, [] or
    0). Connectivity failures propagate.

    Example:
        gateway = TableGateway(adapter, "produits")
        await gateway.insert({"nom": "Stylo", "prix": 1.5})
        rows = await gateway.select_all(order_by="prix", descending=True)
    """

    def __init__(
        self,
        adapter: BaseDBAdapter,
        table: str,
        introspector: Optional[SchemaIntrospector] = None,
    ):
        self._adapter = adapter
        self._introspector = introspector or SchemaIntrospector(adapter)
        self._table = validate_identifier(table, "table")
        self._errors: List[Dict[str, str]] = []

    # =========================================================================
    # CONFIGURATION & STATE
    # =========================================================================

    @property
    def table(self) -> str:
        return self._table

    def set_table(self, table: str) -> None:
        """Point the gateway at another table and drop the cached schema."""
        self._table = validate_identifier(table, "table")
        self._introspector.invalidate()
        logger.info(f"Gateway table changed to '{table}'")

    async def structure(self, refresh: bool = False) -> SchemaCatalogue:
        """Catalogue of the current table (cached by the introspector)."""
        return await self._introspector.load_catalogue(
            self._table, "", "", refresh=refresh
        )

    async def is_column(self, name: str) -> bool:
        return (await self.structure()).has_column(name)

    def errors(self) -> List[str]:
        return [entry["message"] for entry in self._errors]

    def error_log(self) -> List[Dict[str, str]]:
        """Recorded errors with their timestamps."""
        return list(self._errors)

    def clear_errors(self) -> None:
        self._errors = []

    def _record(self, message: str) -> None:
        self._errors.append({"timestamp": utc_now().isoformat(), "message": message})
        logger.warning(f"[{self._table}] {message}")

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def validate_data(self, data: Mapping[str, Any]) -> bool:
        """
        Check a payload against the table: unknown columns, NULL into
        NOT NULL columns without default, type category and declared length.

        Returns:
            bool: True if every value is acceptable
        """
        catalogue = await self.structure()
        problems = []

        for name, value in data.items():
            column = catalogue.column(name)
            if column is None:
                problems.append(f"Column '{name}' does not exist in table '{self._table}'")
                continue

            if value is None:
                if not column.nullable and column.default_value is None \
                        and not column.is_auto_increment:
                    problems.append(f"Column '{name}' cannot be NULL")
                continue

            category = type_category(column)
            if not _matches_category(value, category):
                problems.append(f"Value for '{name}' has the wrong type (expected {category})")

            max_length = column.max_length
            if max_length and column.base_type in _STRING_TYPES \
                    and len(str(value)) > max_length:
                problems.append(f"Value for '{name}' exceeds the maximum length ({max_length})")

        for problem in problems:
            self._record(problem)
        return not problems

    def validate_query(self, query: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        """
        Sanity-check a hand-written statement before execution.

        The statement must contain a SQL keyword, use ``:name`` placeholders
        only, and the placeholder names must match the supplied parameters.
        """
        params = params or {}
        if not _KEYWORD_PATTERN.search(query or ""):
            self._record("Query does not contain any SQL keyword")
            return False

        if _POSITIONAL_PARAM.search(query):
            self._record("Positional '?' placeholders are not supported, use :name")
            return False

        expected = set(_NAMED_PARAM.findall(query))
        supplied = set(params)
        if expected != supplied:
            self._record(
                f"Parameter mismatch ({len(expected)} required, {len(supplied)} supplied)"
            )
            return False
        return True

    async def _checked_columns(self, names: Iterable[str]) -> bool:
        catalogue = await self.structure()
        unknown = [name for name in names if not catalogue.has_column(name)]
        for name in unknown:
            self._record(f"Column '{name}' does not exist in table '{self._table}'")
        return not unknown

    def _where_clause(self, where: Mapping[str, Any], prefix: str = "w_") -> tuple[str, Dict[str, Any]]:
        if not where:
            return "", {}
        q = self._adapter.quote_identifier
        parts = []
        params = {}
        for name, value in where.items():
            key = f"{prefix}{name}"
            if value is None:
                parts.append(f"{q(name)} IS NULL")
            else:
                parts.append(f"{q(name)} = :{key}")
                params[key] = value
        return " WHERE " + " AND ".join(parts), params

    # =========================================================================
    # CRUD OPERATIONS
    # =========================================================================

    async def insert(self, data: Mapping[str, Any]) -> bool:
        """Insert one row after validation."""
        if not data:
            self._record("Nothing to insert")
            return False
        if not await self.validate_data(data):
            return False

        q = self._adapter.quote_identifier
        columns = ", ".join(q(name) for name in data)
        values = ", ".join(f":v_{name}" for name in data)
        params = {f"v_{name}": value for name, value in data.items()}
        sql = f"INSERT INTO {q(self._table)} ({columns}) VALUES ({values})"

        if await self._run(sql, params, "Insert") is None:
            return False
        logger.info(f"[{self._table}] Row inserted")
        return True

    async def select_one(self, where: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self.select_all(where=where, limit=1)
        return rows[0] if rows else None

    async def select_all(
        self,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows matching ``where`` (all rows when omitted)."""
        where = where or {}
        names = list(where) + ([order_by] if order_by else [])
        if not await self._checked_columns(names):
            return []

        q = self._adapter.quote_identifier
        clause, params = self._where_clause(where)
        sql = f"SELECT * FROM {q(self._table)}{clause}"
        if order_by:
            sql += f" ORDER BY {q(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT :_limit"
            params["_limit"] = int(limit)
            if offset:
                sql += " OFFSET :_offset"
                params["_offset"] = int(offset)

        try:
            rows = await self._adapter.fetch_all(sql, params)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            self._record(f"Select failed: {e.details.get('error', e.message)}")
            return []
        return [row_to_dict(row) for row in rows]

    async def update(self, data: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        """
        Update rows matching ``where``.

        Returns:
            int: Number of rows changed (0 on failure)
        """
        if not data:
            self._record("Nothing to update")
            return 0
        if not where:
            self._record("Refusing to update without a condition")
            return 0
        if not await self.validate_data(data) or not await self._checked_columns(where):
            return 0

        q = self._adapter.quote_identifier
        assignments = ", ".join(f"{q(name)} = :s_{name}" for name in data)
        params = {f"s_{name}": value for name, value in data.items()}
        clause, where_params = self._where_clause(where)
        params.update(where_params)
        sql = f"UPDATE {q(self._table)} SET {assignments}{clause}"

        affected = await self._run(sql, params, "Update")
        return max(affected or 0, 0)

    async def delete(self, where: Mapping[str, Any]) -> int:
        """Delete rows matching ``where``; an empty condition is refused."""
        if not where:
            self._record("Refusing to delete without a condition")
            return 0
        if not await self._checked_columns(where):
            return 0

        clause, params = self._where_clause(where)
        sql = f"DELETE FROM {self._adapter.quote_identifier(self._table)}{clause}"
        affected = await self._run(sql, params, "Delete")
        return max(affected or 0, 0)

    async def count(self, where: Optional[Mapping[str, Any]] = None) -> int:
        where = where or {}
        if not await self._checked_columns(where):
            return 0
        clause, params = self._where_clause(where)
        sql = f"SELECT COUNT(*) FROM {self._adapter.quote_identifier(self._table)}{clause}"
        try:
            return int(await self._adapter.fetch_scalar(sql, params) or 0)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            self._record(f"Count failed: {e.details.get('error', e.message)}")
            return 0

    async def exists(self, where: Mapping[str, Any]) -> bool:
        return await self.count(where) > 0

    async def execute_query(
        self,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Run a validated custom statement.

        Returns:
            SELECT: list of rows; other statements: affected row count;
            None when validation or execution fails
        """
        params = dict(params or {})
        if not self.validate_query(query, params):
            return None
        try:
            if query.lstrip().upper().startswith("SELECT"):
                rows = await self._adapter.fetch_all(query, params)
                return [row_to_dict(row) for row in rows]
            return await self._adapter.execute(query, params)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            self._record(f"Query failed: {e.details.get('error', e.message)}")
            return None

    async def _run(self, sql: str, params: Dict[str, Any], action: str) -> Optional[int]:
        try:
            return await self._adapter.execute(sql, params)
        except ConnectivityError:
            raise
        except DatabaseQueryError as e:
            self._record(f"{action} failed: {e.details.get('error', e.message)}")
            return None

    # =========================================================================
    # IN-MEMORY HELPERS
    # =========================================================================

    def sort(
        self,
        rows: Sequence[Mapping[str, Any]],
        column: str,
        order: str = "ASC",
    ) -> List[Mapping[str, Any]]:
        """Sort already-fetched rows by one column; NULLs come first."""
        order = order.upper()
        if order not in ("ASC", "DESC"):
            self._record(f"Invalid sort order '{order}'")
            return list(rows)
        if rows and column not in rows[0]:
            self._record(f"Column '{column}' not present in data")
            return list(rows)
        return sorted(
            rows,
            key=lambda row: (row.get(column) is not None, row.get(column)),
            reverse=order == "DESC",
        )

    def paginate(
        self,
        rows: Sequence[Mapping[str, Any]],
        page: int,
        limit: int,
    ) -> List[Mapping[str, Any]]:
        """Return page ``page`` (1-based) of ``limit`` rows."""
        if limit < 1:
            self._record("Page size must be at least 1")
            return []
        page = max(page, 1)
        start = (page - 1) * limit
        return list(rows[start:start + limit])

    # =========================================================================
    # IMPORT / EXPORT
    # =========================================================================

    async def import_file(self, path: str, fmt: str = "csv") -> Dict[str, int]:
        """
        Insert every record of a CSV (header row required) or JSON (array of
        objects) file.

        Returns:
            dict: ``{"succeeded": n, "failed": m}``

        Raises:
            ValidationError: If the file is missing or the format unknown
        """
        source = Path(path)
        if not source.is_file():
            raise ValidationError(message=f"File not found: {path}")

        fmt = fmt.lower()
        if fmt == "csv":
            with source.open(newline="", encoding="utf-8") as handle:
                records = [
                    {k: (v if v != "" else None) for k, v in row.items()}
                    for row in csv.DictReader(handle)
                ]
        elif fmt == "json":
            try:
                records = json.loads(source.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ValidationError(message=f"Invalid JSON file: {e}")
            if not isinstance(records, list):
                raise ValidationError(message="JSON import expects an array of objects")
        else:
            raise ValidationError(message=f"Unsupported format: {fmt}")

        report = {"succeeded": 0, "failed": 0}
        for record in records:
            if await self.insert(record):
                report["succeeded"] += 1
            else:
                report["failed"] += 1
        logger.info(
            f"[{self._table}] Import finished: {report['succeeded']} succeeded, "
            f"{report['failed']} failed"
        )
        return report

    async def export_file(
        self,
        path: str,
        fmt: str = "csv",
        columns: Optional[Sequence[str]] = None,
    ) -> bool:
        """
        Write the whole table (optionally a subset of columns) to a file.

        Returns:
            bool: False when there is nothing to export
        """
        fmt = fmt.lower()
        if fmt not in ("csv", "json"):
            raise ValidationError(message=f"Unsupported format: {fmt}")

        rows = await self.select_all()
        if not rows:
            logger.warning(f"[{self._table}] Nothing to export")
            return False

        if columns:
            if not await self._checked_columns(columns):
                return False
            rows = [{name: row.get(name) for name in columns} for row in rows]

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "csv":
            with target.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.DictWriter(handle, fieldnames=list(rows[0]))
                writer.writeheader()
                writer.writerows(rows)
        else:
            target.write_text(
                json.dumps(rows, indent=4, ensure_ascii=False), encoding="utf-8"
            )
        logger.info(f"[{self._table}] Exported {len(rows)} rows to {path}")
        return True
