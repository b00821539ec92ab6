# =============================================================================
# ADAPTIVE AUTH - DATABASE BASE MODULE
# =============================================================================
# File: db/base.py
# Description: Engine-agnostic adapter contract plus the shared SQLAlchemy
#              plumbing; subclasses add catalogue queries and DDL per dialect
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
)

from adaptive_auth.core.exceptions import (
    ConnectivityError,
    DatabaseError,
    DatabaseIntegrityError,
    DatabaseQueryError,
)
from adaptive_auth.db.models import (
    ColumnDescriptor,
    ConnectionDescriptor,
    DatabaseEngine,
    OnUpdateStrategy,
)
from adaptive_auth.utils.helpers import utc_now, validate_identifier

logger = logging.getLogger(__name__)


# Fragments of driver messages meaning the server went away, as opposed to
# a bad statement.
_CONNECTIVITY_MARKERS = (
    "can't connect",
    "could not connect",
    "connection refused",
    "connection reset",
    "connection is closed",
    "lost connection",
    "server has gone away",
    "unable to open database",
    "name or service not known",
    "timeout expired",
)


def is_connectivity_error(exc: BaseException) -> bool:
    """Tell a lost/unreachable server apart from an ordinary query failure."""
    if isinstance(exc, (OSError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, InterfaceError):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _CONNECTIVITY_MARKERS)
    return False


# =============================================================================
# ADAPTER CONTRACT
# =============================================================================

class IDBAdapter(ABC):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    DATABASE ADAPTER CONTRACT                             │
    │  What the engine, the introspector and the gateway may ask of any       │
    │  back end, whichever of MySQL, SQLite or PostgreSQL serves the table    │
    └─────────────────────────────────────────────────────────────────────────┘

    The adapter owns the SQLAlchemy async engine and also acts as the
    engine strategy: it knows how its dialect lists tables, describes
    columns, quotes identifiers and writes the DDL for the user table.

    Lifecycle is connect() then disconnect(); every statement goes through
    get_session() or the fetch/execute helpers built on it.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the pool and run ``SELECT 1``; ConnectivityError on failure."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session committed on clean exit, rolled back otherwise."""
        pass

    @abstractmethod
    async def execute(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Execute a raw SQL statement with bound parameters."""
        pass

    # -------------------------------------------------------------------------
    # ENGINE STRATEGY
    # -------------------------------------------------------------------------

    @abstractmethod
    def build_url(self) -> URL:
        """Build the async SQLAlchemy URL for this engine."""
        pass

    @abstractmethod
    def table_exists_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        """SQL returning a non-zero scalar when ``table`` exists."""
        pass

    @abstractmethod
    def describe_columns_query(self, table: str) -> tuple[str, Dict[str, Any]]:
        """SQL returning one row per column of ``table``, in table order."""
        pass

    @abstractmethod
    def normalize_columns(self, rows: Sequence[Mapping[str, Any]]) -> List[ColumnDescriptor]:
        """Convert engine-specific metadata rows into column descriptors."""
        pass

    @abstractmethod
    def create_table_ddl(self, table: str, login_column: str, password_column: str) -> str:
        """CREATE TABLE statement for a fresh user table."""
        pass

    @abstractmethod
    def add_timestamp_column_ddl(self, table: str, column: str) -> str:
        """ALTER TABLE statement adding ``created_at`` or ``updated_at``."""
        pass


# =============================================================================
# SHARED SQLALCHEMY PLUMBING
# =============================================================================

class BaseDBAdapter(IDBAdapter):
    """
    Engine, session factory and error translation common to every dialect.

    Subclasses set ``engine_type``, ``driver`` and the class-level DDL
    hints, and implement URL building plus the catalogue queries.
    """

    engine_type: DatabaseEngine
    driver: str = ""
    identifier_quote: str = '"'
    on_update_strategy: OnUpdateStrategy = OnUpdateStrategy.APPLICATION

    def __init__(self, descriptor: ConnectionDescriptor, **engine_options: Any):
        self.descriptor = descriptor
        self._engine_options = engine_options
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._is_connected = False

    async def connect(self) -> None:
        """
        Create async engine and session factory, then run ``SELECT 1``.

        Raises:
            ConnectivityError: If the server is unreachable or refuses the
                credentials
        """
        if self._is_connected:
            return

        self._engine = create_async_engine(
            self.build_url(),
            **self._engine_options
        )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.error(f"Connection to {self.engine_type.value} database failed: {e}")
            raise ConnectivityError(
                details={
                    "engine": self.engine_type.value,
                    "database": self.descriptor.database,
                    "error": str(e),
                }
            ) from e

        self._is_connected = True
        logger.info(
            f"Connected to {self.engine_type.value} database "
            f"'{self.descriptor.database}'"
        )

    async def disconnect(self) -> None:
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._is_connected = False

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self._session_factory:
            await self.connect()

        session = self._session_factory()  # type: ignore
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # -------------------------------------------------------------------------
    # STATEMENT EXECUTION
    # -------------------------------------------------------------------------

    def translate_error(self, exc: SQLAlchemyError) -> Exception:
        """Map a driver failure onto the application exception hierarchy."""
        details = {"engine": self.engine_type.value, "error": str(exc)}
        if is_connectivity_error(exc):
            return ConnectivityError(details=details)
        if isinstance(exc, IntegrityError):
            return DatabaseIntegrityError(details=details)
        return DatabaseQueryError(details=details)

    async def execute(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Execute a statement in its own transaction.

        Returns:
            int: Number of affected rows (-1 when the driver cannot tell)

        Raises:
            ConnectivityError: If the connection is lost
            DatabaseIntegrityError: On constraint violations
            DatabaseQueryError: On any other failure
        """
        try:
            async with self.get_session() as session:
                result = await session.execute(text(query), params or {})
                return result.rowcount
        except (SQLAlchemyError, OSError) as e:
            raise self.translate_error(e) from e

    async def execute_many(self, statements: Sequence[str]) -> None:
        """Run several parameterless statements in a single transaction."""
        if not self._engine:
            await self.connect()
        try:
            async with self._engine.begin() as conn:  # type: ignore
                for statement in statements:
                    await conn.execute(text(statement))
        except (SQLAlchemyError, OSError) as e:
            raise self.translate_error(e) from e

    async def fetch_all(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Execute a query and return every row as a plain dict."""
        try:
            async with self.get_session() as session:
                result = await session.execute(text(query), params or {})
                return [dict(row) for row in result.mappings().all()]
        except (SQLAlchemyError, OSError) as e:
            raise self.translate_error(e) from e

    async def fetch_one(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Execute a query and return the first row, or None."""
        try:
            async with self.get_session() as session:
                result = await session.execute(text(query), params or {})
                row = result.mappings().first()
                return dict(row) if row is not None else None
        except (SQLAlchemyError, OSError) as e:
            raise self.translate_error(e) from e

    async def fetch_scalar(
        self,
        query: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Execute a query and return the first column of the first row."""
        try:
            async with self.get_session() as session:
                result = await session.execute(text(query), params or {})
                return result.scalar()
        except (SQLAlchemyError, OSError) as e:
            raise self.translate_error(e) from e

    async def ping(self) -> bool:
        """``SELECT 1`` round-trip used by the readiness endpoint."""
        try:
            await self.fetch_scalar("SELECT 1")
            return True
        except (DatabaseError, RuntimeError):
            return False

    # -------------------------------------------------------------------------
    # IDENTIFIERS & TIMESTAMPS
    # -------------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Validate and quote a table or column name for this dialect."""
        validate_identifier(name)
        q = self.identifier_quote
        return f"{q}{name}{q}"

    def timestamp_value(self, moment: Optional[datetime] = None) -> Any:
        """
        Bind value for a DATETIME/TIMESTAMP column.

        Drivers with native datetime support get a naive UTC datetime.
        """
        return (moment or utc_now()).replace(tzinfo=None, microsecond=0)

    # -------------------------------------------------------------------------
    # OPTIONAL TRIGGER SUPPORT
    # -------------------------------------------------------------------------

    def touch_trigger_exists_query(self, table: str) -> Optional[tuple[str, Dict[str, Any]]]:
        """Query telling whether the ``updated_at`` trigger exists."""
        return None

    def touch_trigger_ddl(self, table: str) -> List[str]:
        """Statements (re)creating the ``updated_at`` trigger, if any."""
        return []

    # -------------------------------------------------------------------------
    # PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._is_connected
