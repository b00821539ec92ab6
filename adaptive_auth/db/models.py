# =============================================================================
# ADAPTIVE AUTH - DATABASE DATA MODEL
# =============================================================================
# File: db/models.py
# Description: Engine-neutral description of connections, columns and tables
#              Every dialect normalizes its metadata into these types
# =============================================================================

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence
import re

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    computed_field,
    field_validator,
    model_validator,
)

from adaptive_auth.core.exceptions import ConfigurationError
from adaptive_auth.utils.helpers import is_valid_identifier


# =============================================================================
# ENUMERATIONS
# =============================================================================

class DatabaseEngine(str, Enum):
    """Supported database engines."""
    MYSQL = "mysql"
    SQLITE = "sqlite"
    POSTGRES = "postgres"

    @classmethod
    def parse(cls, value: Any) -> "DatabaseEngine":
        """
        Resolve an engine name, accepting the ``pgsql`` and ``postgresql``
        aliases.

        Raises:
            ConfigurationError: If the name is not a supported engine
        """
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        name = ENGINE_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ConfigurationError(
                message=f"Unsupported database engine: {value!r}",
                details={"supported": [e.value for e in cls]},
            )


ENGINE_ALIASES = {
    "pgsql": "postgres",
    "postgresql": "postgres",
    "mariadb": "mysql",
    "sqlite3": "sqlite",
}

DEFAULT_PORTS = {
    DatabaseEngine.MYSQL: 3306,
    DatabaseEngine.POSTGRES: 5432,
}


class OnUpdateStrategy(str, Enum):
    """How ``updated_at`` is refreshed when a row changes."""
    NATIVE = "native"            # column clause (MySQL ON UPDATE)
    TRIGGER = "trigger"          # BEFORE UPDATE trigger (PostgreSQL)
    APPLICATION = "application"  # engine writes the timestamp (SQLite)


# Columns never demanded from callers, whatever their constraints.
RESERVED_COLUMNS = frozenset({"id", "created_at", "updated_at"})
CONVENTION_COLUMNS = ("created_at", "updated_at")


# =============================================================================
# CONNECTION DESCRIPTOR
# =============================================================================

class ConnectionDescriptor(BaseModel):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    CONNECTION DESCRIPTOR                                 │
    │  Validated parameters for one relational database                       │
    └─────────────────────────────────────────────────────────────────────────┘

    SQLite only needs ``database`` (a file path or ``:memory:``). MySQL and
    PostgreSQL need ``host``, ``database`` and ``username``; an empty password
    is accepted for passwordless local servers.
    """

    model_config = ConfigDict(frozen=True)

    engine: DatabaseEngine
    host: Optional[str] = None
    port: Optional[int] = None
    database: str
    username: Optional[str] = None
    password: str = ""
    charset: str = "utf8mb4"

    @field_validator("engine", mode="before")
    @classmethod
    def normalize_engine(cls, v: Any) -> DatabaseEngine:
        return DatabaseEngine.parse(v)

    @field_validator("password", mode="before")
    @classmethod
    def none_password(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("charset")
    @classmethod
    def plain_charset(cls, v: str) -> str:
        # written verbatim into MySQL DDL
        if not is_valid_identifier(v):
            raise ValueError(f"invalid charset: {v!r}")
        return v

    @model_validator(mode="after")
    def check_required(self) -> "ConnectionDescriptor":
        missing = []
        if not self.database:
            missing.append("database")
        if self.engine is not DatabaseEngine.SQLITE:
            if not self.host:
                missing.append("host")
            if not self.username:
                missing.append("username")
        if missing:
            raise ValueError(f"missing connection parameters: {', '.join(missing)}")
        return self

    @property
    def effective_port(self) -> Optional[int]:
        """Configured port, or the engine's standard port."""
        return self.port or DEFAULT_PORTS.get(self.engine)

    @property
    def is_memory(self) -> bool:
        return self.engine is DatabaseEngine.SQLITE and self.database == ":memory:"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConnectionDescriptor":
        """
        Build a descriptor from a loose mapping (``sgbd``/``dbname``/``user``
        keys are accepted as synonyms).

        Raises:
            ConfigurationError: If the parameters are incomplete or invalid
        """
        values = dict(data)
        for alias, key in (("sgbd", "engine"), ("dbname", "database"),
                           ("user", "username")):
            if alias in values and key not in values:
                values[key] = values.pop(alias)
        if not values.get("port"):
            values.pop("port", None)
        try:
            return cls(**values)
        except PydanticValidationError as e:
            raise ConfigurationError(
                message="Invalid database connection parameters",
                details={"errors": [err["msg"] for err in e.errors()]},
            )

    def safe_dict(self) -> Dict[str, Any]:
        """Representation without the password, for logs and health output."""
        data = self.model_dump(exclude={"password"})
        data["engine"] = self.engine.value
        return data


# =============================================================================
# COLUMN & TABLE METADATA
# =============================================================================

_LENGTH_PATTERN = re.compile(r"\(\s*(\d+)\s*\)")


class ColumnDescriptor(BaseModel):
    """Normalized description of one column, identical across engines."""

    model_config = ConfigDict(frozen=True)

    name: str
    declared_type: str = ""
    nullable: bool = True
    default_value: Optional[str] = None
    is_auto_increment: bool = False
    is_primary_key: bool = False

    @property
    def max_length(self) -> Optional[int]:
        """Length limit parsed from types such as ``VARCHAR(255)``."""
        match = _LENGTH_PATTERN.search(self.declared_type)
        return int(match.group(1)) if match else None

    @property
    def base_type(self) -> str:
        """Upper-cased type name without size, e.g. ``VARCHAR``."""
        return self.declared_type.split("(", 1)[0].strip().upper()


def derive_mandatory_fields(
    columns: Sequence[ColumnDescriptor],
    login_column: str,
    password_column: str,
) -> List[str]:
    """
    List the columns a caller must supply when creating an account.

    A column is mandatory when it is NOT NULL, has no default, is not
    auto-increment and is neither the login/password column nor one of
    ``id``, ``created_at``, ``updated_at``. Table order is preserved.
    """
    excluded = RESERVED_COLUMNS | {login_column, password_column}
    return [
        column.name
        for column in columns
        if not column.nullable
        and column.default_value is None
        and not column.is_auto_increment
        and column.name not in excluded
    ]


class SchemaCatalogue(BaseModel):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SCHEMA CATALOGUE                                      │
    │  Ordered columns of the user table plus the mandatory-field list        │
    └─────────────────────────────────────────────────────────────────────────┘

    ``mandatory_fields`` is always computed from ``columns``; it cannot be set
    or drift from the column list.
    """

    model_config = ConfigDict(frozen=True)

    table_name: str
    login_column: str
    password_column: str
    columns: List[ColumnDescriptor] = Field(default_factory=list)

    @computed_field
    @property
    def mandatory_fields(self) -> List[str]:
        return derive_mandatory_fields(
            self.columns, self.login_column, self.password_column
        )

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    @property
    def exists(self) -> bool:
        return bool(self.columns)

    def has_column(self, name: str) -> bool:
        return any(column.name == name for column in self.columns)

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        """Column name to attribute mapping, in table order."""
        return {
            column.name: column.model_dump(exclude={"name"})
            for column in self.columns
        }
