# =============================================================================
# ADAPTIVE AUTH - UTILITIES
# =============================================================================
# File: utils/helpers.py
# Description: Common utility functions used across the application
# =============================================================================

from typing import Any, Dict, Mapping, Optional
from datetime import date, datetime, timezone
from decimal import Decimal
import json
import re

from adaptive_auth.core.exceptions import ConfigurationError


IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """
    Get current UTC timestamp.

    Returns:
        datetime: Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def db_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a timestamp the way SQL engines store DATETIME literals.

    Example: 2024-05-01 13:37:00
    """
    return (moment or utc_now()).strftime(DB_TIMESTAMP_FORMAT)


def is_valid_identifier(name: Any) -> bool:
    """Check that a table/column name is a plain SQL identifier."""
    return isinstance(name, str) and bool(IDENTIFIER_PATTERN.match(name))


def validate_identifier(name: Any, kind: str = "identifier") -> str:
    """
    Ensure a name can be interpolated into DDL/DML safely.

    Args:
        name: Candidate table or column name
        kind: Label used in the error message

    Returns:
        str: The unchanged name

    Raises:
        ConfigurationError: If the name contains anything but letters,
            digits and underscores or starts with a digit
    """
    if not is_valid_identifier(name):
        raise ConfigurationError(
            message=f"Invalid {kind} name: {name!r}",
            details={"kind": kind, "value": str(name)},
        )
    return name


def mask_ip(ip: str) -> str:
    """
    Mask IP address for privacy.

    Example: 192.168.1.100 -> 192.168.x.x

    Args:
        ip: IP address to mask

    Returns:
        str: Masked IP
    """
    if ":" in ip:  # IPv6
        parts = ip.split(":")
        if len(parts) >= 2:
            return f"{parts[0]}:{parts[1]}:xxxx:xxxx"
        return ip

    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.x.x"
    return ip


def to_jsonable(value: Any) -> Any:
    """Convert database scalars (datetime, Decimal, bytes) into JSON types."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def row_to_dict(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy a result row mapping into a JSON-friendly plain dict."""
    return {key: to_jsonable(value) for key, value in dict(row).items()}


def safe_json_loads(value: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string.

    Args:
        value: JSON string
        default: Default value if parsing fails

    Returns:
        Parsed value or default
    """
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default
