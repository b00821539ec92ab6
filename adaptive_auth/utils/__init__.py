# =============================================================================
# UTILS MODULE INITIALIZATION
# =============================================================================
# File: utils/__init__.py
# Description: Utils module exports
# =============================================================================

from adaptive_auth.utils.helpers import (
    utc_now,
    db_timestamp,
    is_valid_identifier,
    validate_identifier,
    mask_ip,
    to_jsonable,
    row_to_dict,
    safe_json_loads,
)

__all__ = [
    "utc_now",
    "db_timestamp",
    "is_valid_identifier",
    "validate_identifier",
    "mask_ip",
    "to_jsonable",
    "row_to_dict",
    "safe_json_loads",
]
