# =============================================================================
# ADAPTIVE AUTH
# =============================================================================
# File: __init__.py
# Description: Schema-adaptive authentication and generic data validation
# =============================================================================

__version__ = "1.0.0"
