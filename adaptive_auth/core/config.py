# =============================================================================
# ADAPTIVE AUTH - CORE CONFIGURATION MODULE
# =============================================================================
# File: core/config.py
# Description: AUTH_-prefixed environment settings (database, table mapping,
#              login policy, session store) loaded through pydantic-settings
# =============================================================================

from typing import Literal, Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field, field_validator


class Settings(BaseSettings):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    APPLICATION SETTINGS                                  │
    │  Type-safe configuration loaded from AUTH_* environment variables       │
    │  Drives the engine, the table mapping and the HTTP surface              │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    # -------------------------------------------------------------------------
    # APPLICATION CORE
    # -------------------------------------------------------------------------
    app_name: str = "AdaptiveAuth"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # -------------------------------------------------------------------------
    # DATABASE CONFIGURATION
    # -------------------------------------------------------------------------
    db_engine: Literal["mysql", "sqlite", "postgres", "pgsql", "postgresql"] = "sqlite"
    db_host: str = "localhost"
    db_port: Optional[int] = None
    db_name: str = "./data/auth.db"
    db_user: str = ""
    db_password: str = ""
    db_charset: str = "utf8mb4"
    db_echo: bool = False

    # -------------------------------------------------------------------------
    # TABLE MAPPING
    # -------------------------------------------------------------------------
    table_name: str = "utilisateur"
    login_column: str = "login"
    password_column: str = "mot_de_passe"
    log_file: str = "auth_erreurs.log"
    auto_create_table: bool = True
    token_column: str = "token_auth"
    token_expiry_column: str = "token_expiry"

    # -------------------------------------------------------------------------
    # SECURITY SETTINGS
    # -------------------------------------------------------------------------
    password_hash_algorithm: Literal["argon2", "bcrypt"] = "argon2"
    bcrypt_rounds: int = 12
    min_password_length: int = 6

    # Argon2id cost parameters
    argon2_memory_cost: int = 65536  # 64 MB
    argon2_time_cost: int = 3
    argon2_parallelism: int = 4

    # Brute Force Protection
    max_login_attempts: int = 5
    lockout_window_seconds: int = 900

    # One-time login links
    login_token_ttl_seconds: int = 3600

    # -------------------------------------------------------------------------
    # SESSION STORE
    # -------------------------------------------------------------------------
    session_backend: Literal["memory", "redis"] = "memory"
    session_cookie_name: str = "auth_client"
    session_ttl: int = 86400  # 24 hours in seconds

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0
    redis_ssl: bool = False

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # -------------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -------------------------------------------------------------------------

    @computed_field
    @property
    def redis_url(self) -> str:
        """redis:// or rediss:// URL for the shared session store."""
        protocol = "rediss" if self.redis_ssl else "redis"
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"{protocol}://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @computed_field
    @property
    def is_production(self) -> bool:
        """Production hides /docs and internal error messages."""
        return self.app_env == "production"

    # -------------------------------------------------------------------------
    # VALIDATORS
    # -------------------------------------------------------------------------

    @field_validator("min_password_length", "max_login_attempts", "lockout_window_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Policy thresholds must be strictly positive."""
        if v < 1:
            raise ValueError("value must be a positive integer")
        return v

    # -------------------------------------------------------------------------
    # TYPED VIEWS
    # -------------------------------------------------------------------------

    def connection_descriptor(self):
        """
        Build the validated connection descriptor for the configured database.

        Returns:
            ConnectionDescriptor: Typed connection parameters

        Raises:
            ConfigurationError: If required parameters are missing
        """
        from adaptive_auth.db.models import ConnectionDescriptor

        return ConnectionDescriptor.from_mapping({
            "engine": self.db_engine,
            "host": self.db_host,
            "port": self.db_port,
            "database": self.db_name,
            "username": self.db_user,
            "password": self.db_password,
            "charset": self.db_charset,
        })

    def field_mapping(self):
        """Build the table/column mapping used by the authentication engine."""
        from adaptive_auth.auth.schemas import TableFieldMapping

        return TableFieldMapping.from_mapping({
            "table_name": self.table_name,
            "login_column": self.login_column,
            "password_column": self.password_column,
            "log_file_path": self.log_file,
            "auto_create_table": self.auto_create_table,
            "token_column": self.token_column,
            "token_expiry_column": self.token_expiry_column,
        })

    # -------------------------------------------------------------------------
    # PYDANTIC SETTINGS CONFIG
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Settings read once per process; tests build fresh ``Settings()`` instead."""
    return Settings()


# =============================================================================
# MODULE EXPORTS
# =============================================================================
settings = get_settings()
