# =============================================================================
# ADAPTIVE AUTH - AUTHENTICATION ENGINE
# =============================================================================
# File: auth/service.py
# Description: Schema-adaptive account creation and login
#              Orchestrates adapter, schema, rate limiter, session and hooks
# =============================================================================

from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Union,
)
from datetime import datetime, timedelta, timezone
import copy
import inspect
import logging

from adaptive_auth.auth.attempt_log import AttemptLogWriter
from adaptive_auth.auth.rate_limiter import RateLimiter
from adaptive_auth.auth.repository import UserRepository
from adaptive_auth.auth.schemas import TableFieldMapping
from adaptive_auth.core.config import settings
from adaptive_auth.core.exceptions import (
    AuthenticationError,
    AuthSystemException,
    ConfigurationError,
    ConflictError,
    DatabaseIntegrityError,
    DatabaseQueryError,
    HookRejectedError,
    InvalidCredentialsError,
    LoginTokenError,
    MandatoryFieldError,
    RateLimitExceededError,
    SchemaError,
    UserExistsError,
    UserNotFoundError,
    ValidationError,
)
from adaptive_auth.core.security import (
    PasswordManager,
    PasswordValidator,
    generate_secure_token,
    generate_session_id,
    password_manager as default_password_manager,
)
from adaptive_auth.db.base import BaseDBAdapter
from adaptive_auth.db.factory import DBFactory
from adaptive_auth.db.introspector import SchemaIntrospector
from adaptive_auth.db.models import (
    ConnectionDescriptor,
    OnUpdateStrategy,
    SchemaCatalogue,
)
from adaptive_auth.db.table_manager import SchemaAdaptiveTableManager
from adaptive_auth.session.manager import SessionManager
from adaptive_auth.session.storage import ISessionStore, MemorySessionStore
from adaptive_auth.utils.helpers import mask_ip, to_jsonable, utc_now
from adaptive_auth.validation.rules import is_empty
from adaptive_auth.validation.validator import RuleList, Validator

logger = logging.getLogger(__name__)

PreAuthHook = Callable[[str], Union[Optional[bool], Awaitable[Optional[bool]]]]
PostAuthHook = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]

# Columns a profile update never writes.
IMMUTABLE_COLUMNS = ("id", "created_at")


class _EngineContext:
    """State shared by an engine and every per-client view of it."""

    def __init__(self):
        self.catalogue: Optional[SchemaCatalogue] = None
        self.pre_auth_hook: Optional[PreAuthHook] = None
        self.post_auth_hook: Optional[PostAuthHook] = None


class AuthenticationEngine:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SCHEMA-ADAPTIVE AUTHENTICATION ENGINE                 │
    │  Creates and verifies accounts in whatever user table it is pointed at  │
    │  MySQL, SQLite and PostgreSQL through one adapter per dialect           │
    └─────────────────────────────────────────────────────────────────────────┘

    Setup (``initialize``):
        1. Connect (connectivity is verified, failures raise)
        2. Create the user table if missing and allowed
        3. Introspect columns and derive the mandatory fields
        4. Add ``created_at`` / ``updated_at`` where missing

    Error model:
        Operations that can fail for the user (bad input, duplicate login,
        wrong password...) return ``False``/``None`` and record the
        exception; read them with ``errors()`` / ``error_codes()``.
        Configuration, schema and connectivity failures are raised.

    Per-request use:
        ``engine.for_client(client_id, client_ip)`` returns a view sharing
        the connection, catalogue and hooks, with its own error list and
        client identity (rate limiting and session are keyed by client).

    Example:
        engine = await AuthenticationEngine.create(
            {"engine": "sqlite", "database": "./auth.db"},
            {"table_name": "users", "password_column": "password"},
        )
        if await engine.create_account("alice", "s3cret!", {"email": "a@b.io"}):
            await engine.authenticate("alice", "s3cret!")
    """

    def __init__(
        self,
        connection: Union[ConnectionDescriptor, Mapping[str, Any], None] = None,
        mapping: Union[TableFieldMapping, Mapping[str, Any], None] = None,
        *,
        adapter: Optional[BaseDBAdapter] = None,
        store: Optional[ISessionStore] = None,
        client_id: Optional[str] = None,
        client_ip: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        password_manager: Optional[PasswordManager] = None,
        min_password_length: Optional[int] = None,
        validator: Optional[Validator] = None,
        field_rules: Optional[Mapping[str, RuleList]] = None,
    ):
        """
        Args:
            connection: Connection descriptor or mapping (defaults to settings)
            mapping: Table/column mapping (defaults to settings)
            adapter: Pre-built adapter, used instead of ``connection``
            store: Per-client session store (default: in-memory)
            client_id: Identity of the client this instance acts for
            client_ip: Address written to the failed-attempt log
            rate_limiter: Custom limiter (default: settings thresholds)
            password_manager: Hasher (default: module singleton)
            min_password_length: Override of settings.min_password_length
            validator: Optional validator run on account creation
            field_rules: Rules per field for ``validator``

        Raises:
            ConfigurationError: On invalid connection parameters or names
        """
        if isinstance(mapping, TableFieldMapping):
            self._mapping = mapping
        elif mapping is None:
            self._mapping = settings.field_mapping()
        else:
            self._mapping = TableFieldMapping.from_mapping(mapping)

        if adapter is None:
            if connection is None:
                connection = settings.connection_descriptor()
            adapter = DBFactory.create_db_adapter(connection)
        self._adapter = adapter

        self._introspector = SchemaIntrospector(adapter)
        self._table_manager = SchemaAdaptiveTableManager(self._introspector)
        self._repository = UserRepository(adapter, self._mapping.table_name, self._mapping.login_column)

        self._store = store if store is not None else MemorySessionStore()
        self._rate_limiter = rate_limiter or RateLimiter(self._store)
        self._passwords = password_manager or default_password_manager
        self._password_policy = PasswordValidator(min_password_length)
        self._attempt_log = AttemptLogWriter(self._mapping.log_file_path)
        self._validator = validator
        self._field_rules: Dict[str, RuleList] = dict(field_rules or {})
        if self._field_rules and self._validator is None:
            self._validator = Validator()

        self._context = _EngineContext()
        self.client_id = client_id or generate_session_id()
        self.client_ip = client_ip
        self._session = SessionManager(self._store, self.client_id)
        self._errors: List[AuthSystemException] = []

    @classmethod
    async def create(cls, *args: Any, **kwargs: Any) -> "AuthenticationEngine":
        """Construct and initialize in one step; setup errors are raised here."""
        engine = cls(*args, **kwargs)
        await engine.initialize()
        return engine

    async def initialize(self) -> None:
        """
        Connect and bring the user table into a usable state.

        Raises:
            ConnectivityError: If the database cannot be reached
            SchemaError: If the table cannot be created/found or lacks the
                login or password column
        """
        await self._adapter.connect()
        catalogue = await self._table_manager.ensure(self._mapping)

        missing = [
            name for name in (self._mapping.login_column, self._mapping.password_column)
            if not catalogue.has_column(name)
        ]
        if missing:
            raise SchemaError(
                message=f"Table '{self._mapping.table_name}' lacks required columns: {', '.join(missing)}",
                details={"table": self._mapping.table_name, "missing_columns": missing},
            )

        self._context.catalogue = catalogue
        logger.info(
            f"Authentication engine ready on {self._adapter.engine_type.value} "
            f"table '{self._mapping.table_name}' "
            f"(mandatory fields: {catalogue.mandatory_fields or 'none'})"
        )

    async def reload_schema(self) -> SchemaCatalogue:
        """Re-read the table structure after an external schema change."""
        self._introspector.invalidate(self._mapping.table_name)
        catalogue = await self._introspector.load_catalogue(
            self._mapping.table_name,
            self._mapping.login_column,
            self._mapping.password_column,
            refresh=True,
        )
        self._context.catalogue = catalogue
        return catalogue

    async def close(self) -> None:
        await self._adapter.disconnect()

    def for_client(self, client_id: str, client_ip: Optional[str] = None) -> "AuthenticationEngine":
        """
        View of this engine acting for another client.

        Connection, catalogue, hooks and stores are shared; the error list,
        client id and IP are not.
        """
        view = copy.copy(self)
        view.client_id = client_id
        view.client_ip = client_ip
        view._session = SessionManager(self._store, client_id)
        view._errors = []
        if self._validator is not None:
            view._validator = copy.copy(self._validator)
        return view

    # =========================================================================
    # ACCOUNT CREATION
    # =========================================================================

    async def create_account(
        self,
        login: str,
        password: str,
        extra_fields: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Create an account.

        Args:
            login: Value for the login column
            password: Plain text password (stored as an Argon2id hash)
            extra_fields: Values for other columns; unknown keys are ignored

        Returns:
            bool: True if the row was inserted
        """
        self._reset_errors()
        extra = dict(extra_fields or {})
        login_column = self._mapping.login_column
        password_column = self._mapping.password_column

        try:
            if not login or not password:
                raise ValidationError(
                    message="Login and password are required",
                    details={"fields": [login_column, password_column]},
                )
            self._password_policy.ensure_valid(password)

            catalogue = self.catalogue
            missing = [name for name in catalogue.mandatory_fields if is_empty(extra.get(name))]
            if missing:
                raise MandatoryFieldError(missing)

            self._run_field_rules({login_column: login, password_column: password, **extra})

            if await self._repository.get_by_login(login) is not None:
                raise UserExistsError(field=login_column)

            values: Dict[str, Any] = {
                name: value for name, value in extra.items()
                if catalogue.has_column(name) and name not in ("id", login_column, password_column)
            }
            ignored = sorted(set(extra) - set(values))
            if ignored:
                logger.debug(f"Ignoring fields not stored in '{catalogue.table_name}': {ignored}")

            values[login_column] = login
            values[password_column] = self._passwords.hash_password(password)
            if self._adapter.on_update_strategy is OnUpdateStrategy.APPLICATION:
                now = self._adapter.timestamp_value()
                for column in ("created_at", "updated_at"):
                    if catalogue.has_column(column):
                        values[column] = now

            try:
                await self._repository.insert(values)
            except DatabaseIntegrityError:
                # Lost a race against a concurrent registration of the same login.
                if await self._repository.get_by_login(login) is not None:
                    raise UserExistsError(field=login_column)
                raise

            logger.info(f"Account created for '{login}'")
            return True

        except (ValidationError, ConflictError, DatabaseQueryError) as e:
            self._record(e)
            return False

    def _run_field_rules(self, data: Mapping[str, Any]) -> None:
        if not self._validator or not self._field_rules:
            return
        self._validator.set_data(data)
        if not self._validator.validate(self._field_rules):
            messages = self._validator.all_messages()
            first_field = next(iter(messages))
            raise ValidationError(
                message=self._validator.first_message(first_field) or "Validation failed",
                field=first_field,
                details={"fields": messages},
            )

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    async def authenticate(self, login: str, password: str) -> bool:
        """
        Verify credentials and open the client's session.

        Flow:
            1. Rate limiter (blocked clients never reach the database)
            2. Pre-auth hook (``False`` refuses without counting a failure)
            3. Row lookup by exact login and hash verification
            4. Success: session, limiter reset, post-auth hook
               Failure: limiter failure, attempt log line, generic message

        Returns:
            bool: True if the client is now authenticated
        """
        self._reset_errors()
        try:
            await self._guard(login)

            row = await self._repository.get_by_login(login) if login else None
            stored_hash = row.get(self._mapping.password_column) if row else None
            is_valid, needs_rehash = self._passwords.verify_password(password or "", stored_hash)
            if not is_valid:
                await self._register_failure(login)
                raise InvalidCredentialsError()

            if needs_rehash:
                await self._upgrade_hash(login, password)
            await self._open_session(login, row)
            return True

        except AuthenticationError as e:
            self._record(e)
            return False

    async def _guard(self, login: str) -> None:
        await self._check_limiter()
        await self._run_pre_hook(login)

    async def _check_limiter(self) -> None:
        if await self._rate_limiter.is_blocked(self.client_id):
            retry_after = await self._rate_limiter.retry_after(self.client_id)
            raise RateLimitExceededError(retry_after=retry_after)

    async def _run_pre_hook(self, login: str) -> None:
        hook = self._context.pre_auth_hook
        if hook is not None:
            outcome = hook(login)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if outcome is False:
                logger.info(f"Pre-auth hook refused login '{login}'")
                raise HookRejectedError()

    async def _register_failure(self, login: str) -> None:
        count = await self._rate_limiter.record_failure(self.client_id)
        self._attempt_log.write(login, self.client_ip)
        logger.warning(
            f"Failed login for '{login}' from client {self.client_id} "
            f"[{mask_ip(self.client_ip) if self.client_ip else 'unknown ip'}] "
            f"({count}/{self._rate_limiter.max_attempts})"
        )

    async def _upgrade_hash(self, login: str, password: str) -> None:
        try:
            await self._repository.update_by_login(
                login, {self._mapping.password_column: self._passwords.hash_password(password)}
            )
            logger.info(f"Upgraded password hash of '{login}'")
        except DatabaseQueryError as e:
            logger.warning(f"Could not upgrade password hash of '{login}': {e.message}")

    async def _open_session(self, login: str, row: Mapping[str, Any]) -> None:
        record = self._public_record(row)
        await self._session.start(login, record)
        await self._rate_limiter.reset(self.client_id)
        logger.info(f"User '{login}' authenticated")

        hook = self._context.post_auth_hook
        if hook is None:
            return
        try:
            outcome = hook(dict(record))
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(f"Post-auth hook failed for '{login}'")

    def _public_record(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        hidden = {
            self._mapping.password_column,
            self._mapping.token_column,
            self._mapping.token_expiry_column,
        }
        return {name: to_jsonable(value) for name, value in row.items() if name not in hidden}

    # =========================================================================
    # SESSION
    # =========================================================================

    async def logout(self) -> None:
        await self._session.end()

    async def is_authenticated(self) -> bool:
        return await self._session.is_authenticated()

    async def current_user(self) -> Optional[Dict[str, Any]]:
        """Session snapshot of the logged-in user (no password hash)."""
        session = await self._session.current()
        return session.user_record if session.is_authenticated else None

    # =========================================================================
    # ACCOUNT MAINTENANCE
    # =========================================================================

    async def update_user(self, login: str, fields: Mapping[str, Any]) -> bool:
        """
        Update columns of an account.

        The id, login and ``created_at`` columns are never written; a new
        password is validated and hashed.

        Returns:
            bool: True if the row was updated
        """
        self._reset_errors()
        catalogue = self.catalogue
        protected = set(IMMUTABLE_COLUMNS) | {self._mapping.login_column}
        password_column = self._mapping.password_column

        try:
            if await self._repository.get_by_login(login) is None:
                raise UserNotFoundError(login)

            values = {
                name: value for name, value in fields.items()
                if catalogue.has_column(name) and name not in protected
            }
            if not values:
                raise ValidationError(
                    message="No updatable fields supplied",
                    details={"fields": sorted(fields)},
                )
            if password_column in values:
                self._password_policy.ensure_valid(values[password_column])
                values[password_column] = self._passwords.hash_password(values[password_column])
            if (
                self._adapter.on_update_strategy is OnUpdateStrategy.APPLICATION
                and catalogue.has_column("updated_at")
            ):
                values["updated_at"] = self._adapter.timestamp_value()

            await self._repository.update_by_login(login, values)

            session = await self._session.current()
            if session.is_authenticated and session.login == login:
                row = await self._repository.get_by_login(login)
                if row is not None:
                    await self._session.refresh(self._public_record(row), login)
            return True

        except (ValidationError, UserNotFoundError, DatabaseQueryError) as e:
            self._record(e)
            return False

    async def delete_user(self, login: str) -> bool:
        """Delete an account; the client is logged out if it was theirs."""
        self._reset_errors()
        try:
            if not await self._repository.delete_by_login(login):
                raise UserNotFoundError(login)
        except (UserNotFoundError, DatabaseQueryError) as e:
            self._record(e)
            return False

        session = await self._session.current()
        if session.login == login:
            await self._session.end()
        logger.info(f"Account '{login}' deleted")
        return True

    # =========================================================================
    # ONE-TIME LOGIN TOKENS
    # =========================================================================

    @property
    def login_tokens_enabled(self) -> bool:
        catalogue = self.catalogue
        return catalogue.has_column(self._mapping.token_column) and catalogue.has_column(
            self._mapping.token_expiry_column
        )

    def _require_login_tokens(self) -> None:
        if not self.login_tokens_enabled:
            raise ConfigurationError(
                message=(
                    f"Login tokens need the columns '{self._mapping.token_column}' and "
                    f"'{self._mapping.token_expiry_column}' in '{self._mapping.table_name}'"
                ),
            )

    async def issue_login_token(self, login: str) -> Optional[str]:
        """
        Store a single-use login token for ``login``.

        Returns:
            Optional[str]: The token, or None if the login is unknown

        Raises:
            ConfigurationError: If the table has no token columns
        """
        self._reset_errors()
        self._require_login_tokens()
        try:
            if await self._repository.get_by_login(login) is None:
                raise UserNotFoundError(login)

            token = generate_secure_token(32)
            expires = utc_now() + timedelta(seconds=settings.login_token_ttl_seconds)
            await self._repository.update_by_login(login, {
                self._mapping.token_column: token,
                self._mapping.token_expiry_column: self._adapter.timestamp_value(expires),
            })
            return token

        except (UserNotFoundError, DatabaseQueryError) as e:
            self._record(e)
            return None

    async def authenticate_with_token(self, token: str) -> bool:
        """
        Log in with a token from ``issue_login_token``.

        Goes through the same limiter, hooks and session path as
        ``authenticate``. The token is cleared once used.
        """
        self._reset_errors()
        self._require_login_tokens()
        login_column = self._mapping.login_column

        try:
            await self._check_limiter()

            row = None
            if token:
                row = await self._repository.get_by_column(self._mapping.token_column, token)
            login = str(row[login_column]) if row else ""

            await self._run_pre_hook(login)

            if row is None or row.get(self._mapping.token_column) != token or _is_expired(
                row.get(self._mapping.token_expiry_column)
            ):
                await self._register_failure(login or "token")
                raise LoginTokenError()

            await self._repository.update_by_login(login, {
                self._mapping.token_column: None,
                self._mapping.token_expiry_column: None,
            })
            await self._open_session(login, row)
            return True

        except AuthenticationError as e:
            self._record(e)
            return False

    # =========================================================================
    # SCHEMA ACCESSORS
    # =========================================================================

    @property
    def catalogue(self) -> SchemaCatalogue:
        if self._context.catalogue is None:
            raise SchemaError(message="Engine not initialized. Call initialize() first.")
        return self._context.catalogue

    @property
    def mapping(self) -> TableFieldMapping:
        return self._mapping

    @property
    def adapter(self) -> BaseDBAdapter:
        return self._adapter

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def session_store(self) -> ISessionStore:
        return self._store

    def mandatory_fields(self) -> List[str]:
        return list(self.catalogue.mandatory_fields)

    def table_schema(self) -> Dict[str, Dict[str, Any]]:
        return self.catalogue.as_dict()

    def field_exists(self, name: str) -> bool:
        return self.catalogue.has_column(name)

    # =========================================================================
    # HOOKS
    # =========================================================================

    def set_pre_auth_hook(self, hook: Optional[PreAuthHook]) -> None:
        """Called with the login before lookup; returning ``False`` refuses."""
        self._context.pre_auth_hook = hook

    def set_post_auth_hook(self, hook: Optional[PostAuthHook]) -> None:
        """Called with the user snapshot after a successful login."""
        self._context.post_auth_hook = hook

    # =========================================================================
    # ERRORS
    # =========================================================================

    def _reset_errors(self) -> None:
        self._errors = []

    def _record(self, error: AuthSystemException) -> None:
        logger.debug(f"{error.error_code}: {error.message}")
        self._errors.append(error)

    def errors(self) -> List[str]:
        return [error.message for error in self._errors]

    def error_codes(self) -> List[str]:
        return [error.error_code for error in self._errors]

    def first_error(self) -> Optional[str]:
        return self._errors[0].message if self._errors else None

    @property
    def last_exception(self) -> Optional[AuthSystemException]:
        return self._errors[-1] if self._errors else None


def _is_expired(value: Any) -> bool:
    """Expiry columns come back as datetimes or as SQLite text."""
    if value is None or value == "":
        return True
    if isinstance(value, datetime):
        expires = value
    else:
        try:
            expires = datetime.strptime(str(value)[:19], "%Y-%m-%d %H:%M:%S")
        except ValueError:
            return True
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires <= utc_now()
