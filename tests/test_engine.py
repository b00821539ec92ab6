# =============================================================================
# ADAPTIVE AUTH - AUTHENTICATION ENGINE TESTS
# =============================================================================
# File: tests/test_engine.py
# Description: Account creation, login, throttling, hooks, maintenance and
#              one-time login tokens against SQLite files
# =============================================================================

import re

import pytest
import pytest_asyncio
from passlib.context import CryptContext

from adaptive_auth.auth.attempt_log import AttemptLogWriter, format_attempt_line
from adaptive_auth.auth.schemas import TableFieldMapping
from adaptive_auth.auth.service import AuthenticationEngine, _is_expired
from adaptive_auth.core.exceptions import ConfigurationError, SchemaError
from adaptive_auth.session.storage import MemorySessionStore

GENERIC_FAILURE = "Login or password incorrect"
LOG_LINE = re.compile(
    r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] Tentative échouée - IP: (.+), Login: (.*)$"
)


async def engine_on(adapter, mapping, **kwargs) -> AuthenticationEngine:
    """Engine over a table the test created beforehand."""
    return await AuthenticationEngine.create(
        adapter=adapter,
        mapping=mapping,
        store=kwargs.pop("store", MemorySessionStore()),
        client_id="client-test-1",
        client_ip="10.0.0.1",
        **kwargs,
    )


def log_lines(mapping: TableFieldMapping):
    with open(mapping.log_file_path, encoding="utf-8") as handle:
        return handle.read().splitlines()


class TestInitialization:
    """Engine setup against existing and missing tables."""

    @pytest.mark.asyncio
    async def test_creates_missing_table(self, engine):
        assert engine.field_exists("login")
        assert engine.field_exists("mot_de_passe")
        assert engine.mandatory_fields() == []
        assert list(engine.table_schema())[:3] == ["id", "login", "mot_de_passe"]

    @pytest.mark.asyncio
    async def test_missing_password_column(self, sqlite_adapter, field_mapping):
        await sqlite_adapter.execute(
            'CREATE TABLE "utilisateur" ("id" INTEGER PRIMARY KEY, "login" VARCHAR(50) NOT NULL)'
        )

        with pytest.raises(SchemaError) as exc_info:
            await engine_on(sqlite_adapter, field_mapping)

        assert exc_info.value.details["missing_columns"] == ["mot_de_passe"]

    @pytest.mark.asyncio
    async def test_auto_create_disabled(self, sqlite_adapter, tmp_path):
        mapping = TableFieldMapping(auto_create_table=False,
                                    log_file_path=str(tmp_path / "a.log"))

        with pytest.raises(SchemaError):
            await engine_on(sqlite_adapter, mapping)

    @pytest.mark.asyncio
    async def test_uninitialized_engine(self, sqlite_descriptor, field_mapping):
        engine = AuthenticationEngine(sqlite_descriptor, field_mapping)

        with pytest.raises(SchemaError):
            engine.mandatory_fields()

    @pytest.mark.asyncio
    async def test_reload_schema(self, engine):
        await engine.adapter.execute('ALTER TABLE "utilisateur" ADD COLUMN "ville" VARCHAR(50)')
        assert engine.field_exists("ville") is False

        await engine.reload_schema()

        assert engine.field_exists("ville") is True


class TestCreateAccount:
    """Test suite for create_account."""

    @pytest.mark.asyncio
    async def test_create_and_authenticate(self, engine, sample_user_data):
        assert await engine.create_account(sample_user_data["login"], sample_user_data["password"])

        row = await engine.adapter.fetch_one('SELECT * FROM "utilisateur" WHERE "login" = :l',
                                             {"l": "alice"})
        assert row["mot_de_passe"].startswith("$argon2id$")
        assert row["created_at"] is not None

        assert await engine.authenticate("alice", "s3cret-pass") is True
        assert engine.errors() == []

    @pytest.mark.asyncio
    async def test_duplicate_login(self, engine):
        assert await engine.create_account("alice", "s3cret-pass")

        assert await engine.create_account("alice", "other-pass") is False
        assert engine.error_codes() == ["USER_EXISTS"]
        assert engine.first_error() == "User with this login already exists"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("login, password, code", [
        ("", "s3cret-pass", "VALIDATION_ERROR"),
        ("alice", "", "VALIDATION_ERROR"),
        ("alice", "12345", "PASSWORD_VALIDATION_ERROR"),
    ])
    async def test_rejected_credentials(self, engine, login, password, code):
        assert await engine.create_account(login, password) is False
        assert engine.error_codes() == [code]

    @pytest.mark.asyncio
    async def test_reports_every_missing_mandatory_field(self, sqlite_adapter, users_table,
                                                         field_mapping):
        await users_table('"nom" VARCHAR(100) NOT NULL, "email" VARCHAR(100) NOT NULL, '
                          '"bio" TEXT, "role" VARCHAR(10) NOT NULL DEFAULT \'user\'')
        engine = await engine_on(sqlite_adapter, field_mapping)
        assert engine.mandatory_fields() == ["nom", "email"]

        assert await engine.create_account("alice", "s3cret-pass", {"nom": "  "}) is False
        assert engine.error_codes() == ["MANDATORY_FIELD_MISSING"]
        assert engine.last_exception.fields == ["nom", "email"]

        assert await engine.create_account("alice", "s3cret-pass",
                                           {"nom": "Alice", "email": "alice@mail.org"})

    @pytest.mark.asyncio
    async def test_unknown_fields_are_ignored(self, engine):
        assert await engine.create_account("alice", "s3cret-pass", {"nickname": "al", "id": 99})

        row = await engine.adapter.fetch_one('SELECT "id" FROM "utilisateur"')
        assert row["id"] != 99

    @pytest.mark.asyncio
    async def test_field_rules(self, sqlite_adapter, users_table, field_mapping):
        await users_table('"email" VARCHAR(100) NOT NULL')
        engine = await engine_on(sqlite_adapter, field_mapping,
                                 field_rules={"email": "required|email"})

        assert await engine.create_account("alice", "s3cret-pass", {"email": "nope"}) is False
        assert engine.error_codes() == ["VALIDATION_ERROR"]
        assert engine.last_exception.details["fields"] == {
            "email": ["The email field must be a valid email address."]
        }
        assert await engine.create_account("alice", "s3cret-pass", {"email": "alice@mail.org"})


class TestAuthenticate:
    """Test suite for authenticate."""

    @pytest.mark.asyncio
    async def test_session_snapshot_hides_hash(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        await engine.authenticate("alice", "s3cret-pass")

        user = await engine.current_user()

        assert await engine.is_authenticated() is True
        assert user["login"] == "alice"
        assert "id" in user
        assert "mot_de_passe" not in user

    @pytest.mark.asyncio
    async def test_same_message_for_unknown_user_and_wrong_password(self, engine):
        await engine.create_account("alice", "s3cret-pass")

        assert await engine.authenticate("alice", "wrong-pass") is False
        wrong_password = engine.errors()
        assert await engine.authenticate("nobody", "s3cret-pass") is False
        unknown_user = engine.errors()

        assert wrong_password == unknown_user == [GENERIC_FAILURE]
        assert await engine.is_authenticated() is False

    @pytest.mark.asyncio
    async def test_login_is_exact(self, engine):
        await engine.create_account("alice", "s3cret-pass")

        assert await engine.authenticate("Alice", "s3cret-pass") is False

    @pytest.mark.asyncio
    async def test_failed_attempt_is_logged(self, engine, field_mapping):
        await engine.authenticate("mallory", "guess")

        lines = log_lines(field_mapping)
        assert len(lines) == 1
        match = LOG_LINE.match(lines[0])
        assert match.groups() == ("10.0.0.1", "mallory")

    @pytest.mark.asyncio
    async def test_unknown_ip_placeholder(self, engine, field_mapping):
        view = engine.for_client("client-no-ip")

        await view.authenticate("mallory", "guess")

        assert LOG_LINE.match(log_lines(field_mapping)[0]).group(1) == "IP_INCONNUE"

    @pytest.mark.asyncio
    async def test_rate_limit_skips_database(self, engine, monkeypatch):
        await engine.create_account("alice", "s3cret-pass")
        for _ in range(5):
            assert await engine.authenticate("alice", "wrong-pass") is False

        calls = []
        original = engine._repository.get_by_login

        async def counting(login):
            calls.append(login)
            return await original(login)

        monkeypatch.setattr(engine._repository, "get_by_login", counting)

        assert await engine.authenticate("alice", "s3cret-pass") is False
        assert engine.first_error() == "Too many failed attempts. Please try again later"
        assert engine.error_codes() == ["AUTHENTICATION_FAILED"]
        assert engine.last_exception.details["retry_after"] > 0
        assert calls == []

    @pytest.mark.asyncio
    async def test_success_resets_attempts(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        for _ in range(4):
            await engine.authenticate("alice", "wrong-pass")

        assert await engine.authenticate("alice", "s3cret-pass") is True
        assert await engine.rate_limiter.attempts(engine.client_id) == 0

    @pytest.mark.asyncio
    async def test_limits_are_per_client(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        for _ in range(5):
            await engine.authenticate("alice", "wrong-pass")

        other = engine.for_client("client-test-2", "10.0.0.2")

        assert await other.authenticate("alice", "s3cret-pass") is True
        assert await engine.is_authenticated() is False

    @pytest.mark.asyncio
    async def test_legacy_bcrypt_hash_is_upgraded(self, engine):
        legacy = CryptContext(schemes=["bcrypt"], bcrypt__rounds=4).hash("old-pass")
        await engine.adapter.execute(
            'INSERT INTO "utilisateur" ("login", "mot_de_passe") VALUES (:l, :p)',
            {"l": "legacy", "p": legacy},
        )

        assert await engine.authenticate("legacy", "old-pass") is True

        row = await engine.adapter.fetch_one('SELECT "mot_de_passe" FROM "utilisateur" '
                                             'WHERE "login" = :l', {"l": "legacy"})
        assert row["mot_de_passe"].startswith("$argon2id$")

    @pytest.mark.asyncio
    async def test_null_hash_never_authenticates(self, sqlite_adapter, field_mapping):
        await sqlite_adapter.execute(
            'CREATE TABLE "utilisateur" ("id" INTEGER PRIMARY KEY, '
            '"login" VARCHAR(50) NOT NULL, "mot_de_passe" VARCHAR(255))'
        )
        await sqlite_adapter.execute('INSERT INTO "utilisateur" ("login") VALUES (\'ghost\')')
        engine = await engine_on(sqlite_adapter, field_mapping)

        assert await engine.authenticate("ghost", "") is False
        assert engine.errors() == [GENERIC_FAILURE]


class TestHooks:
    """Pre- and post-authentication hooks."""

    @pytest.mark.asyncio
    async def test_pre_hook_refusal(self, engine, field_mapping, monkeypatch):
        await engine.create_account("alice", "s3cret-pass")
        seen = []

        def refuse(login):
            seen.append(login)
            return False

        calls = []

        async def counting(login):
            calls.append(login)

        monkeypatch.setattr(engine._repository, "get_by_login", counting)
        engine.set_pre_auth_hook(refuse)

        assert await engine.authenticate("alice", "s3cret-pass") is False
        assert seen == ["alice"]
        assert calls == []
        assert engine.error_codes() == ["AUTHENTICATION_FAILED"]
        assert await engine.rate_limiter.attempts(engine.client_id) == 0
        with pytest.raises(FileNotFoundError):
            log_lines(field_mapping)

    @pytest.mark.asyncio
    async def test_async_pre_hook_allows(self, engine):
        await engine.create_account("alice", "s3cret-pass")

        async def allow(login):
            return None

        engine.set_pre_auth_hook(allow)

        assert await engine.authenticate("alice", "s3cret-pass") is True

    @pytest.mark.asyncio
    async def test_post_hook_receives_snapshot(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        received = []
        engine.set_post_auth_hook(received.append)

        await engine.authenticate("alice", "s3cret-pass")

        assert received[0]["login"] == "alice"
        assert "mot_de_passe" not in received[0]

    @pytest.mark.asyncio
    async def test_post_hook_errors_do_not_fail_login(self, engine):
        await engine.create_account("alice", "s3cret-pass")

        async def broken(user):
            raise RuntimeError("audit service down")

        engine.set_post_auth_hook(broken)

        assert await engine.authenticate("alice", "s3cret-pass") is True
        assert await engine.is_authenticated() is True

    @pytest.mark.asyncio
    async def test_hooks_are_shared_with_client_views(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        view = engine.for_client("client-test-2")

        engine.set_pre_auth_hook(lambda login: False)

        assert await view.authenticate("alice", "s3cret-pass") is False


class TestSessionAndMaintenance:
    """Logout, profile updates and deletion."""

    @pytest.mark.asyncio
    async def test_logout(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        await engine.authenticate("alice", "s3cret-pass")

        await engine.logout()

        assert await engine.is_authenticated() is False
        assert await engine.current_user() is None

    @pytest.mark.asyncio
    async def test_update_refreshes_session(self, sqlite_adapter, users_table, field_mapping):
        await users_table('"nom" VARCHAR(100), "created_at" DATETIME, "updated_at" DATETIME')
        engine = await engine_on(sqlite_adapter, field_mapping)
        await engine.create_account("alice", "s3cret-pass", {"nom": "Alice"})
        await engine.authenticate("alice", "s3cret-pass")

        assert await engine.update_user("alice", {"nom": "Alice B.", "created_at": "1999-01-01"})

        user = await engine.current_user()
        assert user["nom"] == "Alice B."
        assert user["created_at"] != "1999-01-01"
        assert user["updated_at"] is not None

    @pytest.mark.asyncio
    async def test_update_password(self, engine):
        await engine.create_account("alice", "s3cret-pass")

        assert await engine.update_user("alice", {"mot_de_passe": "n3w-pass"})
        assert await engine.authenticate("alice", "s3cret-pass") is False
        assert await engine.authenticate("alice", "n3w-pass") is True

    @pytest.mark.asyncio
    async def test_update_errors(self, engine):
        await engine.create_account("alice", "s3cret-pass")

        assert await engine.update_user("nobody", {"mot_de_passe": "n3w-pass"}) is False
        assert engine.error_codes() == ["USER_NOT_FOUND"]

        assert await engine.update_user("alice", {"login": "bob", "id": 5}) is False
        assert engine.first_error() == "No updatable fields supplied"

        assert await engine.update_user("alice", {"mot_de_passe": "123"}) is False
        assert engine.error_codes() == ["PASSWORD_VALIDATION_ERROR"]

    @pytest.mark.asyncio
    async def test_delete_logs_out_owner(self, engine):
        await engine.create_account("alice", "s3cret-pass")
        await engine.authenticate("alice", "s3cret-pass")

        assert await engine.delete_user("alice") is True

        assert await engine.is_authenticated() is False
        assert await engine.authenticate("alice", "s3cret-pass") is False

    @pytest.mark.asyncio
    async def test_delete_unknown(self, engine):
        assert await engine.delete_user("nobody") is False
        assert engine.error_codes() == ["USER_NOT_FOUND"]

    @pytest.mark.asyncio
    async def test_client_views_keep_separate_errors(self, engine):
        view = engine.for_client("client-test-2")

        await view.authenticate("nobody", "x")

        assert view.errors() == [GENERIC_FAILURE]
        assert engine.errors() == []


class TestLoginTokens:
    """One-time login tokens."""

    @pytest_asyncio.fixture
    async def token_engine(self, sqlite_adapter, users_table, field_mapping):
        await users_table('"token_auth" VARCHAR(64), "token_expiry" DATETIME')
        engine = await engine_on(sqlite_adapter, field_mapping)
        await engine.create_account("alice", "s3cret-pass")
        return engine

    @pytest.mark.asyncio
    async def test_token_login_is_single_use(self, token_engine):
        token = await token_engine.issue_login_token("alice")

        assert re.fullmatch(r"[0-9a-f]{64}", token)
        assert await token_engine.authenticate_with_token(token) is True
        assert (await token_engine.current_user())["login"] == "alice"
        assert "token_auth" not in await token_engine.current_user()

        await token_engine.logout()
        assert await token_engine.authenticate_with_token(token) is False
        assert token_engine.error_codes() == ["AUTHENTICATION_FAILED"]

    @pytest.mark.asyncio
    async def test_expired_token(self, token_engine):
        token = await token_engine.issue_login_token("alice")
        await token_engine.adapter.execute(
            'UPDATE "utilisateur" SET "token_expiry" = \'2000-01-01 00:00:00\''
        )

        assert await token_engine.authenticate_with_token(token) is False
        assert token_engine.first_error() == "Invalid or expired login token"

    @pytest.mark.asyncio
    async def test_unknown_login(self, token_engine):
        assert await token_engine.issue_login_token("nobody") is None
        assert token_engine.error_codes() == ["USER_NOT_FOUND"]

    @pytest.mark.asyncio
    async def test_bad_tokens_count_as_failures(self, token_engine, field_mapping):
        for _ in range(5):
            await token_engine.authenticate_with_token("f" * 64)
        token = await token_engine.issue_login_token("alice")

        assert await token_engine.authenticate_with_token(token) is False
        assert "Too many failed attempts" in token_engine.first_error()
        assert LOG_LINE.match(log_lines(field_mapping)[0]).group(2) == "token"

    @pytest.mark.asyncio
    async def test_blocked_client_skips_token_lookup(self, token_engine, monkeypatch):
        token = await token_engine.issue_login_token("alice")
        for _ in range(5):
            await token_engine.authenticate_with_token("f" * 64)

        calls = []
        original = token_engine._repository.get_by_column

        async def counting(column, value):
            calls.append(column)
            return await original(column, value)

        monkeypatch.setattr(token_engine._repository, "get_by_column", counting)

        assert await token_engine.authenticate_with_token(token) is False
        assert "Too many failed attempts" in token_engine.first_error()
        assert calls == []

    @pytest.mark.asyncio
    async def test_requires_token_columns(self, engine):
        assert engine.login_tokens_enabled is False

        with pytest.raises(ConfigurationError):
            await engine.issue_login_token("alice")

    def test_expiry_parsing(self):
        assert _is_expired(None) is True
        assert _is_expired("2000-01-01 00:00:00") is True
        assert _is_expired("2999-01-01 00:00:00") is False
        assert _is_expired("garbage") is True


class TestAttemptLogWriter:
    """Failed-attempt file."""

    def test_format(self):
        from datetime import datetime

        line = format_attempt_line("bob", None, datetime(2024, 5, 1, 13, 37, 0))

        assert line == "[2024-05-01 13:37:00] Tentative échouée - IP: IP_INCONNUE, Login: bob\n"

    def test_appends(self, tmp_path):
        writer = AttemptLogWriter(str(tmp_path / "logs" / "auth.log"))

        assert writer.write("a", "1.2.3.4")
        assert writer.write("b", "1.2.3.4")

        assert len((tmp_path / "logs" / "auth.log").read_text(encoding="utf-8").splitlines()) == 2

    def test_unwritable_path_is_reported(self, tmp_path):
        assert AttemptLogWriter(str(tmp_path)).write("a", None) is False
