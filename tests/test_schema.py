# =============================================================================
# ADAPTIVE AUTH - SCHEMA SETUP TESTS
# =============================================================================
# File: tests/test_schema.py
# Description: Introspection and table management against SQLite files
# =============================================================================

import pytest

from adaptive_auth.auth.schemas import TableFieldMapping
from adaptive_auth.core.exceptions import ConfigurationError, SchemaError
from adaptive_auth.db.introspector import SchemaIntrospector
from adaptive_auth.db.table_manager import SchemaAdaptiveTableManager


class TestSchemaIntrospector:
    """Test suite for SchemaIntrospector."""

    @pytest.mark.asyncio
    async def test_missing_table(self, sqlite_adapter):
        introspector = SchemaIntrospector(sqlite_adapter)

        assert await introspector.table_exists("utilisateur") is False
        assert await introspector.describe_columns("utilisateur") == []

    @pytest.mark.asyncio
    async def test_describe_existing_table(self, sqlite_adapter, users_table):
        await users_table('"nom" VARCHAR(100) NOT NULL, "bio" TEXT, '
                          '"role" VARCHAR(10) NOT NULL DEFAULT \'user\'')
        introspector = SchemaIntrospector(sqlite_adapter)

        columns = await introspector.describe_columns("utilisateur")

        assert [c.name for c in columns] == ["id", "login", "mot_de_passe", "nom", "bio", "role"]
        assert columns[0].is_auto_increment
        assert columns[5].default_value == "'user'"

    @pytest.mark.asyncio
    async def test_catalogue_mandatory_fields(self, sqlite_adapter, users_table):
        await users_table('"nom" VARCHAR(100) NOT NULL, "email" VARCHAR(100) NOT NULL, "bio" TEXT')
        introspector = SchemaIntrospector(sqlite_adapter)

        catalogue = await introspector.load_catalogue("utilisateur", "login", "mot_de_passe")

        assert catalogue.mandatory_fields == ["nom", "email"]

    @pytest.mark.asyncio
    async def test_cache_and_invalidate(self, sqlite_adapter, users_table):
        await users_table()
        introspector = SchemaIntrospector(sqlite_adapter)
        first = await introspector.load_catalogue("utilisateur", "login", "mot_de_passe")

        await sqlite_adapter.execute('ALTER TABLE "utilisateur" ADD COLUMN "age" INTEGER')
        cached = await introspector.load_catalogue("utilisateur", "login", "mot_de_passe")
        introspector.invalidate("utilisateur")
        fresh = await introspector.load_catalogue("utilisateur", "login", "mot_de_passe")

        assert cached is first
        assert not cached.has_column("age")
        assert fresh.has_column("age")

    @pytest.mark.asyncio
    async def test_rejects_bad_identifier(self, sqlite_adapter):
        introspector = SchemaIntrospector(sqlite_adapter)

        with pytest.raises(ConfigurationError):
            await introspector.table_exists("x; DROP TABLE y")


class TestTableManager:
    """Test suite for SchemaAdaptiveTableManager."""

    def manager(self, adapter):
        return SchemaAdaptiveTableManager(SchemaIntrospector(adapter))

    @pytest.mark.asyncio
    async def test_creates_table_once(self, sqlite_adapter):
        manager = self.manager(sqlite_adapter)
        mapping = TableFieldMapping()

        assert await manager.ensure_table_exists(mapping) is True
        assert await manager.ensure_table_exists(mapping) is False

    @pytest.mark.asyncio
    async def test_setup_is_idempotent(self, sqlite_adapter):
        manager = self.manager(sqlite_adapter)
        mapping = TableFieldMapping(table_name="members", login_column="email",
                                    password_column="password")

        first = await manager.ensure(mapping)
        second = await manager.ensure(mapping)

        assert first.column_names == second.column_names
        assert first.column_names == ["id", "email", "password", "created_at", "updated_at"]
        assert first.mandatory_fields == []

    @pytest.mark.asyncio
    async def test_auto_create_disabled(self, sqlite_adapter):
        manager = self.manager(sqlite_adapter)

        with pytest.raises(SchemaError):
            await manager.ensure(TableFieldMapping(auto_create_table=False))

    @pytest.mark.asyncio
    async def test_adds_convention_columns(self, sqlite_adapter, users_table):
        await users_table('"nom" VARCHAR(50) NOT NULL')
        manager = self.manager(sqlite_adapter)

        catalogue = await manager.ensure(TableFieldMapping())

        assert catalogue.has_column("created_at")
        assert catalogue.has_column("updated_at")
        assert catalogue.column("created_at").nullable is True
        assert catalogue.mandatory_fields == ["nom"]

    @pytest.mark.asyncio
    async def test_existing_columns_untouched(self, sqlite_adapter, users_table):
        await users_table('"created_at" DATETIME, "updated_at" DATETIME')
        manager = self.manager(sqlite_adapter)
        catalogue = await manager.ensure(TableFieldMapping())

        again = await manager.ensure_convention_columns(catalogue)

        assert again is catalogue
