"""
Tests for the PostgreSQL Document Store

SQL generation and write-outcome translation are checked against a fake
asyncpg pool; no database is contacted.
"""
import json
import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import asyncpg

from client_registry.infrastructure.postgres import (
    PostgresDocumentCollection,
    PostgresDocumentStore,
    SqlCompiler,
)
from client_registry.ports import (
    And,
    AnyEq,
    Eq,
    FindOptions,
    In,
    IndexSpec,
    Or,
    PRIMARY_KEY_INDEX,
    WriteStatus,
)


class FakePool:
    """Minimal stand-in for an asyncpg pool"""

    def __init__(self):
        self.conn = MagicMock()
        self.conn.execute = AsyncMock(return_value="INSERT 0 1")
        self.conn.executemany = AsyncMock()
        self.conn.fetch = AsyncMock(return_value=[])
        self.conn.fetchval = AsyncMock(return_value=0)
        self.conn.transaction = MagicMock(side_effect=self._transaction)
        self.close = AsyncMock()

    @asynccontextmanager
    async def _transaction(self):
        yield

    @asynccontextmanager
    async def _acquire(self):
        yield self.conn

    def acquire(self):
        return self._acquire()


@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def collection(pool):
    return PostgresDocumentCollection(pool, "clients")


class TestSqlCompiler:
    """Tests for predicate compilation"""

    def test_no_predicate(self):
        assert SqlCompiler().compile(None) == "TRUE"

    def test_eq_string(self):
        compiler = SqlCompiler()

        sql = compiler.compile(Eq("name", "web"))

        assert sql == "doc #>> '{name}' = $1"
        assert compiler.params == ["web"]

    def test_eq_uuid_is_normalized(self):
        value = uuid4()
        compiler = SqlCompiler()

        compiler.compile(Eq("schema_id", value))

        assert compiler.params == [str(value)]

    def test_eq_nested_path(self):
        sql = SqlCompiler().compile(Eq("hash.hash", "abc"))

        assert sql == "doc #>> '{hash,hash}' = $1"

    def test_eq_none(self):
        compiler = SqlCompiler()

        sql = compiler.compile(Eq("schema_id", None))

        assert "IS NULL" in sql
        assert compiler.params == []

    def test_eq_non_string_uses_jsonb(self):
        compiler = SqlCompiler()

        sql = compiler.compile(Eq("size", 3))

        assert sql == "doc #> '{size}' = $1::jsonb"
        assert compiler.params == ["3"]

    def test_in_strings(self):
        compiler = SqlCompiler()

        sql = compiler.compile(In("id", ("a", "b")))

        assert sql == "doc #>> '{id}' = ANY($1::text[])"
        assert compiler.params == [["a", "b"]]

    def test_in_empty(self):
        assert SqlCompiler().compile(In("id", ())) == "FALSE"

    def test_any_element(self):
        compiler = SqlCompiler()

        sql = compiler.compile(AnyEq("external_hashes", "hash", "abc"))

        assert sql == "doc #> '{external_hashes}' @> $1::jsonb"
        assert json.loads(compiler.params[0]) == [{"hash": "abc"}]

    def test_and_or_numbering(self):
        compiler = SqlCompiler()

        sql = compiler.compile(Or((
            And((Eq("a", "1"), Eq("b", "2"))),
            Eq("c", "3"),
        )))

        assert sql == (
            "((doc #>> '{a}' = $1 AND doc #>> '{b}' = $2) OR doc #>> '{c}' = $3)"
        )
        assert compiler.params == ["1", "2", "3"]

    def test_rejects_unsafe_field_names(self):
        with pytest.raises(ValueError):
            SqlCompiler().compile(Eq("name'; DROP TABLE clients; --", "x"))


class TestCollectionSql:
    """Tests for generated DDL and queries"""

    def test_unique_index_sql(self, collection):
        sql = collection.index_sql(IndexSpec("name_unique", ("name",), unique=True))

        assert sql == (
            'CREATE UNIQUE INDEX IF NOT EXISTS "clients_name_unique" '
            "ON \"clients\" ((doc #>> '{name}')) NULLS NOT DISTINCT"
        )

    def test_compound_index_sql(self, collection):
        sql = collection.index_sql(IndexSpec("pair", ("a", "b"), unique=True))

        assert "((doc #>> '{a}'), (doc #>> '{b}'))" in sql

    def test_unique_index_treats_missing_fields_as_equal(self, pool):
        published = PostgresDocumentCollection(pool, "published_clients")

        sql = published.index_sql(IndexSpec(
            "environment_schema_client_unique",
            ("environment_id", "schema_id", "client_id"),
            unique=True
        ))

        assert sql.endswith(
            "((doc #>> '{environment_id}'), (doc #>> '{schema_id}'), "
            "(doc #>> '{client_id}')) NULLS NOT DISTINCT"
        )

    def test_non_unique_index_sql(self, collection):
        sql = collection.index_sql(IndexSpec("by_name", ("name",)))

        assert sql == (
            'CREATE INDEX IF NOT EXISTS "clients_by_name" '
            "ON \"clients\" ((doc #>> '{name}'))"
        )

    def test_index_name_from_constraint(self, collection):
        assert collection.index_name("clients_pkey") == PRIMARY_KEY_INDEX
        assert collection.index_name("clients_name_unique") == "name_unique"
        assert collection.index_name(None) is None

    def test_multikey_index_sql(self, collection):
        sql = collection.index_sql(
            IndexSpec("external_hashes", ("external_hashes.hash",), multikey=True)
        )

        assert "USING GIN ((doc #> '{external_hashes}') jsonb_path_ops)" in sql
        assert "UNIQUE" not in sql

    def test_find_sql_with_paging(self, collection):
        sql, params = collection.find_sql(
            Eq("name", "web"),
            FindOptions(sort=(("name", True),), skip=5, limit=10)
        )

        assert sql == (
            "SELECT doc FROM \"clients\" WHERE doc #>> '{name}' = $1"
            " ORDER BY doc #>> '{name}' DESC NULLS LAST OFFSET $2 LIMIT $3"
        )
        assert params == ["web", 5, 10]

    def test_invalid_collection_name(self, pool):
        with pytest.raises(ValueError):
            PostgresDocumentCollection(pool, "bad name")


class TestWriteOutcomes:
    """Tests for asyncpg error translation"""

    @pytest.mark.asyncio
    async def test_insert_ok(self, collection, pool):
        result = await collection.insert_one({"id": "1", "name": "web"})

        assert result.ok
        assert result.inserted == 1
        args = pool.conn.execute.call_args.args
        assert args[1] == "1"
        assert json.loads(args[2]) == {"id": "1", "name": "web"}

    @pytest.mark.asyncio
    async def test_unique_violation_is_duplicate_key(self, collection, pool):
        error = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        pool.conn.execute.side_effect = error

        result = await collection.insert_one({"id": "1", "name": "web"})

        assert result.status == WriteStatus.DUPLICATE_KEY
        assert result.error is error

    @pytest.mark.asyncio
    async def test_primary_key_violation_reports_primary_index(self, collection, pool):
        error = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        error.constraint_name = "clients_pkey"
        pool.conn.execute.side_effect = error

        result = await collection.insert_one({"id": "1", "name": "web"})

        assert result.index == PRIMARY_KEY_INDEX

    @pytest.mark.asyncio
    async def test_other_postgres_error_is_failure(self, collection, pool):
        error = asyncpg.PostgresError("deadlock")
        pool.conn.execute.side_effect = error

        result = await collection.insert_one({"id": "1"})

        assert result.status == WriteStatus.FAILURE
        assert result.error is error

    @pytest.mark.asyncio
    async def test_connection_errors_propagate(self, collection, pool):
        pool.conn.execute.side_effect = ConnectionRefusedError()

        with pytest.raises(ConnectionRefusedError):
            await collection.insert_one({"id": "1"})

    @pytest.mark.asyncio
    async def test_insert_if_absent_existing(self, collection, pool):
        pool.conn.execute.return_value = "INSERT 0 0"

        result = await collection.insert_if_absent("1", {"value": 1})

        assert (result.inserted, result.matched) == (0, 1)
        assert "ON CONFLICT (id) DO NOTHING" in pool.conn.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_replace_reports_matched(self, collection, pool):
        pool.conn.execute.return_value = "UPDATE 0"

        result = await collection.replace_one("1", {"name": "web"})

        assert result.ok
        assert result.matched == 0

    @pytest.mark.asyncio
    async def test_insert_many_uses_transaction(self, collection, pool):
        result = await collection.insert_many([{"id": "1"}, {"id": "2"}])

        assert result.inserted == 2
        pool.conn.transaction.assert_called_once()
        records = pool.conn.executemany.call_args.args[1]
        assert [r[0] for r in records] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_find_decodes_json(self, collection, pool):
        pool.conn.fetch.return_value = [{"doc": '{"id": "1", "name": "web"}'}]

        assert await collection.find(Eq("name", "web")) == [{"id": "1", "name": "web"}]


class TestStore:
    @pytest.mark.asyncio
    async def test_collections_are_cached_and_close_closes_pool(self, pool):
        store = PostgresDocumentStore(pool)

        assert store.collection("clients") is store.collection("clients")
        await store.close()

        pool.close.assert_awaited_once()
