"""
PostgreSQL Document Store Implementation

Stores each collection as a table of JSONB documents:

    CREATE TABLE <collection> (id TEXT PRIMARY KEY, doc JSONB NOT NULL)

Features:
- Async operations using asyncpg
- Connection pooling
- Unique expression indexes (NULLS NOT DISTINCT) for document uniqueness constraints
- GIN (jsonb_path_ops) indexes for array element lookups
- Unique violations reported as duplicate-key write outcomes
"""
import json
import logging
import re
from typing import Optional, List, Dict, Any, Tuple

import asyncpg
from asyncpg import Pool

from ...ports.document_store_port import (
    And,
    AnyEq,
    Document,
    DocumentCollectionPort,
    DocumentStorePort,
    Eq,
    FindOptions,
    In,
    IndexSpec,
    Or,
    Predicate,
    WriteResult,
    ID_FIELD,
    PRIMARY_KEY_INDEX,
)

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


def _path_literal(path: str) -> str:
    """``hash.hash`` -> ``'{hash,hash}'`` for the #> / #>> operators"""
    parts = [_check_identifier(p) for p in path.split(".")]
    return "'{" + ",".join(parts) + "}'"


def _nest(path: str, value: Any) -> Dict[str, Any]:
    """``a.b``, 1 -> ``{"a": {"b": 1}}``"""
    result: Any = value
    for part in reversed(path.split(".")):
        result = {part: result}
    return result


def _rows_affected(status: str) -> int:
    # "INSERT 0 1", "UPDATE 3"
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


def _load(value: Any) -> Document:
    # asyncpg returns jsonb as text unless a codec is installed
    if isinstance(value, str):
        return json.loads(value)
    return value


def _dump(document: Document) -> str:
    return json.dumps(document, default=str)


class SqlCompiler:
    """Compile predicates into a SQL condition with positional parameters"""

    def __init__(self, first_param: int = 1):
        self.params: List[Any] = []
        self._first_param = first_param

    def _param(self, value: Any) -> str:
        self.params.append(value)
        return f"${self._first_param + len(self.params) - 1}"

    def compile(self, predicate: Optional[Predicate]) -> str:
        if predicate is None:
            return "TRUE"

        if isinstance(predicate, Eq):
            path = _path_literal(predicate.field)
            if predicate.value is None:
                return f"(doc #> {path} IS NULL OR doc #> {path} = 'null'::jsonb)"
            if isinstance(predicate.value, str):
                return f"doc #>> {path} = {self._param(predicate.value)}"
            return f"doc #> {path} = {self._param(json.dumps(predicate.value))}::jsonb"

        if isinstance(predicate, In):
            if not predicate.values:
                return "FALSE"
            path = _path_literal(predicate.field)
            if all(isinstance(v, str) for v in predicate.values):
                return f"doc #>> {path} = ANY({self._param(list(predicate.values))}::text[])"
            values = [json.dumps(v) for v in predicate.values]
            return f"doc #> {path} = ANY({self._param(values)}::jsonb[])"

        if isinstance(predicate, AnyEq):
            path = _path_literal(predicate.field)
            contained = json.dumps([_nest(predicate.subfield, predicate.value)])
            return f"doc #> {path} @> {self._param(contained)}::jsonb"

        if isinstance(predicate, (And, Or)):
            if not predicate.predicates:
                return "TRUE" if isinstance(predicate, And) else "FALSE"
            joiner = " AND " if isinstance(predicate, And) else " OR "
            return "(" + joiner.join(self.compile(p) for p in predicate.predicates) + ")"

        raise TypeError(f"Unsupported predicate: {predicate!r}")

    def order_by(self, options: FindOptions) -> str:
        if not options.sort:
            return ""
        clauses = [
            f"doc #>> {_path_literal(field)} {'DESC NULLS LAST' if descending else 'ASC NULLS FIRST'}"
            for field, descending in options.sort
        ]
        return " ORDER BY " + ", ".join(clauses)

    def paging(self, options: FindOptions) -> str:
        sql = ""
        if options.skip:
            sql += f" OFFSET {self._param(options.skip)}"
        if options.limit is not None:
            sql += f" LIMIT {self._param(options.limit)}"
        return sql


class PostgresDocumentCollection(DocumentCollectionPort):
    """JSONB-backed collection"""

    def __init__(self, pool: Pool, name: str):
        self._pool = pool
        self._name = _check_identifier(name)
        self._table = f'"{self._name}"'

    @property
    def name(self) -> str:
        return self._name

    # ==================== Schema ====================

    def index_sql(self, spec: IndexSpec) -> str:
        index_name = f'"{self._name}_{_check_identifier(spec.name)}"'

        if spec.multikey:
            # Array field is everything before the element subfield
            array_path = spec.keys[0].rsplit(".", 1)[0]
            return (
                f"CREATE INDEX IF NOT EXISTS {index_name} ON {self._table} "
                f"USING GIN ((doc #> {_path_literal(array_path)}) jsonb_path_ops)"
            )

        expressions = ", ".join(f"(doc #>> {_path_literal(key)})" for key in spec.keys)
        if not spec.unique:
            return f"CREATE INDEX IF NOT EXISTS {index_name} ON {self._table} ({expressions})"

        # Missing fields collide with each other (PostgreSQL 15+)
        return (
            f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} "
            f"ON {self._table} ({expressions}) NULLS NOT DISTINCT"
        )

    def index_name(self, constraint: Optional[str]) -> Optional[str]:
        """Map a violated constraint back to its ``IndexSpec`` name"""
        if constraint is None:
            return None
        if constraint == f"{self._name}_pkey":
            return PRIMARY_KEY_INDEX
        prefix = f"{self._name}_"
        if constraint.startswith(prefix):
            return constraint[len(prefix):]
        return constraint

    def _duplicate(self, error: asyncpg.UniqueViolationError) -> WriteResult:
        constraint = getattr(error, "constraint_name", None)
        return WriteResult.duplicate_key(error, index=self.index_name(constraint))

    async def ensure_created(self) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self._table} ("
                "id TEXT PRIMARY KEY, doc JSONB NOT NULL)"
            )

    async def create_index(self, spec: IndexSpec) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(self.index_sql(spec))
        logger.debug(f"Ensured index {spec.name} on {self._name}")

    # ==================== Writes ====================

    async def _execute(self, query: str, *args: Any) -> Tuple[Optional[str], Optional[WriteResult]]:
        """Run a write; returns (status, None) or (None, failed WriteResult)"""
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, *args)
        except asyncpg.UniqueViolationError as e:
            return None, self._duplicate(e)
        except asyncpg.PostgresError as e:
            return None, WriteResult.failure(e)
        return status, None

    async def insert_one(self, document: Document) -> WriteResult:
        status, failed = await self._execute(
            f"INSERT INTO {self._table} (id, doc) VALUES ($1, $2::jsonb)",
            document[ID_FIELD],
            _dump(document)
        )
        if failed:
            return failed
        return WriteResult.success(inserted=_rows_affected(status))

    async def insert_many(self, documents: List[Document]) -> WriteResult:
        if not documents:
            return WriteResult.success()

        records = [(doc[ID_FIELD], _dump(doc)) for doc in documents]
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        f"INSERT INTO {self._table} (id, doc) VALUES ($1, $2::jsonb)",
                        records
                    )
        except asyncpg.UniqueViolationError as e:
            return self._duplicate(e)
        except asyncpg.PostgresError as e:
            return WriteResult.failure(e)
        return WriteResult.success(inserted=len(records))

    async def replace_one(self, document_id: str, document: Document) -> WriteResult:
        document = {**document, ID_FIELD: document_id}
        status, failed = await self._execute(
            f"UPDATE {self._table} SET doc = $2::jsonb WHERE id = $1",
            document_id,
            _dump(document)
        )
        if failed:
            return failed
        return WriteResult.success(matched=_rows_affected(status))

    async def update_fields(self, document_id: str, fields: Document) -> WriteResult:
        status, failed = await self._execute(
            f"UPDATE {self._table} SET doc = doc || $2::jsonb WHERE id = $1",
            document_id,
            _dump(fields)
        )
        if failed:
            return failed
        return WriteResult.success(matched=_rows_affected(status))

    async def insert_if_absent(self, document_id: str, document: Document) -> WriteResult:
        document = {**document, ID_FIELD: document_id}
        status, failed = await self._execute(
            f"INSERT INTO {self._table} (id, doc) VALUES ($1, $2::jsonb) "
            "ON CONFLICT (id) DO NOTHING",
            document_id,
            _dump(document)
        )
        if failed:
            return failed
        if _rows_affected(status):
            return WriteResult.success(inserted=1)
        return WriteResult.success(matched=1)

    # ==================== Reads ====================

    def find_sql(
        self,
        predicate: Optional[Predicate] = None,
        options: Optional[FindOptions] = None
    ) -> Tuple[str, List[Any]]:
        options = options or FindOptions()
        compiler = SqlCompiler()
        where = compiler.compile(predicate)
        query = (
            f"SELECT doc FROM {self._table} WHERE {where}"
            f"{compiler.order_by(options)}{compiler.paging(options)}"
        )
        return query, compiler.params

    async def find(
        self,
        predicate: Optional[Predicate] = None,
        options: Optional[FindOptions] = None
    ) -> List[Document]:
        query, params = self.find_sql(predicate, options)
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [_load(row["doc"]) for row in rows]

    async def count(self, predicate: Optional[Predicate] = None) -> int:
        compiler = SqlCompiler()
        where = compiler.compile(predicate)
        async with self._pool.acquire() as conn:
            return await conn.fetchval(
                f"SELECT COUNT(*) FROM {self._table} WHERE {where}",
                *compiler.params
            )


class PostgresDocumentStore(DocumentStorePort):
    """
    PostgreSQL implementation of DocumentStorePort.

    One table per collection; collection handles share the pool.
    """

    def __init__(self, pool: Pool):
        """
        Initialize PostgreSQL document store.

        Args:
            pool: asyncpg connection pool
        """
        self._pool = pool
        self._collections: Dict[str, PostgresDocumentCollection] = {}

    @classmethod
    async def create(
        cls,
        dsn: str,
        *,
        min_size: int = 2,
        max_size: int = 10,
        **kwargs
    ) -> "PostgresDocumentStore":
        """
        Factory method to create store with connection pool.

        Args:
            dsn: PostgreSQL connection string
            min_size: Minimum pool connections
            max_size: Maximum pool connections
            **kwargs: Additional asyncpg pool options
        """
        pool = await asyncpg.create_pool(
            dsn,
            min_size=min_size,
            max_size=max_size,
            **kwargs
        )
        logger.info(f"PostgreSQL document store pool created (min={min_size}, max={max_size})")
        return cls(pool)

    def collection(self, name: str) -> PostgresDocumentCollection:
        if name not in self._collections:
            self._collections[name] = PostgresDocumentCollection(self._pool, name)
        return self._collections[name]

    async def close(self) -> None:
        """Close the connection pool."""
        await self._pool.close()
