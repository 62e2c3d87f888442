"""
PostgreSQL Document Store
JSONB-backed implementation using asyncpg.
"""
from .document_store import PostgresDocumentStore, PostgresDocumentCollection, SqlCompiler

__all__ = [
    "PostgresDocumentStore",
    "PostgresDocumentCollection",
    "SqlCompiler",
]
