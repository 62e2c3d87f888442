"""
In-Memory Document Store
Development and testing implementation using in-memory storage.
"""
from .document_store import MemoryDocumentStore, MemoryDocumentCollection, MemoryWriteError

__all__ = [
    "MemoryDocumentStore",
    "MemoryDocumentCollection",
    "MemoryWriteError",
]
