"""
Infrastructure Layer
Document store adapters and the store-backed client repository.
"""
from .document_client_repository import DocumentClientRepository

__all__ = [
    "DocumentClientRepository",
]
