"""
Port Interfaces
Abstract interfaces for external storage dependencies.
"""
from .document_store_port import (
    Document,
    DocumentStorePort,
    DocumentCollectionPort,
    Predicate,
    Eq,
    In,
    AnyEq,
    And,
    Or,
    IndexSpec,
    FindOptions,
    WriteStatus,
    WriteResult,
    ID_FIELD,
    PRIMARY_KEY_INDEX,
)

__all__ = [
    "Document",
    "DocumentStorePort",
    "DocumentCollectionPort",
    "Predicate",
    "Eq",
    "In",
    "AnyEq",
    "And",
    "Or",
    "IndexSpec",
    "FindOptions",
    "WriteStatus",
    "WriteResult",
    "ID_FIELD",
    "PRIMARY_KEY_INDEX",
]
