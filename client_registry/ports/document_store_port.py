"""
Document Store Port Interface
Abstract interface for document database operations.

Documents are JSON-compatible dictionaries identified by their ``"id"``
key (a string). Writes never raise for constraint violations or store
failures; they return a tagged ``WriteResult`` so callers decide how to
translate each outcome.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple, Iterable
from uuid import UUID


Document = Dict[str, Any]

ID_FIELD = "id"

# Index name reported for collisions on ``ID_FIELD``
PRIMARY_KEY_INDEX = "_id_"


def normalize_value(value: Any) -> Any:
    """Convert a Python value into its stored (JSON) representation"""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def get_path(document: Document, path: str) -> Any:
    """Resolve a dotted path such as ``hash.hash``; missing keys yield None"""
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


# ==================== Predicates ====================

class Predicate(ABC):
    """Store-agnostic filter over documents"""

    @abstractmethod
    def matches(self, document: Document) -> bool:
        """Evaluate the predicate against an in-memory document"""
        pass


@dataclass(frozen=True)
class Eq(Predicate):
    """``field == value``"""
    field: str
    value: Any

    def __post_init__(self):
        object.__setattr__(self, "value", normalize_value(self.value))

    def matches(self, document: Document) -> bool:
        return get_path(document, self.field) == self.value


@dataclass(frozen=True)
class In(Predicate):
    """``field`` is one of ``values``"""
    field: str
    values: Tuple[Any, ...]

    def __post_init__(self):
        object.__setattr__(
            self, "values", tuple(normalize_value(v) for v in self.values)
        )

    def matches(self, document: Document) -> bool:
        return get_path(document, self.field) in self.values


@dataclass(frozen=True)
class AnyEq(Predicate):
    """Any element of the array ``field`` has ``subfield == value``"""
    field: str
    subfield: str
    value: Any

    def __post_init__(self):
        object.__setattr__(self, "value", normalize_value(self.value))

    def matches(self, document: Document) -> bool:
        items = get_path(document, self.field) or []
        return any(
            isinstance(item, dict) and get_path(item, self.subfield) == self.value
            for item in items
        )


@dataclass(frozen=True)
class And(Predicate):
    predicates: Tuple[Predicate, ...]

    def matches(self, document: Document) -> bool:
        return all(p.matches(document) for p in self.predicates)


@dataclass(frozen=True)
class Or(Predicate):
    predicates: Tuple[Predicate, ...]

    def matches(self, document: Document) -> bool:
        return any(p.matches(document) for p in self.predicates)


def combine(predicates: Iterable[Predicate]) -> Optional[Predicate]:
    """AND together a list of predicates; None when the list is empty"""
    predicates = tuple(predicates)
    if not predicates:
        return None
    if len(predicates) == 1:
        return predicates[0]
    return And(predicates)


# ==================== Indexes & Options ====================

@dataclass(frozen=True)
class IndexSpec:
    """
    Index definition.

    ``keys`` are dotted document paths. A ``multikey`` index covers the
    elements of an array field (e.g. ``external_hashes.hash``) and cannot
    be unique.
    """
    name: str
    keys: Tuple[str, ...]
    unique: bool = False
    multikey: bool = False

    def __post_init__(self):
        if not self.keys:
            raise ValueError("IndexSpec requires at least one key")
        if self.unique and self.multikey:
            raise ValueError("Multikey indexes cannot be unique")


@dataclass(frozen=True)
class FindOptions:
    """Ordering and paging for find operations"""
    sort: Tuple[Tuple[str, bool], ...] = ()  # (field, descending)
    skip: int = 0
    limit: Optional[int] = None


# ==================== Write Outcomes ====================

class WriteStatus(str, Enum):
    """Outcome category of a write"""
    OK = "ok"
    DUPLICATE_KEY = "duplicate_key"
    FAILURE = "failure"


@dataclass
class WriteResult:
    """Tagged outcome of a write operation"""
    status: WriteStatus
    matched: int = 0
    inserted: int = 0
    error: Optional[BaseException] = None
    index: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == WriteStatus.OK

    @classmethod
    def success(cls, matched: int = 0, inserted: int = 0) -> "WriteResult":
        return cls(WriteStatus.OK, matched=matched, inserted=inserted)

    @classmethod
    def duplicate_key(
        cls,
        error: BaseException,
        index: Optional[str] = None
    ) -> "WriteResult":
        return cls(WriteStatus.DUPLICATE_KEY, error=error, index=index)

    @classmethod
    def failure(cls, error: BaseException) -> "WriteResult":
        return cls(WriteStatus.FAILURE, error=error)


# ==================== Ports ====================

class DocumentCollectionPort(ABC):
    """
    Abstract interface for a single document collection.

    Implementations must make every single-document write atomic: a
    cancelled write is either fully applied or not applied at all.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Collection name"""
        pass

    @abstractmethod
    async def ensure_created(self) -> None:
        """Create the backing collection if it does not exist"""
        pass

    @abstractmethod
    async def create_index(self, spec: IndexSpec) -> None:
        """
        Create an index. Must be a no-op if the index already exists.

        Args:
            spec: Index definition
        """
        pass

    @abstractmethod
    async def insert_one(self, document: Document) -> WriteResult:
        """Insert a single document"""
        pass

    @abstractmethod
    async def insert_many(self, documents: List[Document]) -> WriteResult:
        """Insert a batch of documents; all or nothing"""
        pass

    @abstractmethod
    async def replace_one(self, document_id: str, document: Document) -> WriteResult:
        """
        Replace the document with the given id.

        Returns:
            WriteResult with ``matched`` set to 0 when no document matched
        """
        pass

    @abstractmethod
    async def update_fields(self, document_id: str, fields: Document) -> WriteResult:
        """Set top-level fields on the document with the given id"""
        pass

    @abstractmethod
    async def insert_if_absent(self, document_id: str, document: Document) -> WriteResult:
        """
        Insert the document when no document with ``document_id`` exists;
        otherwise leave the stored document untouched.

        Returns:
            WriteResult with ``inserted=1`` on insert or ``matched=1`` when
            the document was already present
        """
        pass

    @abstractmethod
    async def find(
        self,
        predicate: Optional[Predicate] = None,
        options: Optional[FindOptions] = None
    ) -> List[Document]:
        """
        Find documents matching a predicate.

        Args:
            predicate: Filter, or None for the whole collection
            options: Ordering and paging

        Returns:
            Matching documents
        """
        pass

    @abstractmethod
    async def count(self, predicate: Optional[Predicate] = None) -> int:
        """Count documents matching a predicate"""
        pass


class DocumentStorePort(ABC):
    """
    Abstract interface for document database operations.

    This allows swapping between the in-memory store and PostgreSQL
    without changing the repository logic.
    """

    @abstractmethod
    def collection(self, name: str) -> DocumentCollectionPort:
        """Get a collection handle by name"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release store resources"""
        pass
