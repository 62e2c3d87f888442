"""
In-Memory Document Store
Development and testing implementation of the document store port.
"""
from typing import Optional, List, Dict, Any, Iterable, Tuple
import asyncio
import copy
import json
import logging

from ...ports.document_store_port import (
    Document,
    DocumentCollectionPort,
    DocumentStorePort,
    FindOptions,
    IndexSpec,
    Predicate,
    WriteResult,
    ID_FIELD,
    PRIMARY_KEY_INDEX,
    get_path,
)

logger = logging.getLogger(__name__)


class MemoryWriteError(Exception):
    """Write rejected by the in-memory store"""

    def __init__(self, message: str, index: Optional[str] = None):
        super().__init__(message)
        self.index = index


def _hashable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return value


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # None sorts first, like a missing field
    return (value is not None, value)


class MemoryDocumentCollection(DocumentCollectionPort):
    """
    In-memory collection.

    Writes are serialized with an asyncio lock and mutate storage only
    after every await, so a cancelled write never leaves a partial change.
    Unique indexes are enforced on insert, replace and update.
    """

    def __init__(
        self,
        name: str,
        simulate_delay: bool = False,
        delay_ms: int = 10
    ):
        self._name = name
        self.simulate_delay = simulate_delay
        self.delay_ms = delay_ms
        self._documents: Dict[str, Document] = {}
        self._indexes: Dict[str, IndexSpec] = {}
        self._lock = asyncio.Lock()
        self._pending_failure: Optional[BaseException] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def indexes(self) -> Dict[str, IndexSpec]:
        return dict(self._indexes)

    async def _delay(self) -> None:
        if self.simulate_delay:
            await asyncio.sleep(self.delay_ms / 1000)

    def fail_next_write(self, error: BaseException) -> None:
        """Make the next write report ``error`` as a store failure (for testing)"""
        self._pending_failure = error

    def _take_failure(self) -> Optional[WriteResult]:
        if self._pending_failure is None:
            return None
        error, self._pending_failure = self._pending_failure, None
        return WriteResult.failure(error)

    def _index_key(self, spec: IndexSpec, document: Document) -> Tuple[Any, ...]:
        return tuple(_hashable(get_path(document, key)) for key in spec.keys)

    def _find_conflict(
        self,
        document: Document,
        exclude_id: Optional[str] = None,
        pending: Iterable[Document] = ()
    ) -> Optional[str]:
        """Return the name of the first unique index ``document`` collides on"""
        others = [
            doc for doc_id, doc in self._documents.items() if doc_id != exclude_id
        ]
        others.extend(pending)

        for spec in self._indexes.values():
            if not spec.unique:
                continue
            key = self._index_key(spec, document)
            for other in others:
                if self._index_key(spec, other) == key:
                    return spec.name
        return None

    def _duplicate(self, document: Document, index: str) -> WriteResult:
        error = MemoryWriteError(
            f"E11000 duplicate key error collection: {self._name} index: {index} "
            f"id: {document.get(ID_FIELD)}",
            index=index
        )
        logger.debug(f"Duplicate key on {self._name}.{index}")
        return WriteResult.duplicate_key(error, index=index)

    # ==================== Schema ====================

    async def ensure_created(self) -> None:
        return None

    async def create_index(self, spec: IndexSpec) -> None:
        async with self._lock:
            existing = self._indexes.get(spec.name)
            if existing is not None and existing != spec:
                raise MemoryWriteError(
                    f"Index {spec.name} already exists with different options",
                    index=spec.name
                )
            self._indexes[spec.name] = spec

    # ==================== Writes ====================

    async def insert_one(self, document: Document) -> WriteResult:
        await self._delay()
        async with self._lock:
            failure = self._take_failure()
            if failure:
                return failure

            document = copy.deepcopy(document)
            document_id = document[ID_FIELD]
            if document_id in self._documents:
                return self._duplicate(document, PRIMARY_KEY_INDEX)

            index = self._find_conflict(document)
            if index:
                return self._duplicate(document, index)

            self._documents[document_id] = document
            return WriteResult.success(inserted=1)

    async def insert_many(self, documents: List[Document]) -> WriteResult:
        await self._delay()
        async with self._lock:
            failure = self._take_failure()
            if failure:
                return failure

            batch: List[Document] = []
            for document in documents:
                document = copy.deepcopy(document)
                document_id = document[ID_FIELD]
                if document_id in self._documents or any(
                    d[ID_FIELD] == document_id for d in batch
                ):
                    return self._duplicate(document, PRIMARY_KEY_INDEX)

                index = self._find_conflict(document, pending=batch)
                if index:
                    return self._duplicate(document, index)
                batch.append(document)

            for document in batch:
                self._documents[document[ID_FIELD]] = document
            return WriteResult.success(inserted=len(batch))

    async def replace_one(self, document_id: str, document: Document) -> WriteResult:
        await self._delay()
        async with self._lock:
            failure = self._take_failure()
            if failure:
                return failure

            if document_id not in self._documents:
                return WriteResult.success(matched=0)

            document = copy.deepcopy(document)
            document[ID_FIELD] = document_id
            index = self._find_conflict(document, exclude_id=document_id)
            if index:
                return self._duplicate(document, index)

            self._documents[document_id] = document
            return WriteResult.success(matched=1)

    async def update_fields(self, document_id: str, fields: Document) -> WriteResult:
        await self._delay()
        async with self._lock:
            failure = self._take_failure()
            if failure:
                return failure

            existing = self._documents.get(document_id)
            if existing is None:
                return WriteResult.success(matched=0)

            updated = {**existing, **copy.deepcopy(fields)}
            updated[ID_FIELD] = document_id
            index = self._find_conflict(updated, exclude_id=document_id)
            if index:
                return self._duplicate(updated, index)

            self._documents[document_id] = updated
            return WriteResult.success(matched=1)

    async def insert_if_absent(self, document_id: str, document: Document) -> WriteResult:
        await self._delay()
        async with self._lock:
            failure = self._take_failure()
            if failure:
                return failure

            if document_id in self._documents:
                return WriteResult.success(matched=1)

            document = copy.deepcopy(document)
            document[ID_FIELD] = document_id
            index = self._find_conflict(document)
            if index:
                return self._duplicate(document, index)

            self._documents[document_id] = document
            return WriteResult.success(inserted=1)

    # ==================== Reads ====================

    async def find(
        self,
        predicate: Optional[Predicate] = None,
        options: Optional[FindOptions] = None
    ) -> List[Document]:
        await self._delay()
        options = options or FindOptions()

        documents = [
            copy.deepcopy(doc) for doc in self._documents.values()
            if predicate is None or predicate.matches(doc)
        ]

        # Apply sort keys from last to first; list.sort is stable
        for field_path, descending in reversed(options.sort):
            documents.sort(
                key=lambda d: _sort_key(get_path(d, field_path)),
                reverse=descending
            )

        end = options.skip + options.limit if options.limit is not None else None
        return documents[options.skip:end]

    async def count(self, predicate: Optional[Predicate] = None) -> int:
        await self._delay()
        if predicate is None:
            return len(self._documents)
        return len([d for d in self._documents.values() if predicate.matches(d)])

    async def clear(self) -> None:
        """Clear all documents (for testing); indexes are kept"""
        async with self._lock:
            self._documents.clear()
            self._pending_failure = None


class MemoryDocumentStore(DocumentStorePort):
    """In-memory document store; collections are created on first use"""

    def __init__(
        self,
        simulate_delay: bool = False,
        delay_ms: int = 10
    ):
        self.simulate_delay = simulate_delay
        self.delay_ms = delay_ms
        self._collections: Dict[str, MemoryDocumentCollection] = {}

    def collection(self, name: str) -> MemoryDocumentCollection:
        if name not in self._collections:
            self._collections[name] = MemoryDocumentCollection(
                name,
                simulate_delay=self.simulate_delay,
                delay_ms=self.delay_ms
            )
        return self._collections[name]

    async def close(self) -> None:
        return None

    async def reset(self) -> None:
        """Clear every collection (for testing)"""
        for collection in self._collections.values():
            await collection.clear()
