"""
Document Query Builder
Lazy, composable queries over a document collection.
"""
from typing import (
    Any, AsyncIterator, Callable, Dict, Generic, List, Optional, Tuple, TypeVar
)

from ..ports.document_store_port import (
    Document,
    DocumentCollectionPort,
    FindOptions,
    Predicate,
    combine,
)
from .base import T


K = TypeVar('K')


class DocumentQuery(Generic[T]):
    """
    A query that is not executed until it is awaited.

    Every builder method returns a new query, so a base query can be shared
    and refined independently. Each execution goes back to the store;
    the same query can be enumerated any number of times.

        versions = repository.get_client_versions(client_id)
        latest = await versions.order_by("published", descending=True).limit(10).to_list()
        total = await versions.count()
    """

    def __init__(
        self,
        collection: DocumentCollectionPort,
        factory: Callable[[Document], T],
        predicates: Tuple[Predicate, ...] = (),
        sort: Tuple[Tuple[str, bool], ...] = (),
        skip: int = 0,
        limit: Optional[int] = None
    ):
        self._collection = collection
        self._factory = factory
        self._predicates = predicates
        self._sort = sort
        self._skip = skip
        self._limit = limit

    def _copy(self, **changes: Any) -> "DocumentQuery[T]":
        state = {
            "predicates": self._predicates,
            "sort": self._sort,
            "skip": self._skip,
            "limit": self._limit,
        }
        state.update(changes)
        return DocumentQuery(self._collection, self._factory, **state)

    # ==================== Builders ====================

    def where(self, predicate: Predicate) -> "DocumentQuery[T]":
        """Add a filter; filters are combined with AND"""
        return self._copy(predicates=self._predicates + (predicate,))

    def order_by(self, field: str, descending: bool = False) -> "DocumentQuery[T]":
        """Add a sort key after any existing ones"""
        return self._copy(sort=self._sort + ((field, descending),))

    def skip(self, count: int) -> "DocumentQuery[T]":
        if count < 0:
            raise ValueError("skip must be >= 0")
        return self._copy(skip=count)

    def limit(self, count: int) -> "DocumentQuery[T]":
        if count < 0:
            raise ValueError("limit must be >= 0")
        return self._copy(limit=count)

    @property
    def predicate(self) -> Optional[Predicate]:
        return combine(self._predicates)

    @property
    def options(self) -> FindOptions:
        return FindOptions(sort=self._sort, skip=self._skip, limit=self._limit)

    # ==================== Execution ====================

    async def to_list(self) -> List[T]:
        documents = await self._collection.find(self.predicate, self.options)
        return [self._factory(doc) for doc in documents]

    async def first_or_none(self) -> Optional[T]:
        documents = await self._collection.find(
            self.predicate,
            FindOptions(sort=self._sort, skip=self._skip, limit=1)
        )
        return self._factory(documents[0]) if documents else None

    async def count(self) -> int:
        if self._skip or self._limit is not None:
            return len(await self._collection.find(self.predicate, self.options))
        return await self._collection.count(self.predicate)

    async def to_dict(self, key: Callable[[T], K]) -> Dict[K, T]:
        """Execute and project the results into a mapping"""
        return {key(entity): entity for entity in await self.to_list()}

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        for entity in await self.to_list():
            yield entity

    def __repr__(self) -> str:
        return (
            f"DocumentQuery(collection={self._collection.name!r}, "
            f"predicate={self.predicate!r}, options={self.options!r})"
        )
