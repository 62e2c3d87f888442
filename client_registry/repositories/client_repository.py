"""
Client Repository Interface
Repository for GraphQL client registrations, their versions, persisted
queries and publish state.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Tuple
from uuid import UUID

from .base import Entity, EntityId, parse_uuid, parse_datetime
from .query import DocumentQuery


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Value Objects ====================

@dataclass(frozen=True)
class Tag:
    """Key/value label attached to a client version"""
    key: str
    value: str
    published: datetime = field(default_factory=_utcnow)

    @property
    def identity(self) -> Tuple[str, str]:
        """Value used for tag equality; ``published`` is not part of it"""
        return (self.key, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "published": self.published.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tag":
        return cls(
            key=data["key"],
            value=data["value"],
            published=parse_datetime(data.get("published")) or _utcnow()
        )


def deduplicate_tags(tags: Iterable[Tag]) -> List[Tag]:
    """
    Collapse tags with the same key and value into one.

    The first occurrence wins and survivors keep their relative order.
    """
    unique: Dict[Tuple[str, str], Tag] = {}
    for tag in tags:
        unique.setdefault(tag.identity, tag)
    return list(unique.values())


class HashFormat(str, Enum):
    """Encoding of a document hash"""
    HEX = "hex"
    BASE64 = "base64"


@dataclass(frozen=True)
class DocumentHash:
    """Content hash of a query document"""
    hash: str
    algorithm: str = "md5"
    format: HashFormat = HashFormat.HEX

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "algorithm": self.algorithm,
            "format": self.format.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentHash":
        return cls(
            hash=data["hash"],
            algorithm=data.get("algorithm", "md5"),
            format=HashFormat(data.get("format", HashFormat.HEX.value))
        )


class PublishState(str, Enum):
    """Outcome of publishing a client version to an environment"""
    PUBLISHED = "published"
    REJECTED = "rejected"


class IssueType(str, Enum):
    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Issue:
    """Problem found while publishing a client version"""
    message: str
    code: str = ""
    type: IssueType = IssueType.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            message=data["message"],
            code=data.get("code", ""),
            type=IssueType(data.get("type", IssueType.ERROR.value))
        )


# ==================== Entities ====================

@dataclass
class Client(Entity):
    """Client application that issues GraphQL queries"""
    name: str = ""
    schema_id: Optional[UUID] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Client":
        return cls(
            id=parse_uuid(data["id"]),
            name=data["name"],
            schema_id=parse_uuid(data.get("schema_id")),
            description=data.get("description")
        )


@dataclass
class ClientVersion(Entity):
    """A released build of a client and the queries it ships"""
    client_id: Optional[UUID] = None
    external_id: str = ""
    query_ids: List[UUID] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    published: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientVersion":
        return cls(
            id=parse_uuid(data["id"]),
            client_id=parse_uuid(data.get("client_id")),
            external_id=data["external_id"],
            query_ids=[parse_uuid(q) for q in data.get("query_ids", [])],
            tags=[Tag.from_dict(t) for t in data.get("tags", [])],
            published=parse_datetime(data.get("published")) or _utcnow()
        )


@dataclass
class Query(Entity):
    """Persisted query document"""
    hash: Optional[DocumentHash] = None
    external_hashes: List[DocumentHash] = field(default_factory=list)
    document: Optional[str] = None
    published: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Query":
        return cls(
            id=parse_uuid(data["id"]),
            hash=DocumentHash.from_dict(data["hash"]) if data.get("hash") else None,
            external_hashes=[
                DocumentHash.from_dict(h) for h in data.get("external_hashes", [])
            ],
            document=data.get("document"),
            published=parse_datetime(data.get("published")) or _utcnow()
        )


@dataclass
class ClientPublishReport(Entity):
    """Result of publishing one client version to one environment"""
    client_version_id: Optional[UUID] = None
    environment_id: Optional[UUID] = None
    state: PublishState = PublishState.PUBLISHED
    issues: List[Issue] = field(default_factory=list)
    published: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientPublishReport":
        return cls(
            id=parse_uuid(data["id"]),
            client_version_id=parse_uuid(data.get("client_version_id")),
            environment_id=parse_uuid(data.get("environment_id")),
            state=PublishState(data.get("state", PublishState.PUBLISHED.value)),
            issues=[Issue.from_dict(i) for i in data.get("issues", [])],
            published=parse_datetime(data.get("published")) or _utcnow()
        )


@dataclass
class PublishedClient(Entity):
    """The client version currently live for a schema in an environment"""
    environment_id: Optional[UUID] = None
    schema_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    client_version_id: Optional[UUID] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PublishedClient":
        return cls(
            id=parse_uuid(data["id"]),
            environment_id=parse_uuid(data.get("environment_id")),
            schema_id=parse_uuid(data.get("schema_id")),
            client_id=parse_uuid(data.get("client_id")),
            client_version_id=parse_uuid(data.get("client_version_id"))
        )


# ==================== Repository Interface ====================

class ClientRepository(ABC):
    """
    Repository interface for client registry operations.

    Single-item lookups by id raise ``NotFoundError``; lookups by name or
    hash return None; batch lookups omit ids that do not exist. Writes that
    violate a uniqueness constraint raise ``DuplicateKeyError``.
    """

    # ==================== Clients ====================

    @abstractmethod
    def get_clients(self, schema_id: Optional[UUID] = None) -> DocumentQuery[Client]:
        """Lazy query over clients, optionally restricted to one schema"""
        pass

    @abstractmethod
    async def get_client(self, client_id: EntityId) -> Client:
        """Get client by id"""
        pass

    @abstractmethod
    async def get_client_by_name(self, name: str) -> Optional[Client]:
        """Get client by unique name"""
        pass

    @abstractmethod
    async def get_clients_by_ids(self, ids: Iterable[EntityId]) -> Dict[UUID, Client]:
        """Get multiple clients keyed by id"""
        pass

    @abstractmethod
    async def get_clients_by_names(self, names: Iterable[str]) -> Dict[str, Client]:
        """Get multiple clients keyed by name"""
        pass

    @abstractmethod
    async def add_client(self, client: Client) -> None:
        pass

    @abstractmethod
    async def update_client(self, client: Client) -> None:
        pass

    # ==================== Client Versions ====================

    @abstractmethod
    def get_client_versions(
        self,
        client_id: Optional[UUID] = None
    ) -> DocumentQuery[ClientVersion]:
        """Lazy query over client versions, optionally for one client"""
        pass

    @abstractmethod
    async def get_client_version(self, client_version_id: EntityId) -> ClientVersion:
        pass

    @abstractmethod
    async def get_client_versions_by_ids(
        self,
        ids: Iterable[EntityId]
    ) -> Dict[UUID, ClientVersion]:
        pass

    @abstractmethod
    async def add_client_version(self, client_version: ClientVersion) -> None:
        pass

    @abstractmethod
    async def update_client_version_tags(
        self,
        client_version_id: EntityId,
        tags: List[Tag]
    ) -> None:
        """Replace the tags of a client version, collapsing duplicates"""
        pass

    # ==================== Publish Reports ====================

    @abstractmethod
    def get_publish_reports(
        self,
        client_version_id: Optional[UUID] = None
    ) -> DocumentQuery[ClientPublishReport]:
        pass

    @abstractmethod
    async def get_publish_report(
        self,
        client_version_id: EntityId,
        environment_id: EntityId
    ) -> Optional[ClientPublishReport]:
        pass

    @abstractmethod
    async def get_publish_reports_by_ids(
        self,
        ids: Iterable[EntityId]
    ) -> Dict[UUID, ClientPublishReport]:
        pass

    @abstractmethod
    async def add_publish_report(self, publish_report: ClientPublishReport) -> None:
        pass

    @abstractmethod
    async def update_publish_report(self, publish_report: ClientPublishReport) -> None:
        pass

    # ==================== Queries ====================

    @abstractmethod
    async def get_query(self, document_hash: str) -> Optional[Query]:
        """Resolve a query by its primary hash or any of its external hashes"""
        pass

    @abstractmethod
    async def get_queries_by_ids(self, ids: Iterable[EntityId]) -> Dict[UUID, Query]:
        pass

    @abstractmethod
    async def add_queries(self, queries: Iterable[Query]) -> None:
        pass

    # ==================== Published Clients ====================

    @abstractmethod
    def get_published_clients(
        self,
        environment_id: Optional[UUID] = None
    ) -> DocumentQuery[PublishedClient]:
        pass

    @abstractmethod
    async def get_published_clients_by_ids(
        self,
        ids: Iterable[EntityId]
    ) -> Dict[UUID, PublishedClient]:
        pass

    @abstractmethod
    async def set_published_client(self, published_client: PublishedClient) -> bool:
        """
        Record a published client.

        Returns:
            True if a new document was inserted, False if one with the same
            id already existed (its fields are left untouched)
        """
        pass
