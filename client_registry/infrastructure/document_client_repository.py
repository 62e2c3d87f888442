"""
Document Store Client Repository

ClientRepository implementation on top of any DocumentStorePort.
Uniqueness is enforced by the store's unique indexes; duplicate-key
write outcomes are translated into DuplicateKeyError and every other
write failure is re-raised unchanged.
"""
import logging
from typing import Optional, List, Dict, Iterable, Sequence
from uuid import UUID

from ..core.config import RegistrySettings
from ..core.errors import (
    ClientNotFoundError,
    ClientVersionNotFoundError,
    DuplicateKeyError,
)
from ..core.logging_framework import LogCategory, log_context
from ..ports.document_store_port import (
    AnyEq,
    And,
    DocumentCollectionPort,
    DocumentStorePort,
    Eq,
    In,
    IndexSpec,
    WriteResult,
    WriteStatus,
    ID_FIELD,
    PRIMARY_KEY_INDEX,
)
from ..repositories.base import EntityId
from ..repositories.client_repository import (
    ClientRepository,
    Client,
    ClientVersion,
    ClientPublishReport,
    PublishedClient,
    Query,
    Tag,
    deduplicate_tags,
)
from ..repositories.query import DocumentQuery

logger = logging.getLogger(__name__)


CLIENT_INDEXES = (
    IndexSpec("name_unique", ("name",), unique=True),
)
CLIENT_VERSION_INDEXES = (
    IndexSpec("external_id_unique", ("external_id",), unique=True),
)
QUERY_INDEXES = (
    IndexSpec("hash_unique", ("hash.hash",), unique=True),
    IndexSpec("external_hashes", ("external_hashes.hash",), multikey=True),
)
PUBLISH_REPORT_INDEXES = (
    IndexSpec(
        "version_environment_unique",
        ("client_version_id", "environment_id"),
        unique=True
    ),
)
PUBLISHED_CLIENT_INDEXES = (
    IndexSpec(
        "environment_schema_client_unique",
        ("environment_id", "schema_id", "client_id"),
        unique=True
    ),
)


def _ids(ids: Iterable[EntityId]) -> tuple:
    return tuple(str(i) for i in ids)


class DocumentClientRepository(ClientRepository):
    """
    Client repository backed by a document store.

    Use ``create()`` to get an instance with its indexes in place:

        repository = await DocumentClientRepository.create(store, settings)
    """

    def __init__(
        self,
        store: DocumentStorePort,
        settings: Optional[RegistrySettings] = None
    ):
        settings = settings or RegistrySettings()
        self._store = store
        self._clients = store.collection(settings.CLIENTS_COLLECTION)
        self._versions = store.collection(settings.CLIENT_VERSIONS_COLLECTION)
        self._queries = store.collection(settings.QUERIES_COLLECTION)
        self._publish_reports = store.collection(settings.PUBLISH_REPORTS_COLLECTION)
        self._published_clients = store.collection(settings.PUBLISHED_CLIENTS_COLLECTION)

    @classmethod
    async def create(
        cls,
        store: DocumentStorePort,
        settings: Optional[RegistrySettings] = None
    ) -> "DocumentClientRepository":
        """Factory method that builds the repository and ensures its indexes"""
        repository = cls(store, settings)
        await repository.initialize()
        return repository

    @property
    def store(self) -> DocumentStorePort:
        return self._store

    async def initialize(self) -> None:
        """Create collections and indexes; safe to call repeatedly"""
        layout = (
            (self._clients, CLIENT_INDEXES),
            (self._versions, CLIENT_VERSION_INDEXES),
            (self._queries, QUERY_INDEXES),
            (self._publish_reports, PUBLISH_REPORT_INDEXES),
            (self._published_clients, PUBLISHED_CLIENT_INDEXES),
        )
        for collection, indexes in layout:
            await collection.ensure_created()
            for spec in indexes:
                await collection.create_index(spec)

        logger.info(
            "Client registry indexes ensured",
            extra=log_context(LogCategory.INDEX, collections=[c.name for c, _ in layout])
        )

    # ==================== Write Translation ====================

    def _check_write(
        self,
        result: WriteResult,
        collection: DocumentCollectionPort,
        fields: Sequence[str],
        message: str,
        value: Optional[str] = None
    ) -> WriteResult:
        """Raise DuplicateKeyError for duplicate keys, re-raise other failures"""
        if result.status == WriteStatus.DUPLICATE_KEY:
            if result.index == PRIMARY_KEY_INDEX:
                fields = [ID_FIELD]
                message = f"A document with the same id already exists in `{collection.name}`."
                value = None

            logger.warning(
                message,
                extra=log_context(
                    LogCategory.CONFLICT,
                    collection=collection.name,
                    index=result.index,
                    fields=list(fields)
                )
            )
            raise DuplicateKeyError(
                fields, message=message, value=value, cause=result.error
            ) from result.error

        if result.status == WriteStatus.FAILURE:
            raise result.error

        return result

    # ==================== Clients ====================

    def get_clients(self, schema_id: Optional[UUID] = None) -> DocumentQuery[Client]:
        clients = DocumentQuery(self._clients, Client.from_dict)

        if schema_id is not None:
            return clients.where(Eq("schema_id", schema_id))

        return clients

    async def get_client(self, client_id: EntityId) -> Client:
        client = await self.get_clients().where(Eq("id", client_id)).first_or_none()
        if client is None:
            raise ClientNotFoundError(str(client_id))
        return client

    async def get_client_by_name(self, name: str) -> Optional[Client]:
        return await self.get_clients().where(Eq("name", name)).first_or_none()

    async def get_clients_by_ids(self, ids: Iterable[EntityId]) -> Dict[UUID, Client]:
        return await self.get_clients().where(In("id", _ids(ids))).to_dict(lambda c: c.id)

    async def get_clients_by_names(self, names: Iterable[str]) -> Dict[str, Client]:
        return await self.get_clients().where(In("name", tuple(names))).to_dict(lambda c: c.name)

    async def add_client(self, client: Client) -> None:
        result = await self._clients.insert_one(client.to_dict())
        self._check_write(
            result, self._clients, ["name"],
            f"The specified client name `{client.name}` already exists.",
            value=client.name
        )
        logger.debug(f"Added client {client.id} ({client.name})")

    async def update_client(self, client: Client) -> None:
        result = await self._clients.replace_one(str(client.id), client.to_dict())
        self._check_write(
            result, self._clients, ["name"],
            f"The specified client name `{client.name}` already exists.",
            value=client.name
        )

    # ==================== Client Versions ====================

    def get_client_versions(
        self,
        client_id: Optional[UUID] = None
    ) -> DocumentQuery[ClientVersion]:
        versions = DocumentQuery(self._versions, ClientVersion.from_dict)

        if client_id is not None:
            return versions.where(Eq("client_id", client_id))

        return versions

    async def get_client_version(self, client_version_id: EntityId) -> ClientVersion:
        version = await self.get_client_versions().where(
            Eq("id", client_version_id)
        ).first_or_none()
        if version is None:
            raise ClientVersionNotFoundError(str(client_version_id))
        return version

    async def get_client_versions_by_ids(
        self,
        ids: Iterable[EntityId]
    ) -> Dict[UUID, ClientVersion]:
        return await self.get_client_versions().where(In("id", _ids(ids))).to_dict(lambda v: v.id)

    async def add_client_version(self, client_version: ClientVersion) -> None:
        result = await self._versions.insert_one(client_version.to_dict())
        self._check_write(
            result, self._versions, ["external_id"],
            f"The specified external ID `{client_version.external_id}` is already used.",
            value=client_version.external_id
        )

    async def update_client_version_tags(
        self,
        client_version_id: EntityId,
        tags: List[Tag]
    ) -> None:
        if len(tags) > 1:
            tags = deduplicate_tags(tags)

        result = await self._versions.update_fields(
            str(client_version_id),
            {"tags": [tag.to_dict() for tag in tags]}
        )
        self._check_write(
            result, self._versions, ["tags"],
            f"The tags of client version `{client_version_id}` could not be updated."
        )

    # ==================== Publish Reports ====================

    def get_publish_reports(
        self,
        client_version_id: Optional[UUID] = None
    ) -> DocumentQuery[ClientPublishReport]:
        reports = DocumentQuery(self._publish_reports, ClientPublishReport.from_dict)

        if client_version_id is not None:
            return reports.where(Eq("client_version_id", client_version_id))

        return reports

    async def get_publish_report(
        self,
        client_version_id: EntityId,
        environment_id: EntityId
    ) -> Optional[ClientPublishReport]:
        # Matches the (client_version_id, environment_id) unique pair
        return await self.get_publish_reports().where(And((
            Eq("client_version_id", client_version_id),
            Eq("environment_id", environment_id),
        ))).first_or_none()

    async def get_publish_reports_by_ids(
        self,
        ids: Iterable[EntityId]
    ) -> Dict[UUID, ClientPublishReport]:
        return await self.get_publish_reports().where(In("id", _ids(ids))).to_dict(lambda r: r.id)

    def _publish_report_conflict(self, report: ClientPublishReport) -> str:
        return (
            f"A publish report for client version `{report.client_version_id}` "
            f"and environment `{report.environment_id}` already exists."
        )

    async def add_publish_report(self, publish_report: ClientPublishReport) -> None:
        result = await self._publish_reports.insert_one(publish_report.to_dict())
        self._check_write(
            result, self._publish_reports, ["client_version_id", "environment_id"],
            self._publish_report_conflict(publish_report)
        )

    async def update_publish_report(self, publish_report: ClientPublishReport) -> None:
        result = await self._publish_reports.replace_one(
            str(publish_report.id), publish_report.to_dict()
        )
        self._check_write(
            result, self._publish_reports, ["client_version_id", "environment_id"],
            self._publish_report_conflict(publish_report)
        )

    # ==================== Queries ====================

    async def get_query(self, document_hash: str) -> Optional[Query]:
        queries = DocumentQuery(self._queries, Query.from_dict)

        query = await queries.where(Eq("hash.hash", document_hash)).first_or_none()

        if query is None:
            query = await queries.where(
                AnyEq("external_hashes", "hash", document_hash)
            ).first_or_none()

        return query

    async def get_queries_by_ids(self, ids: Iterable[EntityId]) -> Dict[UUID, Query]:
        queries = DocumentQuery(self._queries, Query.from_dict)
        return await queries.where(In("id", _ids(ids))).to_dict(lambda q: q.id)

    async def add_queries(self, queries: Iterable[Query]) -> None:
        documents = [query.to_dict() for query in queries]
        if not documents:
            return

        result = await self._queries.insert_many(documents)
        self._check_write(
            result, self._queries, ["hash"],
            "One or more of the specified query hashes already exist."
        )
        logger.debug(f"Added {len(documents)} queries")

    # ==================== Published Clients ====================

    def get_published_clients(
        self,
        environment_id: Optional[UUID] = None
    ) -> DocumentQuery[PublishedClient]:
        published = DocumentQuery(self._published_clients, PublishedClient.from_dict)

        if environment_id is not None:
            return published.where(Eq("environment_id", environment_id))

        return published

    async def get_published_clients_by_ids(
        self,
        ids: Iterable[EntityId]
    ) -> Dict[UUID, PublishedClient]:
        return await self.get_published_clients().where(
            In("id", _ids(ids))
        ).to_dict(lambda p: p.id)

    async def set_published_client(self, published_client: PublishedClient) -> bool:
        # Every field is insert-only: an existing document is left as is
        on_insert = published_client.to_dict()
        result = await self._published_clients.insert_if_absent(
            str(published_client.id), on_insert
        )
        self._check_write(
            result, self._published_clients,
            ["environment_id", "schema_id", "client_id"],
            f"Client `{published_client.client_id}` is already published for schema "
            f"`{published_client.schema_id}` in environment `{published_client.environment_id}`."
        )
        return result.inserted > 0
