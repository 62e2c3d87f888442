"""
Repository Layer
Repository interfaces, entities and the lazy query builder.
"""
from .base import Entity, EntityId
from .query import DocumentQuery
from .client_repository import (
    ClientRepository,
    Client,
    ClientVersion,
    Query,
    ClientPublishReport,
    PublishedClient,
    Tag,
    DocumentHash,
    HashFormat,
    Issue,
    IssueType,
    PublishState,
    deduplicate_tags,
)

__all__ = [
    "Entity",
    "EntityId",
    "DocumentQuery",
    "ClientRepository",
    "Client",
    "ClientVersion",
    "Query",
    "ClientPublishReport",
    "PublishedClient",
    "Tag",
    "DocumentHash",
    "HashFormat",
    "Issue",
    "IssueType",
    "PublishState",
    "deduplicate_tags",
]
