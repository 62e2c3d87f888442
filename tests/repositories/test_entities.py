"""
Tests for registry entities and value objects
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from client_registry.repositories import (
    Client,
    Entity,
    ClientPublishReport,
    ClientVersion,
    DocumentHash,
    HashFormat,
    Issue,
    IssueType,
    PublishState,
    PublishedClient,
    Query,
    Tag,
    deduplicate_tags,
)


class TestTags:

    def test_identity_ignores_published(self):
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = Tag("env", "prod", published=earlier)
        second = Tag("env", "prod", published=earlier + timedelta(days=1))

        assert first.identity == second.identity
        assert first != second

    def test_deduplicate_keeps_first_occurrence_and_order(self):
        first = Tag("env", "prod")
        tags = [first, Tag("team", "web"), Tag("env", "prod"), Tag("env", "dev")]

        result = deduplicate_tags(tags)

        assert [t.identity for t in result] == [
            ("env", "prod"), ("team", "web"), ("env", "dev")
        ]
        assert result[0] is first

    def test_deduplicate_empty(self):
        assert deduplicate_tags([]) == []


class TestDocuments:

    def test_client_document(self):
        schema_id = uuid4()
        client = Client(name="web", schema_id=schema_id)

        data = client.to_dict()

        assert data == {
            "id": str(client.id),
            "name": "web",
            "schema_id": str(schema_id),
            "description": None,
        }
        assert Client.from_dict(data) == client

    def test_client_version_document(self):
        version = ClientVersion(
            client_id=uuid4(),
            external_id="build-42",
            query_ids=[uuid4(), uuid4()],
            tags=[Tag("env", "prod")],
        )

        data = version.to_dict()

        assert data["query_ids"] == [str(q) for q in version.query_ids]
        assert data["tags"][0]["key"] == "env"
        assert isinstance(data["published"], str)
        assert ClientVersion.from_dict(data) == version

    def test_query_document(self):
        query = Query(
            hash=DocumentHash("abc"),
            external_hashes=[DocumentHash("q1", algorithm="sha256", format=HashFormat.BASE64)],
            document="{ me { id } }",
        )

        data = query.to_dict()

        assert data["hash"] == {"hash": "abc", "algorithm": "md5", "format": "hex"}
        assert data["external_hashes"][0]["format"] == "base64"
        restored = Query.from_dict(data)
        assert restored.external_hashes[0].algorithm == "sha256"
        assert restored == query

    def test_publish_report_document(self):
        report = ClientPublishReport(
            client_version_id=uuid4(),
            environment_id=uuid4(),
            state=PublishState.REJECTED,
            issues=[Issue("Field `x` does not exist", code="FIELD", type=IssueType.ERROR)],
        )

        data = report.to_dict()

        assert data["state"] == "rejected"
        assert data["issues"][0]["type"] == "error"
        assert ClientPublishReport.from_dict(data) == report

    def test_published_client_document(self):
        published = PublishedClient(
            environment_id=uuid4(),
            schema_id=None,
            client_id=uuid4(),
            client_version_id=uuid4(),
        )

        data = published.to_dict()

        assert data["schema_id"] is None
        assert PublishedClient.from_dict(data) == published
        assert "from_dict" not in vars(Entity)
