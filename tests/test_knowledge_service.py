"""Behaviour of KnowledgeService against the in-memory search backend."""

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from services.knowledge.KnowledgeService import KnowledgeService
from shared.models.errors import BackendUnavailableError, EmbeddingFailureError
from shared.models.knowledge import (
    KnowledgeRequest,
    KnowledgeSearchRequest,
    OperationStatus,
)


@pytest.fixture
def service(helper_config, search_backend, embed_client) -> KnowledgeService:
    return KnowledgeService(helper_config=helper_config, search_client=search_backend, embed_client=embed_client)


async def _index(service, content, index_name="kb", **kwargs):
    response = await service.index_knowledge(KnowledgeRequest(content=content, index_name=index_name, **kwargs))
    assert response.status == OperationStatus.SUCCESS, response.message
    return response


class TestIndexKnowledge:
    @pytest.mark.asyncio
    async def test_success(self, service, search_backend):
        response = await _index(service, "Holiday policy", title="HR", category="policies", metadata={"v": 2})

        assert response.id
        assert response.message == "Knowledge successfully indexed with vector embeddings"
        stored = search_backend.indexes["kb"][0]
        assert stored["id"] == response.id
        assert stored["title"] == "HR"
        assert stored["metadata"] == '{"v": 2}'
        assert len(stored["text_vector"]) == 8

    @pytest.mark.asyncio
    async def test_each_document_gets_its_own_id(self, service):
        first = await _index(service, "one")
        second = await _index(service, "two")
        assert first.id != second.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content,index_name", [("", "kb"), ("   ", "kb"), ("text", ""), ("text", "  ")])
    async def test_missing_input_is_an_error(self, service, search_backend, embed_client, content, index_name):
        response = await service.index_knowledge(KnowledgeRequest(content=content, index_name=index_name))

        assert response.status == OperationStatus.ERROR
        assert response.id == ""
        assert search_backend.create_calls == 0
        assert embed_client.calls == []

    @pytest.mark.asyncio
    async def test_embedding_failure_writes_nothing(self, service, search_backend, embed_client):
        embed_client.fail_with = EmbeddingFailureError("No embeddings returned")

        response = await service.index_knowledge(KnowledgeRequest(content="text", index_name="kb"))

        assert response.status == OperationStatus.ERROR
        assert response.message == "No embeddings returned"
        assert search_backend.upload_calls == 0
        assert search_backend.indexes["kb"] == []

    @pytest.mark.asyncio
    async def test_per_document_failure_surfaces_backend_reason(self, service, search_backend):
        search_backend.fail_uploads_with = "Document too large"

        response = await service.index_knowledge(KnowledgeRequest(content="text", index_name="kb"))

        assert response.status == OperationStatus.ERROR
        assert response.message == "Failed to index document: Document too large"

    @pytest.mark.asyncio
    async def test_index_setup_failure(self, service, search_backend, monkeypatch):
        async def broken(index_name):
            raise BackendUnavailableError("service down", status_code=503)

        monkeypatch.setattr(search_backend, "do_index_exists", broken)

        response = await service.index_knowledge(KnowledgeRequest(content="text", index_name="kb"))

        assert response.status == OperationStatus.ERROR
        assert response.message == "Failed to create or verify index: kb"
        assert search_backend.upload_calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_first_use(self, service, search_backend):
        responses = await asyncio.gather(
            service.index_knowledge(KnowledgeRequest(content="first", index_name="brand-new")),
            service.index_knowledge(KnowledgeRequest(content="second", index_name="brand-new")),
        )

        assert all(r.status == OperationStatus.SUCCESS for r in responses)
        assert search_backend.created == 1
        assert len(search_backend.indexes["brand-new"]) == 2


class TestEnsureIndexExists:
    @pytest.mark.asyncio
    async def test_idempotent(self, service, search_backend):
        assert await service.ensure_index_exists("kb") is True
        assert await service.ensure_index_exists("kb") is True
        assert search_backend.created == 1

    @pytest.mark.asyncio
    async def test_failure_is_false(self, service, search_backend, monkeypatch):
        async def broken(descriptor):
            raise BackendUnavailableError("schema conflict", status_code=400)

        monkeypatch.setattr(search_backend, "do_create_index", broken)
        assert await service.ensure_index_exists("kb") is False


class TestSearchKnowledge:
    @pytest.mark.asyncio
    async def test_security_round_trip(self, service):
        indexed = await _index(service, "Quarterly roadmap", security_filters={"dept": ["eng", "sales"]})

        allowed = await service.search_knowledge(
            KnowledgeSearchRequest(query="roadmap", index_name="kb", security_filters={"dept": "eng"})
        )
        denied = await service.search_knowledge(
            KnowledgeSearchRequest(query="roadmap", index_name="kb", security_filters={"dept": "hr"})
        )

        assert allowed.status == OperationStatus.SUCCESS
        assert [r.id for r in allowed.results] == [indexed.id]
        assert denied.status == OperationStatus.SUCCESS
        assert denied.results == []
        assert denied.total_count == 0

    @pytest.mark.asyncio
    async def test_every_attribute_must_match(self, service):
        await _index(service, "EU engineering notes", security_filters={"dept": "eng", "region": "eu"})
        await _index(service, "US engineering notes", security_filters={"dept": "eng", "region": "us"})

        response = await service.search_knowledge(
            KnowledgeSearchRequest(query="", index_name="kb", security_filters={"dept": "eng", "region": ["eu", "apac"]})
        )

        assert [r.content for r in response.results] == ["EU engineering notes"]

    @pytest.mark.asyncio
    async def test_quoted_category(self, service):
        target = await _index(service, "Case file", category="O'Brien")
        await _index(service, "Other case file", category="Smith")

        response = await service.search_knowledge(
            KnowledgeSearchRequest(query="case", index_name="kb", categories=["O'Brien"])
        )

        assert response.status == OperationStatus.SUCCESS
        assert [r.id for r in response.results] == [target.id]
        assert response.results[0].category == "O'Brien"

    @pytest.mark.asyncio
    async def test_injected_category_matches_nothing(self, service):
        await _index(service, "Secret plan", category="restricted")

        response = await service.search_knowledge(
            KnowledgeSearchRequest(query="", index_name="kb", categories=["x' or category eq 'restricted"])
        )

        assert response.status == OperationStatus.SUCCESS
        assert response.results == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_empty_query_matches_all(self, service, search_backend, embed_client, query):
        for n in range(4):
            await _index(service, f"document {n}")
        embed_calls = len(embed_client.calls)

        response = await service.search_knowledge(KnowledgeSearchRequest(query=query, index_name="kb", top=3))

        assert response.status == OperationStatus.SUCCESS
        assert len(response.results) == 3
        assert response.total_count == 4
        assert response.query == query
        sent = search_backend.queries[-1]
        assert sent.search_text == "*"
        assert sent.vector_query is None
        assert len(embed_client.calls) == embed_calls

    @pytest.mark.asyncio
    async def test_hybrid_request_shape(self, service, search_backend):
        await _index(service, "Holiday policy")

        await service.search_knowledge(
            KnowledgeSearchRequest(query="holiday", index_name="kb", top=7, categories=["hr"])
        )

        sent = search_backend.queries[-1]
        assert sent.search_text == "holiday"
        assert sent.top == 7
        assert sent.vector_query.k == 14
        assert sent.vector_query.field == "text_vector"
        assert sent.include_total_count is True
        assert sent.filter == "(category eq 'hr')"
        assert "text_vector" not in sent.select

    @pytest.mark.asyncio
    async def test_content_omitted_when_not_requested(self, service, search_backend):
        await _index(service, "A long body of text " * 200)

        response = await service.search_knowledge(
            KnowledgeSearchRequest(query="text", index_name="kb", include_content=False)
        )

        assert response.results[0].content == ""
        assert "content" not in search_backend.queries[-1].select

    @pytest.mark.asyncio
    async def test_content_included_by_default(self, service):
        await _index(service, "Holiday policy")

        response = await service.search_knowledge(KnowledgeSearchRequest(query="holiday", index_name="kb"))

        assert response.results[0].content == "Holiday policy"

    @pytest.mark.asyncio
    async def test_corrupt_metadata_does_not_fail_search(self, service, search_backend):
        good = await _index(service, "good doc", metadata={"source": "wiki"})
        bad = await _index(service, "bad doc", metadata={"source": "wiki"})
        next(d for d in search_backend.indexes["kb"] if d["id"] == bad.id)["metadata"] = "{broken"

        response = await service.search_knowledge(KnowledgeSearchRequest(query="doc", index_name="kb"))

        assert response.status == OperationStatus.SUCCESS
        by_id = {r.id: r for r in response.results}
        assert by_id[good.id].metadata == {"source": "wiki"}
        assert by_id[bad.id].metadata is None

    @pytest.mark.asyncio
    async def test_timestamps_survive_round_trip(self, service):
        await _index(service, "dated doc")

        response = await service.search_knowledge(KnowledgeSearchRequest(query="dated", index_name="kb"))

        result = response.results[0]
        assert result.created_at.year >= 2024
        assert result.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_index_is_created_on_search(self, service, search_backend):
        response = await service.search_knowledge(KnowledgeSearchRequest(query="", index_name="new-index"))

        assert response.status == OperationStatus.SUCCESS
        assert response.results == []
        assert "new-index" in search_backend.indexes

    @pytest.mark.asyncio
    async def test_backend_error_becomes_envelope(self, service, search_backend, monkeypatch):
        await _index(service, "doc")

        async def broken(index_name, query):
            raise BackendUnavailableError("Request failed with status 503", status_code=503)

        monkeypatch.setattr(search_backend, "do_query", broken)
        response = await service.search_knowledge(KnowledgeSearchRequest(query="doc", index_name="kb"))

        assert response.status == OperationStatus.ERROR
        assert response.message == "Request failed with status 503"
        assert response.results == []
        assert response.query == "doc"

    @pytest.mark.asyncio
    async def test_index_failure_becomes_envelope(self, service, search_backend, monkeypatch):
        async def broken(index_name):
            raise BackendUnavailableError("service down", status_code=503)

        monkeypatch.setattr(search_backend, "do_index_exists", broken)
        response = await service.search_knowledge(KnowledgeSearchRequest(query="doc", index_name="kb"))

        assert response.status == OperationStatus.ERROR
        assert response.message == "Failed to create or verify index: kb"
        assert search_backend.queries == []


class TestTopBounds:
    @pytest.mark.parametrize("top", [0, 101, -1])
    def test_request_model_rejects_out_of_range(self, top):
        with pytest.raises(PydanticValidationError):
            KnowledgeSearchRequest(query="x", index_name="kb", top=top)

    def test_request_model_accepts_bounds(self):
        assert KnowledgeSearchRequest(query="x", index_name="kb", top=100).top == 100
        assert KnowledgeSearchRequest(query="x", index_name="kb", top=1).top == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("top", [0, 101])
    async def test_engine_rejects_before_querying(self, service, search_backend, embed_client, top):
        request = KnowledgeSearchRequest.model_construct(
            query="x", index_name="kb", top=top, categories=None, security_filters=None, include_content=True
        )

        response = await service.search_knowledge(request)

        assert response.status == OperationStatus.ERROR
        assert "between 1 and 100" in response.message
        assert search_backend.create_calls == 0
        assert search_backend.queries == []
        assert embed_client.calls == []

    @pytest.mark.asyncio
    async def test_top_100_is_accepted(self, service, search_backend):
        response = await service.search_knowledge(KnowledgeSearchRequest(query="x", index_name="kb", top=100))

        assert response.status == OperationStatus.SUCCESS
        assert search_backend.queries[-1].top == 100
        assert search_backend.queries[-1].vector_query.k == 200
