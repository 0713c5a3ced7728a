"""Shared fixtures: configuration, an in-memory search backend and a fake embedding client.

The in-memory backend evaluates the same filter syntax the real search
service accepts (category eq '...', securityFilters/any(...), and/or,
parentheses), so security and escaping behaviour is checked end to end.
A filter it cannot parse is rejected the way the real service would
reject it.
"""

import asyncio
import logging
import re
from typing import Any

import pytest

from shared.clients.search.models.IndexDescriptor import IndexDescriptor
from shared.clients.search.models.QueryResult import QueryHit, QueryResult
from shared.clients.search.models.SearchQuery import SearchQuery
from shared.clients.search.models.UploadResult import UploadResult
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import BackendUnavailableError, EmbeddingFailureError

TEST_DIMENSIONS = 8

_TOKEN = re.compile(
    r"\s*(?:"
    r"(?P<cat>category eq '(?P<catval>(?:[^']|'')*)')"
    r"|(?P<sec>securityFilters/any\(sf: sf eq '(?P<secval>(?:[^']|'')*)'\))"
    r"|(?P<lparen>\()"
    r"|(?P<rparen>\))"
    r"|(?P<and>and\b)"
    r"|(?P<or>or\b)"
    r")"
)


def _tokenize(expression: str) -> list[tuple[str, str | None]]:
    tokens = []
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        match = _TOKEN.match(expression, pos)
        if not match or match.end() == pos:
            raise BackendUnavailableError(f"Invalid expression near: {expression[pos:]!r}", status_code=400)
        if match.group("cat") is not None:
            tokens.append(("cat", match.group("catval").replace("''", "'")))
        elif match.group("sec") is not None:
            tokens.append(("sec", match.group("secval").replace("''", "'")))
        else:
            kind = next(k for k in ("lparen", "rparen", "and", "or") if match.group(k) is not None)
            tokens.append((kind, None))
        pos = match.end()
    return tokens


class FilterEvaluator:
    """Recursive-descent evaluator: or_expr := and_expr ('or' and_expr)*; and_expr := atom ('and' atom)*"""

    def __init__(self, expression: str):
        self.tokens = _tokenize(expression)
        self.pos = 0

    def matches(self, doc: dict) -> bool:
        self.pos = 0
        result = self._or(doc)
        if self.pos != len(self.tokens):
            raise BackendUnavailableError("Invalid expression: trailing tokens", status_code=400)
        return result

    def _peek(self) -> str | None:
        return self.tokens[self.pos][0] if self.pos < len(self.tokens) else None

    def _or(self, doc: dict) -> bool:
        result = self._and(doc)
        while self._peek() == "or":
            self.pos += 1
            right = self._and(doc)
            result = result or right
        return result

    def _and(self, doc: dict) -> bool:
        result = self._atom(doc)
        while self._peek() == "and":
            self.pos += 1
            right = self._atom(doc)
            result = result and right
        return result

    def _atom(self, doc: dict) -> bool:
        kind = self._peek()
        if kind == "lparen":
            self.pos += 1
            result = self._or(doc)
            if self._peek() != "rparen":
                raise BackendUnavailableError("Invalid expression: unbalanced parentheses", status_code=400)
            self.pos += 1
            return result
        if kind == "cat":
            value = self.tokens[self.pos][1]
            self.pos += 1
            return doc.get("category") == value
        if kind == "sec":
            value = self.tokens[self.pos][1]
            self.pos += 1
            return value in doc.get("securityFilters", [])
        raise BackendUnavailableError(f"Invalid expression: unexpected token {kind}", status_code=400)


class InMemorySearchBackend:
    """Stand-in for SearchClientInterface that keeps indexes in dictionaries."""

    def __init__(self):
        self.indexes: dict[str, list[dict[str, Any]]] = {}
        self.descriptors: dict[str, IndexDescriptor] = {}
        self.create_calls = 0
        self.created = 0
        self.queries: list[SearchQuery] = []
        self.upload_calls = 0
        self.fail_uploads_with: str | None = None

    def get_engine_name(self) -> str:
        return "inmemory"

    async def do_index_exists(self, index_name: str) -> bool:
        await asyncio.sleep(0)
        return index_name in self.indexes

    async def do_create_index(self, descriptor: IndexDescriptor) -> bool:
        self.create_calls += 1
        await asyncio.sleep(0)
        if descriptor.name in self.indexes:
            return False
        self.indexes[descriptor.name] = []
        self.descriptors[descriptor.name] = descriptor
        self.created += 1
        return True

    async def do_upload_documents(self, index_name: str, documents: list[dict[str, Any]]) -> list[UploadResult]:
        self.upload_calls += 1
        await asyncio.sleep(0)
        if self.fail_uploads_with:
            return [UploadResult(key=d["id"], succeeded=False, error_message=self.fail_uploads_with, status_code=400) for d in documents]
        if index_name not in self.indexes:
            return [UploadResult(key=d["id"], succeeded=False, error_message="Index not found", status_code=404) for d in documents]
        self.indexes[index_name].extend(dict(d) for d in documents)
        return [UploadResult(key=d["id"], succeeded=True, status_code=201) for d in documents]

    async def do_query(self, index_name: str, query: SearchQuery) -> QueryResult:
        self.queries.append(query)
        await asyncio.sleep(0)
        if index_name not in self.indexes:
            raise BackendUnavailableError(f"Index '{index_name}' not found", status_code=404)

        docs = self.indexes[index_name]
        if query.filter:
            evaluator = FilterEvaluator(query.filter)
            docs = [d for d in docs if evaluator.matches(d)]

        scored = []
        terms = [] if query.search_text == "*" else query.search_text.lower().split()
        for position, doc in enumerate(docs):
            text = f"{doc.get('title', '')} {doc.get('content', '')}".lower()
            score = float(sum(text.count(term) for term in terms)) if terms else 1.0
            if terms and score == 0 and query.vector_query is None:
                continue
            if query.vector_query is not None:
                score += 0.01
            scored.append((score, -position, doc))
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)

        hits = [
            QueryHit(score=score, document={k: doc.get(k) for k in query.select})
            for score, _, doc in scored[:query.top]
        ]
        return QueryResult(hits=hits, total_count=len(scored) if query.include_total_count else None)


class FakeEmbedClient:
    """Returns a fixed-length vector derived from the text length."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS):
        self.dimensions = dimensions
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    def get_engine_name(self) -> str:
        return "fake"

    async def do_get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        if not text or not text.strip():
            raise EmbeddingFailureError("Cannot generate an embedding for empty text.")
        return [float(len(text) % 10) / 10.0] * self.dimensions


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("knowledge_bridge.tests")


@pytest.fixture
def helper_config(monkeypatch, logger) -> HelperConfig:
    """HelperConfig with a small vector size and no engine settings."""
    monkeypatch.setenv("SEARCH_VECTOR_DIMENSIONS", str(TEST_DIMENSIONS))
    monkeypatch.delenv("SEARCH_VECTOR_PROFILE", raising=False)
    monkeypatch.delenv("SEARCH_VECTOR_ALGORITHM", raising=False)
    return HelperConfig(logger=logger)


@pytest.fixture
def azure_env(monkeypatch):
    """Environment for the Azure AI Search and Azure OpenAI engines."""
    monkeypatch.setenv("SEARCH_ENGINE", "azuresearch")
    monkeypatch.setenv("SEARCH_AZURESEARCH_BASE_URL", "https://unit-test.search.windows.net")
    monkeypatch.setenv("SEARCH_AZURESEARCH_API_KEY", "search-admin-key")
    monkeypatch.setenv("SEARCH_AZURESEARCH_API_VERSION", "2024-07-01")
    monkeypatch.setenv("EMBED_ENGINE", "azureopenai")
    monkeypatch.setenv("EMBED_AZUREOPENAI_BASE_URL", "https://unit-test.openai.azure.com")
    monkeypatch.setenv("EMBED_AZUREOPENAI_API_KEY", "openai-key")
    monkeypatch.setenv("EMBED_AZUREOPENAI_DEPLOYMENT", "embedding-small")
    monkeypatch.delenv("EMBED_MODEL_MAX_CHARS", raising=False)


@pytest.fixture
def search_backend() -> InMemorySearchBackend:
    return InMemorySearchBackend()


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()
