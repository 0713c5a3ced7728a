"""Pydantic models for knowledge indexing and hybrid search.

Hierarchy:
  KnowledgeRequest / KnowledgeResponse              : index one piece of knowledge.
  KnowledgeSearchRequest / KnowledgeSearchResponse  : hybrid search over an index.
  KnowledgeDocument                                 : transient record built per index request.
  KnowledgeSearchResult                             : one ranked hit.

Python attributes are snake_case, the wire format is camelCase
(e.g. index_name <-> "indexName").
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_TOP = 100

# loose input shape accepted at the boundary; resolved into clauses by SecurityFilterBuilder
SecurityFilterInput = dict[str, str | list[str] | int | float | bool | None]

MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OperationStatus(str, Enum):
    SUCCESS = "Success"
    ERROR = "Error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KnowledgeRequest(_CamelModel):
    """Incoming request to index one piece of knowledge."""

    content: str
    index_name: str
    title: str | None = None
    category: str | None = None
    security_filters: SecurityFilterInput | None = None
    metadata: dict[str, Any] | None = None


class KnowledgeDocument(_CamelModel):
    """A knowledge record as it is written to the search index.

    Built once per index request with a fresh id and the current time, then
    encoded and uploaded. The index is the persistent store; this object is
    discarded afterwards.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    title: str | None = None
    category: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    security_filters: SecurityFilterInput | None = None
    metadata: dict[str, Any] | None = None

    def touch(self) -> None:
        """Refresh updated_at after a mutation."""
        self.updated_at = utc_now()


class KnowledgeResponse(_CamelModel):
    """Result envelope of an index request."""

    id: str = ""
    status: OperationStatus
    message: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class KnowledgeSearchRequest(_CamelModel):
    """Incoming hybrid search request.

    An empty or whitespace query matches all documents.
    """

    query: str = ""
    index_name: str
    top: int = Field(default=5, ge=1, le=MAX_TOP)
    categories: list[str] | None = None
    security_filters: SecurityFilterInput | None = None
    include_content: bool = True


class KnowledgeSearchResult(_CamelModel):
    """A single ranked hit. score is backend-defined and only comparable within one query."""

    id: str
    content: str = ""
    title: str | None = None
    category: str | None = None
    score: float = 0.0
    created_at: datetime = MIN_TIMESTAMP
    updated_at: datetime = MIN_TIMESTAMP
    metadata: dict[str, Any] | None = None


class KnowledgeSearchResponse(_CamelModel):
    """Result envelope of a search request."""

    results: list[KnowledgeSearchResult] = []
    total_count: int = 0
    status: OperationStatus
    message: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    query: str = ""
