"""Conversion between KnowledgeDocument and the flat field map stored in the index."""

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from services.knowledge.IndexSchemaManager import (
    FIELD_CATEGORY,
    FIELD_CONTENT,
    FIELD_CREATED_AT,
    FIELD_ID,
    FIELD_METADATA,
    FIELD_SECURITY_FILTERS,
    FIELD_TITLE,
    FIELD_UPDATED_AT,
    FIELD_VECTOR,
)
from services.knowledge.SecurityFilterBuilder import resolve_security_clauses
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import EmbeddingFailureError
from shared.models.knowledge import MIN_TIMESTAMP, KnowledgeDocument

_DATETIME_ADAPTER = TypeAdapter(datetime)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2024-05-01T10:00:00.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DocumentEncoder:
    def __init__(self, helper_config: HelperConfig, vector_dimensions: int) -> None:
        self.logging = helper_config.get_logger()
        self.vector_dimensions = vector_dimensions

    ##########################################
    ################ ENCODE ##################
    ##########################################

    def encode_security_filters(self, security_filters: dict[str, Any] | None) -> list[str]:
        """Flatten attribute -> value(s) into "attribute:value" tags, one per pair."""
        tags: list[str] = []
        for clause in resolve_security_clauses(security_filters):
            tags.extend(clause.get_tags())
        return tags

    def encode_metadata(self, metadata: dict[str, Any] | None) -> str:
        if metadata is None:
            return ""
        return json.dumps(metadata, default=str)

    def encode(self, document: KnowledgeDocument, embedding: list[float]) -> dict[str, Any]:
        """Build the field map for one document.

        Optional text fields become "" because the schema fields are not nullable.

        Args:
            document (KnowledgeDocument): The document to store.
            embedding (list[float]): Embedding of the document content.

        Returns:
            dict[str, Any]: Field name -> value, exactly the index schema fields.

        Raises:
            EmbeddingFailureError: If the embedding length differs from the index's vector dimensions.
        """
        if len(embedding) != self.vector_dimensions:
            raise EmbeddingFailureError(
                f"Embedding has {len(embedding)} dimensions but the index expects {self.vector_dimensions}."
            )
        return {
            FIELD_ID: document.id,
            FIELD_CONTENT: document.content,
            FIELD_TITLE: document.title or "",
            FIELD_CATEGORY: document.category or "",
            FIELD_CREATED_AT: format_timestamp(document.created_at),
            FIELD_UPDATED_AT: format_timestamp(document.updated_at),
            FIELD_SECURITY_FILTERS: self.encode_security_filters(document.security_filters),
            FIELD_METADATA: self.encode_metadata(document.metadata),
            FIELD_VECTOR: list(embedding),
        }

    ##########################################
    ################ DECODE ##################
    ##########################################

    def decode_metadata(self, raw: Any, document_id: str = "") -> dict[str, Any] | None:
        """Parse stored metadata JSON.

        Never raises. Anything that is not a JSON object is logged and dropped.

        Args:
            raw (Any): The stored metadata value.
            document_id (str): Used for the warning only.

        Returns:
            dict[str, Any] | None: The metadata, or None if absent or unreadable.
        """
        if raw is None or raw == "":
            return None
        if isinstance(raw, dict):
            return raw
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError) as e:
            self.logging.warning("Failed to parse metadata JSON for document %s: %s", document_id, e)
            return None
        if not isinstance(parsed, dict):
            self.logging.warning(
                "Metadata of document %s is %s, expected a JSON object", document_id, type(parsed).__name__
            )
            return None
        return parsed

    def decode_timestamp(self, raw: Any, document_id: str = "") -> datetime:
        """Parse a stored timestamp; missing or unreadable values become MIN_TIMESTAMP."""
        if not raw:
            return MIN_TIMESTAMP
        try:
            value = _DATETIME_ADAPTER.validate_python(raw)
        except PydanticValidationError:
            self.logging.warning("Unreadable timestamp %r on document %s", raw, document_id)
            return MIN_TIMESTAMP
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
