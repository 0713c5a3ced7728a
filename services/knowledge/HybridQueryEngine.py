"""Hybrid query engine: one lexical + vector request per search, filtered for category and security.

Flow: validate top → ensure index → embed query → query backend → map hits.
Nothing is raised to the caller; every failure becomes an Error envelope.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.clients.search.models.QueryResult import QueryHit
from shared.clients.search.models.SearchQuery import SearchQuery, VectorQuery
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ValidationError
from shared.models.knowledge import (
    MAX_TOP,
    KnowledgeSearchRequest,
    KnowledgeSearchResponse,
    KnowledgeSearchResult,
    OperationStatus,
)
from services.knowledge.DocumentEncoder import DocumentEncoder
from services.knowledge.IndexSchemaManager import (
    FIELD_CATEGORY,
    FIELD_CONTENT,
    FIELD_CREATED_AT,
    FIELD_ID,
    FIELD_METADATA,
    FIELD_TITLE,
    FIELD_UPDATED_AT,
    FIELD_VECTOR,
    IndexSchemaManager,
)
from services.knowledge.SecurityFilterBuilder import SecurityFilterBuilder

MATCH_ALL = "*"
NEIGHBOR_FACTOR = 2  # vector candidates per requested result, for rank fusion


class HybridQueryEngine:
    def __init__(
        self,
        helper_config: HelperConfig,
        search_client: SearchClientInterface,
        embed_client: EmbedClientInterface,
        schema_manager: IndexSchemaManager,
        encoder: DocumentEncoder,
        filter_builder: SecurityFilterBuilder,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._search = search_client
        self._embed = embed_client
        self._schema = schema_manager
        self._encoder = encoder
        self._filters = filter_builder

    ##########################################
    ################ CORE ####################
    ##########################################

    async def search(self, request: KnowledgeSearchRequest) -> KnowledgeSearchResponse:
        """Run a hybrid search.

        Args:
            request (KnowledgeSearchRequest): Query text, index, page size, filters.

        Returns:
            KnowledgeSearchResponse: Success with ranked results, or Error with the reason.
        """
        try:
            self.logging.info(
                "Starting hybrid search in index: %s with query: %r", request.index_name, request.query[:80]
            )
            self._validate_top(request.top)

            if not await self._ensure_index(request.index_name):
                return self._error_response(request, f"Failed to create or verify index: {request.index_name}")

            query = await self.build_query(request)
            raw = await self._search.do_query(request.index_name, query)
            results = [self.map_hit(hit, request.include_content) for hit in raw.hits]
            total_count = raw.total_count if raw.total_count is not None else len(results)

            self.logging.info("Successfully completed hybrid search. Found %d results", len(results))
            return KnowledgeSearchResponse(
                results=results,
                total_count=total_count,
                status=OperationStatus.SUCCESS,
                message=f"Found {len(results)} results using hybrid search with vector similarity",
                query=request.query,
            )
        except Exception as e:
            self.logging.error("Error searching knowledge in index %s: %s", request.index_name, e)
            return self._error_response(request, str(e))

    async def build_query(self, request: KnowledgeSearchRequest) -> SearchQuery:
        """Assemble the backend query for a request.

        A blank query becomes a match-all lexical query without a vector part,
        since there is no text to embed.
        """
        search_text = request.query.strip()
        vector_query = None
        if search_text:
            self.logging.debug("Generating embedding for search query")
            vector = await self._embed.do_get_embedding(search_text)
            vector_query = VectorQuery(vector=vector, k=request.top * NEIGHBOR_FACTOR, field=FIELD_VECTOR)
        else:
            search_text = MATCH_ALL

        return SearchQuery(
            search_text=search_text,
            vector_query=vector_query,
            filter=self._filters.build_filter(request.categories, request.security_filters),
            select=self.get_select_fields(request.include_content),
            top=request.top,
            include_total_count=True,
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def get_select_fields(self, include_content: bool) -> list[str]:
        # the vector field is never returned
        fields = [FIELD_ID]
        if include_content:
            fields.append(FIELD_CONTENT)
        fields.extend([FIELD_TITLE, FIELD_CATEGORY, FIELD_CREATED_AT, FIELD_UPDATED_AT, FIELD_METADATA])
        return fields

    def map_hit(self, hit: QueryHit, include_content: bool) -> KnowledgeSearchResult:
        """Convert one raw hit. Bad metadata or timestamps degrade to empty values."""
        doc = hit.document
        doc_id = str(doc.get(FIELD_ID) or "")
        return KnowledgeSearchResult(
            id=doc_id,
            content=(doc.get(FIELD_CONTENT) or "") if include_content else "",
            title=doc.get(FIELD_TITLE),
            category=doc.get(FIELD_CATEGORY),
            score=hit.score,
            created_at=self._encoder.decode_timestamp(doc.get(FIELD_CREATED_AT), doc_id),
            updated_at=self._encoder.decode_timestamp(doc.get(FIELD_UPDATED_AT), doc_id),
            metadata=self._encoder.decode_metadata(doc.get(FIELD_METADATA), doc_id),
        )

    def _validate_top(self, top: int) -> None:
        if top < 1 or top > MAX_TOP:
            raise ValidationError(f"top must be between 1 and {MAX_TOP}, got {top}.")

    async def _ensure_index(self, index_name: str) -> bool:
        try:
            return await self._schema.ensure_index_exists(index_name)
        except Exception as e:
            self.logging.error("Could not verify index %s before searching: %s", index_name, e)
            return False

    def _error_response(self, request: KnowledgeSearchRequest, message: str) -> KnowledgeSearchResponse:
        return KnowledgeSearchResponse(
            results=[],
            total_count=0,
            status=OperationStatus.ERROR,
            message=message,
            query=request.query,
        )
