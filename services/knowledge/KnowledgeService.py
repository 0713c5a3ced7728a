"""Knowledge service, the single entry point for indexing and hybrid search.

Index flow: validate → ensure index → embed content → build document →
encode → upload single-document batch → check per-document status.

Every public method returns a status envelope. Exceptions from the backends
are caught here and never reach the caller.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import PartialDocumentFailureError, ValidationError
from shared.models.knowledge import (
    KnowledgeDocument,
    KnowledgeRequest,
    KnowledgeResponse,
    KnowledgeSearchRequest,
    KnowledgeSearchResponse,
    OperationStatus,
)
from services.knowledge.DocumentEncoder import DocumentEncoder
from services.knowledge.HybridQueryEngine import HybridQueryEngine
from services.knowledge.IndexSchemaManager import IndexSchemaManager
from services.knowledge.SecurityFilterBuilder import SecurityFilterBuilder


class KnowledgeService:
    """Coordinates schema management, embedding, encoding, upload and search."""

    def __init__(
        self,
        helper_config: HelperConfig,
        search_client: SearchClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._search = search_client
        self._embed = embed_client
        self.schema_manager = IndexSchemaManager(helper_config=helper_config, search_client=search_client)
        self.encoder = DocumentEncoder(helper_config=helper_config, vector_dimensions=self.schema_manager.vector_dimensions)
        self.filter_builder = SecurityFilterBuilder(helper_config=helper_config)
        self.query_engine = HybridQueryEngine(
            helper_config=helper_config,
            search_client=search_client,
            embed_client=embed_client,
            schema_manager=self.schema_manager,
            encoder=self.encoder,
            filter_builder=self.filter_builder,
        )

    ##########################################
    ################ INDEX ###################
    ##########################################

    async def index_knowledge(self, request: KnowledgeRequest) -> KnowledgeResponse:
        """Embed and store one piece of knowledge.

        Either exactly one document is written, or an Error envelope is
        returned and nothing is written.

        Args:
            request (KnowledgeRequest): Content, target index and optional tags.

        Returns:
            KnowledgeResponse: Success with the new document id, or Error with the reason.
        """
        try:
            self._validate_index_request(request)
            self.logging.info("Starting to index knowledge to index: %s", request.index_name)

            if not await self.ensure_index_exists(request.index_name):
                message = f"Failed to create or verify index: {request.index_name}"
                self.logging.error(message)
                return KnowledgeResponse(id="", status=OperationStatus.ERROR, message=message)

            self.logging.debug("Generating embeddings for content")
            embedding = await self._embed.do_get_embedding(request.content)

            document = KnowledgeDocument(
                content=request.content,
                title=request.title,
                category=request.category,
                security_filters=request.security_filters,
                metadata=request.metadata,
            )
            fields = self.encoder.encode(document, embedding)

            results = await self._search.do_upload_documents(request.index_name, [fields])
            failed = next((r for r in results if not r.succeeded), None)
            if failed is not None:
                raise PartialDocumentFailureError(
                    f"Failed to index document: {failed.error_message}", document_key=failed.key
                )
            if not results:
                raise PartialDocumentFailureError(
                    "Failed to index document: backend returned no upload status", document_key=document.id
                )

            self.logging.info("Successfully indexed knowledge document with ID: %s", document.id)
            return KnowledgeResponse(
                id=document.id,
                status=OperationStatus.SUCCESS,
                message="Knowledge successfully indexed with vector embeddings",
            )
        except Exception as e:
            self.logging.error("Error indexing knowledge to index %s: %s", request.index_name, e)
            return KnowledgeResponse(id="", status=OperationStatus.ERROR, message=str(e))

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def search_knowledge(self, request: KnowledgeSearchRequest) -> KnowledgeSearchResponse:
        """Run a hybrid search. See HybridQueryEngine.search."""
        return await self.query_engine.search(request)

    ##########################################
    ################ SCHEMA ##################
    ##########################################

    async def ensure_index_exists(self, index_name: str) -> bool:
        """Create the index on first use.

        Returns:
            bool: True if the index exists afterwards, False if it could not be verified or created.
        """
        try:
            return await self.schema_manager.ensure_index_exists(index_name)
        except Exception as e:
            self.logging.critical(
                "Critical error ensuring index %s. Exception type: %s, Message: %s",
                index_name, type(e).__name__, e,
            )
            return False

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _validate_index_request(self, request: KnowledgeRequest) -> None:
        if not request.content or not request.content.strip():
            raise ValidationError("Content is required.")
        if not request.index_name or not request.index_name.strip():
            raise ValidationError("Index name is required.")
