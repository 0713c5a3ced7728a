"""Knowledge router: index knowledge and run hybrid searches.

Request bodies are validated by pydantic before the service runs; top
outside 1..100 is rejected with 422. Error envelopes from the service are
returned with status 400, success envelopes with 200.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared.dependencies.auth import verify_api_key
from shared.models.knowledge import KnowledgeRequest, KnowledgeSearchRequest, OperationStatus

knowledge_router = APIRouter()


def _envelope_response(envelope) -> JSONResponse:
    status_code = 200 if envelope.status == OperationStatus.SUCCESS else 400
    return JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json", by_alias=True))


@knowledge_router.post(
    "/knowledge",
    dependencies=[Depends(verify_api_key)],
    tags=["Knowledge"],
)
async def post_knowledge(request: Request, body: KnowledgeRequest) -> JSONResponse:
    """Index one piece of knowledge with optional security filters and metadata.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (KnowledgeRequest): Content, index name and optional tags.

    Returns:
        JSONResponse: The KnowledgeResponse envelope.
    """
    if not body.content.strip():
        return JSONResponse(status_code=400, content={"error": "Content is required"})
    if not body.index_name.strip():
        return JSONResponse(status_code=400, content={"error": "Index name is required"})

    knowledge_service = request.app.state.knowledge_service
    result = await knowledge_service.index_knowledge(body)
    return _envelope_response(result)


@knowledge_router.post(
    "/knowledge/search",
    dependencies=[Depends(verify_api_key)],
    tags=["Knowledge"],
)
async def search_knowledge(request: Request, body: KnowledgeSearchRequest) -> JSONResponse:
    """Hybrid search combining category and security filtering with vector similarity.

    An empty query matches all documents visible under the given filters.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (KnowledgeSearchRequest): Query, index name, page size and filters.

    Returns:
        JSONResponse: The KnowledgeSearchResponse envelope.
    """
    if not body.index_name.strip():
        return JSONResponse(status_code=400, content={"error": "Index name is required"})

    request.app.state.logging.info(
        "Search received: index=%s query=%r top=%d", body.index_name, body.query[:80], body.top
    )
    knowledge_service = request.app.state.knowledge_service
    result = await knowledge_service.search_knowledge(body)
    return _envelope_response(result)


@knowledge_router.get("/health", tags=["Health"])
async def health() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})
