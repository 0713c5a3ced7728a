"""FastAPI application entry point for the Knowledge Bridge API."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
from server.api.routers.KnowledgeRouter import knowledge_router
from services.knowledge.KnowledgeService import KnowledgeService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.search.SearchClientManager import SearchClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Boot the backend clients once and share them across all requests."""
    app.state.logging = setup_logging()
    app.state.config = HelperConfig(logger=app.state.logging)

    search_client = SearchClientManager(helper_config=app.state.config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.config).get_client()
    await search_client.boot()
    await embed_client.boot()

    # the search backend must be reachable, indexes are created lazily per request
    await search_client.do_healthcheck()

    app.state.knowledge_service = KnowledgeService(
        helper_config=app.state.config,
        search_client=search_client,
        embed_client=embed_client,
    )

    app.state.logging.info(
        "Knowledge Bridge API ready (search=%s, embed=%s).",
        search_client.get_engine_name(), embed_client.get_engine_name(),
        color="green",
    )
    yield

    # Shutdown
    await search_client.close()
    await embed_client.close()
    app.state.logging.info("Knowledge Bridge API shut down.")


app = FastAPI(
    title="Knowledge Bridge",
    description="Knowledge indexing and hybrid vector search over Azure AI Search.",
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(knowledge_router)


# Server Start
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("API_SERVER_PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)
