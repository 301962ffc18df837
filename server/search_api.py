from fastapi import FastAPI, Response
from pydantic import BaseModel, Field
from typing import List, Optional
from contextlib import asynccontextmanager
import asyncio
import contextlib
import logging

from config import settings
from indexer.embeddings import EmbeddingService, SentenceTransformerEncoder
from observability.logging import setup_logging_from_settings
from observability.metrics import CONTENT_TYPE_LATEST, get_metrics_text
from pipelines.crawler import DocumentationCrawler
from pipelines.render import HttpRenderer
from services.search_service import DocumentSearchService
from sources.loader import load_source_config

logger = logging.getLogger(__name__)


class SearchRequest(BaseModel):
    query: str = ""
    top_k: Optional[int] = Field(default=None, ge=1, le=200)


class SearchHit(BaseModel):
    id: str
    text: str
    source: str
    similarity: float
    similarity_percent: float


class SearchResponse(BaseModel):
    query: str
    indexing: bool
    superseded: bool = False
    results: List[SearchHit]


def build_service(source_name: Optional[str] = None):
    """Assemble the default service from settings and a source definition.

    Returns:
        Tuple of (service, seed URLs, renderer to close on shutdown)
    """
    source_name = source_name or settings.get_source_name()
    source = load_source_config(source_name)
    if source is None:
        raise RuntimeError(f"Source configuration '{source_name}' not available")
    if not source.enabled:
        raise RuntimeError(f"Source '{source_name}' is disabled")

    renderer = HttpRenderer(**settings.get_render_settings())
    crawler = DocumentationCrawler.from_source(source, renderer)

    embedding = settings.get_embedding_settings()
    encoder = SentenceTransformerEncoder(
        model_name=embedding['model_name'],
        token_window=embedding['token_window'],
        device=embedding['device']
    )
    embedding_service = EmbeddingService(
        encoder,
        batch_size=embedding['batch_size'],
        batch_delay=embedding['batch_delay']
    )

    service = DocumentSearchService(
        crawler,
        embedding_service,
        max_depth=settings.get_max_depth(source.depth),
        top_k=settings.get_top_k()
    )
    return service, source.seed_urls, renderer


def create_app(service: Optional[DocumentSearchService] = None,
               seed_urls: Optional[List[str]] = None,
               start_indexing: bool = True) -> FastAPI:
    """Create the search API.

    Args:
        service: Search service to expose (built from settings when omitted)
        seed_urls: URLs the startup crawl begins at
        start_indexing: Whether startup schedules the crawl and embedding run
    """
    renderer = None
    if service is None:
        service, default_seeds, renderer = build_service()
        seed_urls = seed_urls or default_seeds

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Index in the background so the API can report progress, then clean up."""
        task = None
        if start_indexing:
            task = asyncio.create_task(service.initialize(seed_urls or []))
            task.add_done_callback(_log_indexing_outcome)
            logger.info(f"Indexing started for {len(seed_urls or [])} seed URLs")
        app.state.indexing_task = task

        yield

        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if renderer is not None:
            await renderer.close()

    app = FastAPI(title="DocScout Search API", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.state.indexing_task = None

    @app.get("/health")
    async def health():
        return {"status": "ok", **service.status()}

    @app.post("/search", response_model=SearchResponse)
    async def search(request: SearchRequest):
        accepted, results = await service.submit_query(request.query, request.top_k)
        return SearchResponse(
            query=request.query,
            indexing=service.is_indexing,
            superseded=not accepted,
            results=[SearchHit(**hit) for hit in service.present(results)]
        )

    @app.get("/metrics")
    async def metrics():
        return Response(content=get_metrics_text(), media_type=CONTENT_TYPE_LATEST)

    return app


def _log_indexing_outcome(task: asyncio.Task):
    if task.cancelled():
        logger.info("Indexing cancelled")
    elif task.exception() is not None:
        logger.error(f"Indexing failed: {task.exception()}")


if __name__ == "__main__":
    import uvicorn

    setup_logging_from_settings(settings)
    server_settings = settings.get_server_settings()
    uvicorn.run(create_app(), host=server_settings['host'], port=server_settings['port'])
