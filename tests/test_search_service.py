import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from indexer.embeddings import EmbeddingError, EmbeddingService
from services.search_service import DocumentSearchService, UNRANKED_SIMILARITY
from conftest import SEED, KeywordEncoder


@pytest.fixture
def service(crawler, embedding_service):
    return DocumentSearchService(crawler, embedding_service, max_depth=3, top_k=5)


@pytest.mark.asyncio
async def test_initialize_builds_index(service):
    assert service.is_indexing

    index = await service.initialize([SEED])

    assert index is service.index
    assert len(index) == len(service.documents) > 0
    assert not service.is_indexing
    assert all(d.embedding is not None for d in service.documents)
    assert service.status() == {
        'indexing': False,
        'documents': len(service.documents),
        'indexed': len(service.documents),
    }


@pytest.mark.asyncio
async def test_results_start_with_every_document(service):
    await service.initialize([SEED])

    assert [r.document for r in service.results] == service.documents
    assert all(r.similarity == UNRANKED_SIMILARITY for r in service.results)


@pytest.mark.asyncio
async def test_search_ranks_matching_document_first(service):
    await service.initialize([SEED])

    results = await service.search("swift concurrency")

    assert results[0].document.text == "Swift Concurrency"
    assert results[0].similarity > results[-1].similarity
    assert len(results) <= 5


@pytest.mark.asyncio
async def test_search_top_k_override(service):
    await service.initialize([SEED])

    assert len(await service.search("alpha", top_k=2)) == 2


@pytest.mark.asyncio
async def test_search_top_k_zero_returns_nothing(service):
    await service.initialize([SEED])

    assert await service.search("alpha", top_k=0) == []
    assert len(await service.search("alpha")) == 5


@pytest.mark.asyncio
async def test_blank_query_returns_all_documents_unranked(service):
    await service.initialize([SEED])

    for query in ("", "   "):
        results = await service.search(query)
        assert [r.document for r in results] == service.documents
        assert {r.similarity for r in results} == {1.0}


@pytest.mark.asyncio
async def test_failed_embeddings_stay_with_their_documents(crawler):
    encoder = KeywordEncoder(fail_on={"beta"})
    service = DocumentSearchService(crawler, EmbeddingService(encoder, batch_delay=0), max_depth=3)

    await service.initialize([SEED])

    for document in service.documents:
        if "beta" in document.text.lower():
            assert document.embedding is None
        else:
            assert document.embedding == KeywordEncoder().encode(document.text)

    assert len(service.index) < len(service.documents)
    # The unranked view still lists every crawled document
    assert len(await service.search("")) == len(service.documents)


@pytest.mark.asyncio
async def test_no_embeddings_leaves_search_empty(crawler):
    encoder = MagicMock()
    encoder.encode.side_effect = RuntimeError("model unavailable")
    service = DocumentSearchService(crawler, EmbeddingService(encoder, batch_delay=0), max_depth=3)

    assert await service.initialize([SEED]) is None
    assert service.index is None
    assert await service.search("alpha") == []
    assert len(await service.search("")) == len(service.documents)
    assert service.status()['indexed'] == 0


@pytest.mark.asyncio
async def test_search_before_initialize_is_empty(service):
    assert await service.search("alpha") == []
    assert await service.search("") == []


@pytest.mark.asyncio
async def test_query_embedding_failure_returns_empty(service, embedding_service):
    await service.initialize([SEED])
    embedding_service.embed = AsyncMock(side_effect=EmbeddingError("model not ready"))

    assert await service.search("alpha") == []


@pytest.mark.asyncio
async def test_indexing_flag_cleared_when_crawl_fails(embedding_service):
    crawler = AsyncMock()
    crawler.crawl.side_effect = RuntimeError("boom")
    service = DocumentSearchService(crawler, embedding_service)

    with pytest.raises(RuntimeError):
        await service.initialize([SEED])
    assert not service.is_indexing


@pytest.mark.asyncio
async def test_latest_query_wins(service, embedding_service):
    await service.initialize([SEED])

    release_first = asyncio.Event()
    real_embed = embedding_service.embed

    async def gated_embed(text):
        if text == "alpha":
            await release_first.wait()
        return await real_embed(text)

    embedding_service.embed = gated_embed

    first = asyncio.create_task(service.submit_query("alpha"))
    await asyncio.sleep(0)
    accepted, latest_results = await service.submit_query("gamma")
    release_first.set()
    stale_accepted, stale_results = await first

    assert accepted
    assert not stale_accepted
    assert service.results == latest_results
    assert service.results != stale_results
    assert latest_results[0].document.text.startswith("Gamma")


def test_present_shapes_results(service):
    from indexer.models import Document, SearchResult

    document = Document(text="Alpha", source="https://example.com/documentation/alpha")
    presented = service.present([SearchResult(document=document, similarity=0.875)])

    assert presented == [{
        'id': document.id,
        'text': "Alpha",
        'source': "https://example.com/documentation/alpha",
        'similarity': 0.875,
        'similarity_percent': 87.5,
    }]
