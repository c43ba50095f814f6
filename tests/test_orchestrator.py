import pytest

from conftest import FakeBackend, FakeEmbedder, text_hit, vector_hit
from shop_search.errors import EmbeddingError, IntentAnalysisError, SearchBackendError
from shop_search.search.base import SearchRequest, StrategySettings, StrategyType
from shop_search.search.orchestrator import SearchOrchestrator
from shop_search.search.query_analyzer import AnalysisResult

SEMANTIC_QUERY = "vegan thanksgiving options"


def orchestrator_for(backend, **kwargs):
    kwargs.setdefault("settings", StrategySettings(sub_search_timeout=None))
    return SearchOrchestrator(backend, **kwargs)


class StubIntentAnalyzer:
    def __init__(self, result: AnalysisResult | None = None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0

    async def analyze(self, query):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_query_returns_empty_without_dispatch(backend):
    result = await orchestrator_for(backend).search(SearchRequest(query="   "))

    assert result.success
    assert result.results == []
    assert backend.text_requests == [] and backend.vector_requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_keyword_query_end_to_end():
    backend = FakeBackend(text_handler=lambda req: [
        text_hit("OUT", 500.0, is_in_stock=False),
        text_hit("LOW", 1.0),
        text_hit("HIGH", 10.0),
    ])

    result = await orchestrator_for(backend).search(SearchRequest(query="paper plates"))

    assert result.success
    assert result.strategy_used == "keyword"
    assert [p.sku for p in result.results] == ["HIGH", "LOW", "OUT"]
    assert result.count == 3
    assert 0 < len(result.suggested_chips) <= 8
    assert result.metadata["classified_strategy"] == "keyword"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_keyword_backend_failure_reported_not_raised():
    backend = FakeBackend(text_handler=lambda req: SearchBackendError("Typesense error 503: unavailable"))

    result = await orchestrator_for(backend).search(SearchRequest(query="paper plates"))

    assert result.success is False
    assert result.results == []
    assert result.error == "Typesense error 503: unavailable"
    assert result.to_dict()["error"] == result.error
    assert result.metadata["error"]["code"] == "SERVICE_UNAVAILABLE"
    assert result.metadata["error"]["details"] == {"service": "search_backend"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_exact_query_dispatches_exact_match():
    backend = FakeBackend(text_handler=lambda req: [text_hit("SKU123456", 3.0)])

    result = await orchestrator_for(backend).search(SearchRequest(query="SKU123456"))

    assert result.strategy_used == "exact"
    assert result.results[0].score == pytest.approx(100.0)
    assert result.metadata["identifier_type"] == "sku"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_exact_miss_reports_fallback():
    backend = FakeBackend(text_handler=lambda req: [] if req.query == "*" else [text_hit("SKU1234567")])

    result = await orchestrator_for(backend).search(SearchRequest(query="SKU123456"))

    assert result.strategy_used == "fallback"
    assert [p.sku for p in result.results] == ["SKU1234567"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_semantic_without_embedding_uses_keyword():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1")])

    result = await orchestrator_for(backend).search(SearchRequest(query=SEMANTIC_QUERY))

    assert result.strategy_used == "keyword"
    assert result.metadata["classified_strategy"] == "semantic"
    assert result.metadata["degraded_from"] == "semantic"
    assert backend.vector_requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_semantic_fuses_branches():
    backend = FakeBackend(
        text_handler=lambda req: [text_hit("BOTH", 10.0)] if req.prefix else [text_hit("CONCEPT", 10.0)],
        vector_handler=lambda req: [vector_hit("BOTH", 0.0), vector_hit("VEC", 0.0)],
    )

    result = await orchestrator_for(backend).search(
        SearchRequest(query=SEMANTIC_QUERY, embedding=[0.1] * 4, sales_boost=0.0)
    )

    assert result.strategy_used == "semantic"
    assert result.metadata["fusion_policy"] == "concept_priority"
    skus = [p.sku for p in result.results]
    assert sorted(skus) == ["BOTH", "CONCEPT", "VEC"]
    assert len(skus) == len(set(skus))
    by_sku = {p.sku: p.score for p in result.results}
    # vector 1.0 x 0.25 + keyword 10.0 x 0.35, x1.2 for two sources
    assert by_sku["BOTH"] == pytest.approx((0.25 + 3.5) * 1.2)
    assert by_sku["CONCEPT"] == pytest.approx(15.0 * 0.4)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_semantic_survives_vector_failure():
    backend = FakeBackend(
        text_handler=lambda req: [text_hit("K1", 4.0)] if req.prefix else [],
        vector_handler=lambda req: SearchBackendError("vector index down"),
    )

    result = await orchestrator_for(backend).search(
        SearchRequest(query=SEMANTIC_QUERY, embedding=[0.1] * 4)
    )

    assert result.success
    assert result.strategy_used == "semantic"
    assert [p.sku for p in result.results] == ["K1"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_semantic_with_no_hits_degrades_to_keyword():
    def text_handler(request):
        # Only the plain keyword strategy sorts on the backend
        return [text_hit("PLAIN")] if request.sort_by else []

    backend = FakeBackend(text_handler=text_handler)

    result = await orchestrator_for(backend).search(
        SearchRequest(query=SEMANTIC_QUERY, embedding=[0.1] * 4)
    )

    assert result.strategy_used == "keyword"
    assert [p.sku for p in result.results] == ["PLAIN"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_embedder_supplies_missing_embedding():
    backend = FakeBackend(vector_handler=lambda req: [vector_hit("V1", 0.5)])
    embedder = FakeEmbedder(embedding=[0.2] * 4)

    result = await orchestrator_for(backend, embedder=embedder).search(SearchRequest(query=SEMANTIC_QUERY))

    assert embedder.calls == [SEMANTIC_QUERY]
    assert result.strategy_used == "semantic"
    assert backend.vector_requests[0].embedding == [0.2] * 4


@pytest.mark.unit
@pytest.mark.asyncio
async def test_embedder_failure_falls_back_to_keyword():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1")])
    embedder = FakeEmbedder(error=EmbeddingError("quota exceeded"))

    result = await orchestrator_for(backend, embedder=embedder).search(SearchRequest(query=SEMANTIC_QUERY))

    assert result.success
    assert result.strategy_used == "keyword"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_limit_defaults_and_clamps():
    backend = FakeBackend(text_handler=lambda req: [text_hit(f"S{i}") for i in range(req.per_page)])
    orchestrator = orchestrator_for(backend, max_limit=100)

    default = await orchestrator.search(SearchRequest(query="paper plates"))
    clamped = await orchestrator.search(SearchRequest(query="paper plates", limit=500))

    assert default.count == 24
    assert backend.text_requests[0].per_page == 24
    assert clamped.count == 100
    assert backend.text_requests[1].per_page == 100


@pytest.mark.unit
@pytest.mark.asyncio
async def test_intent_analyzer_result_used():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1")])
    analysis = AnalysisResult(
        strategy=StrategyType.KEYWORD,
        confidence=0.9,
        filter_by="price:<=100",
        source="llm",
        clean_query="cookie dough",
    )
    analyzer = StubIntentAnalyzer(result=analysis)

    result = await orchestrator_for(backend, intent_analyzer=analyzer).search(
        SearchRequest(query="cookie dough under $100")
    )

    assert result.metadata["analysis_source"] == "llm"
    request = backend.text_requests[0]
    assert request.query == "cookie dough"
    assert request.filter_by == "price:<=100"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_intent_analyzer_failure_falls_back_to_classifier():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1")])
    analyzer = StubIntentAnalyzer(error=IntentAnalysisError("not json"))

    result = await orchestrator_for(backend, intent_analyzer=analyzer).search(SearchRequest(query="paper plates"))

    assert analyzer.calls == 1
    assert result.success
    assert result.metadata["analysis_source"] == "classifier"
    assert result.metadata["classified_strategy"] == "keyword"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_wire_format():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1", 2.0, embedding=None)])

    payload = (await orchestrator_for(backend).search(SearchRequest(query="paper plates"))).to_dict()

    assert set(payload) >= {"success", "results", "count", "searchTime", "strategyUsed", "suggestedChips"}
    assert "error" not in payload
    assert payload["results"][0]["sku"] == "K1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_semantic_agreement_outranks_single_branch_with_sales_boost():
    backend = FakeBackend(
        text_handler=lambda req: [text_hit("AGREE", 0.01, sales_count=999)] if req.prefix else [],
        vector_handler=lambda req: [
            vector_hit("SOLO", 0.0, sales_count=999),
            vector_hit("AGREE", 0.0, sales_count=999),
        ],
    )

    result = await orchestrator_for(backend).search(
        SearchRequest(query="vegan snacks options", embedding=[0.1] * 4, sales_boost=1.0)
    )

    assert result.metadata["fusion_policy"] == "vector_priority"
    assert [p.sku for p in result.results] == ["AGREE", "SOLO"]
    by_sku = {p.sku: p.score for p in result.results}
    # vector 1.0 x (1 + log10(1000)) x 0.5 for both; AGREE adds keyword and the two-source bonus
    assert by_sku["SOLO"] == pytest.approx(4.0 * 0.5)
    assert by_sku["AGREE"] == pytest.approx((4.0 * 0.5 + 0.01 * 4.0 * 0.35) * 1.2)


# ============================================================================
# Caller-selected search_type
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hybrid_search_type_fuses_keyword_and_vector():
    backend = FakeBackend(
        text_handler=lambda req: [text_hit("BOTH", 10.0), text_hit("KW", 5.0)],
        vector_handler=lambda req: [vector_hit("BOTH", 0.0), vector_hit("VEC", 1.0)],
    )

    result = await orchestrator_for(backend).search(
        SearchRequest(query="paper plates", embedding=[0.1] * 4, sales_boost=0.0, search_type="hybrid")
    )

    assert result.success
    assert result.strategy_used == "hybrid"
    assert result.metadata["classified_strategy"] == "hybrid"
    assert result.metadata["analysis_source"] == "override"
    assert result.metadata["fusion_policy"] == "two_source"
    assert result.suggested_chips
    assert [p.sku for p in result.results] == ["BOTH", "KW", "VEC"]
    by_sku = {p.sku: p.score for p in result.results}
    # keyword 10.0 x 0.4 + vector 1.0 x 0.6, x1.2 for two sources
    assert by_sku["BOTH"] == pytest.approx((4.0 + 0.6) * 1.2)
    assert by_sku["KW"] == pytest.approx(5.0 * 0.4)
    assert by_sku["VEC"] == pytest.approx(0.5 * 0.6)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hybrid_search_type_embeds_query():
    backend = FakeBackend(vector_handler=lambda req: [vector_hit("V1")])
    embedder = FakeEmbedder()

    result = await orchestrator_for(backend, embedder=embedder).search(
        SearchRequest(query="paper plates", search_type="hybrid")
    )

    assert embedder.calls == ["paper plates"]
    assert result.strategy_used == "hybrid"
    assert [p.sku for p in result.results] == ["V1"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hybrid_without_embedding_degrades_to_keyword():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1")])

    result = await orchestrator_for(backend).search(
        SearchRequest(query="paper plates", search_type="hybrid")
    )

    assert result.strategy_used == "keyword"
    assert result.metadata["degraded_from"] == "hybrid"
    assert backend.vector_requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hybrid_with_both_searches_failing_reports_failure():
    backend = FakeBackend(
        text_handler=lambda req: SearchBackendError("Typesense error 503: unavailable"),
        vector_handler=lambda req: SearchBackendError("vector down"),
    )

    result = await orchestrator_for(backend).search(
        SearchRequest(query="paper plates", embedding=[0.1] * 4, search_type="hybrid")
    )

    assert result.success is False
    assert result.strategy_used == "hybrid"
    assert result.error == "Typesense error 503: unavailable"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_type_skips_intent_analyzer():
    backend = FakeBackend(text_handler=lambda req: [text_hit("K1")])
    analyzer = StubIntentAnalyzer(error=IntentAnalysisError("should not be called"))

    result = await orchestrator_for(backend, intent_analyzer=analyzer).search(
        SearchRequest(query=SEMANTIC_QUERY, search_type="keyword")
    )

    assert analyzer.calls == 0
    assert result.strategy_used == "keyword"
    assert result.metadata["analysis_source"] == "override"
    assert backend.vector_requests == []
