import json

import httpx
import pytest

from shop_search.errors import IntentAnalysisError
from shop_search.search.base import StrategyType
from shop_search.search.intent import IntentAnalyzer, IntentAnalyzerConfig, IntentFilters, IntentResponse

CONFIG = IntentAnalyzerConfig(base_url="http://openai.test/v1", api_key="sk-test")


def chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def analyzer_returning(response: httpx.Response, seen: dict | None = None) -> IntentAnalyzer:
    def handler(request):
        if seen is not None:
            seen["body"] = json.loads(request.content)
        return response

    return IntentAnalyzer(CONFIG, transport=httpx.MockTransport(handler))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_analyze_converts_filters_and_clean_query():
    content = json.dumps({
        "strategy": "keyword",
        "confidence": 0.9,
        "context": "cookie dough with price constraint",
        "suggestedTerms": ["chocolate chip", "sugar cookie", "edible"],
        "filters": {"maxPrice": 100, "inStock": True},
        "cleanQuery": "Cookie Dough",
    })
    seen = {}
    analyzer = analyzer_returning(chat_response(content), seen)
    try:
        analysis = await analyzer.analyze("cookie dough under $100 in stock")
    finally:
        await analyzer.close()

    assert analysis.strategy == StrategyType.KEYWORD
    assert analysis.confidence == 0.9
    assert analysis.source == "llm"
    assert analysis.filter_by == "(price:<=100) && (is_in_stock:=true)"
    assert analysis.query_terms == ("cookie", "dough")
    assert analysis.clean_query == "Cookie Dough"
    assert analysis.suggested_chips == ("chocolate chip", "sugar cookie", "edible")
    assert seen["body"]["model"] == "gpt-3.5-turbo"
    assert "cookie dough under $100 in stock" in seen["body"]["messages"][1]["content"]


@pytest.mark.unit
def test_parse_response_extracts_json_from_prose():
    response = IntentAnalyzer.parse_response(
        'Sure! Here is the analysis:\n{"strategy": "semantic", "confidence": 0.8}\nHope this helps.'
    )
    assert response.strategy == StrategyType.SEMANTIC
    assert response.filters == IntentFilters()


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "I cannot help with that.",
        "{not json}",
        '{"strategy": "telepathy", "confidence": 0.9}',
        '{"strategy": "keyword", "confidence": 7}',
        '{"strategy": "keyword", "filters": {"maxPrice": "cheap"}}',
    ],
)
def test_parse_response_rejects_unusable_answers(content):
    with pytest.raises(IntentAnalysisError):
        IntentAnalyzer.parse_response(content)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_provider_failure_raises_intent_error():
    analyzer = analyzer_returning(httpx.Response(500, text="upstream error"))
    try:
        with pytest.raises(IntentAnalysisError):
            await analyzer.analyze("paper plates")
    finally:
        await analyzer.close()


@pytest.mark.unit
def test_exact_requires_identifier_check():
    response = IntentResponse(strategy=StrategyType.EXACT, confidence=0.95)

    rejected = IntentAnalyzer.to_analysis_result("cookie dough", response)
    accepted = IntentAnalyzer.to_analysis_result("SKU123456", response)

    assert rejected.strategy == StrategyType.KEYWORD
    assert rejected.identifier_type is None
    assert accepted.strategy == StrategyType.EXACT
    assert accepted.identifier_type == "sku"


@pytest.mark.unit
def test_blank_clean_query_falls_back_to_query():
    response = IntentResponse(strategy=StrategyType.KEYWORD, clean_query="  ")
    analysis = IntentAnalyzer.to_analysis_result("paper plates", response)

    assert analysis.clean_query == "paper plates"


@pytest.mark.unit
def test_filters_to_filter_expression():
    filters = IntentFilters.model_validate({
        "minPrice": 10,
        "maxPrice": 20.5,
        "brand": "Acme",
        "category": "Snacks",
        "onSale": True,
    })

    assert filters.to_filter_by() == (
        "(price:>=10) && (price:<=20.5) && (brand:=`Acme`) && (category:=`Snacks`) && (sale_price:>0)"
    )
    assert IntentFilters().to_filter_by() is None


@pytest.mark.unit
def test_suggested_terms_capped_and_deduplicated():
    response = IntentResponse(
        strategy=StrategyType.KEYWORD,
        suggested_terms=["a", "a", " ", "b", "c", "d", "e", "f", "g", "h", "i"],
    )
    analysis = IntentAnalyzer.to_analysis_result("query", response)

    assert analysis.suggested_chips == ("a", "b", "c", "d", "e", "f", "g", "h")


@pytest.mark.unit
def test_structured_context_is_stored_as_text():
    response = IntentResponse(
        strategy=StrategyType.KEYWORD,
        context={"error": "Failed to parse AI analysis"},
    )
    analysis = IntentAnalyzer.to_analysis_result("paper plates", response)

    assert analysis.llm_context == '{"error": "Failed to parse AI analysis"}'
    assert analysis.clean_query == "paper plates"


@pytest.mark.unit
def test_hybrid_answer_is_downgraded_to_keyword():
    response = IntentResponse(strategy=StrategyType.HYBRID, context="plates")
    analysis = IntentAnalyzer.to_analysis_result("paper plates", response)

    assert analysis.strategy == StrategyType.KEYWORD
    assert analysis.llm_context == "plates"
