from typing import Any, Callable

import pytest

from shop_search.search.base import SearchRequest, StrategySettings
from shop_search.search.clients import SearchBackend, TextHit, VectorHit
from shop_search.search.query_analyzer import AnalysisResult, QueryClassifier


def product_doc(sku: str, **fields: Any) -> dict[str, Any]:
    doc = {"sku": sku, "name": f"Product {sku}", "is_in_stock": True, "sales_count": 0}
    doc.update(fields)
    return doc


def text_hit(sku: str, text_match: float = 100.0, **fields: Any) -> TextHit:
    return TextHit(document=product_doc(sku, **fields), text_match=text_match)


def vector_hit(sku: str, distance: float = 0.0, **fields: Any) -> VectorHit:
    return VectorHit(document=product_doc(sku, **fields), vector_distance=distance)


class FakeBackend(SearchBackend):
    """Records requests and answers them with handler callables.

    A handler may return hits or an exception instance, which is raised.
    """

    def __init__(
        self,
        text_handler: Callable | None = None,
        vector_handler: Callable | None = None,
    ):
        self.text_handler = text_handler or (lambda request: [])
        self.vector_handler = vector_handler or (lambda request: [])
        self.text_requests = []
        self.vector_requests = []

    async def text_search(self, request):
        self.text_requests.append(request)
        result = self.text_handler(request)
        if isinstance(result, BaseException):
            raise result
        return result

    async def vector_search(self, request):
        self.vector_requests.append(request)
        result = self.vector_handler(request)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeEmbedder:
    def __init__(self, embedding=None, error: Exception | None = None):
        self.embedding = embedding or [0.1] * 8
        self.error = error
        self.calls = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.embedding


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def strategy_settings():
    return StrategySettings(collection="products", sub_search_timeout=None)


@pytest.fixture
def make_request():
    def _make(query: str, **kwargs) -> SearchRequest:
        return SearchRequest(query=query, **kwargs)

    return _make


@pytest.fixture
def analyze():
    def _analyze(query: str) -> AnalysisResult:
        return QueryClassifier.classify(query)

    return _analyze
