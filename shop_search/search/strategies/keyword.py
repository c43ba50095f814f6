"""
Keyword search strategy.

Weighted full-text search with backend-side ordering by stock, sales and
relevance. This is the strategy of last resort: backend failures propagate.
"""

import time

import structlog

from shop_search.search.base import (
    BaseSearchStrategy,
    ScoredProduct,
    SearchRequest,
    StrategyOutcome,
    StrategySettings,
    StrategyType,
)
from shop_search.search.requests import TextSearchRequest, all_of

logger = structlog.get_logger()

KEYWORD_FIELDS = {
    "name": 8,
    "category": 4,
    "category_l4": 4,
    "category_l3": 3,
    "category_l2": 2,
    "category_l1": 2,
    "description": 1,
    "manufacturer": 2,
    "brand": 3,
    "sku": 5,
}

KEYWORD_SORT = "_eval(is_in_stock:true):desc,sales_count:desc,_text_match:desc"


class KeywordStrategy(BaseSearchStrategy):
    """Keyword search strategy.

    Settings:
        default_limit: Page size when the request has no limit
    """

    def __init__(
        self,
        backend,
        settings: StrategySettings | None = None,
        name: str = "keyword_weighted",
    ):
        super().__init__(
            name=name,
            strategy_type=StrategyType.KEYWORD,
            backend=backend,
            settings=settings,
        )

    async def execute(self, request: SearchRequest, analysis) -> StrategyOutcome:
        results = await self.search(request, filter_by=analysis.filter_by)
        return self._outcome(results)

    async def search(
        self,
        request: SearchRequest,
        filter_by: str | None = None,
    ) -> list[ScoredProduct]:
        """Execute keyword search.

        Args:
            request: Search parameters
            filter_by: Extra filter expression joined to the caller's

        Raises:
            SearchBackendError: Backend failure (not recovered here)
        """
        start_time = time.time()

        search_request = TextSearchRequest(
            collection=self.collection_for(request),
            query=request.query,
            query_fields=KEYWORD_FIELDS,
            filter_by=all_of([request.filter_by, filter_by]),
            sort_by=KEYWORD_SORT,
            page=request.page,
            per_page=self.limit_for(request),
        )

        try:
            hits = await self.backend.text_search(search_request)
        except Exception as e:
            logger.error(
                "keyword_search_failed",
                strategy=self.name,
                query=request.query,
                error=str(e),
            )
            raise

        results = []
        for hit in hits:
            product = self.parse_product(hit.document)
            if product is not None:
                results.append(ScoredProduct(product=product, score=hit.text_match, sources={"keyword"}))

        logger.debug(
            "keyword_search_completed",
            strategy=self.name,
            query=request.query,
            results=len(results),
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )
        return results
