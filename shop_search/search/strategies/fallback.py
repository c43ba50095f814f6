"""
Lenient fallback search.

Prefix + infix matching over the identifier-ish fields. Used when an exact
identifier lookup finds nothing.
"""

import time

import structlog

from shop_search.errors import SearchBackendError
from shop_search.search.base import (
    BaseSearchStrategy,
    ScoredProduct,
    SearchRequest,
    StrategyOutcome,
    StrategySettings,
    StrategyType,
)
from shop_search.search.requests import TextSearchRequest

logger = structlog.get_logger()

FALLBACK_FIELDS = {
    "name": 4,
    "sku": 3,
    "mpn": 3,
    "manufacturer": 2,
    "brand": 2,
}


class FallbackStrategy(BaseSearchStrategy):
    """Lenient search that never raises.

    Scores are the backend text-match score (possibly 0). Backend failures
    return an empty list.
    """

    def __init__(
        self,
        backend,
        settings: StrategySettings | None = None,
        name: str = "fallback_lenient",
    ):
        super().__init__(
            name=name,
            strategy_type=StrategyType.FALLBACK,
            backend=backend,
            settings=settings,
        )

    async def execute(self, request: SearchRequest, analysis) -> StrategyOutcome:
        return self._outcome(await self.search(request))

    async def search(self, request: SearchRequest) -> list[ScoredProduct]:
        """Run the lenient search, returning [] on backend failure."""
        start_time = time.time()
        search_request = TextSearchRequest(
            collection=self.collection_for(request),
            query=request.query,
            query_fields=FALLBACK_FIELDS,
            filter_by=request.filter_by,
            page=request.page,
            per_page=self.limit_for(request),
            prefix=True,
            infix="always",
            num_typos=2,
        )

        try:
            hits = await self.backend.text_search(search_request)
        except SearchBackendError as e:
            logger.warning(
                "fallback_search_failed",
                strategy=self.name,
                query=request.query,
                error=str(e),
            )
            return []

        results = []
        for hit in hits:
            product = self.parse_product(hit.document)
            if product is not None:
                results.append(ScoredProduct(product=product, score=hit.text_match, sources={"fallback"}))

        logger.debug(
            "fallback_search_completed",
            strategy=self.name,
            query=request.query,
            results=len(results),
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )
        return results
