"""
Exact identifier lookup.

Matches the upper-cased query against every identifier field. Zero hits or
a backend failure degrade to the lenient fallback search.
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
from shop_search.search.degradation import DegradationLadder, LadderStep
from shop_search.search.requests import TextSearchRequest, all_of, any_of, equals
from shop_search.search.strategies.fallback import FallbackStrategy
from shop_search.search.vocabulary import IDENTIFIER_FIELDS

logger = structlog.get_logger()


class ExactMatchStrategy(BaseSearchStrategy):
    """Exact-match strategy for product identifiers.

    Every hit gets the same fixed score (100) to signal certainty.
    """

    def __init__(
        self,
        backend,
        fallback: FallbackStrategy | None = None,
        settings: StrategySettings | None = None,
        name: str = "exact_match",
    ):
        super().__init__(
            name=name,
            strategy_type=StrategyType.EXACT,
            backend=backend,
            settings=settings,
        )
        self.fallback = fallback or FallbackStrategy(backend, settings=self.settings)

    async def execute(self, request: SearchRequest, analysis) -> StrategyOutcome:
        """Look up an identifier, falling back to a lenient search."""
        start_time = time.time()

        ladder = DegradationLadder(
            "exact_match",
            [
                LadderStep(
                    "exact",
                    lambda: self._exact_search(request),
                    recover_on=(SearchBackendError,),
                    accept=bool,
                ),
                LadderStep("fallback", lambda: self.fallback.search(request)),
            ],
        )
        result = await ladder.run()

        logger.debug(
            "exact_search_completed",
            strategy=self.name,
            query=request.query,
            step=result.step,
            results=len(result.value),
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )

        if result.step == "exact":
            return self._outcome(result.value, identifier_type=analysis.identifier_type)

        return StrategyOutcome(
            strategy=StrategyType.FALLBACK,
            result_sets={"fallback": result.value},
            metadata={"identifier_type": analysis.identifier_type, "degraded": result.failures},
        )

    def build_filter(self, request: SearchRequest) -> str:
        """Disjunction over identifier fields, joined to the caller filter."""
        identifier = request.query.upper()
        identifiers = any_of(equals(field, identifier) for field in IDENTIFIER_FIELDS)
        return all_of([identifiers, request.filter_by])

    async def _exact_search(self, request: SearchRequest) -> list[ScoredProduct]:
        search_request = TextSearchRequest(
            collection=self.collection_for(request),
            query="*",
            query_fields={"name": 1},
            filter_by=self.build_filter(request),
            per_page=self.limit_for(request),
        )
        hits = await self.backend.text_search(search_request)

        results = []
        for hit in hits:
            product = self.parse_product(hit.document)
            if product is not None:
                results.append(ScoredProduct(
                    product=product,
                    score=self.settings.exact_match_score,
                    sources={"exact"},
                ))
        return results
