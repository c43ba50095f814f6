"""
Hybrid search strategy.

Caller-requested keyword + vector search. Both run concurrently and are
returned as two labeled sets for fusion. Keyword scores get the sales
multiplier folded in here so that both sets carry it before fusion.
"""

import asyncio
import dataclasses
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
from shop_search.search.requests import all_of
from shop_search.search.strategies.keyword import KeywordStrategy
from shop_search.search.strategies.semantic import (
    KEYWORD_BRANCH,
    VECTOR_BRANCH,
    SemanticStrategy,
    popularity_multiplier,
)

logger = structlog.get_logger()


class HybridStrategy(BaseSearchStrategy):
    """Keyword and vector search side by side.

    A failed vector search leaves the keyword results standing. The keyword
    failure is re-raised when the vector search has nothing to offer either.
    """

    def __init__(
        self,
        backend,
        keyword: KeywordStrategy | None = None,
        semantic: SemanticStrategy | None = None,
        settings: StrategySettings | None = None,
        name: str = "hybrid_keyword_vector",
    ):
        super().__init__(
            name=name,
            strategy_type=StrategyType.HYBRID,
            backend=backend,
            settings=settings,
        )
        self.keyword = keyword or KeywordStrategy(backend, settings=self.settings)
        self.semantic = semantic or SemanticStrategy(backend, settings=self.settings)

    async def execute(self, request: SearchRequest, analysis) -> StrategyOutcome:
        """Run keyword and vector searches concurrently.

        Args:
            request: Search parameters with an embedding
            analysis: Classifier output (its filter_by joins the caller's)

        Returns:
            StrategyOutcome with keyword and vector sets

        Raises:
            SearchBackendError: Keyword search failed and no vector results came back
        """
        start_time = time.time()
        filter_by = all_of([request.filter_by, analysis.filter_by])

        keyword_results, vector_results = await asyncio.gather(
            self.keyword.search(request, filter_by=analysis.filter_by),
            self.semantic.vector_search(request, filter_by),
            return_exceptions=True,
        )

        errors: dict[str, str] = {}
        if isinstance(vector_results, BaseException):
            logger.warning("hybrid_vector_search_failed", strategy=self.name, error=str(vector_results))
            errors[VECTOR_BRANCH] = str(vector_results) or type(vector_results).__name__
            vector_results = []
        if isinstance(keyword_results, BaseException):
            if not vector_results:
                raise keyword_results
            logger.warning("hybrid_keyword_search_failed", strategy=self.name, error=str(keyword_results))
            errors[KEYWORD_BRANCH] = str(keyword_results) or type(keyword_results).__name__
            keyword_results = []

        result_sets = {
            KEYWORD_BRANCH: [self._with_popularity(item, request) for item in keyword_results],
            VECTOR_BRANCH: vector_results,
        }

        logger.debug(
            "hybrid_search_completed",
            strategy=self.name,
            query=request.query,
            branches={label: len(results) for label, results in result_sets.items()},
            latency_ms=round((time.time() - start_time) * 1000, 2),
        )

        return StrategyOutcome(
            strategy=self.strategy_type,
            result_sets=result_sets,
            metadata={
                "branches": {label: len(results) for label, results in result_sets.items()},
                "branch_errors": errors,
            },
        )

    @staticmethod
    def _with_popularity(item: ScoredProduct, request: SearchRequest) -> ScoredProduct:
        if item.popularity_applied:
            return item
        return dataclasses.replace(
            item,
            score=item.score * popularity_multiplier(item.product, request),
            sources=set(item.sources),
            popularity_applied=True,
        )
