"""
Search orchestrator.

Single entry point for a shopping query:
    classify -> dispatch -> fuse (semantic, hybrid) -> rank -> SearchResult

A request with search_type set skips classification and runs that mode.

Degradations (exact -> fallback, semantic or hybrid -> keyword, LLM -> classifier)
are recovered here or below; only a keyword backend failure reaches the
caller, and then as success=False rather than an exception.
"""

import dataclasses
import time
from typing import TYPE_CHECKING

import structlog

from shop_search.errors import AppError, EmbeddingError, IntentAnalysisError
from shop_search.search.base import (
    ScoredProduct,
    SearchRequest,
    SearchResult,
    StrategyOutcome,
    StrategySettings,
    StrategyType,
)
from shop_search.search.degradation import DegradationLadder, LadderStep
from shop_search.search.fusion import FusionWeightPolicy, ResultFusion
from shop_search.search.query_analyzer import AnalysisResult, QueryClassifier
from shop_search.search.ranking import Ranker
from shop_search.search.strategies import (
    ExactMatchStrategy,
    FallbackStrategy,
    HybridStrategy,
    KeywordStrategy,
    SemanticStrategy,
)

if TYPE_CHECKING:
    from shop_search.search.clients import EmbeddingClient, SearchBackend
    from shop_search.search.intent import IntentAnalyzer

logger = structlog.get_logger()

DEFAULT_MAX_LIMIT = 100

SEARCH_TYPE_STRATEGIES = {
    "keyword": StrategyType.KEYWORD,
    "semantic": StrategyType.SEMANTIC,
    "hybrid": StrategyType.HYBRID,
}


class SearchOrchestrator:
    """Routes queries to search strategies and merges their results.

    The backend and the optional collaborators are injected; the
    orchestrator does not own their lifecycle.

    Usage:
        orchestrator = SearchOrchestrator(backend, embedder=embedder)
        result = await orchestrator.search(SearchRequest(query="paper plates"))
    """

    def __init__(
        self,
        backend: "SearchBackend",
        embedder: "EmbeddingClient | None" = None,
        intent_analyzer: "IntentAnalyzer | None" = None,
        settings: StrategySettings | None = None,
        fusion_policy: FusionWeightPolicy | None = None,
        max_limit: int = DEFAULT_MAX_LIMIT,
    ):
        self.backend = backend
        self.embedder = embedder
        self.intent_analyzer = intent_analyzer
        self.settings = settings or StrategySettings()
        self.fusion_policy = fusion_policy or FusionWeightPolicy()
        self.max_limit = max_limit

        fallback = FallbackStrategy(backend, settings=self.settings)
        self.exact = ExactMatchStrategy(backend, fallback=fallback, settings=self.settings)
        self.keyword = KeywordStrategy(backend, settings=self.settings)
        self.semantic = SemanticStrategy(backend, settings=self.settings)
        self.hybrid = HybridStrategy(
            backend, keyword=self.keyword, semantic=self.semantic, settings=self.settings,
        )

    async def search(self, request: SearchRequest) -> SearchResult:
        """Run one search. Never raises.

        Args:
            request: Caller search parameters

        Returns:
            SearchResult; success=False only when the keyword backend failed
        """
        start_time = time.time()

        if not request.query:
            return SearchResult(success=True, strategy_used="none", elapsed_time=0.0)

        analysis: AnalysisResult | None = None
        try:
            analysis = await self.analyze(request)
            request = self._prepare_request(request, analysis)
            outcome = await self._dispatch(request, analysis)
            candidates, policy_name = self._merge(outcome)
            ranked = Ranker.rank(candidates, request.sales_boost, request.stock_priority)
            products = ranked[:request.limit]
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(
                "search_failed",
                query=request.query,
                strategy=analysis.strategy.value if analysis else None,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=round(elapsed * 1000, 2),
            )
            return SearchResult(
                success=False,
                error=str(e) or type(e).__name__,
                elapsed_time=elapsed,
                strategy_used=analysis.strategy.value if analysis else "",
                suggested_chips=list(analysis.suggested_chips) if analysis else [],
                metadata={"error": e.to_dict()} if isinstance(e, AppError) else {},
            )

        elapsed = time.time() - start_time
        metadata = {
            "classified_strategy": analysis.strategy.value,
            "confidence": round(analysis.confidence, 4),
            "analysis_source": analysis.source,
            **outcome.metadata,
        }
        if analysis.identifier_type:
            metadata["identifier_type"] = analysis.identifier_type
        if policy_name:
            metadata["fusion_policy"] = policy_name

        logger.info(
            "search_completed",
            query=request.query,
            classified=analysis.strategy.value,
            strategy=outcome.strategy.value,
            results=len(products),
            latency_ms=round(elapsed * 1000, 2),
        )

        return SearchResult(
            success=True,
            results=products,
            count=len(products),
            elapsed_time=elapsed,
            strategy_used=outcome.strategy.value,
            suggested_chips=list(analysis.suggested_chips),
            metadata=metadata,
        )

    async def analyze(self, request: SearchRequest) -> AnalysisResult:
        """Classify the query unless the caller forced a search_type.

        A forced mode still takes chips and context from the deterministic
        classifier; only the strategy is replaced.
        """
        if request.search_type is None:
            return await self.classify(request.query)

        analysis = QueryClassifier.classify(request.query)
        return dataclasses.replace(
            analysis,
            strategy=SEARCH_TYPE_STRATEGIES[request.search_type],
            confidence=1.0,
            identifier_type=None,
            source="override",
        )

    async def classify(self, query: str) -> AnalysisResult:
        """Classify with the intent analyzer if configured, else deterministically."""
        if self.intent_analyzer is not None:
            try:
                return await self.intent_analyzer.analyze(query)
            except IntentAnalysisError as e:
                logger.warning("intent_analysis_fallback", query=query, error=str(e))
        return QueryClassifier.classify(query)

    def resolve_limit(self, limit: int | None) -> int:
        """Default when unset, clamped to the maximum."""
        return min(limit or self.settings.default_limit, self.max_limit)

    def _prepare_request(self, request: SearchRequest, analysis: AnalysisResult) -> SearchRequest:
        update = {"limit": self.resolve_limit(request.limit)}
        clean_query = analysis.clean_query
        if clean_query:
            update["query"] = clean_query
        return request.model_copy(update=update)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _dispatch(self, request: SearchRequest, analysis: AnalysisResult) -> StrategyOutcome:
        if analysis.strategy == StrategyType.EXACT:
            return await self.exact.execute(request, analysis)
        if analysis.strategy == StrategyType.SEMANTIC:
            return await self._dispatch_semantic(request, analysis)
        if analysis.strategy == StrategyType.HYBRID:
            return await self._dispatch_hybrid(request, analysis)
        return await self.keyword.execute(request, analysis)

    async def _dispatch_semantic(
        self,
        request: SearchRequest,
        analysis: AnalysisResult,
    ) -> StrategyOutcome:
        """Semantic search, degrading to keyword when it has nothing to offer."""
        request = await self._with_embedding(request)

        steps = []
        if request.has_embedding:
            steps.append(LadderStep(
                "semantic",
                lambda: self.semantic.execute(request, analysis),
                accept=lambda outcome: outcome.total_hits > 0,
            ))
        steps.append(LadderStep("keyword", lambda: self.keyword.execute(request, analysis)))

        result = await DegradationLadder("semantic_dispatch", steps).run()
        outcome = result.value
        if result.degraded or not request.has_embedding:
            outcome.metadata["degraded_from"] = StrategyType.SEMANTIC.value
        return outcome

    async def _dispatch_hybrid(
        self,
        request: SearchRequest,
        analysis: AnalysisResult,
    ) -> StrategyOutcome:
        """Keyword + vector search; keyword alone when there is no embedding."""
        request = await self._with_embedding(request)
        if request.has_embedding:
            return await self.hybrid.execute(request, analysis)

        outcome = await self.keyword.execute(request, analysis)
        outcome.metadata["degraded_from"] = StrategyType.HYBRID.value
        return outcome

    async def _with_embedding(self, request: SearchRequest) -> SearchRequest:
        if request.has_embedding or self.embedder is None:
            return request
        try:
            embedding = await self.embedder.embed(request.query)
        except EmbeddingError as e:
            logger.warning("query_embedding_unavailable", query=request.query, error=str(e))
            return request
        return request.model_copy(update={"embedding": embedding})

    # =========================================================================
    # Merge
    # =========================================================================

    def _merge(self, outcome: StrategyOutcome) -> tuple[list[ScoredProduct], str | None]:
        """Fuse semantic and hybrid result sets; pass single-source results through."""
        if not outcome.needs_fusion:
            return outcome.single_set(), None

        if outcome.strategy == StrategyType.HYBRID:
            policy = self.fusion_policy.select_hybrid()
        else:
            policy = self.fusion_policy.select(outcome.concepts)
        return ResultFusion.fuse(outcome.result_sets, policy), policy.name
