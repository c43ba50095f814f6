"""
Semantic search strategy.

Runs up to three sub-searches concurrently and returns them as labeled
result sets for fusion:
- vector: nearest neighbours of the query embedding
- keyword: concept-aware keyword search (dietary filters, traditional foods)
- concept: curated alternative-product terms, only for dietary + occasion queries

A failed branch contributes an empty set; the others still count. Every
branch folds the sales multiplier into its scores before fusion.
"""

import asyncio
import time
from typing import Awaitable

import structlog

from shop_search.errors import PayloadTooLargeError
from shop_search.search.base import (
    BaseSearchStrategy,
    Product,
    ScoredProduct,
    SearchRequest,
    StrategyOutcome,
    StrategySettings,
    StrategyType,
)
from shop_search.search.concepts import ConceptExtractor, SemanticConcepts, alternative_terms
from shop_search.search.degradation import DegradationLadder, LadderStep
from shop_search.search.requests import TextSearchRequest, VectorSearchRequest, all_of
from shop_search.search.vocabulary import (
    ALTERNATIVE_BRANDS,
    ALTERNATIVE_PREFIXES,
    DIETARY_FILTERS,
)

logger = structlog.get_logger()

VECTOR_BRANCH = "vector"
KEYWORD_BRANCH = "keyword"
CONCEPT_BRANCH = "concept"

CONCEPT_KEYWORD_FIELDS = {
    "name": 6,
    "brand": 4,
    "category": 2,
    "description": 1,
}

CONCEPT_COMBINATION_FIELDS = {
    "name": 4,
    "brand": 3,
    "description": 1,
}

DIETARY_TEXT_BOOST = 1.3
ALTERNATIVE_PATTERN_BOOST = 1.5
ALTERNATIVE_BRAND_BOOST = 1.3
OCCASION_TEXT_BOOST = 1.2


class SemanticStrategy(BaseSearchStrategy):
    """Concept-aware semantic search.

    Requires an embedding; the orchestrator routes embedding-less requests
    to keyword search instead.

    Settings:
        vector_truncate_dims: Embedding length for the single retry (768)
        sub_search_timeout: Per-branch deadline in seconds (None disables)
        concept_search_limit: Cap for the concept-combination branch (10)
        concept_match_boost: Score multiplier for concept-combination hits (1.5)
    """

    def __init__(
        self,
        backend,
        settings: StrategySettings | None = None,
        name: str = "semantic_concepts",
    ):
        super().__init__(
            name=name,
            strategy_type=StrategyType.SEMANTIC,
            backend=backend,
            settings=settings,
        )

    async def execute(self, request: SearchRequest, analysis) -> StrategyOutcome:
        """Execute the semantic branches concurrently.

        Args:
            request: Search parameters with an embedding
            analysis: Classifier output (its filter_by joins the caller's)

        Returns:
            StrategyOutcome with labeled vector/keyword/concept sets
        """
        concepts = ConceptExtractor.extract(request.query)
        if not request.has_embedding:
            logger.info("semantic_search_skipped", strategy=self.name, reason="no_embedding")
            return StrategyOutcome(
                strategy=self.strategy_type,
                concepts=concepts,
                metadata={"skipped": "no_embedding"},
            )

        start_time = time.time()
        filter_by = all_of([request.filter_by, analysis.filter_by])

        branches: dict[str, Awaitable[list[ScoredProduct]]] = {
            VECTOR_BRANCH: self.vector_search(request, filter_by),
            KEYWORD_BRANCH: self._concept_keyword_branch(request, concepts, filter_by),
        }
        if concepts.is_multi_concept:
            branches[CONCEPT_BRANCH] = self._concept_combination_branch(request, concepts, filter_by)

        settled = await asyncio.gather(
            *(self._with_deadline(coro) for coro in branches.values()),
            return_exceptions=True,
        )

        result_sets: dict[str, list[ScoredProduct]] = {}
        errors: dict[str, str] = {}
        for label, outcome in zip(branches, settled):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "semantic_branch_failed",
                    strategy=self.name,
                    branch=label,
                    error=str(outcome) or type(outcome).__name__,
                )
                errors[label] = str(outcome) or type(outcome).__name__
                result_sets[label] = []
            else:
                result_sets[label] = outcome

        latency_ms = (time.time() - start_time) * 1000
        logger.debug(
            "semantic_search_completed",
            strategy=self.name,
            query=request.query,
            branches={label: len(results) for label, results in result_sets.items()},
            concepts=concepts.to_dict(),
            latency_ms=round(latency_ms, 2),
        )

        return StrategyOutcome(
            strategy=self.strategy_type,
            result_sets=result_sets,
            concepts=concepts,
            metadata={
                "branches": {label: len(results) for label, results in result_sets.items()},
                "branch_errors": errors,
                "concepts": concepts.to_dict(),
            },
        )

    async def _with_deadline(self, coro: Awaitable[list[ScoredProduct]]) -> list[ScoredProduct]:
        if self.settings.sub_search_timeout:
            return await asyncio.wait_for(coro, timeout=self.settings.sub_search_timeout)
        return await coro

    # =========================================================================
    # Branches
    # =========================================================================

    async def vector_search(
        self,
        request: SearchRequest,
        filter_by: str | None,
    ) -> list[ScoredProduct]:
        """Vector search, retried once with a truncated embedding if too large."""
        vector_request = VectorSearchRequest(
            collection=self.collection_for(request),
            embedding=request.embedding,
            k=self.limit_for(request),
            filter_by=filter_by,
        )
        dims = self.settings.vector_truncate_dims

        can_truncate = len(vector_request.embedding) > dims
        steps = [LadderStep(
            "full",
            lambda: self.backend.vector_search(vector_request),
            recover_on=(PayloadTooLargeError,) if can_truncate else (),
        )]
        if can_truncate:
            steps.append(LadderStep(
                "truncated",
                lambda: self.backend.vector_search(vector_request.truncated(dims)),
            ))

        hits = (await DegradationLadder("vector_search", steps).run()).value

        results = []
        for hit in hits:
            product = self.parse_product(hit.document)
            if product is None:
                continue
            product = product.model_copy(update={"vector_distance": hit.vector_distance})
            similarity = 1.0 / (1.0 + max(hit.vector_distance, 0.0))
            results.append(ScoredProduct(
                product=product,
                score=similarity * popularity_multiplier(product, request),
                sources={VECTOR_BRANCH},
                popularity_applied=True,
            ))
        return results

    async def _concept_keyword_branch(
        self,
        request: SearchRequest,
        concepts: SemanticConcepts,
        filter_by: str | None,
    ) -> list[ScoredProduct]:
        """Keyword search biased by the extracted concepts."""
        query = request.query
        if concepts.dietary and concepts.traditional_foods:
            foods = concepts.traditional_foods[:self.settings.max_traditional_food_terms]
            query = f"{query} {' '.join(foods)}"

        dietary_filter = all_of(DIETARY_FILTERS.get(tag) for tag in concepts.dietary)

        search_request = TextSearchRequest(
            collection=self.collection_for(request),
            query=query,
            query_fields=CONCEPT_KEYWORD_FIELDS,
            filter_by=all_of([dietary_filter, filter_by]),
            per_page=self.limit_for(request),
        )
        hits = await self.backend.text_search(search_request)

        results = []
        for hit in hits:
            product = self.parse_product(hit.document)
            if product is None:
                continue
            boost = self.concept_boost(product, concepts)
            results.append(ScoredProduct(
                product=product,
                score=hit.text_match * boost * popularity_multiplier(product, request),
                sources={KEYWORD_BRANCH},
                popularity_applied=True,
            ))
        return results

    async def _concept_combination_branch(
        self,
        request: SearchRequest,
        concepts: SemanticConcepts,
        filter_by: str | None,
    ) -> list[ScoredProduct]:
        """Search curated alternative-product terms for dietary + occasion queries."""
        terms = alternative_terms(concepts)
        if not terms:
            return []

        search_request = TextSearchRequest(
            collection=self.collection_for(request),
            query=" ".join(terms),
            query_fields=CONCEPT_COMBINATION_FIELDS,
            filter_by=filter_by,
            per_page=min(self.settings.concept_search_limit, self.limit_for(request)),
            prefix=False,
            num_typos=0,
        )
        hits = await self.backend.text_search(search_request)

        results = []
        for hit in hits[:self.settings.concept_search_limit]:
            product = self.parse_product(hit.document)
            if product is not None:
                results.append(ScoredProduct(
                    product=product,
                    score=(
                        hit.text_match
                        * self.settings.concept_match_boost
                        * popularity_multiplier(product, request)
                    ),
                    sources={CONCEPT_BRANCH},
                    popularity_applied=True,
                ))
        return results

    # =========================================================================
    # Concept boosts
    # =========================================================================

    @staticmethod
    def concept_boost(product: Product, concepts: SemanticConcepts) -> float:
        """Multiplier for a concept-aware keyword hit.

        Dietary match 1.3, then alternative-food pattern 1.5 and known
        alternative brand 1.3 on top of it; occasion match 1.2.
        """
        text = product.text_blob()
        boost = 1.0

        if any(tag in text for tag in concepts.dietary):
            boost *= DIETARY_TEXT_BOOST
            if _has_alternative_pattern(text, concepts):
                boost *= ALTERNATIVE_PATTERN_BOOST
            if _is_alternative_brand(product.brand):
                boost *= ALTERNATIVE_BRAND_BOOST

        if any(occasion in text for occasion in concepts.occasions):
            boost *= OCCASION_TEXT_BOOST

        return boost


def _has_alternative_pattern(text: str, concepts: SemanticConcepts) -> bool:
    prefixes = tuple(concepts.dietary) + ALTERNATIVE_PREFIXES
    return any(
        f"{prefix} {food}" in text
        for food in concepts.traditional_foods
        for prefix in prefixes
    )


def _is_alternative_brand(brand: str | None) -> bool:
    if not brand:
        return False
    brand_lower = brand.lower().strip()
    return any(brand_lower == b or brand_lower.startswith(b + " ") for b in ALTERNATIVE_BRANDS)


def popularity_multiplier(product: Product, request: SearchRequest) -> float:
    """1 + log10(sales_count + 1) * sales_boost, folded into every branch score."""
    return 1 + product.popularity * request.sales_boost
