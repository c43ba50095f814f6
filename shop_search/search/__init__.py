"""
Product search core.

This module provides:
- Query classification (identifier / semantic / keyword)
- Strategy executors over an injected search backend
- Result fusion and popularity/stock-aware ranking
- SearchOrchestrator as the single entry point

Usage:
    from shop_search.search import SearchOrchestrator, SearchRequest

    orchestrator = SearchOrchestrator(backend)
    result = await orchestrator.search(SearchRequest(query="vegan thanksgiving options"))
"""

from .base import (
    BaseSearchStrategy,
    Product,
    ScoredProduct,
    SearchRequest,
    SearchResult,
    StrategyOutcome,
    StrategySettings,
    StrategyType,
)
from .clients import (
    EmbeddingClient,
    EmbeddingConfig,
    SearchBackend,
    TextHit,
    TypesenseBackend,
    TypesenseConfig,
    VectorHit,
)
from .concepts import ConceptExtractor, SemanticConcepts, alternative_terms
from .fusion import FUSION_POLICIES, FusionPolicy, FusionWeightPolicy, ResultFusion
from .intent import IntentAnalyzer, IntentAnalyzerConfig
from .orchestrator import SearchOrchestrator
from .query_analyzer import AnalysisResult, QueryClassifier, SearchContext
from .ranking import Ranker

__all__ = [
    # Base classes
    "BaseSearchStrategy",
    "Product",
    "ScoredProduct",
    "SearchRequest",
    "SearchResult",
    "StrategyOutcome",
    "StrategySettings",
    "StrategyType",
    # Clients
    "EmbeddingClient",
    "EmbeddingConfig",
    "SearchBackend",
    "TextHit",
    "TypesenseBackend",
    "TypesenseConfig",
    "VectorHit",
    # Analysis
    "AnalysisResult",
    "ConceptExtractor",
    "IntentAnalyzer",
    "IntentAnalyzerConfig",
    "QueryClassifier",
    "SearchContext",
    "SemanticConcepts",
    "alternative_terms",
    # Fusion and ranking
    "FUSION_POLICIES",
    "FusionPolicy",
    "FusionWeightPolicy",
    "Ranker",
    "ResultFusion",
    # Entry point
    "SearchOrchestrator",
]
