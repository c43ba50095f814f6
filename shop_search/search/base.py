"""
Base classes for search strategies.

This module defines:
- StrategyType: Strategies the classifier can route to
- Product: Backend product document (read-only copy)
- ScoredProduct: Product with a relevance score and provenance
- SearchRequest: Caller-supplied search parameters
- SearchResult: Search response with diagnostics
- StrategyOutcome: Labeled result sets produced by one executor
- StrategySettings: Tunables shared by executors
- BaseSearchStrategy: Abstract base class for all executors
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

if TYPE_CHECKING:
    from shop_search.search.clients import SearchBackend
    from shop_search.search.concepts import SemanticConcepts
    from shop_search.search.query_analyzer import AnalysisResult

logger = structlog.get_logger()


class StrategyType(str, Enum):
    """Types of search strategies."""
    EXACT = "exact"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    FALLBACK = "fallback"
    HYBRID = "hybrid"  # Caller override only; never chosen by the classifier


class Product(BaseModel):
    """Product document as stored in the search backend."""

    model_config = ConfigDict(extra="allow")

    sku: str
    id: str | int | None = None
    name: str = ""
    brand: str | None = None
    price: float | None = None
    sale_price: float | None = None
    sales_count: float | None = None
    rating_avg: float | None = None
    category: str | None = None
    category_l1: str | None = None
    category_l2: str | None = None
    category_l3: str | None = None
    category_l4: str | None = None
    description: str | None = None
    manufacturer: str | None = None
    food_properties: str | None = None
    is_in_stock: bool | None = None
    mpn: str | int | None = None
    gtin: str | int | None = None
    upc: str | int | None = None
    product_id: str | int | None = None
    slug: str | None = None
    gallery: list[Any] | None = None
    score: float | None = None
    vector_distance: float | None = None

    @field_validator("sku", mode="before")
    @classmethod
    def _coerce_sku(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def in_stock(self) -> bool:
        """Only an explicit False counts as out of stock."""
        return self.is_in_stock is not False

    @property
    def popularity(self) -> float:
        """log10(sales_count + 1)."""
        return math.log10(max(self.sales_count or 0, 0) + 1)

    def text_blob(self) -> str:
        """Lower-cased name + description + brand used for concept matching."""
        parts = [self.name or "", self.description or "", self.brand or ""]
        return " ".join(parts).lower()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return self.model_dump(exclude_none=True)


@dataclass
class ScoredProduct:
    """Product annotated with a score during a single request.

    sources is the set of branch labels that contributed; it only matters
    during fusion. popularity_applied marks scores that already include the
    sales multiplier so the ranker does not apply it twice.
    """
    product: Product
    score: float
    sources: set[str] = field(default_factory=set)
    popularity_applied: bool = False

    @property
    def sku(self) -> str:
        return self.product.sku


class SearchRequest(BaseModel):
    """Caller-supplied search parameters."""
    query: str
    embedding: list[float] | None = None
    sales_boost: float = Field(default=0.5, ge=0.0, le=2.0)
    stock_priority: bool = True
    collection_id: str | None = None
    limit: int | None = Field(default=None, ge=1)
    page: int = Field(default=1, ge=1)
    filter_by: str | None = None
    search_type: Literal["keyword", "semantic", "hybrid"] | None = None  # Skips classification

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class SearchResult(BaseModel):
    """Search response with diagnostics."""
    success: bool
    results: list[Product] = Field(default_factory=list)
    count: int = 0
    elapsed_time: float = 0.0  # seconds
    strategy_used: str = ""
    suggested_chips: list[str] = Field(default_factory=list)
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to the wire format used by the search UI."""
        payload = {
            "success": self.success,
            "results": [p.to_dict() for p in self.results],
            "count": self.count,
            "searchTime": self.elapsed_time,
            "strategyUsed": self.strategy_used,
            "suggestedChips": self.suggested_chips,
            "metadata": self.metadata,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class StrategyOutcome:
    """Labeled result sets returned by an executor.

    EXACT, FALLBACK and KEYWORD return a single set. SEMANTIC returns up to
    three (vector, keyword, concept) and HYBRID two (keyword, vector); both
    need fusion.
    """
    strategy: StrategyType
    result_sets: dict[str, list[ScoredProduct]] = field(default_factory=dict)
    concepts: "SemanticConcepts | None" = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def needs_fusion(self) -> bool:
        return self.strategy in (StrategyType.SEMANTIC, StrategyType.HYBRID)

    @property
    def total_hits(self) -> int:
        return sum(len(results) for results in self.result_sets.values())

    def single_set(self) -> list[ScoredProduct]:
        """Flatten a single-source outcome."""
        merged: list[ScoredProduct] = []
        for results in self.result_sets.values():
            merged.extend(results)
        return merged


@dataclass
class StrategySettings:
    """Configuration settings shared by the executors."""
    collection: str = "products"
    default_limit: int = 24
    exact_match_score: float = 100.0
    vector_truncate_dims: int = 768
    sub_search_timeout: float | None = 10.0
    concept_search_limit: int = 10
    concept_match_boost: float = 1.5
    max_traditional_food_terms: int = 3

    @classmethod
    def from_settings(cls, settings=None) -> "StrategySettings":
        """Create settings from service settings."""
        from shop_search.config import get_settings

        settings = settings or get_settings()
        return cls(
            collection=settings.typesense_collection_name,
            default_limit=settings.default_search_limit,
            vector_truncate_dims=settings.vector_truncate_dims,
            sub_search_timeout=settings.sub_search_timeout or None,
            concept_search_limit=settings.concept_search_limit,
            concept_match_boost=settings.concept_match_boost,
        )


class BaseSearchStrategy(ABC):
    """Abstract base class for search executors.

    Executors receive the backend explicitly so tests can pass a fake.

    Attributes:
        name: Unique identifier for the strategy
        strategy_type: Type of strategy
        backend: Search backend the executor queries
        settings: Configuration settings
    """

    def __init__(
        self,
        name: str,
        strategy_type: StrategyType,
        backend: "SearchBackend",
        settings: StrategySettings | None = None,
    ):
        self.name = name
        self.strategy_type = strategy_type
        self.backend = backend
        self.settings = settings or StrategySettings()

    @abstractmethod
    async def execute(
        self,
        request: SearchRequest,
        analysis: "AnalysisResult",
    ) -> StrategyOutcome:
        """Run this strategy for one request.

        Args:
            request: Caller search parameters (limit already resolved)
            analysis: Classifier output for the query

        Returns:
            StrategyOutcome with one or more labeled result sets
        """

    def collection_for(self, request: SearchRequest) -> str:
        return request.collection_id or self.settings.collection

    def limit_for(self, request: SearchRequest) -> int:
        return request.limit or self.settings.default_limit

    def parse_product(self, document: dict[str, Any]) -> Product | None:
        """Validate a backend document; documents without a sku are skipped."""
        try:
            return Product.model_validate(document)
        except PydanticValidationError as e:
            logger.warning(
                "product_document_invalid",
                strategy=self.name,
                document_id=document.get("id"),
                error=str(e).splitlines()[0],
            )
            return None

    def _outcome(
        self,
        results: list[ScoredProduct],
        label: str | None = None,
        **metadata,
    ) -> StrategyOutcome:
        return StrategyOutcome(
            strategy=self.strategy_type,
            result_sets={label or self.strategy_type.value: results},
            metadata=metadata,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, type={self.strategy_type.value})"
