"""
LLM-based intent analysis.

Optional replacement for the deterministic classifier. Asks a chat model
for a strategy, structured filters and a cleaned query, then converts the
answer into an AnalysisResult. Any failure raises IntentAnalysisError so
the orchestrator can fall back to QueryClassifier.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from shop_search.errors import IntentAnalysisError
from shop_search.search.base import StrategyType
from shop_search.search.query_analyzer import AnalysisResult, QueryClassifier
from shop_search.search.requests import all_of, equals
from shop_search.search.vocabulary import MAX_CHIPS

logger = structlog.get_logger()

SYSTEM_PROMPT = """You are a search intent analyzer for a food service/restaurant supply website.
Analyze the user's search query and return a JSON response with:
- strategy: "exact" (ONLY for SKU/product IDs like "SKU123456"), "semantic" (for conceptual queries), or "keyword" (for product name searches)
- confidence: 0-1 score
- context: extracted context about the search
- suggestedTerms: additional search terms
- filters: extracted filters including price ranges
- cleanQuery: the search query with filter terms removed

Only use "exact" for product codes that look like identifiers (e.g. "SKU123456", "P-12345").
Product names like "cookie dough" or "paper plates" are "keyword" or "semantic".

Extract price filters from phrases like:
- "under $X", "less than $X", "below $X" -> maxPrice: X
- "over $X", "above $X", "more than $X" -> minPrice: X
- "between $X and $Y", "$X-$Y" -> minPrice: X, maxPrice: Y
- "around $X", "about $X" -> minPrice: X*0.8, maxPrice: X*1.2

Also extract:
- Brand mentions -> brand
- Category mentions -> category
- Stock requirements ("in stock", "available") -> inStock: true
- Special flags ("on sale", "discounted") -> onSale: true

Return ONLY valid JSON."""

USER_PROMPT = """Analyze this query: "{query}"

Example response for "cookie dough under $100":
{{
  "strategy": "keyword",
  "confidence": 0.9,
  "context": "User looking for cookie dough products with price constraint",
  "suggestedTerms": ["chocolate chip", "sugar cookie", "edible"],
  "filters": {{"maxPrice": 100}},
  "cleanQuery": "cookie dough"
}}"""


class IntentFilters(BaseModel):
    """Structured filters extracted by the model."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    min_price: float | None = Field(default=None, alias="minPrice", ge=0)
    max_price: float | None = Field(default=None, alias="maxPrice", ge=0)
    brand: str | None = None
    category: str | None = None
    in_stock: bool | None = Field(default=None, alias="inStock")
    on_sale: bool | None = Field(default=None, alias="onSale")

    def to_filter_by(self) -> str | None:
        """Convert to a backend filter expression."""
        predicates = []
        if self.min_price is not None:
            predicates.append(f"price:>={self.min_price:g}")
        if self.max_price is not None:
            predicates.append(f"price:<={self.max_price:g}")
        if self.brand:
            predicates.append(equals("brand", self.brand))
        if self.category:
            predicates.append(equals("category", self.category))
        if self.in_stock:
            predicates.append("is_in_stock:=true")
        if self.on_sale:
            predicates.append("sale_price:>0")
        return all_of(predicates)


class IntentResponse(BaseModel):
    """Chat model answer."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    strategy: StrategyType
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    context: Any = None
    suggested_terms: list[str] = Field(default_factory=list, alias="suggestedTerms")
    filters: IntentFilters = Field(default_factory=IntentFilters)
    clean_query: str | None = Field(default=None, alias="cleanQuery")


@dataclass
class IntentAnalyzerConfig:
    """Configuration for the intent analyzer."""
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-3.5-turbo"
    timeout: float = 15.0
    temperature: float = 0.3
    max_tokens: int = 300

    @classmethod
    def from_settings(cls, settings=None) -> "IntentAnalyzerConfig":
        from shop_search.config import get_settings

        settings = settings or get_settings()
        return cls(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            model=settings.openai_chat_model,
            timeout=settings.intent_analyzer_timeout,
        )


class IntentAnalyzer:
    """Classify queries with an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        config: IntentAnalyzerConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or IntentAnalyzerConfig.from_settings()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def analyze(self, query: str) -> AnalysisResult:
        """Classify a query.

        Raises:
            IntentAnalysisError: Provider unreachable or answer unusable
        """
        content = await self._complete(query)
        response = self.parse_response(content)
        return self.to_analysis_result(query, response)

    async def _complete(self, query: str) -> str:
        try:
            response = await self._client.post(
                "/chat/completions",
                json={
                    "model": self.config.model,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": USER_PROMPT.format(query=query)},
                    ],
                    "temperature": self.config.temperature,
                    "max_tokens": self.config.max_tokens,
                },
            )
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"] or ""
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("intent_analysis_request_failed", query=query[:50], error=str(e))
            raise IntentAnalysisError(f"Intent analyzer request failed: {e}") from e

    @staticmethod
    def parse_response(content: str) -> IntentResponse:
        """Extract and validate the JSON object in a model answer."""
        json_match = re.search(r"\{[\s\S]*\}", content)
        if not json_match:
            raise IntentAnalysisError("Intent analyzer returned no JSON", {"response": content[:200]})

        try:
            return IntentResponse.model_validate(json.loads(json_match.group()))
        except json.JSONDecodeError as e:
            logger.warning("intent_json_parse_failed", error=str(e), response=content[:200])
            raise IntentAnalysisError("Intent analyzer returned invalid JSON") from e
        except PydanticValidationError as e:
            logger.warning("intent_response_invalid", error=str(e).splitlines()[0])
            raise IntentAnalysisError("Intent analyzer returned an invalid answer") from e

    @staticmethod
    def to_analysis_result(query: str, response: IntentResponse) -> AnalysisResult:
        """Convert a model answer to an AnalysisResult.

        EXACT is kept only when the query passes the deterministic identifier
        check; otherwise it is downgraded to KEYWORD.
        """
        clean_query = (response.clean_query or "").strip() or query.strip()
        strategy = response.strategy
        identifier_type = None

        if strategy == StrategyType.EXACT:
            if QueryClassifier.is_product_identifier(query.strip()):
                identifier_type = QueryClassifier.identifier_type(query.strip())
                clean_query = query.strip()
            else:
                logger.info("intent_exact_rejected", query=query)
                strategy = StrategyType.KEYWORD
        elif strategy in (StrategyType.FALLBACK, StrategyType.HYBRID):
            strategy = StrategyType.KEYWORD

        chips = tuple(dict.fromkeys(t.strip() for t in response.suggested_terms if t.strip()))
        context = response.context
        if context is not None and not isinstance(context, str):
            context = json.dumps(context, sort_keys=True, default=str)

        return AnalysisResult(
            strategy=strategy,
            confidence=response.confidence,
            identifier_type=identifier_type,
            suggested_chips=chips[:MAX_CHIPS],
            query_terms=tuple(clean_query.lower().split()),
            filter_by=response.filters.to_filter_by(),
            source="llm",
            clean_query=clean_query,
            llm_context=context,
        )
