"""
Query classifier for determining the search strategy.

Routes a raw query without calling the backend:
- exact: single-token product identifiers (SKU, MPN, GTIN, UPC, ...)
- semantic: context-rich queries ("vegan thanksgiving options")
- keyword: everything else, with refinement chips for ambiguous queries
"""

from dataclasses import dataclass, field

from shop_search.search.base import StrategyType
from shop_search.search.vocabulary import (
    ATTRIBUTE_CHIPS,
    BRAND_PRICE_CHIPS,
    CATEGORY_CHIPS,
    CONTEXT_KEYWORDS,
    IDENTIFIER_PATTERNS,
    IDENTIFIER_STOPLIST,
    INTENT_CHIPS,
    MAX_CHIPS,
    POPULARITY_CHIPS,
    QUESTION_PATTERNS,
    QUESTION_PREFIXES,
    SEMANTIC_PHRASES,
)

SEMANTIC_THRESHOLD = 0.4
KEYWORD_MIN_CONFIDENCE = 0.3
TAXONOMY_HIT_SCORE = 0.2
QUESTION_PATTERN_SCORE = 0.15
SEMANTIC_PHRASE_SCORE = 0.1
MULTI_TAXONOMY_BOOST = 1.3
QUESTION_BOOST = 1.2


@dataclass(frozen=True)
class SearchContext:
    """Context extracted from a query."""
    categories: tuple[str, ...] = ()
    attributes: tuple[str, ...] = ()
    intents: tuple[str, ...] = ()
    descriptors: tuple[str, ...] = ()
    confidence: float = 0.0
    original_query: str = ""
    unmatched_tokens: tuple[str, ...] = ()

    @property
    def taxonomy_count(self) -> int:
        """Number of taxonomies with at least one match."""
        return sum(
            1 for matches in (self.categories, self.attributes, self.intents, self.descriptors)
            if matches
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Result of classifying a query. Immutable once created."""
    strategy: StrategyType
    confidence: float
    identifier_type: str | None = None
    context: SearchContext | None = None
    suggested_chips: tuple[str, ...] = ()
    query_terms: tuple[str, ...] = ()
    filter_by: str | None = None  # Only set by the LLM intent analyzer
    source: str = "classifier"
    clean_query: str | None = None  # Rewritten query from the LLM intent analyzer
    llm_context: str | None = field(default=None, compare=False)


class QueryClassifier:
    """Deterministic query classifier.

    classify() is total: any string yields an AnalysisResult.
    """

    @classmethod
    def classify(cls, query: str) -> AnalysisResult:
        """Classify a query into a search strategy.

        Args:
            query: Raw search query

        Returns:
            AnalysisResult with strategy, confidence, context and chips
        """
        clean_query = query.strip()

        if cls.is_product_identifier(clean_query):
            return AnalysisResult(
                strategy=StrategyType.EXACT,
                confidence=1.0,
                identifier_type=cls.identifier_type(clean_query),
                query_terms=(clean_query,),
            )

        context = cls.extract_context(clean_query)
        query_terms = tuple(clean_query.lower().split())

        if context.confidence > SEMANTIC_THRESHOLD:
            return AnalysisResult(
                strategy=StrategyType.SEMANTIC,
                confidence=context.confidence,
                context=context,
                query_terms=query_terms,
            )

        return AnalysisResult(
            strategy=StrategyType.KEYWORD,
            confidence=max(KEYWORD_MIN_CONFIDENCE, context.confidence),
            context=context if context.confidence > 0 else None,
            suggested_chips=cls.generate_chips(clean_query, context),
            query_terms=query_terms,
        )

    @classmethod
    def should_use_semantic_search(cls, query: str) -> bool:
        """Whether a query would benefit from semantic search."""
        analysis = cls.classify(query)
        return analysis.strategy == StrategyType.SEMANTIC or (
            analysis.strategy == StrategyType.KEYWORD and analysis.confidence > SEMANTIC_THRESHOLD
        )

    @classmethod
    def is_product_identifier(cls, query: str) -> bool:
        """Single token, not a common word, matching an identifier pattern."""
        if not query or any(ch.isspace() for ch in query):
            return False
        if query.lower() in IDENTIFIER_STOPLIST:
            return False
        return any(pattern.match(query) for _, pattern in IDENTIFIER_PATTERNS)

    @classmethod
    def identifier_type(cls, query: str) -> str:
        """Name of the first identifier pattern that matches."""
        for name, pattern in IDENTIFIER_PATTERNS:
            if pattern.match(query):
                return name
        return "alphanumeric"

    @classmethod
    def extract_context(cls, query: str) -> SearchContext:
        """Score how much semantic context a query carries."""
        query_lower = query.lower()
        tokens = query_lower.split()
        found: dict[str, list[str]] = {name: [] for name in CONTEXT_KEYWORDS}
        matched_tokens: set[str] = set()
        score = 0.0

        for token in tokens:
            for taxonomy, keywords in CONTEXT_KEYWORDS.items():
                matches = [k for k in keywords if cls._token_matches(token, k)]
                if matches:
                    found[taxonomy].extend(matches)
                    matched_tokens.add(token)
                    score += TAXONOMY_HIT_SCORE

        for pattern in QUESTION_PATTERNS:
            if pattern in query_lower:
                score += QUESTION_PATTERN_SCORE

        for phrase in SEMANTIC_PHRASES:
            if phrase in query_lower:
                score += SEMANTIC_PHRASE_SCORE

        taxonomy_count = sum(1 for matches in found.values() if matches)
        if taxonomy_count >= 2:
            score *= MULTI_TAXONOMY_BOOST

        if "?" in query_lower or query_lower.startswith(QUESTION_PREFIXES):
            score *= QUESTION_BOOST

        return SearchContext(
            categories=_unique(found["categories"]),
            attributes=_unique(found["attributes"]),
            intents=_unique(found["intents"]),
            descriptors=_unique(found["descriptors"]),
            confidence=min(max(score, 0.0), 1.0),
            original_query=query,
            unmatched_tokens=tuple(t for t in tokens if t not in matched_tokens),
        )

    @classmethod
    def generate_chips(cls, query: str, context: SearchContext | None) -> tuple[str, ...]:
        """Refinement chips for an ambiguous keyword query (at most 8)."""
        chips: list[str] = []

        if not context or not context.categories:
            chips.extend(CATEGORY_CHIPS)
        if not context or not context.attributes:
            chips.extend(ATTRIBUTE_CHIPS)
        if not context or not context.intents:
            chips.extend(INTENT_CHIPS)

        chips.extend(BRAND_PRICE_CHIPS)

        # Very generic query: offer popularity browsing
        if len(query) < 10 and (not context or context.confidence < KEYWORD_MIN_CONFIDENCE):
            chips.extend(POPULARITY_CHIPS)

        return tuple(chips[:MAX_CHIPS])

    @staticmethod
    def _token_matches(token: str, keyword: str) -> bool:
        if token == keyword:
            return True
        # Token is part of a compound keyword ("free" in "gluten-free")
        if len(token) > 2 and token in keyword:
            return True
        # Keyword is part of a longer token ("cookies" in "cookiesandcream")
        if len(keyword) > 3 and keyword in token:
            return True
        return _are_similar(token, keyword)


def _are_similar(word1: str, word2: str) -> bool:
    """Near-match for one-letter variants such as "snack" / "snacks"."""
    if abs(len(word1) - len(word2)) > 1:
        return False
    if len(word1) > len(word2):
        longer, shorter = word1, word2
    else:
        longer, shorter = word2, word1
    return longer.startswith(shorter) or shorter.startswith(longer[:-1])


def _unique(items: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))
