"""
Concept extraction for semantic searches.

Pulls dietary, occasion and intent-modifier tags out of a query and maps
known (dietary x occasion) pairs to curated alternative-product terms.
"""

import re
from dataclasses import dataclass

from shop_search.search.vocabulary import (
    ALTERNATIVE_TERMS,
    DIETARY_TERMS,
    GENERIC_ALTERNATIVE_DIETS,
    GENERIC_ALTERNATIVE_TERMS,
    INTENT_MODIFIERS,
    OCCASION_TERMS,
    TRADITIONAL_FOODS,
)


@dataclass(frozen=True)
class SemanticConcepts:
    """Tags matched in a query. Each field keeps first-seen order."""
    dietary: tuple[str, ...] = ()
    occasions: tuple[str, ...] = ()
    traditional_foods: tuple[str, ...] = ()
    modifiers: tuple[str, ...] = ()

    @property
    def is_multi_concept(self) -> bool:
        """Both a dietary and an occasion concept were found."""
        return bool(self.dietary) and bool(self.occasions)

    @property
    def is_empty(self) -> bool:
        return not (self.dietary or self.occasions or self.modifiers)

    def to_dict(self) -> dict:
        return {
            "dietary": list(self.dietary),
            "occasions": list(self.occasions),
            "traditional_foods": list(self.traditional_foods),
            "modifiers": list(self.modifiers),
        }


class ConceptExtractor:
    """Dictionary lookups over the static concept vocabulary."""

    @classmethod
    def extract(cls, query: str) -> SemanticConcepts:
        """Extract semantic concepts from a query.

        Args:
            query: Raw search query

        Returns:
            SemanticConcepts with matched tags
        """
        query_lower = query.lower()

        dietary = tuple(term.tag for term in DIETARY_TERMS if term.pattern.search(query_lower))
        occasions = tuple(term.tag for term in OCCASION_TERMS if term.pattern.search(query_lower))

        foods: list[str] = []
        for occasion in occasions:
            foods.extend(TRADITIONAL_FOODS.get(occasion, ()))

        tokens = set(re.findall(r"[a-z]+", query_lower))
        modifiers = tuple(
            canonical for canonical, words in INTENT_MODIFIERS.items()
            if tokens.intersection(words)
        )

        return SemanticConcepts(
            dietary=dietary,
            occasions=occasions,
            traditional_foods=tuple(dict.fromkeys(foods)),
            modifiers=modifiers,
        )


def alternative_terms(concepts: SemanticConcepts) -> list[str]:
    """Curated alternative-product search terms for the matched concepts.

    Only documented (dietary, occasion) pairs contribute; vegan and
    vegetarian queries also get the generic plant-based terms.
    """
    terms: list[str] = []
    for diet in concepts.dietary:
        for occasion in concepts.occasions:
            terms.extend(ALTERNATIVE_TERMS.get((diet, occasion), ()))

    if GENERIC_ALTERNATIVE_DIETS.intersection(concepts.dietary):
        terms.extend(GENERIC_ALTERNATIVE_TERMS)

    return list(dict.fromkeys(terms))
