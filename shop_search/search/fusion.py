"""
Result fusion for multi-source searches.

Merges labeled, scored result sets into one list deduplicated by sku.
Weights come from a named policy table. For semantic searches the policy
depends on whether the query carries both a dietary and an occasion
concept; hybrid searches use their own policy.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

import structlog

from shop_search.search.base import ScoredProduct
from shop_search.search.concepts import SemanticConcepts

logger = structlog.get_logger()

AGREEMENT_BONUS = 0.1


@dataclass(frozen=True)
class FusionPolicy:
    """Per-source weights. Sources missing from the table contribute nothing."""
    name: str
    weights: Mapping[str, float]

    def weight(self, label: str) -> float:
        return self.weights.get(label, 0.0)


# Weight variants found for this logic. They disagree, so none is treated as
# canonical; the service picks policies by name from settings.
FUSION_POLICIES: Mapping[str, FusionPolicy] = MappingProxyType({
    "concept_priority": FusionPolicy(
        "concept_priority",
        MappingProxyType({"concept": 0.4, "keyword": 0.35, "vector": 0.25}),
    ),
    "vector_priority": FusionPolicy(
        "vector_priority",
        MappingProxyType({"vector": 0.5, "keyword": 0.35, "concept": 0.15}),
    ),
    "two_source": FusionPolicy(
        "two_source",
        MappingProxyType({"vector": 0.6, "keyword": 0.4}),
    ),
})


@dataclass(frozen=True)
class FusionWeightPolicy:
    """Chooses a FusionPolicy for a query's concepts."""
    multi_concept: str = "concept_priority"
    default: str = "vector_priority"
    hybrid: str = "two_source"

    def __post_init__(self):
        for name in (self.multi_concept, self.default, self.hybrid):
            if name not in FUSION_POLICIES:
                raise ValueError(f"Unknown fusion policy: {name}")

    @classmethod
    def from_settings(cls, settings=None) -> "FusionWeightPolicy":
        from shop_search.config import get_settings

        settings = settings or get_settings()
        return cls(
            multi_concept=settings.fusion_policy_multi_concept,
            default=settings.fusion_policy_default,
            hybrid=settings.fusion_policy_hybrid,
        )

    def select(self, concepts: SemanticConcepts | None) -> FusionPolicy:
        if concepts is not None and concepts.is_multi_concept:
            return FUSION_POLICIES[self.multi_concept]
        return FUSION_POLICIES[self.default]

    def select_hybrid(self) -> FusionPolicy:
        """Policy for caller-requested keyword + vector searches."""
        return FUSION_POLICIES[self.hybrid]


class ResultFusion:
    """Weighted-sum fusion with a cross-source agreement bonus."""

    @staticmethod
    def fuse(
        result_sets: Mapping[str, list[ScoredProduct]],
        policy: FusionPolicy,
    ) -> list[ScoredProduct]:
        """Fuse labeled result sets.

        Each product adds score x weight(label) to its sku's total. Skus
        found by more than one source are multiplied by
        (1 + 0.1 x number_of_sources).

        Args:
            result_sets: Branch label -> scored products
            policy: Weights per branch label

        Returns:
            Deduplicated products, highest score first
        """
        fused: dict[str, ScoredProduct] = {}

        for label, products in result_sets.items():
            weight = policy.weight(label)
            for item in products:
                contribution = item.score * weight
                existing = fused.get(item.sku)
                if existing is None:
                    fused[item.sku] = ScoredProduct(
                        product=item.product,
                        score=contribution,
                        sources={label},
                        popularity_applied=item.popularity_applied,
                    )
                else:
                    existing.score += contribution
                    existing.sources.add(label)
                    existing.popularity_applied = existing.popularity_applied or item.popularity_applied

        for item in fused.values():
            if len(item.sources) > 1:
                item.score *= 1 + AGREEMENT_BONUS * len(item.sources)

        results = sorted(fused.values(), key=lambda item: item.score, reverse=True)

        logger.debug(
            "results_fused",
            policy=policy.name,
            inputs={label: len(products) for label, products in result_sets.items()},
            fused=len(results),
            multi_source=sum(1 for item in results if len(item.sources) > 1),
        )
        return results
