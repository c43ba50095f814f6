"""
Popularity-adjusted ranking with stock-aware ordering.
"""

from shop_search.search.base import Product, ScoredProduct


class Ranker:
    """Final ordering of search results."""

    @staticmethod
    def combined_score(item: ScoredProduct, sales_boost: float) -> float:
        """relevance x (1 + log10(sales_count + 1) x sales_boost).

        Scores that already carry the popularity multiplier are returned
        unchanged.
        """
        if item.popularity_applied:
            return item.score
        return item.score * (1 + item.product.popularity * sales_boost)

    @classmethod
    def rank(
        cls,
        products: list[ScoredProduct],
        sales_boost: float,
        stock_priority: bool,
    ) -> list[Product]:
        """Score and order products.

        With stock_priority, out-of-stock products sort after every
        in-stock product regardless of score. Ties keep input order.

        Returns:
            Products with the final score attached
        """
        scored = [(cls.combined_score(item, sales_boost), item) for item in products]

        if stock_priority:
            scored.sort(key=lambda pair: (not pair[1].product.in_stock, -pair[0]))
        else:
            scored.sort(key=lambda pair: -pair[0])

        return [item.product.model_copy(update={"score": score}) for score, item in scored]
